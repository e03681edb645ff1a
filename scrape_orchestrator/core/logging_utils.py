"""
Configuração de logging estruturado (JSON lines) para o orquestrador.
"""
import json
import logging
import sys
from datetime import datetime, timezone

from scrape_orchestrator.core.config import settings

_HANDLER_NAME = "scrape_orchestrator_json"


class JsonFormatter(logging.Formatter):
    """Formata cada registro como um objeto JSON em uma linha."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(level: str = None) -> None:
    """
    Instala o formatter JSON no logger raiz.

    Idempotente: chamadas repetidas apenas ajustam o nível.
    """
    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())

    if any(h.get_name() == _HANDLER_NAME for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)

    # Silenciar logs verbosos de bibliotecas
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
