"""
WorkItem - unidade de trabalho de scraping e seu formato no store.

normalize_work_item é o único ponto que interpreta os aliases legados
(brand_id, brandId, queue_id, queueId, pageId). O restante do código só
enxerga o WorkItem canônico.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from scrape_orchestrator.core.constants import normalize_namespace
from scrape_orchestrator.core.errors import InvalidArgumentError

logger = logging.getLogger(__name__)

_ID_ALIASES = ("id", "brand_id", "brandId", "queue_id", "queueId")
_PAGE_ID_ALIASES = ("page_id", "pageId")


@dataclass(frozen=True)
class WorkItem:
    id: str
    page_id: Optional[str] = None
    coverage: Optional[str] = None
    reason: Optional[str] = None
    namespace: Optional[str] = None

    def to_member(self) -> str:
        """Membro do sorted set pending / elemento da lista failed."""
        return _dumps({"id": _wire_id(self.id), "page_id": self.page_id})

    def to_reenqueue_member(self) -> str:
        """Elemento da lista compartilhada de reenqueue."""
        return _dumps({
            "id": _wire_id(self.id),
            "page_id": self.page_id,
            "coverage": self.coverage,
            "namespace": self.namespace,
        })

    def with_page_id(self, page_id: Optional[str]) -> "WorkItem":
        return WorkItem(
            id=self.id,
            page_id=page_id,
            coverage=self.coverage,
            reason=self.reason,
            namespace=self.namespace,
        )


@dataclass(frozen=True)
class ScannedEntry:
    """Entrada lida do store: membro bruto (usado na remoção) + item decodificado."""
    raw: str
    item: WorkItem
    score: Optional[float] = None


def _dumps(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"))


def _wire_id(item_id: str) -> Union[int, str]:
    # ids numéricos mantêm o formato gravado pelos produtores; "007" ou
    # dígitos não ASCII seguem como string para sobreviver à ida e volta
    if item_id.isascii() and item_id.isdigit() and str(int(item_id)) == item_id:
        return int(item_id)
    return item_id


def _first_present(data: Dict[str, Any], names) -> Any:
    for name in names:
        value = data.get(name)
        if value is not None and value != "":
            return value
    return None


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def normalize_work_item(data: Dict[str, Any]) -> WorkItem:
    """
    Converte um dicionário (payload de API ou JSON do store) em WorkItem.

    Args:
        data: Dicionário com id (ou alias) e page_id (ou alias)

    Returns:
        WorkItem canônico (ids como string)

    Raises:
        InvalidArgumentError: se nenhum campo de id estiver presente
    """
    if not isinstance(data, dict):
        raise InvalidArgumentError("Item deve ser um objeto JSON")

    item_id = _as_text(_first_present(data, _ID_ALIASES))
    if item_id is None:
        raise InvalidArgumentError("Item sem id")

    namespace = data.get("namespace")
    if namespace is not None:
        namespace = normalize_namespace(str(namespace))

    return WorkItem(
        id=item_id,
        page_id=_as_text(_first_present(data, _PAGE_ID_ALIASES)),
        coverage=_as_text(data.get("coverage")),
        reason=_as_text(data.get("reason")),
        namespace=namespace,
    )


def decode_entry(raw: str, score: Optional[float] = None) -> Optional[ScannedEntry]:
    """
    Decodifica uma entrada persistida.

    Entradas malformadas (JSON inválido, sem id, namespace desconhecido)
    são registradas em WARNING e retornam None para serem puladas.
    """
    try:
        data = json.loads(raw)
        item = normalize_work_item(data)
    except (ValueError, TypeError) as e:
        logger.warning(f"[WorkItem] ⚠️ Entrada inválida ignorada: {raw!r} ({e})")
        return None
    except InvalidArgumentError as e:
        logger.warning(f"[WorkItem] ⚠️ Entrada inválida ignorada: {raw!r} ({e.message})")
        return None
    return ScannedEntry(raw=raw, item=item, score=score)
