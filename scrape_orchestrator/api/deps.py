"""
Dependências compartilhadas pelos routers v2.
"""
import logging
from typing import Optional

from fastapi import Header, Request

from scrape_orchestrator.core.config import DEFAULT_ENVIRONMENT, ENVIRONMENTS
from scrape_orchestrator.services.container import ServiceContainer

logger = logging.getLogger(__name__)


async def get_environment(x_environment: Optional[str] = Header(default=None)) -> str:
    """
    Resolve o ambiente a partir do header X-Environment.

    Valor ausente ou desconhecido cai para production.
    """
    if not x_environment:
        return DEFAULT_ENVIRONMENT
    env = x_environment.strip().lower()
    if env not in ENVIRONMENTS:
        logger.warning(f"[Environment] ⚠️ Ambiente inválido '{x_environment}', usando {DEFAULT_ENVIRONMENT}")
        return DEFAULT_ENVIRONMENT
    return env


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services
