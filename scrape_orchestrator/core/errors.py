"""
Erros do orquestrador.

Cada erro carrega um `kind` estável (usado na resposta HTTP) e o status
HTTP correspondente. Serviços levantam estes erros; a camada HTTP só traduz.
"""

import functools
import logging
from typing import Any, Awaitable, Callable, TypeVar

import asyncpg
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OrchestratorError(Exception):
    kind = "error"
    status_code = 500

    def __init__(self, message: str, data: Any = None):
        super().__init__(message)
        self.message = message
        self.data = data


class InvalidArgumentError(OrchestratorError):
    """IP malformado, posição inválida, namespace ou tipo de fila desconhecido."""
    kind = "invalid_argument"
    status_code = 400


class NotFoundError(OrchestratorError):
    """Item ausente da estrutura varrida, proxy ou lock inexistente."""
    kind = "not_found"
    status_code = 404


class ConflictError(OrchestratorError):
    """Chave composta de proxy duplicada ou lock já adquirido."""
    kind = "conflict"
    status_code = 409


class UnavailableError(OrchestratorError):
    """Nenhum proxy ativo ou nenhum trabalho pendente."""
    kind = "unavailable"
    status_code = 503


class UpstreamError(OrchestratorError):
    """Falha no store ou no banco relacional."""
    kind = "upstream"
    status_code = 502


# Exceções de backend convertidas em UpstreamError
UPSTREAM_EXCEPTIONS = (RedisError, asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


def upstream_guard(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """Converte falhas de store/banco em UpstreamError na fronteira do serviço."""
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except OrchestratorError:
            raise
        except UPSTREAM_EXCEPTIONS as e:
            logger.error(f"[{func.__qualname__}] Falha no backend: {type(e).__name__}: {e}")
            raise UpstreamError(f"Falha no backend: {e}") from e

    return wrapper
