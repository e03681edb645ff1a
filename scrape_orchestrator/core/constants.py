"""
Constantes compartilhadas do orquestrador.
"""
from scrape_orchestrator.core.errors import InvalidArgumentError

# Papéis de conexão com o store
ROLE_GLOBAL = "global"
ROLE_REGULAR = "regular"
ROLE_WATCHLIST = "watchlist"
ROLES = (ROLE_GLOBAL, ROLE_REGULAR, ROLE_WATCHLIST)

# Namespaces (pipelines de trabalho)
NAMESPACE_REGULAR = "regular"
NAMESPACE_WATCHLIST = "watchlist"
NAMESPACES = (NAMESPACE_REGULAR, NAMESPACE_WATCHLIST)

# Nomes externos aceitos para cada namespace
_NAMESPACE_ALIASES = {
    "regular": NAMESPACE_REGULAR,
    "non-watchlist": NAMESPACE_REGULAR,
    "watchlist": NAMESPACE_WATCHLIST,
}

# Tipos de fila
QUEUE_PENDING = "pending"
QUEUE_FAILED = "failed"
QUEUE_TYPES = (QUEUE_PENDING, QUEUE_FAILED)

# Paginação
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100

# Seleção de próximos itens
DEFAULT_NEXT_COUNT = 4


def normalize_namespace(namespace: str) -> str:
    """
    Converte um nome de namespace externo para o canônico.

    Raises:
        InvalidArgumentError: namespace desconhecido
    """
    canonical = _NAMESPACE_ALIASES.get((namespace or "").strip().lower())
    if canonical is None:
        raise InvalidArgumentError(
            f"Namespace inválido: {namespace}. Use 'regular' ou 'watchlist'"
        )
    return canonical


def normalize_queue_type(queue_type: str) -> str:
    value = (queue_type or "").strip().lower()
    if value not in QUEUE_TYPES:
        raise InvalidArgumentError(
            f"Tipo de fila inválido: {queue_type}. Use 'pending' ou 'failed'"
        )
    return value
