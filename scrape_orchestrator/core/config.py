import os
from dataclasses import dataclass
from typing import Dict, List, Optional

from dotenv import load_dotenv

from scrape_orchestrator.core.errors import InvalidArgumentError

# Carregar variáveis do arquivo .env
load_dotenv()

ENVIRONMENTS = ("production", "stage")
DEFAULT_ENVIRONMENT = "production"


def _env(name: str, environment: str, default: str = "") -> str:
    """Lê variável com sufixo _STAGE quando o ambiente é stage."""
    if environment == "stage":
        return os.getenv(f"{name}_STAGE", default)
    return os.getenv(name, default)


@dataclass(frozen=True)
class RedisTarget:
    """Endereço de uma instância do store (global, regular ou watchlist)."""
    host: str
    port: int
    password: str = ""
    db: int = 0


@dataclass(frozen=True)
class KeySpace:
    """Nomes de chaves usados por um ambiente."""
    pending: Dict[str, str]
    failed: Dict[str, str]
    reenqueue: str
    proxy_prefix: str = "ips"
    proxy_stats: str = "proxy:stats"
    lock_prefix: str = "proxy:lock"
    ip_stats_prefix: str = "ip_stats"
    stats_prefix: str = "stats:"


@dataclass(frozen=True)
class EnvironmentConfig:
    name: str
    global_store: RedisTarget
    regular_store: RedisTarget
    watchlist_store: RedisTarget
    keys: KeySpace
    database_url: str = ""


def _target(prefix: str, environment: str, default_port: str) -> RedisTarget:
    return RedisTarget(
        host=_env(f"{prefix}_HOST", environment, "localhost"),
        port=int(_env(f"{prefix}_PORT", environment, default_port)),
        password=_env(f"{prefix}_PASSWORD", environment, ""),
        db=int(_env("REDIS_DB", environment, "0")),
    )


def _build_environment(environment: str) -> EnvironmentConfig:
    suffix = "prod" if environment == "production" else "stage"
    keys = KeySpace(
        pending={
            "regular": _env("PENDING_BRANDS_QUEUE", environment, f"pending_brands_{suffix}"),
            "watchlist": _env(
                "WATCHLIST_PENDING_BRANDS_QUEUE", environment, f"watchlist_pending_brands_{suffix}"
            ),
        },
        failed={
            "regular": _env("FAILED_BRANDS_QUEUE", environment, f"failed_brands_{suffix}"),
            "watchlist": _env(
                "WATCHLIST_FAILED_BRANDS_QUEUE", environment, f"watchlist_failed_brands_{suffix}"
            ),
        },
        reenqueue=_env("REENQUEUE_KEY", environment, f"reenqueue_brands_{suffix}"),
    )
    return EnvironmentConfig(
        name=environment,
        global_store=_target("REDIS", environment, "6379"),
        regular_store=_target("REGULAR_REDIS_QUEUE", environment, "6379"),
        watchlist_store=_target("WATCHLIST_REDIS_QUEUE", environment, "6379"),
        keys=keys,
        database_url=_env("DATABASE_URL", environment, ""),
    )


class Settings:
    # Security
    API_ACCESS_TOKEN: str = os.getenv("API_ACCESS_TOKEN", "my-secret-token-dev")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Store
    STORE_SOCKET_TIMEOUT: float = float(os.getenv("STORE_SOCKET_TIMEOUT", "5"))
    # Sem TTL por padrão: o lock só some com unlock explícito
    PROXY_LOCK_TTL: Optional[int] = int(os.getenv("PROXY_LOCK_TTL")) if os.getenv("PROXY_LOCK_TTL") else None

    # Catálogo relacional
    DATABASE_POOL_MIN_SIZE: int = int(os.getenv("DATABASE_POOL_MIN_SIZE", "1"))
    DATABASE_POOL_MAX_SIZE: int = int(os.getenv("DATABASE_POOL_MAX_SIZE", "10"))

    def __init__(self):
        self.environments: Dict[str, EnvironmentConfig] = {
            env: _build_environment(env) for env in ENVIRONMENTS
        }

    def available_environments(self) -> List[str]:
        return list(self.environments)

    def for_environment(self, environment: str) -> EnvironmentConfig:
        """
        Retorna a configuração de um ambiente.

        Raises:
            InvalidArgumentError: ambiente desconhecido
        """
        config = self.environments.get(environment)
        if config is None:
            raise InvalidArgumentError(
                f"Ambiente inválido: {environment}. Use 'production' ou 'stage'"
            )
        return config


settings = Settings()
