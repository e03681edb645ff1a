"""
Store Adapter - conexões com o store (Redis) por ambiente e papel.

Cada ambiente (production/stage) tem três conexões:
- global: proxies, locks, estatísticas por IP, fila de reenqueue
- regular: filas pending/failed do pipeline regular e stats diárias
- watchlist: filas pending/failed do pipeline watchlist e stats diárias

StoreHandles é criado uma vez no startup e passado para os serviços.
"""
import logging
from typing import Callable, Dict, Optional, Tuple

from redis.asyncio import Redis
from redis.exceptions import RedisError

from scrape_orchestrator.core.config import KeySpace, RedisTarget, Settings
from scrape_orchestrator.core.constants import (
    ROLE_GLOBAL,
    ROLES,
    normalize_namespace,
)
from scrape_orchestrator.core.errors import InvalidArgumentError

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, str], Redis]


class StoreHandles:
    """Conjunto explícito de clientes do store, indexado por (ambiente, papel)."""

    def __init__(
        self,
        settings: Settings,
        factory: ClientFactory,
        owns_clients: bool = True,
    ):
        self._settings = settings
        self._factory = factory
        self._owns_clients = owns_clients
        self._clients: Dict[Tuple[str, str], Redis] = {}
        for env in settings.available_environments():
            for role in ROLES:
                self._clients[(env, role)] = factory(env, role)

    @classmethod
    def from_settings(cls, settings: Settings) -> "StoreHandles":
        def factory(env: str, role: str) -> Redis:
            config = settings.for_environment(env)
            target: RedisTarget = {
                "global": config.global_store,
                "regular": config.regular_store,
                "watchlist": config.watchlist_store,
            }[role]
            return Redis(
                host=target.host,
                port=target.port,
                password=target.password or None,
                db=target.db,
                decode_responses=True,
                socket_timeout=settings.STORE_SOCKET_TIMEOUT,
                socket_connect_timeout=settings.STORE_SOCKET_TIMEOUT,
            )

        handles = cls(settings, factory)
        logger.info(
            f"[StoreHandles] ✅ Clientes criados para ambientes {settings.available_environments()}"
        )
        return handles

    @classmethod
    def from_clients(
        cls,
        settings: Settings,
        clients: Dict[str, Dict[str, Redis]],
    ) -> "StoreHandles":
        """
        Cria handles a partir de clientes já construídos (usado em testes).

        Args:
            settings: Configuração com os nomes de chaves
            clients: {ambiente: {papel: cliente}}
        """
        return cls(settings, lambda env, role: clients[env][role], owns_clients=False)

    def _check_env(self, env: str) -> str:
        self._settings.for_environment(env)
        return env

    def client(self, env: str, role: str) -> Redis:
        self._check_env(env)
        if role not in ROLES:
            raise InvalidArgumentError(f"Papel de conexão inválido: {role}")
        return self._clients[(env, role)]

    def queue_client(self, env: str, namespace: str) -> Redis:
        return self.client(env, normalize_namespace(namespace))

    def global_client(self, env: str) -> Redis:
        return self.client(env, ROLE_GLOBAL)

    def keys(self, env: str) -> KeySpace:
        return self._settings.for_environment(env).keys

    async def ping(self, env: str) -> Dict[str, bool]:
        """Verifica cada conexão do ambiente. Nunca levanta exceção."""
        self._check_env(env)
        result = {}
        for role in ROLES:
            try:
                result[role] = bool(await self._clients[(env, role)].ping())
            except (RedisError, OSError) as e:
                logger.warning(f"[StoreHandles] ⚠️ Ping falhou env={env} role={role}: {e}")
                result[role] = False
        return result

    async def reconnect(self, env: Optional[str] = None) -> None:
        """Fecha e recria os clientes de um ambiente (ou de todos)."""
        envs = [self._check_env(env)] if env else self._settings.available_environments()
        for name in envs:
            for role in ROLES:
                old = self._clients.pop((name, role), None)
                if old is not None and self._owns_clients:
                    await self._close_client(old, name, role)
                self._clients[(name, role)] = self._factory(name, role)
            logger.info(f"[StoreHandles] 🔄 Reconectado env={name}")

    async def close(self) -> None:
        if self._owns_clients:
            for (env, role), client in self._clients.items():
                await self._close_client(client, env, role)
        logger.info("[StoreHandles] 🔌 Conexões fechadas")

    @staticmethod
    async def _close_client(client: Redis, env: str, role: str) -> None:
        # Limpeza best-effort: falha ao fechar não impede o restante
        try:
            await client.aclose()
        except (RedisError, OSError) as e:
            logger.warning(f"[StoreHandles] Erro ao fechar cliente env={env} role={role}: {e}")
