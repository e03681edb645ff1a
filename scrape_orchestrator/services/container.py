"""
Container de serviços criado no startup da aplicação.

Substitui singletons de módulo: store e catálogo são construídos uma vez e
passados explicitamente para cada serviço.
"""
import logging
from dataclasses import dataclass

from scrape_orchestrator.core.config import Settings
from scrape_orchestrator.core.store import StoreHandles
from scrape_orchestrator.services.catalog import CatalogDirectory
from scrape_orchestrator.services.proxy_manager import ProxyRegistry, ProxyRotation
from scrape_orchestrator.services.queue_manager import QueueOrchestrator, ReenqueueManager
from scrape_orchestrator.services.stats import StatsAggregator

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    store: StoreHandles
    catalogs: CatalogDirectory
    queues: QueueOrchestrator
    reenqueue: ReenqueueManager
    proxies: ProxyRegistry
    rotation: ProxyRotation
    stats: StatsAggregator

    @classmethod
    def build(cls, store: StoreHandles, catalogs: CatalogDirectory) -> "ServiceContainer":
        registry = ProxyRegistry(store)
        return cls(
            store=store,
            catalogs=catalogs,
            queues=QueueOrchestrator(store, catalogs),
            reenqueue=ReenqueueManager(store, catalogs),
            proxies=registry,
            rotation=ProxyRotation(registry),
            stats=StatsAggregator(store),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ServiceContainer":
        return cls.build(StoreHandles.from_settings(settings), CatalogDirectory.from_settings(settings))

    async def close(self) -> None:
        await self.store.close()
        await self.catalogs.close()
        logger.info("[ServiceContainer] 🔌 Recursos liberados")
