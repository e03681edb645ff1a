"""
Fixtures compartilhadas: store em memória (fakeredis) e catálogo falso.

Cada (ambiente, papel) recebe seu próprio FakeServer, reproduzindo as
instâncias separadas de produção (global, regular, watchlist).
"""
from typing import Dict, Iterable, List, Optional

import pytest
from fakeredis import FakeAsyncRedis, FakeServer

from scrape_orchestrator.core.config import ENVIRONMENTS, Settings
from scrape_orchestrator.core.constants import ROLES
from scrape_orchestrator.core.store import StoreHandles
from scrape_orchestrator.services.catalog import BrandRecord, CatalogDirectory
from scrape_orchestrator.services.container import ServiceContainer

ENV = "production"


class FakeCatalog:
    """Catálogo em memória; com fail=True toda consulta levanta OSError."""

    def __init__(self, brands: Optional[List[BrandRecord]] = None, watchlist: Iterable[str] = (), fail: bool = False):
        self.brands = list(brands or [])
        self.watchlist_ids = set(watchlist)
        self.fail = fail
        self.closed = False

    def _check(self):
        if self.fail:
            raise OSError("catalog unavailable")

    async def find_by_ids(self, ids) -> Dict[str, BrandRecord]:
        self._check()
        wanted = {str(i) for i in ids}
        return {b.id: b for b in self.brands if b.id in wanted}

    async def find_by_page_ids(self, page_ids) -> Dict[str, BrandRecord]:
        self._check()
        wanted = {str(p) for p in page_ids}
        return {b.page_id: b for b in self.brands if b.page_id in wanted}

    async def list_watchlist(self) -> List[BrandRecord]:
        self._check()
        return [b for b in self.brands if b.id in self.watchlist_ids]

    async def close(self) -> None:
        self.closed = True


BRANDS = [
    BrandRecord(id="1001", page_id="p1001", name="Acme Shoes", status="active"),
    BrandRecord(id="1002", page_id="p1002", name="Blue Hats", status="active"),
    BrandRecord(id="1003", page_id="p1003", name="Cedar Tools", status="paused"),
]


@pytest.fixture
def fake_clients():
    return {
        env: {role: FakeAsyncRedis(server=FakeServer(), decode_responses=True) for role in ROLES}
        for env in ENVIRONMENTS
    }


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def store(settings, fake_clients):
    return StoreHandles.from_clients(settings, fake_clients)


@pytest.fixture
def keys(store):
    return store.keys(ENV)


@pytest.fixture
def regular(fake_clients):
    return fake_clients[ENV]["regular"]


@pytest.fixture
def watchlist(fake_clients):
    return fake_clients[ENV]["watchlist"]


@pytest.fixture
def global_client(fake_clients):
    return fake_clients[ENV]["global"]


@pytest.fixture
def catalog():
    return FakeCatalog(BRANDS, watchlist=["1001", "1002"])


@pytest.fixture
def catalogs(catalog):
    return CatalogDirectory({ENV: catalog})


@pytest.fixture
def services(store, catalogs):
    return ServiceContainer.build(store, catalogs)
