import json
import logging

import pytest

from scrape_orchestrator.core.config import Settings
from scrape_orchestrator.core.constants import normalize_namespace, normalize_queue_type
from scrape_orchestrator.core.errors import (
    InvalidArgumentError,
    NotFoundError,
    UpstreamError,
    upstream_guard,
)
from scrape_orchestrator.core.logging_utils import JsonFormatter
from scrape_orchestrator.core.pagination import PageRequest
from scrape_orchestrator.services.catalog import CatalogDirectory, NullCatalog, PostgresCatalog, _record

from conftest import ENV, FakeCatalog


def test_stage_uses_suffixed_variables(monkeypatch):
    monkeypatch.setenv("PENDING_BRANDS_QUEUE_STAGE", "custom_pending_stage")
    monkeypatch.setenv("REDIS_PORT_STAGE", "6380")
    config = Settings().for_environment("stage")
    assert config.keys.pending["regular"] == "custom_pending_stage"
    assert config.global_store.port == 6380


def test_default_key_names():
    keys = Settings().for_environment("production").keys
    assert keys.proxy_prefix == "ips"
    assert keys.lock_prefix == "proxy:lock"
    assert keys.stats_prefix == "stats:"


def test_unknown_environment():
    with pytest.raises(InvalidArgumentError):
        Settings().for_environment("qa")


def test_namespace_and_queue_type_normalization():
    assert normalize_namespace("Non-Watchlist") == "regular"
    assert normalize_queue_type(" FAILED ") == "failed"
    with pytest.raises(InvalidArgumentError):
        normalize_queue_type("done")


def test_page_request_meta():
    window = PageRequest(page=2, limit=3)
    assert window.slice(list(range(10))) == [3, 4, 5]
    assert window.meta(10) == {"current_page": 2, "per_page": 3, "total_items": 10, "total_pages": 4}
    assert PageRequest().meta(0)["total_pages"] == 0


async def test_upstream_guard_translates_backend_errors():
    @upstream_guard
    async def broken():
        raise ConnectionRefusedError("store down")

    @upstream_guard
    async def missing():
        raise NotFoundError("nope")

    with pytest.raises(UpstreamError) as excinfo:
        await broken()
    assert excinfo.value.kind == "upstream"
    assert excinfo.value.status_code == 502

    with pytest.raises(NotFoundError):
        await missing()


def test_json_formatter():
    record = logging.LogRecord("scrape_orchestrator.test", logging.WARNING, __file__, 1, "[X] %s", ("oi",), None)
    payload = json.loads(JsonFormatter().format(record))
    assert payload["level"] == "WARNING"
    assert payload["logger"] == "scrape_orchestrator.test"
    assert payload["message"] == "[X] oi"


async def test_store_handles(store, fake_clients):
    assert await store.ping(ENV) == {"global": True, "regular": True, "watchlist": True}
    assert store.queue_client(ENV, "non-watchlist") is fake_clients[ENV]["regular"]
    assert store.global_client("stage") is fake_clients["stage"]["global"]
    with pytest.raises(InvalidArgumentError):
        store.client(ENV, "archive")
    with pytest.raises(InvalidArgumentError):
        store.client("qa", "global")


async def test_catalog_directory_falls_back_to_null_catalog():
    catalog = FakeCatalog()
    directory = CatalogDirectory({ENV: catalog})
    assert directory.get(ENV) is catalog
    assert isinstance(directory.get("stage"), NullCatalog)
    assert await directory.get("stage").find_by_page_ids(["p1"]) == {}

    await directory.close()
    assert catalog.closed is True


async def test_postgres_catalog_skips_query_without_numeric_ids():
    catalog = PostgresCatalog("postgresql://unused")
    assert await catalog.find_by_ids(["abc", ""]) == {}
    assert await catalog.find_by_page_ids([None, ""]) == {}
    await catalog.close()


def test_brand_name_prefers_actual_name():
    row = {"id": 1, "page_id": 99, "name": "old", "actual_name": "New Name", "status": None}
    assert _record(row).name == "New Name"
    assert _record(row).page_id == "99"
    assert _record({**row, "actual_name": None, "name": None}).name == "Unknown"
