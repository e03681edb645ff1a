import json

import pytest

from scrape_orchestrator.core.errors import NotFoundError, UpstreamError
from scrape_orchestrator.schemas.work_item import WorkItem
from scrape_orchestrator.services.catalog import CatalogDirectory
from scrape_orchestrator.services.queue_manager import ReenqueueManager

from conftest import ENV, BRANDS, FakeCatalog


def reenqueue_entry(item_id, namespace, page_id=None, coverage="45/50"):
    return json.dumps({"id": item_id, "page_id": page_id, "coverage": coverage, "namespace": namespace})


def pending_member(item_id, page_id):
    return WorkItem(id=item_id, page_id=page_id).to_member()


@pytest.fixture
def manager(services):
    return services.reenqueue


async def test_requeue_one_resolves_page_id_and_uses_manual_priority(manager, global_client, watchlist, keys):
    await global_client.rpush(keys.reenqueue, reenqueue_entry("1001", "watchlist"))

    result = await manager.requeue_one(ENV, "1001", "watchlist")

    assert result == {"id": "1001", "page_id": "p1001", "queue_type": "watchlist", "score": 100}
    assert await watchlist.zscore(keys.pending["watchlist"], pending_member("1001", "p1001")) == 100.0
    assert await global_client.llen(keys.reenqueue) == 0


async def test_requeue_one_matches_namespace(manager, global_client, keys):
    await global_client.rpush(keys.reenqueue, reenqueue_entry("1001", "watchlist"))
    with pytest.raises(NotFoundError):
        await manager.requeue_one(ENV, "1001", "regular")
    assert await global_client.llen(keys.reenqueue) == 1


async def test_requeue_one_keeps_item_when_catalog_fails(store, global_client, watchlist, keys):
    manager = ReenqueueManager(store, CatalogDirectory({ENV: FakeCatalog(BRANDS, fail=True)}))
    await global_client.rpush(keys.reenqueue, reenqueue_entry("1001", "watchlist"))

    with pytest.raises(UpstreamError):
        await manager.requeue_one(ENV, "1001", "watchlist")

    assert await global_client.llen(keys.reenqueue) == 1
    assert await watchlist.zcard(keys.pending["watchlist"]) == 0


async def test_requeue_all_counts_invalid_entries(manager, global_client, watchlist, regular, keys):
    await global_client.rpush(
        keys.reenqueue,
        reenqueue_entry("1001", "watchlist", page_id="p1001"),
        reenqueue_entry("1002", "watchlist"),
        reenqueue_entry("1003", "non-watchlist"),
        "not json",
    )

    result = await manager.requeue_all(ENV, "watchlist")

    assert result == {"requeued": 2, "skipped": 0, "invalid": 1, "queue_type": "watchlist"}
    assert await watchlist.zrange(keys.pending["watchlist"], 0, -1, withscores=True) == [
        (pending_member("1001", "p1001"), 100.0),
        (pending_member("1002", "p1002"), 100.0),
    ]
    assert await regular.zcard(keys.pending["regular"]) == 0
    remaining = [json.loads(raw).get("id") if raw != "not json" else raw
                 for raw in await global_client.lrange(keys.reenqueue, 0, -1)]
    assert remaining == ["1003", "not json"]


async def test_requeue_all_skips_items_the_catalog_cannot_resolve(store, global_client, watchlist, keys):
    manager = ReenqueueManager(store, CatalogDirectory({ENV: FakeCatalog(BRANDS, fail=True)}))
    await global_client.rpush(
        keys.reenqueue,
        reenqueue_entry("1001", "watchlist", page_id="p1001"),
        reenqueue_entry("1002", "watchlist"),
    )

    result = await manager.requeue_all(ENV, "watchlist")

    assert result["requeued"] == 1
    assert result["skipped"] == 1
    assert await global_client.llen(keys.reenqueue) == 1


async def test_list_enriches_and_filters(manager, global_client, keys):
    await global_client.rpush(
        keys.reenqueue,
        reenqueue_entry("1001", "watchlist"),
        reenqueue_entry("1002", "non-watchlist", page_id="p1002"),
        reenqueue_entry("5555", "watchlist"),
    )

    result = await manager.list(ENV)
    assert result["pagination"]["total_items"] == 3
    first = result["items"][0]
    assert first["page_id"] == "p1001"
    assert first["brand_name"] == "Acme Shoes"
    assert result["items"][2]["brand_name"] == "Unknown"

    by_namespace = await manager.list(ENV, namespace="non-watchlist")
    assert [i["id"] for i in by_namespace["items"]] == ["1002"]

    by_name = await manager.list(ENV, search="acme")
    assert [i["id"] for i in by_name["items"]] == ["1001"]


async def test_delete_one_and_all(manager, global_client, keys):
    await global_client.rpush(
        keys.reenqueue,
        reenqueue_entry("1001", "watchlist"),
        reenqueue_entry("1002", "watchlist"),
        reenqueue_entry("1003", "regular"),
    )

    await manager.delete_one(ENV, "1001", "watchlist")
    with pytest.raises(NotFoundError):
        await manager.delete_one(ENV, "1001", "watchlist")

    assert await manager.delete_all(ENV, "watchlist") == {"count": 1}
    assert await manager.delete_all(ENV, "watchlist") == {"count": 0}
    assert await global_client.llen(keys.reenqueue) == 1
