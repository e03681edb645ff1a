import json

import pytest

from scrape_orchestrator.core.errors import InvalidArgumentError, NotFoundError, UnavailableError, UpstreamError
from scrape_orchestrator.schemas.work_item import WorkItem
from scrape_orchestrator.services.catalog import BrandRecord, CatalogDirectory
from scrape_orchestrator.services.queue_manager import QueueOrchestrator

from conftest import ENV, BRANDS, FakeCatalog


def member(item_id, page_id=None):
    return WorkItem(id=item_id, page_id=page_id or f"p{item_id}").to_member()


async def seed_pending(client, key, scores):
    await client.zadd(key, {member(i): s for i, s in scores.items()})


async def failed_ids(client, key):
    return [json.loads(raw)["id"] for raw in await client.lrange(key, 0, -1)]


@pytest.fixture
def queues(services):
    return services.queues


@pytest.fixture
def pending_key(keys):
    return keys.pending["regular"]


@pytest.fixture
def failed_key(keys):
    return keys.failed["regular"]


async def test_enqueue_writes_compact_member(queues, regular, pending_key):
    result = await queues.enqueue(ENV, "regular", WorkItem(id="7245", page_id="123"), 1)
    assert result["added"] is True
    assert await regular.zscore(pending_key, '{"id":7245,"page_id":"123"}') == 1.0


async def test_enqueue_same_payload_updates_score(queues, regular, pending_key):
    item = WorkItem(id="7245", page_id="123")
    await queues.enqueue(ENV, "regular", item, 0)
    result = await queues.enqueue(ENV, "non-watchlist", item, 1)
    assert result["added"] is False
    assert await regular.zcard(pending_key) == 1


async def test_namespaces_use_separate_stores(queues, regular, watchlist, keys):
    await queues.enqueue(ENV, "watchlist", WorkItem(id="1", page_id="p1"))
    assert await watchlist.zcard(keys.pending["watchlist"]) == 1
    assert await regular.zcard(keys.pending["regular"]) == 0


async def test_unknown_namespace_is_rejected(queues):
    with pytest.raises(InvalidArgumentError):
        await queues.enqueue(ENV, "archive", WorkItem(id="1"))


async def test_move_to_failed_pushes_to_head(queues, regular, pending_key, failed_key):
    await seed_pending(regular, pending_key, {"101": 0, "102": 0})
    await regular.lpush(failed_key, member("900"))

    result = await queues.move_to_failed(ENV, "regular", "101")

    assert result["moved"] == {"id": "101", "page_id": "p101"}
    assert await failed_ids(regular, failed_key) == [101, 900]
    assert await regular.zscore(pending_key, member("101")) is None


async def test_item_lives_in_one_queue_only(queues, regular, pending_key, failed_key):
    await seed_pending(regular, pending_key, {"101": 0})
    await queues.move_to_failed(ENV, "regular", "101")
    with pytest.raises(NotFoundError):
        await queues.move_to_failed(ENV, "regular", "101")
    assert await regular.zcard(pending_key) == 0
    assert await regular.llen(failed_key) == 1


async def test_round_trip_restores_requeued_score(queues, regular, pending_key, failed_key):
    await seed_pending(regular, pending_key, {"101": 0})
    await queues.move_to_failed(ENV, "regular", "101")
    result = await queues.move_to_pending(ENV, "regular", "101")

    assert result["score"] == 3
    assert await regular.zscore(pending_key, member("101")) == 3.0
    assert await regular.llen(failed_key) == 0


@pytest.mark.parametrize("item_id", ["007", "²"])
async def test_digit_like_ids_are_stable_across_moves(queues, regular, pending_key, failed_key, item_id):
    await queues.enqueue(ENV, "regular", WorkItem(id=item_id, page_id="p1"))

    moved = await queues.move_to_failed(ENV, "regular", item_id)
    assert moved["moved"]["id"] == item_id

    await queues.move_to_pending(ENV, "regular", item_id)
    assert await failed_ids(regular, failed_key) == []
    assert await regular.zscore(pending_key, WorkItem(id=item_id, page_id="p1").to_member()) == 3.0


async def test_move_to_pending_missing_item(queues):
    with pytest.raises(NotFoundError):
        await queues.move_to_pending(ENV, "regular", "404")


async def test_remove_is_idempotent(queues, regular, pending_key, failed_key):
    await seed_pending(regular, pending_key, {"101": 0})
    await regular.rpush(failed_key, member("201"))

    await queues.remove(ENV, "regular", "pending", "101")
    with pytest.raises(NotFoundError):
        await queues.remove(ENV, "regular", "pending", "101")

    await queues.remove(ENV, "regular", "failed", "201")
    with pytest.raises(NotFoundError):
        await queues.remove(ENV, "regular", "failed", "201")


async def test_remove_matches_legacy_alias_members(queues, regular, pending_key):
    await regular.zadd(pending_key, {'{"brand_id":"55","pageId":"p55"}': 0})
    result = await queues.remove(ENV, "regular", "pending", "55")
    assert result["removed"] == {"id": "55", "page_id": "p55"}
    assert await regular.zcard(pending_key) == 0


async def test_get_next_serves_seed_then_normal(queues, regular, pending_key):
    await seed_pending(regular, pending_key, {"101": 0, "102": 0, "103": 1, "104": 1})

    items = await queues.get_next(ENV, "regular", 4)

    assert [i["queue_id"] for i in items] == ["103", "104", "101", "102"]
    assert [i["priority"] for i in items] == ["high", "high", "normal", "normal"]
    assert [i["queue_position"] for i in items] == [1, 2, 3, 4]
    assert items[0]["is_next"] is True
    assert all(i["queue_type"] == "pending" for i in items)


async def test_get_next_orders_within_tier_by_stored_member(queues, regular, pending_key):
    # score igual: o sorted set ordena pelo membro JSON, não pela inserção
    for item_id, score in (("9", 0), ("4", 1), ("10", 0), ("31", 1), ("2", 0)):
        await queues.enqueue(ENV, "regular", WorkItem(id=item_id, page_id=f"p{item_id}"), score)

    items = await queues.get_next(ENV, "regular", 5)

    assert [i["queue_id"] for i in items] == ["31", "4", "10", "2", "9"]


async def test_get_next_respects_count(queues, regular, pending_key):
    await seed_pending(regular, pending_key, {"101": 0, "102": 0, "103": 1})
    items = await queues.get_next(ENV, "regular", 2)
    assert [i["queue_id"] for i in items] == ["103", "101"]


async def test_get_next_skips_requeued_and_manual_tiers(queues, regular, pending_key):
    await seed_pending(regular, pending_key, {"101": 3, "102": 100, "103": 0})
    items = await queues.get_next(ENV, "regular")
    assert [i["queue_id"] for i in items] == ["103"]


async def test_get_next_falls_back_to_failed_head(queues, regular, pending_key, failed_key):
    await seed_pending(regular, pending_key, {"101": 3})
    await regular.rpush(failed_key, member("201"), member("202"))

    items = await queues.get_next(ENV, "regular")

    assert [i["queue_id"] for i in items] == ["201", "202"]
    assert all(i["queue_type"] == "failed" for i in items)
    assert items[0]["priority"] == "failed"


async def test_get_next_without_work(queues):
    with pytest.raises(UnavailableError):
        await queues.get_next(ENV, "regular")


async def test_get_next_enriches_from_catalog(queues, regular, pending_key):
    await regular.zadd(pending_key, {member("1001"): 0})
    items = await queues.get_next(ENV, "regular")
    assert items[0]["brand_name"] == "Acme Shoes"
    assert items[0]["status"] == "active"


async def test_move_all_pending_to_failed(queues, regular, pending_key, failed_key):
    await seed_pending(regular, pending_key, {"101": 0, "102": 0, "103": 0})
    await regular.rpush(failed_key, member("900"))

    result = await queues.move_all_pending_to_failed(ENV, "regular")

    assert result["moved_count"] == 3
    assert result["invalid_count"] == 0
    assert await regular.exists(pending_key) == 0
    assert await failed_ids(regular, failed_key) == [101, 102, 103, 900]


async def test_move_all_pending_counts_malformed_entries(queues, regular, pending_key, failed_key):
    await seed_pending(regular, pending_key, {"101": 0})
    await regular.zadd(pending_key, {"garbage": 0})

    result = await queues.move_all_pending_to_failed(ENV, "regular")

    assert result["moved_count"] == 1
    assert result["invalid_count"] == 1
    assert await regular.exists(pending_key) == 0
    assert await failed_ids(regular, failed_key) == [101]


async def test_move_all_on_empty_queue(queues):
    result = await queues.move_all_pending_to_failed(ENV, "regular")
    assert result == {"moved_count": 0, "invalid_count": 0, "moved_brands": []}


async def test_move_all_failed_to_pending(queues, regular, pending_key, failed_key):
    await regular.rpush(failed_key, member("201"), member("202"))

    result = await queues.move_all_failed_to_pending(ENV, "regular")

    assert result["moved_count"] == 2
    assert await regular.exists(failed_key) == 0
    assert await regular.zrange(pending_key, 0, -1, withscores=True) == [
        (member("201"), 3.0),
        (member("202"), 3.0),
    ]


async def test_move_watchlist_failed_to_pending(queues, regular, pending_key, failed_key):
    await regular.rpush(failed_key, member("1001"), member("1003"), member("1002"))

    result = await queues.move_failed_to_pending_matching(ENV, "regular")

    assert result["moved_count"] == 2
    assert await failed_ids(regular, failed_key) == [1003]
    assert await regular.zscore(pending_key, member("1001")) == 3.0
    assert await regular.zscore(pending_key, member("1002")) == 3.0


async def test_seed_watchlist_skips_already_pending(queues, watchlist, keys):
    key = keys.pending["watchlist"]
    await watchlist.zadd(key, {member("1001"): 0})

    result = await queues.seed_watchlist(ENV)

    assert result["moved_count"] == 1
    assert result["moved_brands"] == [{"id": "1002", "page_id": "p1002"}]
    assert await watchlist.zscore(key, member("1002")) == 1.0
    assert await watchlist.zscore(key, member("1001")) == 0.0


async def test_watchlist_status_derives_from_queues(store, watchlist, keys):
    brands = BRANDS + [BrandRecord(id="1004", page_id="p1004", name="Dune Bags", status="Inactive")]
    catalog = FakeCatalog(brands, watchlist=["1001", "1002", "1003", "1004"])
    queues = QueueOrchestrator(store, CatalogDirectory({ENV: catalog}))
    await watchlist.zadd(keys.pending["watchlist"], {member("1001"): 1})
    await watchlist.rpush(keys.failed["watchlist"], member("1002"))

    result = await queues.watchlist_status(ENV)

    statuses = {b["brand_id"]: b["scraper_status"] for b in result["brands"]}
    assert statuses == {"1001": "pending", "1002": "failed", "1003": "completed", "1004": "completed"}
    assert result["brands"][0]["queue_id"] == "1001"
    assert result["brands"][1]["queue_id"] is None
    assert result["summary"] == {"total": 4, "pending_count": 1, "failed_count": 1, "completed_count": 1}

    page = await queues.watchlist_status(ENV, page=2, limit=2)
    assert [b["brand_id"] for b in page["brands"]] == ["1003", "1004"]
    assert page["pagination"]["total_pages"] == 2

    found = await queues.watchlist_status(ENV, search="cedar")
    assert [b["brand_name"] for b in found["brands"]] == ["Cedar Tools"]
    assert found["pagination"]["total_items"] == 1


async def test_watchlist_status_surfaces_catalog_failure(store):
    queues = QueueOrchestrator(store, CatalogDirectory({ENV: FakeCatalog(BRANDS, fail=True)}))
    with pytest.raises(UpstreamError):
        await queues.watchlist_status(ENV)


async def test_change_priority_pending_by_page_id(queues, regular, pending_key):
    await seed_pending(regular, pending_key, {"101": 0})
    result = await queues.change_priority(ENV, "regular", "pending", "p101", 1)
    assert result["new_score"] == 1.0
    assert await regular.zscore(pending_key, member("101")) == 1.0


async def test_change_priority_by_brand_name(queues, regular, pending_key):
    await seed_pending(regular, pending_key, {"1002": 0, "1001": 0})
    result = await queues.change_priority(ENV, "regular", "pending", "acme shoes", 1)
    assert result["id"] == "1001"
    assert await regular.zscore(pending_key, member("1001")) == 1.0


async def test_change_priority_failed_position(queues, regular, failed_key):
    await regular.rpush(failed_key, member("201"), member("202"), member("203"))

    await queues.change_priority(ENV, "regular", "failed", "203", 1)
    assert await failed_ids(regular, failed_key) == [203, 201, 202]

    await queues.change_priority(ENV, "regular", "failed", "203", 3)
    assert await failed_ids(regular, failed_key) == [201, 202, 203]

    await queues.change_priority(ENV, "regular", "failed", "201", 2)
    assert await failed_ids(regular, failed_key) == [202, 201, 203]


async def test_change_priority_failed_concurrent_removal_wins(queues, regular, failed_key, monkeypatch):
    await regular.rpush(failed_key, member("201"), member("202"), member("203"))
    original_lrem = regular.lrem

    async def removed_by_other_worker(name, count, value):
        await original_lrem(name, count, value)
        return await original_lrem(name, count, value)

    monkeypatch.setattr(regular, "lrem", removed_by_other_worker)

    with pytest.raises(NotFoundError):
        await queues.change_priority(ENV, "regular", "failed", "203", 1)
    assert await failed_ids(regular, failed_key) == [201, 202]


async def test_change_priority_failed_missing_pivot_keeps_item(queues, regular, failed_key, monkeypatch):
    await regular.rpush(failed_key, member("201"), member("202"), member("203"))
    original_linsert = regular.linsert

    async def pivot_removed_first(name, where, refvalue, value):
        await regular.lrem(name, 1, refvalue)
        return await original_linsert(name, where, refvalue, value)

    monkeypatch.setattr(regular, "linsert", pivot_removed_first)

    await queues.change_priority(ENV, "regular", "failed", "203", 2)
    assert await failed_ids(regular, failed_key) == [202, 203]


async def test_change_priority_same_position_is_noop(queues, regular, failed_key):
    await regular.rpush(failed_key, member("201"), member("202"))
    result = await queues.change_priority(ENV, "regular", "failed", "202", "2")
    assert "message" in result
    assert await failed_ids(regular, failed_key) == [201, 202]


@pytest.mark.parametrize("position", [0, 4, "abc"])
async def test_change_priority_invalid_position(queues, regular, failed_key, position):
    await regular.rpush(failed_key, member("201"), member("202"), member("203"))
    with pytest.raises(InvalidArgumentError):
        await queues.change_priority(ENV, "regular", "failed", "201", position)
    assert await failed_ids(regular, failed_key) == [201, 202, 203]


async def test_change_priority_unknown_item(queues, regular, pending_key):
    await seed_pending(regular, pending_key, {"101": 0})
    with pytest.raises(NotFoundError):
        await queues.change_priority(ENV, "regular", "pending", "nobody", 1)


async def test_get_page_pagination(queues, regular, pending_key):
    await seed_pending(regular, pending_key, {str(i): 0 for i in range(101, 126)})

    result = await queues.get_page(ENV, "regular", "pending", page=3, limit=10)

    assert result["pagination"] == {
        "current_page": 3,
        "per_page": 10,
        "total_items": 25,
        "total_pages": 3,
    }
    assert [b["queue_id"] for b in result["brands"]] == [str(i) for i in range(121, 126)]
    assert result["brands"][0]["queue_position"] == 21


async def test_get_page_search_by_brand_name(queues, regular, failed_key):
    await regular.rpush(failed_key, member("1001"), member("1002"), member("1003"))

    result = await queues.get_page(ENV, "regular", "failed", search="hats")

    assert result["pagination"]["total_items"] == 1
    assert result["brands"][0]["queue_id"] == "1002"
    assert result["brands"][0]["queue_position"] == 2


async def test_get_page_invalid_window(queues):
    with pytest.raises(InvalidArgumentError):
        await queues.get_page(ENV, "regular", "pending", page=0)
    with pytest.raises(InvalidArgumentError):
        await queues.get_page(ENV, "regular", "pending", limit=101)


async def test_get_page_tolerates_catalog_failure(store, regular, pending_key):
    queues = QueueOrchestrator(store, CatalogDirectory({ENV: FakeCatalog(BRANDS, fail=True)}))
    await seed_pending(regular, pending_key, {"1001": 0})

    result = await queues.get_page(ENV, "regular", "pending")

    assert result["brands"][0]["brand_name"] == "Unknown"


async def test_watchlist_seed_surfaces_catalog_failure(store):
    queues = QueueOrchestrator(store, CatalogDirectory({ENV: FakeCatalog(BRANDS, fail=True)}))
    with pytest.raises(UpstreamError):
        await queues.seed_watchlist(ENV)


async def test_stats_and_clear(queues, regular, watchlist, global_client, keys, pending_key, failed_key):
    await seed_pending(regular, pending_key, {"101": 0, "102": 0})
    await regular.rpush(failed_key, member("201"))
    await watchlist.zadd(keys.pending["watchlist"], {member("301"): 1})
    await global_client.rpush(keys.reenqueue, '{"id":"7245","namespace":"watchlist"}')

    stats = await queues.stats(ENV)
    assert stats["regular"] == {"pending_count": 2, "failed_count": 1}
    assert stats["watchlist"] == {"pending_count": 1, "failed_count": 0}
    assert stats["reenqueue_count"] == 1
    assert stats["total_count"] == 5

    cleared = await queues.clear_all(ENV, "regular")
    assert cleared == {"cleared_pending": 2, "cleared_failed": 1, "total_cleared": 3}
    assert await regular.exists(pending_key, failed_key) == 0
