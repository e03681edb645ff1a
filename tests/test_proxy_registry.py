import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from scrape_orchestrator.core.errors import ConflictError, InvalidArgumentError, NotFoundError, UpstreamError
from scrape_orchestrator.services.proxy_manager import ProxyRegistry

from conftest import ENV

KEY = "ips:1.2.3.4:8080:user:pass"
LOCK_KEY = "proxy:lock:1.2.3.4:8080:user:pass"


@pytest.fixture
def registry(services):
    return services.proxies


async def add_default(registry, ip="1.2.3.4", port=8080, **kwargs):
    return await registry.add(ENV, ip, port, "user", "pass", **kwargs)


async def test_add_creates_hash_with_zeroed_counters(registry, global_client):
    record = await add_default(registry, viewport="1366,768", user_agent="Mozilla/5.0")

    assert record.key == KEY
    assert record.active is True
    assert record.usage == 0
    assert record.version == "ipv4"
    assert record.country == "Unknown"
    stored = await global_client.hgetall(KEY)
    assert stored["failCount"] == "0"
    assert stored["successCount"] == "0"
    assert stored["active"] == "true"
    assert stored["proxy_url"] == "1.2.3.4:8080:user:pass"
    assert stored["viewport"] == "1366,768"


async def test_add_duplicate_conflicts(registry):
    await add_default(registry)
    with pytest.raises(ConflictError):
        await add_default(registry)


async def test_add_ipv6_key_parses_from_the_right(registry):
    record = await registry.add(ENV, "2001:db8::1", 3128, "u", "p", type="socks5")
    assert record.key == "ips:2001:db8::1:3128:u:p"
    fetched = await registry.get(ENV, record.key)
    assert fetched.ip == "2001:db8::1"
    assert fetched.port == "3128"
    assert fetched.version == "ipv6"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"ip": "999.1.1.1"},
        {"ip": "not-an-ip"},
        {"port": 0},
        {"port": 70000},
        {"type": "ftp"},
        {"namespace": "archive"},
        {"viewport": "0,768"},
        {"viewport": "wide"},
        {"version": "ipv6"},
    ],
)
async def test_add_validation(registry, global_client, kwargs):
    with pytest.raises(InvalidArgumentError):
        await add_default(registry, **kwargs)
    assert [k async for k in global_client.scan_iter(match="ips:*")] == []


async def test_add_requires_credentials(registry):
    with pytest.raises(InvalidArgumentError):
        await registry.add(ENV, "1.2.3.4", 8080, "", "pass")
    with pytest.raises(InvalidArgumentError):
        await registry.add(ENV, "1.2.3.4", 8080, "us:er", "pass")


async def test_mark_failed_and_working_move_counters(registry, global_client):
    await add_default(registry)

    failed = await registry.mark_failed(ENV, KEY, "timeout")
    assert failed.fail_count == 1
    assert failed.active is False
    assert failed.failure_reason == "timeout"
    assert failed.disabled_at

    working = await registry.mark_working(ENV, KEY)
    assert working.success_count == 1
    assert working.fail_count == 1
    assert working.active is True
    assert working.failure_reason is None


async def test_counters_never_decrease(registry):
    await add_default(registry)
    seen = []
    for _ in range(3):
        seen.append((await registry.mark_failed(ENV, KEY)).fail_count)
    assert seen == [1, 2, 3]


async def test_reports_for_unknown_proxy_never_create_it(registry, global_client):
    with pytest.raises(NotFoundError):
        await registry.mark_failed(ENV, KEY)
    with pytest.raises(NotFoundError):
        await registry.mark_working(ENV, KEY)
    assert await global_client.exists(KEY) == 0


async def test_report_racing_a_removal_never_recreates_proxy(registry, global_client, monkeypatch):
    await add_default(registry)
    original_pipeline = global_client.pipeline
    removed = []

    def racing_pipeline(*args, **kwargs):
        pipe = original_pipeline(*args, **kwargs)
        original_exists = pipe.exists

        async def exists_then_removed(*names):
            found = await original_exists(*names)
            if found and not removed:
                removed.append(names)
                await global_client.delete(*names)
            return found

        pipe.exists = exists_then_removed
        return pipe

    monkeypatch.setattr(global_client, "pipeline", racing_pipeline)

    with pytest.raises(NotFoundError):
        await registry.mark_failed(ENV, KEY)
    assert removed == [(KEY,)]
    assert await global_client.exists(KEY) == 0


async def test_add_failure_after_reservation_allows_retry(registry, global_client, monkeypatch):
    original_hset = global_client.hset

    async def store_down(*args, **kwargs):
        raise RedisConnectionError("store down")

    monkeypatch.setattr(global_client, "hset", store_down)
    with pytest.raises(UpstreamError):
        await add_default(registry)
    assert await global_client.exists(KEY) == 0

    monkeypatch.setattr(global_client, "hset", original_hset)
    assert (await add_default(registry)).key == KEY


async def test_malformed_key_is_rejected(registry):
    with pytest.raises(InvalidArgumentError):
        await registry.mark_failed(ENV, "ips:1.2.3.4")
    with pytest.raises(InvalidArgumentError):
        await registry.get(ENV, "proxy:1.2.3.4:80:u:p")


async def test_manual_status_change(registry):
    await add_default(registry)

    disabled = await registry.set_status(ENV, KEY, False)
    assert disabled.active is False
    assert disabled.failure_reason == "manual deactive"

    enabled = await registry.set_status(ENV, KEY, True)
    assert enabled.active is True
    assert enabled.failure_reason is None
    assert enabled.disabled_at is None


async def test_bulk_status_reports_each_update(registry):
    await add_default(registry)
    result = await registry.bulk_set_status(ENV, [
        {"proxy_id": KEY, "is_working": False},
        {"proxy_id": "ips:9.9.9.9:80:u:p", "is_working": True},
    ])
    assert result["successful_updates"] == 1
    assert result["failed_updates"] == 1
    assert (await registry.get(ENV, KEY)).active is False


async def test_update_only_touches_allowed_fields(registry, global_client):
    await add_default(registry)
    record = await registry.update(ENV, KEY, {"country": "BR", "failCount": "999", "type": "https"})
    assert record.country == "BR"
    assert record.type == "https"
    assert record.fail_count == 0

    with pytest.raises(InvalidArgumentError):
        await registry.update(ENV, KEY, {"namespace": "archive"})
    with pytest.raises(NotFoundError):
        await registry.update(ENV, "ips:9.9.9.9:80:u:p", {"country": "BR"})


async def test_remove_cleans_ip_stats(registry, global_client):
    await add_default(registry)
    await global_client.hset("ip_stats:1.2.3.4", mapping={"totalAds": "10"})
    await global_client.sadd("ip_stats:1.2.3.4:brands", "1001")

    await registry.remove(ENV, KEY)

    assert await global_client.exists(KEY, "ip_stats:1.2.3.4", "ip_stats:1.2.3.4:brands") == 0
    with pytest.raises(NotFoundError):
        await registry.remove(ENV, KEY)
    stats = await registry.management_stats(ENV)
    assert stats["total_added"] == 1
    assert stats["total_removed"] == 1
    assert stats["net_change"] == 0


async def test_lock_is_exclusive(registry, global_client):
    await add_default(registry)

    result = await registry.lock(ENV, KEY, "watchlist-1")
    assert result["lock_key"] == LOCK_KEY

    with pytest.raises(ConflictError) as excinfo:
        await registry.lock(ENV, KEY, "non-watchlist-2")
    assert excinfo.value.data["current_worker"] == "watchlist-1"
    assert await global_client.ttl(LOCK_KEY) == -1


async def test_unlock(registry):
    await add_default(registry)
    await registry.lock(ENV, KEY, "watchlist-1")

    with pytest.raises(ConflictError):
        await registry.unlock(ENV, LOCK_KEY, "watchlist-2")

    result = await registry.unlock(ENV, LOCK_KEY)
    assert result["previous_worker"] == "watchlist-1"

    with pytest.raises(NotFoundError):
        await registry.unlock(ENV, LOCK_KEY)


async def test_lock_ttl_when_configured(store, global_client):
    registry = ProxyRegistry(store, lock_ttl=60)
    await registry.add(ENV, "1.2.3.4", 8080, "user", "pass")
    await registry.lock(ENV, KEY, "watchlist-1")
    assert 0 < await global_client.ttl(LOCK_KEY) <= 60


async def test_list_with_filters_and_locks(registry):
    await add_default(registry)
    await add_default(registry, ip="5.6.7.8", country="BR")
    await registry.mark_failed(ENV, "ips:5.6.7.8:8080:user:pass")
    await registry.lock(ENV, KEY, "watchlist-3")

    everything = await registry.list(ENV)
    assert everything["pagination"]["total_items"] == 2
    locked = next(p for p in everything["proxies"] if p["id"] == KEY)
    assert locked["is_locked"] is True
    assert locked["lock_worker"] == "WL-3"

    working = await registry.list(ENV, filter="working")
    assert [p["id"] for p in working["proxies"]] == [KEY]

    failed = await registry.list(ENV, filter="failed")
    assert [p["ip"] for p in failed["proxies"]] == ["5.6.7.8"]

    searched = await registry.list(ENV, search="br")
    assert [p["ip"] for p in searched["proxies"]] == ["5.6.7.8"]

    with pytest.raises(InvalidArgumentError):
        await registry.list(ENV, filter="broken")


async def test_available_and_stats(registry, global_client):
    await add_default(registry)
    await add_default(registry, ip="5.6.7.8")
    await global_client.hset(KEY, "successCount", "7")

    available = await registry.available(ENV)
    assert [p["ip"] for p in available["proxies"]] == ["5.6.7.8", "1.2.3.4"]

    stats = await registry.stats(ENV)
    assert stats["total_proxies"] == 2
    assert stats["active_proxies"] == 2
    assert stats["total_usage"] == 7


async def test_clear_all(registry, global_client):
    await add_default(registry)
    await add_default(registry, ip="5.6.7.8")
    assert await registry.clear_all(ENV) == {"cleared_count": 2}
    assert await registry.all_records(ENV) == []
