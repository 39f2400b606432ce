# Overview: Pytest coverage for the read cache: TTL, LRU, tags and error swallowing.

import pytest

from retail_ledger.services.cache_service import CacheService, CacheTag, read_tag, scoped_tags


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return CacheService(max_entries=3, default_ttl_seconds=60, clock=clock)


def test_get_set_and_stats(cache):
    assert cache.get("k") is None
    cache.set("k", {"v": 1})
    assert cache.get("k") == {"v": 1}

    stats = cache.stats.to_dict()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["sets"] == 1
    assert stats["hit_rate"] == 0.5


def test_entries_expire(cache, clock):
    cache.set("short", "value", ttl=5)
    clock.now += 4
    assert cache.get("short") == "value"
    clock.now += 2
    assert cache.get("short") is None
    assert cache.size == 0


def test_least_recently_used_is_evicted(cache):
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)
    cache.get("a")
    cache.set("d", 4)

    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("d") == 4


def test_invalidate_by_tag_only_drops_tagged_keys(cache):
    cache.set("sales:list:1", [1], tags=["sales:outlet:1"])
    cache.set("sales:list:2", [2], tags=["sales:outlet:2"])

    assert cache.invalidate_by_tag("sales:outlet:1") == 1
    assert cache.get("sales:list:1") is None
    assert cache.get("sales:list:2") == [2]


def test_invalidate_by_pattern(cache):
    cache.set("products:detail:1", 1)
    cache.set("products:list:x", 2)
    cache.set("sales:detail:1", 3)

    assert cache.invalidate_by_pattern("products:*") == 2
    assert cache.get("sales:detail:1") == 3


def test_get_or_set_calls_loader_once(cache):
    calls = []

    def loader():
        calls.append(1)
        return {"rows": []}

    assert cache.get_or_set("k", loader) == {"rows": []}
    assert cache.get_or_set("k", loader) == {"rows": []}
    assert len(calls) == 1


def test_get_or_set_propagates_loader_errors(cache):
    def loader():
        raise RuntimeError("database down")

    with pytest.raises(RuntimeError):
        cache.get_or_set("k", loader)


def test_disabled_cache_always_misses():
    cache = CacheService(enabled=False)
    assert cache.set("k", 1) is False
    assert cache.get("k") is None
    assert cache.get_or_set("k", lambda: 2) == 2


def test_internal_errors_are_swallowed(cache, clock):
    def broken_clock():
        raise OSError("clock failure")

    cache.set("k", 1)
    cache._clock = broken_clock

    assert cache.get("k") is None
    assert cache.set("j", 2) is False
    assert cache.stats.errors == 2


def test_scoped_tags_cover_every_read_scope():
    tags = scoped_tags(CacheTag.SALES, business_id=7, outlet_id=3)
    assert tags == ["sales:all", "sales:business:7", "sales:outlet:3"]

    # Each read scope is cleared by a write in a matching outlet/business
    assert read_tag(CacheTag.SALES) in tags
    assert read_tag(CacheTag.SALES, business_id=7) in tags
    assert read_tag(CacheTag.SALES, outlet_id=3) in tags


def test_unknown_tag_rejected():
    with pytest.raises(ValueError):
        scoped_tags("reports")
