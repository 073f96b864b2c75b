import asyncio

import pytest

from geolookup.config.settings import CacheSettings
from geolookup.core.cache import CacheCategory, CategoryPolicy, TTLCache, policies_from_settings


def make_cache(clock, ttl=60, max_entries=100):
    policies = {c: CategoryPolicy(ttl_seconds=ttl, max_entries=max_entries) for c in CacheCategory}
    return TTLCache(policies=policies, clock=clock)


def test_set_then_get_returns_value(clock):
    cache = make_cache(clock)
    cache.set("k", {"a": 1}, CacheCategory.GEOCODING)
    assert cache.get("k", CacheCategory.GEOCODING) == {"a": 1}


def test_entry_expires_once_ttl_elapses(clock):
    cache = make_cache(clock, ttl=60)
    cache.set("k", "v", CacheCategory.GEOCODING)
    clock.advance(59.9)
    assert cache.get("k", CacheCategory.GEOCODING) == "v"
    clock.advance(0.1)
    assert cache.get("k", CacheCategory.GEOCODING) is None
    # Expired entry was purged on access.
    assert cache.size() == 0


def test_ttl_follows_category_policy(clock):
    cache = TTLCache.from_settings(CacheSettings(sweep_interval_seconds=0), clock=clock)
    cache.set("a", "short", CacheCategory.AUTOCOMPLETE)
    cache.set("d", "long", CacheCategory.PLACE_DETAILS)
    clock.advance(301)
    assert cache.get("a", CacheCategory.AUTOCOMPLETE) is None
    assert cache.get("d", CacheCategory.PLACE_DETAILS) == "long"
    clock.advance(2700)
    assert cache.get("d", CacheCategory.PLACE_DETAILS) is None


def test_set_overwrites_and_restamps(clock):
    cache = make_cache(clock, ttl=10)
    cache.set("k", 1, CacheCategory.DIRECTIONS)
    clock.advance(8)
    cache.set("k", 2, CacheCategory.DIRECTIONS)
    clock.advance(8)
    assert cache.get("k", CacheCategory.DIRECTIONS) == 2


def test_categories_are_separate_key_spaces(clock):
    cache = make_cache(clock)
    cache.set("same", "geo", CacheCategory.GEOCODING)
    assert cache.get("same", CacheCategory.NEARBY_SEARCH) is None


def test_none_is_rejected(clock):
    cache = make_cache(clock)
    with pytest.raises(ValueError):
        cache.set("k", None, CacheCategory.GEOCODING)


def test_least_recently_set_is_evicted(clock):
    cache = make_cache(clock, max_entries=2)
    cache.set("a", 1, CacheCategory.AUTOCOMPLETE)
    cache.set("b", 2, CacheCategory.AUTOCOMPLETE)
    cache.set("a", 11, CacheCategory.AUTOCOMPLETE)  # refreshes "a"
    cache.set("c", 3, CacheCategory.AUTOCOMPLETE)
    assert cache.get("b", CacheCategory.AUTOCOMPLETE) is None
    assert cache.get("a", CacheCategory.AUTOCOMPLETE) == 11
    assert cache.get("c", CacheCategory.AUTOCOMPLETE) == 3
    assert cache.stats_by_category()["autocomplete"]["evictions"] == 1


def test_eviction_is_per_category(clock):
    cache = make_cache(clock, max_entries=1)
    cache.set("a", 1, CacheCategory.AUTOCOMPLETE)
    cache.set("g", 2, CacheCategory.GEOCODING)
    assert cache.get("a", CacheCategory.AUTOCOMPLETE) == 1
    assert cache.get("g", CacheCategory.GEOCODING) == 2


def test_stats_count_hits_and_misses(clock):
    cache = make_cache(clock)
    cache.set("k", "v", CacheCategory.GEOCODING)
    cache.get("k", CacheCategory.GEOCODING)
    cache.get("missing", CacheCategory.GEOCODING)
    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["size"] == 1
    assert stats["hit_rate"] == 0.5
    assert cache.stats_by_category()["geocoding"]["hits"] == 1


def test_contains_does_not_touch_counters(clock):
    cache = make_cache(clock)
    cache.set("k", "v", CacheCategory.GEOCODING)
    assert cache.contains("k", CacheCategory.GEOCODING)
    assert not cache.contains("x", CacheCategory.GEOCODING)
    assert cache.stats()["hits"] == 0
    assert cache.stats()["misses"] == 0


def test_invalidation(clock):
    cache = make_cache(clock)
    cache.set("geocoding:1:2", "a", CacheCategory.GEOCODING)
    cache.set("geocoding:1:3", "b", CacheCategory.GEOCODING)
    cache.set("autocomplete:text:x", "c", CacheCategory.AUTOCOMPLETE)

    assert cache.invalidate("geocoding:1:2", CacheCategory.GEOCODING)
    assert not cache.invalidate("geocoding:1:2", CacheCategory.GEOCODING)
    assert cache.invalidate_prefix("geocoding:") == 1
    assert cache.size() == 1

    cache.clear_category(CacheCategory.AUTOCOMPLETE)
    assert cache.size() == 0


def test_clear_drops_everything(clock):
    cache = make_cache(clock)
    for category in CacheCategory:
        cache.set("k", 1, category)
    cache.clear()
    assert cache.size() == 0


def test_purge_expired_only_removes_stale_entries(clock):
    policies = policies_from_settings(CacheSettings())
    cache = TTLCache(policies=policies, clock=clock)
    cache.set("a", 1, CacheCategory.AUTOCOMPLETE)
    cache.set("d", 2, CacheCategory.PLACE_DETAILS)
    clock.advance(400)
    assert cache.purge_expired() == 1
    assert cache.size() == 1


def test_missing_policy_is_rejected(clock):
    with pytest.raises(ValueError):
        TTLCache(policies={CacheCategory.GEOCODING: CategoryPolicy(10, 10)}, clock=clock)


@pytest.mark.asyncio
async def test_passive_sweep_purges_in_background(clock):
    policies = {c: CategoryPolicy(ttl_seconds=1, max_entries=10) for c in CacheCategory}
    cache = TTLCache(policies=policies, clock=clock, sweep_interval_seconds=0.01)
    cache.set("k", "v", CacheCategory.GEOCODING)
    clock.advance(5)
    cache.start()
    await asyncio.sleep(0.05)
    assert cache.size() == 0
    await cache.shutdown()
