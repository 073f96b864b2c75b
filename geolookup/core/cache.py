"""
In-memory TTL cache for mapping provider lookups.

Each CacheCategory owns its own time-to-live and capacity; callers pick a
category and the policy follows from it, so a call site cannot pass its own
TTL. Entries are readable only while ``now - stored_at < ttl``. Expired
entries are purged lazily on access and, optionally, by a passive sweep task.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from geolookup.config.settings import CacheSettings

T = TypeVar("T")


class CacheCategory(str, Enum):
    """Kinds of upstream lookups, each with its own TTL and key strategy."""
    AUTOCOMPLETE = "autocomplete"
    PLACE_DETAILS = "place_details"
    GEOCODING = "geocoding"
    DIRECTIONS = "directions"
    NEARBY_SEARCH = "nearby_search"
    DISTANCE_MATRIX = "distance_matrix"


@dataclass(frozen=True)
class CategoryPolicy:
    ttl_seconds: float
    max_entries: int

    def __post_init__(self):
        if self.ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if self.max_entries < 1:
            raise ValueError("max_entries must be at least 1")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    stored_at: float
    ttl: float
    category: CacheCategory

    def is_live(self, now: float) -> bool:
        return now - self.stored_at < self.ttl


def policies_from_settings(cache_settings: CacheSettings) -> Dict[CacheCategory, CategoryPolicy]:
    """Build one policy per category from ``CACHE_*`` settings."""
    return {
        category: CategoryPolicy(
            ttl_seconds=getattr(cache_settings, f"{category.value}_ttl_seconds"),
            max_entries=getattr(cache_settings, f"{category.value}_max_entries"),
        )
        for category in CacheCategory
    }


class TTLCache:
    """
    Expiring key/value store partitioned by category.

    Capacity is bounded per category; when a category is full the
    least-recently-set entry is evicted (O(1) via OrderedDict). Never
    performs I/O.
    """

    def __init__(
        self,
        policies: Optional[Dict[CacheCategory, CategoryPolicy]] = None,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval_seconds: float = 0,
    ):
        if policies is None:
            policies = policies_from_settings(CacheSettings())
        missing = [c.value for c in CacheCategory if c not in policies]
        if missing:
            raise ValueError(f"Missing cache policy for: {', '.join(missing)}")

        self.policies = dict(policies)
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._stores: Dict[CacheCategory, "OrderedDict[str, CacheEntry]"] = {
            c: OrderedDict() for c in CacheCategory
        }
        self._hits: Dict[CacheCategory, int] = {c: 0 for c in CacheCategory}
        self._misses: Dict[CacheCategory, int] = {c: 0 for c in CacheCategory}
        self._evictions: Dict[CacheCategory, int] = {c: 0 for c in CacheCategory}
        self._sweep_task: Optional[asyncio.Task] = None
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_settings(cls, cache_settings: CacheSettings,
                      clock: Callable[[], float] = time.monotonic) -> "TTLCache":
        return cls(
            policies=policies_from_settings(cache_settings),
            clock=clock,
            sweep_interval_seconds=cache_settings.sweep_interval_seconds,
        )

    def get(self, key: str, category: CacheCategory) -> Optional[Any]:
        """
        Get a live value.

        Returns None both when the key is absent and when it is present but
        expired; an expired entry is removed on the way out.
        """
        store = self._stores[category]
        entry = store.get(key)
        if entry is None:
            self._misses[category] += 1
            self.logger.debug(f"Cache miss for key: {key}")
            return None

        if not entry.is_live(self._clock()):
            del store[key]
            self._misses[category] += 1
            self.logger.debug(f"Cache expired for key: {key}")
            return None

        self._hits[category] += 1
        self.logger.debug(f"Cache hit for key: {key}")
        return entry.value

    def set(self, key: str, value: Any, category: CacheCategory) -> None:
        """Store ``value`` unconditionally, stamping it with the current time."""
        if value is None:
            raise ValueError("None cannot be cached; it is indistinguishable from a miss")

        policy = self.policies[category]
        store = self._stores[category]
        store.pop(key, None)
        store[key] = CacheEntry(
            value=value,
            stored_at=self._clock(),
            ttl=policy.ttl_seconds,
            category=category,
        )

        while len(store) > policy.max_entries:
            evicted_key, _ = store.popitem(last=False)
            self._evictions[category] += 1
            self.logger.debug(f"Cache evicted key: {evicted_key}")

    def contains(self, key: str, category: CacheCategory) -> bool:
        """Liveness check that does not touch hit/miss counters."""
        entry = self._stores[category].get(key)
        return entry is not None and entry.is_live(self._clock())

    def invalidate(self, key: str, category: CacheCategory) -> bool:
        return self._stores[category].pop(key, None) is not None

    def invalidate_prefix(self, prefix: str) -> int:
        """Remove every entry, in any category, whose key starts with ``prefix``."""
        removed = 0
        for store in self._stores.values():
            for key in [k for k in store if k.startswith(prefix)]:
                del store[key]
                removed += 1
        if removed:
            self.logger.info(f"Invalidated {removed} cache entries with prefix '{prefix}'")
        return removed

    def clear_category(self, category: CacheCategory) -> None:
        self._stores[category].clear()

    def clear(self) -> None:
        """Drop every entry. Counters are kept for diagnostics."""
        for store in self._stores.values():
            store.clear()
        self.logger.info("Cache cleared")

    def purge_expired(self) -> int:
        """Physically remove expired entries; returns how many were removed."""
        now = self._clock()
        removed = 0
        for store in self._stores.values():
            for key in [k for k, e in store.items() if not e.is_live(now)]:
                del store[key]
                removed += 1
        if removed:
            self.logger.debug(f"Purged {removed} expired cache entries")
        return removed

    def size(self, category: Optional[CacheCategory] = None) -> int:
        if category is not None:
            return len(self._stores[category])
        return sum(len(s) for s in self._stores.values())

    def stats(self) -> Dict[str, Any]:
        hits = sum(self._hits.values())
        misses = sum(self._misses.values())
        return {
            "hits": hits,
            "misses": misses,
            "size": self.size(),
            "hit_rate": _hit_rate(hits, misses),
        }

    def stats_by_category(self) -> Dict[str, Dict[str, Any]]:
        return {
            c.value: {
                "hits": self._hits[c],
                "misses": self._misses[c],
                "size": len(self._stores[c]),
                "evictions": self._evictions[c],
                "hit_rate": _hit_rate(self._hits[c], self._misses[c]),
                "ttl_seconds": self.policies[c].ttl_seconds,
                "max_entries": self.policies[c].max_entries,
            }
            for c in CacheCategory
        }

    def start(self) -> None:
        """Start the passive sweep, if an interval is configured."""
        if self.sweep_interval_seconds <= 0 or self._sweep_task is not None:
            return
        self._sweep_task = asyncio.create_task(self._periodic_sweep())

    async def shutdown(self) -> None:
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

    async def _periodic_sweep(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                self.purge_expired()
            except Exception as e:
                self.logger.error(f"Error during cache sweep: {str(e)}", exc_info=True)


def _hit_rate(hits: int, misses: int) -> float:
    total = hits + misses
    return round(hits / total, 4) if total else 0.0
