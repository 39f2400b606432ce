# Overview: Best-effort read-through cache with tag-based invalidation.

"""
Read cache for ledger queries.

Doctrine: the cache is disposable. It is consulted only by read paths,
never to decide whether a stock mutation may proceed. Every cache failure
is logged and swallowed; callers fall back to the database.

Features:
- TTL-based expiration (per entry or configured default)
- LRU eviction when max_entries exceeded
- Tag-based invalidation from a closed tag taxonomy (CacheTag)
- Pattern invalidation (fnmatch glob over keys)
- Statistics
"""

from __future__ import annotations

import fnmatch
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Set

logger = logging.getLogger(__name__)


class CacheTag:
    """Closed invalidation taxonomy attached to every ledger write."""
    PRODUCTS = "products"
    SALES = "sales"
    INVENTORY = "inventory"
    DASHBOARD = "dashboard"

    ALL = (PRODUCTS, SALES, INVENTORY, DASHBOARD)


def scoped_tags(tag: str, *, business_id: int | None = None, outlet_id: int | None = None) -> list[str]:
    """
    Tags to invalidate after a write in one outlet/business.

    Reads tag their entries with the narrowest scope they were computed
    for (see read_tag); a write clears every scope that can contain it.
    """
    if tag not in CacheTag.ALL:
        raise ValueError(f"Unknown cache tag: {tag}")
    tags = [f"{tag}:all"]
    if business_id is not None:
        tags.append(f"{tag}:business:{business_id}")
    if outlet_id is not None:
        tags.append(f"{tag}:outlet:{outlet_id}")
    return tags


def read_tag(tag: str, *, business_id: int | None = None, outlet_id: int | None = None) -> str:
    """Tag for a cached read computed over the given scope."""
    if tag not in CacheTag.ALL:
        raise ValueError(f"Unknown cache tag: {tag}")
    if outlet_id is not None:
        return f"{tag}:outlet:{outlet_id}"
    if business_id is not None:
        return f"{tag}:business:{business_id}"
    return f"{tag}:all"


@dataclass
class CacheEntry:
    key: str
    value: Any
    expires_at: float
    tags: frozenset


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    sets: int = 0
    evictions: int = 0
    invalidations: int = 0
    errors: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "evictions": self.evictions,
            "invalidations": self.invalidations,
            "errors": self.errors,
            "hit_rate": round(self.hit_rate, 4),
        }


class CacheService:
    """
    In-process LRU + TTL cache, safe to share between request threads.

    Values must be plain data (dicts/lists of JSON types); ORM instances are
    never cached.
    """

    def __init__(
        self,
        *,
        enabled: bool = True,
        max_entries: int = 1000,
        default_ttl_seconds: int = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.enabled = enabled
        self._max_entries = max_entries
        self._default_ttl = default_ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._tags: Dict[str, Set[str]] = {}
        self._lock = threading.RLock()
        self._stats = CacheStats()

    def get(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        try:
            with self._lock:
                entry = self._entries.get(key)
                if entry is None:
                    self._stats.misses += 1
                    logger.debug("Cache miss: %s", key)
                    return None
                if self._clock() >= entry.expires_at:
                    self._evict(key)
                    self._stats.misses += 1
                    logger.debug("Cache expired: %s", key)
                    return None
                self._entries.move_to_end(key)
                self._stats.hits += 1
                logger.debug("Cache hit: %s", key)
                return entry.value
        except Exception:
            self._record_error("get", key)
            return None

    def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> bool:
        if not self.enabled:
            return False
        try:
            ttl_seconds = ttl if ttl else self._default_ttl
            with self._lock:
                if key in self._entries:
                    self._evict(key)
                elif len(self._entries) >= self._max_entries:
                    self._evict_lru()

                entry = CacheEntry(
                    key=key,
                    value=value,
                    expires_at=self._clock() + ttl_seconds,
                    tags=frozenset(tags or ()),
                )
                self._entries[key] = entry
                for tag in entry.tags:
                    self._tags.setdefault(tag, set()).add(key)
                self._stats.sets += 1
            logger.debug("Cache set: %s (TTL: %ss)", key, ttl_seconds)
            return True
        except Exception:
            self._record_error("set", key)
            return False

    def get_or_set(
        self,
        key: str,
        loader: Callable[[], Any],
        ttl: Optional[int] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> Any:
        """
        Read-through helper. Loader exceptions propagate (they are the real
        read failing); cache exceptions never do.
        """
        cached = self.get(key)
        if cached is not None:
            return cached
        value = loader()
        self.set(key, value, ttl=ttl, tags=tags)
        return value

    def invalidate_by_tag(self, tag: str) -> int:
        try:
            with self._lock:
                keys = self._tags.pop(tag, set())
                count = 0
                for key in keys:
                    if key in self._entries:
                        self._evict(key)
                        count += 1
                self._stats.invalidations += count
            if count:
                logger.info("Cache invalidated by tag '%s': %s keys", tag, count)
            return count
        except Exception:
            self._record_error("invalidate_by_tag", tag)
            return 0

    def invalidate_tags(self, tags: Iterable[str]) -> int:
        return sum(self.invalidate_by_tag(tag) for tag in tags)

    def invalidate_by_pattern(self, pattern: str) -> int:
        try:
            with self._lock:
                keys = [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]
                for key in keys:
                    self._evict(key)
                self._stats.invalidations += len(keys)
            if keys:
                logger.info("Cache invalidated by pattern '%s': %s keys", pattern, len(keys))
            return len(keys)
        except Exception:
            self._record_error("invalidate_by_pattern", pattern)
            return 0

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._tags.clear()

    @property
    def stats(self) -> CacheStats:
        return self._stats

    @property
    def size(self) -> int:
        return len(self._entries)

    def _evict(self, key: str) -> None:
        entry = self._entries.pop(key, None)
        if entry is None:
            return
        for tag in entry.tags:
            keys = self._tags.get(tag)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    del self._tags[tag]
        self._stats.evictions += 1

    def _evict_lru(self) -> None:
        if self._entries:
            oldest_key = next(iter(self._entries))
            self._evict(oldest_key)

    def _record_error(self, operation: str, key: str) -> None:
        self._stats.errors += 1
        logger.warning("Cache %s failed for %s; continuing without cache", operation, key, exc_info=True)
