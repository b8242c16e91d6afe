# contextual_ai/context/cache.py
"""
Context Cache - time-bounded LRU cache for aggregated and formatted context.

Aggregation and formatting are cheap individually, but the chat UI asks for
the same page context many times a second while the user types. This cache
keeps recent results keyed by a caller-supplied string and drops them once
they are older than the TTL.

Entries never outlive their TTL: ``get`` treats an expired entry as a miss
and removes it, and ``put`` purges every expired entry before inserting.
A TTL of ``None`` disables expiry (entries live until invalidated).
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

V = TypeVar("V")


class CacheStats(BaseModel):
    """Counters reported by a ContextCache."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0
    invalidations: int = 0
    size: int = 0
    hit_rate: float = Field(default=0.0, ge=0.0, le=1.0)


class _Entry(Generic[V]):
    __slots__ = ("value", "stored_at")

    def __init__(self, value: V, stored_at: float):
        self.value = value
        self.stored_at = stored_at


class ContextCache(Generic[V]):
    """TTL + LRU cache with hit/miss statistics."""

    def __init__(
        self,
        ttl: float | None = 30.0,
        max_entries: int = 64,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._cache: OrderedDict[str, _Entry[V]] = OrderedDict()
        self._stats = {
            "hits": 0,
            "misses": 0,
            "evictions": 0,
            "expirations": 0,
            "invalidations": 0,
        }

    def _is_expired(self, entry: _Entry[V], now: float) -> bool:
        return self.ttl is not None and now - entry.stored_at >= self.ttl

    def get(self, key: str) -> V | None:
        """Return the cached value, or None if absent or expired."""
        entry = self._cache.get(key)
        if entry is None:
            self._stats["misses"] += 1
            return None

        if self._is_expired(entry, self._clock()):
            del self._cache[key]
            self._stats["expirations"] += 1
            self._stats["misses"] += 1
            return None

        self._cache.move_to_end(key)
        self._stats["hits"] += 1
        return entry.value

    def put(self, key: str, value: V) -> None:
        """Store a value, purging expired entries and evicting LRU if full."""
        self.purge_expired()

        if key in self._cache:
            del self._cache[key]
        while len(self._cache) >= self.max_entries:
            self._cache.popitem(last=False)
            self._stats["evictions"] += 1

        self._cache[key] = _Entry(value, self._clock())

    def purge_expired(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        if self.ttl is None:
            return 0
        now = self._clock()
        expired = [key for key, entry in self._cache.items() if self._is_expired(entry, now)]
        for key in expired:
            del self._cache[key]
        self._stats["expirations"] += len(expired)
        return len(expired)

    def invalidate(self, key: str) -> bool:
        if self._cache.pop(key, None) is None:
            return False
        self._stats["invalidations"] += 1
        return True

    def invalidate_all(self) -> None:
        """Clear entire cache."""
        count = len(self._cache)
        self._cache.clear()
        self._stats["invalidations"] += count
        if count:
            logger.debug(f"Context cache cleared ({count} entries)")

    def __contains__(self, key: str) -> bool:
        entry = self._cache.get(key)
        return entry is not None and not self._is_expired(entry, self._clock())

    @property
    def size(self) -> int:
        return len(self._cache)

    @property
    def hit_rate(self) -> float:
        total = self._stats["hits"] + self._stats["misses"]
        if total == 0:
            return 0.0
        return self._stats["hits"] / total

    def get_stats(self) -> CacheStats:
        return CacheStats(**self._stats, size=self.size, hit_rate=self.hit_rate)
