"""Time-to-live cache for short-lived credential reads.

Provides a small synchronous key-value cache with TTL expiry and oldest
entry eviction. The environment-backed store uses it to avoid repeated
environment lookups; entries are invalidated explicitly on writes.

Example:
    >>> cache = TTLCache(ttl_seconds=300, max_size=128)
    >>> cache.set("zai", "zai-abc1234567")
    >>> cache.get("zai")
    'zai-abc1234567'
    >>> cache.invalidate("zai")
    True

Thread Safety:
    Not synchronized. keyshift runs its store operations to completion on
    the caller's thread, so no locking is needed.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any, Generic, TypeVar

import structlog

log = structlog.get_logger(__name__)

T = TypeVar("T")


class TTLCache(Generic[T]):
    """Cache with time-to-live expiry.

    Attributes:
        _cache: Internal storage mapping keys to (value, stored_at) tuples.
        _ttl: Time-to-live in seconds.
        _max_size: Maximum number of entries before eviction.
        _clock: Monotonic clock returning seconds; injectable for tests.
        _hits: Count of cache hits.
        _misses: Count of cache misses (keys not found or expired).
    """

    def __init__(
        self,
        ttl_seconds: float = 300,
        max_size: int = 128,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            ttl_seconds: Entries older than this are treated as missing.
                Default is 300 (5 minutes).
            max_size: When exceeded, the oldest entry is evicted.
            clock: Source of the current time in seconds.
        """
        self._cache: dict[str, tuple[T, float]] = {}
        self._ttl = ttl_seconds
        self._max_size = max_size
        self._clock = clock
        self._hits = 0
        self._misses = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, key: str) -> T | None:
        """Return the cached value if present and not expired.

        Expired entries are removed on access.
        """
        if key in self._cache:
            value, stored_at = self._cache[key]
            if self._clock() - stored_at < self._ttl:
                self._hits += 1
                log.debug("cache_hit", key=key)
                return value

            del self._cache[key]
            log.debug("cache_expired", key=key)

        self._misses += 1
        return None

    def set(self, key: str, value: T) -> None:
        """Store a value, resetting its TTL."""
        if key not in self._cache and len(self._cache) >= self._max_size:
            self._evict_oldest()
        self._cache[key] = (value, self._clock())

    def invalidate(self, key: str) -> bool:
        """Drop one entry.

        Returns:
            True if the key was cached, False otherwise
        """
        if key in self._cache:
            del self._cache[key]
            log.debug("cache_invalidated", key=key)
            return True
        return False

    def clear(self) -> None:
        """Remove all entries and reset statistics."""
        count = len(self._cache)
        self._cache.clear()
        self._hits = 0
        self._misses = 0
        log.debug("cache_cleared", entries_cleared=count)

    def _evict_oldest(self) -> None:
        if not self._cache:
            return
        oldest_key = min(self._cache.items(), key=lambda item: item[1][1])[0]
        del self._cache[oldest_key]
        log.debug("cache_evicted", key=oldest_key)

    def get_stats(self) -> dict[str, Any]:
        """Cache size, hit/miss counts and hit rate."""
        total_requests = self._hits + self._misses
        hit_rate = self._hits / total_requests if total_requests > 0 else 0.0

        return {
            "size": len(self._cache),
            "max_size": self._max_size,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": hit_rate,
            "ttl_seconds": self._ttl,
        }
