"""In-memory classification cache."""

import asyncio
import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from llm_router.cache.base import CacheEntry

logger = logging.getLogger(__name__)


class ClassificationCache:
    """
    In-memory cache with a TTL and a hard entry limit.

    Eviction is by insertion order: when full, the oldest-inserted entry
    is dropped. Reads do not refresh an entry's position, so this is not
    an LRU. Expired entries are removed lazily when read.

    Limitations:
    - Not shared across processes
    - Lost on restart
    """

    def __init__(
        self,
        ttl_seconds: float = 60.0,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the cache.

        Args:
            ttl_seconds: Lifetime of every entry
            max_entries: Maximum number of entries held at once
            clock: Monotonic time source, injectable for tests
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")

        self._store: OrderedDict[str, CacheEntry] = OrderedDict()
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def get(self, key: str) -> Any | None:
        """
        Get a value from the cache.

        Returns:
            Cached value, or None if not found/expired
        """
        entry = self._store.get(key)
        if entry is None:
            self._misses += 1
            return None

        if entry.is_expired(self._clock()):
            # Only drop the entry we looked at; a concurrent writer may
            # already have replaced it.
            if self._store.get(key) is entry:
                self._store.pop(key, None)
            self._misses += 1
            logger.debug(f"Cache entry {key} expired")
            return None

        self._hits += 1
        return entry.value

    async def set(self, key: str, value: Any) -> None:
        """Insert a value, evicting the oldest-inserted entry when full."""
        async with self._lock:
            if key in self._store:
                # Overwrite counts as a fresh insertion
                del self._store[key]
            elif len(self._store) >= self._max_entries:
                oldest_key, _ = self._store.popitem(last=False)
                self._evictions += 1
                logger.debug(f"Evicted oldest cache entry {oldest_key}")

            self._store[key] = CacheEntry(
                key=key,
                value=value,
                inserted_at=self._clock(),
                ttl_seconds=self._ttl,
            )

    async def delete(self, key: str) -> bool:
        """Delete a value from the cache."""
        async with self._lock:
            return self._store.pop(key, None) is not None

    def __contains__(self, key: str) -> bool:
        entry = self._store.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def clear(self) -> int:
        """Remove every entry and return how many were dropped."""
        count = len(self._store)
        self._store.clear()
        return count

    async def cleanup_expired(self) -> int:
        """Remove all expired entries."""
        async with self._lock:
            now = self._clock()
            expired_keys = [k for k, v in self._store.items() if v.is_expired(now)]
            for key in expired_keys:
                del self._store[key]

        if expired_keys:
            logger.debug(f"Cleaned up {len(expired_keys)} expired cache entries")
        return len(expired_keys)

    def keys(self) -> list[str]:
        """Keys in insertion order, oldest first."""
        return list(self._store.keys())

    def size(self) -> int:
        """Get current number of entries, including not-yet-evicted expired ones."""
        return len(self._store)

    def stats(self) -> dict[str, Any]:
        """Return cache statistics."""
        return {
            "entries": len(self._store),
            "max_entries": self._max_entries,
            "ttl_seconds": self._ttl,
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
        }
