"""
Storyforge - Memory Cache Backend

In-process cache with LRU eviction and per-entry TTL.
Suitable for single-process deployments and tests.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from typing import Any

from .interface import CacheInterface

logger = logging.getLogger(__name__)


class MemoryCacheBackend(CacheInterface):
    """
    In-memory cache backend.

    - LRU eviction once max_size entries are held
    - Per-key TTL, expired entries dropped lazily on access
    - asyncio.Lock around every mutation
    """

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl: int = 86400,
        namespace: str = "storyforge",
    ):
        """
        Initialize memory cache backend.

        Args:
            max_size: Maximum number of entries (LRU eviction when exceeded)
            default_ttl: Default TTL in seconds (0 = no expiry)
            namespace: Cache key namespace/prefix
        """
        self.max_size = max_size
        self.default_ttl = default_ttl
        self.namespace = namespace

        # namespaced key -> (value, expiry timestamp or None)
        self._entries: OrderedDict[str, tuple[Any, float | None]] = OrderedDict()
        self._stats = {"hits": 0, "misses": 0, "sets": 0, "deletes": 0, "evictions": 0}
        self._lock = asyncio.Lock()

    def _make_key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def _live_entry(self, cache_key: str) -> tuple[Any, float | None] | None:
        """Entry for cache_key, dropping it if expired. Caller holds the lock."""
        entry = self._entries.get(cache_key)
        if entry is None:
            return None
        expiry = entry[1]
        if expiry is not None and time.time() > expiry:
            del self._entries[cache_key]
            return None
        return entry

    async def get(self, key: str) -> Any | None:
        if not key:
            logger.warning("Cache lookup skipped: empty key")
            return None

        async with self._lock:
            cache_key = self._make_key(key)
            entry = self._live_entry(cache_key)
            if entry is None:
                self._stats["misses"] += 1
                return None

            self._entries.move_to_end(cache_key)
            self._stats["hits"] += 1
            return entry[0]

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        if not key:
            logger.warning("Cache write skipped: empty key")
            return False

        ttl = self.default_ttl if ttl is None else ttl
        expiry = time.time() + ttl if ttl > 0 else None

        async with self._lock:
            cache_key = self._make_key(key)
            if cache_key not in self._entries and len(self._entries) >= self.max_size:
                evicted_key, _ = self._entries.popitem(last=False)
                self._stats["evictions"] += 1
                logger.debug(f"Evicted key from memory cache: {evicted_key}")

            self._entries[cache_key] = (value, expiry)
            self._entries.move_to_end(cache_key)
            self._stats["sets"] += 1
            return True

    async def delete(self, key: str) -> bool:
        if not key:
            return False

        async with self._lock:
            cache_key = self._make_key(key)
            if cache_key not in self._entries:
                return False
            del self._entries[cache_key]
            self._stats["deletes"] += 1
            return True

    async def exists(self, key: str) -> bool:
        if not key:
            return False

        async with self._lock:
            return self._live_entry(self._make_key(key)) is not None

    async def clear(self) -> bool:
        async with self._lock:
            size = len(self._entries)
            self._entries.clear()
        logger.info(f"Cleared {size} entries from memory cache namespace '{self.namespace}'")
        return True

    async def get_stats(self) -> dict[str, Any]:
        async with self._lock:
            lookups = self._stats["hits"] + self._stats["misses"]
            hit_rate = (self._stats["hits"] / lookups * 100) if lookups > 0 else 0.0
            return {
                "backend": "memory",
                "size": len(self._entries),
                "max_size": self.max_size,
                "hit_rate": round(hit_rate, 2),
                "namespace": self.namespace,
                **self._stats,
            }

    async def close(self) -> None:
        logger.debug(f"Memory cache backend closed for namespace '{self.namespace}'")
