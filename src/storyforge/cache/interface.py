"""
Storyforge - Cache Interface

Abstract interface for the backends that hold previously generated content.
"""

from abc import ABC, abstractmethod
from typing import Any


class CacheInterface(ABC):
    """
    Abstract base class for cache backends.

    Backends store plain (JSON-compatible) values under string keys with an
    optional per-entry TTL.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """
        Retrieve a value from the cache.

        Args:
            key: Cache key

        Returns:
            Cached value if found and not expired, None otherwise
        """

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """
        Store a value in the cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time-to-live in seconds (None = backend default, 0 = no expiry)

        Returns:
            True if stored
        """

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key. Returns False if the key didn't exist."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """True if the key exists and is not expired."""

    @abstractmethod
    async def clear(self) -> bool:
        """Clear all entries in this backend's namespace."""

    @abstractmethod
    async def get_stats(self) -> dict[str, Any]:
        """Cache statistics (hits, misses, size, ...)."""

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources during shutdown."""
