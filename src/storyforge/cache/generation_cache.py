"""
Storyforge - Generation Cache

Short-circuits generation when an identical (genre, premise, title) request
was generated before. A hit is served at zero cost and skips credit accounting.
"""

import hashlib
import json
import logging
from datetime import UTC, datetime

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..config.schemas import CacheConfig
from ..credit_accounting.models import TokenUsage
from ..errors import CacheError
from .interface import CacheInterface
from .memory import MemoryCacheBackend

logger = logging.getLogger(__name__)


class CachedGeneration(BaseModel):
    """Generated content stored for reuse."""

    content: str
    model: str
    usage: TokenUsage = Field(..., description="Usage of the original (charged) generation")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


def _normalize(value: str) -> str:
    return " ".join(value.split()).lower()


class GenerationCache:
    """Cache of generated foundations keyed by story identity."""

    def __init__(self, backend: CacheInterface, ttl: int | None = None):
        """
        Args:
            backend: Cache backend holding the entries
            ttl: TTL for stored generations (None = backend default)
        """
        self.backend = backend
        self.ttl = ttl

    @staticmethod
    def make_key(genre: str, premise: str, title: str) -> str:
        """SHA-256 of the normalized (genre, premise, title) tuple."""
        payload = json.dumps([_normalize(genre), _normalize(premise), _normalize(title)])
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    async def lookup(self, genre: str, premise: str, title: str) -> CachedGeneration | None:
        """Cached generation for the request, or None on a miss."""
        key = self.make_key(genre, premise, title)
        value = await self.backend.get(key)
        if value is None:
            return None

        try:
            return CachedGeneration.model_validate(value)
        except PydanticValidationError as e:
            # Unreadable entries are dropped and treated as a miss
            logger.warning(
                f"Discarding malformed cache entry {key}",
                extra={"cache_key": key, "error": str(e)},
            )
            await self.backend.delete(key)
            return None

    async def store(self, genre: str, premise: str, title: str, generation: CachedGeneration) -> None:
        """
        Store a generation.

        Raises:
            CacheError: If the backend refuses the entry
        """
        key = self.make_key(genre, premise, title)
        stored = await self.backend.set(key, generation.model_dump(mode="json"), self.ttl)
        if not stored:
            raise CacheError("Failed to store generation in cache", details={"cache_key": key})
        logger.debug("Stored generation in cache", extra={"cache_key": key})

    async def invalidate(self, genre: str, premise: str, title: str) -> bool:
        return await self.backend.delete(self.make_key(genre, premise, title))


def create_generation_cache(config: CacheConfig | None = None) -> GenerationCache | None:
    """
    Build a memory-backed generation cache from configuration.

    Args:
        config: Cache configuration (global config if not provided)

    Returns:
        The cache, or None when caching is disabled
    """
    if config is None:
        from ..config import get_config

        config = get_config().cache
    if not config.enabled:
        logger.info("Generation cache disabled by configuration")
        return None

    backend = MemoryCacheBackend(
        max_size=config.max_size,
        default_ttl=config.ttl_seconds,
        namespace=config.namespace,
    )
    return GenerationCache(backend, ttl=config.ttl_seconds)
