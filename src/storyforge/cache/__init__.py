"""
Storyforge - Cache Module

Generation cache collaborator: repeated (genre, premise, title) requests are
served from cache at zero cost.
"""

from .generation_cache import CachedGeneration, GenerationCache, create_generation_cache
from .interface import CacheInterface
from .memory import MemoryCacheBackend

__all__ = [
    "CacheInterface",
    "CachedGeneration",
    "GenerationCache",
    "MemoryCacheBackend",
    "create_generation_cache",
]
