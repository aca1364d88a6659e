"""
Storyforge - Configuration Module

Typed configuration for compression tunables, billing rates and the
generation cache, loaded from the environment.
"""

from .loader import get_config, load_config, reload_config
from .schemas import (
    BillingConfig,
    CacheConfig,
    CompressionConfig,
    Environment,
    LogLevel,
    StoryforgeConfig,
)

__all__ = [
    "BillingConfig",
    "CacheConfig",
    "CompressionConfig",
    "Environment",
    "LogLevel",
    "StoryforgeConfig",
    "get_config",
    "load_config",
    "reload_config",
]
