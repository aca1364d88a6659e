"""
Storyforge - Configuration Schemas

Defines typed configuration models using Pydantic for validation and type safety.
All configuration must be defined here and validated at startup.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Section configs live next to the code they tune; re-exported here so the
# root config has a single source of truth for each.
from ..context_optimization.config import CompressionConfig as CompressionConfig
from ..credit_accounting.config import BillingConfig as BillingConfig


class Environment(str, Enum):
    """Runtime environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CacheConfig(BaseModel):
    """Generation cache configuration."""

    enabled: bool = Field(default=True, description="Serve repeated foundation requests from cache")
    ttl_seconds: int = Field(default=86400, ge=0, description="Default TTL in seconds (0 = no expiry)")
    max_size: int = Field(default=1000, ge=1, description="Max cache entries")
    namespace: str = Field(default="storyforge", description="Cache key namespace/prefix")

    @field_validator("namespace")
    @classmethod
    def validate_namespace(cls, v: str) -> str:
        """Namespace is used as a key prefix and may not contain the separator."""
        if not v or ":" in v:
            raise ValueError("namespace must be non-empty and must not contain ':'")
        return v


class StoryforgeConfig(BaseModel):
    """Root configuration for Storyforge."""

    environment: Environment = Field(default=Environment.DEVELOPMENT, description="Runtime environment")
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    json_logs: bool = Field(default=False, description="Emit log records as JSON lines")

    compression: CompressionConfig = Field(default_factory=CompressionConfig)
    billing: BillingConfig = Field(default_factory=BillingConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    @field_validator("billing")
    @classmethod
    def validate_billing(cls, v: BillingConfig, info: Any) -> BillingConfig:
        """Production must bill at a rate that keeps 1 credit = $0.001."""
        environment = info.data.get("environment")
        if environment == Environment.PRODUCTION and v.credits_per_usd != 1000:
            raise ValueError("credits_per_usd must be 1000 in production")
        return v

    model_config = ConfigDict(use_enum_values=True, validate_assignment=True)
