"""
Storyforge - Configuration Loader

Builds StoryforgeConfig from environment variables, optionally seeded from a
.env file, and keeps one validated instance for the process.
"""

import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError

from ..context_optimization.config import load_config as load_compression_config
from ..credit_accounting.config import load_config as load_billing_config
from ..errors import ConfigurationError
from .schemas import StoryforgeConfig

logger = logging.getLogger(__name__)

_config_instance: StoryforgeConfig | None = None


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


def _load_env_file(env_file: str | None) -> None:
    env_path = Path(env_file) if env_file else Path.cwd() / ".env"
    if not env_path.exists():
        logger.debug(f"No .env file at {env_path}, reading process environment only")
        return

    logger.info(f"Loading environment from {env_path}")
    try:
        load_dotenv(env_path, override=True)
    except OSError as e:
        logger.error(
            f"Could not read {env_path}: {e}",
            extra={"path": str(env_path), "error": str(e)},
            exc_info=True,
        )
        raise ConfigurationError(
            f"Could not read environment file {env_path}",
            details={"path": str(env_path), "error": str(e)},
        ) from e


def _read_sections() -> dict[str, Any]:
    """Raw configuration sections; numeric parsing errors surface as ValueError."""
    return {
        "environment": os.getenv("ENVIRONMENT", "development"),
        "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
        "json_logs": _flag("JSON_LOGS", "false"),
        "compression": load_compression_config(),
        "billing": load_billing_config(),
        "cache": {
            "enabled": _flag("CACHE_ENABLED", "true"),
            "ttl_seconds": int(os.getenv("CACHE_TTL_SECONDS", "86400")),
            "max_size": int(os.getenv("CACHE_MAX_SIZE", "1000")),
            "namespace": os.getenv("CACHE_NAMESPACE", "storyforge"),
        },
    }


def load_config(env_file: str | None = None, reload: bool = False) -> StoryforgeConfig:
    """
    Load and validate configuration.

    Args:
        env_file: Path to a .env file (default: .env in the working directory)
        reload: Rebuild even if a configuration is already loaded

    Returns:
        The process-wide StoryforgeConfig

    Raises:
        ConfigurationError: If a value is missing, malformed or out of range
    """
    global _config_instance

    if _config_instance is not None and not reload:
        return _config_instance

    _load_env_file(env_file)

    try:
        config = StoryforgeConfig(**_read_sections())
    except ValidationError as e:
        logger.error(
            f"Configuration rejected: {e.error_count()} invalid value(s)",
            extra={"validation_errors": e.errors(include_context=False)},
        )
        raise ConfigurationError(
            "Invalid configuration; check the ENVIRONMENT, COMPRESSION_*, BILLING_* and CACHE_* variables",
            details={"validation_errors": e.errors(include_context=False)},
        ) from e
    except ValueError as e:
        logger.error(f"Malformed configuration value: {e}", extra={"error": str(e)})
        raise ConfigurationError(f"Malformed configuration value: {e}", details={"error": str(e)}) from e

    _config_instance = config
    logger.info(
        f"Configuration loaded for {config.environment}",
        extra={"environment": config.environment, "billing_model": config.billing.model},
    )
    return config


def get_config() -> StoryforgeConfig:
    """Current configuration, loading it on first access."""
    return _config_instance if _config_instance is not None else load_config()


def reload_config(env_file: str | None = None) -> StoryforgeConfig:
    """Discard the loaded configuration and read it again."""
    return load_config(env_file=env_file, reload=True)
