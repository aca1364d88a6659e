"""
Storyforge - Structured Logging

Modules log through `logging.getLogger(__name__)` with structured `extra={...}`
fields; this module decides how those records are rendered and correlates
every record of one generation call through a trace id.
"""

import contextvars
import json
import logging
import time
from collections.abc import Generator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

if TYPE_CHECKING:
    from ..config.schemas import StoryforgeConfig

ROOT_LOGGER = "storyforge"

# Correlates all records emitted while serving one generation call
_trace_id_ctx: contextvars.ContextVar[str | None] = contextvars.ContextVar("trace_id", default=None)

# Attributes every LogRecord carries; anything else arrived through extra=
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
}


class JSONFormatter(logging.Formatter):
    """Render a record and its extra fields as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        trace_id = _trace_id_ctx.get()
        if trace_id:
            payload["trace_id"] = trace_id

        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS and not key.startswith("_") and key not in payload
        )

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def configure_logging(level: str = "INFO", json_format: bool = True) -> logging.Logger:
    """
    Attach a single stream handler to the package logger.

    Args:
        level: Log level name
        json_format: Render records with JSONFormatter instead of plain text

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    stream = logging.StreamHandler()
    if json_format:
        stream.setFormatter(JSONFormatter())
    else:
        stream.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logger.addHandler(stream)
    logger.setLevel(level.upper())

    return logger


def setup_logging(config: "StoryforgeConfig | None" = None) -> logging.Logger:
    """Configure the package logger from the log_level and json_logs settings."""
    from ..config import LogLevel, get_config

    config = config or get_config()
    return configure_logging(LogLevel(config.log_level).value, json_format=config.json_logs)


def get_trace_id() -> str | None:
    return _trace_id_ctx.get()


def set_trace_id(trace_id: str | None) -> None:
    _trace_id_ctx.set(trace_id)


def generate_trace_id() -> str:
    """Start a new trace for the current context and return its id."""
    trace_id = uuid4().hex
    _trace_id_ctx.set(trace_id)
    return trace_id


@contextmanager
def trace_span(span_name: str, logger: logging.Logger | None = None) -> Generator[None, None, None]:
    """
    Log the start, failure and duration of a span.

    Example:
        with trace_span("generation.optimize"):
            result = optimizer.optimize_story_context(context)
    """
    log = logger or logging.getLogger(ROOT_LOGGER)
    fields = {"span_name": span_name, "trace_id": _trace_id_ctx.get()}
    started = time.perf_counter()

    log.debug(f"Span started: {span_name}", extra=fields)
    try:
        yield
    except Exception as e:
        log.error(f"Span error: {span_name}", extra={**fields, "error": str(e)}, exc_info=True)
        raise
    finally:
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        log.debug(f"Span completed: {span_name}", extra={**fields, "duration_ms": elapsed_ms})
