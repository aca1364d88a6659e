"""
Storyforge - Observability Module

Structured JSON logging with per-call trace correlation.

Usage:
    from storyforge.observability import configure_logging, generate_trace_id

    configure_logging("INFO")
    generate_trace_id()
"""

from .logging import (
    JSONFormatter,
    configure_logging,
    generate_trace_id,
    get_trace_id,
    set_trace_id,
    setup_logging,
    trace_span,
)

__all__ = [
    "JSONFormatter",
    "configure_logging",
    "generate_trace_id",
    "get_trace_id",
    "set_trace_id",
    "setup_logging",
    "trace_span",
]
