"""
Unit Tests for Structured Logging

Tests the JSON formatter, trace context and span logging.
"""

import json
import logging

import pytest

from storyforge.config import StoryforgeConfig, reload_config
from storyforge.observability import (
    JSONFormatter,
    configure_logging,
    generate_trace_id,
    get_trace_id,
    set_trace_id,
    setup_logging,
    trace_span,
)


@pytest.fixture(autouse=True)
def clear_trace_context() -> None:
    set_trace_id(None)


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord("storyforge.test", logging.INFO, __file__, 10, "Charged %s credits", (11,), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_basic_fields(self) -> None:
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "storyforge.test"
        assert data["message"] == "Charged 11 credits"
        assert data["timestamp"].endswith("Z")
        assert "trace_id" not in data

    def test_extra_fields_included(self) -> None:
        data = json.loads(JSONFormatter().format(_record(user_id="u1", credits=11)))

        assert data["user_id"] == "u1"
        assert data["credits"] == 11
        assert "msg" not in data
        assert "args" not in data

    def test_trace_id_included(self) -> None:
        trace_id = generate_trace_id()

        data = json.loads(JSONFormatter().format(_record()))

        assert data["trace_id"] == trace_id
        assert get_trace_id() == trace_id


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_single_handler(self) -> None:
        configure_logging("DEBUG")
        logger = configure_logging("WARNING", json_format=False)
        try:
            assert logger.name == "storyforge"
            assert len(logger.handlers) == 1
            assert logger.level == logging.WARNING
            assert not isinstance(logger.handlers[0].formatter, JSONFormatter)
        finally:
            logger.handlers.clear()
            logger.setLevel(logging.NOTSET)

    def test_setup_from_config(self) -> None:
        logger = setup_logging(StoryforgeConfig(log_level="ERROR", json_logs=True))
        try:
            assert logger.level == logging.ERROR
            assert isinstance(logger.handlers[0].formatter, JSONFormatter)
        finally:
            logger.handlers.clear()
            logger.setLevel(logging.NOTSET)

    def test_setup_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "warning")
        monkeypatch.setenv("JSON_LOGS", "false")
        reload_config()

        logger = setup_logging()
        try:
            assert logger.level == logging.WARNING
            assert not isinstance(logger.handlers[0].formatter, JSONFormatter)
        finally:
            logger.handlers.clear()
            logger.setLevel(logging.NOTSET)


class TestTraceSpan:
    """Tests for trace_span."""

    def test_span_logs_duration(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = logging.getLogger("storyforge.test.span")
        with caplog.at_level(logging.DEBUG, logger="storyforge.test.span"):
            with trace_span("unit.work", logger):
                pass

        completed = [r for r in caplog.records if r.getMessage() == "Span completed: unit.work"]
        assert len(completed) == 1
        assert completed[0].duration_ms >= 0

    def test_span_reraises(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = logging.getLogger("storyforge.test.span")
        with caplog.at_level(logging.DEBUG, logger="storyforge.test.span"):
            with pytest.raises(RuntimeError):
                with trace_span("unit.fail", logger):
                    raise RuntimeError("boom")

        assert any(r.getMessage() == "Span error: unit.fail" for r in caplog.records)
