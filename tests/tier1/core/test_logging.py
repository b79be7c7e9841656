"""Tests for structured logging."""

import json
import logging
import sys

import pytest

from art_planning.core.config import clear_config_cache
from art_planning.core.logging import (
    JSONFormatter,
    ContextLogger,
    configure_logging,
    get_logger,
)


def record(msg="Test", level=logging.INFO, **extra):
    rec = logging.LogRecord(
        name="test",
        level=level,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(rec, key, value)
    return rec


@pytest.fixture
def log_env(monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("LOG_FORMAT", raising=False)
    clear_config_cache()
    yield monkeypatch
    clear_config_cache()


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_format_basic_message(self):
        """Formats basic log message as JSON."""
        data = json.loads(JSONFormatter().format(record("Test message")))

        assert data["message"] == "Test message"
        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert "timestamp" in data
        assert "context" not in data

    def test_plan_identifiers_grouped_under_context(self):
        data = json.loads(JSONFormatter().format(
            record(pi_id="PI-1", item_id="story-1", work_items=4, item_ids=("a", "b"), _private="x")
        ))

        assert data["context"] == {"pi_id": "PI-1", "item_id": "story-1"}
        assert data["work_items"] == 4
        assert data["item_ids"] == ["a", "b"]
        assert "pi_id" not in data
        assert "_private" not in data

    def test_non_serializable_extras_skipped(self):
        data = json.loads(JSONFormatter().format(record(graph=object())))
        assert "graph" not in data

    def test_format_without_envelope_fields(self):
        formatter = JSONFormatter(include_timestamp=False, include_level=False, include_logger=False)
        data = json.loads(formatter.format(record()))
        assert data == {"message": "Test"}

    def test_format_with_exception(self):
        try:
            raise ValueError("bad graph")
        except ValueError:
            rec = record("failed")
            rec.exc_info = sys.exc_info()

        data = json.loads(JSONFormatter().format(rec))
        assert "ValueError: bad graph" in data["exception"]


class TestContextLogger:
    """Tests for ContextLogger."""

    def test_with_context(self):
        logger = ContextLogger(logging.getLogger("test_context"))

        ctx_logger = logger.with_context(pi_id="PI-1")

        assert ctx_logger is not logger
        assert ctx_logger.extra == {"pi_id": "PI-1"}
        assert logger.extra == {}

    def test_context_chaining(self):
        logger = ContextLogger(logging.getLogger("test_chain"))

        ctx = logger.with_context(pi_id="PI-1").with_context(item_id="story-1")

        assert ctx.extra == {"pi_id": "PI-1", "item_id": "story-1"}

    def test_keyword_fields_become_extras(self, caplog):
        logger = ContextLogger(logging.getLogger("test_extra")).with_context(pi_id="PI-1")

        with caplog.at_level(logging.INFO, logger="test_extra"):
            logger.info("[PLANNER] planned", planned=3)

        rec = caplog.records[-1]
        assert rec.pi_id == "PI-1"
        assert rec.planned == 3
        assert rec.getMessage() == "[PLANNER] planned"

    def test_exception_keeps_traceback(self, caplog):
        logger = ContextLogger(logging.getLogger("test_exc"))

        with caplog.at_level(logging.ERROR, logger="test_exc"):
            try:
                raise RuntimeError("boom")
            except RuntimeError:
                logger.exception("[PLANNER] failed", item_id="x")

        rec = caplog.records[-1]
        assert rec.exc_info is not None
        assert rec.item_id == "x"


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_configure_json_format(self):
        logger = configure_logging(log_format="json", log_level="INFO", logger_name="test_json")

        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_configure_text_format(self):
        logger = configure_logging(log_format="text", log_level="DEBUG", logger_name="test_text")

        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_reconfigure_replaces_handlers(self):
        configure_logging("text", "INFO", logger_name="test_twice")
        logger = configure_logging("text", "INFO", logger_name="test_twice")
        assert len(logger.handlers) == 1

    def test_unknown_level_falls_back_to_info(self):
        logger = configure_logging("text", "chatty", logger_name="test_level")
        assert logger.level == logging.INFO

    def test_defaults_come_from_settings(self, log_env):
        log_env.setenv("LOG_FORMAT", "json")
        log_env.setenv("LOG_LEVEL", "WARNING")

        logger = configure_logging(logger_name="test_settings")

        assert logger.level == logging.WARNING
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_explicit_arguments_override_settings(self, log_env):
        log_env.setenv("LOG_FORMAT", "json")

        logger = configure_logging(log_format="text", logger_name="test_override")

        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert logger.level == logging.INFO


class TestGetLogger:
    """Tests for get_logger."""

    def test_returns_context_logger(self):
        assert isinstance(get_logger("test"), ContextLogger)

    def test_planner_logs_with_pi_context(self, caplog):
        from datetime import date

        from art_planning import ProgramIncrement, plan_art

        pi = ProgramIncrement(
            id="PI-LOG", start_date=date(2025, 1, 1), end_date=date(2025, 1, 14),
        )
        with caplog.at_level(logging.INFO, logger="art_planning"):
            plan_art(pi, [], [], [])

        planner_records = [r for r in caplog.records if "[PLANNER]" in r.getMessage()]
        assert planner_records
        assert all(r.pi_id == "PI-LOG" for r in planner_records)
