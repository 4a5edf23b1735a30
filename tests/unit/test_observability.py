"""
Unit tests for structured logging.
"""

from __future__ import annotations

import json
import logging
import sys

import pytest

from tenantscope.observability import (
    AssessmentLogger,
    HumanReadableFormatter,
    StructuredFormatter,
    configure_from_environment,
    configure_logging,
    get_logger,
)
from tenantscope.observability.logging import ROOT_LOGGER_NAME


def _record(message: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="tenantscope.engine",
        level=logging.WARNING,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def reset_logging():
    """Restore the package logger after each test."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    level = logger.level
    yield
    logger.handlers.clear()
    logger.setLevel(level)


# ============================================================================
# Formatter Tests
# ============================================================================


class TestStructuredFormatter:
    """Tests for StructuredFormatter."""

    def test_json_output(self) -> None:
        """Test core fields and extra fields are emitted."""
        formatter = StructuredFormatter(extra_fields={"service": "tenantscope"})

        data = json.loads(formatter.format(_record(run_id="run-1")))

        assert data["level"] == "warning"
        assert data["logger"] == "tenantscope.engine"
        assert data["message"] == "hello"
        assert data["run_id"] == "run-1"
        assert data["service"] == "tenantscope"
        assert "timestamp" in data

    def test_timestamp_from_record(self) -> None:
        """Test the timestamp is when the record was created."""
        record = _record()
        record.created = 0.0

        data = json.loads(StructuredFormatter().format(record))

        assert data["timestamp"] == "1970-01-01T00:00:00+00:00"

    def test_optional_fields(self) -> None:
        """Test disabling the timestamp and adding the location."""
        formatter = StructuredFormatter(include_timestamp=False, include_location=True)

        data = json.loads(formatter.format(_record()))

        assert "timestamp" not in data
        assert data["location"]["line"] == 10

    def test_exception(self) -> None:
        """Test exceptions are formatted into the payload."""
        try:
            raise ValueError("bad input")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()

        data = json.loads(StructuredFormatter().format(record))

        assert "ValueError: bad input" in data["exception"]


class TestHumanReadableFormatter:
    """Tests for HumanReadableFormatter."""

    def test_plain_line(self) -> None:
        """Test level, logger and message without colors."""
        formatter = HumanReadableFormatter(use_colors=False, include_timestamp=False)

        assert formatter.format(_record()) == " WARNING tenantscope.engine: hello"

    def test_run_context_suffix(self) -> None:
        """Test run id and domain are appended when present."""
        formatter = HumanReadableFormatter(use_colors=False, include_timestamp=False)

        line = formatter.format(_record(run_id="run-1", domain="audit_logging"))

        assert line == " WARNING tenantscope.engine: hello [run=run-1 domain=audit_logging]"


# ============================================================================
# Logger Tests
# ============================================================================


class TestAssessmentLogger:
    """Tests for AssessmentLogger and get_logger."""

    def test_get_logger_prefix(self) -> None:
        """Test names are placed under the package logger."""
        assert get_logger("engine").logger.name == "tenantscope.engine"
        assert get_logger("tenantscope.cli").logger.name == "tenantscope.cli"

    def test_context_fields(self, caplog) -> None:
        """Test context is attached to every record."""
        logger = AssessmentLogger("tenantscope.test")
        logger.set_context(tenant_id="t1")

        with caplog.at_level(logging.INFO, logger="tenantscope.test"):
            logger.run_started("run-1", "t1", ["audit_logging"])

        record = caplog.records[0]
        assert record.tenant_id == "t1"
        assert record.event_type == "run.started"
        assert record.domains == ["audit_logging"]

    def test_clear_context(self) -> None:
        """Test clearing context."""
        logger = AssessmentLogger("tenantscope.test")
        logger.set_context(run_id="run-1")
        logger.clear_context()

        assert logger.context == {}

    def test_module_failed_is_warning(self, caplog) -> None:
        """Test module failures are logged as warnings."""
        logger = AssessmentLogger("tenantscope.test")

        with caplog.at_level(logging.DEBUG, logger="tenantscope.test"):
            logger.module_failed("run-1", "audit_logging", "timeout")

        assert caplog.records[0].levelno == logging.WARNING
        assert caplog.records[0].error == "timeout"


# ============================================================================
# Configuration Tests
# ============================================================================


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_json_handler(self) -> None:
        """Test a single structured handler is installed."""
        configure_logging(level="DEBUG", format="json", output="stdout")
        configure_logging(level="DEBUG", format="json", output="stdout")

        logger = logging.getLogger(ROOT_LOGGER_NAME)
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, StructuredFormatter)

    def test_from_environment(self, monkeypatch) -> None:
        """Test level and format come from the environment."""
        monkeypatch.setenv("TENANTSCOPE_LOG_LEVEL", "warning")
        monkeypatch.setenv("TENANTSCOPE_LOG_FORMAT", "human")

        configure_from_environment()

        logger = logging.getLogger(ROOT_LOGGER_NAME)
        assert logger.level == logging.WARNING
        assert isinstance(logger.handlers[0].formatter, HumanReadableFormatter)

    def test_settings_used_without_environment(self, monkeypatch) -> None:
        """Test the given level and format apply when no variable is set."""
        monkeypatch.delenv("TENANTSCOPE_LOG_LEVEL", raising=False)
        monkeypatch.delenv("TENANTSCOPE_LOG_FORMAT", raising=False)

        configure_from_environment(level="ERROR", format="json")

        logger = logging.getLogger(ROOT_LOGGER_NAME)
        assert logger.level == logging.ERROR
        assert isinstance(logger.handlers[0].formatter, StructuredFormatter)

    def test_environment_overrides_settings(self, monkeypatch) -> None:
        """Test environment variables win over the given settings."""
        monkeypatch.setenv("TENANTSCOPE_LOG_LEVEL", "debug")
        monkeypatch.delenv("TENANTSCOPE_LOG_FORMAT", raising=False)

        configure_from_environment(level="ERROR", format="json")

        logger = logging.getLogger(ROOT_LOGGER_NAME)
        assert logger.level == logging.DEBUG
        assert isinstance(logger.handlers[0].formatter, StructuredFormatter)
