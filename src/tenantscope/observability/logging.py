"""
Structured logging configuration for tenantscope.

Pipeline events carry run context (run id, tenant, domain) as record
fields. The JSON formatter emits them as top-level keys; the human
formatter appends the run and domain to the line.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

ROOT_LOGGER_NAME = "tenantscope"

LOG_LEVEL_ENV = "TENANTSCOPE_LOG_LEVEL"
LOG_FORMAT_ENV = "TENANTSCOPE_LOG_FORMAT"

# Attributes every LogRecord has; anything else arrived through ``extra=``
_STANDARD_RECORD_FIELDS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime"}


def _record_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _STANDARD_RECORD_FIELDS
    }


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, for log aggregation."""

    def __init__(
        self,
        include_timestamp: bool = True,
        include_location: bool = False,
        extra_fields: dict[str, Any] | None = None,
    ):
        """
        Args:
            include_timestamp: Include the UTC timestamp
            include_location: Include file, line and function
            extra_fields: Fields added to every record
        """
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_location = include_location
        self.extra_fields = extra_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {}
        if self.include_timestamp:
            log_data["timestamp"] = datetime.fromtimestamp(
                record.created, timezone.utc
            ).isoformat()
        log_data["level"] = record.levelname.lower()
        log_data["logger"] = record.name
        log_data["message"] = record.getMessage()

        if self.include_location:
            log_data["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data.update(_record_fields(record))
        log_data.update(self.extra_fields)
        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Single-line logs for the CLI.

    Records carrying a run id or domain get a ``[run=... domain=...]``
    suffix. Level names are colored only when stderr is a terminal.
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True, include_timestamp: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        parts = []
        if self.include_timestamp:
            timestamp = datetime.fromtimestamp(record.created, timezone.utc)
            parts.append(f"[{timestamp:%Y-%m-%d %H:%M:%S}]")

        level = record.levelname
        if self.use_colors and level in self.COLORS:
            level = f"{self.COLORS[level]}{level}{self.RESET}"
        parts.append(f"{level:>8}")
        parts.append(f"{record.name}:")
        parts.append(record.getMessage())

        context = [
            f"{label}={getattr(record, field)}"
            for label, field in (("run", "run_id"), ("domain", "domain"))
            if getattr(record, field, None)
        ]
        if context:
            parts.append(f"[{' '.join(context)}]")

        output = " ".join(parts)
        if record.exc_info:
            output += "\n" + self.formatException(record.exc_info)
        return output


class AssessmentLogger:
    """
    Wrapper around Python logging for pipeline events.

    Carries context fields (tenant, run) into every record and provides
    event helpers for run and module lifecycle.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self._context: dict[str, Any] = {}

    def set_context(self, **kwargs: Any) -> None:
        """Set persistent context fields for all logs."""
        self._context.update(kwargs)

    def clear_context(self) -> None:
        """Clear context fields."""
        self._context.clear()

    @property
    def context(self) -> dict[str, Any]:
        return dict(self._context)

    def _log(
        self,
        level: int,
        message: str,
        exc_info: bool = False,
        **kwargs: Any,
    ) -> None:
        extra = {**self._context, **kwargs}
        self.logger.log(level, message, exc_info=exc_info, extra=extra)

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message."""
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message."""
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message."""
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        """Log error message."""
        self._log(logging.ERROR, message, exc_info=exc_info, **kwargs)

    def run_started(self, run_id: str, tenant_id: str, domains: list[str]) -> None:
        """Log assessment or inventory run start."""
        self.info(
            f"Run {run_id} started for tenant {tenant_id}",
            event_type="run.started",
            run_id=run_id,
            tenant_id=tenant_id,
            domains=domains,
        )

    def run_completed(
        self,
        run_id: str,
        status: str,
        overall_score: int | None,
        duration_seconds: float,
    ) -> None:
        """Log run completion."""
        self.info(
            f"Run {run_id} finished with status {status}",
            event_type="run.completed",
            run_id=run_id,
            status=status,
            overall_score=overall_score,
            duration_seconds=round(duration_seconds, 2),
        )

    def run_failed(self, run_id: str, error: str) -> None:
        """Log run failure."""
        self.error(
            f"Run {run_id} failed: {error}",
            exc_info=True,
            event_type="run.failed",
            run_id=run_id,
            error=error,
        )

    def module_started(self, run_id: str, domain: str) -> None:
        """Log module start."""
        self.debug(
            f"Module {domain} started",
            event_type="module.started",
            run_id=run_id,
            domain=domain,
        )

    def module_completed(
        self,
        run_id: str,
        domain: str,
        score: int | None,
        duration_seconds: float,
    ) -> None:
        """Log module completion."""
        self.info(
            f"Module {domain} completed",
            event_type="module.completed",
            run_id=run_id,
            domain=domain,
            score=score,
            duration_seconds=round(duration_seconds, 2),
        )

    def module_failed(self, run_id: str, domain: str, error: str) -> None:
        """Log a module that produced no usable data."""
        self.warning(
            f"Module {domain} failed: {error}",
            event_type="module.failed",
            run_id=run_id,
            domain=domain,
            error=error,
        )


def configure_logging(
    level: str = "INFO",
    format: str = "human",
    output: str = "stderr",
) -> None:
    """
    Install a single handler on the tenantscope logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Output format (human, json)
        output: Output destination (stderr, stdout)
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout if output == "stdout" else sys.stderr)
    if format == "json":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(HumanReadableFormatter())
    root_logger.addHandler(handler)


def get_logger(name: str) -> AssessmentLogger:
    """
    Get a tenantscope logger.

    Args:
        name: Logger name; prefixed with ``tenantscope.`` unless it already is

    Returns:
        AssessmentLogger instance
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return AssessmentLogger(name)


def configure_from_environment(level: str = "INFO", format: str = "human") -> None:
    """
    Configure logging with environment overrides.

    TENANTSCOPE_LOG_LEVEL and TENANTSCOPE_LOG_FORMAT take precedence over
    the given level and format, which usually come from the configuration
    file's logging section.
    """
    configure_logging(
        level=os.getenv(LOG_LEVEL_ENV, level),
        format=os.getenv(LOG_FORMAT_ENV, format),
    )
