"""
Observability for tenantscope.

Structured logging with JSON and human-readable formatters and a
context-carrying logger for run and module events.
"""

from tenantscope.observability.logging import (
    AssessmentLogger,
    HumanReadableFormatter,
    StructuredFormatter,
    configure_from_environment,
    configure_logging,
    get_logger,
)

__all__ = [
    "AssessmentLogger",
    "HumanReadableFormatter",
    "StructuredFormatter",
    "configure_from_environment",
    "configure_logging",
    "get_logger",
]
