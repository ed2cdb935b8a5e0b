"""Logging setup for analysis runs."""

from sonar_analyze.observability.logging import (
    LoggingConfig,
    StructuredLoggingHandle,
    correlation_scope,
    default_log_redactor,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)

__all__ = [
    "LoggingConfig",
    "StructuredLoggingHandle",
    "correlation_scope",
    "default_log_redactor",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
