"""
Structured logging module.

Provides JSON and console logging with context propagation and redaction of
sensitive record fields.
"""

from core.logging.context import (
    clear_log_context,
    get_log_context,
    set_log_context,
)
from core.logging.context_managers import LogContext
from core.logging.formatters import ConsoleFormatter, JSONFormatter
from core.logging.setup import (
    generate_flush_id,
    get_logger,
    setup_logging,
)
from core.logging.utilities import (
    REDACTED,
    is_sensitive_name,
    log_exception,
    log_with_context,
    redact_fields,
    summarize_record,
)

__all__ = [
    # Setup
    "setup_logging",
    "get_logger",
    "generate_flush_id",
    # Formatters
    "JSONFormatter",
    "ConsoleFormatter",
    # Context
    "set_log_context",
    "get_log_context",
    "clear_log_context",
    "LogContext",
    # Utilities
    "log_with_context",
    "log_exception",
    "REDACTED",
    "is_sensitive_name",
    "redact_fields",
    "summarize_record",
]
