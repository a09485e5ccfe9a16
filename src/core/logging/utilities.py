"""Logging utility functions."""

import json
import logging
import re
from typing import Any, Mapping

from core.utils.json_serializers import json_serializer

# Reserved LogRecord attribute names that cannot be used in extra dict
_RESERVED_LOG_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "asctime",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "message",
        "exc_info",
        "exc_text",
        "stack_info",
    }
)

# Field names whose values must never reach the logs in cleartext
SENSITIVE_NAME_PATTERN = re.compile(r"pass|secret|key|hash", re.IGNORECASE)
REDACTED = "********"

# Upper bound on serialized record contents attached to a log line
MAX_RECORD_LOG_CHARS = 1024


def log_with_context(
    logger: logging.Logger,
    level: int,
    msg: str,
    **kwargs: Any,
) -> None:
    """
    Log with structured context fields.

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, etc.)
        msg: Log message
        **kwargs: Additional context fields (log_ts, error_code, etc.)
                  Note: exc_info=True is supported and handled specially.

    Example:
        log_with_context(
            logger, logging.INFO, "Flush complete",
            records_decoded=10,
            duration_ms=elapsed,
        )
    """
    # Handle exc_info specially - it's a direct parameter to log(), not extra
    exc_info = kwargs.pop("exc_info", None)

    # Filter out reserved keys to prevent LogRecord conflicts
    extra = {k: v for k, v in kwargs.items() if k not in _RESERVED_LOG_KEYS}

    logger.log(level, msg, exc_info=exc_info, extra=extra, stacklevel=2)


def log_exception(
    logger: logging.Logger,
    exc: BaseException,
    msg: str,
    level: int = logging.ERROR,
    include_traceback: bool = True,
    **kwargs: Any,
) -> None:
    """
    Log exception with context and optional traceback.

    Automatically extracts error_category from PipelineError subclasses and
    truncates long error messages.

    Args:
        logger: Logger instance
        exc: Exception to log
        msg: Context message
        level: Log level (default: ERROR)
        include_traceback: Include full traceback (default: True)
        **kwargs: Additional context fields
    """
    error_category = kwargs.get("error_category")
    if error_category is None and hasattr(exc, "category"):
        cat = exc.category
        error_category = cat.value if hasattr(cat, "value") else str(cat)
        kwargs["error_category"] = error_category

    error_msg = str(exc)
    if len(error_msg) > 500:
        error_msg = error_msg[:500] + "..."
    kwargs["error_message"] = error_msg

    if include_traceback:
        logger.log(level, msg, exc_info=exc, extra=kwargs, stacklevel=2)
    else:
        logger.log(level, msg, extra=kwargs, stacklevel=2)


def is_sensitive_name(name: Any) -> bool:
    """True if a field or config key name looks like it holds a credential."""
    return isinstance(name, str) and SENSITIVE_NAME_PATTERN.search(name) is not None


def redact_fields(value: Any) -> Any:
    """
    Return a copy of a record tree with sensitive-looking values masked.

    Mapping values whose key matches SENSITIVE_NAME_PATTERN are replaced with
    REDACTED at any nesting depth. Non-mapping values are returned as is.
    """
    if isinstance(value, Mapping):
        return {
            k: REDACTED if is_sensitive_name(k) else redact_fields(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact_fields(v) for v in value]
    return value


def summarize_record(fields: Any, limit: int = MAX_RECORD_LOG_CHARS) -> str:
    """Redact and serialize record contents for a log line, truncated to limit."""
    redacted = redact_fields(fields)
    try:
        text = json.dumps(redacted, default=json_serializer, ensure_ascii=False)
    except (TypeError, ValueError):
        # non-string keys
        text = repr(redacted)
    if len(text) > limit:
        return text[:limit] + "..."
    return text
