"""Log formatters for JSON and console output."""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from core.logging.context import get_log_context
from core.utils.json_serializers import json_serializer

# Context variables copied onto every line when set
CONTEXT_FIELDS = ("plugin_id", "tag", "flush_id")


def _coerce(kind: type, value: Any) -> Any:
    try:
        return kind(value)
    except (ValueError, TypeError):
        return None


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line, carrying the flush context and the known extras.

    Timestamps are the record's creation time in UTC with millisecond
    precision. Unknown ``extra`` keys are dropped so a stray field cannot
    leak record contents into the logs.
    """

    # Fields to extract from LogRecord extras
    EXTRA_FIELDS = [
        # Errors
        "error_category",
        "error_message",
        "error_code",
        "error",
        "error_type",
        # Record diagnostics
        "log_ts",
        "record",
        # Flush metrics
        "bytes",
        "records_decoded",
        "decode_failures",
        "build_failures",
        "messages_submitted",
        "handles_pending",
        "disposition",
        "duration_ms",
        # Transport
        "project_id",
        "topic_id",
        "topic_path",
        "credentials",
        "message_id",
        # Config
        "configkey",
    ]

    # Counters and timings must serialize as numbers; unparseable values become null
    NUMERIC_FIELDS = {
        "duration_ms": float,
        "bytes": int,
        "records_decoded": int,
        "decode_failures": int,
        "build_failures": int,
        "messages_submitted": int,
        "handles_pending": int,
    }

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, UTC)
        entry: dict[str, Any] = {
            "ts": created.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = get_log_context()
        entry.update({name: context[name] for name in CONTEXT_FIELDS if context[name]})

        if record.levelno == logging.DEBUG or record.levelno >= logging.ERROR:
            entry["file"] = f"{record.filename}:{record.lineno}"

        for name in self.EXTRA_FIELDS:
            value = getattr(record, name, None)
            if value is None:
                continue
            kind = self.NUMERIC_FIELDS.get(name)
            entry[name] = _coerce(kind, value) if kind else value

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "stacktrace": self.formatException(record.exc_info),
            }

        return json.dumps(entry, default=json_serializer, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Single line human-readable output for interactive runs.

    Layout::

        2024-01-01 12:00:00 - WARNING - [plugin:0] - [app.logs] - [1a2b3c4d] [code:UNAVAILABLE] message: error_message=...

    The ``error_message``, ``log_ts`` and ``record`` extras follow the
    message when present.

    Level names are colored only when the target stream is a TTY.
    """

    # ANSI color codes
    COLORS = {
        logging.DEBUG: "\033[36m",  # Cyan
        logging.INFO: "\033[32m",  # Green
        logging.WARNING: "\033[33m",  # Yellow
        logging.ERROR: "\033[31m",  # Red
        logging.CRITICAL: "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    # Error details appended after the message; values arrive already redacted and truncated
    DETAIL_FIELDS = ("error_message", "log_ts", "record")

    def __init__(self, *args, stream=None, **kwargs):
        super().__init__(*args, **kwargs)
        stream = stream if stream is not None else sys.stderr
        self._use_colors = stream.isatty()

    def _level(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno) if self._use_colors else None
        if color:
            return f"{color}{record.levelname}{self.RESET}"
        return record.levelname

    def format(self, record: logging.LogRecord) -> str:
        context = get_log_context()

        parts = [
            datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S"),
            self._level(record),
        ]
        if context["plugin_id"]:
            parts.append(f"[plugin:{context['plugin_id']}]")
        if context["tag"]:
            parts.append(f"[{context['tag']}]")

        tags = []
        if context["flush_id"]:
            tags.append(f"[{context['flush_id'][:8]}]")
        error_code = getattr(record, "error_code", None)
        if error_code:
            tags.append(f"[code:{error_code}]")
        tags.append(record.getMessage())
        parts.append(" ".join(tags))

        details = []
        for name in self.DETAIL_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                details.append(f"{name}={value}")
        if details:
            parts[-1] = f"{parts[-1]}: {' '.join(details)}"

        message = " - ".join(parts)
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message
