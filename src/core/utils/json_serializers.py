"""Shared JSON serialization helpers for log output."""

from datetime import date, datetime
from enum import Enum
from typing import Any


def json_serializer(obj: Any) -> Any:
    """
    Fallback serializer for ``json.dumps(default=...)`` on log lines.

    - datetime/date -> ISO 8601 string
    - bytes -> text, invalid UTF-8 replaced
    - Enum -> value
    - Everything else -> str()

    Only for diagnostics: message bodies are serialized strictly and never
    go through this fallback.
    """
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (bytes, bytearray)):
        return bytes(obj).decode("utf-8", errors="replace")
    if isinstance(obj, Enum):
        return obj.value
    return str(obj)


__all__ = ["json_serializer"]
