"""Context variables for structured logging."""

from contextvars import ContextVar
from typing import Dict, Optional

_plugin_id: ContextVar[str] = ContextVar("plugin_id", default="")
_tag: ContextVar[str] = ContextVar("tag", default="")
_flush_id: ContextVar[str] = ContextVar("flush_id", default="")


def set_log_context(
    plugin_id: Optional[str] = None,
    tag: Optional[str] = None,
    flush_id: Optional[str] = None,
) -> None:
    if plugin_id is not None:
        _plugin_id.set(plugin_id)
    if tag is not None:
        _tag.set(tag)
    if flush_id is not None:
        _flush_id.set(flush_id)


def get_log_context() -> Dict[str, str]:
    return {
        "plugin_id": _plugin_id.get(),
        "tag": _tag.get(),
        "flush_id": _flush_id.get(),
    }


def clear_log_context() -> None:
    _plugin_id.set("")
    _tag.set("")
    _flush_id.set("")
