"""Context managers for structured logging."""

from typing import Dict, Optional

from core.logging.context import get_log_context, set_log_context


class LogContext:
    """
    Context manager for temporary log context.

    Usage:
        with LogContext(tag=tag, flush_id=flush_id):
            # All logs in this block will carry tag and flush_id
            do_work()
    """

    def __init__(
        self,
        plugin_id: Optional[str] = None,
        tag: Optional[str] = None,
        flush_id: Optional[str] = None,
    ):
        self.new_context = {
            "plugin_id": plugin_id,
            "tag": tag,
            "flush_id": flush_id,
        }
        self.old_context: Dict[str, str] = {}

    def __enter__(self) -> "LogContext":
        self.old_context = get_log_context()
        for key, value in self.new_context.items():
            if value is not None:
                set_log_context(**{key: value})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        # Restore old context
        set_log_context(
            plugin_id=self.old_context.get("plugin_id", ""),
            tag=self.old_context.get("tag", ""),
            flush_id=self.old_context.get("flush_id", ""),
        )
        return False
