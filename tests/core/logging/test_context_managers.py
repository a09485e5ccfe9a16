"""Tests for the LogContext context manager."""

import pytest

from core.logging.context import get_log_context, set_log_context
from core.logging.context_managers import LogContext


class TestLogContextManager:

    def test_sets_context_inside_block(self):
        with LogContext(plugin_id="2", tag="app", flush_id="f"):
            assert get_log_context() == {"plugin_id": "2", "tag": "app", "flush_id": "f"}

    def test_restores_previous_context(self):
        set_log_context(plugin_id="1", tag="outer")
        with LogContext(tag="inner", flush_id="f"):
            assert get_log_context()["plugin_id"] == "1"
            assert get_log_context()["tag"] == "inner"
        assert get_log_context() == {"plugin_id": "1", "tag": "outer", "flush_id": ""}

    def test_restores_context_on_exception(self):
        with pytest.raises(RuntimeError):
            with LogContext(tag="boom"):
                raise RuntimeError("fail")
        assert get_log_context()["tag"] == ""

    def test_returns_self(self):
        with LogContext(tag="x") as ctx:
            assert isinstance(ctx, LogContext)
