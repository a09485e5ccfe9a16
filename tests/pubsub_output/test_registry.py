"""Tests for the host-facing plugin lifecycle."""

from unittest.mock import MagicMock, patch

import pytest

from core.errors.exceptions import ConfigurationError
from pubsub_output.registry import PluginHost, PluginRegistry
from pubsub_output.types import FLB_ERROR, FLB_OK, FLB_RETRY, Disposition

VALID_KEYS = {"gcp_project_id": "p", "topic_id": "t"}


def _getter(values):
    return lambda name: values.get(name, "")


def _fake_plugin(disposition=Disposition.ACCEPTED):
    plugin = MagicMock()

    async def flush(data, tag):
        return disposition

    plugin.flush = flush
    return plugin


class TestPluginRegistry:

    def test_add_and_get(self):
        registry = PluginRegistry()
        first, second = object(), object()

        h1, h2 = registry.add(first), registry.add(second)

        assert h1 != h2
        assert registry.get(h1) is first
        assert registry.get(h2) is second
        assert len(registry) == 2

    def test_unknown_handle(self):
        with pytest.raises(LookupError, match="unknown plugin handle"):
            PluginRegistry().get(99)

    def test_remove(self):
        registry = PluginRegistry()
        handle = registry.add(object())
        registry.remove(handle)
        assert registry.handles() == []


class TestPluginHost:

    def test_register(self):
        with patch("pubsub_output.registry.setup_logging") as setup:
            assert PluginHost().register() == FLB_OK
        setup.assert_called_once_with()

    def test_init_builds_plugin_from_keys(self):
        factory = MagicMock(return_value=_fake_plugin())
        host = PluginHost(plugin_factory=factory)

        code, handle = host.init(_getter({**VALID_KEYS, "attribute_fields": "a,b"}))

        assert code == FLB_OK
        config = factory.call_args.args[0]
        assert config.topic_path == "projects/p/topics/t"
        assert config.attribute_fields == ["a", "b"]
        assert host.registry.get(handle) is factory.return_value

    def test_instances_get_distinct_ids(self):
        factory = MagicMock(side_effect=lambda config: _fake_plugin())
        host = PluginHost(plugin_factory=factory)

        host.init(_getter(VALID_KEYS))
        host.init(_getter(VALID_KEYS))

        ids = [c.args[0].plugin_id for c in factory.call_args_list]
        assert ids == [0, 1]

    def test_init_rejects_missing_project(self):
        factory = MagicMock()
        host = PluginHost(plugin_factory=factory)

        assert host.init(_getter({"topic_id": "t"})) == (FLB_ERROR, None)
        factory.assert_not_called()
        assert len(host.registry) == 0

    def test_init_reports_factory_failure(self):
        factory = MagicMock(side_effect=ConfigurationError("topic t does not exist in project p"))
        host = PluginHost(plugin_factory=factory)

        assert host.init(_getter(VALID_KEYS)) == (FLB_ERROR, None)

    def test_init_reports_unexpected_factory_error(self, caplog):
        factory = MagicMock(side_effect=RuntimeError("default credentials not found"))
        host = PluginHost(plugin_factory=factory)

        assert host.init(_getter(VALID_KEYS)) == (FLB_ERROR, None)
        assert len(host.registry) == 0
        record = caplog.records[-1]
        assert record.getMessage() == "Unexpected error initializing plugin"
        assert record.error_message == "default credentials not found"

    @pytest.mark.parametrize(
        "disposition,code",
        [
            (Disposition.ACCEPTED, FLB_OK),
            (Disposition.RETRY, FLB_RETRY),
            (Disposition.FATAL, FLB_ERROR),
        ],
    )
    def test_flush_maps_disposition(self, disposition, code):
        host = PluginHost(plugin_factory=lambda config: _fake_plugin(disposition))
        _, handle = host.init(_getter(VALID_KEYS))

        assert host.flush(handle, b"", "app.logs") == code

    def test_flush_unknown_handle(self):
        assert PluginHost().flush(12345, b"", "app.logs") == FLB_ERROR

    def test_flush_unexpected_error(self):
        plugin = MagicMock()

        async def flush(data, tag):
            raise RuntimeError("boom")

        plugin.flush = flush
        host = PluginHost(plugin_factory=lambda config: plugin)
        _, handle = host.init(_getter(VALID_KEYS))

        assert host.flush(handle, b"", "app.logs") == FLB_ERROR

    def test_exit_closes_every_instance(self):
        plugins = [_fake_plugin(), _fake_plugin()]
        plugins[0].close.side_effect = RuntimeError("already closed")
        host = PluginHost(plugin_factory=MagicMock(side_effect=plugins))
        host.init(_getter(VALID_KEYS))
        host.init(_getter(VALID_KEYS))

        assert host.exit() == FLB_OK
        for plugin in plugins:
            plugin.close.assert_called_once_with()
        assert len(host.registry) == 0
