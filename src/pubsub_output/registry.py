"""Host-facing adapter: plugin lifecycle and instance registry.

The host drives the plugin through four calls:

    register()                  -> FLB_OK
    init(key_getter)            -> (FLB_OK, handle) | (FLB_ERROR, None)
    flush(handle, data, tag)    -> FLB_OK | FLB_RETRY | FLB_ERROR
    exit()                      -> FLB_OK

Instances live in an explicit registry keyed by an opaque handle. The host
guarantees one ``init`` per instance and only passes handles it received.
"""

import asyncio
import itertools
import logging
from typing import Callable

from core.errors.exceptions import PipelineError
from core.logging.setup import setup_logging
from core.logging.utilities import log_exception
from pubsub_output.config import OutputPluginConfig, build_plugin_config
from pubsub_output.config_store import ConfigStore, KeyGetter
from pubsub_output.plugin import OutputPlugin
from pubsub_output.types import FLB_ERROR, FLB_OK

logger = logging.getLogger(__name__)

__all__ = [
    "PLUGIN_DESCRIPTION",
    "PLUGIN_NAME",
    "PluginHost",
    "PluginRegistry",
]

PLUGIN_NAME = "pubsub"
PLUGIN_DESCRIPTION = "GCP PubSub Fluent Bit Plugin!"

PluginFactory = Callable[[OutputPluginConfig], OutputPlugin]


class PluginRegistry:
    """Plugin instances keyed by opaque handle."""

    def __init__(self) -> None:
        self._instances: dict[int, OutputPlugin] = {}
        self._handles = itertools.count()

    def add(self, plugin: OutputPlugin) -> int:
        handle = next(self._handles)
        self._instances[handle] = plugin
        return handle

    def get(self, handle: int) -> OutputPlugin:
        try:
            return self._instances[handle]
        except KeyError:
            raise LookupError(f"unknown plugin handle: {handle}") from None

    def remove(self, handle: int) -> OutputPlugin:
        return self._instances.pop(handle)

    def handles(self) -> list[int]:
        return list(self._instances)

    def __len__(self) -> int:
        return len(self._instances)


class PluginHost:
    """Lifecycle entry points the host calls, bound to one registry."""

    def __init__(
        self,
        plugin_factory: PluginFactory = OutputPlugin.from_config,
        registry: PluginRegistry | None = None,
    ):
        self.plugin_factory = plugin_factory
        self.registry = registry if registry is not None else PluginRegistry()
        self._next_plugin_id = itertools.count()

    def register(self) -> int:
        setup_logging()
        logger.info("Output plugin registered", extra={"plugin_name": PLUGIN_NAME})
        return FLB_OK

    def init(self, key_getter: KeyGetter) -> tuple[int, int | None]:
        """Create one plugin instance from the host's configuration keys."""
        logger.info("Initializing output plugin")
        store = ConfigStore(key_getter)
        config = build_plugin_config(next(self._next_plugin_id), store)
        try:
            config.validate()
            plugin = self.plugin_factory(config)
        except PipelineError as e:
            log_exception(logger, e, "Unable to initialize plugin", include_traceback=False)
            return FLB_ERROR, None
        except Exception as e:
            log_exception(logger, e, "Unexpected error initializing plugin")
            return FLB_ERROR, None

        handle = self.registry.add(plugin)
        logger.info(
            "Plugin initialized",
            extra={"project_id": config.project_id, "topic_id": config.topic_id},
        )
        return FLB_OK, handle

    def flush(self, handle: int, data: bytes, tag: str) -> int:
        """Run one flush cycle and return the host code for its disposition."""
        try:
            plugin = self.registry.get(handle)
        except LookupError as e:
            log_exception(logger, e, "Flush for unknown plugin instance", include_traceback=False)
            return FLB_ERROR

        try:
            disposition = asyncio.run(plugin.flush(data, tag))
        except Exception as e:
            log_exception(logger, e, "Unexpected error during flush")
            return FLB_ERROR
        return disposition.host_code

    def exit(self) -> int:
        logger.info("Exiting")
        for handle in self.registry.handles():
            plugin = self.registry.remove(handle)
            try:
                plugin.close()
            except Exception as e:
                log_exception(logger, e, "Error stopping plugin instance", include_traceback=False)
        return FLB_OK
