"""
Fluent Bit output plugin core for Google Cloud Pub/Sub.

Decodes msgpack flush buffers into records, turns each record into a Pub/Sub
message (JSON body plus string attributes) and publishes the batch, returning
one of three dispositions to the host: accepted, retry, or fatal.

Usage:
    from pubsub_output import OutputPlugin, load_config

    plugin = OutputPlugin.from_config(load_config(Path("plugin.yaml")))
    disposition = await plugin.flush(buffer, "app.logs")
"""

from pubsub_output.config import OutputPluginConfig, PublishSettings, load_config
from pubsub_output.coordinator import PublishCoordinator
from pubsub_output.decoder import RecordDecoder
from pubsub_output.message import build_message
from pubsub_output.plugin import OutputPlugin
from pubsub_output.registry import PluginHost, PluginRegistry
from pubsub_output.types import (
    FLB_ERROR,
    FLB_OK,
    FLB_RETRY,
    Disposition,
    EventTime,
    OutboundMessage,
    PublishHandle,
    Record,
)

__version__ = "0.1.0"
__all__ = [
    "OutputPlugin",
    "OutputPluginConfig",
    "PublishSettings",
    "load_config",
    "PublishCoordinator",
    "RecordDecoder",
    "build_message",
    "PluginHost",
    "PluginRegistry",
    "Disposition",
    "EventTime",
    "OutboundMessage",
    "PublishHandle",
    "Record",
    "FLB_OK",
    "FLB_RETRY",
    "FLB_ERROR",
]
