"""Logging setup and configuration."""

import logging
import socket
import sys
import uuid
from typing import TextIO

from core.logging.context import set_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter

DEFAULT_LEVEL = logging.INFO

# Noisy loggers to suppress
NOISY_LOGGERS = [
    "google.api_core",
    "google.auth",
    "google.cloud.pubsub_v1",
    "grpc",
    "urllib3",
]

_HANDLER_NAME = "pubsub_output"


def setup_logging(
    name: str = "pubsub_output",
    debug: bool = False,
    json_format: bool = False,
    stream: TextIO | None = None,
    suppress_noisy: bool = True,
    plugin_id: str | None = None,
) -> logging.Logger:
    """
    Configure process-wide logging for the plugin.

    The host owns stdout, so log lines go to stderr by default. Calling this
    again replaces the handler installed by a previous call instead of
    stacking a second one.

    Args:
        name: Logger name returned to the caller
        debug: Log at DEBUG instead of INFO
        json_format: Emit one JSON object per line instead of console text
        stream: Output stream (default: sys.stderr)
        suppress_noisy: Quiet down Google client and gRPC loggers
        plugin_id: Plugin instance identifier for context

    Returns:
        Configured logger instance
    """
    if plugin_id:
        set_log_context(plugin_id=plugin_id)

    stream = stream if stream is not None else sys.stderr
    handler = logging.StreamHandler(stream)
    handler.set_name(_HANDLER_NAME)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(ConsoleFormatter(stream=stream))

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG if debug else DEFAULT_LEVEL)

    if suppress_noisy:
        for noisy_logger in NOISY_LOGGERS:
            logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    logger = logging.getLogger(name)
    logger.debug(
        "Logging initialized",
        extra={"host": socket.gethostname()},
    )
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def generate_flush_id() -> str:
    """Generate a short unique identifier for one flush cycle."""
    return uuid.uuid4().hex[:12]
