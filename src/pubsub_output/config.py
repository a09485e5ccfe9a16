"""Plugin configuration.

Built from the host's configuration keys through a ConfigStore, or from a
YAML file with the same keys for running the plugin outside the host:

    gcp_project_id: my-project
    topic_id: logs
    credentials_file: ${GOOGLE_APPLICATION_CREDENTIALS:-}
    timestamp_field: ts
    attribute_fields: user, service
    keep_attribute_fields: false
    publish_delay_threshold: 1s
    publish_timeout: 60s
    flush_timeout: 30s

Environment variables are supported using ${VAR_NAME} and
${VAR_NAME:-default} syntax in YAML files.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from core.errors.exceptions import ConfigurationError
from pubsub_output.config_store import ConfigStore

logger = logging.getLogger(__name__)

__all__ = [
    "RESERVED_ATTRIBUTE_NAMES",
    "OutputPluginConfig",
    "PublishSettings",
    "build_plugin_config",
    "load_config",
]

# Keyword parameters of PublisherClient.publish(); attributes are passed as
# **kwargs next to them and must not collide.
RESERVED_ATTRIBUTE_NAMES = frozenset({"topic", "data", "ordering_key", "retry", "timeout"})


@dataclass
class PublishSettings:
    """Publisher batching tunables, passed to the Pub/Sub client unmodified."""

    delay_threshold: timedelta = timedelta(seconds=1)
    byte_threshold: int = 1_000_000
    count_threshold: int = 100
    timeout: timedelta = timedelta(seconds=60)


@dataclass
class OutputPluginConfig:
    """Configuration of one plugin instance. Read-only during a flush."""

    plugin_id: int = 0
    project_id: str = ""
    topic_id: str = ""
    credentials_file: str = ""
    # Field to create/update with the record timestamp (microseconds)
    timestamp_field: str = ""
    # Record fields to lift into message attributes, in order
    attribute_fields: List[str] = field(default_factory=list)
    # Keep lifted fields in the message body as well
    keep_attribute_fields: bool = False
    debug: bool = False
    publish: PublishSettings = field(default_factory=PublishSettings)
    # Deadline for all publishes of one flush to settle; None waits for the
    # publisher's own timeout
    flush_timeout: Optional[timedelta] = None

    @property
    def topic_path(self) -> str:
        return f"projects/{self.project_id}/topics/{self.topic_id}"

    def validate(self) -> None:
        """Raise ConfigurationError if a required parameter is missing or invalid."""
        if not self.project_id:
            raise ConfigurationError("gcp_project_id is a required parameter")
        if not self.topic_id:
            raise ConfigurationError("topic_id is a required parameter")

        reserved = [name for name in self.attribute_fields if name in RESERVED_ATTRIBUTE_NAMES]
        if reserved:
            raise ConfigurationError(
                f"attribute_fields may not contain {', '.join(sorted(reserved))}",
                context={"reserved": sorted(RESERVED_ATTRIBUTE_NAMES)},
            )

        settings = self.publish
        if settings.byte_threshold <= 0 or settings.count_threshold <= 0:
            raise ConfigurationError("publish byte and count thresholds must be positive")
        if settings.delay_threshold < timedelta(0) or settings.timeout <= timedelta(0):
            raise ConfigurationError(
                "publish delay threshold must not be negative and publish timeout must be positive"
            )
        if self.flush_timeout is not None and self.flush_timeout <= timedelta(0):
            raise ConfigurationError("flush_timeout must be positive")


def build_plugin_config(plugin_id: int, store: ConfigStore) -> OutputPluginConfig:
    """Create the OutputPluginConfig from a ConfigStore. Does not validate."""
    config = OutputPluginConfig(plugin_id=plugin_id)
    config.debug, _ = store.get_bool("debug")
    config.project_id, _ = store.get_string("gcp_project_id")
    config.topic_id, _ = store.get_string("topic_id")
    config.credentials_file, _ = store.get_string("credentials_file")
    config.timestamp_field, _ = store.get_string("timestamp_field")
    config.attribute_fields, _ = store.get_strings("attribute_fields")
    config.keep_attribute_fields, _ = store.get_bool("keep_attribute_fields")

    value, ok = store.get_duration("publish_delay_threshold")
    if ok:
        config.publish.delay_threshold = value
    value, ok = store.get_duration("publish_timeout")
    if ok:
        config.publish.timeout = value
    value, ok = store.get_int("publish_byte_threshold")
    if ok:
        config.publish.byte_threshold = value
    value, ok = store.get_int("publish_count_threshold")
    if ok:
        config.publish.count_threshold = value
    value, ok = store.get_duration("flush_timeout")
    if ok:
        config.flush_timeout = value

    return config


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML file and return dict."""
    if not path.exists():
        raise ConfigurationError(f"config file not found: {path}")
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"config file must contain a mapping: {path}")
    return data


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:-default} environment variables in config data."""
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        pattern = r"\$\{([^}:]+)(?::-(([^}]*))?)?\}"

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return re.sub(pattern, replacer, data)
    else:
        return data


def load_config(path: Path, plugin_id: int = 0) -> OutputPluginConfig:
    """
    Load and validate a plugin configuration from a YAML file.

    Keys are the host configuration keys; a top-level ``pubsub`` section is
    used when present so the file can hold other sections too.
    """
    data = _expand_env_vars(load_yaml(path))
    section = data.get("pubsub", data)
    if not isinstance(section, dict):
        raise ConfigurationError("pubsub section must be a mapping")

    logger.info("Loading plugin configuration", extra={"configkey": {"name": str(path)}})
    config = build_plugin_config(plugin_id, ConfigStore.from_mapping(section))
    config.validate()
    return config
