"""Builds outbound Pub/Sub messages from decoded records."""

import json
from typing import Any, Protocol, Sequence

from core.errors.exceptions import MessageBuildError
from pubsub_output.types import OutboundMessage, Record

__all__ = ["MessageSettings", "TAG_ATTRIBUTE", "build_message", "stringify_attribute"]

# Attribute always set to the Fluent Bit routing tag
TAG_ATTRIBUTE = "tag"


class MessageSettings(Protocol):
    """The part of the plugin configuration the builder reads."""

    timestamp_field: str
    attribute_fields: Sequence[str]
    keep_attribute_fields: bool


def stringify_attribute(value: Any) -> str:
    """Render a record value as a message attribute string."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
    return str(value)


def build_message(record: Record, tag: str, settings: MessageSettings) -> OutboundMessage:
    """
    Convert one record into an outbound message.

    The record itself is not modified; the body is built from a copy of its
    fields so a failed build can still log the original contents.

    Raises:
        MessageBuildError: The fields cannot be serialized as a JSON object.
    """
    fields = dict(record.fields)

    if settings.timestamp_field:
        fields[settings.timestamp_field] = record.timestamp_micros

    attributes = {TAG_ATTRIBUTE: tag}
    for name in settings.attribute_fields:
        if name not in fields:
            continue
        attributes[name] = stringify_attribute(fields[name])
        if not settings.keep_attribute_fields:
            del fields[name]

    try:
        body = json.dumps(
            fields,
            ensure_ascii=False,
            separators=(",", ":"),
            allow_nan=False,
        ).encode("utf-8")
    except (TypeError, ValueError, UnicodeEncodeError) as e:
        raise MessageBuildError(
            f"unable to serialize record as JSON: {e}",
            cause=e,
            context={"log_ts": record.timestamp.isoformat()},
        ) from e

    return OutboundMessage(attributes=attributes, data=body)
