"""Data model shared by the decoder, message builder and publish coordinator."""

import concurrent.futures
import struct
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import IntEnum
from typing import Any, Iterable, Mapping

__all__ = [
    "EVENT_TIME_EXT_CODE",
    "FLB_ERROR",
    "FLB_OK",
    "FLB_RETRY",
    "Disposition",
    "EventTime",
    "OutboundMessage",
    "PublishHandle",
    "Record",
]

# Fluent Bit output plugin return codes
FLB_ERROR = 0
FLB_OK = 1
FLB_RETRY = 2

# msgpack extension type carrying record timestamps
EVENT_TIME_EXT_CODE = 0

_EVENT_TIME = struct.Struct(">II")
_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass(frozen=True)
class EventTime:
    """
    Record timestamp as carried on the wire.

    Wire contract: msgpack ext type 0 with an 8 byte payload, big-endian,
    first 4 bytes whole seconds since the epoch, last 4 bytes microseconds.
    """

    seconds: int
    microseconds: int

    @classmethod
    def from_bytes(cls, data: bytes) -> "EventTime":
        """Decode the 8 byte payload. Raises ValueError on a wrong length."""
        if len(data) != _EVENT_TIME.size:
            raise ValueError(
                f"event time payload must be {_EVENT_TIME.size} bytes, got {len(data)}"
            )
        seconds, microseconds = _EVENT_TIME.unpack(data)
        return cls(seconds, microseconds)

    def to_bytes(self) -> bytes:
        return _EVENT_TIME.pack(self.seconds, self.microseconds)

    def to_datetime(self) -> datetime:
        return _EPOCH + timedelta(seconds=self.seconds, microseconds=self.microseconds)


@dataclass(frozen=True)
class Record:
    """One decoded log record: timestamp plus JSON-safe fields."""

    timestamp: datetime
    fields: dict[str, Any]

    @property
    def timestamp_micros(self) -> int:
        """Microseconds since the epoch."""
        delta = self.timestamp - _EPOCH
        return (delta.days * 86400 + delta.seconds) * 1_000_000 + delta.microseconds


@dataclass(frozen=True)
class OutboundMessage:
    """A message ready to publish: string attributes and a JSON body."""

    attributes: Mapping[str, str]
    data: bytes


@dataclass(eq=False)
class PublishHandle:
    """One in-flight publish, awaited exactly once by the coordinator."""

    future: concurrent.futures.Future
    timestamp: datetime | None = None
    awaited: bool = field(default=False, repr=False)


class Disposition(IntEnum):
    """
    Outcome of a flush, ordered by severity.

    The batch outcome is the most severe outcome of its publishes, which
    makes combining outcomes commutative and associative.
    """

    ACCEPTED = 0
    RETRY = 1
    FATAL = 2

    @property
    def host_code(self) -> int:
        return _HOST_CODES[self]

    @classmethod
    def worst(cls, outcomes: Iterable["Disposition"]) -> "Disposition":
        return max(outcomes, default=cls.ACCEPTED)


_HOST_CODES = {
    Disposition.ACCEPTED: FLB_OK,
    Disposition.RETRY: FLB_RETRY,
    Disposition.FATAL: FLB_ERROR,
}
