"""Fluent Bit msgpack record decoder.

A flush buffer is a concatenation of msgpack arrays, one per record::

    [EventTime, {"key": value, ...}]

where ``EventTime`` is msgpack extension type 0 carrying 8 big-endian bytes
(seconds, microseconds). Decoding yields ``Record`` objects whose field
values are already normalized for JSON serialization.

Maps are unpacked as key/value pair lists and only turned into dicts once
their keys are checked, so a map whose key is itself a map or array costs
that one record instead of the framing of the whole buffer.
"""

import logging
from typing import Any

import msgpack

from core.errors.exceptions import RecordDecodeError
from core.logging.utilities import summarize_record
from pubsub_output.types import EVENT_TIME_EXT_CODE, EventTime, Record

logger = logging.getLogger(__name__)

__all__ = ["RecordDecoder", "normalize_fields", "normalize_value"]


class _MapPairs(list):
    """Key/value pairs of one decoded msgpack map, in wire order."""


def _ext_hook(code: int, data: bytes) -> Any:
    if code == EVENT_TIME_EXT_CODE and len(data) == 8:
        return EventTime.from_bytes(data)
    return msgpack.ExtType(code, data)


def _type_name(value: Any) -> str:
    return "dict" if isinstance(value, _MapPairs) else type(value).__name__


def _plain(value: Any) -> Any:
    """Rebuild decoded maps as dicts for log output. Unhashable keys become their repr."""
    if isinstance(value, _MapPairs):
        plain = {}
        for key, item in value:
            key = _plain(key)
            if isinstance(key, (dict, list)):
                key = repr(key)
            plain[key] = _plain(item)
        return plain
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


def normalize_value(value: Any) -> Any:
    """
    Normalize one decoded value for JSON serialization.

    Byte strings become text verbatim (invalid UTF-8 replaced) instead of
    being base64 encoded later; mappings and sequences are normalized
    recursively; other values pass through unchanged.
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, (dict, _MapPairs)):
        return normalize_fields(value)
    if isinstance(value, (list, tuple)):
        return [normalize_value(v) for v in value]
    return value


def normalize_fields(fields: dict | list) -> dict[str, Any]:
    """
    Normalize a field mapping, given as a dict or as decoded key/value pairs.

    Raises RecordDecodeError on a non-string key at any depth.
    """
    pairs = fields.items() if isinstance(fields, dict) else fields
    normalized = {}
    for key, value in pairs:
        if not isinstance(key, str):
            raise RecordDecodeError(
                f"record field keys must be strings, got {_type_name(key)}",
                context={"key": repr(_plain(key))[:64]},
            )
        normalized[key] = normalize_value(value)
    return normalized


class RecordDecoder:
    """
    Decodes records out of one flush buffer at a time.

    The decoder owns a single byte buffer that is reset, not reallocated,
    for every flush. One decoder belongs to one plugin instance, and logs
    through that instance's logger when one is given.
    """

    def __init__(self, log: logging.Logger | None = None) -> None:
        self.logger = log or logger
        self._buffer = bytearray()
        self._unpacker: msgpack.Unpacker | None = None
        # end offset of the last complete unit
        self._offset = 0
        self._exhausted = True

    @property
    def buffer_size(self) -> int:
        return len(self._buffer)

    def reset(self, data: bytes) -> None:
        """Discard decoding state and arm the decoder over a complete buffer."""
        self._buffer[:] = data
        self._unpacker = msgpack.Unpacker(
            raw=False,
            use_list=True,
            strict_map_key=False,
            object_pairs_hook=_MapPairs,
            unicode_errors="replace",
            ext_hook=_ext_hook,
            max_buffer_size=len(self._buffer),
        )
        self._unpacker.feed(self._buffer)
        self._offset = 0
        self._exhausted = False
        self.logger.debug("Decoder reset", extra={"bytes": len(self._buffer)})

    def read_record(self) -> Record | None:
        """
        Decode the next record.

        Returns:
            The next Record, or None once the buffer is fully consumed.

        Raises:
            RecordDecodeError: The current unit is malformed. A structurally
                bad unit only costs that unit; a truncated tail or bytes that
                cannot be framed end the buffer after being reported once.
        """
        if self._exhausted or self._unpacker is None:
            return None

        try:
            unit = next(self._unpacker)
        except StopIteration:
            self._exhausted = True
            if self._offset < len(self._buffer):
                raise RecordDecodeError(
                    "truncated record unit at end of buffer",
                    context={
                        "offset": self._offset,
                        "remaining_bytes": len(self._buffer) - self._offset,
                    },
                ) from None
            return None
        except (msgpack.UnpackException, ValueError, TypeError) as e:
            # framing is lost; nothing after this point can be trusted
            self._exhausted = True
            raise RecordDecodeError(
                f"corrupt msgpack data: {e}",
                cause=e,
                context={"offset": self._offset},
            ) from e

        self._offset = self._unpacker.tell()
        return self._to_record(unit)

    @staticmethod
    def _to_record(unit: Any) -> Record:
        is_array = isinstance(unit, list) and not isinstance(unit, _MapPairs)
        if not is_array or len(unit) != 2:
            raise RecordDecodeError(
                "unexpected or malformed data: record unit must be a [timestamp, fields] pair",
                context={
                    "unit_type": _type_name(unit),
                    "arity": len(unit) if is_array else None,
                    "record": summarize_record(_plain(unit)),
                },
            )

        raw_ts, raw_fields = unit
        if not isinstance(raw_ts, EventTime):
            if isinstance(raw_ts, msgpack.ExtType):
                reason = f"extension type {raw_ts.code} with {len(raw_ts.data)} byte payload"
            else:
                reason = _type_name(raw_ts)
            raise RecordDecodeError(
                f"record timestamp is not an event time: {reason}",
                context={"unit_type": "timestamp", "record": summarize_record(_plain(raw_fields))},
            )

        timestamp = raw_ts.to_datetime()
        if not isinstance(raw_fields, _MapPairs):
            raise RecordDecodeError(
                f"record fields must be a map, got {_type_name(raw_fields)}",
                context={
                    "log_ts": timestamp.isoformat(),
                    "record": summarize_record(_plain(raw_fields)),
                },
            )

        try:
            fields = normalize_fields(raw_fields)
        except RecordDecodeError as e:
            e.context["log_ts"] = timestamp.isoformat()
            e.context["record"] = summarize_record(_plain(raw_fields))
            raise

        return Record(timestamp=timestamp, fields=fields)
