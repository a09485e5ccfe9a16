"""Tests for the msgpack record decoder."""

import logging
import struct
from datetime import UTC, datetime, timedelta

import msgpack
import pytest

from core.errors.exceptions import RecordDecodeError
from pubsub_output.decoder import RecordDecoder, normalize_fields, normalize_value
from pubsub_output.types import EventTime


def _read_all(decoder):
    """Drain the decoder, collecting records and errors in order."""
    results = []
    while True:
        try:
            record = decoder.read_record()
        except RecordDecodeError as e:
            results.append(e)
            continue
        if record is None:
            return results
        results.append(record)


class TestNormalizeValue:

    def test_bytes_become_text(self):
        assert normalize_value(b"hello") == "hello"

    def test_invalid_utf8_is_replaced(self):
        assert normalize_value(b"a\xffb") == "a�b"

    def test_nested_structures(self):
        value = {"list": [b"x", {"inner": b"y"}], "n": 3}
        assert normalize_value(value) == {"list": ["x", {"inner": "y"}], "n": 3}

    def test_scalars_pass_through(self):
        for value in (1, 2.5, True, None, "s"):
            assert normalize_value(value) == value

    def test_non_string_key_is_rejected(self):
        with pytest.raises(RecordDecodeError, match="keys must be strings"):
            normalize_fields({"ok": {1: "nested int key"}})


class TestRecordDecoder:

    def test_decodes_single_record(self, record_bytes):
        decoder = RecordDecoder()
        decoder.reset(record_bytes({"message": "hello"}, seconds=1700000000, microseconds=250))

        record = decoder.read_record()
        assert record.timestamp == datetime(2023, 11, 14, 22, 13, 20, 250, tzinfo=UTC)
        assert record.fields == {"message": "hello"}
        assert decoder.read_record() is None

    def test_decodes_records_in_order(self, record_bytes):
        data = b"".join(record_bytes({"n": i}, seconds=1700000000 + i) for i in range(5))
        decoder = RecordDecoder()
        decoder.reset(data)

        records = _read_all(decoder)
        assert [r.fields["n"] for r in records] == [0, 1, 2, 3, 4]

    def test_all_value_types(self, record_bytes):
        fields = {
            "str": "text",
            "bin": b"\x00\x01 bytes",
            "int": 42,
            "negative": -7,
            "big": 2**63 - 1,
            "float": 1.25,
            "true": True,
            "false": False,
            "nil": None,
            "map": {"inner": {"deep": [1, "two", b"three"]}},
            "array": [1, 2.5, None, False, {"k": "v"}],
        }
        decoder = RecordDecoder()
        decoder.reset(record_bytes(fields))

        assert decoder.read_record().fields == {
            **fields,
            "bin": "\x00\x01 bytes",
            "map": {"inner": {"deep": [1, "two", "three"]}},
        }

    @pytest.mark.parametrize("microseconds", [0, 500000, 999999])
    def test_timestamp_precision(self, record_bytes, microseconds):
        decoder = RecordDecoder()
        decoder.reset(record_bytes({}, seconds=1700000000, microseconds=microseconds))

        record = decoder.read_record()
        second = datetime(2023, 11, 14, 22, 13, 20, tzinfo=UTC)
        assert record.timestamp - second == timedelta(microseconds=microseconds)
        assert record.timestamp_micros == 1700000000 * 1_000_000 + microseconds

    def test_reset_twice_equals_fresh_decoder(self, record_bytes):
        first = record_bytes({"n": 1}) + b"\xc1"
        second = record_bytes({"n": 2}) + record_bytes({"n": 3})

        reused = RecordDecoder()
        reused.reset(first)
        reused.reset(second)
        fresh = RecordDecoder()
        fresh.reset(second)

        assert _read_all(reused) == _read_all(fresh)

    def test_empty_buffer(self):
        decoder = RecordDecoder()
        decoder.reset(b"")
        assert decoder.read_record() is None

    def test_read_before_reset_returns_none(self):
        assert RecordDecoder().read_record() is None

    def test_bin_values_are_normalized(self, record_bytes):
        decoder = RecordDecoder()
        decoder.reset(record_bytes({"payload": b"raw bytes", "nested": {"b": [b"x"]}}))

        record = decoder.read_record()
        assert record.fields == {"payload": "raw bytes", "nested": {"b": ["x"]}}

    def test_reset_discards_previous_buffer(self, record_bytes):
        decoder = RecordDecoder()
        decoder.reset(record_bytes({"first": 1}) + record_bytes({"first": 2}))
        decoder.read_record()

        decoder.reset(record_bytes({"second": 1}))
        assert decoder.read_record().fields == {"second": 1}
        assert decoder.read_record() is None
        assert decoder.buffer_size == len(record_bytes({"second": 1}))

    def test_wrong_arity_skips_only_that_unit(self, record_bytes):
        bad = msgpack.packb([1, 2, 3])
        data = record_bytes({"n": 1}) + bad + record_bytes({"n": 2})
        decoder = RecordDecoder()
        decoder.reset(data)

        results = _read_all(decoder)
        assert isinstance(results[1], RecordDecodeError)
        assert results[1].context["arity"] == 3
        assert [r.fields["n"] for r in (results[0], results[2])] == [1, 2]

    def test_non_array_unit_is_skipped(self, record_bytes):
        data = msgpack.packb({"not": "a record"}) + record_bytes({"n": 1})
        decoder = RecordDecoder()
        decoder.reset(data)

        results = _read_all(decoder)
        assert isinstance(results[0], RecordDecodeError)
        assert results[0].context["unit_type"] == "dict"
        assert results[1].fields == {"n": 1}

    def test_timestamp_must_be_event_time(self, record_bytes):
        data = msgpack.packb([1700000000, {"n": 0}]) + record_bytes({"n": 1})
        decoder = RecordDecoder()
        decoder.reset(data)

        results = _read_all(decoder)
        assert isinstance(results[0], RecordDecodeError)
        assert "not an event time" in str(results[0])
        assert results[1].fields == {"n": 1}

    def test_wrong_ext_type_is_rejected(self):
        data = msgpack.packb([msgpack.ExtType(5, b"\x00" * 8), {"n": 0}])
        decoder = RecordDecoder()
        decoder.reset(data)

        with pytest.raises(RecordDecodeError, match="extension type 5"):
            decoder.read_record()
        assert decoder.read_record() is None

    def test_wrong_event_time_length_is_rejected(self):
        data = msgpack.packb([msgpack.ExtType(0, b"\x00" * 4), {"n": 0}])
        decoder = RecordDecoder()
        decoder.reset(data)

        with pytest.raises(RecordDecodeError, match="4 byte payload"):
            decoder.read_record()

    def test_fields_must_be_a_map(self):
        ts = msgpack.ExtType(0, struct.pack(">II", 1700000000, 0))
        decoder = RecordDecoder()
        decoder.reset(msgpack.packb([ts, ["not", "a", "map"]]))

        with pytest.raises(RecordDecodeError, match="must be a map") as exc_info:
            decoder.read_record()
        assert exc_info.value.context["log_ts"] == "2023-11-14T22:13:20+00:00"

    def test_non_string_key_carries_log_ts(self, record_bytes):
        decoder = RecordDecoder()
        decoder.reset(record_bytes({1: "int key"}))

        with pytest.raises(RecordDecodeError) as exc_info:
            decoder.read_record()
        assert exc_info.value.context["log_ts"] == "2023-11-14T22:13:20+00:00"
        assert "int key" in exc_info.value.context["record"]
        assert decoder.read_record() is None

    def test_map_key_skips_only_that_unit(self, record_bytes):
        # [EventTime, {{"a": 1}: "v"}] cannot be built with packb since the key is unhashable
        ts = msgpack.packb(msgpack.ExtType(0, struct.pack(">II", 1700000000, 0)))
        bad = b"\x92" + ts + b"\x81" + msgpack.packb({"a": 1}) + msgpack.packb("v")
        data = record_bytes({"n": 1}) + bad + record_bytes({"n": 2})
        decoder = RecordDecoder()
        decoder.reset(data)

        results = _read_all(decoder)
        assert len(results) == 3
        assert results[0].fields == {"n": 1}
        assert isinstance(results[1], RecordDecodeError)
        assert "keys must be strings, got dict" in str(results[1])
        assert results[1].context["log_ts"] == "2023-11-14T22:13:20+00:00"
        assert results[2].fields == {"n": 2}

    def test_array_key_in_nested_map_skips_only_that_unit(self, record_bytes):
        ts = msgpack.packb(msgpack.ExtType(0, struct.pack(">II", 1700000000, 0)))
        nested = b"\x81" + msgpack.packb([1, 2]) + msgpack.packb("v")
        bad = b"\x92" + ts + b"\x81" + msgpack.packb("outer") + nested
        data = bad + record_bytes({"n": 1})
        decoder = RecordDecoder()
        decoder.reset(data)

        results = _read_all(decoder)
        assert isinstance(results[0], RecordDecodeError)
        assert "got list" in str(results[0])
        assert results[1].fields == {"n": 1}

    def test_decoder_logs_through_given_logger(self):
        log = logging.getLogger("pubsub_output.plugin.7")
        decoder = RecordDecoder(log)
        assert decoder.logger is log
        assert RecordDecoder().logger.name == "pubsub_output.decoder"

    def test_error_context_redacts_sensitive_fields(self, record_bytes):
        decoder = RecordDecoder()
        decoder.reset(record_bytes({1: "x", "password": "hunter2"}))

        with pytest.raises(RecordDecodeError) as exc_info:
            decoder.read_record()
        assert "hunter2" not in exc_info.value.context["record"]

    def test_truncated_tail_is_reported_once(self, record_bytes):
        second = record_bytes({"n": 2})
        data = record_bytes({"n": 1}) + second[:-3]
        decoder = RecordDecoder()
        decoder.reset(data)

        results = _read_all(decoder)
        assert results[0].fields == {"n": 1}
        assert len(results) == 2
        assert isinstance(results[1], RecordDecodeError)
        assert results[1].context["remaining_bytes"] == len(second) - 3

    def test_corrupt_bytes_end_the_buffer(self, record_bytes):
        # 0xc1 is never used in msgpack
        data = record_bytes({"n": 1}) + b"\xc1" + record_bytes({"n": 2})
        decoder = RecordDecoder()
        decoder.reset(data)

        results = _read_all(decoder)
        assert results[0].fields == {"n": 1}
        assert len(results) == 2
        assert "corrupt msgpack data" in str(results[1])


class TestEventTime:

    def test_round_trip_bytes(self):
        et = EventTime(1700000000, 999999)
        assert EventTime.from_bytes(et.to_bytes()) == et

    def test_from_bytes_rejects_wrong_length(self):
        with pytest.raises(ValueError):
            EventTime.from_bytes(b"\x00" * 7)

    def test_to_datetime(self):
        assert EventTime(0, 1).to_datetime() == datetime(1970, 1, 1, 0, 0, 0, 1, tzinfo=UTC)
