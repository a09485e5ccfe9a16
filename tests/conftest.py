"""
pytest configuration for the plugin tests.

Adds src directory to Python path for imports and provides shared record
fixtures.
"""

import struct
import sys
from pathlib import Path

import msgpack
import pytest

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

from core.logging.context import clear_log_context  # noqa: E402


def pack_event_time(seconds: int, microseconds: int = 0) -> msgpack.ExtType:
    return msgpack.ExtType(0, struct.pack(">II", seconds, microseconds))


def pack_record(fields, seconds: int = 1700000000, microseconds: int = 0) -> bytes:
    """Encode one [EventTime, fields] unit the way the host does."""
    return msgpack.packb(
        [pack_event_time(seconds, microseconds), fields],
        use_bin_type=True,
    )


@pytest.fixture
def record_bytes():
    return pack_record


@pytest.fixture(autouse=True)
def reset_log_context():
    clear_log_context()
    yield
    clear_log_context()
