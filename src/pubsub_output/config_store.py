"""Typed access to the host's plugin configuration keys.

The host hands out every configuration value as a string, with an empty
string meaning "not set". ``ConfigStore`` parses those strings into Python
values using the host's (Go) conventions for booleans and durations, and
debug-logs every lookup with sensitive-looking values masked.

Lookups run before a plugin instance exists, so they follow the process-wide
level from ``setup_logging`` rather than the instance's ``debug`` key.
"""

import logging
import re
from datetime import timedelta
from typing import Any, Callable, Mapping

from core.logging.utilities import REDACTED, is_sensitive_name

logger = logging.getLogger(__name__)

__all__ = ["ConfigStore", "KeyGetter", "parse_bool", "parse_duration", "parse_int"]

KeyGetter = Callable[[str], str]

_TRUE_VALUES = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_VALUES = frozenset({"0", "f", "F", "FALSE", "false", "False"})

_INT_PATTERN = re.compile(r"^[+-]?\d+$")
_DURATION_UNIT = r"(?:ns|us|µs|μs|ms|s|m|h)"
_DURATION_NUMBER = r"(?:\d+\.?\d*|\.\d+)"
_DURATION_PATTERN = re.compile(rf"^[+-]?(?:{_DURATION_NUMBER}{_DURATION_UNIT})+$")
_DURATION_PART = re.compile(rf"({_DURATION_NUMBER})({_DURATION_UNIT})")
# Unit sizes in seconds
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_LIST_SEPARATORS = re.compile(r"[\s,]+")


def parse_bool(value: str) -> bool:
    """Parse a boolean the way Go's strconv.ParseBool does."""
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean: {value!r}")


def parse_int(value: str) -> int:
    if not _INT_PATTERN.match(value):
        raise ValueError(f"invalid integer: {value!r}")
    return int(value)


def parse_duration(value: str) -> timedelta:
    """
    Parse a Go style duration such as ``1s``, ``500ms`` or ``3h1s``.

    Days are not a unit; a bare number is only accepted for ``0``.
    """
    if value in ("0", "+0", "-0"):
        return timedelta(0)
    if not _DURATION_PATTERN.match(value):
        raise ValueError(f"invalid duration: {value!r}")

    sign = -1 if value.startswith("-") else 1
    seconds = sum(
        float(number) * _DURATION_UNITS[unit]
        for number, unit in _DURATION_PART.findall(value.lstrip("+-"))
    )
    return timedelta(seconds=sign * seconds)


class ConfigStore:
    """
    Typed lookups over a host key getter.

    Every accessor returns ``(value, found)``; ``found`` is False when the key
    is unset or does not parse, in which case ``value`` is the type's zero
    value.
    """

    def __init__(self, key_getter: KeyGetter):
        self._get_key = key_getter

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "ConfigStore":
        """Build a store over a plain mapping, stringifying values."""

        def getter(name: str) -> str:
            value = values.get(name)
            if value is None:
                return ""
            if isinstance(value, bool):
                return "true" if value else "false"
            if isinstance(value, (list, tuple)):
                return ",".join(str(v) for v in value)
            return str(value)

        return cls(getter)

    def _raw(self, name: str) -> str:
        return self._get_key(name) or ""

    def _log_lookup(self, name: str, value: Any, found: bool) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        entry: dict[str, Any] = {"name": name, "found": found}
        if found:
            if is_sensitive_name(name):
                entry["value"] = REDACTED
            elif isinstance(value, timedelta):
                entry["value"] = str(value)
            else:
                entry["value"] = value
            msg = "found config key"
        else:
            msg = "did not find config key"
        logger.debug(msg, extra={"configkey": entry})

    def _parse(self, name: str, parser: Callable[[str], Any], zero: Any) -> tuple[Any, bool]:
        raw = self._raw(name)
        if not raw:
            self._log_lookup(name, zero, False)
            return zero, False
        try:
            value = parser(raw)
        except ValueError:
            self._log_lookup(name, zero, False)
            return zero, False
        self._log_lookup(name, value, True)
        return value, True

    def get_bool(self, name: str) -> tuple[bool, bool]:
        return self._parse(name, parse_bool, False)

    def get_duration(self, name: str) -> tuple[timedelta, bool]:
        return self._parse(name, parse_duration, timedelta(0))

    def get_int(self, name: str) -> tuple[int, bool]:
        return self._parse(name, parse_int, 0)

    def get_string(self, name: str) -> tuple[str, bool]:
        raw = self._raw(name)
        found = raw != ""
        self._log_lookup(name, raw, found)
        return raw, found

    def get_strings(self, name: str) -> tuple[list[str], bool]:
        """A comma and/or whitespace separated list of values."""
        values = [v for v in _LIST_SEPARATORS.split(self._raw(name)) if v]
        found = len(values) > 0
        self._log_lookup(name, values, found)
        return values, found
