"""Canonical serialization and hashing for signed payloads.

The signing pre-image of a credential is a compact JSON encoding with a
fixed convention:

- object properties of the credential itself in declaration order;
- nested claim objects with keys sorted lexicographically;
- no whitespace between tokens, one trailing newline;
- non-ASCII characters emitted literally, but ``<``, ``>``, ``&``,
  U+2028 and U+2029 escaped as ``\\u003c``-style sequences;
- floats in shortest round-trip form, positional between ``1e-6`` and
  ``1e21`` and without a ``.0`` suffix on whole values.

Timestamps are RFC 3339 in UTC with a ``Z`` suffix; fractional seconds are
written only when non-zero and without trailing zeros.
"""
from __future__ import annotations

import json
import math
import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from eth_utils import keccak

from did_anchor.errors import EncodingError

_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}
_HTML_ESCAPE_PATTERN = re.compile("[<>&\u2028\u2029]")

_TIMESTAMP_PATTERN = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}[Tt]\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<offset>[Zz]|[+-]\d{2}:\d{2})$"
)


def sort_keys(value: Any) -> Any:
    """Return *value* with every nested dict rebuilt in sorted key order.

    Raises
    ------
    EncodingError
        If a nested dict has a key that is not a string.
    """
    if isinstance(value, dict):
        _require_string_keys(value)
        return {key: sort_keys(value[key]) for key in sorted(value)}
    if isinstance(value, list):
        return [sort_keys(item) for item in value]
    return value


def canonical_json(data: Any) -> bytes:
    """Serialize *data* to canonical JSON bytes.

    Dict ordering is preserved as given; callers sort nested maps with
    :func:`sort_keys` where the pre-image requires it.

    Raises
    ------
    EncodingError
        If *data* contains values that are not JSON serializable.
    """
    parts: list[str] = []
    _encode(data, parts)
    text = _HTML_ESCAPE_PATTERN.sub(lambda match: _HTML_ESCAPES[match.group(0)], "".join(parts))
    return (text + "\n").encode("utf-8")


def format_float(value: float) -> str:
    """Format *value* with the shortest digits that round-trip.

    Zero and magnitudes in ``[1e-6, 1e21)`` are written positionally with
    no ``.0`` suffix. Anything else uses an exponent, written without zero
    padding when negative: ``1e-7``, ``1.5e-10``, ``1e+21``.

    Raises
    ------
    EncodingError
        If *value* is NaN or infinite.
    """
    if not math.isfinite(value):
        raise EncodingError(f"Cannot encode non-finite number {value!r} as JSON.")
    text = repr(value)
    magnitude = abs(value)
    if magnitude != 0 and (magnitude < 1e-6 or magnitude >= 1e21):
        return text.replace("e-0", "e-")
    text = format(Decimal(text), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _require_string_keys(value: dict) -> None:
    for key in value:
        if not isinstance(key, str):
            raise EncodingError(f"JSON object keys must be strings, got {key!r}.")


def _encode(value: Any, parts: list[str]) -> None:
    if value is None:
        parts.append("null")
    elif value is True:
        parts.append("true")
    elif value is False:
        parts.append("false")
    elif isinstance(value, str):
        parts.append(json.dumps(value, ensure_ascii=False))
    elif isinstance(value, int):
        parts.append(int.__repr__(value))
    elif isinstance(value, float):
        parts.append(format_float(value))
    elif isinstance(value, dict):
        _require_string_keys(value)
        parts.append("{")
        for index, (key, item) in enumerate(value.items()):
            if index:
                parts.append(",")
            parts.append(json.dumps(key, ensure_ascii=False) + ":")
            _encode(item, parts)
        parts.append("}")
    elif isinstance(value, (list, tuple)):
        parts.append("[")
        for index, item in enumerate(value):
            if index:
                parts.append(",")
            _encode(item, parts)
        parts.append("]")
    else:
        raise EncodingError(f"Cannot encode value of type {type(value).__name__} as JSON.")


def keccak256(data: bytes) -> bytes:
    """Return the 32-byte legacy Keccak-256 digest of *data*."""
    return keccak(primitive=data)


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


def utc(value: datetime) -> datetime:
    """Return *value* in UTC, treating naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format *value* as an RFC 3339 UTC timestamp."""
    value = utc(value)
    text = value.strftime("%Y-%m-%dT%H:%M:%S")
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    return text + "Z"


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime.

    Fractional seconds beyond microsecond precision are truncated.

    Raises
    ------
    EncodingError
        If *value* is not an RFC 3339 timestamp.
    """
    match = _TIMESTAMP_PATTERN.match(value) if isinstance(value, str) else None
    if match is None:
        raise EncodingError(f"Invalid RFC 3339 timestamp {value!r}.")
    fraction = (match.group("fraction") or "")[:6].ljust(6, "0")
    offset = match.group("offset").upper().replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(f"{match.group('base').upper()}.{fraction}{offset}")
    except ValueError as exc:
        raise EncodingError(f"Invalid RFC 3339 timestamp {value!r}: {exc}") from exc
    return parsed.astimezone(timezone.utc)


__all__ = [
    "canonical_json",
    "format_float",
    "format_timestamp",
    "keccak256",
    "parse_timestamp",
    "sort_keys",
    "utc",
]
