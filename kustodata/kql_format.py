"""Kusto scalar types and their KQL literal forms.

The helpers here quote identifiers and strings and render typed values as
KQL literals such as ``int(32)`` or ``datetime(2019-01-02T03:04:05Z)``.
"""

from __future__ import annotations

import math
import unicodedata
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Callable

_MAX_LATIN1 = 0xFF
_INT32_RANGE = (-(2**31), 2**31 - 1)
_INT64_RANGE = (-(2**63), 2**63 - 1)

_NS_PER_MICROSECOND = 1_000
_NS_PER_SECOND = 1_000_000_000
_NS_PER_MINUTE = 60 * _NS_PER_SECOND
_NS_PER_HOUR = 60 * _NS_PER_MINUTE
_NS_PER_DAY = 24 * _NS_PER_HOUR

_SPECIAL_ESCAPES = {
    "'": "\\'",
    '"': '\\"',
    "\\": "\\\\",
    "\x00": "\\0",
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
}


class KustoType(str, Enum):
    """The scalar column types of Kusto."""

    BOOL = "bool"
    DATETIME = "datetime"
    DYNAMIC = "dynamic"
    GUID = "guid"
    INT = "int"
    LONG = "long"
    REAL = "real"
    STRING = "string"
    TIMESPAN = "timespan"
    DECIMAL = "decimal"

    def __str__(self) -> str:
        return self.value


def _check_int(value: Any, bounds: tuple[int, int], name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} value must be an int, got {type(value).__name__}")
    low, high = bounds
    if not low <= value <= high:
        raise ValueError(f"{name} value {value} is out of range")


@dataclass(frozen=True)
class KustoValue:
    """A typed Kusto scalar; a value of None is the type's null."""

    type: KustoType
    value: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", KustoType(self.type))
        value = self.value
        if value is None:
            return
        kind = self.type
        if kind is KustoType.BOOL:
            if not isinstance(value, bool):
                raise TypeError("bool value must be a bool")
        elif kind is KustoType.INT:
            _check_int(value, _INT32_RANGE, "int")
        elif kind is KustoType.LONG:
            _check_int(value, _INT64_RANGE, "long")
        elif kind is KustoType.REAL:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise TypeError("real value must be a number")
            object.__setattr__(self, "value", float(value))
        elif kind is KustoType.STRING:
            if not isinstance(value, str):
                raise TypeError("string value must be a str")
        elif kind is KustoType.DATETIME:
            if not isinstance(value, datetime):
                raise TypeError("datetime value must be a datetime")
        elif kind is KustoType.TIMESPAN:
            if not isinstance(value, timedelta):
                raise TypeError("timespan value must be a timedelta")
        elif kind is KustoType.DYNAMIC:
            if not isinstance(value, (bytes, bytearray)):
                raise TypeError("dynamic value must be serialized bytes")
            object.__setattr__(self, "value", bytes(value))
        elif kind is KustoType.GUID:
            if not isinstance(value, uuid.UUID):
                raise TypeError("guid value must be a UUID")
        elif kind is KustoType.DECIMAL:
            if isinstance(value, bool) or not isinstance(value, (Decimal, int)):
                raise TypeError("decimal value must be a Decimal")
            object.__setattr__(self, "value", Decimal(value))


def requires_quoting(value: str) -> bool:
    """True when ``value`` is not a plain identifier and must be bracket-quoted."""
    for char in value:
        if char == "_":
            continue
        if ord(char) > _MAX_LATIN1 or not (char.isalpha() or char.isdecimal()):
            return True
    return False


def should_be_escaped(char: str) -> bool:
    """True for control characters and for anything outside Latin-1."""
    if ord(char) <= _MAX_LATIN1:
        return unicodedata.category(char) == "Cc"
    return True


def quote_string(value: str, hidden: bool) -> str:
    """Render ``value`` as a double-quoted KQL string literal.

    An empty string is returned unchanged; ``hidden`` adds the ``h`` prefix.
    """
    if value == "":
        return value
    pieces = ["h\"" if hidden else "\""]
    for char in value:
        special = _SPECIAL_ESCAPES.get(char)
        if special is not None:
            pieces.append(special)
        elif should_be_escaped(char):
            pieces.append(f"\\u{ord(char):04x}")
        else:
            pieces.append(char)
    pieces.append("\"")
    return "".join(pieces)


def _trunc_div(numerator: int, denominator: int) -> int:
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator > 0) else -quotient


def _trunc_mod(numerator: int, denominator: int) -> int:
    return numerator - denominator * _trunc_div(numerator, denominator)


def _extra_nanoseconds(value: Any) -> int:
    return int(getattr(value, "nanosecond", 0) or 0)


def format_timespan(duration: timedelta) -> str:
    """Render a duration as ``[d.]hh:mm:ss.fffffff``.

    Objects exposing a ``nanosecond`` attribute (0-999) keep that extra precision.
    """
    total = (
        (duration.days * 86_400 + duration.seconds) * _NS_PER_SECOND
        + duration.microseconds * _NS_PER_MICROSECOND
        + _extra_nanoseconds(duration)
    )
    days = _trunc_div(total, _NS_PER_DAY)
    remaining = total - days * _NS_PER_DAY
    prefix = f"{days}." if days > 0 else ""
    hours = _trunc_div(remaining, _NS_PER_HOUR)
    minutes = _trunc_mod(_trunc_div(remaining, _NS_PER_MINUTE), 60)
    seconds = _trunc_mod(_trunc_div(remaining, _NS_PER_SECOND), 60)
    ticks = _trunc_div(_trunc_mod(remaining, _NS_PER_SECOND), 100)
    return f"{prefix}{hours:02d}:{minutes:02d}:{seconds:02d}.{ticks:07d}"


def format_datetime(moment: datetime) -> str:
    """Render a point in time in ISO 8601 with up to seven fractional digits.

    Naive datetimes are taken as UTC.  Objects exposing a ``nanosecond``
    attribute (0-999) keep that extra precision.
    """
    nanos = moment.microsecond * _NS_PER_MICROSECOND + _extra_nanoseconds(moment)
    fraction = f"{nanos:09d}"[:7].rstrip("0")
    text = (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )
    if fraction:
        text += "." + fraction
    offset = moment.utcoffset()
    if offset is None or offset == timedelta(0):
        return text + "Z"
    sign = "-" if offset < timedelta(0) else "+"
    minutes_total = abs(int(offset.total_seconds())) // 60
    return text + f"{sign}{minutes_total // 60:02d}:{minutes_total % 60:02d}"


def _format_real(number: float) -> str:
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "+Inf" if number > 0 else "-Inf"
    if number == 0:
        return "-0" if math.copysign(1.0, number) < 0 else "0"
    sign = "-" if number < 0 else ""
    parsed = Decimal(repr(abs(number))).as_tuple()
    digits = "".join(map(str, parsed.digits))
    stripped = digits.rstrip("0")
    exponent = int(parsed.exponent) + len(digits) - len(stripped)
    digits = stripped.lstrip("0") or "0"
    count = len(digits)
    point = exponent + count
    power = point - 1
    if power < -4 or power >= 6:
        mantissa = digits[0] + ("." + digits[1:] if count > 1 else "")
        exp_sign = "-" if power < 0 else "+"
        return f"{sign}{mantissa}e{exp_sign}{abs(power):02d}"
    if point <= 0:
        return f"{sign}0.{'0' * -point}{digits}"
    if point >= count:
        return f"{sign}{digits}{'0' * (point - count)}"
    return f"{sign}{digits[:point]}.{digits[point:]}"


def _format_decimal(number: Decimal) -> str:
    text = format(number, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


_FORMATTERS: dict[KustoType, Callable[[Any], str]] = {
    KustoType.DATETIME: format_datetime,
    KustoType.TIMESPAN: format_timespan,
    KustoType.DYNAMIC: lambda raw: raw.decode("utf-8", errors="replace"),
    KustoType.BOOL: lambda flag: "true" if flag else "false",
    KustoType.INT: str,
    KustoType.LONG: str,
    KustoType.REAL: _format_real,
    KustoType.DECIMAL: _format_decimal,
    KustoType.GUID: str,
}


def quote_value(value: KustoValue) -> str:
    """Render a typed value as a KQL literal, e.g. ``long(5)`` or ``int(null)``."""
    kind = value.type
    if value.value is None:
        return f"{kind}(null)"
    if kind is KustoType.STRING:
        return quote_string(value.value, False)
    return f"{kind}({_FORMATTERS[kind](value.value)})"