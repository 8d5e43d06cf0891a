"""Duration literals for the ``age-gt`` / ``age-lt`` operators.

Three spellings are accepted:

- compact tokens such as ``"72h"``, ``"1h30m"``, ``"500ms"`` or ``"30d"``;
- ``"<n> <unit>"`` phrases such as ``"30 days"`` or ``"1.5 hours"``, where
  a month is 30 days and a year is 365 days;
- bare numbers, interpreted as seconds.

Example
-------
>>> parse_duration("2 weeks")
datetime.timedelta(days=14)
>>> parse_duration("1h30m")
datetime.timedelta(seconds=5400)
"""
from __future__ import annotations

import re
from datetime import timedelta

_COMPACT_UNITS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
    "d": 86_400.0,
    "w": 604_800.0,
}

_PHRASE_UNITS: dict[str, float] = {
    "second": 1.0,
    "seconds": 1.0,
    "sec": 1.0,
    "minute": 60.0,
    "minutes": 60.0,
    "min": 60.0,
    "hour": 3600.0,
    "hours": 3600.0,
    "hr": 3600.0,
    "day": 86_400.0,
    "days": 86_400.0,
    "week": 604_800.0,
    "weeks": 604_800.0,
    "month": 30 * 86_400.0,
    "months": 30 * 86_400.0,
    "year": 365 * 86_400.0,
    "years": 365 * 86_400.0,
}

_COMPACT_TOKEN = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h|d|w)")
_COMPACT_FULL = re.compile(r"[-+]?(?:(?:\d+(?:\.\d*)?|\.\d+)(?:ns|us|µs|ms|s|m|h|d|w))+")


def _parse_compact(text: str) -> timedelta | None:
    if not _COMPACT_FULL.fullmatch(text):
        return None
    sign = -1.0 if text.startswith("-") else 1.0
    seconds = sum(float(amount) * _COMPACT_UNITS[unit] for amount, unit in _COMPACT_TOKEN.findall(text))
    return timedelta(seconds=sign * seconds)


def _parse_phrase(text: str) -> timedelta:
    parts = text.lower().split()
    if len(parts) != 2:
        raise ValueError(f"invalid duration format: {text}")
    amount_text, unit = parts
    try:
        amount = float(amount_text)
    except ValueError:
        raise ValueError(f"invalid duration value: {amount_text}") from None
    if unit not in _PHRASE_UNITS:
        raise ValueError(f"unknown time unit: {unit}")
    return timedelta(seconds=amount * _PHRASE_UNITS[unit])


def parse_duration(value: object) -> timedelta:
    """Parse *value* into a :class:`~datetime.timedelta`.

    Parameters
    ----------
    value:
        A ``timedelta``, a number of seconds, or a duration string.

    Raises
    ------
    ValueError:
        When the value cannot be interpreted as a duration.
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ValueError(f"cannot parse duration from {type(value).__name__}")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    if not isinstance(value, str):
        raise ValueError(f"cannot parse duration from {type(value).__name__}")

    text = value.strip()
    if text == "0":
        return timedelta(0)
    compact = _parse_compact(text)
    if compact is not None:
        return compact
    return _parse_phrase(text)


def is_duration(value: object) -> bool:
    """Return ``True`` when :func:`parse_duration` accepts *value*."""
    try:
        parse_duration(value)
    except ValueError:
        return False
    return True
