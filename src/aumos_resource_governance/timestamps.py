"""Timestamp coercion shared by records and the filter evaluator."""
from __future__ import annotations

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(moment: datetime) -> datetime:
    """Return *moment* as an aware datetime; naive values are taken as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def parse_timestamp(text: str) -> datetime | None:
    """Parse an RFC3339 / ISO-8601 timestamp string, or return ``None``.

    A trailing ``Z`` is accepted as UTC.  Bare dates are not treated as
    timestamps so that plain strings such as version numbers never
    compare as instants.
    """
    candidate = text.strip()
    if len(candidate) < 16 or "T" not in candidate.upper():
        return None
    if candidate[-1] in "zZ":
        candidate = candidate[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(candidate))
    except ValueError:
        return None


def coerce_datetime(value: object) -> datetime | None:
    """Return *value* as an aware datetime when it represents an instant."""
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        return parse_timestamp(value)
    return None
