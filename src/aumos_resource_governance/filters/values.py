"""Typed literal values carried by filter leaves.

Policy documents are JSON or YAML, so filter literals arrive as loosely
typed Python objects.  :func:`parse_literal` maps them once, at load
time, onto a small closed set of literal classes; the evaluator then
works with :attr:`Literal.value` and never has to guess what it holds.

Example
-------
>>> parse_literal(5)
IntValue(value=5)
>>> parse_literal("7 days", operator="age-gt")
DurationValue(value=datetime.timedelta(days=7))
>>> parse_literal(["dev", "test"]).to_python()
['dev', 'test']
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from aumos_resource_governance.errors import ValidationError
from aumos_resource_governance.filters.durations import parse_duration
from aumos_resource_governance.timestamps import ensure_utc

_AGE_OPERATORS = frozenset({"age-gt", "age-lt"})


class Literal:
    """Base class of every filter literal."""

    kind: str = ""
    value: object

    def to_python(self) -> object:
        """Return a plain JSON/YAML-friendly representation."""
        return self.value


@dataclass(frozen=True)
class NullValue(Literal):
    value: None = None
    kind = "null"


@dataclass(frozen=True)
class StringValue(Literal):
    value: str
    kind = "string"


@dataclass(frozen=True)
class IntValue(Literal):
    value: int
    kind = "int"


@dataclass(frozen=True)
class FloatValue(Literal):
    value: float
    kind = "float"


@dataclass(frozen=True)
class BoolValue(Literal):
    value: bool
    kind = "bool"


@dataclass(frozen=True)
class TimeValue(Literal):
    value: datetime
    kind = "time"

    def to_python(self) -> object:
        return self.value.isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class DurationValue(Literal):
    value: timedelta
    kind = "duration"

    def to_python(self) -> object:
        return f"{self.value.total_seconds():g}s"


@dataclass(frozen=True)
class ListValue(Literal):
    items: tuple[Literal, ...]
    kind = "list"

    @property
    def value(self) -> list[object]:  # type: ignore[override]
        return [item.value for item in self.items]

    def to_python(self) -> object:
        return [item.to_python() for item in self.items]

    def __len__(self) -> int:
        return len(self.items)


NULL = NullValue()


def parse_literal(raw: object, operator: str | None = None) -> Literal:
    """Convert a raw JSON/YAML value into a typed :class:`Literal`.

    Parameters
    ----------
    raw:
        The raw value from a policy document or builder call.
    operator:
        The leaf operator, when known.  For ``age-gt`` / ``age-lt`` a
        parseable duration string becomes a :class:`DurationValue`.

    Raises
    ------
    ValidationError:
        When *raw* has a type outside the closed literal set.
    """
    if isinstance(raw, Literal):
        return raw
    if raw is None:
        return NULL
    # bool is a subclass of int, so it must be checked first
    if isinstance(raw, bool):
        return BoolValue(raw)
    if isinstance(raw, int):
        return IntValue(raw)
    if isinstance(raw, float):
        return FloatValue(raw)
    if isinstance(raw, datetime):
        return TimeValue(ensure_utc(raw))
    if isinstance(raw, date):
        return TimeValue(datetime(raw.year, raw.month, raw.day, tzinfo=timezone.utc))
    if isinstance(raw, timedelta):
        return DurationValue(raw)
    if isinstance(raw, str):
        if operator in _AGE_OPERATORS:
            try:
                return DurationValue(parse_duration(raw))
            except ValueError:
                return StringValue(raw)
        return StringValue(raw)
    if isinstance(raw, (list, tuple)):
        return ListValue(tuple(parse_literal(item) for item in raw))
    raise ValidationError(
        "Unsupported filter literal",
        [f"value of type {type(raw).__name__} is not a string, number, boolean, time, duration or list"],
    )
