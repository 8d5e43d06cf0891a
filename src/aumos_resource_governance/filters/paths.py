"""Field path compilation and resolution.

A field path is the textual reference a filter leaf uses to reach into a
record: ``state``, ``tags.Environment``, ``security_groups[0]``,
``block_device_mappings[*]`` or ``attached_policies[length]``.  An empty
path (or ``"."``) refers to the value itself, which is how collection
item filters address primitive elements.

Resolution is deliberately permissive: any segment that cannot be
followed yields ``None`` rather than an error.
"""
from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache

from aumos_resource_governance.errors import ValidationError
from aumos_resource_governance.resources.records import resolve_attribute

_SEGMENT = re.compile(r"^(?P<name>[^\[\]]*)(?:\[(?P<index>[^\[\]]+)\])?$")
_LENGTH_INDEXES = frozenset({"length", "len", "count"})

ALL = "*"
LENGTH = "length"


@dataclass(frozen=True)
class PathSegment:
    """One dotted component, with an optional bracketed index."""

    name: str
    index: int | str | None = None


@dataclass(frozen=True)
class FieldPath:
    """A compiled field path."""

    text: str
    segments: tuple[PathSegment, ...]

    @property
    def base(self) -> str:
        """Top-level field name, as looked up in the schema registry."""
        return self.segments[0].name if self.segments else ""

    def resolve(self, container: object, now: datetime | None = None) -> object:
        """Return the value at this path inside *container*, or ``None``."""
        current = container
        for segment in self.segments:
            if segment.name:
                current = resolve_attribute(current, segment.name, now)
            if current is None:
                return None
            if segment.index is not None:
                current = _apply_index(current, segment.index)
                if current is None:
                    return None
        return current

    def __str__(self) -> str:
        return self.text


def _apply_index(value: object, index: int | str) -> object:
    if isinstance(value, (str, bytes)) or not isinstance(value, (Sequence, Mapping)):
        return None
    if index == ALL:
        return value
    if index == LENGTH:
        return len(value)
    if isinstance(value, Mapping) or not isinstance(index, int):
        return None
    if index < 0 or index >= len(value):
        return None
    return value[index]


@lru_cache(maxsize=1024)
def compile_path(text: str) -> FieldPath:
    """Compile *text* into a :class:`FieldPath`.

    Raises
    ------
    ValidationError:
        When a segment has malformed brackets.
    """
    stripped = text.strip()
    if stripped in ("", "."):
        return FieldPath(text=stripped, segments=())

    segments: list[PathSegment] = []
    for part in stripped.split("."):
        match = _SEGMENT.match(part)
        if match is None:
            raise ValidationError("Invalid field path", [f"malformed segment {part!r} in {text!r}"])
        name = match.group("name")
        raw_index = match.group("index")
        index: int | str | None = None
        if raw_index is not None:
            raw_index = raw_index.strip().lower()
            if raw_index == ALL:
                index = ALL
            elif raw_index in _LENGTH_INDEXES:
                index = LENGTH
            else:
                try:
                    index = int(raw_index)
                except ValueError:
                    raise ValidationError(
                        "Invalid field path", [f"index {raw_index!r} in {text!r} is not an integer"]
                    ) from None
        segments.append(PathSegment(name=name, index=index))
    return FieldPath(text=stripped, segments=tuple(segments))
