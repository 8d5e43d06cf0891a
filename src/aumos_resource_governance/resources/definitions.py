"""Typed schema definitions for governed resource types.

A :class:`ResourceDefinition` describes one resource type (for example
``ec2`` or ``s3``): the fields a filter may reference, the operators each
field supports, optional enumerations, relationships to other resource
types, and the actions that can be dispatched against matches.

Definitions are frozen dataclasses and are shared process-wide as
read-only reference data.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ValueType(str, Enum):
    """Declared value type of a resource field."""

    STRING = "string"
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    TIME = "time"
    ARRAY = "array"
    MAP = "map"


@dataclass(frozen=True)
class FieldDefinition:
    """A filterable field on a resource type.

    Attributes
    ----------
    value_type:
        Declared type of the field value.
    allowed_operators:
        Operator names (``"eq"``, ``"age-gt"`` ...) legal for this field.
    description:
        Human-readable description.
    enum_values:
        Ordered legal literal values for enumerated string fields.
    examples:
        Example values for documentation and CLI output.
    computed:
        ``True`` for derived fields (age, cost, utilization).
    required:
        ``True`` when the field is always present on a record.
    """

    value_type: ValueType
    allowed_operators: frozenset[str]
    description: str = ""
    enum_values: tuple[str, ...] = ()
    examples: tuple[str, ...] = ()
    computed: bool = False
    required: bool = False

    def allows(self, operator: str) -> bool:
        """Return ``True`` when *operator* is legal for this field."""
        return operator in self.allowed_operators


@dataclass(frozen=True)
class RelationshipDefinition:
    """A declared relationship from one resource type to another."""

    name: str
    cardinality: str
    target: str
    direction: str
    description: str = ""


@dataclass(frozen=True)
class ResourceDefinition:
    """Catalog entry for a single resource type."""

    name: str
    service: str
    description: str
    fields: dict[str, FieldDefinition]
    relationships: tuple[RelationshipDefinition, ...] = ()
    actions: tuple[str, ...] = ()
    common_tags: tuple[str, ...] = ()
    aliases: tuple[str, ...] = field(default=())

    def field_names(self) -> list[str]:
        """Return the sorted list of field names."""
        return sorted(self.fields)
