"""Resource schema registry package.

Exports the catalog data types, the registry facade and the record type
consumed by the filter evaluator.
"""
from __future__ import annotations

from aumos_resource_governance.resources.definitions import (
    FieldDefinition,
    RelationshipDefinition,
    ResourceDefinition,
    ValueType,
)
from aumos_resource_governance.resources.records import ResourceRecord
from aumos_resource_governance.resources.registry import SchemaRegistry, default_registry

__all__ = [
    "FieldDefinition",
    "RelationshipDefinition",
    "ResourceDefinition",
    "ResourceRecord",
    "SchemaRegistry",
    "ValueType",
    "default_registry",
]
