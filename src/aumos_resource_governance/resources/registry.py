"""Resource schema registry.

Read-only lookup facade over the static catalog.  Lookups never raise:
unknown resource types and fields resolve to ``None`` so that callers
(the validator, the CLI) decide how to report them.

Example
-------
>>> registry = SchemaRegistry()
>>> registry.operator_allowed("compute-instance", "encrypted", "gt")
False
>>> registry.field_of("ec2", "state").enum_values[:2]
('pending', 'running')
"""
from __future__ import annotations

import logging
from collections.abc import Mapping

from aumos_resource_governance.resources.catalog import RESOURCE_DEFINITIONS
from aumos_resource_governance.resources.definitions import (
    FieldDefinition,
    ResourceDefinition,
)

logger = logging.getLogger(__name__)


class SchemaRegistry:
    """Catalog of legal fields and operators per resource type.

    Parameters
    ----------
    definitions:
        Optional mapping of canonical type name to definition.  Defaults to
        the built-in catalog.
    """

    def __init__(self, definitions: Mapping[str, ResourceDefinition] | None = None) -> None:
        self._definitions: dict[str, ResourceDefinition] = dict(
            definitions if definitions is not None else RESOURCE_DEFINITIONS
        )
        self._aliases: dict[str, str] = {}
        for name, definition in self._definitions.items():
            self._aliases[name.lower()] = name
            for alias in definition.aliases:
                self._aliases[alias.lower()] = name

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def canonical_type(self, resource_type: str) -> str | None:
        """Resolve *resource_type* (or one of its aliases) to the catalog key."""
        return self._aliases.get(resource_type.strip().lower())

    def lookup(self, resource_type: str) -> ResourceDefinition | None:
        """Return the definition for *resource_type*, or ``None`` if unknown."""
        canonical = self.canonical_type(resource_type)
        if canonical is None:
            return None
        return self._definitions[canonical]

    def field_of(self, resource_type: str, field_name: str) -> FieldDefinition | None:
        """Return the definition of *field_name* on *resource_type*.

        Only the base segment of a dotted or indexed path is consulted, so
        ``tags.Environment`` and ``security_groups[0]`` resolve to the
        ``tags`` and ``security_groups`` fields respectively.
        """
        definition = self.lookup(resource_type)
        if definition is None:
            return None
        return definition.fields.get(base_field(field_name))

    def operator_allowed(self, resource_type: str, field_name: str, operator: str) -> bool:
        """Return ``True`` when *operator* is legal for the field."""
        field_def = self.field_of(resource_type, field_name)
        return field_def is not None and field_def.allows(operator)

    # ------------------------------------------------------------------
    # Catalog listings
    # ------------------------------------------------------------------

    def resource_types(self) -> list[str]:
        """Return the sorted canonical resource type names."""
        return sorted(self._definitions)

    def services(self) -> dict[str, list[str]]:
        """Group resource types by the cloud service that owns them."""
        grouped: dict[str, list[str]] = {}
        for name in self.resource_types():
            grouped.setdefault(self._definitions[name].service, []).append(name)
        return grouped

    def computed_fields(self, resource_type: str) -> list[str]:
        definition = self.lookup(resource_type)
        if definition is None:
            return []
        return sorted(name for name, fd in definition.fields.items() if fd.computed)

    def required_fields(self, resource_type: str) -> list[str]:
        definition = self.lookup(resource_type)
        if definition is None:
            return []
        return sorted(name for name, fd in definition.fields.items() if fd.required)

    def actions_for(self, resource_type: str) -> tuple[str, ...]:
        """Return the actions supported by *resource_type* (empty if unknown)."""
        definition = self.lookup(resource_type)
        return definition.actions if definition is not None else ()

    def supports_action(self, resource_type: str, action: str) -> bool:
        return action in self.actions_for(resource_type)

    def __contains__(self, resource_type: object) -> bool:
        return isinstance(resource_type, str) and self.canonical_type(resource_type) is not None

    def __repr__(self) -> str:
        return f"SchemaRegistry(types={self.resource_types()!r})"


def base_field(field_path: str) -> str:
    """Return the top-level field name of a dotted/indexed path."""
    head = field_path.split(".", 1)[0]
    return head.split("[", 1)[0]


_default_registry: SchemaRegistry | None = None


def default_registry() -> SchemaRegistry:
    """Return the process-wide registry built from the static catalog."""
    global _default_registry
    if _default_registry is None:
        _default_registry = SchemaRegistry()
        logger.debug("Built default schema registry with %d types", len(_default_registry.resource_types()))
    return _default_registry
