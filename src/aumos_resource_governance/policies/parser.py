"""YAML / JSON policy document parser.

The expected document structure is::

    policies:
      - name: stop-idle-instances
        resource_type: ec2
        description: Stop running instances idling below 5% CPU
        filter:
          and:
            - {field: state, operator: eq, value: running}
            - {field: cpu_utilization, operator: lt, value: 5}
            - {field: running_days, operator: gte, value: 7}
        actions:
          - type: stop
            dry_run: true
        mode:
          type: pull

``filters`` (flat triples) may be given instead of ``filter``.  A document
holding a single policy mapping, or a bare list of policies, is accepted
too.  JSON is a subset of YAML, so ``.json`` files parse the same way.

Example
-------
>>> parser = PolicyParser()
>>> policies = parser.parse("policies.yaml")
>>> policies[0].resource_type
'ec2'
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

import yaml

from aumos_resource_governance.errors import ValidationError
from aumos_resource_governance.filters.expression import expression_from_dict
from aumos_resource_governance.filters.validator import FilterValidator
from aumos_resource_governance.policies.model import (
    ActionSpec,
    FlatFilter,
    Policy,
    PolicyMode,
    PolicyStatus,
)
from aumos_resource_governance.resources.registry import SchemaRegistry, default_registry
from aumos_resource_governance.timestamps import coerce_datetime

logger = logging.getLogger(__name__)


class PolicyParser:
    """Parses policy documents into :class:`Policy` objects.

    Unknown keys are ignored so that documents written for newer versions
    still load.  Resource type aliases are resolved to catalog keys; an
    unknown resource type is kept verbatim and reported by
    :func:`validate_policy`.

    Parameters
    ----------
    registry:
        Registry used to resolve resource type aliases.
    """

    def __init__(self, registry: SchemaRegistry | None = None) -> None:
        self._registry = registry or default_registry()

    def parse(self, path: str | Path) -> list[Policy]:
        """Parse a YAML or JSON policy file.

        Raises
        ------
        FileNotFoundError
            If the file does not exist.
        ValidationError
            If the document is structurally invalid.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Policy file not found: {path}")
        with path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)
        policies = self._parse_document(raw)
        logger.info("Loaded %d policies from %s", len(policies), path)
        return policies

    def parse_string(self, content: str) -> list[Policy]:
        """Parse YAML or JSON text directly."""
        return self._parse_document(yaml.safe_load(content))

    def parse_dict(self, raw: Mapping[str, object]) -> Policy:
        """Parse a single policy mapping."""
        return self._parse_policy(raw)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _parse_document(self, raw: object) -> list[Policy]:
        if raw is None:
            return []
        if isinstance(raw, Mapping):
            if "policies" in raw:
                entries = raw.get("policies") or []
            else:
                entries = [raw]
        elif isinstance(raw, list):
            entries = raw
        else:
            raise ValidationError("Invalid policy document", [f"expected a mapping or list, got {type(raw).__name__}"])
        if not isinstance(entries, list):
            raise ValidationError("Invalid policy document", ["'policies' must be a list"])
        return [self._parse_policy(entry) for entry in entries]

    def _parse_policy(self, raw: object) -> Policy:
        if not isinstance(raw, Mapping):
            raise ValidationError("Invalid policy", [f"policy entry must be a mapping, got {type(raw).__name__}"])
        name = str(raw.get("name", "") or "")
        raw_type = str(raw.get("resource_type", raw.get("resource", "")) or "")
        resource_type = self._registry.canonical_type(raw_type) or raw_type

        expression = None
        raw_filter = raw.get("filter")
        if raw_filter:
            try:
                expression = expression_from_dict(raw_filter)  # type: ignore[arg-type]
            except ValidationError as exc:
                raise ValidationError(f"Policy '{name}' has an invalid filter", exc.problems) from exc

        status_raw = str(raw.get("status", PolicyStatus.ACTIVE.value)).lower()
        try:
            status = PolicyStatus(status_raw)
        except ValueError:
            logger.warning("Policy '%s' has unknown status '%s'; treating as inactive.", name, status_raw)
            status = PolicyStatus.INACTIVE

        return Policy(
            name=name,
            resource_type=resource_type,
            description=str(raw.get("description", "") or ""),
            filter=expression,
            filters=[_parse_flat_filter(name, entry) for entry in _as_list(raw.get("filters"))],
            actions=[_parse_action(name, entry) for entry in _as_list(raw.get("actions"))],
            mode=_parse_mode(raw.get("mode")),
            status=status,
            tags=[str(tag) for tag in _as_list(raw.get("tags"))],
            metadata=dict(raw.get("metadata") or {}),  # type: ignore[arg-type]
            created_at=coerce_datetime(raw.get("created_at")),
            updated_at=coerce_datetime(raw.get("updated_at")),
            created_by=str(raw.get("created_by", "") or ""),
            version=int(raw.get("version", 0) or 0),  # type: ignore[arg-type]
            last_run=coerce_datetime(raw.get("last_run")),
            run_count=int(raw.get("run_count", 0) or 0),  # type: ignore[arg-type]
            source=str(raw.get("source", "") or ""),
            template_id=str(raw.get("template_id", "") or ""),
        )


def _as_list(value: object) -> list[object]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _parse_flat_filter(policy_name: str, raw: object) -> FlatFilter:
    if not isinstance(raw, Mapping) or not raw.get("type"):
        raise ValidationError(f"Policy '{policy_name}' has an invalid filter entry", [f"{raw!r} has no 'type'"])
    return FlatFilter(
        type=str(raw["type"]).lower(),
        value=raw.get("value"),
        key=str(raw.get("key", "") or ""),
        op=str(raw.get("op", raw.get("operator", "eq")) or "eq"),
        required=bool(raw.get("required", False)),
        negate=bool(raw.get("negate", False)),
    )


def _parse_action(policy_name: str, raw: object) -> ActionSpec:
    if isinstance(raw, str):
        return ActionSpec(type=raw.lower())
    if not isinstance(raw, Mapping) or not raw.get("type"):
        raise ValidationError(f"Policy '{policy_name}' has an invalid action", [f"{raw!r} has no 'type'"])
    return ActionSpec(
        type=str(raw["type"]).lower(),
        settings=dict(raw.get("settings") or {}),  # type: ignore[arg-type]
        dry_run=bool(raw.get("dry_run", False)),
    )


def _parse_mode(raw: object) -> PolicyMode:
    if isinstance(raw, str):
        return PolicyMode(type=raw)
    if not isinstance(raw, Mapping):
        return PolicyMode()
    return PolicyMode(
        type=str(raw.get("type", "pull") or "pull"),
        schedule=raw.get("schedule"),  # type: ignore[arg-type]
        settings=dict(raw.get("settings") or {}),  # type: ignore[arg-type]
    )


def validate_policy(policy: Policy, registry: SchemaRegistry | None = None) -> list[str]:
    """Return the authoring-time problems of *policy*; empty when valid.

    Checks the name, the resource type, that every action is supported by
    the resource type, and the filter (the rich expression, or the
    expression the flat filters translate to).
    """
    from aumos_resource_governance.execution.translation import flat_filters_to_expression

    registry = registry or default_registry()
    problems: list[str] = []
    if not policy.name.strip():
        problems.append("policy name is required")

    resource_type = registry.canonical_type(policy.resource_type) if policy.resource_type else None
    if resource_type is None:
        problems.append(f"unknown resource type: {policy.resource_type or '<missing>'}")
        return problems

    for action in policy.actions:
        if not registry.supports_action(resource_type, action.type):
            problems.append(f"action '{action.type}' is not supported for resource type '{resource_type}'")

    validator = FilterValidator(registry)
    if policy.filter is not None:
        problems.extend(validator.validate(policy.filter, resource_type))
    elif policy.filters:
        try:
            expression = flat_filters_to_expression(resource_type, policy.filters)
        except ValidationError as exc:
            problems.extend(exc.problems)
        else:
            problems.extend(validator.validate(expression, resource_type))
    return problems
