"""Translation of flat filter triples.

Policies may select resources with a list of flat ``type op value``
triples instead of a filter expression.  The engine translates those
triples twice:

- into the provider's query shape, so the provider can narrow its fetch;
- into an equivalent AND expression, evaluated locally like any rich
  filter.

Example
-------
>>> from aumos_resource_governance.policies.model import FlatFilter
>>> flat = [FlatFilter("instance-state", "running"), FlatFilter("cpu-utilization", 5, op="lt")]
>>> flat_filters_to_query("ec2", flat)
InstanceQuery(tag_keys=(), states=('running',), instance_types=(), vpc_ids=(), cpu_below=5.0, min_running_days=None)
"""
from __future__ import annotations

import logging
from collections.abc import Sequence

from aumos_resource_governance.errors import ValidationError
from aumos_resource_governance.execution.providers import (
    BucketQuery,
    DatabaseQuery,
    FunctionQuery,
    InstanceQuery,
    ResourceQuery,
    RoleQuery,
    VolumeQuery,
)
from aumos_resource_governance.filters.expression import And, FilterExpression, Leaf, Not, Operator, Or
from aumos_resource_governance.policies.model import FlatFilter
from aumos_resource_governance.resources.registry import default_registry

logger = logging.getLogger(__name__)

_PUBLIC_READ = ("public_read_acl", "public_read_policy")
_PUBLIC_WRITE = ("public_write_acl", "public_write_policy")

# flat filter type -> field(s); several fields are OR'd together
_COMMON_FIELDS: dict[str, tuple[str, ...]] = {
    "age": ("age_days",),
    "tag-count": ("tag_count",),
    "monthly-cost": ("monthly_cost",),
    "cost": ("monthly_cost",),
}

_FIELD_MAPS: dict[str, dict[str, tuple[str, ...]]] = {
    "ec2": {
        "instance-state": ("state",),
        "state": ("state",),
        "instance-type": ("instance_type",),
        "vpc-id": ("vpc_id",),
        "subnet-id": ("subnet_id",),
        "cpu-utilization": ("cpu_utilization",),
        "cpu-utilization-avg": ("cpu_utilization",),
        "running-days": ("running_days",),
        "public-ip": ("public_ip",),
    },
    "s3": {
        "public-read": _PUBLIC_READ,
        "public-write": _PUBLIC_WRITE,
        "public-access": _PUBLIC_READ + _PUBLIC_WRITE,
        "encryption": ("encrypted",),
        "size": ("size_bytes",),
        "security-score": ("security_score",),
    },
    "rds": {
        "state": ("db_instance_status",),
        "status": ("db_instance_status",),
        "engine": ("engine",),
        "instance-class": ("db_instance_class",),
        "backup-retention-period": ("backup_retention_period",),
        "multi-az": ("multi_az",),
        "encryption": ("storage_encrypted",),
        "public-access": ("publicly_accessible",),
        "cpu-utilization": ("cpu_utilization",),
        "connections": ("database_connections",),
    },
    "lambda": {
        "runtime": ("runtime",),
        "memory-size": ("memory_size",),
        "timeout": ("timeout",),
        "last-invocation-days": ("days_since_last_invocation",),
        "vpc-config": ("vpc_config",),
    },
    "ebs": {
        "state": ("state",),
        "volume-type": ("volume_type",),
        "encryption": ("encrypted",),
        "size": ("size",),
        "unused-days": ("unused_days",),
        "attachment-state": ("attachment_state",),
    },
    "iam-role": {
        "never-used": ("never_used",),
        "last-used-days": ("days_since_last_used",),
        "admin-access": ("has_admin_access",),
        "cross-account": ("allows_cross_account",),
    },
}

_NARROWING_OPERATORS = frozenset({Operator.EQ, Operator.IN})


# ---------------------------------------------------------------------------
# Expression translation
# ---------------------------------------------------------------------------


def fields_for(resource_type: str, flat_type: str) -> tuple[str, ...] | None:
    """Return the record field(s) a flat filter type maps to, or ``None``.

    A flat type that spells a catalog field name with hyphens
    (``backup-window`` for ``backup_window``) maps to that field.
    """
    mapped = _FIELD_MAPS.get(resource_type, {}).get(flat_type) or _COMMON_FIELDS.get(flat_type)
    if mapped:
        return mapped
    candidate = flat_type.replace("-", "_")
    if default_registry().field_of(resource_type, candidate) is not None:
        return (candidate,)
    return None


def flat_filter_to_expression(resource_type: str, flat: FlatFilter) -> FilterExpression:
    """Translate a single flat filter into an expression node.

    Raises
    ------
    ValidationError
        When the flat filter type is unknown for *resource_type*, a tag
        filter has no key, or the operator is not recognised.
    """
    operator = Operator.parse(flat.op or "eq")
    node: FilterExpression
    if flat.type in ("tag", "tag-missing"):
        if not flat.key:
            raise ValidationError("Invalid flat filter", [f"filter type '{flat.type}' requires a key"])
        path = f"tags.{flat.key}"
        if flat.type == "tag-missing":
            node = Leaf(path, Operator.NOT_EXISTS)
        elif flat.value is None and operator in (Operator.EQ, Operator.EXISTS):
            node = Leaf(path, Operator.EXISTS)
        else:
            node = Leaf(path, operator, flat.value)
    else:
        fields = fields_for(resource_type, flat.type)
        if fields is None:
            raise ValidationError(
                "Invalid flat filter",
                [f"filter type '{flat.type}' is not supported for resource type '{resource_type}'"],
            )
        if len(fields) == 1:
            node = Leaf(fields[0], operator, flat.value)
        elif operator is Operator.EQ and flat.value is False:
            # "not public" means no grant is set, not "some grant is unset"
            node = Not(Or(tuple(Leaf(name, Operator.EQ, True) for name in fields)))
        else:
            node = Or(tuple(Leaf(name, operator, flat.value) for name in fields))
    return Not(node) if flat.negate else node


def flat_filters_to_expression(resource_type: str, filters: Sequence[FlatFilter]) -> FilterExpression:
    """Translate flat filters into the equivalent AND expression.

    An empty filter list yields ``And(())``, which matches every record.
    """
    return And(tuple(flat_filter_to_expression(resource_type, flat) for flat in filters))


# ---------------------------------------------------------------------------
# Provider query translation
# ---------------------------------------------------------------------------


def _narrowing_values(flat: FlatFilter) -> tuple[str, ...]:
    if flat.negate or Operator.parse(flat.op or "eq") not in _NARROWING_OPERATORS:
        return ()
    values = flat.value if isinstance(flat.value, (list, tuple)) else [flat.value]
    return tuple(str(value) for value in values if isinstance(value, str))


def _requires_tag(flat: FlatFilter) -> bool:
    if flat.negate:
        return False
    operator = Operator.parse(flat.op or "eq")
    if flat.value is None:
        return operator in (Operator.EQ, Operator.EXISTS)
    return operator in _NARROWING_OPERATORS or operator is Operator.EXISTS


def _number(flat: FlatFilter) -> float | None:
    if isinstance(flat.value, bool) or not isinstance(flat.value, (int, float)):
        return None
    return float(flat.value)


def flat_filters_to_query(resource_type: str, filters: Sequence[FlatFilter]) -> ResourceQuery | None:
    """Build the provider query shape for *filters*.

    Only filters that can narrow the fetch safely contribute; negated
    filters and ordering on unrelated fields are left to local
    evaluation.  Returns ``None`` for resource types without a query
    shape.
    """
    tag_keys = tuple(flat.key for flat in filters if flat.type == "tag" and flat.key and _requires_tag(flat))

    def collect(*types: str) -> tuple[str, ...]:
        out: list[str] = []
        for flat in filters:
            if flat.type in types:
                out.extend(_narrowing_values(flat))
        return tuple(out)

    def bound(flat_type: str, operators: frozenset[Operator]) -> float | None:
        for flat in filters:
            if flat.type == flat_type and not flat.negate and Operator.parse(flat.op or "eq") in operators:
                return _number(flat)
        return None

    def flag(flat_types: tuple[str, ...], value: bool) -> bool:
        return any(
            flat.type in flat_types
            and not flat.negate
            and Operator.parse(flat.op or "eq") is Operator.EQ
            and flat.value is value
            for flat in filters
        )

    below = frozenset({Operator.LT})
    above = frozenset({Operator.GT, Operator.GTE})

    match resource_type:
        case "ec2":
            cpu = bound("cpu-utilization", below)
            if cpu is None:
                cpu = bound("cpu-utilization-avg", below)
            days = bound("running-days", above)
            return InstanceQuery(
                tag_keys=tag_keys,
                states=collect("instance-state", "state"),
                instance_types=collect("instance-type"),
                vpc_ids=collect("vpc-id"),
                cpu_below=cpu,
                min_running_days=int(days) if days is not None else None,
            )
        case "s3":
            size = bound("size", above)
            return BucketQuery(
                tag_keys=tag_keys,
                public_only=flag(("public-read", "public-write", "public-access"), True),
                unencrypted_only=flag(("encryption",), False),
                min_size_bytes=int(size) if size is not None else None,
            )
        case "rds":
            return DatabaseQuery(tag_keys=tag_keys, statuses=collect("state", "status"), engines=collect("engine"))
        case "lambda":
            return FunctionQuery(tag_keys=tag_keys, runtimes=collect("runtime"))
        case "ebs":
            return VolumeQuery(
                tag_keys=tag_keys,
                states=collect("state"),
                unencrypted_only=flag(("encryption",), False),
            )
        case "iam-role":
            return RoleQuery(tag_keys=tag_keys)
    logger.debug("No provider query shape for resource type %s", resource_type)
    return None
