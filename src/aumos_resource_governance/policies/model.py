"""Policy data model.

A :class:`Policy` names a resource type, selects resources either with a
rich :class:`~aumos_resource_governance.filters.expression.FilterExpression`
or with a list of flat :class:`FlatFilter` triples, and lists the
:class:`ActionSpec` entries to apply to matches.

Policies are owned by a policy store.  The execution engine only updates
the run statistics (``last_run``, ``run_count``, ``updated_at``) and hands
the policy back to the store for persistence.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from aumos_resource_governance.filters.expression import FilterExpression, expression_to_dict


class PolicyStatus(str, Enum):
    """Lifecycle status of a stored policy."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    DRAFT = "draft"


@dataclass(frozen=True)
class FlatFilter:
    """A simple ``type key op value`` filter triple.

    Attributes
    ----------
    type:
        Filter kind understood by the provider translation
        (``instance-state``, ``tag``, ``cpu-utilization`` ...).
    key:
        Optional key, used by tag filters.
    value:
        Filter value.
    op:
        Comparison operator name; defaults to ``eq``.
    required:
        Informational flag carried from authored documents.
    negate:
        Invert the condition.
    """

    type: str
    value: object = None
    key: str = ""
    op: str = "eq"
    required: bool = False
    negate: bool = False

    def to_dict(self) -> dict[str, object]:
        out: dict[str, object] = {"type": self.type, "value": self.value, "op": self.op}
        if self.key:
            out["key"] = self.key
        if self.required:
            out["required"] = True
        if self.negate:
            out["negate"] = True
        return out


@dataclass(frozen=True)
class ActionSpec:
    """An action to apply to every matched resource."""

    type: str
    settings: dict[str, object] = field(default_factory=dict, hash=False)
    dry_run: bool = False

    def to_dict(self) -> dict[str, object]:
        return {"type": self.type, "settings": dict(self.settings), "dry_run": self.dry_run}


@dataclass(frozen=True)
class PolicyMode:
    """How the policy is triggered; only ``pull`` (on demand) is executed."""

    type: str = "pull"
    schedule: str | None = None
    settings: dict[str, object] = field(default_factory=dict, hash=False)

    def to_dict(self) -> dict[str, object]:
        return {"type": self.type, "schedule": self.schedule, "settings": dict(self.settings)}


@dataclass
class Policy:
    """A named governance rule.

    Attributes
    ----------
    name:
        Unique policy name.
    resource_type:
        Canonical resource type key.
    filter:
        Rich filter expression; takes precedence over *filters*.
    filters:
        Flat filter triples, used when *filter* is ``None``.
    actions:
        Ordered actions to apply to matches.
    """

    name: str
    resource_type: str
    description: str = ""
    filter: FilterExpression | None = None
    filters: list[FlatFilter] = field(default_factory=list)
    actions: list[ActionSpec] = field(default_factory=list)
    mode: PolicyMode = field(default_factory=PolicyMode)
    status: PolicyStatus = PolicyStatus.ACTIVE
    tags: list[str] = field(default_factory=list)
    metadata: dict[str, object] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    created_by: str = ""
    version: int = 0
    last_run: datetime | None = None
    run_count: int = 0
    source: str = ""
    template_id: str = ""

    @property
    def is_active(self) -> bool:
        return self.status is PolicyStatus.ACTIVE

    @property
    def uses_expression(self) -> bool:
        """``True`` when the rich filter expression drives matching."""
        return self.filter is not None

    def to_dict(self) -> dict[str, object]:
        """Serialise to the policy document form accepted by the parser."""
        out: dict[str, object] = {
            "name": self.name,
            "resource_type": self.resource_type,
            "description": self.description,
            "actions": [action.to_dict() for action in self.actions],
            "mode": self.mode.to_dict(),
            "status": self.status.value,
            "run_count": self.run_count,
            "version": self.version,
        }
        if self.filter is not None:
            out["filter"] = expression_to_dict(self.filter)
        if self.filters:
            out["filters"] = [flat.to_dict() for flat in self.filters]
        if self.tags:
            out["tags"] = list(self.tags)
        if self.metadata:
            out["metadata"] = dict(self.metadata)
        for name in ("created_at", "updated_at", "last_run"):
            moment = getattr(self, name)
            if moment is not None:
                out[name] = moment.isoformat()
        for name in ("created_by", "source", "template_id"):
            if getattr(self, name):
                out[name] = getattr(self, name)
        return out
