"""Collaborator interfaces consumed by the execution engine.

The engine never talks to a cloud API directly.  It fetches candidates
from a :class:`ResourceProvider`, optionally enriches them through a
:class:`MetricsProvider`, and dispatches mutations through an
:class:`ActionExecutor`.  Concrete cloud clients live outside this
package; :mod:`aumos_resource_governance.execution.offline` ships
in-memory implementations for tests and offline runs.

Provider query shapes
---------------------
Each resource type has a small query dataclass (``InstanceQuery``,
``BucketQuery`` ...) that a provider may use to narrow its fetch.  A query
is only ever a superset of what the policy filter selects: the engine
still evaluates the filter on every returned record, so a provider that
ignores the query entirely stays correct.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import ClassVar, Union

from aumos_resource_governance.resources.records import ResourceRecord

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Provider query shapes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResourceQuery:
    """Fields shared by every query shape.

    Attributes
    ----------
    tag_keys:
        Tag keys a resource must carry.
    """

    resource_type: ClassVar[str] = ""

    tag_keys: tuple[str, ...] = ()

    def admits(self, record: ResourceRecord) -> bool:
        """Return ``False`` only when *record* certainly falls outside the query.

        Attributes the record does not report never exclude it, since
        metrics may be merged in after the fetch.
        """
        if self.tag_keys:
            tags = record.get("tags")
            if isinstance(tags, Mapping):
                present = {str(key).casefold() for key in tags}
                if any(key.casefold() not in present for key in self.tag_keys):
                    return False
        return True


def _excluded(record: ResourceRecord, name: str, allowed: tuple[str, ...]) -> bool:
    if not allowed:
        return False
    value = record.get(name)
    if value is None:
        return False
    return str(value).casefold() not in {item.casefold() for item in allowed}


def _number(record: ResourceRecord, name: str) -> float | None:
    value = record.get(name)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


@dataclass(frozen=True)
class InstanceQuery(ResourceQuery):
    resource_type: ClassVar[str] = "ec2"

    states: tuple[str, ...] = ()
    instance_types: tuple[str, ...] = ()
    vpc_ids: tuple[str, ...] = ()
    cpu_below: float | None = None
    min_running_days: int | None = None

    def admits(self, record: ResourceRecord) -> bool:
        if not super().admits(record):
            return False
        if _excluded(record, "state", self.states):
            return False
        if _excluded(record, "instance_type", self.instance_types):
            return False
        if _excluded(record, "vpc_id", self.vpc_ids):
            return False
        cpu = _number(record, "cpu_utilization")
        if self.cpu_below is not None and cpu is not None and cpu >= self.cpu_below:
            return False
        days = _number(record, "running_days")
        if self.min_running_days is not None and days is not None and days < self.min_running_days:
            return False
        return True


@dataclass(frozen=True)
class BucketQuery(ResourceQuery):
    resource_type: ClassVar[str] = "s3"

    public_only: bool = False
    unencrypted_only: bool = False
    min_size_bytes: int | None = None

    def admits(self, record: ResourceRecord) -> bool:
        if not super().admits(record):
            return False
        if self.public_only:
            flags = [
                record.get(name)
                for name in ("public_read_acl", "public_write_acl", "public_read_policy", "public_write_policy")
            ]
            if all(flag is False for flag in flags):
                return False
        if self.unencrypted_only and record.get("encrypted") is True:
            return False
        size = _number(record, "size_bytes")
        if self.min_size_bytes is not None and size is not None and size < self.min_size_bytes:
            return False
        return True


@dataclass(frozen=True)
class DatabaseQuery(ResourceQuery):
    resource_type: ClassVar[str] = "rds"

    statuses: tuple[str, ...] = ()
    engines: tuple[str, ...] = ()

    def admits(self, record: ResourceRecord) -> bool:
        return (
            super().admits(record)
            and not _excluded(record, "db_instance_status", self.statuses)
            and not _excluded(record, "engine", self.engines)
        )


@dataclass(frozen=True)
class FunctionQuery(ResourceQuery):
    resource_type: ClassVar[str] = "lambda"

    runtimes: tuple[str, ...] = ()

    def admits(self, record: ResourceRecord) -> bool:
        return super().admits(record) and not _excluded(record, "runtime", self.runtimes)


@dataclass(frozen=True)
class VolumeQuery(ResourceQuery):
    resource_type: ClassVar[str] = "ebs"

    states: tuple[str, ...] = ()
    unencrypted_only: bool = False

    def admits(self, record: ResourceRecord) -> bool:
        if not super().admits(record) or _excluded(record, "state", self.states):
            return False
        return not (self.unencrypted_only and record.get("encrypted") is True)


@dataclass(frozen=True)
class RoleQuery(ResourceQuery):
    resource_type: ClassVar[str] = "iam-role"


ProviderQuery = Union[InstanceQuery, BucketQuery, DatabaseQuery, FunctionQuery, VolumeQuery, RoleQuery]

QUERY_TYPES: dict[str, type[ResourceQuery]] = {
    query_type.resource_type: query_type
    for query_type in (InstanceQuery, BucketQuery, DatabaseQuery, FunctionQuery, VolumeQuery, RoleQuery)
}


# ---------------------------------------------------------------------------
# Action outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResourceOutcome:
    """Result of an action on a single resource as reported by an executor."""

    resource_id: str
    success: bool = True
    message: str = ""
    previous_state: str | None = None
    current_state: str | None = None
    details: Mapping[str, object] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "details", MappingProxyType(dict(self.details)))


@dataclass(frozen=True)
class ActionOutcome:
    """Result of one executor call covering a batch of resources.

    ``dry_run`` is ``True`` when the executor synthesised the outcome
    instead of mutating anything.
    """

    action: str
    resource_type: str
    outcomes: tuple[ResourceOutcome, ...] = ()
    dry_run: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "outcomes", tuple(self.outcomes))

    @property
    def success(self) -> bool:
        return all(outcome.success for outcome in self.outcomes)


# ---------------------------------------------------------------------------
# Interfaces
# ---------------------------------------------------------------------------


class ResourceProvider(ABC):
    """Source of resource records."""

    @abstractmethod
    def list_resources(self, resource_type: str, query: ResourceQuery | None = None) -> Sequence[ResourceRecord]:
        """Return the records of *resource_type*, optionally narrowed by *query*.

        Raises
        ------
        ProviderError
            When the inventory cannot be fetched.
        """

    def supports(self, resource_type: str) -> bool:
        """Return ``True`` when this provider can list *resource_type*."""
        return True


class ActionExecutor(ABC):
    """Performs mutating actions, one operation per resource type and action."""

    @abstractmethod
    def execute(
        self,
        resource_type: str,
        action: str,
        resource_ids: Sequence[str],
        settings: Mapping[str, object],
        dry_run: bool,
    ) -> ActionOutcome:
        """Apply *action* to *resource_ids*.

        When *dry_run* is set the executor must not mutate anything and
        must return an outcome with ``dry_run=True``.

        Raises
        ------
        ActionError
            When the call fails as a whole.
        """

    def supports(self, resource_type: str, action: str) -> bool:
        return True


class MetricsProvider(ABC):
    """Supplies utilisation and cost figures that providers do not report."""

    @abstractmethod
    def metrics_for(self, resource_type: str, record: ResourceRecord) -> Mapping[str, object]:
        """Return extra attributes for *record*, e.g. ``cpu_utilization``."""
