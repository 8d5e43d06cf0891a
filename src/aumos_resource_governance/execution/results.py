"""Immutable records produced by policy runs and scans.

Every type here is a frozen dataclass created once at the end of a run and
handed to the caller; report renderers consume them through ``to_dict``.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from types import MappingProxyType


@dataclass(frozen=True)
class ActionResult:
    """Outcome of one action applied to one resource.

    A failed batch that never reached individual resources is recorded
    with an empty ``resource_id``.
    """

    action: str
    resource_id: str
    resource_type: str
    success: bool
    dry_run: bool
    message: str = ""
    details: Mapping[str, object] = field(default_factory=dict, hash=False)
    timestamp: datetime | None = None
    duration: timedelta = timedelta(0)

    def __post_init__(self) -> None:
        object.__setattr__(self, "details", MappingProxyType(dict(self.details)))

    def to_dict(self) -> dict[str, object]:
        return {
            "action": self.action,
            "resource_id": self.resource_id,
            "resource_type": self.resource_type,
            "success": self.success,
            "dry_run": self.dry_run,
            "message": self.message,
            "details": dict(self.details),
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "duration_seconds": self.duration.total_seconds(),
        }


@dataclass(frozen=True)
class SkippedAction:
    """An action that was not dispatched, for example a declined confirmation."""

    action: str
    resource_count: int
    reason: str

    def to_dict(self) -> dict[str, object]:
        return {"action": self.action, "resource_count": self.resource_count, "reason": self.reason}


@dataclass(frozen=True)
class ExecutionSummary:
    """Aggregate counts over the action results of one run.

    Attributes
    ----------
    total_actions:
        Number of recorded action results.  Skipped actions produce no
        results and are counted separately in *skipped_actions*.
    resources_modified:
        Successful results that were not dry runs.
    estimated_monthly_savings:
        Sum of the flat per-action savings estimate over all results.
    """

    total_actions: int = 0
    successful_actions: int = 0
    failed_actions: int = 0
    resources_modified: int = 0
    estimated_monthly_savings: float = 0.0
    security_improvements: int = 0
    skipped_actions: int = 0

    @classmethod
    def from_results(
        cls,
        results: Iterable[ActionResult],
        savings_per_action: Mapping[str, float],
        security_actions: Iterable[str],
        skipped: int = 0,
    ) -> "ExecutionSummary":
        security = frozenset(security_actions)
        total = successful = failed = modified = improvements = 0
        savings = 0.0
        for result in results:
            total += 1
            if result.success:
                successful += 1
                if not result.dry_run:
                    modified += 1
            else:
                failed += 1
            savings += savings_per_action.get(result.action, 0.0)
            if result.action in security:
                improvements += 1
        return cls(
            total_actions=total,
            successful_actions=successful,
            failed_actions=failed,
            resources_modified=modified,
            estimated_monthly_savings=savings,
            security_improvements=improvements,
            skipped_actions=skipped,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "total_actions": self.total_actions,
            "successful_actions": self.successful_actions,
            "failed_actions": self.failed_actions,
            "resources_modified": self.resources_modified,
            "estimated_monthly_savings": self.estimated_monthly_savings,
            "security_improvements": self.security_improvements,
            "skipped_actions": self.skipped_actions,
        }


@dataclass(frozen=True)
class CostImpact:
    """Heuristic cost figures for one run.

    ``annual_savings`` is always ``monthly_savings * 12``.
    """

    previous_monthly_cost: float = 0.0
    new_monthly_cost: float = 0.0
    monthly_savings: float = 0.0
    annual_savings: float = 0.0
    currency: str = "USD"

    @classmethod
    def compute(cls, previous_monthly_cost: float, summary: ExecutionSummary, currency: str = "USD") -> "CostImpact":
        """Derive the impact of a run from its summary.

        Savings only count when the run actually modified resources.
        """
        if summary.resources_modified <= 0:
            return cls(
                previous_monthly_cost=previous_monthly_cost,
                new_monthly_cost=previous_monthly_cost,
                currency=currency,
            )
        monthly = summary.estimated_monthly_savings
        return cls(
            previous_monthly_cost=previous_monthly_cost,
            new_monthly_cost=previous_monthly_cost - monthly,
            monthly_savings=monthly,
            annual_savings=monthly * 12,
            currency=currency,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "previous_monthly_cost": self.previous_monthly_cost,
            "new_monthly_cost": self.new_monthly_cost,
            "monthly_savings": self.monthly_savings,
            "annual_savings": self.annual_savings,
            "currency": self.currency,
        }


@dataclass(frozen=True)
class ExecutionResult:
    """Complete record of one policy run."""

    policy_name: str
    resource_type: str
    dry_run: bool
    start_time: datetime
    end_time: datetime
    success: bool
    resources_found: int = 0
    resources_matched: int = 0
    action_results: tuple[ActionResult, ...] = ()
    errors: tuple[str, ...] = ()
    skipped_actions: tuple[SkippedAction, ...] = ()
    summary: ExecutionSummary = field(default_factory=ExecutionSummary)
    cost_impact: CostImpact = field(default_factory=CostImpact)

    def __post_init__(self) -> None:
        object.__setattr__(self, "action_results", tuple(self.action_results))
        object.__setattr__(self, "errors", tuple(self.errors))
        object.__setattr__(self, "skipped_actions", tuple(self.skipped_actions))

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time

    @property
    def actions_executed(self) -> int:
        """Number of successful results that were not dry runs."""
        return self.summary.resources_modified

    def to_dict(self) -> dict[str, object]:
        return {
            "policy_name": self.policy_name,
            "resource_type": self.resource_type,
            "dry_run": self.dry_run,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration_seconds": self.duration.total_seconds(),
            "success": self.success,
            "resources_found": self.resources_found,
            "resources_matched": self.resources_matched,
            "actions_executed": self.actions_executed,
            "action_results": [result.to_dict() for result in self.action_results],
            "errors": list(self.errors),
            "skipped_actions": [skipped.to_dict() for skipped in self.skipped_actions],
            "summary": self.summary.to_dict(),
            "cost_impact": self.cost_impact.to_dict(),
        }


@dataclass(frozen=True)
class PlannedAction:
    """An action a scan would dispatch, with its safety classification."""

    action: str
    resource_ids: tuple[str, ...]
    destructive: bool
    reversible: bool
    supported: bool = True
    estimated_monthly_savings: float = 0.0
    security_improvement: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "resource_ids", tuple(self.resource_ids))

    def to_dict(self) -> dict[str, object]:
        return {
            "action": self.action,
            "resource_ids": list(self.resource_ids),
            "destructive": self.destructive,
            "reversible": self.reversible,
            "supported": self.supported,
            "estimated_monthly_savings": self.estimated_monthly_savings,
            "security_improvement": self.security_improvement,
        }


@dataclass(frozen=True)
class ScanResult:
    """Outcome of a planning pass: what a run would touch, without touching it."""

    policy_name: str
    resource_type: str
    scanned_at: datetime
    resources_found: int = 0
    matched_resource_ids: tuple[str, ...] = ()
    planned_actions: tuple[PlannedAction, ...] = ()
    errors: tuple[str, ...] = ()
    current_monthly_cost: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "matched_resource_ids", tuple(self.matched_resource_ids))
        object.__setattr__(self, "planned_actions", tuple(self.planned_actions))
        object.__setattr__(self, "errors", tuple(self.errors))

    @property
    def resources_matched(self) -> int:
        return len(self.matched_resource_ids)

    @property
    def estimated_monthly_savings(self) -> float:
        return sum(planned.estimated_monthly_savings for planned in self.planned_actions)

    @property
    def has_destructive_actions(self) -> bool:
        return any(planned.destructive for planned in self.planned_actions)

    def to_dict(self) -> dict[str, object]:
        return {
            "policy_name": self.policy_name,
            "resource_type": self.resource_type,
            "scanned_at": self.scanned_at.isoformat(),
            "resources_found": self.resources_found,
            "resources_matched": self.resources_matched,
            "matched_resource_ids": list(self.matched_resource_ids),
            "planned_actions": [planned.to_dict() for planned in self.planned_actions],
            "errors": list(self.errors),
            "current_monthly_cost": self.current_monthly_cost,
            "estimated_monthly_savings": self.estimated_monthly_savings,
        }
