"""Action catalogue: safety classes, savings heuristics and outcome translation.

Cost figures are flat per-action estimates and only illustrative.  The
state transitions below are what a dry run reports for actions that
change a resource's lifecycle state.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timedelta

from aumos_resource_governance.execution.providers import ActionOutcome, ResourceOutcome
from aumos_resource_governance.execution.results import ActionResult

DESTRUCTIVE_ACTIONS: frozenset[str] = frozenset({"stop", "terminate", "delete"})
IRREVERSIBLE_ACTIONS: frozenset[str] = frozenset({"terminate", "delete"})
SECURITY_ACTIONS: frozenset[str] = frozenset(
    {"block-public-access", "enable-encryption", "encrypt", "enable-versioning"}
)
DEFAULT_SAVINGS_PER_ACTION: dict[str, float] = {"stop": 50.0, "terminate": 50.0, "delete": 5.0}

# action -> (assumed previous state, reported state) per resource type
SIMULATED_TRANSITIONS: dict[str, dict[str, tuple[str, str]]] = {
    "ec2": {
        "stop": ("running", "stopping"),
        "start": ("running", "pending"),
        "terminate": ("running", "shutting-down"),
        "reboot": ("running", "rebooting"),
    },
    "rds": {
        "stop": ("available", "stopping"),
        "start": ("stopped", "starting"),
        "reboot": ("available", "rebooting"),
        "delete": ("available", "deleting"),
    },
    "ebs": {
        "delete": ("available", "deleting"),
        "detach": ("in-use", "detaching"),
    },
}


def is_destructive(action: str, destructive_actions: Iterable[str] = DESTRUCTIVE_ACTIONS) -> bool:
    return action in frozenset(destructive_actions)


def is_reversible(action: str) -> bool:
    return action not in IRREVERSIBLE_ACTIONS


def simulate_outcome(resource_type: str, action: str, resource_ids: Sequence[str]) -> ActionOutcome:
    """Build the synthetic, non-mutating outcome of a dry run.

    Lifecycle actions report a simulated state transition; every other
    action reports what it would have done.
    """
    transition = SIMULATED_TRANSITIONS.get(resource_type, {}).get(action)
    outcomes = []
    for resource_id in resource_ids:
        if transition is not None:
            previous, current = transition
            outcomes.append(
                ResourceOutcome(
                    resource_id=resource_id,
                    message=f"would {action}",
                    previous_state=previous,
                    current_state=current,
                )
            )
        else:
            outcomes.append(ResourceOutcome(resource_id=resource_id, message=f"would {action}"))
    return ActionOutcome(action=action, resource_type=resource_type, outcomes=tuple(outcomes), dry_run=True)


def outcome_to_results(
    outcome: ActionOutcome,
    started_at: datetime,
    finished_at: datetime,
) -> list[ActionResult]:
    """Translate an executor outcome into one :class:`ActionResult` per resource.

    Dry-run messages read ``"Would execute <action>"``; a resource
    outcome's own message is appended when it carries one.
    """
    elapsed = finished_at - started_at
    results = []
    for item in outcome.outcomes:
        results.append(
            ActionResult(
                action=outcome.action,
                resource_id=item.resource_id,
                resource_type=outcome.resource_type,
                success=item.success,
                dry_run=outcome.dry_run,
                message=_message(outcome.action, item, outcome.dry_run),
                details=_details(item),
                timestamp=finished_at,
                duration=elapsed,
            )
        )
    return results


def failure_results(
    resource_type: str,
    action: str,
    resource_ids: Sequence[str],
    error: Exception,
    dry_run: bool,
    started_at: datetime,
    finished_at: datetime,
) -> list[ActionResult]:
    """Record a failed executor call against every resource of the batch."""
    elapsed = finished_at - started_at
    ids = list(resource_ids) or [""]
    return [
        ActionResult(
            action=action,
            resource_id=resource_id,
            resource_type=resource_type,
            success=False,
            dry_run=dry_run,
            message=f"Failed: {error}",
            timestamp=finished_at,
            duration=elapsed,
        )
        for resource_id in ids
    ]


def unsupported_result(resource_type: str, action: str, dry_run: bool, now: datetime) -> ActionResult:
    return ActionResult(
        action=action,
        resource_id="",
        resource_type=resource_type,
        success=False,
        dry_run=dry_run,
        message=f"unsupported {resource_type} action: {action}",
        timestamp=now,
        duration=timedelta(0),
    )


def savings_for(action: str, resource_count: int, savings_per_action: Mapping[str, float]) -> float:
    return savings_per_action.get(action, 0.0) * resource_count


def _message(action: str, item: ResourceOutcome, dry_run: bool) -> str:
    if not item.success:
        return item.message or f"Action {action} failed"
    if dry_run:
        base = f"Would execute {action}"
        if item.message and item.message != f"would {action}":
            return f"{base}: {item.message}"
        return base
    return item.message or f"Action {action} completed"


def _details(item: ResourceOutcome) -> dict[str, object]:
    details = dict(item.details)
    if item.previous_state is not None:
        details["previous_state"] = item.previous_state
    if item.current_state is not None:
        details["current_state"] = item.current_state
    return details
