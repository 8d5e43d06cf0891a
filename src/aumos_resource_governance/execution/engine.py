"""Policy execution engine.

A run walks a fixed sequence of steps for one policy::

    fetch candidates -> filter matches -> for each action:
        confirm if destructive and live -> dispatch in batches -> record outcome
    -> aggregate summary and cost impact -> persist run statistics

Dry-run is the default posture.  In a dry run the executor is asked for a
synthetic outcome and nothing is mutated.  Destructive live actions need
a :class:`~aumos_resource_governance.execution.confirm.Confirmer` to say
yes; without one they are skipped.

Example
-------
>>> engine = PolicyExecutionEngine(store, provider, executor)
>>> result = engine.execute_policy("stop-idle-instances")
>>> result.summary.resources_modified
0
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from aumos_resource_governance.errors import (
    EvaluationError,
    GovernanceError,
    ProviderError,
    UnsupportedResourceTypeError,
    ValidationError,
)
from aumos_resource_governance.execution.actions import (
    DEFAULT_SAVINGS_PER_ACTION,
    DESTRUCTIVE_ACTIONS,
    SECURITY_ACTIONS,
    failure_results,
    is_reversible,
    outcome_to_results,
    savings_for,
    unsupported_result,
)
from aumos_resource_governance.execution.batching import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_POLL_INTERVAL_SECONDS,
    BatchError,
    process_in_batches,
    wait_for_state,
)
from aumos_resource_governance.execution.confirm import Confirmer
from aumos_resource_governance.execution.providers import (
    ActionExecutor,
    MetricsProvider,
    ResourceProvider,
    ResourceQuery,
)
from aumos_resource_governance.execution.results import (
    ActionResult,
    CostImpact,
    ExecutionResult,
    ExecutionSummary,
    PlannedAction,
    ScanResult,
    SkippedAction,
)
from aumos_resource_governance.execution.translation import flat_filters_to_expression, flat_filters_to_query
from aumos_resource_governance.filters.evaluator import FilterEvaluator
from aumos_resource_governance.filters.expression import And, FilterExpression
from aumos_resource_governance.policies.model import ActionSpec, Policy
from aumos_resource_governance.policies.parser import validate_policy
from aumos_resource_governance.policies.store import PolicyStore
from aumos_resource_governance.resources.records import ResourceRecord
from aumos_resource_governance.resources.registry import SchemaRegistry, default_registry
from aumos_resource_governance.timestamps import utc_now

if TYPE_CHECKING:
    from aumos_resource_governance.config import GovernanceConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutorConfig:
    """Engine settings; see the ``execution`` and ``cost`` config sections."""

    dry_run: bool = True
    confirm_actions: bool = True
    stop_on_error: bool = False
    validate_before_run: bool = True
    batch_size: int = DEFAULT_BATCH_SIZE
    save_results: bool = True
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    wait_timeout_seconds: float = 300.0
    destructive_actions: frozenset[str] = DESTRUCTIVE_ACTIONS
    savings_per_action: Mapping[str, float] = field(
        default_factory=lambda: dict(DEFAULT_SAVINGS_PER_ACTION), hash=False
    )
    security_actions: frozenset[str] = SECURITY_ACTIONS
    currency: str = "USD"

    @classmethod
    def from_config(cls, config: GovernanceConfig) -> "ExecutorConfig":
        execution = config.execution
        return cls(
            dry_run=execution.dry_run,
            confirm_actions=execution.confirm_actions,
            stop_on_error=execution.stop_on_error,
            validate_before_run=execution.validate_before_run,
            batch_size=execution.batch_size,
            save_results=execution.save_results,
            poll_interval_seconds=execution.poll_interval_seconds,
            wait_timeout_seconds=execution.wait_timeout_seconds,
            destructive_actions=frozenset(execution.destructive_actions),
            savings_per_action=dict(config.cost.savings_per_action),
            security_actions=frozenset(config.cost.security_actions),
            currency=config.cost.currency,
        )


@dataclass
class _Candidates:
    found: int = 0
    matched: list[ResourceRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class PolicyExecutionEngine:
    """Runs stored policies against a resource provider.

    Parameters
    ----------
    store:
        Source of policies and sink for run statistics.
    provider:
        Supplies candidate resources.
    executor:
        Performs (or simulates) actions.
    config:
        Engine settings; defaults to a dry-run, confirm-everything setup.
    confirmer:
        Asked before destructive live actions.  Without one those actions
        are skipped.
    metrics_provider:
        Optional source of utilisation and cost attributes merged under
        each candidate's own attributes.
    evaluator:
        Filter evaluator; built from *now* when omitted.
    registry:
        Schema registry used for validation and resource type aliases.
    now:
        Clock returning the current aware datetime.
    """

    def __init__(
        self,
        store: PolicyStore,
        provider: ResourceProvider,
        executor: ActionExecutor,
        config: ExecutorConfig | None = None,
        confirmer: Confirmer | None = None,
        metrics_provider: MetricsProvider | None = None,
        evaluator: FilterEvaluator | None = None,
        registry: SchemaRegistry | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._provider = provider
        self._executor = executor
        self._config = config or ExecutorConfig()
        self._confirmer = confirmer
        self._metrics = metrics_provider
        self._now = now or utc_now
        self._evaluator = evaluator or FilterEvaluator(now=self._now)
        self._registry = registry or default_registry()
        self.history: list[ExecutionResult] = []

    @property
    def config(self) -> ExecutorConfig:
        return self._config

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def execute_policy(self, name: str, dry_run: bool | None = None) -> ExecutionResult:
        """Run the policy called *name* and return its execution record.

        Parameters
        ----------
        name:
            Stored policy name.
        dry_run:
            Overrides the configured dry-run setting for this run.

        Raises
        ------
        PolicyNotFoundError
            If the store has no such policy.
        UnsupportedResourceTypeError
            If the policy targets a resource type the engine cannot serve.
        ValidationError
            If validation before runs is enabled and the policy is invalid.
        ProviderError
            If candidates cannot be fetched.  The failed run is still
            recorded in :attr:`history` and in the policy statistics.
        """
        policy = self._store.get(name)
        resource_type, expression, query = self._prepare(policy)
        effective_dry_run = self._config.dry_run if dry_run is None else dry_run
        start = self._now()
        logger.info(
            "Executing policy '%s' on %s (dry_run=%s, %d actions)",
            policy.name, resource_type, effective_dry_run, len(policy.actions),
        )

        try:
            candidates = self._collect(policy, resource_type, expression, query)
        except ProviderError as exc:
            logger.error("Policy '%s': failed to fetch %s resources: %s", policy.name, resource_type, exc)
            result = ExecutionResult(
                policy_name=policy.name,
                resource_type=resource_type,
                dry_run=effective_dry_run,
                start_time=start,
                end_time=self._now(),
                success=False,
                errors=(f"failed to fetch resources: {exc}",),
                cost_impact=CostImpact(currency=self._config.currency),
            )
            self._finish(policy, result)
            raise

        errors = list(candidates.errors)
        results: list[ActionResult] = []
        skipped: list[SkippedAction] = []
        matched_ids = [record.resource_id for record in candidates.matched]

        if not matched_ids:
            logger.info("Policy '%s': no resources matched", policy.name)
        else:
            for action in policy.actions:
                stop = self._run_action(
                    policy, resource_type, action, matched_ids, effective_dry_run, results, skipped, errors
                )
                if stop:
                    logger.warning("Policy '%s': stopping after failed action '%s'", policy.name, action.type)
                    break

        summary = ExecutionSummary.from_results(
            results, self._config.savings_per_action, self._config.security_actions, skipped=len(skipped)
        )
        previous_cost = sum(_monthly_cost(record) for record in candidates.matched)
        result = ExecutionResult(
            policy_name=policy.name,
            resource_type=resource_type,
            dry_run=effective_dry_run,
            start_time=start,
            end_time=self._now(),
            success=not errors,
            resources_found=candidates.found,
            resources_matched=len(matched_ids),
            action_results=tuple(results),
            errors=tuple(errors),
            skipped_actions=tuple(skipped),
            summary=summary,
            cost_impact=CostImpact.compute(previous_cost, summary, self._config.currency),
        )
        self._finish(policy, result)
        logger.info(
            "Policy '%s' finished: %d found, %d matched, %d/%d actions succeeded, %d modified",
            policy.name, result.resources_found, result.resources_matched,
            summary.successful_actions, summary.total_actions, summary.resources_modified,
        )
        return result

    def execute_all(self, dry_run: bool | None = None) -> list[ExecutionResult]:
        """Run every active policy in name order.

        A policy that fails is logged and skipped; the results of the
        policies that completed are returned.
        """
        results: list[ExecutionResult] = []
        for policy in self._store.list():
            if not policy.is_active:
                logger.debug("Skipping inactive policy '%s'", policy.name)
                continue
            try:
                results.append(self.execute_policy(policy.name, dry_run=dry_run))
            except GovernanceError as exc:
                logger.error("Policy '%s' failed: %s", policy.name, exc)
        return results

    def scan_policy(self, name: str) -> ScanResult:
        """Plan a run of *name* without dispatching anything.

        Raises the same errors as :meth:`execute_policy`, except that a
        scan leaves the policy statistics untouched.
        """
        policy = self._store.get(name)
        resource_type, expression, query = self._prepare(policy)
        candidates = self._collect(policy, resource_type, expression, query)
        matched_ids = tuple(record.resource_id for record in candidates.matched)

        planned = []
        if matched_ids:
            for action in policy.actions:
                planned.append(
                    PlannedAction(
                        action=action.type,
                        resource_ids=matched_ids,
                        destructive=action.type in self._config.destructive_actions,
                        reversible=is_reversible(action.type),
                        supported=self._supports(resource_type, action.type),
                        estimated_monthly_savings=savings_for(
                            action.type, len(matched_ids), self._config.savings_per_action
                        ),
                        security_improvement=action.type in self._config.security_actions,
                    )
                )
        logger.info("Scanned policy '%s': %d of %d resources matched", policy.name, len(matched_ids), candidates.found)
        return ScanResult(
            policy_name=policy.name,
            resource_type=resource_type,
            scanned_at=self._now(),
            resources_found=candidates.found,
            matched_resource_ids=matched_ids,
            planned_actions=tuple(planned),
            errors=tuple(candidates.errors),
            current_monthly_cost=sum(_monthly_cost(record) for record in candidates.matched),
        )

    def scan_all(self) -> list[ScanResult]:
        """Scan every active policy, skipping (and logging) failures."""
        scans: list[ScanResult] = []
        for policy in self._store.list():
            if not policy.is_active:
                continue
            try:
                scans.append(self.scan_policy(policy.name))
            except GovernanceError as exc:
                logger.error("Scan of policy '%s' failed: %s", policy.name, exc)
        return scans

    def wait_for_state(self, check: Callable[[], bool], timeout_seconds: float | None = None) -> None:
        """Poll *check* with the configured interval until it succeeds.

        Raises
        ------
        StateWaitTimeoutError
            When the configured (or given) deadline passes first.
        """
        wait_for_state(
            check,
            timeout_seconds if timeout_seconds is not None else self._config.wait_timeout_seconds,
            self._config.poll_interval_seconds,
        )

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------

    def _prepare(self, policy: Policy) -> tuple[str, FilterExpression, ResourceQuery | None]:
        resource_type = self._registry.canonical_type(policy.resource_type)
        if resource_type is None or not self._provider.supports(resource_type):
            raise UnsupportedResourceTypeError(policy.resource_type)

        if self._config.validate_before_run:
            problems = validate_policy(policy, self._registry)
            if problems:
                raise ValidationError(f"Policy '{policy.name}' failed validation", problems)

        if policy.filter is not None:
            return resource_type, policy.filter, None
        if policy.filters:
            return (
                resource_type,
                flat_filters_to_expression(resource_type, policy.filters),
                flat_filters_to_query(resource_type, policy.filters),
            )
        return resource_type, And(()), None

    def _collect(
        self,
        policy: Policy,
        resource_type: str,
        expression: FilterExpression,
        query: ResourceQuery | None,
    ) -> _Candidates:
        records = list(self._provider.list_resources(resource_type, query))
        candidates = _Candidates(found=len(records))
        for record in records:
            record = self._enrich(resource_type, record, candidates.errors)
            try:
                if self._evaluator.evaluate(expression, record):
                    candidates.matched.append(record)
            except EvaluationError as exc:
                logger.warning("Policy '%s': cannot evaluate %s: %s", policy.name, record.resource_id, exc)
                candidates.errors.append(f"evaluation failed for {record.resource_id}: {exc}")
        logger.info(
            "Policy '%s': %d of %d %s resources matched",
            policy.name, len(candidates.matched), candidates.found, resource_type,
        )
        return candidates

    def _enrich(self, resource_type: str, record: ResourceRecord, errors: list[str]) -> ResourceRecord:
        if self._metrics is None:
            return record
        try:
            metrics = self._metrics.metrics_for(resource_type, record)
        except ProviderError as exc:
            logger.warning("No metrics for %s: %s", record.resource_id, exc)
            errors.append(f"metrics unavailable for {record.resource_id}: {exc}")
            return record
        return record.with_attributes(metrics) if metrics else record

    def _supports(self, resource_type: str, action: str) -> bool:
        return self._registry.supports_action(resource_type, action) and self._executor.supports(
            resource_type, action
        )

    def _run_action(
        self,
        policy: Policy,
        resource_type: str,
        action: ActionSpec,
        resource_ids: Sequence[str],
        engine_dry_run: bool,
        results: list[ActionResult],
        skipped: list[SkippedAction],
        errors: list[str],
    ) -> bool:
        """Dispatch one action; return ``True`` when the run must stop."""
        dry_run = engine_dry_run or action.dry_run
        if not self._supports(resource_type, action.type):
            message = f"unsupported {resource_type} action: {action.type}"
            logger.warning("Policy '%s': %s", policy.name, message)
            results.append(unsupported_result(resource_type, action.type, dry_run, self._now()))
            errors.append(message)
            return self._config.stop_on_error

        if not dry_run and self._config.confirm_actions and action.type in self._config.destructive_actions:
            approved = self._confirmer is not None and self._confirmer.confirm(
                policy.name, action.type, len(resource_ids)
            )
            if not approved:
                reason = "confirmation declined" if self._confirmer is not None else "no confirmer configured"
                logger.warning(
                    "Policy '%s': skipping '%s' on %d resources (%s)",
                    policy.name, action.type, len(resource_ids), reason,
                )
                skipped.append(SkippedAction(action.type, len(resource_ids), reason))
                return False

        ids = list(resource_ids)
        failed = False

        def dispatch(batch: list[str]) -> None:
            nonlocal failed
            started = self._now()
            outcome = self._executor.execute(resource_type, action.type, batch, action.settings, dry_run)
            batch_results = outcome_to_results(outcome, started, self._now())
            for item in batch_results:
                if not item.success:
                    failed = True
                    errors.append(f"{action.type} failed for {item.resource_id}: {item.message}")
            results.extend(batch_results)

        try:
            batches = process_in_batches(ids, self._config.batch_size, dispatch)
            logger.debug("Policy '%s': '%s' dispatched in %d batches", policy.name, action.type, batches)
        except BatchError as exc:
            cause = exc.__cause__ or exc
            started = self._now()
            logger.warning("Policy '%s': action '%s' failed: %s", policy.name, action.type, exc)
            results.extend(
                failure_results(
                    resource_type, action.type, ids[exc.start - 1 : exc.end], cause, dry_run, started, self._now()
                )
            )
            errors.append(str(exc))
            failed = True
        return failed and self._config.stop_on_error

    def _finish(self, policy: Policy, result: ExecutionResult) -> None:
        if self._config.save_results:
            self.history.append(result)
        try:
            self._store.update_stats(policy.name, result.end_time)
        except Exception:
            logger.warning("Failed to persist run statistics for policy '%s'", policy.name, exc_info=True)


def _monthly_cost(record: ResourceRecord) -> float:
    value = record.get("monthly_cost")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)
