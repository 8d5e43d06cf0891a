"""Unit tests for execution/engine.py — PolicyExecutionEngine."""
from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from aumos_resource_governance.errors import (
    PolicyNotFoundError,
    ProviderError,
    UnsupportedResourceTypeError,
    ValidationError,
)
from aumos_resource_governance.execution.confirm import StaticConfirmer
from aumos_resource_governance.execution.engine import ExecutorConfig, PolicyExecutionEngine
from aumos_resource_governance.execution.offline import SimulatedActionExecutor, StaticResourceProvider
from aumos_resource_governance.execution.providers import InstanceQuery, MetricsProvider, ResourceProvider
from aumos_resource_governance.filters.expression import And, Leaf
from aumos_resource_governance.policies.model import ActionSpec, FlatFilter, Policy, PolicyStatus
from aumos_resource_governance.policies.parser import validate_policy
from aumos_resource_governance.policies.store import InMemoryPolicyStore
from aumos_resource_governance.resources.records import ResourceRecord

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

IDLE = And(
    (Leaf("state", "eq", "running"), Leaf("cpu_utilization", "lt", 5.0), Leaf("running_days", "gte", 7))
)


def _instances() -> list[dict[str, object]]:
    return [
        {
            "instance_id": "i-idle",
            "state": "running",
            "instance_type": "t3.micro",
            "cpu_utilization": 1.0,
            "launch_time": "2024-05-01T00:00:00Z",
            "monthly_cost": 30.0,
            "tags": {"Environment": "dev"},
        },
        {
            "instance_id": "i-busy",
            "state": "running",
            "instance_type": "m5.large",
            "cpu_utilization": 80.0,
            "launch_time": "2024-05-01T00:00:00Z",
            "monthly_cost": 100.0,
            "tags": {"Environment": "prod"},
        },
        {
            "instance_id": "i-off",
            "state": "stopped",
            "instance_type": "t3.small",
            "cpu_utilization": 0.0,
            "launch_time": "2024-01-01T00:00:00Z",
            "tags": {},
        },
    ]


def _policy(name: str = "stop-idle", actions: tuple[str, ...] = ("stop",), **kwargs: object) -> Policy:
    fields: dict[str, object] = {"resource_type": "compute-instance", "filter": IDLE}
    fields.update(kwargs)
    return Policy(name=name, actions=[ActionSpec(action) for action in actions], **fields)  # type: ignore[arg-type]


class _Harness:
    def __init__(
        self,
        policies: list[Policy],
        config: ExecutorConfig | None = None,
        confirmer: StaticConfirmer | None = None,
        provider: ResourceProvider | None = None,
        metrics: MetricsProvider | None = None,
        **executor_kwargs: object,
    ) -> None:
        self.store = InMemoryPolicyStore(policies)
        self.provider = provider if provider is not None else StaticResourceProvider({"ec2": _instances()})
        static = self.provider if isinstance(self.provider, StaticResourceProvider) else None
        self.executor = SimulatedActionExecutor(provider=static, **executor_kwargs)  # type: ignore[arg-type]
        self.confirmer = confirmer
        self.engine = PolicyExecutionEngine(
            self.store,
            self.provider,
            self.executor,
            config=config,
            confirmer=confirmer,
            metrics_provider=metrics,
            now=lambda: NOW,
        )


LIVE = ExecutorConfig(dry_run=False)


# ---------------------------------------------------------------------------
# Dry runs
# ---------------------------------------------------------------------------


class TestDryRun:
    def test_dry_run_reports_matches_without_modifying(self) -> None:
        harness = _Harness([_policy()])
        result = harness.engine.execute_policy("stop-idle")

        assert result.success is True
        assert result.dry_run is True
        assert result.resource_type == "ec2"
        assert result.resources_found == 3
        assert result.resources_matched == 1
        assert result.summary.resources_modified == 0
        assert result.actions_executed == 0
        assert harness.provider.get("ec2", "i-idle").get("state") == "running"

    def test_dry_run_action_result(self) -> None:
        result = _Harness([_policy()]).engine.execute_policy("stop-idle")
        (action_result,) = result.action_results
        assert action_result.resource_id == "i-idle"
        assert action_result.dry_run is True
        assert action_result.success is True
        assert action_result.message == "Would execute stop"
        assert dict(action_result.details) == {"previous_state": "running", "current_state": "stopping"}

    def test_dry_run_has_no_cost_impact(self) -> None:
        result = _Harness([_policy()]).engine.execute_policy("stop-idle")
        assert result.summary.estimated_monthly_savings == 50.0
        assert result.cost_impact.previous_monthly_cost == 30.0
        assert result.cost_impact.monthly_savings == 0.0
        assert result.cost_impact.new_monthly_cost == 30.0

    def test_action_level_dry_run_overrides_live_engine(self) -> None:
        policy = _policy()
        policy.actions = [ActionSpec("stop", dry_run=True)]
        confirmer = StaticConfirmer(True)
        harness = _Harness([policy], config=LIVE, confirmer=confirmer)
        result = harness.engine.execute_policy("stop-idle")
        assert result.action_results[0].dry_run is True
        assert confirmer.requests == []

    def test_per_call_override(self) -> None:
        confirmer = StaticConfirmer(True)
        harness = _Harness([_policy()], config=LIVE, confirmer=confirmer)
        result = harness.engine.execute_policy("stop-idle", dry_run=True)
        assert result.dry_run is True
        assert confirmer.requests == []

    def test_no_matches_dispatches_nothing(self) -> None:
        policy = _policy(filter=Leaf("state", "eq", "terminated"))
        harness = _Harness([policy])
        result = harness.engine.execute_policy("stop-idle")
        assert result.resources_matched == 0
        assert result.action_results == ()
        assert harness.executor.calls == []


# ---------------------------------------------------------------------------
# Live runs and confirmation
# ---------------------------------------------------------------------------


class TestLiveRun:
    def test_declined_confirmation_skips_action(self) -> None:
        confirmer = StaticConfirmer(False)
        harness = _Harness([_policy()], config=LIVE, confirmer=confirmer)
        result = harness.engine.execute_policy("stop-idle")

        assert confirmer.requests == [("stop-idle", "stop", 1)]
        assert result.action_results == ()
        assert result.summary.total_actions == 0
        assert result.summary.skipped_actions == 1
        assert result.skipped_actions[0].reason == "confirmation declined"
        assert result.success is True
        assert harness.executor.calls == []

    def test_missing_confirmer_skips_destructive_action(self) -> None:
        harness = _Harness([_policy()], config=LIVE)
        result = harness.engine.execute_policy("stop-idle")
        assert result.skipped_actions[0].reason == "no confirmer configured"
        assert harness.executor.calls == []

    def test_confirmation_can_be_disabled(self) -> None:
        harness = _Harness([_policy()], config=ExecutorConfig(dry_run=False, confirm_actions=False))
        result = harness.engine.execute_policy("stop-idle")
        assert result.summary.resources_modified == 1

    def test_confirmed_stop_modifies_and_saves(self) -> None:
        harness = _Harness([_policy()], config=LIVE, confirmer=StaticConfirmer(True))
        result = harness.engine.execute_policy("stop-idle")

        assert result.success is True
        assert result.summary.successful_actions == 1
        assert result.summary.resources_modified == 1
        assert result.action_results[0].message == "Action stop completed"
        assert result.cost_impact.monthly_savings == 50.0
        assert result.cost_impact.annual_savings == 600.0
        assert harness.provider.get("ec2", "i-idle").get("state") == "stopped"

    def test_non_destructive_action_needs_no_confirmation(self) -> None:
        policy = _policy(actions=("tag",))
        policy.actions = [ActionSpec("tag", settings={"tags": {"Idle": "true"}})]
        harness = _Harness([policy], config=LIVE)
        result = harness.engine.execute_policy("stop-idle")
        assert result.summary.resources_modified == 1
        assert harness.provider.get("ec2", "i-idle").get("tags") == {"Environment": "dev", "Idle": "true"}

    def test_security_action_counted(self) -> None:
        policy = Policy(name="lock", resource_type="s3", actions=[ActionSpec("block-public-access")])
        provider = StaticResourceProvider({"s3": [{"name": "assets", "public_read_acl": True}]})
        harness = _Harness([policy], config=LIVE, provider=provider)
        result = harness.engine.execute_policy("lock")
        assert result.summary.security_improvements == 1


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class _BrokenProvider(ResourceProvider):
    def list_resources(self, resource_type: str, query: object = None) -> list[ResourceRecord]:
        raise ProviderError("throttled", resource_type)


class TestFailures:
    def test_unknown_policy(self) -> None:
        with pytest.raises(PolicyNotFoundError):
            _Harness([]).engine.execute_policy("nope")

    def test_unknown_resource_type(self) -> None:
        harness = _Harness([Policy(name="odd", resource_type="mainframe")])
        with pytest.raises(UnsupportedResourceTypeError):
            harness.engine.execute_policy("odd")

    def test_invalid_policy_is_rejected_before_running(self) -> None:
        policy = _policy(filter=Leaf("nonexistent_field", "eq", "x"))
        assert validate_policy(policy) == ["field 'nonexistent_field' does not exist for resource type 'ec2'"]
        harness = _Harness([policy])
        with pytest.raises(ValidationError) as excinfo:
            harness.engine.execute_policy("stop-idle")
        assert excinfo.value.problems == ["field 'nonexistent_field' does not exist for resource type 'ec2'"]
        assert harness.engine.history == []

    def test_provider_error_is_recorded_and_raised(self) -> None:
        harness = _Harness([_policy()], provider=_BrokenProvider())
        with pytest.raises(ProviderError):
            harness.engine.execute_policy("stop-idle")
        (result,) = harness.engine.history
        assert result.success is False
        assert result.errors == ("failed to fetch resources: throttled",)
        assert harness.store.get("stop-idle").run_count == 1

    def test_evaluation_error_is_recorded(self) -> None:
        policy = _policy(filter=Leaf("state", "gt", 5))
        harness = _Harness([policy], config=ExecutorConfig(validate_before_run=False))
        result = harness.engine.execute_policy("stop-idle")
        assert result.success is False
        assert result.resources_matched == 0
        assert len(result.errors) == 3
        assert result.errors[0].startswith("evaluation failed for i-idle")

    def test_malformed_path_is_rejected_before_running(self) -> None:
        harness = _Harness([_policy(filter=Leaf("security_groups[first]", "exists"))])
        with pytest.raises(ValidationError) as excinfo:
            harness.engine.execute_policy("stop-idle")
        assert excinfo.value.problems == ["index 'first' in 'security_groups[first]' is not an integer"]

    def test_malformed_path_counts_as_no_match_when_unvalidated(self) -> None:
        policy = _policy(filter=Leaf("security_groups[first]", "exists"))
        harness = _Harness([policy], config=ExecutorConfig(validate_before_run=False))
        result = harness.engine.execute_policy("stop-idle")
        assert result.success is False
        assert result.resources_matched == 0
        assert len(result.errors) == 3
        assert harness.store.get("stop-idle").run_count == 1

    def test_unsupported_action(self) -> None:
        policy = _policy(actions=("block-public-access",))
        harness = _Harness([policy], config=ExecutorConfig(validate_before_run=False))
        result = harness.engine.execute_policy("stop-idle")
        assert result.success is False
        assert result.errors == ("unsupported ec2 action: block-public-access",)
        assert result.action_results[0].success is False

    def test_executor_exception_fails_the_batch(self) -> None:
        harness = _Harness([_policy()], config=LIVE, confirmer=StaticConfirmer(True), failing_actions=("stop",))
        result = harness.engine.execute_policy("stop-idle")
        assert result.success is False
        (failed,) = result.action_results
        assert failed.success is False
        assert failed.message == "Failed: stop failed for 1 resources"
        assert result.errors == ("batch processing failed at items 1-1 of 1: stop failed for 1 resources",)

    def test_resource_failure(self) -> None:
        harness = _Harness([_policy(actions=("tag",))], config=LIVE, failing_resources=("i-idle",))
        result = harness.engine.execute_policy("stop-idle")
        assert result.summary.failed_actions == 1
        assert result.errors == ("tag failed for i-idle: tag failed",)

    def test_stop_on_error_skips_later_actions(self) -> None:
        config = ExecutorConfig(dry_run=False, stop_on_error=True)
        harness = _Harness(
            [_policy(actions=("stop", "tag"))], config=config, confirmer=StaticConfirmer(True), failing_actions=("stop",)
        )
        harness.engine.execute_policy("stop-idle")
        assert [call.action for call in harness.executor.calls] == ["stop"]

    def test_failures_do_not_stop_by_default(self) -> None:
        harness = _Harness(
            [_policy(actions=("stop", "tag"))], config=LIVE, confirmer=StaticConfirmer(True), failing_actions=("stop",)
        )
        harness.engine.execute_policy("stop-idle")
        assert [call.action for call in harness.executor.calls] == ["stop", "tag"]


# ---------------------------------------------------------------------------
# Candidates, batching and statistics
# ---------------------------------------------------------------------------


class _CpuMetrics(MetricsProvider):
    def metrics_for(self, resource_type: str, record: ResourceRecord) -> Mapping[str, object]:
        return {"cpu_utilization": 0.5, "monthly_cost": 12.0}


class TestPipeline:
    def test_flat_filters_build_a_provider_query(self) -> None:
        policy = Policy(
            name="flat",
            resource_type="ec2",
            filters=[FlatFilter("instance-state", "running"), FlatFilter("cpu-utilization", 5, op="lt")],
            actions=[ActionSpec("stop")],
        )
        harness = _Harness([policy])
        result = harness.engine.execute_policy("flat")
        assert harness.provider.queries == [("ec2", InstanceQuery(states=("running",), cpu_below=5.0))]
        assert result.resources_found == 1
        assert result.resources_matched == 1

    def test_metrics_are_merged_under_reported_attributes(self) -> None:
        inventory = {"ec2": [{"instance_id": "i-new", "state": "running", "launch_time": "2024-05-01T00:00:00Z"}]}
        harness = _Harness([_policy()], provider=StaticResourceProvider(inventory), metrics=_CpuMetrics())
        result = harness.engine.execute_policy("stop-idle")
        assert result.resources_matched == 1
        assert result.cost_impact.previous_monthly_cost == 12.0

    def test_batches(self) -> None:
        inventory = {
            "ec2": [
                {"instance_id": f"i-{n}", "state": "running", "cpu_utilization": 1.0, "launch_time": "2024-05-01T00:00:00Z"}
                for n in range(5)
            ]
        }
        harness = _Harness(
            [_policy(actions=("tag",))],
            config=ExecutorConfig(batch_size=2),
            provider=StaticResourceProvider(inventory),
        )
        result = harness.engine.execute_policy("stop-idle")
        assert [len(call.resource_ids) for call in harness.executor.calls] == [2, 2, 1]
        assert len(result.action_results) == 5

    def test_history_and_statistics(self) -> None:
        harness = _Harness([_policy()])
        harness.engine.execute_policy("stop-idle")
        harness.engine.execute_policy("stop-idle")
        assert len(harness.engine.history) == 2
        stored = harness.store.get("stop-idle")
        assert stored.run_count == 2
        assert stored.last_run == NOW

    def test_statistics_failure_is_not_fatal(self) -> None:
        harness = _Harness([_policy()])
        with patch.object(harness.store, "update_stats", side_effect=RuntimeError("disk full")):
            result = harness.engine.execute_policy("stop-idle")
        assert result.success is True
        assert len(harness.engine.history) == 1

    def test_wait_for_state_uses_configured_timing(self) -> None:
        harness = _Harness([], config=ExecutorConfig(poll_interval_seconds=2.0, wait_timeout_seconds=30.0))
        check = lambda: True  # noqa: E731
        with patch("aumos_resource_governance.execution.engine.wait_for_state") as waiter:
            harness.engine.wait_for_state(check)
            harness.engine.wait_for_state(check, timeout_seconds=5)
        assert waiter.call_args_list[0].args == (check, 30.0, 2.0)
        assert waiter.call_args_list[1].args == (check, 5, 2.0)

    def test_history_can_be_disabled(self) -> None:
        harness = _Harness([_policy()], config=ExecutorConfig(save_results=False))
        harness.engine.execute_policy("stop-idle")
        assert harness.engine.history == []

    def test_execute_all_skips_inactive_and_failures(self) -> None:
        inactive = _policy(name="inactive", status=PolicyStatus.INACTIVE)
        broken = Policy(name="broken", resource_type="mainframe")
        harness = _Harness([_policy(), inactive, broken])
        results = harness.engine.execute_all()
        assert [r.policy_name for r in results] == ["stop-idle"]

    def test_result_to_dict(self) -> None:
        result = _Harness([_policy()]).engine.execute_policy("stop-idle")
        data = result.to_dict()
        assert data["policy_name"] == "stop-idle"
        assert data["resources_matched"] == 1


# ---------------------------------------------------------------------------
# Scans
# ---------------------------------------------------------------------------


class TestScan:
    def test_scan_plans_actions(self) -> None:
        harness = _Harness([_policy(actions=("terminate", "tag"))])
        scan = harness.engine.scan_policy("stop-idle")

        assert scan.matched_resource_ids == ("i-idle",)
        terminate, tag = scan.planned_actions
        assert terminate.destructive is True
        assert terminate.reversible is False
        assert terminate.estimated_monthly_savings == 50.0
        assert tag.destructive is False
        assert scan.has_destructive_actions is True
        assert scan.current_monthly_cost == 30.0
        assert harness.executor.calls == []

    def test_scan_leaves_statistics_untouched(self) -> None:
        harness = _Harness([_policy()])
        harness.engine.scan_policy("stop-idle")
        assert harness.store.get("stop-idle").run_count == 0

    def test_scan_all(self) -> None:
        harness = _Harness([_policy(), _policy(name="other", filter=Leaf("state", "eq", "stopped"))])
        scans = harness.engine.scan_all()
        assert [(scan.policy_name, scan.resources_matched) for scan in scans] == [("other", 1), ("stop-idle", 1)]
