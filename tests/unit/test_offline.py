"""Unit tests for execution/offline.py and execution/actions.py."""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from aumos_resource_governance.errors import ActionError, ProviderError, ValidationError
from aumos_resource_governance.execution.actions import (
    is_destructive,
    is_reversible,
    outcome_to_results,
    savings_for,
    simulate_outcome,
)
from aumos_resource_governance.execution.offline import SimulatedActionExecutor, StaticResourceProvider
from aumos_resource_governance.execution.providers import ActionOutcome, ResourceOutcome

INVENTORY_YAML = """\
resources:
  compute-instance:
    - instance_id: i-0abc
      state: running
      tags: {Environment: dev}
  s3:
    - name: public-assets
      public_read_acl: true
"""


@pytest.fixture()
def provider() -> StaticResourceProvider:
    return StaticResourceProvider(
        {
            "ec2": [{"instance_id": "i-1", "state": "running", "tags": {"Owner": "ops"}}],
            "rds": [{"db_instance_identifier": "db-1", "db_instance_status": "available"}],
        }
    )


# ---------------------------------------------------------------------------
# StaticResourceProvider
# ---------------------------------------------------------------------------


class TestStaticResourceProvider:
    def test_from_file_with_wrapper_and_aliases(self, tmp_path: Path) -> None:
        path = tmp_path / "inventory.yaml"
        path.write_text(INVENTORY_YAML, encoding="utf-8")
        loaded = StaticResourceProvider.from_file(path)
        assert len(loaded) == 2
        assert [r.resource_id for r in loaded.list_resources("ec2")] == ["i-0abc"]

    def test_from_file_without_wrapper(self, tmp_path: Path) -> None:
        path = tmp_path / "inventory.json"
        path.write_text('{"ebs": [{"volume_id": "vol-1", "state": "available"}]}', encoding="utf-8")
        assert StaticResourceProvider.from_file(path).get("ebs", "vol-1") is not None

    def test_from_file_missing(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            StaticResourceProvider.from_file(tmp_path / "missing.yaml")

    def test_from_file_rejects_non_list_entries(self, tmp_path: Path) -> None:
        path = tmp_path / "inventory.yaml"
        path.write_text("ec2: {instance_id: i-1}\n", encoding="utf-8")
        with pytest.raises(ValidationError, match="'ec2' must be a list"):
            StaticResourceProvider.from_file(path)

    def test_list_accepts_aliases(self, provider: StaticResourceProvider) -> None:
        assert len(provider.list_resources("instance")) == 1
        assert provider.queries == [("ec2", None)]

    def test_unknown_type_raises(self, provider: StaticResourceProvider) -> None:
        assert provider.supports("mainframe") is False
        with pytest.raises(ProviderError, match="unknown resource type: mainframe"):
            provider.list_resources("mainframe")

    def test_known_type_without_records(self, provider: StaticResourceProvider) -> None:
        assert provider.list_resources("lambda") == []

    def test_update(self, provider: StaticResourceProvider) -> None:
        provider.update("ec2", "i-1", {"state": "stopped"})
        record = provider.get("ec2", "i-1")
        assert record is not None
        assert record.get("state") == "stopped"
        assert record.get("tags") == {"Owner": "ops"}


# ---------------------------------------------------------------------------
# SimulatedActionExecutor
# ---------------------------------------------------------------------------


class TestSimulatedActionExecutor:
    def test_dry_run_leaves_provider_untouched(self, provider: StaticResourceProvider) -> None:
        executor = SimulatedActionExecutor(provider=provider)
        outcome = executor.execute("ec2", "terminate", ["i-1"], {}, dry_run=True)
        assert outcome.dry_run is True
        assert outcome.outcomes[0].current_state == "shutting-down"
        assert provider.get("ec2", "i-1").get("state") == "running"  # type: ignore[union-attr]

    def test_live_lifecycle_action_settles_state(self, provider: StaticResourceProvider) -> None:
        executor = SimulatedActionExecutor(provider=provider)
        outcome = executor.execute("rds", "stop", ["db-1"], {}, dry_run=False)
        assert outcome.success is True
        assert provider.get("rds", "db-1").get("db_instance_status") == "stopped"  # type: ignore[union-attr]

    def test_live_tag_merges_tags(self, provider: StaticResourceProvider) -> None:
        executor = SimulatedActionExecutor(provider=provider)
        executor.execute("ec2", "tag", ["i-1"], {"Team": "platform"}, dry_run=False)
        assert provider.get("ec2", "i-1").get("tags") == {"Owner": "ops", "Team": "platform"}  # type: ignore[union-attr]

    def test_calls_are_recorded(self) -> None:
        executor = SimulatedActionExecutor()
        executor.execute("ec2", "stop", ["i-1", "i-2"], {}, dry_run=True)
        (call,) = executor.calls
        assert call.action == "stop"
        assert call.resource_ids == ("i-1", "i-2")
        assert call.dry_run is True

    def test_failing_action_raises(self) -> None:
        executor = SimulatedActionExecutor(failing_actions=["stop"])
        with pytest.raises(ActionError) as excinfo:
            executor.execute("ec2", "stop", ["i-1"], {}, dry_run=False)
        assert excinfo.value.resource_ids == ["i-1"]

    def test_failing_resource_is_reported(self) -> None:
        executor = SimulatedActionExecutor(failing_resources=["i-2"])
        outcome = executor.execute("ec2", "reboot", ["i-1", "i-2"], {}, dry_run=False)
        assert [item.success for item in outcome.outcomes] == [True, False]
        assert outcome.success is False

    def test_supports_follows_catalogue(self) -> None:
        executor = SimulatedActionExecutor()
        assert executor.supports("s3", "block-public-access") is True
        assert executor.supports("s3", "terminate") is False


# ---------------------------------------------------------------------------
# Action catalogue helpers
# ---------------------------------------------------------------------------


class TestActionHelpers:
    def test_safety_classes(self) -> None:
        assert is_destructive("stop") is True
        assert is_destructive("tag") is False
        assert is_destructive("tag", ["tag"]) is True
        assert is_reversible("stop") is True
        assert is_reversible("delete") is False

    def test_savings(self) -> None:
        assert savings_for("stop", 3, {"stop": 50.0}) == 150.0
        assert savings_for("tag", 3, {"stop": 50.0}) == 0.0

    def test_simulated_outcome_without_transition(self) -> None:
        outcome = simulate_outcome("s3", "block-public-access", ["b"])
        results = outcome_to_results(outcome, _at(0), _at(1))
        assert results[0].message == "Would execute block-public-access"
        assert dict(results[0].details) == {}

    def test_outcome_message_is_appended_in_dry_runs(self) -> None:
        outcome = ActionOutcome(
            action="delete",
            resource_type="ebs",
            outcomes=(ResourceOutcome("vol-1", message="snapshot first"),),
            dry_run=True,
        )
        (result,) = outcome_to_results(outcome, _at(0), _at(2))
        assert result.message == "Would execute delete: snapshot first"
        assert result.duration.total_seconds() == 2


def _at(second: int) -> datetime:
    return datetime(2024, 6, 1, 12, 0, second, tzinfo=timezone.utc)
