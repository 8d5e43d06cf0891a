"""Unit tests for the schema registry and resource records."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from aumos_resource_governance.resources.definitions import ValueType
from aumos_resource_governance.resources.records import ResourceRecord
from aumos_resource_governance.resources.registry import SchemaRegistry, base_field, default_registry

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


@pytest.fixture()
def registry() -> SchemaRegistry:
    return SchemaRegistry()


# ---------------------------------------------------------------------------
# SchemaRegistry
# ---------------------------------------------------------------------------


class TestSchemaRegistry:
    def test_resource_types(self, registry: SchemaRegistry) -> None:
        assert registry.resource_types() == ["ebs", "ec2", "iam-role", "lambda", "rds", "s3"]

    @pytest.mark.parametrize("alias", ["ec2", "EC2", "compute-instance", " instance "])
    def test_aliases(self, registry: SchemaRegistry, alias: str) -> None:
        assert registry.canonical_type(alias) == "ec2"

    def test_unknown_type(self, registry: SchemaRegistry) -> None:
        assert registry.canonical_type("mainframe") is None
        assert registry.lookup("mainframe") is None
        assert registry.field_of("mainframe", "state") is None
        assert "mainframe" not in registry

    def test_field_of_uses_base_segment(self, registry: SchemaRegistry) -> None:
        assert registry.field_of("ec2", "tags.Environment").value_type is ValueType.MAP
        assert registry.field_of("ec2", "security_groups[0]").value_type is ValueType.ARRAY

    def test_operator_allowed(self, registry: SchemaRegistry) -> None:
        assert registry.operator_allowed("ebs", "encrypted", "eq") is True
        assert registry.operator_allowed("ebs", "encrypted", "gt") is False
        assert registry.operator_allowed("ebs", "nope", "eq") is False

    def test_actions(self, registry: SchemaRegistry) -> None:
        assert registry.supports_action("compute-instance", "stop") is True
        assert registry.supports_action("s3", "terminate") is False
        assert "tag" in registry.actions_for("lambda")

    def test_services(self, registry: SchemaRegistry) -> None:
        assert registry.services()["EC2"] == ["ebs", "ec2"]

    def test_computed_and_required_fields(self, registry: SchemaRegistry) -> None:
        assert "running_days" in registry.computed_fields("ec2")
        assert "instance_id" in registry.required_fields("ec2")
        assert "running_days" not in registry.required_fields("ec2")

    def test_default_registry_is_shared(self) -> None:
        assert default_registry() is default_registry()

    def test_base_field(self) -> None:
        assert base_field("tags.Environment") == "tags"
        assert base_field("attached_policies[length]") == "attached_policies"
        assert base_field("state") == "state"


# ---------------------------------------------------------------------------
# ResourceRecord
# ---------------------------------------------------------------------------


class TestResourceRecord:
    def test_from_mapping_derives_identifier(self) -> None:
        record = ResourceRecord.from_mapping("s3", {"name": "logs", "region": "eu-west-1"})
        assert record.resource_id == "logs"
        ebs = ResourceRecord.from_mapping("ebs", {"volume_id": "vol-1"})
        assert ebs.resource_id == "vol-1"

    def test_attributes_are_read_only(self) -> None:
        record = ResourceRecord("ec2", "i-1", {"state": "running"})
        with pytest.raises(TypeError):
            record.attributes["state"] = "stopped"  # type: ignore[index]

    def test_case_insensitive_lookup(self) -> None:
        record = ResourceRecord("ec2", "i-1", {"State": "running"})
        assert record.get("state") == "running"

    def test_computed_instance_fields(self) -> None:
        record = ResourceRecord(
            "ec2",
            "i-1",
            {"instance_id": "i-1", "state": "running", "launch_time": "2024-05-22T00:00:00Z", "tags": {}},
        )
        assert record.get("running_days", NOW) == 10
        assert record.get("tag_count", NOW) == 0
        assert record.get("name", NOW) == "i-1"

    def test_running_days_zero_when_stopped(self) -> None:
        record = ResourceRecord("ec2", "i-1", {"state": "stopped", "launch_time": "2024-05-22T00:00:00Z"})
        assert record.get("running_days", NOW) == 0

    def test_reported_value_wins_over_computed(self) -> None:
        record = ResourceRecord("ec2", "i-1", {"tag_count": 7, "tags": {}})
        assert record.get("tag_count") == 7

    def test_iam_role_usage_fields(self) -> None:
        never = ResourceRecord("iam-role", "r", {"create_date": "2024-01-01T00:00:00Z"})
        assert never.get("never_used", NOW) is True
        assert never.get("days_since_last_used", NOW) is None
        used = ResourceRecord("iam-role", "r", {"last_used": "2024-05-02T00:00:00Z"})
        assert used.get("days_since_last_used", NOW) == 30

    def test_ebs_unused_days(self) -> None:
        attached = ResourceRecord("ebs", "v", {"state": "in-use", "create_time": "2024-01-01T00:00:00Z"})
        assert attached.get("unused_days", NOW) == 0
        loose = ResourceRecord("ebs", "v", {"state": "available", "create_time": "2024-05-30T00:00:00Z"})
        assert loose.get("unused_days", NOW) == 2

    def test_with_attributes_keeps_reported_values(self) -> None:
        record = ResourceRecord("ec2", "i-1", {"cpu_utilization": 40.0})
        enriched = record.with_attributes({"cpu_utilization": 1.0, "monthly_cost": 12.5})
        assert enriched.get("cpu_utilization") == 40.0
        assert enriched.get("monthly_cost") == 12.5
        assert record.get("monthly_cost") is None
