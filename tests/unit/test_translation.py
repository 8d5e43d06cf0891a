"""Unit tests for execution/translation.py and the provider query shapes."""
from __future__ import annotations

import pytest

from aumos_resource_governance.errors import ValidationError
from aumos_resource_governance.execution.providers import BucketQuery, InstanceQuery, RoleQuery, VolumeQuery
from aumos_resource_governance.execution.translation import (
    fields_for,
    flat_filter_to_expression,
    flat_filters_to_expression,
    flat_filters_to_query,
)
from aumos_resource_governance.filters.evaluator import FilterEvaluator
from aumos_resource_governance.filters.expression import And, Leaf, Not, Or
from aumos_resource_governance.policies.model import FlatFilter
from aumos_resource_governance.resources.records import ResourceRecord


# ---------------------------------------------------------------------------
# Flat filter -> expression
# ---------------------------------------------------------------------------


class TestFlatFilterToExpression:
    def test_single_field(self) -> None:
        assert flat_filter_to_expression("ec2", FlatFilter("instance-state", "running")) == Leaf("state", "eq", "running")

    def test_operator_is_kept(self) -> None:
        node = flat_filter_to_expression("ec2", FlatFilter("cpu-utilization", 5, op="lt"))
        assert node == Leaf("cpu_utilization", "lt", 5)

    def test_tag_with_value(self) -> None:
        node = flat_filter_to_expression("ec2", FlatFilter("tag", "dev", key="Environment"))
        assert node == Leaf("tags.Environment", "eq", "dev")

    def test_tag_presence(self) -> None:
        assert flat_filter_to_expression("ec2", FlatFilter("tag", key="Owner")) == Leaf("tags.Owner", "exists")

    def test_tag_missing(self) -> None:
        node = flat_filter_to_expression("s3", FlatFilter("tag-missing", key="Owner"))
        assert node == Leaf("tags.Owner", "not-exists")

    def test_tag_requires_key(self) -> None:
        with pytest.raises(ValidationError, match="requires a key"):
            flat_filter_to_expression("ec2", FlatFilter("tag", "dev"))

    def test_multi_field_true_is_any(self) -> None:
        node = flat_filter_to_expression("s3", FlatFilter("public-read", True))
        assert node == Or((Leaf("public_read_acl", "eq", True), Leaf("public_read_policy", "eq", True)))

    def test_multi_field_false_is_none(self) -> None:
        node = flat_filter_to_expression("s3", FlatFilter("public-read", False))
        assert node == Not(Or((Leaf("public_read_acl", "eq", True), Leaf("public_read_policy", "eq", True))))

    def test_negate(self) -> None:
        node = flat_filter_to_expression("ec2", FlatFilter("instance-type", "t3.micro", negate=True))
        assert node == Not(Leaf("instance_type", "eq", "t3.micro"))

    def test_common_and_catalog_fallback_fields(self) -> None:
        assert fields_for("rds", "age") == ("age_days",)
        assert fields_for("rds", "backup-window") == ("backup_window",)
        assert fields_for("rds", "warp-drive") is None

    def test_unknown_type(self) -> None:
        with pytest.raises(ValidationError, match="not supported for resource type 'lambda'"):
            flat_filter_to_expression("lambda", FlatFilter("instance-state", "running"))

    def test_empty_list_matches_everything(self) -> None:
        expression = flat_filters_to_expression("ec2", [])
        assert expression == And(())
        assert FilterEvaluator().evaluate(expression, {"state": "stopped"}) is True

    def test_translated_expression_evaluates(self) -> None:
        expression = flat_filters_to_expression(
            "s3", [FlatFilter("public-access", True), FlatFilter("tag", "prod", key="Environment", negate=True)]
        )
        record = ResourceRecord("s3", "logs", {"public_write_policy": True, "tags": {"Environment": "dev"}})
        assert FilterEvaluator().evaluate(expression, record) is True


# ---------------------------------------------------------------------------
# Flat filters -> provider query
# ---------------------------------------------------------------------------


class TestFlatFiltersToQuery:
    def test_instance_query(self) -> None:
        query = flat_filters_to_query(
            "ec2",
            [
                FlatFilter("instance-state", "running"),
                FlatFilter("cpu-utilization", 5, op="lt"),
                FlatFilter("running-days", 7, op="gte"),
                FlatFilter("tag", "dev", key="Environment"),
            ],
        )
        assert query == InstanceQuery(
            tag_keys=("Environment",), states=("running",), cpu_below=5.0, min_running_days=7
        )

    def test_in_operator_collects_every_value(self) -> None:
        query = flat_filters_to_query("ec2", [FlatFilter("instance-type", ["t3.micro", "t3.small"], op="in")])
        assert query.instance_types == ("t3.micro", "t3.small")

    def test_negated_and_non_equality_filters_do_not_narrow(self) -> None:
        query = flat_filters_to_query(
            "ec2",
            [
                FlatFilter("instance-state", "running", negate=True),
                FlatFilter("instance-type", "t3", op="starts-with"),
                FlatFilter("cpu-utilization", 5, op="gt"),
            ],
        )
        assert query == InstanceQuery()

    def test_tag_missing_does_not_narrow(self) -> None:
        assert flat_filters_to_query("ec2", [FlatFilter("tag-missing", key="Owner")]).tag_keys == ()

    def test_tag_presence_and_equality_narrow(self) -> None:
        query = flat_filters_to_query(
            "ec2",
            [
                FlatFilter("tag", key="Owner"),
                FlatFilter("tag", "dev", key="Environment"),
                FlatFilter("tag", ["a", "b"], key="Team", op="in"),
            ],
        )
        assert query.tag_keys == ("Owner", "Environment", "Team")

    @pytest.mark.parametrize("op", ["ne", "not-exists", "not-in", "not-contains"])
    def test_tag_operators_satisfied_by_absent_key_do_not_narrow(self, op: str) -> None:
        value = None if op == "not-exists" else "prod"
        assert flat_filters_to_query("ec2", [FlatFilter("tag", value, key="Environment", op=op)]).tag_keys == ()

    @pytest.mark.parametrize(
        ("flat", "tags"),
        [
            (FlatFilter("tag", "prod", key="Environment", op="ne"), {"Name": "x"}),
            (FlatFilter("tag", key="Environment", op="not-exists"), {}),
            (FlatFilter("tag", "dev", key="Environment"), {"environment": "dev"}),
        ],
    )
    def test_query_admits_every_local_match(self, flat: FlatFilter, tags: dict[str, str]) -> None:
        record = ResourceRecord("ec2", "i-1", {"state": "running", "tags": tags})
        assert FilterEvaluator().matches(flat_filters_to_expression("ec2", [flat]), record) is True
        assert flat_filters_to_query("ec2", [flat]).admits(record) is True

    def test_bucket_query(self) -> None:
        query = flat_filters_to_query("s3", [FlatFilter("public-read", True), FlatFilter("encryption", False)])
        assert query == BucketQuery(public_only=True, unencrypted_only=True)

    def test_volume_and_role_queries(self) -> None:
        assert flat_filters_to_query("ebs", [FlatFilter("state", "available")]) == VolumeQuery(states=("available",))
        assert flat_filters_to_query("iam-role", []) == RoleQuery()

    def test_unknown_type(self) -> None:
        assert flat_filters_to_query("mainframe", []) is None


# ---------------------------------------------------------------------------
# ResourceQuery.admits
# ---------------------------------------------------------------------------


class TestQueryAdmits:
    def test_contradicting_attribute_excludes(self) -> None:
        query = InstanceQuery(states=("running",))
        assert query.admits(ResourceRecord("ec2", "i-1", {"state": "stopped"})) is False
        assert query.admits(ResourceRecord("ec2", "i-1", {"state": "RUNNING"})) is True

    def test_missing_attribute_is_admitted(self) -> None:
        query = InstanceQuery(cpu_below=5.0)
        assert query.admits(ResourceRecord("ec2", "i-1", {"state": "running"})) is True
        assert query.admits(ResourceRecord("ec2", "i-1", {"cpu_utilization": 9.0})) is False

    def test_tag_keys(self) -> None:
        query = InstanceQuery(tag_keys=("Owner",))
        assert query.admits(ResourceRecord("ec2", "i-1", {"tags": {"Owner": "a"}})) is True
        assert query.admits(ResourceRecord("ec2", "i-1", {"tags": {}})) is False

    def test_public_only(self) -> None:
        query = BucketQuery(public_only=True)
        private = {name: False for name in ("public_read_acl", "public_write_acl", "public_read_policy", "public_write_policy")}
        assert query.admits(ResourceRecord("s3", "b", private)) is False
        assert query.admits(ResourceRecord("s3", "b", {**private, "public_read_acl": True})) is True
