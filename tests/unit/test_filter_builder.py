"""Unit tests for the filter builder, prebuilt filters, expression dicts and durations."""
from __future__ import annotations

from datetime import timedelta

import pytest

from aumos_resource_governance.errors import ValidationError
from aumos_resource_governance.filters.builder import (
    FilterBuilder,
    age_filter,
    combine_with_and,
    combine_with_or,
    cost_filter,
    negate,
    tag_filter,
    utilization_filter,
)
from aumos_resource_governance.filters.durations import is_duration, parse_duration
from aumos_resource_governance.filters.expression import (
    And,
    Collection,
    CollectionOperation,
    Leaf,
    Not,
    Operator,
    Or,
    Relationship,
    expression_from_dict,
    expression_to_dict,
)
from aumos_resource_governance.filters.prebuilt import PrebuiltFilters, example_filters
from aumos_resource_governance.filters.validator import FilterValidator
from aumos_resource_governance.filters.values import DurationValue, IntValue, ListValue, StringValue
from aumos_resource_governance.resources.registry import default_registry


# ---------------------------------------------------------------------------
# FilterBuilder
# ---------------------------------------------------------------------------


class TestFilterBuilder:
    def test_field_then_and(self) -> None:
        expression = (
            FilterBuilder("ec2").field("state").equals("running").and_(Leaf("cpu_utilization", "lt", 5.0)).build()
        )
        assert isinstance(expression, And)
        assert [child.field for child in expression.children] == ["state", "cpu_utilization"]

    def test_or_and_not(self) -> None:
        expression = (
            FilterBuilder("ec2")
            .field("state")
            .equals("stopped")
            .or_(Leaf("state", "eq", "terminated"))
            .not_()
            .build()
        )
        assert isinstance(expression, Not)
        assert isinstance(expression.child, Or)

    def test_build_validates(self) -> None:
        builder = FilterBuilder("ebs").field("encrypted").greater_than(True)
        assert builder.validate() == ["operator 'gt' is not valid for field 'encrypted'"]
        with pytest.raises(ValidationError) as excinfo:
            builder.build()
        assert excinfo.value.problems == ["operator 'gt' is not valid for field 'encrypted'"]

    def test_build_without_validation(self) -> None:
        expression = FilterBuilder("ebs").field("encrypted").greater_than(True).build(validate=False)
        assert expression == Leaf("encrypted", "gt", True)

    def test_empty_builder(self) -> None:
        with pytest.raises(ValidationError, match="filter is empty"):
            FilterBuilder("ec2").build()

    def test_not_without_expression(self) -> None:
        with pytest.raises(ValidationError):
            FilterBuilder("ec2").not_()

    def test_between_and_in_build_lists(self) -> None:
        between = FilterBuilder("ec2").field("cpu_utilization").between(1, 10).build()
        assert isinstance(between.value, ListValue)
        assert between.value.value == [1, 10]
        member = FilterBuilder("ec2").field("state").in_("running", "stopped").build()
        assert member.operator is Operator.IN

    def test_collection_step(self) -> None:
        expression = FilterBuilder("ec2").collection("security_groups").any(Leaf("", "starts-with", "sg-")).build()
        assert isinstance(expression, Collection)
        assert expression.operation is CollectionOperation.ANY

    def test_collection_count(self) -> None:
        expression = (
            FilterBuilder("ec2").collection("security_groups").count("gt", 3, Leaf("", "exists")).build()
        )
        assert expression.count is not None
        assert expression.count.threshold == 3

    def test_relationship_step(self) -> None:
        expression = FilterBuilder("ec2").relationship("volumes", "ebs").where(Leaf("encrypted", "eq", False)).build()
        assert isinstance(expression, Relationship)
        assert expression.target_type == "ebs"

    def test_helpers(self) -> None:
        assert tag_filter("Owner") == Leaf("tags.Owner", "exists")
        assert tag_filter("Env", "prod").operator is Operator.EQ
        single = Leaf("state", "eq", "running")
        assert combine_with_and(single) is single
        assert combine_with_or(single, tag_filter("Owner")) == Or((single, Leaf("tags.Owner", "exists")))
        assert negate(single) == Not(single)
        assert cost_filter("gt", 100) == Leaf("monthly_cost", "gt", 100)
        assert age_filter("gte", 30) == Leaf("age_days", "gte", 30)
        assert utilization_filter("memory_utilization", "lt", 10) == Leaf("memory_utilization", "lt", 10)


# ---------------------------------------------------------------------------
# Prebuilt filters
# ---------------------------------------------------------------------------


class TestPrebuiltFilters:
    def test_every_example_validates(self) -> None:
        registry = default_registry()
        validator = FilterValidator(registry)
        for resource_type in registry.resource_types():
            examples = example_filters(resource_type)
            assert examples, resource_type
            for name, expression in examples.items():
                assert validator.validate(expression, resource_type) == [], f"{resource_type}: {name}"

    def test_unknown_type_has_no_examples(self) -> None:
        assert example_filters("mainframe") == {}

    def test_unused_instances(self) -> None:
        expression = PrebuiltFilters.unused_instances(cpu_threshold=10, min_days=3)
        assert expression.children[1] == Leaf("cpu_utilization", "lt", 10.0)
        assert expression.children[2] == Leaf("running_days", "gte", 3)

    def test_missing_required_tags(self) -> None:
        expression = PrebuiltFilters.missing_required_tags("Owner", "Project")
        assert [leaf.field for leaf in expression.children] == ["tags.Owner", "tags.Project"]
        assert all(leaf.operator is Operator.NOT_EXISTS for leaf in expression.children)


# ---------------------------------------------------------------------------
# Expression dict form
# ---------------------------------------------------------------------------


class TestExpressionDicts:
    def test_nested_document(self) -> None:
        data = {
            "and": [
                {"field": "state", "operator": "eq", "value": "running"},
                {"not": {"field": "tags.Owner", "operator": "exists"}},
                {
                    "field": "security_groups",
                    "collection": {
                        "operation": "any",
                        "filter": {"field": "", "operator": "starts-with", "value": "sg-open"},
                    },
                },
            ]
        }
        expression = expression_from_dict(data)
        assert isinstance(expression, And)
        assert isinstance(expression.children[1], Not)
        assert expression_to_dict(expression) == data

    def test_literal_parsing(self) -> None:
        assert isinstance(Leaf("size", "gt", 5).value, IntValue)
        assert isinstance(Leaf("name", "eq", "web").value, StringValue)
        assert isinstance(Leaf("create_time", "age-gt", "30d").value, DurationValue)

    @pytest.mark.parametrize(
        "text,expected",
        [(">=", Operator.GTE), ("not_in", Operator.NOT_IN), ("EQUALS", Operator.EQ), ("missing", Operator.NOT_EXISTS)],
    )
    def test_operator_aliases(self, text: str, expected: Operator) -> None:
        assert Operator.parse(text) is expected

    def test_unknown_operator(self) -> None:
        with pytest.raises(ValidationError, match="unsupported operator: approx"):
            Leaf("size", "approx", 5)

    def test_node_without_kind(self) -> None:
        with pytest.raises(ValidationError, match="node must contain"):
            expression_from_dict({"field": "state"})

    def test_count_collection_requires_comparison(self) -> None:
        with pytest.raises(ValidationError, match="count comparison"):
            Collection("security_groups", "count", Leaf("", "exists"))


# ---------------------------------------------------------------------------
# Durations
# ---------------------------------------------------------------------------


class TestDurations:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("1h30m", timedelta(minutes=90)),
            ("72h", timedelta(days=3)),
            ("30d", timedelta(days=30)),
            ("2w", timedelta(weeks=2)),
            ("30 days", timedelta(days=30)),
            ("1 month", timedelta(days=30)),
            ("1 year", timedelta(days=365)),
            (90, timedelta(seconds=90)),
        ],
    )
    def test_parse(self, text: object, expected: timedelta) -> None:
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["fortnight", "3 parsecs", "abc days", True])
    def test_invalid(self, text: object) -> None:
        with pytest.raises(ValueError):
            parse_duration(text)
        assert is_duration(text) is False
