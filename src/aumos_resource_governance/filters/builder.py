"""Fluent construction of filter expressions.

Example
-------
::

    from aumos_resource_governance.filters.builder import FilterBuilder
    from aumos_resource_governance.filters.expression import Leaf

    expression = (
        FilterBuilder("ec2")
        .field("state").equals("running")
        .and_(Leaf("cpu_utilization", "lt", 5.0))
        .build()
    )

    idle = FilterBuilder("ec2").collection("security_groups").any(
        Leaf("", "starts-with", "sg-legacy")
    ).build()

Every terminal method on a field, collection or relationship step sets the
builder's current expression and returns the builder, so steps can be
chained with :meth:`FilterBuilder.and_`, :meth:`FilterBuilder.or_` and
:meth:`FilterBuilder.not_`.
"""
from __future__ import annotations

from collections.abc import Iterable

from aumos_resource_governance.errors import ValidationError
from aumos_resource_governance.filters.expression import (
    And,
    Collection,
    CollectionOperation,
    CountComparison,
    FilterExpression,
    Leaf,
    Not,
    Or,
    Relationship,
)
from aumos_resource_governance.filters.validator import FilterValidator
from aumos_resource_governance.resources.registry import SchemaRegistry


class FilterBuilder:
    """Chainable builder for a filter on one resource type.

    Parameters
    ----------
    resource_type:
        Resource type (or alias) the filter targets.  Used by
        :meth:`validate` and :meth:`build`.
    registry:
        Optional registry for validation.
    """

    def __init__(self, resource_type: str, registry: SchemaRegistry | None = None) -> None:
        self.resource_type = resource_type
        self._validator = FilterValidator(registry)
        self._expression: FilterExpression | None = None

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def field(self, path: str) -> "FieldFilterBuilder":
        return FieldFilterBuilder(self, path)

    def collection(self, path: str) -> "CollectionFilterBuilder":
        return CollectionFilterBuilder(self, path)

    def relationship(self, relationship: str, target_type: str, direction: str = "outbound") -> "RelationshipFilterBuilder":
        return RelationshipFilterBuilder(self, relationship, target_type, direction)

    def set(self, expression: FilterExpression) -> "FilterBuilder":
        """Replace the current expression."""
        self._expression = expression
        return self

    # ------------------------------------------------------------------
    # Combinators
    # ------------------------------------------------------------------

    def and_(self, *expressions: FilterExpression) -> "FilterBuilder":
        """AND the current expression (if any) with *expressions*."""
        self._expression = And(self._with_current(expressions))
        return self

    def or_(self, *expressions: FilterExpression) -> "FilterBuilder":
        """OR the current expression (if any) with *expressions*."""
        self._expression = Or(self._with_current(expressions))
        return self

    def not_(self, expression: FilterExpression | None = None) -> "FilterBuilder":
        """Negate *expression*, or the current expression when omitted."""
        target = expression if expression is not None else self._expression
        if target is None:
            raise ValidationError("Nothing to negate", ["builder has no expression"])
        self._expression = Not(target)
        return self

    def _with_current(self, expressions: Iterable[FilterExpression]) -> tuple[FilterExpression, ...]:
        head = (self._expression,) if self._expression is not None else ()
        return head + tuple(expressions)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def validate(self) -> list[str]:
        """Return the validation problems of the current expression."""
        if self._expression is None:
            return ["filter is empty"]
        return self._validator.validate(self._expression, self.resource_type)

    def build(self, validate: bool = True) -> FilterExpression:
        """Return the built expression.

        Raises
        ------
        ValidationError:
            When *validate* is set and the expression has problems.
        """
        if validate:
            problems = self.validate()
            if problems:
                raise ValidationError("filter validation errors", problems)
        if self._expression is None:
            raise ValidationError("filter validation errors", ["filter is empty"])
        return self._expression


class FieldFilterBuilder:
    """Leaf step returned by :meth:`FilterBuilder.field`."""

    def __init__(self, parent: FilterBuilder, path: str) -> None:
        self._parent = parent
        self._path = path

    def _leaf(self, operator: str, value: object = None, case_sensitive: bool = False) -> FilterBuilder:
        return self._parent.set(Leaf(self._path, operator, value, case_sensitive=case_sensitive))  # type: ignore[arg-type]

    def equals(self, value: object, case_sensitive: bool = False) -> FilterBuilder:
        return self._leaf("eq", value, case_sensitive)

    def not_equals(self, value: object, case_sensitive: bool = False) -> FilterBuilder:
        return self._leaf("ne", value, case_sensitive)

    def greater_than(self, value: object) -> FilterBuilder:
        return self._leaf("gt", value)

    def greater_or_equal(self, value: object) -> FilterBuilder:
        return self._leaf("gte", value)

    def less_than(self, value: object) -> FilterBuilder:
        return self._leaf("lt", value)

    def less_or_equal(self, value: object) -> FilterBuilder:
        return self._leaf("lte", value)

    def between(self, low: object, high: object) -> FilterBuilder:
        return self._leaf("between", [low, high])

    def in_(self, *values: object) -> FilterBuilder:
        return self._leaf("in", list(values))

    def not_in(self, *values: object) -> FilterBuilder:
        return self._leaf("not-in", list(values))

    def contains(self, value: object, case_sensitive: bool = False) -> FilterBuilder:
        return self._leaf("contains", value, case_sensitive)

    def not_contains(self, value: object, case_sensitive: bool = False) -> FilterBuilder:
        return self._leaf("not-contains", value, case_sensitive)

    def starts_with(self, value: str, case_sensitive: bool = False) -> FilterBuilder:
        return self._leaf("starts-with", value, case_sensitive)

    def ends_with(self, value: str, case_sensitive: bool = False) -> FilterBuilder:
        return self._leaf("ends-with", value, case_sensitive)

    def regex(self, pattern: str, case_sensitive: bool = False) -> FilterBuilder:
        return self._leaf("regex", pattern, case_sensitive)

    def exists(self) -> FilterBuilder:
        return self._leaf("exists")

    def not_exists(self) -> FilterBuilder:
        return self._leaf("not-exists")

    def empty(self) -> FilterBuilder:
        return self._leaf("empty")

    def not_empty(self) -> FilterBuilder:
        return self._leaf("not-empty")

    def age_greater_than(self, duration: object) -> FilterBuilder:
        return self._leaf("age-gt", duration)

    def age_less_than(self, duration: object) -> FilterBuilder:
        return self._leaf("age-lt", duration)


class CollectionFilterBuilder:
    """Collection step returned by :meth:`FilterBuilder.collection`."""

    def __init__(self, parent: FilterBuilder, path: str) -> None:
        self._parent = parent
        self._path = path

    def _collection(
        self,
        operation: CollectionOperation,
        item_filter: FilterExpression,
        count: CountComparison | None = None,
    ) -> FilterBuilder:
        return self._parent.set(Collection(self._path, operation, item_filter, count))

    def any(self, item_filter: FilterExpression) -> FilterBuilder:
        return self._collection(CollectionOperation.ANY, item_filter)

    def all(self, item_filter: FilterExpression) -> FilterBuilder:
        return self._collection(CollectionOperation.ALL, item_filter)

    def none(self, item_filter: FilterExpression) -> FilterBuilder:
        return self._collection(CollectionOperation.NONE, item_filter)

    def count(self, operator: str, threshold: int, item_filter: FilterExpression) -> FilterBuilder:
        comparison = CountComparison(operator, threshold)  # type: ignore[arg-type]
        return self._collection(CollectionOperation.COUNT, item_filter, comparison)


class RelationshipFilterBuilder:
    """Relationship step returned by :meth:`FilterBuilder.relationship`."""

    def __init__(self, parent: FilterBuilder, relationship: str, target_type: str, direction: str) -> None:
        self._parent = parent
        self._relationship = relationship
        self._target_type = target_type
        self._direction = direction

    def where(self, target_filter: FilterExpression | None = None) -> FilterBuilder:
        return self._parent.set(
            Relationship(self._relationship, self._target_type, target_filter, self._direction)
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def combine_with_and(*expressions: FilterExpression) -> FilterExpression:
    """AND *expressions*; a single expression is returned unchanged."""
    if len(expressions) == 1:
        return expressions[0]
    return And(expressions)


def combine_with_or(*expressions: FilterExpression) -> FilterExpression:
    """OR *expressions*; a single expression is returned unchanged."""
    if len(expressions) == 1:
        return expressions[0]
    return Or(expressions)


def negate(expression: FilterExpression) -> FilterExpression:
    return Not(expression)


def tag_filter(key: str, value: object = None) -> Leaf:
    """Tag presence check, or tag equality when *value* is given."""
    if value is None:
        return Leaf(f"tags.{key}", "exists")  # type: ignore[arg-type]
    return Leaf(f"tags.{key}", "eq", value)  # type: ignore[arg-type]


def cost_filter(operator: str, threshold: float) -> Leaf:
    return Leaf("monthly_cost", operator, threshold)  # type: ignore[arg-type]


def age_filter(operator: str, days: int) -> Leaf:
    return Leaf("age_days", operator, days)  # type: ignore[arg-type]


def utilization_filter(field_name: str, operator: str, threshold: float) -> Leaf:
    return Leaf(field_name, operator, threshold)  # type: ignore[arg-type]
