"""Filter expression tree.

A filter expression is a recursive tree of frozen nodes:

- :class:`And` / :class:`Or` over an ordered tuple of children;
- :class:`Not` over a single child;
- :class:`Leaf`, a single ``field operator value`` condition;
- :class:`Collection`, an ``any`` / ``all`` / ``none`` / ``count`` test of an
  item filter over a sequence-valued field;
- :class:`Relationship`, a condition on related resources.

The same tree is produced by the fluent builder, by the policy parser and
by :func:`expression_from_dict`, and is consumed by the evaluator and the
validator.

Serialised form
---------------
The dict form mirrors the policy document mini-language::

    {"and": [
        {"field": "state", "operator": "eq", "value": "running"},
        {"not": {"field": "tags.Owner", "operator": "exists"}},
        {"field": "security_groups", "collection": {
            "operation": "any",
            "filter": {"field": "", "operator": "starts-with", "value": "sg-open"}}},
    ]}
"""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Union

from aumos_resource_governance.errors import ValidationError
from aumos_resource_governance.filters.values import NULL, Literal, parse_literal


class Operator(str, Enum):
    """Leaf comparison operators."""

    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    BETWEEN = "between"
    IN = "in"
    NOT_IN = "not-in"
    CONTAINS = "contains"
    NOT_CONTAINS = "not-contains"
    STARTS_WITH = "starts-with"
    ENDS_WITH = "ends-with"
    REGEX = "regex"
    EXISTS = "exists"
    NOT_EXISTS = "not-exists"
    EMPTY = "empty"
    NOT_EMPTY = "not-empty"
    AGE_GT = "age-gt"
    AGE_LT = "age-lt"

    @classmethod
    def parse(cls, text: "str | Operator") -> "Operator":
        """Return the operator named by *text*, accepting common aliases.

        Raises
        ------
        ValidationError:
            When *text* names no known operator.
        """
        if isinstance(text, Operator):
            return text
        key = str(text).strip().lower().replace("_", "-")
        key = _OPERATOR_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise ValidationError("Unknown operator", [f"unsupported operator: {text}"]) from None


_OPERATOR_ALIASES: dict[str, str] = {
    "equals": "eq",
    "==": "eq",
    "=": "eq",
    "not-equals": "ne",
    "!=": "ne",
    ">": "gt",
    ">=": "gte",
    "<": "lt",
    "<=": "lte",
    "matches": "regex",
    "missing": "not-exists",
    "not-exist": "not-exists",
}

COUNT_OPERATORS = frozenset(
    {Operator.EQ, Operator.NE, Operator.GT, Operator.GTE, Operator.LT, Operator.LTE}
)


class CollectionOperation(str, Enum):
    ANY = "any"
    ALL = "all"
    NONE = "none"
    COUNT = "count"


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class And:
    children: tuple["FilterExpression", ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", tuple(self.children))


@dataclass(frozen=True)
class Or:
    children: tuple["FilterExpression", ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", tuple(self.children))


@dataclass(frozen=True)
class Not:
    child: "FilterExpression"


@dataclass(frozen=True)
class Leaf:
    """A single field condition.

    ``operator`` may be given as text and ``value`` as a raw JSON/YAML
    value; both are normalised on construction.

    Attributes
    ----------
    field:
        Field path such as ``"tags.Environment"``.
    operator:
        Comparison operator.
    value:
        Parsed literal; :data:`~aumos_resource_governance.filters.values.NULL`
        for operators that take no value.
    case_sensitive:
        When ``False`` (the default) string comparisons ignore case.
    timezone:
        Optional IANA zone name recorded with the condition.
    """

    field: str
    operator: Operator
    value: Literal = NULL
    case_sensitive: bool = False
    timezone: str | None = None

    def __post_init__(self) -> None:
        operator = Operator.parse(self.operator)
        object.__setattr__(self, "operator", operator)
        object.__setattr__(self, "value", parse_literal(self.value, operator.value))


@dataclass(frozen=True)
class CountComparison:
    operator: Operator
    threshold: int

    def __post_init__(self) -> None:
        operator = Operator.parse(self.operator)
        if operator not in COUNT_OPERATORS:
            raise ValidationError("Invalid count comparison", [f"unsupported count operator: {operator.value}"])
        object.__setattr__(self, "operator", operator)


@dataclass(frozen=True)
class Collection:
    """Apply *item_filter* to each element of the sequence at *field*."""

    field: str
    operation: CollectionOperation
    item_filter: "FilterExpression"
    count: CountComparison | None = None

    def __post_init__(self) -> None:
        try:
            operation = CollectionOperation(str(getattr(self.operation, "value", self.operation)).lower())
        except ValueError:
            raise ValidationError(
                "Invalid collection filter", [f"unsupported collection operation: {self.operation}"]
            ) from None
        if operation is CollectionOperation.COUNT and self.count is None:
            raise ValidationError("Invalid collection filter", ["count operation requires a count comparison"])
        object.__setattr__(self, "operation", operation)


@dataclass(frozen=True)
class Relationship:
    """Condition on resources related to the evaluated record."""

    relationship: str
    target_type: str
    target_filter: "FilterExpression | None" = None
    direction: str = "outbound"


FilterExpression = Union[And, Or, Not, Leaf, Collection, Relationship]


# ---------------------------------------------------------------------------
# Dict form
# ---------------------------------------------------------------------------


def expression_from_dict(data: Mapping[str, object]) -> FilterExpression:
    """Build an expression tree from its dict (JSON/YAML) form.

    Raises
    ------
    ValidationError:
        When the dict does not describe exactly one node kind, or a leaf
        names an unknown operator.
    """
    if not isinstance(data, Mapping):
        raise ValidationError("Invalid filter expression", [f"expected a mapping, got {type(data).__name__}"])
    keys = {str(key).lower(): value for key, value in data.items()}

    if "and" in keys:
        return And(tuple(expression_from_dict(child) for child in _as_list(keys["and"], "and")))
    if "or" in keys:
        return Or(tuple(expression_from_dict(child) for child in _as_list(keys["or"], "or")))
    if "not" in keys:
        return Not(expression_from_dict(keys["not"]))  # type: ignore[arg-type]
    if "relationship" in keys:
        rel = keys["relationship"]
        if not isinstance(rel, Mapping):
            raise ValidationError("Invalid filter expression", ["relationship must be a mapping"])
        target_filter = rel.get("target_filter")
        return Relationship(
            relationship=str(rel.get("type", "")),
            target_type=str(rel.get("target_type", "")),
            target_filter=expression_from_dict(target_filter) if target_filter else None,  # type: ignore[arg-type]
            direction=str(rel.get("direction", "outbound")),
        )
    if "collection" in keys:
        coll = keys["collection"]
        if not isinstance(coll, Mapping) or "filter" not in coll:
            raise ValidationError("Invalid filter expression", ["collection requires an item 'filter'"])
        count = coll.get("count")
        comparison = None
        if isinstance(count, Mapping):
            comparison = CountComparison(
                operator=count.get("operator", "eq"),  # type: ignore[arg-type]
                threshold=int(count.get("value", 0)),  # type: ignore[arg-type]
            )
        return Collection(
            field=str(keys.get("field", "")),
            operation=str(coll.get("operation", "any")),  # type: ignore[arg-type]
            item_filter=expression_from_dict(coll["filter"]),  # type: ignore[arg-type]
            count=comparison,
        )
    if "operator" in keys or "op" in keys:
        return Leaf(
            field=str(keys.get("field", "") or ""),
            operator=keys.get("operator", keys.get("op")),  # type: ignore[arg-type]
            value=keys.get("value"),  # type: ignore[arg-type]
            case_sensitive=bool(keys.get("case_sensitive", False)),
            timezone=keys.get("timezone"),  # type: ignore[arg-type]
        )
    raise ValidationError(
        "Invalid filter expression",
        [f"node must contain one of and/or/not/operator/collection/relationship, got keys {sorted(keys)}"],
    )


def _as_list(value: object, key: str) -> Sequence[Mapping[str, object]]:
    if not isinstance(value, (list, tuple)):
        raise ValidationError("Invalid filter expression", [f"'{key}' must be a list"])
    return value


def expression_to_dict(expression: FilterExpression) -> dict[str, object]:
    """Serialise an expression tree to its dict form."""
    match expression:
        case And(children=children):
            return {"and": [expression_to_dict(child) for child in children]}
        case Or(children=children):
            return {"or": [expression_to_dict(child) for child in children]}
        case Not(child=child):
            return {"not": expression_to_dict(child)}
        case Leaf():
            out: dict[str, object] = {"field": expression.field, "operator": expression.operator.value}
            if expression.value is not NULL:
                out["value"] = expression.value.to_python()
            if expression.case_sensitive:
                out["case_sensitive"] = True
            if expression.timezone:
                out["timezone"] = expression.timezone
            return out
        case Collection():
            coll: dict[str, object] = {
                "operation": expression.operation.value,
                "filter": expression_to_dict(expression.item_filter),
            }
            if expression.count is not None:
                coll["count"] = {"operator": expression.count.operator.value, "value": expression.count.threshold}
            return {"field": expression.field, "collection": coll}
        case Relationship():
            rel: dict[str, object] = {
                "type": expression.relationship,
                "target_type": expression.target_type,
                "direction": expression.direction,
            }
            if expression.target_filter is not None:
                rel["target_filter"] = expression_to_dict(expression.target_filter)
            return {"relationship": rel}
    raise TypeError(f"not a filter expression: {expression!r}")

