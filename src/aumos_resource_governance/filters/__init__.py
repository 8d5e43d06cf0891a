"""Filter expression package.

Exports the expression tree, the evaluator, the validator and the fluent
builder used by policies and the execution engine.
"""
from __future__ import annotations

from aumos_resource_governance.filters.builder import FilterBuilder
from aumos_resource_governance.filters.evaluator import FilterEvaluator, RelationshipResolver
from aumos_resource_governance.filters.expression import (
    And,
    Collection,
    CollectionOperation,
    CountComparison,
    FilterExpression,
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
from aumos_resource_governance.filters.values import parse_literal

__all__ = [
    "And",
    "Collection",
    "CollectionOperation",
    "CountComparison",
    "FilterBuilder",
    "FilterEvaluator",
    "FilterExpression",
    "FilterValidator",
    "Leaf",
    "Not",
    "Operator",
    "Or",
    "PrebuiltFilters",
    "Relationship",
    "RelationshipResolver",
    "example_filters",
    "expression_from_dict",
    "expression_to_dict",
    "parse_literal",
]
