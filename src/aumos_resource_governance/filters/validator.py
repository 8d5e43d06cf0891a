"""Authoring-time validation of filter expressions against the schema registry.

Validation walks the whole tree and collects every problem instead of
stopping at the first one, so a policy author sees the complete list in a
single pass.  An empty list means the expression is valid.

Example
-------
>>> from aumos_resource_governance.filters.expression import Leaf
>>> FilterValidator().validate(Leaf("encrypted", "gt", True), "ebs")
["operator 'gt' is not valid for field 'encrypted'"]
"""
from __future__ import annotations

import logging

from aumos_resource_governance.errors import ValidationError
from aumos_resource_governance.filters.expression import (
    And,
    Collection,
    FilterExpression,
    Leaf,
    Not,
    Operator,
    Or,
    Relationship,
)
from aumos_resource_governance.filters.paths import compile_path
from aumos_resource_governance.filters.values import (
    BoolValue,
    DurationValue,
    FloatValue,
    IntValue,
    ListValue,
    Literal,
    NullValue,
    StringValue,
    TimeValue,
)
from aumos_resource_governance.resources.definitions import FieldDefinition, ValueType
from aumos_resource_governance.resources.registry import SchemaRegistry, base_field, default_registry
from aumos_resource_governance.timestamps import parse_timestamp

logger = logging.getLogger(__name__)

_VALUELESS = frozenset({Operator.EXISTS, Operator.NOT_EXISTS, Operator.EMPTY, Operator.NOT_EMPTY})
_LIST_OPERATORS = frozenset({Operator.IN, Operator.NOT_IN})
_AGE_OPERATORS = frozenset({Operator.AGE_GT, Operator.AGE_LT})
_MEMBER_OPERATORS = frozenset({Operator.CONTAINS, Operator.NOT_CONTAINS})


class FilterValidator:
    """Checks filter expressions against the resource schema registry.

    Parameters
    ----------
    registry:
        Registry to validate against.  Defaults to the process-wide
        registry built from the static catalog.
    """

    def __init__(self, registry: SchemaRegistry | None = None) -> None:
        self._registry = registry or default_registry()

    def validate(self, expression: FilterExpression, resource_type: str) -> list[str]:
        """Return the ordered list of problems found in *expression*.

        Parameters
        ----------
        expression:
            Root of the expression tree.
        resource_type:
            Resource type (or alias) the expression targets.

        Returns
        -------
        list[str]
            Human-readable problems; empty when the expression is valid.
        """
        canonical = self._registry.canonical_type(resource_type)
        if canonical is None:
            return [f"unknown resource type: {resource_type}"]
        problems = self._validate_node(expression, canonical)
        if problems:
            logger.debug("Filter for %s has %d problem(s)", canonical, len(problems))
        return problems

    def is_valid(self, expression: FilterExpression, resource_type: str) -> bool:
        return not self.validate(expression, resource_type)

    # ------------------------------------------------------------------
    # Tree walk
    # ------------------------------------------------------------------

    def _validate_node(self, expression: FilterExpression, resource_type: str) -> list[str]:
        match expression:
            case And(children=children) | Or(children=children):
                problems: list[str] = []
                for child in children:
                    problems.extend(self._validate_node(child, resource_type))
                return problems
            case Not(child=child):
                return self._validate_node(child, resource_type)
            case Leaf():
                return self._validate_leaf(expression, resource_type)
            case Collection():
                return self._validate_collection(expression, resource_type)
            case Relationship():
                return self._validate_relationship(expression, resource_type)
        return [f"unsupported filter node: {type(expression).__name__}"]

    def _validate_leaf(self, leaf: Leaf, resource_type: str) -> list[str]:
        path_problems = _path_problems(leaf.field)
        if path_problems:
            return path_problems
        base = base_field(leaf.field)
        field_def = self._registry.field_of(resource_type, base)
        if field_def is None:
            return [f"field '{base}' does not exist for resource type '{resource_type}'"]

        problems: list[str] = []
        operator = leaf.operator
        nested = leaf.field != base
        # operators on a map or array field describe the container, not its members
        member_access = nested and field_def.value_type in (ValueType.ARRAY, ValueType.MAP)
        if not member_access and not field_def.allows(operator.value):
            problems.append(f"operator '{operator.value}' is not valid for field '{leaf.field}'")

        value_problem = _check_value(leaf.field, leaf.value, field_def, operator, nested)
        if value_problem:
            problems.append(value_problem)

        if (
            field_def.enum_values
            and operator is Operator.EQ
            and isinstance(leaf.value, StringValue)
            and leaf.value.value not in field_def.enum_values
        ):
            problems.append(
                f"value '{leaf.value.value}' is not a valid enum value for field '{leaf.field}'. "
                f"Valid values: {list(field_def.enum_values)}"
            )
        return problems

    def _validate_collection(self, node: Collection, resource_type: str) -> list[str]:
        path_problems = _path_problems(node.field)
        if path_problems:
            return path_problems
        base = base_field(node.field)
        field_def = self._registry.field_of(resource_type, base)
        if field_def is None:
            return [f"field '{base}' does not exist for resource type '{resource_type}'"]
        if field_def.value_type is not ValueType.ARRAY:
            return [f"collection filter requires an array field, '{node.field}' is {field_def.value_type.value}"]
        return []

    def _validate_relationship(self, node: Relationship, resource_type: str) -> list[str]:
        definition = self._registry.lookup(resource_type)
        names = {rel.name for rel in definition.relationships} if definition else set()
        problems: list[str] = []
        if node.relationship not in names:
            problems.append(f"relationship '{node.relationship}' is not declared for resource type '{resource_type}'")
        target = self._registry.canonical_type(node.target_type)
        if node.target_filter is not None:
            if target is None:
                problems.append(f"target filter not validated: unknown resource type '{node.target_type}'")
            else:
                problems.extend(self._validate_node(node.target_filter, target))
        return problems


def _path_problems(field_path: str) -> list[str]:
    try:
        compile_path(field_path)
    except ValidationError as exc:
        return exc.problems
    return []

def _check_value(
    field_path: str,
    literal: Literal,
    field_def: FieldDefinition,
    operator: Operator,
    nested: bool,
) -> str | None:
    """Return a problem describing an incompatible literal, or ``None``."""
    if isinstance(literal, NullValue):
        if operator in _VALUELESS:
            return None
        return f"null value not allowed for operator '{operator.value}'"

    if operator in _LIST_OPERATORS:
        if not isinstance(literal, ListValue):
            return f"operator '{operator.value}' requires array value"
        if len(literal) == 0:
            return f"operator '{operator.value}' requires at least one value"
        return None

    if operator is Operator.BETWEEN:
        if not isinstance(literal, ListValue):
            return "operator 'between' requires array value"
        if len(literal) != 2:
            return "operator 'between' requires exactly 2 values"
        return None

    # nested paths (tags.X, items[0]) and collection members hold arbitrary scalars
    if nested or (operator in _MEMBER_OPERATORS and field_def.value_type in (ValueType.ARRAY, ValueType.MAP)):
        return None

    expected = field_def.value_type
    match expected:
        case ValueType.STRING:
            ok = isinstance(literal, StringValue)
        case ValueType.INT:
            ok = isinstance(literal, IntValue)
        case ValueType.FLOAT:
            ok = isinstance(literal, (IntValue, FloatValue))
        case ValueType.BOOL:
            ok = isinstance(literal, BoolValue)
        case ValueType.TIME if operator in _AGE_OPERATORS:
            ok = isinstance(literal, (DurationValue, IntValue, FloatValue))
            if not ok:
                return f"operator '{operator.value}' requires a duration value"
        case ValueType.TIME:
            ok = isinstance(literal, TimeValue) or (
                isinstance(literal, StringValue) and parse_timestamp(literal.value) is not None
            )
        case _:
            ok = True
    if not ok:
        return f"field '{field_path}' expects {expected.value} value"
    return None
