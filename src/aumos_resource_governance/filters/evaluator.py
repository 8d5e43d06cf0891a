"""Filter expression evaluator.

The :class:`FilterEvaluator` decides whether a single resource record
satisfies a filter expression.  It is a pure function of the expression,
the record and the injected clock: it never consults the schema registry,
so records with fields the catalog does not know about evaluate normally.

Evaluation is permissive about data and strict about operators.  A field
that cannot be resolved is ``None`` and is handled by the null rules; an
operator that cannot be applied to the resolved value raises
:class:`~aumos_resource_governance.errors.EvaluationError`.

Example
-------
>>> from aumos_resource_governance.filters.expression import And, Leaf
>>> evaluator = FilterEvaluator()
>>> expression = And((Leaf("state", "eq", "RUNNING"), Leaf("cpu_utilization", "lt", 5)))
>>> evaluator.evaluate(expression, {"state": "running", "cpu_utilization": 1.5})
True
"""
from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import datetime, timedelta

from aumos_resource_governance.errors import EvaluationError, ValidationError
from aumos_resource_governance.filters.durations import parse_duration
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
)
from aumos_resource_governance.filters.paths import compile_path
from aumos_resource_governance.filters.values import ListValue, NullValue
from aumos_resource_governance.timestamps import coerce_datetime, parse_timestamp, utc_now

logger = logging.getLogger(__name__)


class RelationshipResolver(ABC):
    """Source of related resources for relationship filters."""

    @abstractmethod
    def related(
        self,
        record: object,
        relationship: str,
        target_type: str,
        direction: str,
    ) -> Iterable[object]:
        """Return the records related to *record* through *relationship*."""


class FilterEvaluator:
    """Evaluates filter expressions against resource records.

    Parameters
    ----------
    now:
        Zero-argument callable returning the current aware datetime.  Used
        by the age operators and by computed age fields.  Defaults to UTC
        wall-clock time.
    relationship_resolver:
        Optional resolver for :class:`Relationship` nodes.  Without one,
        relationship nodes raise :class:`EvaluationError`.
    """

    def __init__(
        self,
        now: Callable[[], datetime] | None = None,
        relationship_resolver: RelationshipResolver | None = None,
    ) -> None:
        self._now = now or utc_now
        self._relationship_resolver = relationship_resolver

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def evaluate(self, expression: FilterExpression, record: object) -> bool:
        """Return ``True`` when *record* satisfies *expression*.

        Parameters
        ----------
        expression:
            Root of the filter expression tree.
        record:
            A :class:`~aumos_resource_governance.resources.records.ResourceRecord`
            or any plain mapping.

        Raises
        ------
        EvaluationError:
            When an operator cannot be applied to a resolved value.
        """
        return self._evaluate(expression, record, self._now())

    def matches(self, expression: FilterExpression, record: object) -> bool:
        """Like :meth:`evaluate`, but an :class:`EvaluationError` counts as no match."""
        try:
            return self.evaluate(expression, record)
        except EvaluationError as exc:
            logger.debug("Treating record as non-matching: %s", exc)
            return False

    def select(self, expression: FilterExpression, records: Iterable[object]) -> list[object]:
        """Return the records matching *expression*, in input order."""
        return [record for record in records if self.matches(expression, record)]

    # ------------------------------------------------------------------
    # Node dispatch
    # ------------------------------------------------------------------

    def _evaluate(self, expression: FilterExpression, target: object, now: datetime) -> bool:
        match expression:
            case And(children=children):
                for child in children:
                    if not self._evaluate(child, target, now):
                        return False
                return True
            case Or(children=children):
                for child in children:
                    if self._evaluate(child, target, now):
                        return True
                return False
            case Not(child=child):
                return not self._evaluate(child, target, now)
            case Leaf():
                return self._evaluate_leaf(expression, target, now)
            case Collection():
                return self._evaluate_collection(expression, target, now)
            case Relationship():
                return self._evaluate_relationship(expression, target, now)
        raise EvaluationError(f"unsupported filter node: {type(expression).__name__}")

    # ------------------------------------------------------------------
    # Leaves
    # ------------------------------------------------------------------

    def _evaluate_leaf(self, leaf: Leaf, target: object, now: datetime) -> bool:
        actual = _resolve_path(leaf.field, leaf.operator.value, target, now)
        operator = leaf.operator
        literal = leaf.value
        expected = literal.value

        if actual is None:
            return _null_outcome(operator, isinstance(literal, NullValue))

        try:
            return self._apply(operator, actual, expected, literal, leaf.case_sensitive, now)
        except EvaluationError as exc:
            if exc.field is None:
                exc.field = leaf.field
            if exc.operator is None:
                exc.operator = operator.value
            raise

    def _apply(
        self,
        operator: Operator,
        actual: object,
        expected: object,
        literal: object,
        case_sensitive: bool,
        now: datetime,
    ) -> bool:
        match operator:
            case Operator.EQ:
                return _equals(actual, expected, case_sensitive)
            case Operator.NE:
                return not _equals(actual, expected, case_sensitive)
            case Operator.GT:
                return _greater(actual, expected)
            case Operator.GTE:
                return _greater(actual, expected) or _equals(actual, expected, True)
            case Operator.LT:
                return not _greater(actual, expected) and not _equals(actual, expected, True)
            case Operator.LTE:
                return not _greater(actual, expected)
            case Operator.BETWEEN:
                return _between(actual, literal)
            case Operator.IN:
                return _member(actual, literal)
            case Operator.NOT_IN:
                return not _member(actual, literal)
            case Operator.CONTAINS:
                return _contains(actual, expected, case_sensitive)
            case Operator.NOT_CONTAINS:
                return not _contains(actual, expected, case_sensitive)
            case Operator.STARTS_WITH:
                text, prefix = _string_pair(actual, expected, "starts-with", case_sensitive)
                return text.startswith(prefix)
            case Operator.ENDS_WITH:
                text, suffix = _string_pair(actual, expected, "ends-with", case_sensitive)
                return text.endswith(suffix)
            case Operator.REGEX:
                return _regex(actual, expected, case_sensitive)
            case Operator.EXISTS:
                return True
            case Operator.NOT_EXISTS:
                return False
            case Operator.EMPTY:
                return _is_empty(actual)
            case Operator.NOT_EMPTY:
                return not _is_empty(actual)
            case Operator.AGE_GT:
                return _age(actual, "age-gt", now) > _duration(expected, "age-gt")
            case Operator.AGE_LT:
                return _age(actual, "age-lt", now) < _duration(expected, "age-lt")
        raise EvaluationError(f"unsupported operator: {operator}")

    # ------------------------------------------------------------------
    # Collections and relationships
    # ------------------------------------------------------------------

    def _evaluate_collection(self, node: Collection, target: object, now: datetime) -> bool:
        items = _resolve_path(node.field, node.operation.value, target, now)
        if items is None:
            items = ()
        if isinstance(items, (str, bytes)) or not isinstance(items, Sequence):
            raise EvaluationError(
                "collection filter requires a sequence field",
                operator=node.operation.value,
                field=node.field,
            )

        match node.operation:
            case CollectionOperation.ANY:
                return self._any(node.item_filter, items, now)
            case CollectionOperation.NONE:
                return not self._any(node.item_filter, items, now)
            case CollectionOperation.ALL:
                return all(self._evaluate(node.item_filter, item, now) for item in items)
            case CollectionOperation.COUNT:
                matched = sum(1 for item in items if self._item_matches(node.item_filter, item, now))
                return _compare_count(matched, node.count)
        raise EvaluationError(f"unsupported collection operation: {node.operation}", field=node.field)

    def _any(self, item_filter: FilterExpression, items: Sequence[object], now: datetime) -> bool:
        return any(self._item_matches(item_filter, item, now) for item in items)

    def _item_matches(self, item_filter: FilterExpression, item: object, now: datetime) -> bool:
        # any/none/count skip items that cannot be evaluated
        try:
            return self._evaluate(item_filter, item, now)
        except EvaluationError as exc:
            logger.debug("Skipping collection item: %s", exc)
            return False

    def _evaluate_relationship(self, node: Relationship, target: object, now: datetime) -> bool:
        if self._relationship_resolver is None:
            raise EvaluationError(
                "relationship filters are not implemented without a relationship resolver",
                operator=node.relationship,
            )
        for related in self._relationship_resolver.related(
            target, node.relationship, node.target_type, node.direction
        ):
            if node.target_filter is None or self._evaluate(node.target_filter, related, now):
                return True
        return False


# ---------------------------------------------------------------------------
# Comparison helpers
# ---------------------------------------------------------------------------


def _resolve_path(field: str, operator: str, target: object, now: datetime) -> object:
    try:
        path = compile_path(field)
    except ValidationError as exc:
        raise EvaluationError(str(exc), operator=operator, field=field) from exc
    return path.resolve(target, now)


def _null_outcome(operator: Operator, literal_is_null: bool) -> bool:
    match operator:
        case Operator.EXISTS | Operator.NOT_EMPTY:
            return False
        case Operator.NOT_EXISTS | Operator.EMPTY:
            return True
        case Operator.EQ:
            return literal_is_null
        case Operator.NE:
            return not literal_is_null
        case _:
            return False


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_instant(value: object) -> datetime | None:
    if isinstance(value, datetime):
        return coerce_datetime(value)
    if isinstance(value, str):
        return parse_timestamp(value)
    return None


def _equals(actual: object, expected: object, case_sensitive: bool) -> bool:
    if isinstance(actual, str) and isinstance(expected, str):
        if case_sensitive:
            return actual == expected
        return actual.casefold() == expected.casefold()
    if _is_number(actual) and _is_number(expected):
        return float(actual) == float(expected)  # type: ignore[arg-type]
    if isinstance(actual, bool) and isinstance(expected, bool):
        return actual == expected
    if isinstance(actual, datetime) or isinstance(expected, datetime):
        left, right = _as_instant(actual), _as_instant(expected)
        if left is None or right is None:
            if isinstance(actual, datetime) and isinstance(expected, str):
                raise EvaluationError(f"cannot parse {expected!r} as an RFC3339 timestamp")
            return False
        return left == right
    if isinstance(actual, bool) or isinstance(expected, bool):
        return False
    if isinstance(actual, tuple):
        actual = list(actual)
    return actual == expected


def _greater(actual: object, expected: object) -> bool:
    if _is_number(actual) and _is_number(expected):
        return float(actual) > float(expected)  # type: ignore[arg-type]
    if isinstance(actual, datetime) or isinstance(expected, datetime):
        left, right = _as_instant(actual), _as_instant(expected)
        if left is None or right is None:
            raise EvaluationError(
                f"cannot compare {type(actual).__name__} and {type(expected).__name__} as timestamps"
            )
        return left > right
    if isinstance(actual, str) and isinstance(expected, str):
        left, right = parse_timestamp(actual), parse_timestamp(expected)
        if left is not None and right is not None:
            return left > right
        return actual > expected
    raise EvaluationError(
        f"cannot compare {type(actual).__name__} and {type(expected).__name__} with an ordering operator"
    )


def _between(actual: object, literal: object) -> bool:
    if not isinstance(literal, ListValue):
        raise EvaluationError("'between' requires a list of two bounds")
    if len(literal) != 2:
        raise EvaluationError("'between' requires exactly 2 values")
    low, high = literal.value
    at_least_low = _greater(actual, low) or _equals(actual, low, True)
    return at_least_low and not _greater(actual, high)


def _member(actual: object, literal: object) -> bool:
    if not isinstance(literal, ListValue):
        raise EvaluationError("'in' requires a list value")
    for candidate in literal.value:
        try:
            if _equals(actual, candidate, True):
                return True
        except EvaluationError:
            continue
    return False


def _contains(actual: object, expected: object, case_sensitive: bool) -> bool:
    if isinstance(actual, str) and isinstance(expected, str):
        if case_sensitive:
            return expected in actual
        return expected.casefold() in actual.casefold()
    if isinstance(actual, Mapping):
        if not isinstance(expected, str):
            return expected in actual
        if case_sensitive:
            return expected in actual
        folded = expected.casefold()
        return any(isinstance(key, str) and key.casefold() == folded for key in actual)
    if isinstance(actual, Sequence) and not isinstance(actual, (str, bytes)):
        for item in actual:
            try:
                if _equals(item, expected, case_sensitive):
                    return True
            except EvaluationError:
                continue
        return False
    raise EvaluationError(f"'contains' is not supported for {type(actual).__name__}")


def _string_pair(actual: object, expected: object, name: str, case_sensitive: bool) -> tuple[str, str]:
    if not isinstance(actual, str) or not isinstance(expected, str):
        raise EvaluationError(f"'{name}' requires string values")
    if case_sensitive:
        return actual, expected
    return actual.casefold(), expected.casefold()


def _regex(actual: object, expected: object, case_sensitive: bool) -> bool:
    if not isinstance(actual, str) or not isinstance(expected, str):
        raise EvaluationError("'regex' requires string values")
    flags = 0 if case_sensitive else re.IGNORECASE
    try:
        return re.search(expected, actual, flags) is not None
    except re.error as exc:
        raise EvaluationError(f"invalid regular expression {expected!r}: {exc}") from exc


def _is_empty(actual: object) -> bool:
    if isinstance(actual, (str, bytes, Mapping, Sequence, set, frozenset)):
        return len(actual) == 0
    return False


def _age(actual: object, name: str, now: datetime) -> timedelta:
    moment = _as_instant(actual)
    if moment is None:
        raise EvaluationError(f"'{name}' requires a timestamp field")
    return now - moment


def _duration(expected: object, name: str) -> timedelta:
    try:
        return parse_duration(expected)
    except ValueError as exc:
        raise EvaluationError(f"'{name}' requires a duration value: {exc}") from exc


def _compare_count(matched: int, count: CountComparison | None) -> bool:
    if count is None:
        raise EvaluationError("count operation requires a count comparison")
    threshold = count.threshold
    match count.operator:
        case Operator.EQ:
            return matched == threshold
        case Operator.NE:
            return matched != threshold
        case Operator.GT:
            return matched > threshold
        case Operator.GTE:
            return matched >= threshold
        case Operator.LT:
            return matched < threshold
        case Operator.LTE:
            return matched <= threshold
    raise EvaluationError(f"unsupported count operator: {count.operator}")
