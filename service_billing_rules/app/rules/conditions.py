"""
Condition evaluation for billing rules.

Conditions never raise: anything that cannot be compared (unresolved field,
non-numeric operand for an ordering operator) simply evaluates to False.
"""

import dataclasses
from numbers import Real
from typing import Any, Iterable, Mapping, Sequence

from shared.logging import get_logger
from .models import (
    MISSING, ComparisonCondition, ConditionOperator, MembershipCondition,
    RangeCondition, RuleCondition,
)

logger = get_logger("billing_rules.conditions")


def resolve_field(context: Any, path: str) -> Any:
    """Walk a dotted path through mappings, sequences and objects.

    Returns ``MISSING`` as soon as a segment cannot be resolved.
    """
    current = context
    for part in path.split("."):
        if current is MISSING or current is None:
            return MISSING

        if isinstance(current, Mapping):
            if part not in current:
                return MISSING
            current = current[part]
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
            try:
                current = current[int(part)]
            except (ValueError, IndexError):
                return MISSING
        elif part.startswith("_"):
            return MISSING
        elif dataclasses.is_dataclass(current) or hasattr(current, "__dict__"):
            if not hasattr(current, part):
                return MISSING
            current = getattr(current, part)
        else:
            return MISSING

    return current


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _is_container(value: Any) -> bool:
    if isinstance(value, (Mapping, set, frozenset)):
        return True
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def _strict_equals(left: Any, right: Any) -> bool:
    if left is MISSING or right is MISSING:
        return False
    # Containers never equal anything, not even an identical copy.
    if _is_container(left) or _is_container(right):
        return False
    # True == 1 in Python; a bool only ever equals another bool here.
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if _is_number(left) and _is_number(right):
        return left == right
    if type(left) is not type(right) and not (
        isinstance(left, str) and isinstance(right, str)
    ):
        return False
    return left == right


def _compare(operator: ConditionOperator, left: Any, right: Any) -> bool:
    if not (_is_number(left) and _is_number(right)):
        return False
    if operator == ConditionOperator.GT:
        return left > right
    if operator == ConditionOperator.GTE:
        return left >= right
    if operator == ConditionOperator.LT:
        return left < right
    if operator == ConditionOperator.LTE:
        return left <= right
    return False


def evaluate(condition: RuleCondition, context: Any) -> bool:
    """Evaluate one condition against a context object."""
    try:
        value = resolve_field(context, condition.field)

        if isinstance(condition, MembershipCondition):
            return any(_strict_equals(value, candidate) for candidate in condition.values)

        if isinstance(condition, RangeCondition):
            if not (_is_number(value) and _is_number(condition.low) and _is_number(condition.high)):
                return False
            return condition.low <= value <= condition.high

        if isinstance(condition, ComparisonCondition):
            if condition.operator == ConditionOperator.EQ:
                return _strict_equals(value, condition.value)
            if condition.operator == ConditionOperator.NE:
                return not _strict_equals(value, condition.value)
            return _compare(condition.operator, value, condition.value)

        logger.warning("Unknown condition type", condition=repr(condition))
        return False

    except Exception as e:
        logger.error("Error evaluating condition", field=getattr(condition, "field", None), error=str(e))
        return False


def evaluate_all(conditions: Iterable[RuleCondition], context: Any) -> bool:
    """Logical AND over conditions; an empty list holds."""
    return all(evaluate(condition, context) for condition in conditions)
