"""Evaluate a rule's condition list against an event payload.

Conditions are AND-ed; there is no OR. An empty list always matches. Evaluation
never raises: anything that cannot be compared is simply a mismatch.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from numbers import Real
from typing import Any

from .models import AutomationCondition, ConditionOperator

_MISSING = object()


def resolve_field(event: Mapping[str, Any], path: str) -> Any:
    """Walk ``path`` (dot-separated) through nested mappings.

    Returns None when any segment is missing or an intermediate value is not a
    mapping.
    """

    current: Any = event
    for key in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(key, _MISSING)
        if current is _MISSING:
            return None
    return current


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def values_equal(left: Any, right: Any) -> bool:
    """Type-normalized equality: numbers compare by value, other types must match exactly."""

    if _is_number(left) and _is_number(right):
        return left == right
    if type(left) is not type(right):
        return False
    return left == right


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_stringify(item) for item in value)
    return str(value)


def _to_number(value: Any) -> float | None:
    if value is None or isinstance(value, (Mapping, list, tuple)):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if math.isnan(number):
        return None
    return number


def _contains_value(options: Sequence[Any], value: Any) -> bool:
    return any(values_equal(value, option) for option in options)


def evaluate_condition(field_value: Any, operator: ConditionOperator, expected: Any) -> bool:
    if operator is ConditionOperator.EQUALS:
        return values_equal(field_value, expected)
    if operator is ConditionOperator.NOT_EQUALS:
        return not values_equal(field_value, expected)
    if operator is ConditionOperator.CONTAINS:
        if expected is None:
            return False
        return _stringify(expected) in _stringify(field_value)
    if operator in (ConditionOperator.GREATER_THAN, ConditionOperator.LESS_THAN):
        left = _to_number(field_value)
        right = _to_number(expected)
        if left is None or right is None:
            return False
        return left > right if operator is ConditionOperator.GREATER_THAN else left < right
    if operator in (ConditionOperator.IN, ConditionOperator.NOT_IN):
        if not isinstance(expected, (list, tuple)):
            return False
        found = _contains_value(expected, field_value)
        return found if operator is ConditionOperator.IN else not found
    return False


def evaluate_conditions(
    conditions: Sequence[AutomationCondition], event: Mapping[str, Any]
) -> bool:
    return all(
        evaluate_condition(resolve_field(event, c.field), c.operator, c.value)
        for c in conditions
    )
