"""Unit tests for condition evaluation."""

from __future__ import annotations

import math

import pytest

from pm_automation.rules import (
    AutomationCondition,
    ConditionOperator,
    evaluate_condition,
    evaluate_conditions,
    resolve_field,
)


def _cond(field: str, operator: str, value: object) -> AutomationCondition:
    return AutomationCondition(field=field, operator=ConditionOperator(operator), value=value)


def test_resolve_field_walks_nested_mappings() -> None:
    event = {"project": {"owner": {"email": "a@example.com"}}, "priority": "HIGH"}

    assert resolve_field(event, "project.owner.email") == "a@example.com"
    assert resolve_field(event, "priority") == "HIGH"
    assert resolve_field(event, "project.missing") is None
    assert resolve_field(event, "priority.length") is None


def test_empty_condition_list_matches() -> None:
    assert evaluate_conditions([], {}) is True


def test_equals_does_not_coerce_strings_to_numbers() -> None:
    assert evaluate_condition("1", ConditionOperator.EQUALS, 1) is False
    assert evaluate_condition(1, ConditionOperator.EQUALS, 1.0) is True
    assert evaluate_condition(True, ConditionOperator.EQUALS, 1) is False
    assert evaluate_condition(1, ConditionOperator.NOT_EQUALS, "1") is True


def test_contains_stringifies_both_sides() -> None:
    assert evaluate_condition("urgent bug", ConditionOperator.CONTAINS, "bug") is True
    assert evaluate_condition(["a", "b"], ConditionOperator.CONTAINS, "a,b") is True
    assert evaluate_condition(True, ConditionOperator.CONTAINS, "true") is True
    assert evaluate_condition(None, ConditionOperator.CONTAINS, "x") is False


def test_contains_with_no_value_never_matches() -> None:
    assert evaluate_condition("anything", ConditionOperator.CONTAINS, None) is False
    assert evaluate_condition(None, ConditionOperator.CONTAINS, None) is False


def test_numeric_comparisons_fail_closed_on_bad_input() -> None:
    assert evaluate_condition(5, ConditionOperator.GREATER_THAN, 3) is True
    assert evaluate_condition("5", ConditionOperator.GREATER_THAN, "3") is True
    assert evaluate_condition(2, ConditionOperator.LESS_THAN, 3) is True
    assert evaluate_condition(None, ConditionOperator.GREATER_THAN, 0) is False
    assert evaluate_condition("abc", ConditionOperator.LESS_THAN, 10) is False
    assert evaluate_condition(math.nan, ConditionOperator.LESS_THAN, 10) is False
    assert evaluate_condition({"a": 1}, ConditionOperator.GREATER_THAN, 0) is False
    assert evaluate_condition(10**400, ConditionOperator.GREATER_THAN, 5) is False
    assert evaluate_condition(5, ConditionOperator.LESS_THAN, 10**400) is False


def test_in_requires_a_list() -> None:
    assert evaluate_condition("HIGH", ConditionOperator.IN, ["HIGH", "URGENT"]) is True
    assert evaluate_condition("LOW", ConditionOperator.IN, ["HIGH", "URGENT"]) is False
    assert evaluate_condition("HIGH", ConditionOperator.IN, "HIGH,URGENT") is False
    assert evaluate_condition("LOW", ConditionOperator.NOT_IN, ["DONE"]) is True
    assert evaluate_condition("DONE", ConditionOperator.NOT_IN, ["DONE"]) is False
    assert evaluate_condition("DONE", ConditionOperator.NOT_IN, None) is False
    assert evaluate_condition(2, ConditionOperator.IN, [1.0, 2.0]) is True


def test_conditions_are_anded() -> None:
    conditions = [
        _cond("priority", "in", ["HIGH", "URGENT"]),
        _cond("project.hasTeam", "equals", True),
    ]

    assert evaluate_conditions(conditions, {"priority": "HIGH", "project": {"hasTeam": True}})
    assert not evaluate_conditions(conditions, {"priority": "HIGH", "project": {"hasTeam": False}})
    assert not evaluate_conditions(conditions, {"priority": "HIGH"})


@pytest.mark.parametrize(
    "event",
    [
        {},
        {"priority": None},
        {"priority": object()},
        {"priority": {"nested": [1, 2]}},
        {"priority": float("inf")},
        {"priority": 10**400},
    ],
)
def test_evaluation_never_raises(event: dict) -> None:
    for operator in ConditionOperator:
        evaluate_conditions([_cond("priority", operator.value, [1, "x"])], event)
        evaluate_conditions([_cond("priority", operator.value, object())], event)
