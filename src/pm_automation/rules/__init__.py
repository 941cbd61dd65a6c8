"""Declarative automation rules: model, condition evaluation and engine."""

from .conditions import evaluate_condition, evaluate_conditions, resolve_field
from .engine import RuleEngine
from .models import (
    AutomationAction,
    AutomationCondition,
    AutomationExecution,
    AutomationRule,
    AutomationTrigger,
    ConditionOperator,
    ExecutionStatus,
    RuleEngineStats,
    RuleSpec,
    RuleState,
    TriggerKind,
)
from .store import RuleStore
from .templates import RULE_TEMPLATES, get_template

__all__ = [
    "RULE_TEMPLATES",
    "AutomationAction",
    "AutomationCondition",
    "AutomationExecution",
    "AutomationRule",
    "AutomationTrigger",
    "ConditionOperator",
    "ExecutionStatus",
    "RuleEngine",
    "RuleEngineStats",
    "RuleSpec",
    "RuleState",
    "RuleStore",
    "TriggerKind",
    "evaluate_condition",
    "evaluate_conditions",
    "get_template",
    "resolve_field",
]
