"""Data model for automation rules and their execution history."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from pm_automation.scheduling.cron import parse_cron


class TriggerKind(str, Enum):
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TASK_COMPLETED = "task_completed"
    PROJECT_CREATED = "project_created"
    USER_ASSIGNED = "user_assigned"
    DEADLINE_APPROACHING = "deadline_approaching"
    SCHEDULE = "schedule"


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IN = "in"
    NOT_IN = "not_in"


class ExecutionStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PARTIAL = "partial"


class RuleState(str, Enum):
    DISABLED = "disabled"
    IDLE = "idle"
    MATCHED = "matched"
    EXECUTING = "executing"


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class AutomationTrigger(BaseModel):
    kind: TriggerKind
    schedule: str | None = Field(default=None, description="Cron expression for schedule triggers")

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _require_valid_schedule(self) -> AutomationTrigger:
        if self.kind is TriggerKind.SCHEDULE:
            if not self.schedule:
                raise ValueError("schedule triggers require a cron expression")
            parse_cron(self.schedule)
        return self


class AutomationCondition(BaseModel):
    """A single predicate over one field of the event payload."""

    field: str = Field(min_length=1, description="Dot-separated path into the event")
    operator: ConditionOperator
    value: Any = None

    model_config = ConfigDict(frozen=True)


class AutomationAction(BaseModel):
    kind: str = Field(min_length=1)
    parameters: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class RuleSpec(BaseModel):
    """The caller-supplied part of a rule."""

    name: str
    description: str = ""
    trigger: AutomationTrigger
    conditions: list[AutomationCondition] = Field(default_factory=list)
    actions: list[AutomationAction] = Field(default_factory=list)
    enabled: bool = True
    created_by: str = "system"


class AutomationRule(RuleSpec):
    """A registered rule. ``id`` and the execution bookkeeping belong to the engine."""

    id: str
    created_at: datetime = Field(default_factory=_utc_now)
    last_executed: datetime | None = None
    execution_count: int = Field(default=0, ge=0)


# Fields the engine maintains itself; update_rule ignores them.
ENGINE_OWNED_FIELDS: frozenset[str] = frozenset(
    {"id", "created_at", "last_executed", "execution_count"}
)


class AutomationExecution(BaseModel):
    """One rule firing. Immutable once recorded."""

    id: str
    rule_id: str
    rule_name: str
    trigger: str
    triggered_by: str
    triggered_at: datetime
    status: ExecutionStatus
    actions_executed: int
    total_actions: int
    duration_ms: float
    error: str | None = None
    logs: tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)


class RuleEngineStats(BaseModel):
    total_rules: int
    enabled_rules: int
    total_executions: int
    successful_executions: int
    failed_executions: int
    average_execution_ms: float
