"""Rule engine: trigger matching, condition evaluation and sequential action dispatch.

Dispatch model
--------------
``execute_trigger`` runs every matching rule to completion, in registration
order, before returning. Within a rule, actions run one after the other and the
first failing action stops that rule. Nothing raised by an action reaches the
caller; outcomes are recorded as :class:`AutomationExecution` entries.

The engine does not stop the same rule from being entered twice when the host
delivers events from concurrent tasks (two ``execute_trigger`` calls can
interleave at ``await`` points). Pass ``serialize_rules=True`` to guard every
rule with its own lock in that case.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any

from pm_automation.scheduling.clock import Clock, SystemClock
from pm_automation.scheduling.cron import cron_matches

from .conditions import evaluate_conditions
from .models import (
    ENGINE_OWNED_FIELDS,
    AutomationExecution,
    AutomationRule,
    ExecutionStatus,
    RuleEngineStats,
    RuleSpec,
    RuleState,
    TriggerKind,
)

if TYPE_CHECKING:
    from pm_automation.actions.base import ActionExecutor

logger = logging.getLogger(__name__)


def _error_text(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


class RuleEngine:
    def __init__(
        self,
        executor: ActionExecutor,
        *,
        clock: Clock | None = None,
        serialize_rules: bool = False,
    ) -> None:
        self.executor = executor
        self.clock: Clock = clock or SystemClock()
        self.serialize_rules = serialize_rules
        self.is_running = False
        self._rules: list[AutomationRule] = []
        self._executions: list[AutomationExecution] = []
        self._executing: set[str] = set()
        self._matched: set[str] = set()
        self._last_scheduled_minute: dict[str, datetime] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def start(self) -> None:
        if not self.is_running:
            logger.info("Starting rule engine", extra={"rules": len(self._rules)})
        self.is_running = True

    def stop(self) -> None:
        if self.is_running:
            logger.info("Stopping rule engine")
        self.is_running = False

    # Rule management

    def add_rule(self, spec: RuleSpec | Mapping[str, Any]) -> str:
        if not isinstance(spec, RuleSpec):
            spec = RuleSpec.model_validate(spec)
        rule = AutomationRule(
            **spec.model_dump(),
            id=f"rule_{uuid.uuid4().hex}",
            created_at=self.clock.now(),
        )
        self._rules.append(rule)
        logger.info("Added automation rule", extra={"rule_id": rule.id, "rule_name": rule.name})
        return rule.id

    def update_rule(self, rule_id: str, updates: Mapping[str, Any]) -> bool:
        """Merge ``updates`` into an existing rule.

        Engine-owned fields (id, timestamps, execution count) are ignored. Returns
        False if the id is unknown. Invalid values raise ``pydantic.ValidationError``
        and leave the rule unchanged.
        """

        index = self._index_of(rule_id)
        if index is None:
            return False

        ignored = sorted(ENGINE_OWNED_FIELDS.intersection(updates))
        if ignored:
            logger.warning(
                "Ignoring engine-owned fields in rule update",
                extra={"rule_id": rule_id, "fields": ignored},
            )
        allowed = {k: v for k, v in updates.items() if k not in ENGINE_OWNED_FIELDS}

        current = self._rules[index]
        merged = AutomationRule.model_validate({**current.model_dump(), **allowed})
        self._rules[index] = merged
        logger.info("Updated automation rule", extra={"rule_id": rule_id})
        return True

    def delete_rule(self, rule_id: str) -> bool:
        index = self._index_of(rule_id)
        if index is None:
            return False
        del self._rules[index]
        self._last_scheduled_minute.pop(rule_id, None)
        self._locks.pop(rule_id, None)
        logger.info("Deleted automation rule", extra={"rule_id": rule_id})
        return True

    def get_rule(self, rule_id: str) -> AutomationRule | None:
        index = self._index_of(rule_id)
        return None if index is None else self._rules[index].model_copy(deep=True)

    def get_rules(self) -> list[AutomationRule]:
        return [rule.model_copy(deep=True) for rule in self._rules]

    def get_executions(self) -> list[AutomationExecution]:
        return list(self._executions)

    def rule_state(self, rule_id: str) -> RuleState | None:
        index = self._index_of(rule_id)
        if index is None:
            return None
        if rule_id in self._executing:
            return RuleState.EXECUTING
        if rule_id in self._matched:
            return RuleState.MATCHED
        return RuleState.IDLE if self._rules[index].enabled else RuleState.DISABLED

    def _index_of(self, rule_id: str) -> int | None:
        for idx, rule in enumerate(self._rules):
            if rule.id == rule_id:
                return idx
        return None

    def _live_rule(self, rule_id: str) -> AutomationRule | None:
        index = self._index_of(rule_id)
        return None if index is None else self._rules[index]

    def _conditions_hold(self, rule: AutomationRule, event: Mapping[str, Any]) -> bool:
        try:
            return evaluate_conditions(rule.conditions, event)
        except Exception:
            logger.exception(
                "Condition evaluation failed; treating as no match",
                extra={"rule_id": rule.id, "rule_name": rule.name},
            )
            return False

    # Dispatch

    async def execute_trigger(
        self, trigger_kind: str | TriggerKind, event: Mapping[str, Any]
    ) -> None:
        if not self.is_running:
            return

        try:
            kind = TriggerKind(trigger_kind)
        except ValueError:
            logger.debug("No rules for unknown trigger", extra={"trigger": str(trigger_kind)})
            return

        candidate_ids = [
            rule.id for rule in self._rules if rule.enabled and rule.trigger.kind is kind
        ]
        for rule_id in candidate_ids:
            # Earlier actions may have updated, disabled or deleted this rule.
            rule = self._live_rule(rule_id)
            if rule is None or not rule.enabled or rule.trigger.kind is not kind:
                continue
            if self._conditions_hold(rule, event):
                await self._execute_rule(rule, event, trigger=kind.value)

    async def run_scheduled(self, now: datetime) -> int:
        """Fire every enabled schedule rule whose cron expression matches ``now``.

        Conditions are not evaluated for scheduled firings. A rule fires at most
        once per calendar minute. Returns the number of rules fired.
        """

        if not self.is_running:
            return 0

        minute = now.replace(second=0, microsecond=0)
        event = {"type": "scheduled", "timestamp": now.isoformat()}
        fired = 0
        for rule_id in [rule.id for rule in self._rules]:
            rule = self._live_rule(rule_id)
            if rule is None or not rule.enabled or rule.trigger.kind is not TriggerKind.SCHEDULE:
                continue
            if rule.trigger.schedule is None or not cron_matches(rule.trigger.schedule, now):
                continue
            if self._last_scheduled_minute.get(rule.id) == minute:
                continue
            self._last_scheduled_minute[rule.id] = minute
            await self._execute_rule(rule, event, trigger=TriggerKind.SCHEDULE.value)
            fired += 1
        return fired

    async def _execute_rule(
        self, rule: AutomationRule, event: Mapping[str, Any], *, trigger: str
    ) -> AutomationExecution:
        # Matched and waiting for its turn (only observable with serialize_rules).
        self._matched.add(rule.id)
        lock = self._locks.setdefault(rule.id, asyncio.Lock()) if self.serialize_rules else None
        async with lock if lock is not None else contextlib.nullcontext():
            self._matched.discard(rule.id)
            rule = self._live_rule(rule.id) or rule
            return await self._run_actions(rule, event, trigger=trigger)

    async def _run_actions(
        self, rule: AutomationRule, event: Mapping[str, Any], *, trigger: str
    ) -> AutomationExecution:
        logger.info("Executing automation rule", extra={"rule_id": rule.id, "rule_name": rule.name})

        triggered_at = self.clock.now()
        started = self.clock.monotonic()
        rule.execution_count += 1
        rule.last_executed = triggered_at
        self._executing.add(rule.id)

        logs: list[str] = []
        executed = 0
        error: str | None = None
        try:
            for action in rule.actions:
                logs.append(f"Executing action: {action.kind}")
                await self.executor.execute(action.kind, action.parameters, event)
                logs.append(f"Action completed: {action.kind}")
                executed += 1
        except Exception as e:
            error = _error_text(e)
            logs.append(f"Error: {error}")
            logger.exception(
                "Automation rule failed",
                extra={"rule_id": rule.id, "rule_name": rule.name, "action_index": executed},
            )
        finally:
            self._executing.discard(rule.id)

        execution = AutomationExecution(
            id=f"exec_{uuid.uuid4().hex}",
            rule_id=rule.id,
            rule_name=rule.name,
            trigger=trigger,
            triggered_by=str(event.get("userId") or event.get("user_id") or "system"),
            triggered_at=triggered_at,
            status=ExecutionStatus.FAILED if error is not None else ExecutionStatus.SUCCESS,
            actions_executed=executed,
            total_actions=len(rule.actions),
            duration_ms=(self.clock.monotonic() - started) * 1000,
            error=error,
            logs=tuple(logs),
        )
        self._executions.append(execution)
        if error is None:
            logger.info(
                "Automation rule executed",
                extra={
                    "rule_id": rule.id,
                    "actions": executed,
                    "duration_ms": execution.duration_ms,
                },
            )
        return execution

    # Reporting

    def get_stats(self) -> RuleEngineStats:
        total = len(self._executions)
        durations = sum(e.duration_ms for e in self._executions)
        return RuleEngineStats(
            total_rules=len(self._rules),
            enabled_rules=sum(1 for r in self._rules if r.enabled),
            total_executions=total,
            successful_executions=sum(
                1 for e in self._executions if e.status is ExecutionStatus.SUCCESS
            ),
            failed_executions=sum(
                1 for e in self._executions if e.status is ExecutionStatus.FAILED
            ),
            average_execution_ms=durations / total if total else 0.0,
        )

    def generate_report(self) -> str:
        stats = self.get_stats()
        lines = [
            "TASK AUTOMATION REPORT",
            "======================",
            f"Running: {'yes' if self.is_running else 'no'}",
            f"Total Rules: {stats.total_rules}",
            f"Enabled Rules: {stats.enabled_rules}",
            f"Total Executions: {stats.total_executions}",
            f"Successful: {stats.successful_executions}",
            f"Failed: {stats.failed_executions}",
            f"Average Execution Time: {round(stats.average_execution_ms)}ms",
        ]
        if self._rules:
            lines.append("")
            lines.append("Rules:")
        for rule in self._rules:
            last = rule.last_executed.isoformat() if rule.last_executed else "never"
            flag = "enabled" if rule.enabled else "disabled"
            lines.append(
                f"- [{flag}] {rule.name} ({rule.trigger.kind.value}): "
                f"{rule.execution_count} executions, last {last}"
            )
        return "\n".join(lines) + "\n"
