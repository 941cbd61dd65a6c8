"""Top-level coordinator for rules, pipelines and the scheduler tick.

The orchestrator is the only surface a host application talks to. Its public
methods never raise: failures are logged and recorded on the status board, which
is the one place a caller looks to find out what went wrong.

Component names on the status board:

- ``task-automation``: the rule engine
- ``testing``: the periodic test-suite pipeline
- ``backup``: the periodic backup pipeline
- ``cicd-<environment>``: one deployment pipeline per environment
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pm_automation.actions import ActionExecutor, dry_run_registry
from pm_automation.config import AutomationSettings
from pm_automation.pipeline import (
    PIPELINE_CONFIGS,
    CommandRunner,
    DryRunCommandRunner,
    LoggingNotifier,
    NotificationTargets,
    Notifier,
    PipelineConfig,
    PipelineStep,
    ShellCommandRunner,
    StepPipeline,
    backup_steps,
    environment_steps,
    suite_steps,
)
from pm_automation.rules import (
    AutomationExecution,
    AutomationRule,
    RuleEngine,
    RuleStore,
    get_template,
)
from pm_automation.scheduling import (
    Clock,
    Scheduler,
    SystemClock,
    cron_matches,
    next_fire_time,
)
from pm_automation.status import AutomationStatus, ComponentState, StatusBoard

logger = logging.getLogger(__name__)

RULES_COMPONENT = "task-automation"
TESTING_COMPONENT = "testing"
BACKUP_COMPONENT = "backup"


def cicd_component(environment: str) -> str:
    return f"cicd-{environment}"


def _error_text(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def _default_runner(settings: AutomationSettings) -> CommandRunner:
    if settings.command_runner == "shell":
        return ShellCommandRunner()
    return DryRunCommandRunner()


class Orchestrator:
    def __init__(
        self,
        settings: AutomationSettings | None = None,
        *,
        action_executor: ActionExecutor | None = None,
        command_runner: CommandRunner | None = None,
        notifier: Notifier | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.settings = settings or AutomationSettings()
        self.clock: Clock = clock or SystemClock()
        self.command_runner = command_runner or _default_runner(self.settings)
        self.notifier: Notifier = notifier or LoggingNotifier()
        self.is_running = False

        self.status = StatusBoard()
        self.rule_engine = RuleEngine(
            action_executor or dry_run_registry(),
            clock=self.clock,
            serialize_rules=self.settings.serialize_rules,
        )
        self.pipelines: dict[str, StepPipeline] = {}
        self.testing: StepPipeline | None = None
        self.backup: StepPipeline | None = None
        self.scheduler = Scheduler(self.settings.tick_interval_seconds, clock=self.clock)
        self.scheduler.add_listener(self.tick)
        self._last_periodic: dict[str, datetime] = {}
        self._schedules: dict[str, str] = {}

        self._build_pipelines()
        if self.settings.task_automation.enabled:
            self._install_rules()

    # Construction

    def _pipeline(
        self, config: PipelineConfig, steps: list[PipelineStep], title: str
    ) -> StepPipeline:
        return StepPipeline(
            config,
            steps,
            runner=self.command_runner,
            notifier=self.notifier,
            clock=self.clock,
            retry_base_delay=self.settings.retry_base_delay_seconds,
            title=title,
        )

    def _build_pipelines(self) -> None:
        if self.settings.cicd.enabled:
            for environment in self.settings.cicd.environments:
                config = PIPELINE_CONFIGS[environment]
                self.pipelines[environment] = self._pipeline(
                    config, environment_steps(config), "CI/CD PIPELINE"
                )

        if self.settings.testing.enabled:
            config = PIPELINE_CONFIGS[self.settings.testing.environment]
            self.testing = self._pipeline(config, suite_steps(config), "TEST SUITE")
            self._schedules[TESTING_COMPONENT] = self.settings.testing.schedule

        if self.settings.backup.enabled:
            backup = self.settings.backup
            config = PipelineConfig(
                environment="backup",
                notifications=NotificationTargets(email=list(backup.notify_email)),
            )
            self.backup = self._pipeline(config, backup_steps(backup), "BACKUP")
            self._schedules[BACKUP_COMPONENT] = backup.schedule

    def _install_rules(self) -> None:
        for name in self.settings.task_automation.templates:
            template = get_template(name)
            if template is None:
                logger.warning("Unknown rule template", extra={"template": name})
                continue
            self.rule_engine.add_rule(template.model_copy(update={"created_by": "system"}))

        rules_path = self.settings.rules_path
        if rules_path is None:
            return
        try:
            specs = RuleStore(rules_path).load()
            for spec in specs:
                self.rule_engine.add_rule(spec)
        except Exception as e:
            logger.exception("Failed to load rules", extra={"path": str(rules_path)})
            self.update_status(RULES_COMPONENT, ComponentState.ERROR, f"Rule load failed: {e}")
            return
        logger.info(
            "Loaded rules from file", extra={"path": str(rules_path), "rules": len(specs)}
        )

    # Lifecycle

    async def start(self, *, run_scheduler: bool = True) -> None:
        """Start owned components.

        With ``run_scheduler=False`` no background tick is started; cron rules and
        periodic pipelines then only run when the host calls :meth:`tick` itself.
        """

        if self.is_running:
            return
        logger.info("Starting automation orchestrator")
        self.is_running = True
        try:
            if self.settings.task_automation.enabled:
                self.rule_engine.start()
                self.update_status(
                    RULES_COMPONENT, ComponentState.RUNNING, "Task automation engine started"
                )
            if self.testing is not None:
                self.update_status(
                    TESTING_COMPONENT, ComponentState.RUNNING, "Testing automation scheduled"
                )
            if self.backup is not None:
                self.update_status(
                    BACKUP_COMPONENT, ComponentState.RUNNING, "Backup scheduler started"
                )
            if run_scheduler:
                await self.scheduler.start()
        except Exception as e:
            logger.exception("Failed to start orchestrator")
            self.update_status("orchestrator", ComponentState.ERROR, f"Start failed: {e}")

    async def stop(self) -> None:
        if not self.is_running:
            return
        logger.info("Stopping automation orchestrator")
        self.is_running = False
        try:
            await self.scheduler.stop()
        except Exception as e:
            logger.exception("Failed to stop scheduler")
            self.update_status("orchestrator", ComponentState.ERROR, f"Stop failed: {e}")

        self.rule_engine.stop()
        if self.settings.task_automation.enabled:
            self.update_status(
                RULES_COMPONENT, ComponentState.STOPPED, "Task automation engine stopped"
            )
        if self.testing is not None:
            self.update_status(
                TESTING_COMPONENT, ComponentState.STOPPED, "Testing automation stopped"
            )
        if self.backup is not None:
            self.update_status(BACKUP_COMPONENT, ComponentState.STOPPED, "Backup scheduler stopped")

    # Entry points

    async def trigger(self, kind: str, event: Mapping[str, Any]) -> None:
        try:
            await self.rule_engine.execute_trigger(kind, event)
        except Exception as e:
            logger.exception("Trigger dispatch failed", extra={"trigger": kind})
            self.update_status(RULES_COMPONENT, ComponentState.ERROR, f"Trigger failed: {e}")

    async def run_pipeline(self, environment: str) -> bool:
        component = cicd_component(environment)
        pipeline = self.pipelines.get(environment)
        if pipeline is None:
            logger.error("No pipeline configured", extra={"environment": environment})
            self.update_status(
                component, ComponentState.ERROR, f"No pipeline configured for {environment}"
            )
            return False

        self.update_status(component, ComponentState.RUNNING, f"Running {environment} pipeline")
        return await self._run(
            pipeline,
            component,
            ok=f"{environment} pipeline completed successfully",
            failed=f"{environment} pipeline failed",
        )

    async def run_tests(self) -> bool:
        if self.testing is None:
            self.update_status(TESTING_COMPONENT, ComponentState.ERROR, "Testing is disabled")
            return False
        self.update_status(TESTING_COMPONENT, ComponentState.RUNNING, "Running automated tests")
        return await self._run(
            self.testing,
            TESTING_COMPONENT,
            ok="Tests completed successfully",
            failed="Testing failed",
        )

    async def run_backup(self) -> bool:
        if self.backup is None:
            self.update_status(BACKUP_COMPONENT, ComponentState.ERROR, "Backup is disabled")
            return False
        self.update_status(BACKUP_COMPONENT, ComponentState.RUNNING, "Running backup")
        return await self._run(
            self.backup,
            BACKUP_COMPONENT,
            ok="Backup completed successfully",
            failed="Backup failed",
        )

    async def _run(self, pipeline: StepPipeline, component: str, *, ok: str, failed: str) -> bool:
        try:
            success = await pipeline.run()
        except Exception as e:
            logger.exception("Pipeline crashed", extra={"component": component})
            self.update_status(component, ComponentState.ERROR, f"{failed}: {_error_text(e)}")
            return False

        if success:
            self.update_status(component, ComponentState.RUNNING, ok)
        else:
            self.update_status(component, ComponentState.ERROR, failed)
        return success

    async def tick(self, now: datetime) -> None:
        """Scheduler listener: fire cron rules and any periodic pipeline that is due."""

        try:
            await self.rule_engine.run_scheduled(now)
        except Exception as e:
            logger.exception("Scheduled rules failed", extra={"tick": now.isoformat()})
            self.update_status(
                RULES_COMPONENT, ComponentState.ERROR, f"Scheduled rules failed: {e}"
            )

        if not self.is_running:
            return
        if self.testing is not None and self._due(
            TESTING_COMPONENT, self.settings.testing.schedule, now
        ):
            logger.info("Running scheduled tests")
            await self.run_tests()
        if self.backup is not None and self._due(
            BACKUP_COMPONENT, self.settings.backup.schedule, now
        ):
            logger.info("Running scheduled backup")
            await self.run_backup()

    def _due(self, component: str, schedule: str, now: datetime) -> bool:
        try:
            matched = cron_matches(schedule, now)
        except ValueError as e:
            logger.error("Invalid schedule", extra={"component": component, "schedule": schedule})
            self.update_status(component, ComponentState.ERROR, f"Invalid schedule: {e}")
            return False
        if not matched:
            return False

        minute = now.replace(second=0, microsecond=0)
        if self._last_periodic.get(component) == minute:
            return False
        self._last_periodic[component] = minute
        return True

    # Status and reporting

    def update_status(
        self, component: str, status: ComponentState | str, message: str | None = None
    ) -> AutomationStatus:
        """Replace the record for ``component``.

        An unknown status is recorded as ``error`` naming the bad value. Periodic
        components carry their next scheduled run while the orchestrator is running.
        """

        try:
            state = ComponentState(status)
        except ValueError:
            logger.error(
                "Invalid component status", extra={"component": component, "status": str(status)}
            )
            state = ComponentState.ERROR
            message = f"Invalid status: {status}"
        return self.status.update(
            component,
            state,
            message,
            now=self.clock.now(),
            next_run=self._next_run(component, state),
        )

    def _next_run(self, component: str, state: ComponentState) -> datetime | None:
        schedule = self._schedules.get(component)
        if schedule is None or not self.is_running or state is ComponentState.STOPPED:
            return None
        try:
            return next_fire_time(schedule, self.clock.now())
        except ValueError:
            return None

    def get_status(self) -> list[AutomationStatus]:
        return self.status.all()

    def get_rules(self) -> list[AutomationRule]:
        return self.rule_engine.get_rules()

    def get_executions(self) -> list[AutomationExecution]:
        return self.rule_engine.get_executions()

    def generate_report(self) -> str:
        counts = self.status.counts()
        lines = [
            "AUTOMATION SYSTEM REPORT",
            "========================",
            f"Running: {'yes' if self.is_running else 'no'}",
            f"Components: {len(self.status)}",
            f"Active: {counts[ComponentState.RUNNING]}",
            f"Stopped: {counts[ComponentState.STOPPED]}",
            f"Errors: {counts[ComponentState.ERROR]}",
            "",
            "Component Status:",
        ]
        for record in self.status.all():
            line = f"- {record.component}: {record.status.value}"
            if record.message:
                line += f" - {record.message}"
            line += f" (last {record.last_run.isoformat()}"
            if record.next_run is not None:
                line += f", next {record.next_run.isoformat()}"
            line += ")"
            lines.append(line)

        sections = [self.rule_engine.generate_report()]
        if self.testing is not None:
            sections.append(self.testing.generate_report())
        if self.backup is not None:
            sections.append(self.backup.generate_report())
        sections.extend(pipeline.generate_report() for pipeline in self.pipelines.values())

        return "\n".join(lines) + "\n\n" + "\n".join(sections)
