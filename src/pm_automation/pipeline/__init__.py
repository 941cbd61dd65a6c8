"""Step pipelines: CI/CD deployments, scheduled test suites and backups."""

from .executor import StepPipeline
from .models import (
    NotificationTargets,
    PipelineConfig,
    PipelineResult,
    PipelineStep,
    StepStatus,
)
from .notifications import LoggingNotifier, Notifier, build_notification
from .runners import CommandRunner, DryRunCommandRunner, ShellCommandRunner
from .steps import (
    BACKUP_STEPS,
    ENVIRONMENT_STEPS,
    PIPELINE_CONFIGS,
    STEP_CATALOG,
    TEST_SUITE_STEPS,
    backup_steps,
    build_steps,
    environment_steps,
    suite_steps,
)

__all__ = [
    "BACKUP_STEPS",
    "ENVIRONMENT_STEPS",
    "PIPELINE_CONFIGS",
    "STEP_CATALOG",
    "TEST_SUITE_STEPS",
    "CommandRunner",
    "DryRunCommandRunner",
    "LoggingNotifier",
    "NotificationTargets",
    "Notifier",
    "PipelineConfig",
    "PipelineResult",
    "PipelineStep",
    "ShellCommandRunner",
    "StepPipeline",
    "StepStatus",
    "backup_steps",
    "build_notification",
    "build_steps",
    "environment_steps",
    "suite_steps",
]
