"""Settings for the automation core.

Configuration is loaded from:
- environment variables prefixed with ``AUTOMATION_``
- and a local ``.env`` file (if present)

Nested sections use ``__`` as delimiter, e.g. ``AUTOMATION_BACKUP__SCHEDULE=0 3 * * *``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["development", "staging", "production"]


class ScheduledTestingSettings(BaseModel):
    """Periodic test-suite runs."""

    enabled: bool = True
    schedule: str = Field(default="daily", description="Cron expression or hourly/daily/weekly")
    environment: Environment = "development"


class CICDSettings(BaseModel):
    enabled: bool = True
    environments: list[Environment] = Field(
        default_factory=lambda: ["development", "staging", "production"]
    )


class RetentionPolicy(BaseModel):
    daily: int = Field(default=7, ge=0)
    weekly: int = Field(default=4, ge=0)
    monthly: int = Field(default=12, ge=0)


class BackupStorage(BaseModel):
    local: bool = True
    cloud: bool = True


class BackupSettings(BaseModel):
    enabled: bool = True
    schedule: str = Field(default="daily", description="Cron expression or hourly/daily/weekly")
    retention: RetentionPolicy = Field(default_factory=RetentionPolicy)
    storage: BackupStorage = Field(default_factory=BackupStorage)
    compression: bool = True
    encryption: bool = True
    notify_email: list[str] = Field(default_factory=lambda: ["admin@example.com"])


class TaskAutomationSettings(BaseModel):
    enabled: bool = True
    templates: list[str] = Field(
        default_factory=lambda: [
            "autoAssignTasks",
            "highPriorityNotification",
            "autoCompleteProject",
            "deadlineReminder",
        ],
        description="Names from pm_automation.rules.templates.RULE_TEMPLATES",
    )


class AutomationSettings(BaseSettings):
    """Top-level settings for the orchestrator.

    Notes:
        Tests override the env file via ``AutomationSettings(_env_file=path)``.
    """

    log_level: str = Field(default="INFO", description="Root logging level")
    log_json: bool = Field(default=True, description="Emit JSON log lines instead of text")

    tick_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Period of the scheduler tick driving cron rules and periodic pipelines",
    )
    retry_base_delay_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Linear backoff unit between failed step attempts (attempt * base)",
    )
    command_runner: Literal["dry-run", "shell"] = Field(
        default="dry-run",
        description="How pipeline step commands are executed",
    )
    rules_path: Path | None = Field(
        default=None,
        description="Optional JSON file with additional rule definitions",
    )
    serialize_rules: bool = Field(
        default=False,
        description=(
            "Guard each rule with its own lock. Only needed when events are delivered "
            "from concurrent tasks."
        ),
    )

    testing: ScheduledTestingSettings = Field(default_factory=ScheduledTestingSettings)
    cicd: CICDSettings = Field(default_factory=CICDSettings)
    backup: BackupSettings = Field(default_factory=BackupSettings)
    task_automation: TaskAutomationSettings = Field(default_factory=TaskAutomationSettings)

    model_config = SettingsConfigDict(
        env_prefix="AUTOMATION_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )
