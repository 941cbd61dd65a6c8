"""Data model for step pipelines."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class StepStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class PipelineStep(BaseModel):
    name: str
    command: str = Field(description="Opaque command reference handed to the CommandRunner")
    timeout: float = Field(gt=0, description="Per-attempt timeout in seconds")
    retries: int = Field(default=0, ge=0, description="Extra attempts after the first failure")
    continue_on_error: bool = False

    model_config = ConfigDict(frozen=True)


class PipelineResult(BaseModel):
    """Final outcome of one step across all of its attempts."""

    step_name: str
    status: StepStatus
    duration_ms: float
    output: str = ""
    error: str | None = None
    timed_out: bool = False

    model_config = ConfigDict(frozen=True)


class NotificationTargets(BaseModel):
    email: list[str] = Field(default_factory=list)
    slack: str | None = None
    discord: str | None = None

    def is_empty(self) -> bool:
        return not self.email and not self.slack and not self.discord


class PipelineConfig(BaseModel):
    environment: str
    branch: str | None = None
    build_command: str = ""
    test_command: str = ""
    deploy_command: str = ""
    notifications: NotificationTargets = Field(default_factory=NotificationTargets)
