"""Step policy tables.

Which steps a pipeline runs, and in what order, is data: ``ENVIRONMENT_STEPS``
maps an environment to an ordered list of keys into ``STEP_CATALOG``. Step
commands may reference fields of the :class:`PipelineConfig` (``{build_command}``,
``{test_command}``, ``{deploy_command}``, ``{branch}``) and, for backups, the
retention policy (``{daily}``, ``{weekly}``, ``{monthly}``).
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from pm_automation.config import BackupSettings

from .models import NotificationTargets, PipelineConfig, PipelineStep


@dataclass(frozen=True, slots=True)
class StepTemplate:
    name: str
    command: str
    timeout: float
    retries: int = 0
    continue_on_error: bool = False


STEP_CATALOG: dict[str, StepTemplate] = {
    # CI/CD
    "checkout": StepTemplate("Checkout Code", "git checkout {branch}", 30, retries=1),
    "install": StepTemplate("Install Dependencies", "npm ci", 300, retries=2),
    "lint": StepTemplate("Lint Code", "npm run lint", 60, retries=1, continue_on_error=True),
    "typecheck": StepTemplate("Type Check", "npm run type-check", 120, retries=1),
    "test": StepTemplate("Run Tests", "{test_command}", 300, retries=1),
    "build": StepTemplate("Build Application", "{build_command}", 600, retries=1),
    "security_audit": StepTemplate(
        "Security Audit", "npm audit --audit-level=high", 120, retries=1, continue_on_error=True
    ),
    "bundle_analysis": StepTemplate(
        "Bundle Analysis", "npm run analyze", 180, retries=1, continue_on_error=True
    ),
    "deploy": StepTemplate("Deploy Application", "{deploy_command}", 900, retries=2),
    "health_check": StepTemplate("Health Check", "npm run health-check", 60, retries=3),
    "smoke_tests": StepTemplate(
        "Smoke Tests", "npm run test:smoke", 180, retries=1, continue_on_error=True
    ),
    # Test suites
    "unit_tests": StepTemplate("Unit Tests", "npm run test:unit", 600, retries=2),
    "integration_tests": StepTemplate(
        "Integration Tests", "npm run test:integration", 900, retries=2
    ),
    "e2e_tests": StepTemplate("E2E Tests", "npm run test:e2e", 1200, retries=2),
    # Backups
    "backup_database": StepTemplate("Backup Database", "npm run backup:database", 1800, retries=1),
    "backup_files": StepTemplate("Backup Files", "npm run backup:files", 1800, retries=1),
    "compress_backup": StepTemplate("Compress Backup", "npm run backup:compress", 900),
    "encrypt_backup": StepTemplate("Encrypt Backup", "npm run backup:encrypt", 600),
    "store_local": StepTemplate("Store Backup Locally", "npm run backup:store-local", 300),
    "upload_cloud": StepTemplate(
        "Upload Backup to Cloud", "npm run backup:upload-s3", 1800, retries=2
    ),
    "prune_backups": StepTemplate(
        "Apply Retention Policy",
        "npm run backup:prune -- --daily {daily} --weekly {weekly} --monthly {monthly}",
        300,
        continue_on_error=True,
    ),
}

_BASELINE = ("checkout", "install", "lint", "typecheck", "test", "build")
_POST_DEPLOY = ("health_check", "smoke_tests")

ENVIRONMENT_STEPS: dict[str, tuple[str, ...]] = {
    "development": (*_BASELINE, "deploy"),
    "staging": (*_BASELINE, "deploy", *_POST_DEPLOY),
    "production": (*_BASELINE, "security_audit", "bundle_analysis", "deploy", *_POST_DEPLOY),
}

TEST_SUITE_STEPS: tuple[str, ...] = ("unit_tests", "integration_tests", "e2e_tests")

BACKUP_STEPS: tuple[str, ...] = (
    "backup_database",
    "backup_files",
    "compress_backup",
    "encrypt_backup",
    "store_local",
    "upload_cloud",
    "prune_backups",
)

# Optional backup steps and the setting that switches each one on.
BACKUP_STEP_TOGGLES: dict[str, Callable[[BackupSettings], bool]] = {
    "compress_backup": lambda s: s.compression,
    "encrypt_backup": lambda s: s.encryption,
    "store_local": lambda s: s.storage.local,
    "upload_cloud": lambda s: s.storage.cloud,
}

PIPELINE_CONFIGS: dict[str, PipelineConfig] = {
    "development": PipelineConfig(
        environment="development",
        branch="develop",
        build_command="npm run build",
        test_command="npm run test",
        deploy_command="npm run deploy:dev",
        notifications=NotificationTargets(email=["dev@example.com"]),
    ),
    "staging": PipelineConfig(
        environment="staging",
        branch="staging",
        build_command="npm run build",
        test_command="npm run test:full",
        deploy_command="npm run deploy:staging",
        notifications=NotificationTargets(
            email=["dev@example.com", "qa@example.com"],
            slack="https://hooks.slack.com/staging",
        ),
    ),
    "production": PipelineConfig(
        environment="production",
        branch="main",
        build_command="npm run build:prod",
        test_command="npm run test:full",
        deploy_command="npm run deploy:prod",
        notifications=NotificationTargets(
            email=["dev@example.com", "admin@example.com"],
            slack="https://hooks.slack.com/production",
            discord="https://discord.com/api/webhooks/production",
        ),
    ),
}


def build_steps(
    keys: Iterable[str], context: Mapping[str, Any] | None = None
) -> list[PipelineStep]:
    """Materialize catalog entries, filling command placeholders from ``context``."""

    values = dict(context or {})
    steps: list[PipelineStep] = []
    for key in keys:
        template = STEP_CATALOG[key]
        steps.append(
            PipelineStep(
                name=template.name,
                command=template.command.format_map(values),
                timeout=template.timeout,
                retries=template.retries,
                continue_on_error=template.continue_on_error,
            )
        )
    return steps


def environment_steps(config: PipelineConfig) -> list[PipelineStep]:
    keys = ENVIRONMENT_STEPS.get(config.environment)
    if keys is None:
        raise KeyError(f"No step policy for environment {config.environment!r}")
    return build_steps(keys, config.model_dump(exclude={"notifications"}))


def suite_steps(config: PipelineConfig) -> list[PipelineStep]:
    return build_steps(TEST_SUITE_STEPS, config.model_dump(exclude={"notifications"}))


def backup_steps(settings: BackupSettings) -> list[PipelineStep]:
    keys = [
        key
        for key in BACKUP_STEPS
        if key not in BACKUP_STEP_TOGGLES or BACKUP_STEP_TOGGLES[key](settings)
    ]
    return build_steps(keys, settings.retention.model_dump())
