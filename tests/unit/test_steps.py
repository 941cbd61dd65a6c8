"""Unit tests for the step policy tables."""

from __future__ import annotations

import pytest

from pm_automation.config import BackupSettings, BackupStorage
from pm_automation.pipeline import (
    PIPELINE_CONFIGS,
    STEP_CATALOG,
    PipelineConfig,
    backup_steps,
    environment_steps,
    suite_steps,
)

_BASELINE = [
    "Checkout Code",
    "Install Dependencies",
    "Lint Code",
    "Type Check",
    "Run Tests",
    "Build Application",
]


def _names(config: PipelineConfig) -> list[str]:
    return [step.name for step in environment_steps(config)]


def test_development_is_baseline_plus_deploy() -> None:
    assert _names(PIPELINE_CONFIGS["development"]) == [*_BASELINE, "Deploy Application"]


def test_staging_adds_post_deploy_checks() -> None:
    assert _names(PIPELINE_CONFIGS["staging"]) == [
        *_BASELINE,
        "Deploy Application",
        "Health Check",
        "Smoke Tests",
    ]


def test_production_adds_audit_and_bundle_analysis_before_deploy() -> None:
    assert _names(PIPELINE_CONFIGS["production"]) == [
        *_BASELINE,
        "Security Audit",
        "Bundle Analysis",
        "Deploy Application",
        "Health Check",
        "Smoke Tests",
    ]


def test_commands_are_filled_from_config() -> None:
    steps = {step.name: step for step in environment_steps(PIPELINE_CONFIGS["production"])}

    assert steps["Checkout Code"].command == "git checkout main"
    assert steps["Build Application"].command == "npm run build:prod"
    assert steps["Deploy Application"].command == "npm run deploy:prod"
    assert steps["Deploy Application"].retries == 2
    assert steps["Lint Code"].continue_on_error is True


def test_every_environment_builds_before_deploy() -> None:
    for config in PIPELINE_CONFIGS.values():
        names = _names(config)
        assert "Deploy Application" in names
        assert names.index("Build Application") < names.index("Deploy Application")


def test_unknown_environment_has_no_policy() -> None:
    with pytest.raises(KeyError):
        environment_steps(PipelineConfig(environment="qa"))


def test_suite_steps() -> None:
    steps = suite_steps(PIPELINE_CONFIGS["development"])

    assert [s.name for s in steps] == ["Unit Tests", "Integration Tests", "E2E Tests"]
    assert all(s.retries == 2 for s in steps)


def test_backup_steps_follow_settings() -> None:
    full = [s.name for s in backup_steps(BackupSettings())]
    assert full[0] == "Backup Database"
    assert full[-1] == "Apply Retention Policy"
    assert "Upload Backup to Cloud" in full

    minimal = backup_steps(
        BackupSettings(
            compression=False,
            encryption=False,
            storage=BackupStorage(local=True, cloud=False),
        )
    )
    assert [s.name for s in minimal] == [
        "Backup Database",
        "Backup Files",
        "Store Backup Locally",
        "Apply Retention Policy",
    ]
    assert minimal[-1].command.endswith("--daily 7 --weekly 4 --monthly 12")


def test_catalog_timeouts_are_positive() -> None:
    assert all(template.timeout > 0 for template in STEP_CATALOG.values())
