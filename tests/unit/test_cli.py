"""Unit tests for the CLI entrypoint."""

from __future__ import annotations

from pathlib import Path

import pytest

from pm_automation.cli import build_parser, main


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("AUTOMATION_LOG_JSON", "false")
    monkeypatch.setenv("AUTOMATION_RETRY_BASE_DELAY_SECONDS", "0")
    monkeypatch.setenv("AUTOMATION_COMMAND_RUNNER", "dry-run")


def test_parser_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_run_pipeline_prints_report(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["run-pipeline", "--env", "development"]) == 0

    out = capsys.readouterr().out
    assert "CI/CD PIPELINE REPORT" in out
    assert "Environment: development" in out


def test_run_pipeline_unknown_environment(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["run-pipeline", "--env", "qa"]) == 4

    assert "No pipeline configured for qa" in capsys.readouterr().out


def test_fire_reports_executions(capsys: pytest.CaptureFixture[str]) -> None:
    code = main(["fire", "--trigger", "task_created", "--payload", '{"priority": "URGENT"}'])

    assert code == 0
    assert "Notify on high priority tasks: success (1/1 actions)" in capsys.readouterr().out


def test_fire_without_matches(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["fire", "--trigger", "user_assigned"]) == 0

    assert "No rules matched" in capsys.readouterr().out


def test_fire_rejects_bad_payload(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["fire", "--trigger", "task_created", "--payload", "[1, 2]"]) == 2

    assert "Invalid input" in capsys.readouterr().err


def test_report(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["report"]) == 0

    assert "AUTOMATION SYSTEM REPORT" in capsys.readouterr().out


def test_configuration_error(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("AUTOMATION_TICK_INTERVAL_SECONDS", "-1")

    assert main(["report"]) == 2

    assert "Configuration error" in capsys.readouterr().err
