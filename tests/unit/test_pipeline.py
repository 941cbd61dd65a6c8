"""Unit tests for the step pipeline executor."""

from __future__ import annotations

import asyncio

import pytest

from pm_automation.errors import StepError
from pm_automation.pipeline import (
    NotificationTargets,
    PipelineConfig,
    PipelineStep,
    StepPipeline,
    StepStatus,
)
from tests.fakes import HANG, FakeClock, FakeCommandRunner, RecordingNotifier


def _config(**kwargs: object) -> PipelineConfig:
    return PipelineConfig(environment="staging", branch="staging", **kwargs)


def _pipeline(
    steps: list[PipelineStep],
    runner: FakeCommandRunner,
    clock: FakeClock,
    *,
    notifier: RecordingNotifier | None = None,
    config: PipelineConfig | None = None,
) -> StepPipeline:
    return StepPipeline(
        config or _config(),
        steps,
        runner=runner,
        notifier=notifier,
        clock=clock,
        retry_base_delay=2.0,
    )


@pytest.mark.asyncio
async def test_all_steps_succeed(clock: FakeClock) -> None:
    runner = FakeCommandRunner()
    steps = [
        PipelineStep(name="Checkout", command="checkout", timeout=5),
        PipelineStep(name="Build", command="build", timeout=5),
    ]
    pipeline = _pipeline(steps, runner, clock)

    assert await pipeline.run() is True

    results = pipeline.get_results()
    assert [r.step_name for r in results] == ["Checkout", "Build"]
    assert all(r.status is StepStatus.SUCCESS for r in results)
    assert results[0].output == "checkout: ok"
    assert runner.calls == ["checkout", "build"]
    assert pipeline.last_run_success is True
    assert pipeline.last_run_at == clock.now()


@pytest.mark.asyncio
async def test_retries_bound_attempts_and_back_off_linearly(clock: FakeClock) -> None:
    runner = FakeCommandRunner({"deploy": [StepError("boom")]})
    step = PipelineStep(name="Deploy", command="deploy", timeout=5, retries=2)
    pipeline = _pipeline([step], runner, clock)

    result = await pipeline.execute_step(step)

    assert runner.calls == ["deploy", "deploy", "deploy"]
    assert clock.sleeps == [2.0, 4.0]
    assert result.status is StepStatus.FAILED
    assert result.error == "boom"
    assert result.timed_out is False
    assert result.duration_ms == pytest.approx(6000.0)


@pytest.mark.asyncio
async def test_success_on_retry_carries_no_error(clock: FakeClock) -> None:
    runner = FakeCommandRunner({"install": [StepError("flaky"), "installed"]})
    step = PipelineStep(name="Install", command="install", timeout=5, retries=1)
    pipeline = _pipeline([step], runner, clock)

    result = await pipeline.execute_step(step)

    assert result.status is StepStatus.SUCCESS
    assert result.output == "installed"
    assert result.error is None
    assert len(runner.calls) == 2


@pytest.mark.asyncio
async def test_failing_step_halts_run(clock: FakeClock) -> None:
    runner = FakeCommandRunner({"install": [StepError("npm exploded")]})
    steps = [
        PipelineStep(name="Checkout", command="checkout", timeout=5),
        PipelineStep(name="Install", command="install", timeout=5),
        PipelineStep(name="Lint", command="lint", timeout=5),
        PipelineStep(name="Build", command="build", timeout=5),
    ]
    pipeline = _pipeline(steps, runner, clock)

    assert await pipeline.run() is False

    results = pipeline.get_results()
    assert len(results) < len(steps)
    assert [r.step_name for r in results] == ["Checkout", "Install"]
    assert "lint" not in runner.calls
    assert pipeline.last_run_success is False


@pytest.mark.asyncio
async def test_continue_on_error_keeps_going(clock: FakeClock) -> None:
    runner = FakeCommandRunner({"lint": [StepError("style")]})
    steps = [
        PipelineStep(name="Lint", command="lint", timeout=5, continue_on_error=True),
        PipelineStep(name="Build", command="build", timeout=5),
    ]
    pipeline = _pipeline(steps, runner, clock)

    assert await pipeline.run() is True

    assert [r.status for r in pipeline.get_results()] == [StepStatus.FAILED, StepStatus.SUCCESS]


@pytest.mark.asyncio
async def test_timeout_on_every_attempt_halts_run(clock: FakeClock) -> None:
    runner = FakeCommandRunner({"install": [HANG]})
    steps = [
        PipelineStep(name="Checkout", command="checkout", timeout=5),
        PipelineStep(name="Install", command="install", timeout=0.01, retries=1),
        PipelineStep(name="Lint", command="lint", timeout=5),
        PipelineStep(name="Build", command="build", timeout=5),
    ]
    pipeline = _pipeline(steps, runner, clock)

    try:
        assert await pipeline.run() is False

        results = pipeline.get_results()
        assert [r.step_name for r in results] == ["Checkout", "Install"]
        install = results[-1]
        assert install.status is StepStatus.FAILED
        assert install.timed_out is True
        assert install.error == "Command timeout after 0.01s: install"
        assert runner.calls == ["checkout", "install", "install"]
        # Both timeouts and the backoff between them are measured on the clock.
        assert clock.sleeps == [0.01, 2.0, 0.01]
        assert install.duration_ms == pytest.approx(2020.0)
    finally:
        runner.release()
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_run_clears_previous_results(clock: FakeClock) -> None:
    runner = FakeCommandRunner()
    pipeline = _pipeline([PipelineStep(name="Build", command="build", timeout=5)], runner, clock)

    await pipeline.run()
    await pipeline.run()

    assert len(pipeline.get_results()) == 1


@pytest.mark.asyncio
async def test_concurrent_run_is_rejected(clock: FakeClock) -> None:
    runner = FakeCommandRunner({"slow": [HANG]})
    pipeline = _pipeline([PipelineStep(name="Slow", command="slow", timeout=5)], runner, clock)

    first = asyncio.create_task(pipeline.run())
    await asyncio.sleep(0)
    assert pipeline.is_running is True

    assert await pipeline.run() is False

    runner.release()
    assert await first is True
    assert pipeline.is_running is False


@pytest.mark.asyncio
async def test_notification_lists_failed_steps(clock: FakeClock) -> None:
    runner = FakeCommandRunner({"deploy": [StepError("denied")]})
    notifier = RecordingNotifier()
    config = _config(notifications=NotificationTargets(email=["qa@example.com"]))
    pipeline = _pipeline(
        [PipelineStep(name="Deploy", command="deploy", timeout=5)],
        runner,
        clock,
        notifier=notifier,
        config=config,
    )

    await pipeline.run()

    [(targets, subject, message)] = notifier.sent
    assert targets.email == ["qa@example.com"]
    assert subject == "CI/CD PIPELINE FAILED: staging"
    assert "Failed Steps:" in message
    assert "- Deploy: denied" in message


@pytest.mark.asyncio
async def test_notifier_failure_does_not_escape(clock: FakeClock) -> None:
    class BrokenNotifier:
        async def notify(self, targets: NotificationTargets, subject: str, message: str) -> None:
            raise RuntimeError("smtp down")

    pipeline = StepPipeline(
        _config(notifications=NotificationTargets(slack="https://hooks.example.com/x")),
        [PipelineStep(name="Build", command="build", timeout=5)],
        runner=FakeCommandRunner(),
        notifier=BrokenNotifier(),
        clock=clock,
    )

    assert await pipeline.run() is True


@pytest.mark.asyncio
async def test_no_notification_without_targets(clock: FakeClock) -> None:
    notifier = RecordingNotifier()
    pipeline = _pipeline(
        [PipelineStep(name="Build", command="build", timeout=5)],
        FakeCommandRunner(),
        clock,
        notifier=notifier,
    )

    await pipeline.run()

    assert notifier.sent == []


@pytest.mark.asyncio
async def test_report(clock: FakeClock) -> None:
    runner = FakeCommandRunner({"test": [StepError("2 failing")]})
    steps = [
        PipelineStep(name="Build", command="build", timeout=5),
        PipelineStep(name="Tests", command="test", timeout=5, retries=1),
    ]
    pipeline = _pipeline(steps, runner, clock)

    await pipeline.run()
    report = pipeline.generate_report()

    assert report == pipeline.get_report()
    assert report.startswith("CI/CD PIPELINE REPORT\n")
    assert "Environment: staging" in report
    assert "Branch: staging" in report
    assert "Total Steps: 2" in report
    assert "Successful: 1" in report
    assert "Failed: 1" in report
    assert "Total Duration: 2.0s" in report
    assert "1. [OK] Build (0.0s)" in report
    assert "2. [FAIL] Tests (2.0s)" in report
    assert "   Error: 2 failing" in report


def test_step_validation() -> None:
    with pytest.raises(ValueError):
        PipelineStep(name="x", command="x", timeout=0)
    with pytest.raises(ValueError):
        PipelineStep(name="x", command="x", timeout=1, retries=-1)
