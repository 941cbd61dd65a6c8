"""Sequential step pipeline with bounded retries and per-attempt timeouts."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime

from pm_automation.errors import StepTimeoutError
from pm_automation.scheduling.clock import Clock, SystemClock

from .models import PipelineConfig, PipelineResult, PipelineStep, StepStatus
from .notifications import LoggingNotifier, Notifier, build_notification
from .runners import CommandRunner

logger = logging.getLogger(__name__)

_STATUS_MARKERS = {
    StepStatus.SUCCESS: "[OK]",
    StepStatus.FAILED: "[FAIL]",
    StepStatus.SKIPPED: "[SKIP]",
}


def _error_text(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


class StepPipeline:
    """Run an ordered list of steps.

    Each step gets ``retries + 1`` attempts. An attempt that outlives the step
    timeout, measured on the pipeline clock, counts as failed with
    :class:`StepTimeoutError`; the underlying work is abandoned, not cancelled.
    Between failed attempts the pipeline sleeps ``attempt * retry_base_delay``
    seconds.

    A failed step halts the run unless it is marked ``continue_on_error``; steps
    after the halt are not attempted and do not appear in the results.
    """

    def __init__(
        self,
        config: PipelineConfig,
        steps: Sequence[PipelineStep],
        *,
        runner: CommandRunner,
        notifier: Notifier | None = None,
        clock: Clock | None = None,
        retry_base_delay: float = 2.0,
        title: str = "CI/CD PIPELINE",
    ) -> None:
        self.config = config
        self.runner = runner
        self.notifier: Notifier = notifier or LoggingNotifier()
        self.clock: Clock = clock or SystemClock()
        self.retry_base_delay = retry_base_delay
        self.title = title
        self.last_run_at: datetime | None = None
        self.last_run_success: bool | None = None
        self._steps = list(steps)
        self._results: list[PipelineResult] = []
        self._running = False
        # Timed-out attempts that are still running; held so they are not collected.
        self._abandoned: set[asyncio.Future[str]] = set()

    @property
    def environment(self) -> str:
        return self.config.environment

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def steps(self) -> list[PipelineStep]:
        return list(self._steps)

    def get_results(self) -> list[PipelineResult]:
        return list(self._results)

    async def run(self) -> bool:
        """Execute all steps; return True unless a halting step failed."""

        if self._running:
            logger.warning("Pipeline already running", extra={"environment": self.environment})
            return False

        self._running = True
        self._results = []
        self.last_run_at = self.clock.now()
        logger.info(
            "Starting pipeline",
            extra={"environment": self.environment, "title": self.title, "steps": len(self._steps)},
        )

        success = True
        try:
            for index, step in enumerate(self._steps, start=1):
                logger.info(
                    "Pipeline step",
                    extra={"index": index, "total": len(self._steps), "step": step.name},
                )
                result = await self.execute_step(step)
                self._results.append(result)

                if result.status is StepStatus.FAILED and not step.continue_on_error:
                    success = False
                    logger.error(
                        "Pipeline halted",
                        extra={"environment": self.environment, "step": step.name},
                    )
                    break
        finally:
            self._running = False

        self.last_run_success = success
        logger.info(
            "Pipeline finished",
            extra={"environment": self.environment, "success": success},
        )
        await self._notify(success)
        return success

    async def execute_step(self, step: PipelineStep) -> PipelineResult:
        started = self.clock.monotonic()
        attempts = step.retries + 1
        last_error: str | None = None
        timed_out = False

        for attempt in range(1, attempts + 1):
            logger.debug(
                "Executing step command",
                extra={"step": step.name, "command": step.command, "attempt": attempt},
            )
            try:
                output = await self._attempt(step)
            except Exception as e:
                last_error = _error_text(e)
                timed_out = isinstance(e, StepTimeoutError)
                logger.warning(
                    "Step attempt failed",
                    extra={
                        "step": step.name,
                        "attempt": attempt,
                        "attempts": attempts,
                        "error": last_error,
                        "timed_out": timed_out,
                    },
                )
                if attempt < attempts:
                    await self.clock.sleep(attempt * self.retry_base_delay)
                continue

            return PipelineResult(
                step_name=step.name,
                status=StepStatus.SUCCESS,
                duration_ms=self._elapsed_ms(started),
                output=output,
            )

        return PipelineResult(
            step_name=step.name,
            status=StepStatus.FAILED,
            duration_ms=self._elapsed_ms(started),
            error=last_error,
            timed_out=timed_out,
        )

    async def _attempt(self, step: PipelineStep) -> str:
        work = asyncio.ensure_future(self.runner.run(step.command))
        timer = asyncio.ensure_future(self.clock.sleep(step.timeout))
        try:
            await asyncio.wait({work, timer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            timer.cancel()
        if work.done():
            return work.result()

        self._abandoned.add(work)
        work.add_done_callback(self._forget)
        raise StepTimeoutError(step.command, step.timeout)

    def _forget(self, work: asyncio.Future[str]) -> None:
        self._abandoned.discard(work)
        if not work.cancelled() and work.exception() is not None:
            logger.debug(
                "Abandoned step attempt finished with error",
                extra={"environment": self.environment, "error": _error_text(work.exception())},
            )

    def _elapsed_ms(self, started: float) -> float:
        return (self.clock.monotonic() - started) * 1000

    async def _notify(self, success: bool) -> None:
        targets = self.config.notifications
        if targets.is_empty():
            return
        subject, message = build_notification(
            self.config, self._results, success=success, title=self.title
        )
        try:
            await self.notifier.notify(targets, subject, message)
        except Exception:
            logger.exception(
                "Pipeline notification failed", extra={"environment": self.environment}
            )

    def generate_report(self) -> str:
        total_ms = sum(r.duration_ms for r in self._results)
        passed = sum(1 for r in self._results if r.status is StepStatus.SUCCESS)
        failed = sum(1 for r in self._results if r.status is StepStatus.FAILED)
        heading = f"{self.title} REPORT"

        lines = [
            heading,
            "=" * len(heading),
            f"Environment: {self.config.environment}",
            f"Branch: {self.config.branch or '-'}",
            f"Declared Steps: {len(self._steps)}",
            f"Total Steps: {len(self._results)}",
            f"Successful: {passed}",
            f"Failed: {failed}",
            f"Total Duration: {total_ms / 1000:.1f}s",
        ]
        if self._results:
            lines.append("")
            lines.append("Step Details:")
        for index, result in enumerate(self._results, start=1):
            lines.append(
                f"{index}. {_STATUS_MARKERS[result.status]} {result.step_name} "
                f"({result.duration_ms / 1000:.1f}s)"
            )
            if result.error:
                lines.append(f"   Error: {result.error}")
        return "\n".join(lines) + "\n"

    get_report = generate_report
