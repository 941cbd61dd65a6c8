"""Pipeline outcome notifications."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from .models import NotificationTargets, PipelineConfig, PipelineResult, StepStatus

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def notify(self, targets: NotificationTargets, subject: str, message: str) -> None: ...


class LoggingNotifier:
    """Writes one log record per configured channel; delivery is left to the host."""

    async def notify(self, targets: NotificationTargets, subject: str, message: str) -> None:
        for address in targets.email:
            logger.info("Email notification", extra={"to": address, "subject": subject})
        if targets.slack:
            logger.info("Slack notification", extra={"webhook": targets.slack, "subject": subject})
        if targets.discord:
            logger.info(
                "Discord notification", extra={"webhook": targets.discord, "subject": subject}
            )


def build_notification(
    config: PipelineConfig, results: Sequence[PipelineResult], *, success: bool, title: str
) -> tuple[str, str]:
    """Return ``(subject, body)`` describing a finished pipeline run."""

    status_text = "SUCCESS" if success else "FAILED"
    subject = f"{title} {status_text}: {config.environment}"
    total_ms = sum(r.duration_ms for r in results)

    lines = [
        f"{title} {status_text}",
        "",
        f"Environment: {config.environment}",
        f"Branch: {config.branch or '-'}",
        f"Duration: {round(total_ms / 1000)}s",
        f"Steps: {len(results)}",
    ]
    failed = [r for r in results if r.status is StepStatus.FAILED]
    if not success and failed:
        lines.append("")
        lines.append("Failed Steps:")
        lines.extend(f"- {r.step_name}: {r.error}" for r in failed)
    return subject, "\n".join(lines) + "\n"
