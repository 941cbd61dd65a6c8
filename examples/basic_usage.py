#!/usr/bin/env python3
"""Programmatic orchestrator example.

This demonstrates using the automation core directly:

* load settings from `.env`
* register a custom action handler and a rule
* deliver a domain event and run one pipeline
* print the aggregate report

Pipeline commands are not executed; the default dry-run runner only logs them.
"""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Mapping
from typing import Any, Sequence

from pm_automation import AutomationSettings, Orchestrator
from pm_automation.actions import ActionKind, dry_run_registry
from pm_automation.logging import configure_logging


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fire one event and run one pipeline.")
    parser.add_argument("--env", default="staging", help="Pipeline environment to run")
    parser.add_argument("--priority", default="URGENT", help="Priority of the created task")
    return parser.parse_args(argv)


async def _print_comment(params: Mapping[str, Any], event: Mapping[str, Any]) -> None:
    print(f"Comment on {event.get('taskId')}: {params.get('text')}")


async def _run(args: argparse.Namespace, settings: AutomationSettings) -> int:
    registry = dry_run_registry()
    registry.register(ActionKind.ADD_COMMENT, _print_comment)

    orchestrator = Orchestrator(settings, action_executor=registry)
    orchestrator.rule_engine.add_rule(
        {
            "name": "Comment on escalations",
            "trigger": {"kind": "task_created"},
            "conditions": [{"field": "priority", "operator": "equals", "value": "URGENT"}],
            "actions": [
                {"kind": "add_comment", "parameters": {"text": "Escalated: {{task.title}}"}}
            ],
        }
    )

    await orchestrator.start(run_scheduler=False)
    try:
        await orchestrator.trigger(
            "task_created",
            {"taskId": "T-1", "priority": args.priority, "task": {"title": "Fix login"}},
        )
        success = await orchestrator.run_pipeline(args.env)
    finally:
        await orchestrator.stop()

    print(orchestrator.generate_report())
    return 0 if success else 4


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = AutomationSettings()
    configure_logging(settings.log_level, json_output=False)

    return asyncio.run(_run(args, settings))


if __name__ == "__main__":
    raise SystemExit(main())
