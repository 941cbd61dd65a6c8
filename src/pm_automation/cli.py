"""CLI entrypoint for the automation core.

Every subcommand builds an :class:`Orchestrator` from ``AutomationSettings``
(environment variables / ``.env``), runs one operation and prints the resulting
report to stdout.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from pydantic import ValidationError

from pm_automation import __version__
from pm_automation.config import AutomationSettings
from pm_automation.logging import configure_logging
from pm_automation.orchestrator import Orchestrator, cicd_component
from pm_automation.rules import TriggerKind

logger = logging.getLogger(__name__)


def _parse_payload(value: str | None) -> dict[str, Any]:
    if not value:
        return {}
    payload = json.loads(value)
    if not isinstance(payload, dict):
        raise ValueError("Payload must be a JSON object")
    return payload


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pm-automation",
        description="Project-management automation: rules, pipelines and schedules",
    )
    parser.add_argument("--version", action="version", version=f"pm-automation {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_pipeline = subparsers.add_parser("run-pipeline", help="Run the CI/CD pipeline once")
    run_pipeline.add_argument(
        "--env",
        "--environment",
        dest="environment",
        required=True,
        help="Target environment: development | staging | production",
    )

    subparsers.add_parser("run-tests", help="Run the unit, integration and e2e suites once")
    subparsers.add_parser("run-backup", help="Run the backup pipeline once")

    fire = subparsers.add_parser("fire", help="Deliver one domain event to the rule engine")
    fire.add_argument(
        "--trigger",
        required=True,
        choices=[kind.value for kind in TriggerKind],
        help="Trigger kind of the event",
    )
    fire.add_argument(
        "--payload",
        default=None,
        help='Event payload as a JSON object, e.g. \'{"priority": "HIGH"}\'',
    )

    subparsers.add_parser("report", help="Print the automation report for a fresh orchestrator")

    serve = subparsers.add_parser(
        "serve",
        help="Start the scheduler and run cron rules and periodic pipelines until interrupted",
    )
    serve.add_argument(
        "--duration-seconds",
        type=float,
        default=0.0,
        help="Stop after this many seconds (0 means run until interrupted)",
    )

    return parser


async def _run_command(args: argparse.Namespace, settings: AutomationSettings) -> int:
    orchestrator = Orchestrator(settings)

    if args.command == "serve":
        await orchestrator.start()
        try:
            if args.duration_seconds > 0:
                await asyncio.sleep(args.duration_seconds)
            else:
                await asyncio.Event().wait()
        finally:
            await orchestrator.stop()
        print(orchestrator.generate_report())
        return 0

    await orchestrator.start(run_scheduler=False)
    try:
        if args.command == "run-pipeline":
            success = await orchestrator.run_pipeline(args.environment)
            pipeline = orchestrator.pipelines.get(args.environment)
            if pipeline is not None:
                print(pipeline.generate_report())
            else:
                record = orchestrator.status.get(cicd_component(args.environment))
                print(record.message if record is not None else "Unknown environment")
            return 0 if success else 4

        if args.command == "run-tests":
            success = await orchestrator.run_tests()
            if orchestrator.testing is not None:
                print(orchestrator.testing.generate_report())
            return 0 if success else 4

        if args.command == "run-backup":
            success = await orchestrator.run_backup()
            if orchestrator.backup is not None:
                print(orchestrator.backup.generate_report())
            return 0 if success else 4

        if args.command == "fire":
            await orchestrator.trigger(args.trigger, _parse_payload(args.payload))
            executions = orchestrator.get_executions()
            for execution in executions:
                print(
                    f"{execution.rule_name}: {execution.status.value} "
                    f"({execution.actions_executed}/{execution.total_actions} actions)"
                )
            if not executions:
                print("No rules matched")
            return 0

        if args.command == "report":
            print(orchestrator.generate_report())
            return 0
    finally:
        await orchestrator.stop()

    logger.error("Unknown command", extra={"command": args.command})
    return 2


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = AutomationSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level, json_output=settings.log_json)

    try:
        return asyncio.run(_run_command(args, settings))
    except ValueError as e:
        # Bad --payload (json.JSONDecodeError is a ValueError).
        print(f"Invalid input: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130
    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
