"""Command runners execute the opaque ``command`` of a pipeline step."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

from pm_automation.errors import StepError

logger = logging.getLogger(__name__)

_OUTPUT_TAIL_CHARS = 2000


class CommandRunner(Protocol):
    """Runs one command and returns its output. Raises on failure."""

    async def run(self, command: str) -> str: ...


class DryRunCommandRunner:
    """Logs the command instead of running it."""

    async def run(self, command: str) -> str:
        logger.info("Dry-run command", extra={"command": command})
        return f"{command} (dry run)"


class ShellCommandRunner:
    """Run commands through the system shell with asyncio subprocesses.

    A step timeout abandons the caller's wait only; the child process keeps running
    until it exits on its own.
    """

    def __init__(self, *, cwd: Path | None = None, env: Mapping[str, str] | None = None) -> None:
        self.cwd = cwd
        self.env = dict(env) if env is not None else None

    async def run(self, command: str) -> str:
        process = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=self.cwd,
            env=self.env,
        )
        stdout, _ = await process.communicate()
        output = stdout.decode("utf-8", errors="replace")
        if process.returncode != 0:
            raise StepError(
                f"Command exited with status {process.returncode}: {command}\n"
                f"{output[-_OUTPUT_TAIL_CHARS:]}".rstrip()
            )
        return output
