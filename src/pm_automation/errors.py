"""Exception types raised inside the automation core.

None of these escape the orchestrator's public methods; they are caught at the
rule or step level and turned into recorded history entries.
"""

from __future__ import annotations


class AutomationError(Exception):
    pass


class ActionError(AutomationError):
    """An action executor failed to perform one action."""


class UnknownActionError(ActionError):
    def __init__(self, kind: str) -> None:
        super().__init__(f"Unknown action type: {kind}")
        self.kind = kind


class StepError(AutomationError):
    """A pipeline step attempt failed."""


class StepTimeoutError(StepError):
    def __init__(self, command: str, timeout: float) -> None:
        super().__init__(f"Command timeout after {timeout:g}s: {command}")
        self.command = command
        self.timeout = timeout


class CronParseError(AutomationError, ValueError):
    pass
