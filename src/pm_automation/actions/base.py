from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable, Mapping
from enum import Enum
from typing import Any, Protocol

from pm_automation.errors import UnknownActionError
from pm_automation.rules.conditions import resolve_field

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{\{\s*([\w.]+)\s*\}\}")


class ActionKind(str, Enum):
    ASSIGN_USER = "assign_user"
    UPDATE_STATUS = "update_status"
    SEND_NOTIFICATION = "send_notification"
    CREATE_TASK = "create_task"
    UPDATE_PRIORITY = "update_priority"
    ADD_COMMENT = "add_comment"
    SEND_EMAIL = "send_email"
    WEBHOOK = "webhook"


class ActionExecutor(Protocol):
    """Performs one rule action. Raises on failure; the return value is ignored."""

    async def execute(
        self, kind: str, params: Mapping[str, Any], event: Mapping[str, Any]
    ) -> None: ...


ActionHandler = Callable[[Mapping[str, Any], Mapping[str, Any]], Awaitable[None]]


def render_parameters(value: Any, event: Mapping[str, Any]) -> Any:
    """Substitute ``{{path.to.field}}`` placeholders from the event.

    A string consisting of exactly one placeholder is replaced by the raw field
    value (keeping its type). Placeholders that do not resolve are left untouched.
    """

    if isinstance(value, str):
        whole = _PLACEHOLDER.fullmatch(value.strip())
        if whole is not None:
            resolved = resolve_field(event, whole.group(1))
            return value if resolved is None else resolved

        def _sub(match: re.Match[str]) -> str:
            resolved = resolve_field(event, match.group(1))
            return match.group(0) if resolved is None else str(resolved)

        return _PLACEHOLDER.sub(_sub, value)
    if isinstance(value, Mapping):
        return {k: render_parameters(v, event) for k, v in value.items()}
    if isinstance(value, list):
        return [render_parameters(item, event) for item in value]
    return value


def _kind_key(kind: str | ActionKind) -> str:
    return kind.value if isinstance(kind, ActionKind) else kind


class ActionRegistry:
    """String-keyed handler table implementing :class:`ActionExecutor`.

    Handlers for the built-in :class:`ActionKind` values are supplied by the host
    application; hosts may also register kinds of their own.
    """

    def __init__(self, *, render_templates: bool = True) -> None:
        self._handlers: dict[str, ActionHandler] = {}
        self.render_templates = render_templates

    def register(self, kind: str | ActionKind, handler: ActionHandler) -> None:
        self._handlers[_kind_key(kind)] = handler

    def unregister(self, kind: str | ActionKind) -> bool:
        return self._handlers.pop(_kind_key(kind), None) is not None

    def kinds(self) -> list[str]:
        return list(self._handlers)

    def __contains__(self, kind: object) -> bool:
        if isinstance(kind, (str, ActionKind)):
            return _kind_key(kind) in self._handlers
        return False

    async def execute(
        self, kind: str, params: Mapping[str, Any], event: Mapping[str, Any]
    ) -> None:
        handler = self._handlers.get(_kind_key(kind))
        if handler is None:
            raise UnknownActionError(_kind_key(kind))
        rendered = render_parameters(params, event) if self.render_templates else params
        await handler(rendered, event)


class LoggingActionHandler:
    """Handler that records the action in the log and performs nothing else."""

    def __init__(self, kind: str) -> None:
        self.kind = kind

    async def __call__(self, params: Mapping[str, Any], event: Mapping[str, Any]) -> None:
        logger.info(
            "Dry-run action",
            extra={"action": self.kind, "parameters": dict(params), "task_id": event.get("taskId")},
        )


def dry_run_registry() -> ActionRegistry:
    """A registry where every built-in kind only logs what it would do."""

    registry = ActionRegistry()
    for kind in ActionKind:
        registry.register(kind, LoggingActionHandler(kind.value))
    return registry
