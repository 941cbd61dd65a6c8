"""Unit tests for the action registry and parameter templating."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest

from pm_automation.actions import ActionKind, ActionRegistry, dry_run_registry, render_parameters
from pm_automation.errors import ActionError, UnknownActionError


def test_render_parameters_substitutes_placeholders() -> None:
    event = {"task": {"title": "Fix login", "estimate": 3}, "project": {"owner": {"id": 7}}}

    rendered = render_parameters(
        {
            "message": "High priority task created: {{task.title}}",
            "assignee": "{{project.owner.id}}",
            "recipients": ["{{ task.title }}", "team_lead"],
            "missing": "{{task.nope}}",
            "count": 2,
        },
        event,
    )

    assert rendered == {
        "message": "High priority task created: Fix login",
        "assignee": 7,
        "recipients": ["Fix login", "team_lead"],
        "missing": "{{task.nope}}",
        "count": 2,
    }


@pytest.mark.asyncio
async def test_registry_dispatches_rendered_parameters() -> None:
    seen: list[tuple[dict[str, Any], dict[str, Any]]] = []

    async def handler(params: Mapping[str, Any], event: Mapping[str, Any]) -> None:
        seen.append((dict(params), dict(event)))

    registry = ActionRegistry()
    registry.register(ActionKind.ADD_COMMENT, handler)

    await registry.execute("add_comment", {"text": "{{taskId}} escalated"}, {"taskId": "T-1"})

    assert seen == [({"text": "T-1 escalated"}, {"taskId": "T-1"})]
    assert "add_comment" in registry
    assert ActionKind.ADD_COMMENT in registry


@pytest.mark.asyncio
async def test_registry_can_skip_rendering() -> None:
    seen: list[Mapping[str, Any]] = []

    async def handler(params: Mapping[str, Any], event: Mapping[str, Any]) -> None:
        seen.append(params)

    registry = ActionRegistry(render_templates=False)
    registry.register("webhook", handler)

    await registry.execute("webhook", {"url": "{{hook}}"}, {"hook": "https://example.com"})

    assert seen == [{"url": "{{hook}}"}]


@pytest.mark.asyncio
async def test_unknown_kind_raises() -> None:
    registry = ActionRegistry()

    with pytest.raises(UnknownActionError) as excinfo:
        await registry.execute("launch_rocket", {}, {})

    assert isinstance(excinfo.value, ActionError)
    assert excinfo.value.kind == "launch_rocket"
    assert str(excinfo.value) == "Unknown action type: launch_rocket"


def test_unregister() -> None:
    registry = dry_run_registry()

    assert registry.unregister(ActionKind.WEBHOOK) is True
    assert registry.unregister(ActionKind.WEBHOOK) is False
    assert "webhook" not in registry


@pytest.mark.asyncio
async def test_dry_run_registry_covers_builtin_kinds() -> None:
    registry = dry_run_registry()

    assert sorted(registry.kinds()) == sorted(kind.value for kind in ActionKind)
    for kind in ActionKind:
        await registry.execute(kind.value, {"x": 1}, {"taskId": "T-9"})
