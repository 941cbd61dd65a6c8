"""Unit tests for the status board and JSON log formatting."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime, timedelta

import pytest

from pm_automation.logging import JsonFormatter
from pm_automation.status import ComponentState, StatusBoard


def test_status_board_keeps_one_record_per_component() -> None:
    board = StatusBoard()
    start = datetime(2024, 1, 1, tzinfo=UTC)

    board.update("testing", ComponentState.RUNNING, "scheduled", now=start)
    board.update("testing", "stopped", now=start + timedelta(minutes=5))
    board.update("backup", ComponentState.ERROR, "disk full", now=start)

    assert len(board) == 2
    record = board.get("testing")
    assert record.status is ComponentState.STOPPED
    assert record.message is None
    assert record.last_run == start + timedelta(minutes=5)
    assert board.counts() == {
        ComponentState.RUNNING: 0,
        ComponentState.STOPPED: 1,
        ComponentState.ERROR: 1,
    }


def test_status_board_rejects_unknown_state() -> None:
    with pytest.raises(ValueError):
        StatusBoard().update("testing", "paused", now=datetime(2024, 1, 1, tzinfo=UTC))


def test_json_formatter_includes_extra_fields() -> None:
    record = logging.LogRecord(
        name="pm_automation.rules.engine",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Executing automation rule",
        args=None,
        exc_info=None,
    )
    record.rule_id = "rule_1"

    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "pm_automation.rules.engine"
    assert payload["message"] == "Executing automation rule"
    assert payload["extra"] == {"rule_id": "rule_1"}
