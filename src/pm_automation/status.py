"""Per-component lifecycle records kept by the orchestrator."""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class ComponentState(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"
    ERROR = "error"


class AutomationStatus(BaseModel):
    component: str
    status: ComponentState
    last_run: datetime
    next_run: datetime | None = None
    message: str | None = None

    model_config = ConfigDict(frozen=True)


class StatusBoard:
    """One live record per component name; an update replaces the record wholesale."""

    def __init__(self) -> None:
        self._records: dict[str, AutomationStatus] = {}

    def update(
        self,
        component: str,
        status: ComponentState | str,
        message: str | None = None,
        *,
        now: datetime,
        next_run: datetime | None = None,
    ) -> AutomationStatus:
        record = AutomationStatus(
            component=component,
            status=ComponentState(status),
            last_run=now,
            next_run=next_run,
            message=message,
        )
        self._records[component] = record
        return record

    def get(self, component: str) -> AutomationStatus | None:
        return self._records.get(component)

    def all(self) -> list[AutomationStatus]:
        return list(self._records.values())

    def counts(self) -> dict[ComponentState, int]:
        tally = Counter(record.status for record in self._records.values())
        return {state: tally.get(state, 0) for state in ComponentState}

    def __len__(self) -> int:
        return len(self._records)
