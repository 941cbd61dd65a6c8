"""Test configuration and fixtures."""

from __future__ import annotations

import pytest

from pm_automation.config import AutomationSettings
from tests.fakes import FakeClock, FakeCommandRunner, RecordingActionExecutor, RecordingNotifier


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def executor() -> RecordingActionExecutor:
    return RecordingActionExecutor()


@pytest.fixture
def runner() -> FakeCommandRunner:
    return FakeCommandRunner()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def settings() -> AutomationSettings:
    """Settings isolated from the developer's ``.env`` and environment."""
    return AutomationSettings(
        _env_file=None,
        log_level="DEBUG",
        retry_base_delay_seconds=1.0,
    )
