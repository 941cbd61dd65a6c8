"""Project-management automation core.

Provides:
- a declarative rule engine reacting to domain events and cron schedules
- a step pipeline executor with bounded retries and per-step timeouts
- an orchestrator tracking component status and execution history
"""

__version__ = "0.1.0"

from pm_automation.config import AutomationSettings
from pm_automation.orchestrator import Orchestrator

__all__ = ["__version__", "AutomationSettings", "Orchestrator"]
