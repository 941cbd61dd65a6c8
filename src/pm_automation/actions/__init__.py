"""Action executors invoked by matched rules.

Concrete side effects (assigning users, sending email, calling webhooks) belong
to the host application; this package only defines the seam and a registry.
"""

from .base import (
    ActionExecutor,
    ActionHandler,
    ActionKind,
    ActionRegistry,
    LoggingActionHandler,
    dry_run_registry,
    render_parameters,
)

__all__ = [
    "ActionExecutor",
    "ActionHandler",
    "ActionKind",
    "ActionRegistry",
    "LoggingActionHandler",
    "dry_run_registry",
    "render_parameters",
]
