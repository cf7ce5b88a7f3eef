# src/logging/context.py — v1
"""Contextual logging support: attach application, operation, run_id and step to records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_application: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "application", default=None
)
_operation: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "operation", default=None
)
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_step: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "step", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    application: str | None = None
    operation: str | None = None
    run_id: str | None = None
    step: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        application=_application.get(),
        operation=_operation.get(),
        run_id=_run_id.get(),
        step=_step.get(),
    )


def set_operation_context(application: str, operation: str, run_id: str) -> None:
    """Set invocation-level context (called once per CLI run)."""
    _application.set(application)
    _operation.set(operation)
    _run_id.set(run_id)


def set_step_context(step: str | None) -> None:
    """Set the current orchestration state (called on every transition)."""
    _step.set(step)


def clear_context() -> None:
    """Reset all context variables."""
    _application.set(None)
    _operation.set(None)
    _run_id.set(None)
    _step.set(None)
