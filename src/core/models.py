# src/core/models.py — v1
"""Core domain models: health signal, history window entries, deployment records."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, get_args

from pydantic import BaseModel, Field

HealthStatus = Literal[
    "Healthy", "Progressing", "Degraded", "Suspended", "Missing", "Unknown"
]

# Statuses that end a retry loop immediately instead of waiting for the timeout.
FAST_FAIL_STATUSES: frozenset[str] = frozenset({"Degraded", "Missing"})

HealthOutcome = Literal["healthy", "degraded", "timed_out"]

DeploymentStatus = Literal[
    "deploying",
    "deployed",
    "rolling_back",
    "rolled_back",
    "failed",
    "rollback_failed",
    "failed_accepted",
]

RollbackKind = Literal["automatic", "explicit"]

RollbackMode = Literal["auto", "manual"]

AnnotationStyle = Literal["success", "error", "warning", "info"]

NotificationType = Literal[
    "deployment_success",
    "deployment_failed_auto",
    "deployment_failed_manual",
    "rollback_success_auto",
    "rollback_success_manual",
    "rollback_failed_auto",
    "rollback_failed_manual",
]

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


def utc_timestamp(moment: datetime | None = None) -> str:
    """Format a moment (default: now) the way records and annotations show it."""
    return (moment or datetime.now(timezone.utc)).strftime(TIMESTAMP_FORMAT)


def parse_health_status(raw: object) -> HealthStatus:
    """Map a controller-reported health string onto HealthStatus.

    Anything unrecognised (including None) becomes ``"Unknown"``.
    """
    if isinstance(raw, str) and raw in get_args(HealthStatus):
        return raw  # type: ignore[return-value]
    return "Unknown"


class HealthCheckResult(BaseModel):
    """Outcome of one Health Monitor run."""

    outcome: HealthOutcome
    last_status: HealthStatus = "Unknown"
    checks: int = 0
    elapsed_s: float = 0.0

    @property
    def healthy(self) -> bool:
        return self.outcome == "healthy"

    @property
    def failure_reason(self) -> str | None:
        """Reason string recorded when the deployment is not healthy."""
        if self.outcome == "degraded":
            return f"health_check_degraded ({self.last_status})"
        if self.outcome == "timed_out":
            return f"health_check_timeout ({self.last_status})"
        return None


class HistoryEntry(BaseModel):
    """One row of the controller's retained deployment history window."""

    history_id: str
    deployed_at: str = ""
    revision: str = ""
    position: int = 0

    @property
    def has_numeric_id(self) -> bool:
        return self.history_id.isdigit()


class DeploymentRecord(BaseModel):
    """Durable per-application memory shared across pipeline steps."""

    status: DeploymentStatus | None = None
    result: str = ""
    current_version: str = ""
    previous_version: str = ""
    timestamp: str = ""
    failure_reason: str = ""


class RollbackResult(BaseModel):
    """Outcome of one rollback attempt."""

    application: str
    kind: RollbackKind
    success: bool
    from_revision: str = "unknown"
    target_revision: str = ""
    history_id: str | None = None
    reason: str = ""

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1


class RollbackInstruction(BaseModel):
    """Self-contained payload handed from the decision gate to its continuation.

    Everything the later step needs is resolved up front; the continuation only
    has the controller client and the CI agent available.
    """

    application: str
    rollback_target: str
    history_id: str
    timeout: int = Field(ge=30, le=3600)
    timestamp: str
    argocd_server: str = ""
    argocd_username: str = ""
    argocd_insecure: bool = True
