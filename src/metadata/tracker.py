# src/metadata/tracker.py — v1
"""Deployment record and per-history outcome bookkeeping on top of a metadata store.

Key layout:
    deployment:argocd:<app>:{status,result,current_version,previous_version,timestamp,failure_reason}
    deployment:argocd:<app>:history_<id>:result   success | failed
    rollback:argocd:<app>:{status,result,from_version,to_version,timestamp}

Within one orchestration run the record only moves forward:
deploying -> deployed | failed | rolling_back -> rolled_back | rollback_failed.
"""

from __future__ import annotations

import logging

from argocd_deployer.core.exceptions import MetadataError
from argocd_deployer.core.models import DeploymentRecord, DeploymentStatus, utc_timestamp
from argocd_deployer.metadata.base_metadata_store import BaseMetadataStore

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[DeploymentStatus | None, frozenset[str]] = {
    None: frozenset({"deploying", "rolling_back"}),
    "deploying": frozenset({"deployed", "failed", "rolling_back"}),
    "rolling_back": frozenset({"rolled_back", "rollback_failed"}),
    "deployed": frozenset(),
    "failed": frozenset(),
    "rolled_back": frozenset(),
    "rollback_failed": frozenset(),
    "failed_accepted": frozenset(),
}

# Status written when a fatal error interrupts an open record.
_ABORTED_STATUS: dict[str, DeploymentStatus] = {
    "deploying": "failed",
    "rolling_back": "rollback_failed",
}

HISTORY_SUCCESS = "success"
HISTORY_FAILED = "failed"


def deployment_key(app: str, field: str) -> str:
    return f"deployment:argocd:{app}:{field}"


def history_key(app: str, history_id: str) -> str:
    return f"deployment:argocd:{app}:history_{history_id}:result"


def rollback_key(app: str, field: str) -> str:
    return f"rollback:argocd:{app}:{field}"


class InvalidTransition(RuntimeError):
    """Raised when an orchestrator tries to move a record backwards."""


class DeploymentTracker:
    """Read and write the durable per-application deployment memory.

    Writes are best-effort: a rejected write is logged and the run continues,
    because losing a record must not turn a good deploy into a failed one.
    """

    def __init__(self, store: BaseMetadataStore) -> None:
        self._store = store
        self._run_status: dict[str, DeploymentStatus | None] = {}

    @property
    def store(self) -> BaseMetadataStore:
        return self._store

    # --- DeploymentRecord ---

    def read_record(self, app: str) -> DeploymentRecord:
        status = self._store.get(deployment_key(app, "status"), "")
        return DeploymentRecord(
            status=status or None,  # type: ignore[arg-type]
            result=self._store.get(deployment_key(app, "result"), ""),
            current_version=self._store.get(deployment_key(app, "current_version"), ""),
            previous_version=self._store.get(deployment_key(app, "previous_version"), ""),
            timestamp=self._store.get(deployment_key(app, "timestamp"), ""),
            failure_reason=self._store.get(deployment_key(app, "failure_reason"), ""),
        )

    def run_status(self, app: str) -> DeploymentStatus | None:
        """Status written by this run, None before the first write."""
        return self._run_status.get(app)

    def previous_version(self, app: str) -> str:
        return self._store.get(deployment_key(app, "previous_version"), "")

    def start_deployment(self, app: str, previous_version: str | None) -> None:
        self._write_record(app, "deploying", previous_version=previous_version or "")

    def complete_deployment(
        self, app: str, current_version: str | None, previous_version: str | None
    ) -> None:
        self._write_record(
            app,
            "deployed",
            result="success",
            current_version=current_version or "",
            previous_version=previous_version or "",
        )

    def fail_deployment(self, app: str, reason: str) -> None:
        self.record_failure_reason(app, reason)
        self._write_record(app, "failed", result="failed")

    def record_failure_reason(self, app: str, reason: str) -> None:
        self._safe_set(deployment_key(app, "failure_reason"), reason)

    def start_rollback(self, app: str, from_version: str, to_version: str) -> None:
        self._write_record(app, "rolling_back")
        self._write_rollback(app, "rolling_back", from_version=from_version, to_version=to_version)

    def complete_rollback(self, app: str, target_revision: str) -> None:
        self._write_record(
            app, "rolled_back", result="rollback_success", current_version=target_revision
        )
        self._write_rollback(app, "rolled_back", result="success")

    def fail_rollback(self, app: str) -> None:
        self._write_record(app, "rollback_failed", result="rollback_failed")
        self._write_rollback(app, "rollback_failed", result="failed")

    def abort_open_record(self, app: str, reason: str) -> None:
        """Close a record left open by a fatal error so later runs see a terminal state."""
        status = self._run_status.get(app)
        aborted = _ABORTED_STATUS.get(status or "")
        if aborted is None:
            return
        self.record_failure_reason(app, reason)
        self._write_record(app, aborted, result=aborted)

    def fail_before_start(self, app: str, status: DeploymentStatus, reason: str) -> None:
        """Write a terminal record for a run that failed before opening one.

        Login and input errors land here. Versions are left as the last run
        wrote them.
        """
        if self._run_status.get(app) is not None:
            self.abort_open_record(app, reason)
            return
        self._run_status[app] = status
        self.record_failure_reason(app, reason)
        self._safe_set(deployment_key(app, "result"), status)
        self._safe_set(deployment_key(app, "status"), status)
        self._safe_set(deployment_key(app, "timestamp"), utc_timestamp())
        if status == "rollback_failed":
            self._write_rollback(app, "rollback_failed", result="failed")

    def record_decision(self, app: str, status: DeploymentStatus, result: str) -> None:
        """Write the outcome of a manual decision taken in a later build step.

        The deciding step runs in a fresh process that did not open the record,
        so no transition check applies.
        """
        self._run_status[app] = status
        self._safe_set(deployment_key(app, "result"), result)
        self._safe_set(deployment_key(app, "status"), status)
        self._safe_set(deployment_key(app, "timestamp"), utc_timestamp())

    # --- PerHistoryOutcome ---

    def record_history_outcome(self, app: str, history_id: str | None, success: bool) -> None:
        if not history_id:
            return
        outcome = HISTORY_SUCCESS if success else HISTORY_FAILED
        logger.debug("Recording history %s of %s as %s", history_id, app, outcome)
        self._safe_set(history_key(app, history_id), outcome)

    def history_outcome(self, app: str, history_id: str) -> str:
        return self._store.get(history_key(app, history_id), "")

    def history_succeeded(self, app: str, history_id: str) -> bool:
        return self.history_outcome(app, history_id) == HISTORY_SUCCESS

    # --- Internal ---

    def _write_record(
        self,
        app: str,
        status: DeploymentStatus,
        result: str = "",
        current_version: str = "",
        previous_version: str = "",
    ) -> None:
        current = self._run_status.get(app)
        if status not in _TRANSITIONS[current]:
            raise InvalidTransition(
                f"Deployment record for {app} cannot move from {current} to {status}"
            )
        self._run_status[app] = status
        logger.debug("Setting deployment metadata for %s: status=%s, result=%s", app, status, result)

        self._safe_set(deployment_key(app, "status"), status)
        # Empty values are skipped: the agent rejects them and the old value stays meaningful.
        for field, value in (
            ("result", result),
            ("current_version", current_version),
            ("previous_version", previous_version),
        ):
            if value:
                self._safe_set(deployment_key(app, field), value)
        self._safe_set(deployment_key(app, "timestamp"), utc_timestamp())

    def _write_rollback(
        self,
        app: str,
        status: str,
        result: str = "",
        from_version: str = "",
        to_version: str = "",
    ) -> None:
        self._safe_set(rollback_key(app, "status"), status)
        for field, value in (
            ("result", result),
            ("from_version", from_version),
            ("to_version", to_version),
        ):
            if value:
                self._safe_set(rollback_key(app, field), value)
        self._safe_set(rollback_key(app, "timestamp"), utc_timestamp())

    def _safe_set(self, key: str, value: str) -> None:
        try:
            self._store.set(key, value)
        except MetadataError as e:
            logger.warning("Failed to record metadata %s: %s", key, e)
