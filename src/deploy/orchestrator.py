# src/deploy/orchestrator.py — v1
"""Deployment state machine: sync, monitor, then succeed or handle the failure.

    Syncing --sync ok--> Monitoring --healthy--> Succeeded
       |                     |
       | sync failed         | not healthy
       v                     v
     Failed          failure handling (by rollback mode)
                        auto:   no previous revision -> Failed
                                otherwise            -> AutoRollingBack
                        manual: gate injected        -> AwaitingManualDecision
                                gate refused         -> Failed

A human decision pending is not a failure of this run: AwaitingManualDecision
exits 0.
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel

from argocd_deployer.config.build_context import BuildContext
from argocd_deployer.controller.base_controller import BaseController
from argocd_deployer.core.exceptions import DeployerError, NotFoundError
from argocd_deployer.core.models import HealthCheckResult, RollbackMode, RollbackResult
from argocd_deployer.health.monitor import HealthMonitor
from argocd_deployer.logging.context import set_step_context
from argocd_deployer.metadata.tracker import DeploymentTracker
from argocd_deployer.notifications.notifier import Notifier
from argocd_deployer.rollback.decision_gate import ManualDecisionGate
from argocd_deployer.rollback.orchestrator import RollbackOrchestrator
from argocd_deployer.rollback.resolver import UNKNOWN, RevisionResolver
from argocd_deployer.storage.artifacts import ArtifactHandler
from argocd_deployer.storage.deployment_log import DeploymentLog

logger = logging.getLogger(__name__)

DeploymentState = Literal[
    "Syncing",
    "Monitoring",
    "Succeeded",
    "AutoRollingBack",
    "AwaitingManualDecision",
    "Failed",
]


class DeploymentResult(BaseModel):
    """Final state of one deployment run."""

    application: str
    state: DeploymentState
    reason: str = ""
    previous_version: str = UNKNOWN
    current_version: str = UNKNOWN
    health: HealthCheckResult | None = None
    rollback: RollbackResult | None = None

    @property
    def exit_code(self) -> int:
        if self.state in ("Succeeded", "AwaitingManualDecision"):
            return 0
        if self.state == "AutoRollingBack" and self.rollback is not None:
            return self.rollback.exit_code
        return 1


class DeploymentOrchestrator:
    """Drive one deploy through sync, health monitoring and failure handling.

    Args:
        controller: Delivery controller client.
        monitor: Health Monitor for the post-sync check.
        resolver: Previous-revision resolution.
        tracker: Deployment record writer.
        rollbacks: Executes automatic rollbacks.
        gate: Injects the manual decision steps.
        notifier: Annotations and Slack notifications.
        artifacts: End-of-run log collection and upload.
        build: Build environment, used for the deployment log header.
        rollback_mode: ``auto`` rolls back on failure; ``manual`` asks a human.
        timeout: Sync timeout in seconds.
        health_check_interval: Seconds between health polls.
        health_check_timeout: Health polling budget in seconds.
    """

    def __init__(
        self,
        controller: BaseController,
        monitor: HealthMonitor,
        resolver: RevisionResolver,
        tracker: DeploymentTracker,
        rollbacks: RollbackOrchestrator,
        gate: ManualDecisionGate,
        notifier: Notifier,
        artifacts: ArtifactHandler,
        build: BuildContext,
        rollback_mode: RollbackMode = "auto",
        timeout: int = 300,
        health_check_interval: int = 30,
        health_check_timeout: int = 300,
    ) -> None:
        self._controller = controller
        self._monitor = monitor
        self._resolver = resolver
        self._tracker = tracker
        self._rollbacks = rollbacks
        self._gate = gate
        self._notifier = notifier
        self._artifacts = artifacts
        self._build = build
        self._rollback_mode = rollback_mode
        self._timeout = timeout
        self._interval = health_check_interval
        self._health_timeout = health_check_timeout

    def deploy(self, app: str) -> DeploymentResult:
        """Run the state machine to a final state.

        Raises:
            DeployerError: On a fatal error (missing application, lost
                connectivity). The open record is closed, the deployment is
                annotated and artifacts are handled before re-raising.
        """
        log = DeploymentLog.create(app, "deploy", self._build)
        logger.info("Starting deployment for ArgoCD application: %s", app)
        try:
            return self._run(app, log)
        except DeployerError as e:
            logger.error("Deployment aborted: %s", e)
            self._tracker.abort_open_record(app, str(e))
            log.result(f"Deployment Result: FAILED - {e}")
            self._notifier.annotate_deployment(app, UNKNOWN, UNKNOWN, "failed")
            self._artifacts.finalize(app, log)
            raise

    # --- States ---

    def _run(self, app: str, log: DeploymentLog) -> DeploymentResult:
        previous = self._resolver.current_deployment(app)
        logger.info("Current deployment before sync: %s", previous)
        self._tracker.start_deployment(app, previous)

        if not self._controller.app_exists(app):
            raise NotFoundError(f"ArgoCD application '{app}' not found")

        set_step_context("Syncing")
        logger.info("Syncing ArgoCD application: %s", app)
        sync = self._controller.sync(app, self._timeout)
        log.record_command("Sync Command Output", sync)
        if not sync.ok:
            logger.error("ArgoCD sync failed with exit code: %d", sync.exit_code)
            return self._fail(app, log, "sync_failed", previous)

        set_step_context("Monitoring")
        retry_enabled = self._rollback_mode != "manual"
        health = self._monitor.monitor(
            app,
            retry_enabled=retry_enabled,
            interval=self._interval,
            timeout=self._health_timeout,
        )
        log.section(
            "Health Check",
            f"Outcome: {health.outcome}",
            f"Last status: {health.last_status}",
            f"Checks: {health.checks}",
        )
        current = self._resolver.current_deployment(app)

        if health.healthy:
            return self._succeed(app, log, previous, current, health)

        self._tracker.record_history_outcome(app, self._new_entry(previous, current), False)
        return self._handle_failure(app, log, health.failure_reason or "health_check_failed",
                                    previous, current, health)

    def _succeed(
        self,
        app: str,
        log: DeploymentLog,
        previous: str,
        current: str,
        health: HealthCheckResult,
    ) -> DeploymentResult:
        set_step_context("Succeeded")
        self._tracker.complete_deployment(app, current, previous)
        if current != UNKNOWN:
            self._tracker.record_history_outcome(app, current, True)
        log.result("Deployment Result: SUCCESS", f"Current Version: {current}")
        self._notifier.annotate_deployment(app, previous, current, "success")
        self._artifacts.finalize(app, log)
        self._notifier.send(app, "deployment_success", previous, current)
        logger.info("Deployment succeeded: %s (%s -> %s)", app, previous, current)
        return DeploymentResult(
            application=app,
            state="Succeeded",
            previous_version=previous,
            current_version=current,
            health=health,
        )

    def _handle_failure(
        self,
        app: str,
        log: DeploymentLog,
        reason: str,
        previous: str,
        current: str,
        health: HealthCheckResult,
    ) -> DeploymentResult:
        logger.error("Handling deployment failure for %s", app)
        logger.info("Rollback mode: %s, Failure reason: %s", self._rollback_mode, reason)
        log.result(f"Deployment Result: FAILED - {reason}")
        self._notifier.annotate_deployment(app, previous, previous, "failed")

        if self._rollback_mode == "manual":
            return self._await_decision(app, log, reason, previous, current, health)

        target = self._resolver.resolve_previous(app)
        if target is None:
            logger.error("No previous version available for rollback")
            return self._fail(
                app, log, "no previous version", previous, current, health,
                recorded_reason=reason, annotate=False,
            )

        set_step_context("AutoRollingBack")
        self._tracker.record_failure_reason(app, reason)
        logger.info("Auto rollback mode: initiating automatic rollback to %s", target)
        self._notifier.send(app, "deployment_failed_auto", current, target)
        rollback = self._rollbacks.rollback(app, target, "automatic", log)
        return DeploymentResult(
            application=app,
            state="AutoRollingBack",
            reason=reason,
            previous_version=previous,
            current_version=current,
            health=health,
            rollback=rollback,
        )

    def _await_decision(
        self,
        app: str,
        log: DeploymentLog,
        reason: str,
        previous: str,
        current: str,
        health: HealthCheckResult,
    ) -> DeploymentResult:
        self._tracker.fail_deployment(app, reason)
        logger.info("Manual rollback mode: injecting block step for user decision...")
        try:
            instruction = self._gate.inject(app, previous)
        except DeployerError as e:
            logger.error("Failed to inject rollback decision steps: %s", e)
            set_step_context("Failed")
            self._artifacts.finalize(app, log)
            return DeploymentResult(
                application=app,
                state="Failed",
                reason=f"{reason}; {e}",
                previous_version=previous,
                current_version=current,
                health=health,
            )

        set_step_context("AwaitingManualDecision")
        self._artifacts.finalize(app, log)
        self._notifier.send(app, "deployment_failed_manual", current, instruction.rollback_target)
        logger.info("Pipeline paused for manual rollback decision")
        return DeploymentResult(
            application=app,
            state="AwaitingManualDecision",
            reason=reason,
            previous_version=previous,
            current_version=current,
            health=health,
        )

    def _fail(
        self,
        app: str,
        log: DeploymentLog,
        reason: str,
        previous: str,
        current: str = UNKNOWN,
        health: HealthCheckResult | None = None,
        recorded_reason: str | None = None,
        annotate: bool = True,
    ) -> DeploymentResult:
        set_step_context("Failed")
        self._tracker.fail_deployment(app, recorded_reason or reason)
        if annotate:
            log.result(f"Deployment Result: FAILED - {reason}")
            self._notifier.annotate_deployment(app, previous, previous, "failed")
        self._artifacts.finalize(app, log)
        return DeploymentResult(
            application=app,
            state="Failed",
            reason=reason,
            previous_version=previous,
            current_version=current,
            health=health,
        )

    @staticmethod
    def _new_entry(previous: str, current: str) -> str | None:
        """History id created by this sync, or None when the window did not move."""
        if current == UNKNOWN or current == previous:
            return None
        return current
