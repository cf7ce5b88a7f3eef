# src/rollback/orchestrator.py — v1
"""Roll an application back to a resolved revision.

Automatic rollbacks (triggered by a failed deploy) wait for the controller to
report the application healthy before declaring success. Explicit rollbacks
(a human picked the target) return as soon as the rollback command succeeds.

A failed rollback is terminal for the run: the caller exits non-zero after
the record, annotation, artifacts and notification have been handled.
"""

from __future__ import annotations

import logging

from argocd_deployer.config.build_context import BuildContext
from argocd_deployer.controller.base_controller import BaseController
from argocd_deployer.core.exceptions import DeployerError
from argocd_deployer.core.models import RollbackKind, RollbackResult
from argocd_deployer.logging.context import set_step_context
from argocd_deployer.metadata.tracker import DeploymentTracker
from argocd_deployer.notifications.messages import rollback_notification_type
from argocd_deployer.notifications.notifier import Notifier
from argocd_deployer.rollback.auto_sync import AutoSyncGuard
from argocd_deployer.rollback.resolver import UNKNOWN, RevisionResolver
from argocd_deployer.storage.artifacts import ArtifactHandler
from argocd_deployer.storage.deployment_log import DeploymentLog

logger = logging.getLogger(__name__)


class RollbackOrchestrator:
    """Execute one rollback attempt and record its outcome.

    Args:
        controller: Delivery controller client.
        resolver: Maps target revisions to history ids.
        tracker: Deployment record writer.
        notifier: Annotations and Slack notifications.
        artifacts: End-of-run log collection and upload.
        build: Build environment, used for the deployment log header.
        timeout: Seconds passed through to the rollback and wait commands.
    """

    def __init__(
        self,
        controller: BaseController,
        resolver: RevisionResolver,
        tracker: DeploymentTracker,
        notifier: Notifier,
        artifacts: ArtifactHandler,
        build: BuildContext,
        timeout: int = 300,
    ) -> None:
        self._controller = controller
        self._resolver = resolver
        self._tracker = tracker
        self._notifier = notifier
        self._artifacts = artifacts
        self._build = build
        self._timeout = timeout

    def rollback(
        self,
        app: str,
        target_revision: str | None,
        kind: RollbackKind,
        deployment_log: DeploymentLog | None = None,
    ) -> RollbackResult:
        set_step_context("rolling_back")
        log = deployment_log or DeploymentLog.create(app, "rollback", self._build)
        logger.info("Starting %s rollback for ArgoCD application: %s", kind, app)
        logger.info("Target revision: %s", target_revision)

        from_revision = self._resolver.current_deployment(app)
        target = (target_revision or "").strip()

        if not target or target == UNKNOWN:
            logger.error("No target revision available")
            log.result("Rollback Result: FAILED - No target revision")
            result = RollbackResult(
                application=app,
                kind=kind,
                success=False,
                from_revision=from_revision,
                target_revision=UNKNOWN,
                reason="no target revision",
            )
            self._tracker.start_rollback(app, from_revision, UNKNOWN)
            return self._finish(result, log)

        logger.info("Rolling back to revision %s...", target)
        self._tracker.start_rollback(app, from_revision, target)

        history_id: str | None = None
        reason = ""
        success = False
        try:
            with AutoSyncGuard(self._controller, app, log):
                history_id, success, reason = self._execute(app, target, kind, log)
        except DeployerError as e:
            logger.error("Rollback aborted: %s", e)
            reason = str(e)

        result = RollbackResult(
            application=app,
            kind=kind,
            success=success,
            from_revision=from_revision,
            target_revision=target,
            history_id=history_id,
            reason=reason,
        )
        if success:
            log.result("Rollback Result: SUCCESS", f"Rolled back to revision: {target}")
        else:
            log.result("Rollback Result: FAILED", f"Reason: {reason}")
        return self._finish(result, log)

    # --- Internal ---

    def _execute(
        self, app: str, target: str, kind: RollbackKind, log: DeploymentLog
    ) -> tuple[str | None, bool, str]:
        """Resolve, roll back and (for automatic rollbacks) wait for health."""
        log.section("Rollback Command Output", f"Looking up history ID for revision: {target}")
        history_id = self._resolver.resolve_history_id(app, target)
        if history_id is None:
            logger.error("Failed to lookup deployment history ID for revision: %s", target)
            return None, False, f"history id not found for revision {target}"

        logger.info("Executing ArgoCD rollback for %s to history ID: %s", app, history_id)
        command = self._controller.rollback(app, history_id, self._timeout)
        log.record_command("Rollback Command Output", command)
        if not command.ok:
            logger.error("ArgoCD rollback failed with exit code: %d", command.exit_code)
            return history_id, False, "rollback_failed"
        logger.info("Rollback command succeeded")

        if kind == "explicit":
            # The initiator chose the target and monitors it separately.
            logger.info("Explicit rollback command completed")
            return history_id, True, ""

        logger.info("Waiting for rollback to complete...")
        wait = self._controller.wait_healthy(app, self._timeout)
        log.record_command("Wait Command Output", wait)
        if not wait.ok:
            logger.error("Rollback wait failed with exit code: %d", wait.exit_code)
            return history_id, False, "rollback_wait_failed"
        logger.info("Rollback completed successfully")
        return history_id, True, ""

    def _finish(self, result: RollbackResult, log: DeploymentLog) -> RollbackResult:
        app = result.application
        if result.success:
            self._tracker.complete_rollback(app, result.target_revision)
            set_step_context("rolled_back")
            self._notifier.annotate_rollback(app, result.from_revision, result.target_revision)
        else:
            self._tracker.fail_rollback(app)
            set_step_context("rollback_failed")
            self._notifier.annotate_rollback_failure(
                app, result.from_revision, result.target_revision, result.reason
            )

        self._artifacts.finalize(app, log)
        self._notifier.send(
            app,
            rollback_notification_type(result.kind == "automatic", result.success),
            result.from_revision,
            result.target_revision,
        )

        if result.success:
            logger.info("Rollback successful")
            logger.info("Rolled from: %s", result.from_revision)
            logger.info("Rolled to:   %s", result.target_revision)
        else:
            logger.error("Rollback failed: %s", result.reason)
        return result
