# src/rollback/auto_sync.py — v1
"""Scoped suspension of the controller's automated sync policy.

An automated policy can race a manual rollback's sync, so it is switched to
manual for the duration of the rollback and switched back on every exit path.

Usage:
    with AutoSyncGuard(controller, app, deployment_log):
        ... rollback steps ...
"""

from __future__ import annotations

import logging
from types import TracebackType

from argocd_deployer.controller.base_controller import BaseController
from argocd_deployer.core.exceptions import DeployerError
from argocd_deployer.storage.deployment_log import DeploymentLog

logger = logging.getLogger(__name__)


class AutoSyncGuard:
    """Context manager that disables auto-sync on entry and restores it on exit.

    A failed restore is logged and never replaces the rollback's own result.
    """

    def __init__(
        self,
        controller: BaseController,
        app: str,
        deployment_log: DeploymentLog | None = None,
    ) -> None:
        self._controller = controller
        self._app = app
        self._log = deployment_log
        self.was_enabled = False
        self.restored: bool | None = None

    def __enter__(self) -> AutoSyncGuard:
        if not self._controller.auto_sync_enabled(self._app):
            return self

        logger.info("Auto-sync detected - temporarily disabling for proper rollback")
        if self._set_policy("manual", "Disabling Auto-Sync"):
            self.was_enabled = True
            logger.info("Auto-sync disabled successfully")
        else:
            logger.warning("Failed to disable auto-sync, proceeding with rollback anyway...")
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if not self.was_enabled:
            return
        logger.info("Re-enabling auto-sync...")
        self.restored = self._set_policy("automated", "Re-enabling Auto-Sync")
        if self.restored:
            logger.info("Auto-sync re-enabled successfully")
        else:
            logger.warning("Failed to re-enable auto-sync for %s", self._app)

    def _set_policy(self, policy: str, title: str) -> bool:
        try:
            result = self._controller.set_sync_policy(self._app, policy)  # type: ignore[arg-type]
        except DeployerError as e:
            logger.warning("%s failed for %s: %s", title, self._app, e)
            return False
        if self._log is not None:
            self._log.record_command(title, result)
        return result.ok
