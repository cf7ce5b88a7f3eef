# src/controller/base_controller.py — v1
"""Abstract delivery-controller interface.

Concrete backends issue imperative commands and report what the controller
says; they never decide what to do about it.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Literal

from argocd_deployer.controller.models import CommandResult
from argocd_deployer.core.models import HealthStatus, HistoryEntry, parse_health_status

logger = logging.getLogger(__name__)

SyncPolicy = Literal["manual", "automated"]


class BaseController(ABC):
    """Unified interface for delivery controller clients."""

    @abstractmethod
    def login(self, server: str, username: str, password: str, insecure: bool = True) -> None:
        """Authenticate. Raises ConnectivityError on failure."""

    @abstractmethod
    def get_app(self, app: str) -> dict[str, Any] | None:
        """Return the application document, or None when it cannot be read."""

    @abstractmethod
    def history(self, app: str) -> list[HistoryEntry]:
        """Return the retained history window, oldest first (empty on failure)."""

    @abstractmethod
    def sync(self, app: str, timeout: int) -> CommandResult:
        """Sync the application to its desired state."""

    @abstractmethod
    def rollback(self, app: str, history_id: str, timeout: int) -> CommandResult:
        """Roll the application back to a history id."""

    @abstractmethod
    def wait_healthy(self, app: str, timeout: int) -> CommandResult:
        """Block until the controller reports the application healthy."""

    @abstractmethod
    def set_sync_policy(self, app: str, policy: SyncPolicy) -> CommandResult:
        """Switch between manual and automated sync."""

    @abstractmethod
    def logs(self, app: str, tail: int) -> CommandResult:
        """Fetch recent pod logs for the application."""

    # --- Derived queries ---

    def health_status(self, app: str) -> HealthStatus:
        """Read ``.status.health.status``; unreadable or unexpected values are Unknown."""
        document = self.get_app(app)
        if document is None:
            return "Unknown"
        raw = ((document.get("status") or {}).get("health") or {}).get("status")
        status = parse_health_status(raw)
        logger.debug("Application %s health status: %s", app, status)
        return status

    def auto_sync_enabled(self, app: str) -> bool:
        """True when ``.spec.syncPolicy.automated`` is present."""
        document = self.get_app(app)
        if document is None:
            return False
        sync_policy = (document.get("spec") or {}).get("syncPolicy") or {}
        enabled = bool(sync_policy.get("automated"))
        logger.debug("Auto-sync is %s for %s", "enabled" if enabled else "disabled", app)
        return enabled

    def app_exists(self, app: str) -> bool:
        return self.get_app(app) is not None

    def current_history_id(self, app: str) -> str | None:
        """History id of the newest deployment, regardless of its health."""
        entries = self.history(app)
        if not entries or not entries[-1].has_numeric_id:
            logger.warning("Could not determine current deployment for %s from history", app)
            return None
        return entries[-1].history_id
