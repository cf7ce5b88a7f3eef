# src/rollback/resolver.py — v1
"""Resolve which prior revision to roll back to.

Sources, first success wins:
  1. The recorded previous version, if it is still in the current history window.
  2. The newest history entry whose recorded outcome is ``success``.
  3. Positional guess: the entry before the newest, then the one before that.

The positional guess assumes linear, non-concurrent deploys and has no
correctness guarantee when history has gaps; it is kept as a last resort only.
"""

from __future__ import annotations

import logging

from argocd_deployer.controller.base_controller import BaseController
from argocd_deployer.controller.history_parser import revision_matches
from argocd_deployer.core.models import HistoryEntry
from argocd_deployer.metadata.tracker import DeploymentTracker

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


class RevisionResolver:
    def __init__(self, controller: BaseController, tracker: DeploymentTracker) -> None:
        self._controller = controller
        self._tracker = tracker

    def resolve_previous(self, app: str) -> str | None:
        """Return the history id of the previous stable deployment, or None."""
        logger.debug("Getting previous stable deployment for %s", app)
        window = self._controller.history(app)
        if not window:
            logger.warning("No deployment history available for %s", app)
            return None
        logger.debug("Available ArgoCD history entries: %d total", len(window))

        from_metadata = self._from_metadata(app, window)
        if from_metadata is not None:
            return from_metadata

        from_outcomes = self._from_outcomes(app, window)
        if from_outcomes is not None:
            return from_outcomes

        positional = self._positional(window)
        if positional is not None:
            logger.debug("Found previous deployment in history: %s", positional)
            return positional

        logger.warning("Could not find any valid deployment in history for %s", app)
        return None

    def resolve_history_id(self, app: str, target: str) -> str | None:
        """Map a history id or a source revision (short or long SHA) to a history id."""
        if not target or target == UNKNOWN:
            return None
        if target.isdigit():
            logger.debug("Target revision is already a history ID: %s", target)
            return target

        window = self._controller.history(app)
        if not window:
            logger.error("No deployment history available for %s", app)
            return None

        for entry in window:
            if entry.has_numeric_id and revision_matches(entry, target):
                logger.debug("Found history ID: %s for revision: %s", entry.history_id, target)
                return entry.history_id

        logger.error("Could not find history ID for revision: %s", target)
        logger.info(
            "Available history: %s",
            ", ".join(f"{e.history_id}={e.revision}" for e in window),
        )
        return None

    def current_deployment(self, app: str) -> str:
        """History id of the newest deployment, or ``"unknown"``."""
        return self._controller.current_history_id(app) or UNKNOWN

    # --- Internal ---

    def _from_metadata(self, app: str, window: list[HistoryEntry]) -> str | None:
        recorded = self._tracker.previous_version(app)
        logger.debug("Metadata lookup result: '%s'", recorded)
        if not recorded or recorded == UNKNOWN:
            logger.debug("No valid metadata found, going to ArgoCD history lookup")
            return None
        if any(entry.history_id == recorded for entry in window):
            logger.debug("Metadata revision %s validated in ArgoCD history", recorded)
            return recorded
        logger.warning(
            "Metadata revision %s not found in current ArgoCD history - using fresh history",
            recorded,
        )
        return None

    def _from_outcomes(self, app: str, window: list[HistoryEntry]) -> str | None:
        logger.debug("Searching for successful deployments in metadata (newest first)...")
        for entry in reversed(window):
            if not entry.has_numeric_id:
                continue
            if self._tracker.history_succeeded(app, entry.history_id):
                logger.debug("Found successful deployment in history: %s", entry.history_id)
                return entry.history_id
        return None

    @staticmethod
    def _positional(window: list[HistoryEntry]) -> str | None:
        for offset in (2, 3):
            if len(window) < offset:
                break
            candidate = window[-offset]
            logger.debug("Positional fallback %d-from-last: '%s'", offset, candidate.history_id)
            if candidate.has_numeric_id:
                return candidate.history_id
        return None
