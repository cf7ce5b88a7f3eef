# src/rollback/continuation.py — v1
"""Execute the human decision recorded by the manual decision gate's block step.

Runs in a later build step, in a fresh process. Everything it needs comes from
the serialized ``RollbackInstruction``; the decision itself is read from build
meta-data and the controller password from the environment.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Literal

from pydantic import ValidationError

from argocd_deployer.ci.agent import BuildkiteAgent
from argocd_deployer.controller.base_controller import BaseController
from argocd_deployer.core.exceptions import ConfigurationError, DeployerError
from argocd_deployer.core.models import RollbackInstruction
from argocd_deployer.logging.context import set_step_context
from argocd_deployer.metadata.tracker import DeploymentTracker
from argocd_deployer.notifications.messages import decision_annotation
from argocd_deployer.rollback.auto_sync import AutoSyncGuard
from argocd_deployer.rollback.decision_gate import (
    DECISION_ACCEPT,
    DECISION_KEY,
    DECISION_ROLLBACK,
)

logger = logging.getLogger(__name__)

# Block step fields are written to meta-data shortly after the step unblocks.
SETTLE_SECONDS = 2.0

DecisionOutcome = Literal[
    "rollback_success", "rollback_failed", "wait_failed", "accepted", "undecided"
]


def load_instruction(raw: str | None) -> RollbackInstruction:
    """Decode the instruction payload handed over through the environment.

    Raises:
        ConfigurationError: If the payload is missing or malformed.
    """
    if not raw:
        raise ConfigurationError("No rollback instruction found in the environment")
    try:
        return RollbackInstruction.model_validate_json(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid rollback instruction: {e}") from e


class DecisionContinuation:
    """Carry out ``rollback`` or ``accept`` for one failed deployment."""

    def __init__(
        self,
        controller: BaseController,
        agent: BuildkiteAgent,
        tracker: DeploymentTracker,
        sleep: Callable[[float], None] = time.sleep,
        settle_seconds: float = SETTLE_SECONDS,
    ) -> None:
        self._controller = controller
        self._agent = agent
        self._tracker = tracker
        self._sleep = sleep
        self._settle = settle_seconds

    def read_decision(self) -> str:
        logger.info("Checking user decision from block step")
        if self._settle > 0:
            self._sleep(self._settle)
        return self._agent.metadata_get(DECISION_KEY, "").strip()

    def execute(self, instruction: RollbackInstruction, password: str) -> DecisionOutcome:
        decision = self.read_decision()
        app = instruction.application

        if decision == DECISION_ROLLBACK:
            logger.info("User selected: rollback")
            return self._rollback(instruction, password)

        if decision == DECISION_ACCEPT:
            logger.info("User chose to accept deployment failure")
            set_step_context("failure_accepted")
            self._annotate("accepted", instruction)
            self._tracker.record_decision(app, "failed_accepted", "failure_accepted")
            logger.info("Failure accepted - no rollback performed")
            return "accepted"

        logger.error(
            "No valid decision found in metadata (got %r, expected 'rollback' or 'accept')",
            decision,
        )
        logger.error("Please complete the block step first")
        return "undecided"

    # --- Internal ---

    def _rollback(self, instruction: RollbackInstruction, password: str) -> DecisionOutcome:
        app = instruction.application
        history_id = instruction.history_id
        set_step_context("rolling_back")
        logger.info(
            "Executing rollback for %s to %s (history ID %s)",
            app, instruction.rollback_target, history_id,
        )

        try:
            logger.info("Authenticating with ArgoCD server...")
            self._controller.login(
                instruction.argocd_server,
                instruction.argocd_username,
                password,
                instruction.argocd_insecure,
            )
            with AutoSyncGuard(self._controller, app):
                command = self._controller.rollback(app, history_id, instruction.timeout)
                if not command.ok:
                    logger.error("Rollback command failed with exit code %d", command.exit_code)
                    outcome: DecisionOutcome = "rollback_failed"
                else:
                    logger.info("Rollback command completed, waiting for health...")
                    wait = self._controller.wait_healthy(app, instruction.timeout)
                    outcome = "rollback_success" if wait.ok else "wait_failed"
        except DeployerError as e:
            logger.error("Manual rollback aborted: %s", e)
            outcome = "rollback_failed"

        self._annotate(outcome, instruction)
        if outcome == "rollback_success":
            logger.info("Rollback sync completed successfully")
            set_step_context("rolled_back")
            self._tracker.record_decision(app, "rolled_back", "rollback_success")
        else:
            if outcome == "wait_failed":
                logger.error("Rollback wait failed - application did not become healthy")
            set_step_context("rollback_failed")
            self._tracker.record_decision(app, "rollback_failed", "rollback_failed")
        return outcome

    def _annotate(self, outcome: str, instruction: RollbackInstruction) -> None:
        body, style, context = decision_annotation(
            outcome,
            instruction.application,
            instruction.rollback_target,
            instruction.history_id,
            instruction.timestamp,
        )
        try:
            self._agent.annotate(body, style, context)
        except DeployerError as e:
            logger.warning("Failed to create annotation %s: %s", context, e)


def outcome_exit_code(outcome: DecisionOutcome) -> int:
    return 0 if outcome in ("rollback_success", "accepted") else 1
