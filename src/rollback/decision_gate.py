# src/rollback/decision_gate.py — v1
"""Pause the pipeline for a human rollback decision.

The gate resolves everything the decision step will need while the resolver is
still available, serializes it as a ``RollbackInstruction`` and injects two
steps into the running build:

    1. a block step with a single ``rollback_decision`` select (rollback | accept)
    2. a command step, depending on the block, that runs the continuation with
       the instruction in ``ARGOCD_ROLLBACK_INSTRUCTION``

The controller password is never written into the pipeline; the continuation
reads it from the agent environment.
"""

from __future__ import annotations

import logging

from argocd_deployer.ci.agent import BuildkiteAgent
from argocd_deployer.ci.pipeline import (
    BlockStep,
    CommandStep,
    PipelineDocument,
    SelectField,
    SelectOption,
)
from argocd_deployer.core.exceptions import NotFoundError
from argocd_deployer.core.models import RollbackInstruction, utc_timestamp
from argocd_deployer.rollback.resolver import UNKNOWN, RevisionResolver

logger = logging.getLogger(__name__)

BLOCK_KEY = "deployment-failed-choose-action"
DECISION_KEY = "rollback_decision"
INSTRUCTION_ENV = "ARGOCD_ROLLBACK_INSTRUCTION"
DECISION_ROLLBACK = "rollback"
DECISION_ACCEPT = "accept"


def build_decision_pipeline(
    instruction: RollbackInstruction,
    queue: str,
    command: str,
) -> PipelineDocument:
    """Block step plus the follow-up step that executes the decision."""
    app = instruction.application
    prompt = "\n".join([
        f"🚨 DEPLOYMENT FAILED: {app}",
        "",
        "Please choose your next action:",
        "",
        "🔄 ROLLBACK (RECOMMENDED)",
        f"Rollback to previous stable deployment (Target: {instruction.rollback_target})",
        "Safer option for production environments",
        "",
        "❌ ACCEPT FAILURE",
        "Keep current failed state for debugging",
        "Manual investigation required",
    ])
    block = BlockStep(
        block="Deployment Failed - Choose Action",
        key=BLOCK_KEY,
        prompt=prompt,
        fields=[
            SelectField(
                select="Action",
                key=DECISION_KEY,
                hint="What would you like to do?",
                required=True,
                default=DECISION_ROLLBACK,
                options=[
                    SelectOption(
                        label="🔄 Rollback to Previous Stable Version", value=DECISION_ROLLBACK
                    ),
                    SelectOption(label="❌ Accept Failure (No Rollback)", value=DECISION_ACCEPT),
                ],
            )
        ],
    )
    follow_up = CommandStep(
        label="Execute User Decision",
        command=command,
        depends_on=BLOCK_KEY,
        agents={"queue": queue},
        env={INSTRUCTION_ENV: instruction.model_dump_json()},
    )
    return PipelineDocument(steps=[block, follow_up])


class ManualDecisionGate:
    """Resolve the rollback target now and hand the decision to a later step.

    Args:
        agent: Used to upload the decision pipeline.
        resolver: Resolves the rollback target and its history id.
        timeout: Operation timeout carried into the instruction.
        queue: Agent queue of the follow-up step.
        command: Command line of the follow-up step.
        server: Controller server the follow-up step logs in to.
        username: Controller user the follow-up step logs in as.
        insecure: Skip TLS verification on login.
    """

    def __init__(
        self,
        agent: BuildkiteAgent,
        resolver: RevisionResolver,
        timeout: int = 300,
        queue: str = "kubernetes",
        command: str = "argocd-deployer resume-decision",
        server: str = "",
        username: str = "",
        insecure: bool = True,
    ) -> None:
        self._agent = agent
        self._resolver = resolver
        self._timeout = timeout
        self._queue = queue
        self._command = command
        self._server = server
        self._username = username
        self._insecure = insecure

    def prepare(self, app: str, previous_revision: str | None) -> RollbackInstruction:
        """Resolve target and history id into a self-contained instruction.

        Raises:
            NotFoundError: If no rollback target or history id can be resolved.
        """
        target = previous_revision if previous_revision and previous_revision != UNKNOWN else None
        if target is None:
            target = self._resolver.resolve_previous(app)

        history_id = self._resolver.resolve_history_id(app, target) if target else None
        if not target or not history_id:
            logger.error("Cannot determine rollback target for manual rollback")
            logger.info("rollback_target: %s, history_id: %s", target or UNKNOWN, history_id or "")
            logger.info(
                "Manual rollback requires a valid previous deployment to rollback to "
                "(no previous deployment, history lookup failed, or never deployed successfully)"
            )
            raise NotFoundError(f"No rollback target could be resolved for {app}")

        instruction = RollbackInstruction(
            application=app,
            rollback_target=target,
            history_id=history_id,
            timeout=self._timeout,
            timestamp=utc_timestamp(),
            argocd_server=self._server,
            argocd_username=self._username,
            argocd_insecure=self._insecure,
        )
        logger.info("Pre-computed rollback: target=%s, history_id=%s", target, history_id)
        return instruction

    def inject(self, app: str, previous_revision: str | None) -> RollbackInstruction:
        """Prepare the instruction and upload the decision steps.

        Raises:
            NotFoundError: Nothing safe to offer; no steps are injected.
            PipelineUploadError: The agent rejected the decision pipeline.
        """
        logger.info("Injecting rollback decision block step for %s...", app)
        instruction = self.prepare(app, previous_revision)
        document = build_decision_pipeline(instruction, self._queue, self._command)
        logger.info("Uploading rollback decision pipeline...")
        self._agent.pipeline_upload(document, prefix="rollback-pipeline")
        logger.info("Successfully injected rollback decision steps")
        return instruction
