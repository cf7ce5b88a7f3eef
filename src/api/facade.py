# src/api/facade.py — v1
"""Public API facade: wire Settings into components and run one operation.

Usage:
    from argocd_deployer.api.facade import run_from_settings
    exit_code = run_from_settings(load_settings())

Every collaborator can be injected through ``build_components`` so callers
(and tests) can swap the controller, agent or metadata store.
"""

from __future__ import annotations

import logging
import os
import time
import uuid
from dataclasses import dataclass
from typing import Callable

from argocd_deployer.ci.agent import BuildkiteAgent
from argocd_deployer.config.build_context import BuildContext, load_build_context
from argocd_deployer.config.settings import Settings
from argocd_deployer.controller.argocd_cli import ArgoCDController
from argocd_deployer.controller.base_controller import BaseController
from argocd_deployer.core.exceptions import DeployerError
from argocd_deployer.core.models import RollbackKind, RollbackResult
from argocd_deployer.deploy.orchestrator import DeploymentOrchestrator, DeploymentResult
from argocd_deployer.health.monitor import HealthMonitor
from argocd_deployer.logging.context import set_operation_context, set_step_context
from argocd_deployer.metadata.base_metadata_store import BaseMetadataStore
from argocd_deployer.metadata.buildkite_store import BuildkiteMetadataStore
from argocd_deployer.metadata.metadata_factory import create_metadata_store
from argocd_deployer.metadata.tracker import DeploymentTracker
from argocd_deployer.notifications.notifier import Notifier
from argocd_deployer.rollback.continuation import (
    DecisionContinuation,
    load_instruction,
    outcome_exit_code,
)
from argocd_deployer.rollback.decision_gate import INSTRUCTION_ENV, ManualDecisionGate
from argocd_deployer.rollback.orchestrator import RollbackOrchestrator
from argocd_deployer.rollback.resolver import UNKNOWN, RevisionResolver
from argocd_deployer.storage.artifacts import ArtifactHandler

logger = logging.getLogger(__name__)


@dataclass
class Components:
    """Collaborators for one run, built once from Settings."""

    controller: BaseController
    agent: BuildkiteAgent
    store: BaseMetadataStore
    tracker: DeploymentTracker
    resolver: RevisionResolver
    notifier: Notifier
    artifacts: ArtifactHandler
    monitor: HealthMonitor
    rollbacks: RollbackOrchestrator
    gate: ManualDecisionGate
    build: BuildContext


def build_components(
    settings: Settings,
    controller: BaseController | None = None,
    agent: BuildkiteAgent | None = None,
    store: BaseMetadataStore | None = None,
    build: BuildContext | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> Components:
    agent = agent or BuildkiteAgent(settings.agent_bin)
    controller = controller or ArgoCDController(settings.argocd_bin)
    store = store or create_metadata_store(settings, agent=agent)
    build = build or load_build_context()

    tracker = DeploymentTracker(store)
    resolver = RevisionResolver(controller, tracker)
    notifier = Notifier(agent, build, settings.notifications_slack_channel)
    artifacts = ArtifactHandler(
        controller,
        agent,
        collect_logs=settings.collect_logs,
        upload_artifacts=settings.upload_artifacts,
        log_lines=settings.log_lines,
    )
    rollbacks = RollbackOrchestrator(
        controller, resolver, tracker, notifier, artifacts, build, timeout=settings.timeout
    )
    gate = ManualDecisionGate(
        agent,
        resolver,
        timeout=settings.timeout,
        queue=settings.decision_queue,
        command=settings.decision_command,
        server=settings.argocd_server,
        username=settings.argocd_username,
        insecure=settings.argocd_insecure,
    )
    return Components(
        controller=controller,
        agent=agent,
        store=store,
        tracker=tracker,
        resolver=resolver,
        notifier=notifier,
        artifacts=artifacts,
        monitor=HealthMonitor(controller, clock=clock, sleep=sleep),
        rollbacks=rollbacks,
        gate=gate,
        build=build,
    )


def run_deploy(settings: Settings, components: Components | None = None) -> DeploymentResult:
    """Sync the application and handle the outcome per the configured rollback mode.

    Raises:
        DeployerError: On a fatal error. A terminal record and an annotation
            are written before it propagates.
    """
    c = components or build_components(settings)
    _begin(settings, "deploy")
    try:
        _login(settings, c)
    except DeployerError as e:
        _abort_before_start(c, settings.app, "deploy", e)
        raise
    orchestrator = DeploymentOrchestrator(
        c.controller,
        c.monitor,
        c.resolver,
        c.tracker,
        c.rollbacks,
        c.gate,
        c.notifier,
        c.artifacts,
        c.build,
        rollback_mode=settings.rollback_mode,
        timeout=settings.timeout,
        health_check_interval=settings.health_check_interval,
        health_check_timeout=settings.health_check_timeout,
    )
    result = orchestrator.deploy(settings.app)
    logger.info("Deployment finished in state %s", result.state)
    return result


def run_rollback(
    settings: Settings,
    target: str | None = None,
    components: Components | None = None,
) -> RollbackResult:
    """Roll back to an explicit target, or to the resolved previous revision.

    An explicit target (argument or TARGET_REVISION) makes an explicit rollback,
    which does not wait for health. Otherwise the previous stable revision is
    resolved and the rollback waits for health like an automatic one.
    """
    c = components or build_components(settings)
    _begin(settings, "rollback")
    app = settings.app
    try:
        _login(settings, c)
        explicit = (target or settings.target_revision).strip()
        kind: RollbackKind
        if explicit:
            kind = "explicit"
            resolved: str | None = explicit
        else:
            kind = "automatic"
            logger.info("No target revision given - resolving previous stable deployment")
            resolved = c.resolver.resolve_previous(app)
    except DeployerError as e:
        _abort_before_start(c, app, "rollback", e)
        raise
    return c.rollbacks.rollback(app, resolved or UNKNOWN, kind)


def resume_decision(
    instruction_json: str | None = None,
    password: str | None = None,
    controller: BaseController | None = None,
    agent: BuildkiteAgent | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Execute the human decision for a paused deployment; returns the exit code.

    Runs in the injected follow-up step, where plugin settings are not present:
    the instruction comes from ``ARGOCD_ROLLBACK_INSTRUCTION`` and the password
    from ``ARGOCD_PASSWORD``.
    """
    instruction = load_instruction(
        instruction_json if instruction_json is not None else os.environ.get(INSTRUCTION_ENV)
    )
    set_operation_context(instruction.application, "resume-decision", _new_run_id())
    agent = agent or BuildkiteAgent()
    controller = controller or ArgoCDController()
    tracker = DeploymentTracker(BuildkiteMetadataStore(agent))
    continuation = DecisionContinuation(controller, agent, tracker, sleep=sleep)
    outcome = continuation.execute(
        instruction,
        password if password is not None else os.environ.get("ARGOCD_PASSWORD", ""),
    )
    logger.info("Decision continuation finished: %s", outcome)
    return outcome_exit_code(outcome)


def run_from_settings(settings: Settings, components: Components | None = None) -> int:
    """Run the configured mode and map the outcome to a process exit code."""
    settings.warn_on_soft_issues()
    if settings.mode == "rollback":
        return run_rollback(settings, components=components).exit_code
    return run_deploy(settings, components=components).exit_code


# --- Internal ---


def _begin(settings: Settings, operation: str) -> None:
    set_operation_context(settings.app, operation, _new_run_id())
    set_step_context(None)
    logger.info(
        "ArgoCD %s for %s (rollback mode %s, timeout %ds)",
        operation, settings.app, settings.rollback_mode, settings.timeout,
    )


def _login(settings: Settings, c: Components) -> None:
    if isinstance(c.controller, ArgoCDController):
        c.controller.check_installed()
    server, username, password = settings.require_auth()
    c.controller.login(server, username, password, settings.argocd_insecure)


def _abort_before_start(c: Components, app: str, operation: str, error: DeployerError) -> None:
    """Close out a run that failed before the orchestrator opened a record."""
    logger.error("%s aborted before start: %s", operation.capitalize(), error)
    if operation == "deploy":
        c.tracker.fail_before_start(app, "failed", str(error))
        c.notifier.annotate_deployment(app, UNKNOWN, UNKNOWN, "failed")
    else:
        c.tracker.fail_before_start(app, "rollback_failed", str(error))
        c.notifier.annotate_rollback_failure(app, UNKNOWN, UNKNOWN, str(error))


def _new_run_id() -> str:
    return uuid.uuid4().hex[:12]
