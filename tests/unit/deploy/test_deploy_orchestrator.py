# tests/unit/deploy/test_deploy_orchestrator.py — v1
"""Tests for deploy/orchestrator.py — the deployment state machine."""

from __future__ import annotations

import pytest

from argocd_deployer.core.exceptions import NotFoundError
from argocd_deployer.core.models import HistoryEntry, RollbackResult
from argocd_deployer.deploy.orchestrator import DeploymentOrchestrator, DeploymentResult
from argocd_deployer.health.monitor import HealthMonitor
from argocd_deployer.notifications.notifier import Notifier
from argocd_deployer.rollback.decision_gate import ManualDecisionGate
from argocd_deployer.rollback.orchestrator import RollbackOrchestrator
from argocd_deployer.rollback.resolver import RevisionResolver
from argocd_deployer.storage.artifacts import ArtifactHandler
from fakes import FakeController, RecordingAgent, make_history

NEW_ENTRY = HistoryEntry(history_id="9", revision="abc9def", position=3)


@pytest.fixture
def make_orchestrator(tracker, build, clock):
    def _make(
        controller: FakeController,
        agent: RecordingAgent,
        mode: str = "auto",
        channel: str = "#deploys",
    ) -> DeploymentOrchestrator:
        resolver = RevisionResolver(controller, tracker)
        notifier = Notifier(agent, build, channel)
        artifacts = ArtifactHandler(controller, agent)
        return DeploymentOrchestrator(
            controller,
            HealthMonitor(controller, clock=clock, sleep=clock.sleep),
            resolver,
            tracker,
            RollbackOrchestrator(controller, resolver, tracker, notifier, artifacts, build,
                                 timeout=120),
            ManualDecisionGate(agent, resolver, timeout=120, queue="deploy"),
            notifier,
            artifacts,
            build,
            rollback_mode=mode,
            timeout=120,
            health_check_interval=10,
            health_check_timeout=60,
        )
    return _make


def _prefixes(agent: RecordingAgent) -> list[str]:
    return [prefix for _, prefix in agent.uploads]


class TestDeploymentResult:
    def test_exit_codes(self):
        assert DeploymentResult(application="web", state="Succeeded").exit_code == 0
        assert DeploymentResult(application="web", state="AwaitingManualDecision").exit_code == 0
        assert DeploymentResult(application="web", state="Failed").exit_code == 1

    def test_auto_rollback_exit_code_follows_rollback(self):
        ok = RollbackResult(application="web", kind="automatic", success=True)
        failed = RollbackResult(application="web", kind="automatic", success=False)
        assert DeploymentResult(application="web", state="AutoRollingBack", rollback=ok).exit_code == 0
        assert DeploymentResult(
            application="web", state="AutoRollingBack", rollback=failed
        ).exit_code == 1


class TestSuccessfulDeploy:
    def test_healthy_after_sync(self, make_orchestrator, agent, tracker):
        controller = FakeController(history=make_history("6", "7", "8"), sync_appends=NEW_ENTRY)
        result = make_orchestrator(controller, agent).deploy("web")

        assert result.state == "Succeeded"
        assert result.exit_code == 0
        assert result.previous_version == "8"
        assert result.current_version == "9"
        assert controller.called("sync") == [("web", 120)]

        record = tracker.read_record("web")
        assert record.status == "deployed"
        assert record.result == "success"
        assert record.current_version == "9"
        assert record.previous_version == "8"
        assert tracker.history_succeeded("web", "9")

    def test_annotation_and_notification(self, make_orchestrator, agent):
        controller = FakeController(history=make_history("6", "7", "8"), sync_appends=NEW_ENTRY)
        make_orchestrator(controller, agent).deploy("web")
        assert agent.contexts() == ["argocd-deployment-web"]
        assert agent.annotations[0][1] == "success"
        assert _prefixes(agent) == ["notification-pipeline"]

    def test_auto_mode_polls_until_healthy(self, make_orchestrator, agent, clock):
        controller = FakeController(
            history=make_history("6", "7", "8"), health=["Progressing", "Healthy"]
        )
        result = make_orchestrator(controller, agent).deploy("web")
        assert result.state == "Succeeded"
        assert result.health.checks == 2
        assert clock.sleeps == [10]


class TestAutoRollback:
    def test_degraded_triggers_rollback(self, make_orchestrator, agent, tracker):
        controller = FakeController(
            history=make_history("6", "7", "8"), health=["Degraded"], sync_appends=NEW_ENTRY
        )
        result = make_orchestrator(controller, agent).deploy("web")

        assert result.state == "AutoRollingBack"
        assert result.reason == "health_check_degraded (Degraded)"
        assert result.rollback is not None
        assert result.rollback.success is True
        assert result.rollback.target_revision == "8"
        assert result.exit_code == 0
        assert controller.called("rollback") == [("web", "8", 120)]
        assert controller.called("wait_healthy") == [("web", 120)]

        record = tracker.read_record("web")
        assert record.status == "rolled_back"
        assert record.failure_reason == "health_check_degraded (Degraded)"
        assert tracker.history_outcome("web", "9") == "failed"

    def test_notifications(self, make_orchestrator, agent):
        controller = FakeController(
            history=make_history("6", "7", "8"), health=["Degraded"], sync_appends=NEW_ENTRY
        )
        make_orchestrator(controller, agent).deploy("web")
        assert _prefixes(agent) == ["notification-pipeline", "notification-pipeline"]
        assert agent.contexts() == ["argocd-deployment-web", "argocd-rollback-web"]

    def test_failed_rollback_exits_non_zero(self, make_orchestrator, agent, tracker):
        controller = FakeController(
            history=make_history("6", "7", "8"),
            health=["Degraded"],
            sync_appends=NEW_ENTRY,
            rollback_exit=1,
        )
        result = make_orchestrator(controller, agent).deploy("web")
        assert result.state == "AutoRollingBack"
        assert result.exit_code == 1
        assert tracker.read_record("web").status == "rollback_failed"

    def test_no_previous_version(self, make_orchestrator, agent, tracker):
        first = HistoryEntry(history_id="1", revision="abc1def")
        controller = FakeController(history=[], health=["Degraded"], sync_appends=first)
        result = make_orchestrator(controller, agent).deploy("web")

        assert result.state == "Failed"
        assert result.reason == "no previous version"
        assert result.exit_code == 1
        assert controller.called("rollback") == []
        record = tracker.read_record("web")
        assert record.status == "failed"
        assert record.failure_reason == "health_check_degraded (Degraded)"
        assert agent.contexts() == ["argocd-deployment-web"]


class TestManualMode:
    def test_single_check_then_gate(self, make_orchestrator, agent, tracker, clock):
        controller = FakeController(
            history=make_history("6", "7", "8"), health=["Progressing"], sync_appends=NEW_ENTRY
        )
        result = make_orchestrator(controller, agent, mode="manual").deploy("web")

        assert result.state == "AwaitingManualDecision"
        assert result.exit_code == 0
        assert result.health.checks == 1
        assert clock.sleeps == []
        assert len(controller.called("health_status")) == 1
        assert controller.called("rollback") == []
        assert _prefixes(agent) == ["rollback-pipeline", "notification-pipeline"]
        assert tracker.read_record("web").status == "failed"

    def test_gate_targets_pre_sync_deployment(self, make_orchestrator, agent):
        controller = FakeController(
            history=make_history("6", "7", "8"), health=["Degraded"], sync_appends=NEW_ENTRY
        )
        make_orchestrator(controller, agent, mode="manual").deploy("web")
        document, _ = agent.uploads[0]
        env = document.steps[1].env
        assert '"rollback_target":"8"' in env["ARGOCD_ROLLBACK_INSTRUCTION"]

    def test_nothing_to_offer(self, make_orchestrator, agent):
        first = HistoryEntry(history_id="1", revision="abc1def")
        controller = FakeController(history=[], health=["Degraded"], sync_appends=first)
        result = make_orchestrator(controller, agent, mode="manual").deploy("web")
        assert result.state == "Failed"
        assert result.exit_code == 1
        assert agent.uploads == []

    def test_upload_rejected(self, make_orchestrator):
        agent = RecordingAgent(fail_upload=True)
        controller = FakeController(
            history=make_history("6", "7", "8"), health=["Degraded"], sync_appends=NEW_ENTRY
        )
        result = make_orchestrator(controller, agent, mode="manual").deploy("web")
        assert result.state == "Failed"
        assert result.exit_code == 1


class TestFatalPaths:
    def test_sync_failure_never_rolls_back(self, make_orchestrator, agent, tracker):
        controller = FakeController(history=make_history("6", "7", "8"), sync_exit=1)
        result = make_orchestrator(controller, agent).deploy("web")
        assert result.state == "Failed"
        assert result.reason == "sync_failed"
        assert controller.called("health_status") == []
        assert controller.called("rollback") == []
        record = tracker.read_record("web")
        assert record.status == "failed"
        assert record.failure_reason == "sync_failed"

    def test_missing_application(self, make_orchestrator, agent, tracker):
        controller = FakeController(history=make_history("6", "7", "8"), exists=False)
        with pytest.raises(NotFoundError):
            make_orchestrator(controller, agent).deploy("web")
        assert controller.called("sync") == []
        record = tracker.read_record("web")
        assert record.status == "failed"
        assert "not found" in record.failure_reason
        assert agent.contexts() == ["argocd-deployment-web"]
