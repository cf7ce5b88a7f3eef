# tests/unit/metadata/test_tracker.py — v1
"""Tests for metadata/tracker.py — deployment record and per-history outcomes."""

from __future__ import annotations

import logging

import pytest

from argocd_deployer.metadata.base_metadata_store import MemoryMetadataStore
from argocd_deployer.metadata.buildkite_store import BuildkiteMetadataStore
from argocd_deployer.metadata.tracker import (
    DeploymentTracker,
    InvalidTransition,
    deployment_key,
    history_key,
    rollback_key,
)
from fakes import RecordingAgent


class TestKeys:
    def test_layout(self):
        assert deployment_key("web", "status") == "deployment:argocd:web:status"
        assert history_key("web", "7") == "deployment:argocd:web:history_7:result"
        assert rollback_key("web", "to_version") == "rollback:argocd:web:to_version"


class TestDeploymentRecord:
    def test_successful_deploy(self, tracker, memory_store):
        tracker.start_deployment("web", "7")
        tracker.complete_deployment("web", "8", "7")
        record = tracker.read_record("web")
        assert record.status == "deployed"
        assert record.result == "success"
        assert record.current_version == "8"
        assert record.previous_version == "7"
        assert record.timestamp.endswith("UTC")

    def test_failed_deploy(self, tracker):
        tracker.start_deployment("web", "7")
        tracker.fail_deployment("web", "health_check_degraded (Degraded)")
        record = tracker.read_record("web")
        assert record.status == "failed"
        assert record.result == "failed"
        assert record.failure_reason == "health_check_degraded (Degraded)"

    def test_empty_values_keep_previous(self, memory_store):
        memory_store.set(deployment_key("web", "previous_version"), "5")
        tracker = DeploymentTracker(memory_store)
        tracker.start_deployment("web", None)
        assert tracker.previous_version("web") == "5"

    def test_rollback_after_failed_health(self, tracker, memory_store):
        tracker.start_deployment("web", "7")
        tracker.start_rollback("web", "8", "7")
        tracker.complete_rollback("web", "7")
        record = tracker.read_record("web")
        assert record.status == "rolled_back"
        assert record.result == "rollback_success"
        assert record.current_version == "7"
        data = memory_store.snapshot()
        assert data[rollback_key("web", "from_version")] == "8"
        assert data[rollback_key("web", "result")] == "success"

    def test_rollback_failure(self, tracker, memory_store):
        tracker.start_rollback("web", "8", "7")
        tracker.fail_rollback("web")
        assert tracker.read_record("web").status == "rollback_failed"
        assert memory_store.get(rollback_key("web", "result")) == "failed"

    def test_record_only_moves_forward(self, tracker):
        tracker.start_deployment("web", "7")
        tracker.complete_deployment("web", "8", "7")
        with pytest.raises(InvalidTransition):
            tracker.start_deployment("web", "8")

    def test_cannot_complete_without_start(self, tracker):
        with pytest.raises(InvalidTransition):
            tracker.complete_deployment("web", "8", "7")

    def test_run_status(self, tracker):
        assert tracker.run_status("web") is None
        tracker.start_deployment("web", "7")
        assert tracker.run_status("web") == "deploying"


class TestAbortOpenRecord:
    def test_open_deploy_becomes_failed(self, tracker):
        tracker.start_deployment("web", "7")
        tracker.abort_open_record("web", "login rejected")
        record = tracker.read_record("web")
        assert record.status == "failed"
        assert record.failure_reason == "login rejected"

    def test_open_rollback_becomes_rollback_failed(self, tracker):
        tracker.start_rollback("web", "8", "7")
        tracker.abort_open_record("web", "lost connection")
        assert tracker.read_record("web").status == "rollback_failed"

    def test_nothing_open(self, tracker, memory_store):
        tracker.abort_open_record("web", "boom")
        assert memory_store.snapshot() == {}


class TestFailBeforeStart:
    def test_deploy_keeps_versions(self, tracker, memory_store):
        memory_store.set(deployment_key("web", "previous_version"), "6")
        memory_store.set(deployment_key("web", "current_version"), "7")
        tracker.fail_before_start("web", "failed", "login rejected")
        record = tracker.read_record("web")
        assert record.status == "failed"
        assert record.result == "failed"
        assert record.failure_reason == "login rejected"
        assert record.previous_version == "6"
        assert record.current_version == "7"
        assert record.timestamp
        assert tracker.run_status("web") == "failed"

    def test_rollback_writes_rollback_keys(self, tracker, memory_store):
        tracker.fail_before_start("web", "rollback_failed", "login rejected")
        assert tracker.read_record("web").status == "rollback_failed"
        assert memory_store.get(rollback_key("web", "status")) == "rollback_failed"
        assert memory_store.get(rollback_key("web", "result")) == "failed"

    def test_open_record_is_aborted_instead(self, tracker):
        tracker.start_deployment("web", "7")
        tracker.fail_before_start("web", "failed", "lost connection")
        record = tracker.read_record("web")
        assert record.status == "failed"
        assert record.failure_reason == "lost connection"


class TestRecordDecision:
    def test_accepted_failure(self, tracker):
        tracker.record_decision("web", "failed_accepted", "failure_accepted")
        record = tracker.read_record("web")
        assert record.status == "failed_accepted"
        assert record.result == "failure_accepted"


class TestHistoryOutcomes:
    def test_record_and_query(self, tracker):
        tracker.record_history_outcome("web", "7", True)
        tracker.record_history_outcome("web", "8", False)
        assert tracker.history_succeeded("web", "7") is True
        assert tracker.history_succeeded("web", "8") is False
        assert tracker.history_outcome("web", "8") == "failed"

    def test_missing_id_is_ignored(self, tracker, memory_store):
        tracker.record_history_outcome("web", None, True)
        assert memory_store.snapshot() == {}


class TestBestEffortWrites:
    def test_rejected_write_is_logged(self, caplog):
        tracker = DeploymentTracker(BuildkiteMetadataStore(RecordingAgent(fail_metadata_set=True)))
        with caplog.at_level(logging.WARNING):
            tracker.start_deployment("web", "7")
        assert tracker.run_status("web") == "deploying"
        assert "Failed to record metadata" in caplog.text
