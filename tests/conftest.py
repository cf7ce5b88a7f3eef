# tests/conftest.py — v1
"""Shared test fixtures for all unit and integration tests.

Provides an in-memory controller, a recording CI agent, a memory metadata
store and a fake clock. No external processes: all I/O is faked.
"""

from __future__ import annotations

import os

import pytest

from argocd_deployer.config.build_context import BuildContext
from argocd_deployer.metadata.base_metadata_store import MemoryMetadataStore
from argocd_deployer.metadata.tracker import DeploymentTracker
from fakes import FakeClock, FakeController, RecordingAgent, make_history


# === FIXTURES ===


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the host's Buildkite and Argo CD variables out of every test."""
    for name in list(os.environ):
        if name.startswith(("BUILDKITE_", "ARGOCD_")):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def controller() -> FakeController:
    return FakeController(history=make_history("6", "7", "8"))


@pytest.fixture
def agent() -> RecordingAgent:
    return RecordingAgent()


@pytest.fixture
def memory_store() -> MemoryMetadataStore:
    return MemoryMetadataStore()


@pytest.fixture
def tracker(memory_store: MemoryMetadataStore) -> DeploymentTracker:
    return DeploymentTracker(memory_store)


@pytest.fixture
def build() -> BuildContext:
    return BuildContext(
        build_number="42",
        build_url="https://buildkite.com/acme/web/builds/42",
        pipeline_slug="web",
        branch="main",
        agent_queue="deploy",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
