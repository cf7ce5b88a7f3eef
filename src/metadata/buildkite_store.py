# src/metadata/buildkite_store.py — v1
"""Buildkite meta-data backend (default METADATA_BACKEND=buildkite).

Values are scoped to the build, so they are visible to every later step,
including steps injected by this one.
"""

from __future__ import annotations

from argocd_deployer.ci.agent import BuildkiteAgent
from argocd_deployer.metadata.base_metadata_store import BaseMetadataStore


class BuildkiteMetadataStore(BaseMetadataStore):
    def __init__(self, agent: BuildkiteAgent) -> None:
        self._agent = agent

    def get(self, key: str, default: str = "") -> str:
        return self._agent.metadata_get(key, default)

    def set(self, key: str, value: str) -> None:
        self._agent.metadata_set(key, value)
