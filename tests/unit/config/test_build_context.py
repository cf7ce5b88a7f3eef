# tests/unit/config/test_build_context.py — v1
"""Tests for config/build_context.py — Buildkite build environment."""

from __future__ import annotations

from argocd_deployer.config.build_context import BuildContext, load_build_context


class TestBuildContext:
    def test_defaults_outside_buildkite(self):
        ctx = load_build_context()
        assert ctx.build_number == "unknown"
        assert ctx.build_url == "#"
        assert ctx.agent_queue == "default"

    def test_reads_buildkite_env(self, monkeypatch):
        monkeypatch.setenv("BUILDKITE_BUILD_NUMBER", "42")
        monkeypatch.setenv("BUILDKITE_BUILD_URL", "https://buildkite.com/acme/web/builds/42")
        monkeypatch.setenv("BUILDKITE_PIPELINE_SLUG", "web")
        monkeypatch.setenv("BUILDKITE_BRANCH", "main")
        monkeypatch.setenv("BUILDKITE_AGENT_META_DATA_QUEUE", "deploy")
        ctx = BuildContext()
        assert ctx.build_number == "42"
        assert ctx.pipeline_slug == "web"
        assert ctx.branch == "main"
        assert ctx.agent_queue == "deploy"
