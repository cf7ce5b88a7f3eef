# tests/integration/logging/test_int_logging_subsystem.py — v1
"""Integration tests for the logging subsystem during a real deploy run.

Covers: logging/logger.py, logging/handlers.py, logging/context.py
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from argocd_deployer.api.facade import build_components, run_deploy
from argocd_deployer.config.settings import Settings
from argocd_deployer.logging.context import clear_context
from argocd_deployer.logging.logger import ROOT_LOGGER, setup_logging
from fakes import FakeController, RecordingAgent, make_history


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    root = logging.getLogger(ROOT_LOGGER)
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    clear_context()


def _deploy(build, clock, health: str) -> None:
    settings = Settings(
        _env_file=None,
        app="web",
        argocd_server="argocd.example.com",
        argocd_username="ci",
        argocd_password="s3cret",
        metadata_backend="memory",
    )
    controller = FakeController(history=make_history("6", "7", "8"), health=[health])
    components = build_components(
        settings, controller=controller, agent=RecordingAgent(), build=build,
        clock=clock, sleep=clock.sleep,
    )
    run_deploy(settings, components=components)


def _records(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


class TestJsonLogFile:
    def test_records_carry_run_context(self, tmp_path, build, clock):
        log_file = tmp_path / "logs" / "step.log"
        setup_logging(level="DEBUG", log_format="json", log_file=str(log_file))
        _deploy(build, clock, "Healthy")

        records = _records(log_file)
        assert records
        contexts = [r for r in records if "application" in r]
        assert contexts
        assert all(c["application"] == "web" for c in contexts)
        assert {c["operation"] for c in contexts} == {"deploy"}
        assert len({c["run_id"] for c in contexts}) == 1
        steps = {c.get("step") for c in contexts}
        assert {"Syncing", "Monitoring", "Succeeded"} <= steps

    def test_password_never_logged(self, tmp_path, build, clock):
        log_file = tmp_path / "step.log"
        setup_logging(level="DEBUG", log_format="json", log_file=str(log_file))
        _deploy(build, clock, "Healthy")
        assert "s3cret" not in log_file.read_text(encoding="utf-8")

    def test_failure_path_logs_errors(self, tmp_path, build, clock):
        log_file = tmp_path / "step.log"
        setup_logging(level="INFO", log_format="json", log_file=str(log_file))
        _deploy(build, clock, "Degraded")
        errors = [r for r in _records(log_file) if r["level"] == "ERROR"]
        assert any("degraded" in r["message"] for r in errors)


class TestTextLogFile:
    def test_text_lines_show_application_and_step(self, tmp_path, build, clock):
        log_file = tmp_path / "step.log"
        setup_logging(level="INFO", log_format="text", log_file=str(log_file))
        _deploy(build, clock, "Healthy")
        text = log_file.read_text(encoding="utf-8")
        assert "[web/deploy]" in text
        assert "(Succeeded)" in text

    def test_console_groups_by_step(self, build, clock, capsys):
        setup_logging(level="INFO", log_format="text")
        _deploy(build, clock, "Healthy")
        out = capsys.readouterr().out
        assert "--- web: Syncing" in out
        assert "--- web: Monitoring" in out
        assert out.index("--- web: Syncing") < out.index("--- web: Monitoring")
