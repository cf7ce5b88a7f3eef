# tests/unit/config/test_settings.py — v1
"""Tests for config/settings.py — typed Settings and validation rules."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from argocd_deployer.config.settings import Settings, load_settings
from argocd_deployer.core.exceptions import ConfigurationError


def _settings(**overrides) -> Settings:
    overrides.setdefault("app", "web")
    return Settings(_env_file=None, **overrides)


class TestSettingsDefaults:
    def test_default_modes(self):
        s = _settings()
        assert s.mode == "deploy"
        assert s.rollback_mode == "auto"
        assert s.timeout == 300

    def test_default_health_checks(self):
        s = _settings()
        assert s.health_check_interval == 30
        assert s.health_check_timeout == 300

    def test_default_logs_and_artifacts(self):
        s = _settings()
        assert s.collect_logs is False
        assert s.upload_artifacts is False
        assert s.log_lines == 1000

    def test_default_metadata_backend(self):
        s = _settings()
        assert s.metadata_backend == "buildkite"
        assert s.metadata_root == Path("~/.argocd-deployer/metadata")

    def test_default_decision_step(self):
        s = _settings()
        assert s.decision_queue == "kubernetes"
        assert s.decision_command == "argocd-deployer resume-decision"


class TestSettingsEnvironment:
    def test_reads_plugin_prefix(self, monkeypatch):
        monkeypatch.setenv("BUILDKITE_PLUGIN_ARGOCD_DEPLOYMENT_APP", "api")
        monkeypatch.setenv("BUILDKITE_PLUGIN_ARGOCD_DEPLOYMENT_ROLLBACK_MODE", "manual")
        monkeypatch.setenv("BUILDKITE_PLUGIN_ARGOCD_DEPLOYMENT_TIMEOUT", "600")
        s = Settings(_env_file=None)
        assert s.app == "api"
        assert s.rollback_mode == "manual"
        assert s.timeout == 600

    def test_server_from_plugin_or_plain_env(self, monkeypatch):
        monkeypatch.setenv("ARGOCD_SERVER", "argocd.example.com")
        monkeypatch.setenv("BUILDKITE_PLUGIN_ARGOCD_DEPLOYMENT_ARGOCD_USERNAME", "deployer")
        s = _settings()
        assert s.argocd_server == "argocd.example.com"
        assert s.argocd_username == "deployer"

    def test_password_only_from_argocd_password(self, monkeypatch):
        monkeypatch.setenv("BUILDKITE_PLUGIN_ARGOCD_DEPLOYMENT_ARGOCD_PASSWORD", "from-plugin")
        assert _settings().argocd_password == ""
        monkeypatch.setenv("ARGOCD_PASSWORD", "s3cret")
        assert _settings().argocd_password == "s3cret"

    def test_plugin_password_is_dropped_with_warning(self, monkeypatch, caplog):
        monkeypatch.setenv("BUILDKITE_PLUGIN_ARGOCD_DEPLOYMENT_ARGOCD_PASSWORD", "from-plugin")
        monkeypatch.setenv("ARGOCD_PASSWORD", "s3cret")
        with caplog.at_level(logging.WARNING):
            s = _settings()
        assert s.argocd_password == "s3cret"
        assert "Ignoring ARGOCD_PASSWORD from plugin configuration" in caplog.text
        assert "from-plugin" not in caplog.text

    def test_password_override_by_field_name(self):
        assert _settings(argocd_password="pw").argocd_password == "pw"

    def test_password_not_in_repr(self, monkeypatch):
        monkeypatch.setenv("ARGOCD_PASSWORD", "s3cret")
        assert "s3cret" not in repr(_settings())

    def test_debug_from_plugin_debug(self, monkeypatch):
        monkeypatch.setenv("BUILDKITE_PLUGIN_DEBUG", "true")
        s = _settings()
        assert s.debug is True
        assert s.effective_log_level == "DEBUG"


class TestSettingsValidation:
    def test_c01_app_required(self):
        with pytest.raises(ConfigurationError, match="APP is required"):
            Settings(_env_file=None)

    def test_c01_blank_app(self):
        with pytest.raises(ConfigurationError, match="APP"):
            _settings(app="   ")

    @pytest.mark.parametrize("timeout", [0, 29, 3601])
    def test_c02_timeout_out_of_range(self, timeout):
        with pytest.raises(ConfigurationError, match="TIMEOUT"):
            _settings(timeout=timeout)

    @pytest.mark.parametrize("timeout", [30, 3600])
    def test_c02_timeout_bounds_inclusive(self, timeout):
        assert _settings(timeout=timeout).timeout == timeout

    def test_c03_manual_rollback_needs_target(self):
        with pytest.raises(ConfigurationError, match="TARGET_REVISION"):
            _settings(mode="rollback", rollback_mode="manual")

    def test_c03_manual_rollback_with_target(self):
        s = _settings(mode="rollback", rollback_mode="manual", target_revision="7")
        assert s.target_revision == "7"

    def test_c03_manual_deploy_without_target_is_fine(self):
        assert _settings(rollback_mode="manual").target_revision == ""

    def test_c04_redis_without_url(self):
        with pytest.raises(ConfigurationError, match="METADATA_REDIS_URL"):
            _settings(metadata_backend="redis")

    def test_errors_are_combined(self):
        with pytest.raises(ConfigurationError) as exc_info:
            Settings(_env_file=None, timeout=1)
        assert "APP" in str(exc_info.value)
        assert "TIMEOUT" in str(exc_info.value)


class TestSettingsHelpers:
    def test_require_auth_missing_server(self):
        with pytest.raises(ConfigurationError, match="server"):
            _settings().require_auth()

    def test_require_auth_missing_password(self):
        s = _settings(argocd_server="argocd.example.com", argocd_username="deployer")
        with pytest.raises(ConfigurationError, match="password"):
            s.require_auth()

    def test_require_auth_complete(self, monkeypatch):
        monkeypatch.setenv("ARGOCD_PASSWORD", "s3cret")
        s = _settings(argocd_server="argocd.example.com", argocd_username="deployer")
        assert s.require_auth() == ("argocd.example.com", "deployer", "s3cret")

    @pytest.mark.parametrize("channel,valid", [
        ("", True),
        ("#deploys", True),
        ("@oncall", True),
        ("C0123456789", True),
        ("deploys", False),
    ])
    def test_slack_channel_valid(self, channel, valid):
        assert _settings(notifications_slack_channel=channel).slack_channel_valid is valid

    def test_warn_on_invalid_channel(self, caplog):
        with caplog.at_level(logging.WARNING):
            _settings(notifications_slack_channel="deploys").warn_on_soft_issues()
        assert "Slack channel format may be invalid" in caplog.text

    def test_load_settings_overrides(self):
        s = load_settings(_env_file=None, app="web", mode="rollback")
        assert s.mode == "rollback"

    @pytest.mark.parametrize("name,value", [
        ("ROLLBACK_MODE", "bogus"),
        ("TIMEOUT", "abc"),
        ("MODE", "redeploy"),
    ])
    def test_load_settings_wraps_type_errors(self, monkeypatch, name, value):
        monkeypatch.setenv(f"BUILDKITE_PLUGIN_ARGOCD_DEPLOYMENT_{name}", value)
        with pytest.raises(ConfigurationError, match="Invalid plugin configuration") as exc_info:
            load_settings(_env_file=None, app="web")
        assert name in str(exc_info.value)
