# src/config/settings.py — v1
"""Typed configuration loaded from the Buildkite plugin environment via pydantic-settings.

Plugin options arrive as ``BUILDKITE_PLUGIN_ARGOCD_DEPLOYMENT_<OPTION>`` variables.
The Argo CD password is only ever read from ``ARGOCD_PASSWORD``.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, Field, ValidationError, model_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from argocd_deployer.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "BUILDKITE_PLUGIN_ARGOCD_DEPLOYMENT_"
PASSWORD_ENV = "ARGOCD_PASSWORD"

MIN_TIMEOUT = 30
MAX_TIMEOUT = 3600

_SLACK_CHANNEL_RE = re.compile(r"^[#@]|^[A-Z0-9]{9,11}$")


class _PasswordEnvSource(PydanticBaseSettingsSource):
    """Supplies ``argocd_password`` from ``ARGOCD_PASSWORD`` and nowhere else."""

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return os.environ.get(PASSWORD_ENV), field_name, False

    def __call__(self) -> dict[str, Any]:
        password = os.environ.get(PASSWORD_ENV)
        return {} if password is None else {"argocd_password": password}


class _WithoutPassword(PydanticBaseSettingsSource):
    """Wraps a plugin source so a password set in pipeline config is dropped."""

    def __init__(self, settings_cls: type[BaseSettings], source: PydanticBaseSettingsSource) -> None:
        super().__init__(settings_cls)
        self._source = source

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        data = self._source()
        if "argocd_password" in data:
            logger.warning(
                "Ignoring ARGOCD_PASSWORD from plugin configuration, set %s instead",
                PASSWORD_ENV,
            )
            del data["argocd_password"]
        return data


class Settings(BaseSettings):
    """Plugin settings for a single deploy or rollback step."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # === Target ===
    app: str = ""
    mode: Literal["deploy", "rollback"] = "deploy"
    rollback_mode: Literal["auto", "manual"] = "auto"
    timeout: int = 300
    target_revision: str = ""

    # === Argo CD authentication ===
    argocd_server: str = Field(
        default="",
        validation_alias=AliasChoices(
            f"{ENV_PREFIX}ARGOCD_SERVER", "ARGOCD_SERVER"
        ),
    )
    argocd_username: str = Field(
        default="",
        validation_alias=AliasChoices(
            f"{ENV_PREFIX}ARGOCD_USERNAME", "ARGOCD_USERNAME"
        ),
    )
    argocd_password: str = Field(default="", repr=False)
    argocd_insecure: bool = True

    # === Health monitoring (clamped by the monitor, not here) ===
    health_check_interval: int = 30
    health_check_timeout: int = 300

    # === Logs and artifacts ===
    collect_logs: bool = False
    upload_artifacts: bool = False
    log_lines: int = 1000

    # === Notifications ===
    notifications_slack_channel: str = ""

    # === Metadata store ===
    metadata_backend: Literal["buildkite", "json", "sqlite", "redis", "memory"] = (
        "buildkite"
    )
    metadata_root: Path = Path("~/.argocd-deployer/metadata")
    metadata_redis_url: str = ""

    # === Logging ===
    debug: bool = Field(
        default=False,
        validation_alias=AliasChoices(f"{ENV_PREFIX}DEBUG", "BUILDKITE_PLUGIN_DEBUG"),
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # === External executables ===
    argocd_bin: str = "argocd"
    agent_bin: str = "buildkite-agent"

    # === Manual decision continuation ===
    decision_queue: str = "kubernetes"
    decision_command: str = "argocd-deployer resume-decision"

    # --- Sources ---

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            _PasswordEnvSource(settings_cls),
            _WithoutPassword(settings_cls, env_settings),
            _WithoutPassword(settings_cls, dotenv_settings),
            file_secret_settings,
        )

    # --- Validators ---

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Reject inputs that make the step impossible to run."""
        errors: list[str] = []

        if not self.app.strip():
            errors.append("APP is required but not provided")

        if not MIN_TIMEOUT <= self.timeout <= MAX_TIMEOUT:
            errors.append(
                f"TIMEOUT must be between {MIN_TIMEOUT} and {MAX_TIMEOUT} seconds "
                f"(got {self.timeout})"
            )

        if (
            self.mode == "rollback"
            and self.rollback_mode == "manual"
            and not self.target_revision.strip()
        ):
            errors.append(
                "TARGET_REVISION is required when MODE=rollback and ROLLBACK_MODE=manual"
            )

        if self.metadata_backend == "redis" and not self.metadata_redis_url:
            errors.append("METADATA_REDIS_URL must be set when METADATA_BACKEND=redis")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    def require_auth(self) -> tuple[str, str, str]:
        """Return (server, username, password) or raise if any is missing."""
        for label, value in (
            ("ArgoCD server URL", self.argocd_server),
            ("ArgoCD username", self.argocd_username),
            ("ArgoCD password", self.argocd_password),
        ):
            if not value:
                raise ConfigurationError(f"{label} is required but not provided")
        return self.argocd_server, self.argocd_username, self.argocd_password

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug else self.log_level

    @property
    def slack_channel_valid(self) -> bool:
        """True when no channel is set or it looks like #channel, @user or an id."""
        channel = self.notifications_slack_channel
        return not channel or bool(_SLACK_CHANNEL_RE.match(channel))

    def warn_on_soft_issues(self) -> None:
        """Log problems that degrade the run without stopping it."""
        if not self.slack_channel_valid:
            logger.warning(
                "Slack channel format may be invalid: %s "
                "(expected #channel, @username or an id such as U123ABC456)",
                self.notifications_slack_channel,
            )
        if self.upload_artifacts and not self.collect_logs:
            logger.info("UPLOAD_ARTIFACTS without COLLECT_LOGS uploads the deployment log only")


def load_settings(**overrides: object) -> Settings:
    """Load settings from the environment with optional overrides.

    Args:
        **overrides: Field-level overrides (CLI flags, tests).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If a required input is missing, inconsistent or
            not of the expected type.
    """
    try:
        return Settings(**overrides)  # type: ignore[arg-type]
    except ValidationError as e:
        raise ConfigurationError(_describe_validation_error(e)) from e


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        field = ".".join(str(p) for p in item["loc"]) or "settings"
        parts.append(f"{field.upper()}: {item['msg']}")
    return "Invalid plugin configuration: " + "; ".join(parts)
