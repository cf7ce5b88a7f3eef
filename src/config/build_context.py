# src/config/build_context.py — v1
"""Buildkite build environment exposed to every step (build number, URL, branch, queue)."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BuildContext(BaseSettings):
    """Read-only view of the ``BUILDKITE_*`` variables set by the agent."""

    model_config = SettingsConfigDict(
        env_prefix="BUILDKITE_", extra="ignore", populate_by_name=True
    )

    build_number: str = "unknown"
    build_url: str = "#"
    pipeline_slug: str = "unknown"
    branch: str = "unknown"
    agent_queue: str = Field(
        default="default",
        validation_alias="BUILDKITE_AGENT_META_DATA_QUEUE",
    )


def load_build_context(**overrides: object) -> BuildContext:
    """Snapshot the current build environment."""
    return BuildContext(**overrides)  # type: ignore[arg-type]
