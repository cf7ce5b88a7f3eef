# src/ci/pipeline.py — v1
"""Typed Buildkite pipeline step documents for ``buildkite-agent pipeline upload``.

Documents are serialized as JSON, which the agent accepts alongside YAML.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class SelectOption(BaseModel):
    label: str
    value: str


class SelectField(BaseModel):
    """A single-choice input shown on a block step."""

    select: str
    key: str
    hint: str | None = None
    required: bool = True
    default: str | None = None
    options: list[SelectOption]


class BlockStep(BaseModel):
    """Pauses the build until a human submits the step's fields."""

    block: str
    key: str
    prompt: str | None = None
    fields: list[SelectField] = Field(default_factory=list)


class CommandStep(BaseModel):
    label: str
    command: str
    key: str | None = None
    depends_on: str | None = None
    agents: dict[str, str] | None = None
    env: dict[str, str] | None = None
    notify: list[dict[str, Any]] | None = None


class PipelineDocument(BaseModel):
    """Top-level document injected into the running build."""

    steps: list[BlockStep | CommandStep]

    def to_json(self) -> str:
        return self.model_dump_json(indent=2, exclude_none=True)
