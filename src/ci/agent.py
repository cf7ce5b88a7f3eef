# src/ci/agent.py — v1
"""Buildkite agent client: meta-data, annotations, artifacts and pipeline upload."""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Callable

from argocd_deployer.ci.pipeline import PipelineDocument
from argocd_deployer.core.exceptions import (
    MetadataError,
    OperationFailure,
    PipelineUploadError,
)
from argocd_deployer.core.models import AnnotationStyle

logger = logging.getLogger(__name__)

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


class BuildkiteAgent:
    """Thin wrapper over the ``buildkite-agent`` subcommands a plugin step may call."""

    def __init__(self, binary: str = "buildkite-agent", runner: Runner | None = None) -> None:
        self._binary = binary
        self._runner = runner or subprocess.run

    # --- meta-data ---

    def metadata_get(self, key: str, default: str = "") -> str:
        """Read a meta-data value; any failure yields the default."""
        try:
            proc = self._exec(["meta-data", "get", key, "--default", default])
        except OSError as e:
            logger.debug("meta-data get %s failed: %s", key, e)
            return default
        if proc.returncode != 0:
            return default
        return proc.stdout.rstrip("\n")

    def metadata_set(self, key: str, value: str) -> None:
        try:
            proc = self._exec(["meta-data", "set", key, value])
        except OSError as e:
            raise MetadataError(f"meta-data set {key} failed: {e}") from e
        if proc.returncode != 0:
            raise MetadataError(
                f"meta-data set {key} exited {proc.returncode}: {proc.stderr.strip()}"
            )

    # --- annotations and artifacts ---

    def annotate(self, body: str, style: AnnotationStyle, context: str) -> None:
        self._check(["annotate", body, "--style", style, "--context", context])

    def artifact_upload(self, path: Path | str) -> None:
        self._check(["artifact", "upload", str(path)])

    # --- pipeline ---

    def pipeline_upload(self, document: PipelineDocument, prefix: str = "pipeline") -> None:
        """Inject steps into the running build.

        Raises:
            PipelineUploadError: If the agent rejects the document.
        """
        fd, path = tempfile.mkstemp(prefix=f"{prefix}-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(document.to_json())
            try:
                proc = self._exec(["pipeline", "upload", path])
            except OSError as e:
                raise PipelineUploadError(f"pipeline upload failed: {e}") from e
            if proc.returncode != 0:
                raise PipelineUploadError(
                    f"pipeline upload exited {proc.returncode}: "
                    f"{(proc.stderr or proc.stdout).strip()}"
                )
        finally:
            Path(path).unlink(missing_ok=True)

    # --- Internal ---

    def _exec(self, args: list[str]) -> subprocess.CompletedProcess[str]:
        return self._runner(
            [self._binary, *args],
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            check=False,
        )

    def _check(self, args: list[str]) -> None:
        command = f"{self._binary} {args[0]}"
        try:
            proc = self._exec(args)
        except OSError as e:
            raise OperationFailure(command, -1, str(e)) from e
        if proc.returncode != 0:
            raise OperationFailure(command, proc.returncode, proc.stderr or proc.stdout)
