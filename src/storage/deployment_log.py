# src/storage/deployment_log.py — v1
"""Per-run deployment log file recording every controller command and result."""

from __future__ import annotations

import logging
import re
import tempfile
from pathlib import Path

from argocd_deployer.config.build_context import BuildContext
from argocd_deployer.controller.models import CommandResult
from argocd_deployer.core.models import utc_timestamp

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


class DeploymentLog:
    """Append-only text log for one deploy or rollback attempt.

    The file lives in the temp directory until ``discard()`` is called by the
    artifact handler at the end of the run.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    @classmethod
    def create(
        cls,
        app: str,
        operation: str,
        build: BuildContext,
        status: str = "in_progress",
        directory: Path | None = None,
    ) -> DeploymentLog:
        """Create the log file and write its header."""
        safe_app = _UNSAFE.sub("_", app)
        handle = tempfile.NamedTemporaryFile(
            mode="w",
            prefix=f"deployment-{safe_app}-{operation}-",
            suffix=".log",
            dir=directory,
            delete=False,
            encoding="utf-8",
        )
        with handle:
            handle.write(
                "\n".join([
                    f"=== ArgoCD {operation} Log ===",
                    f"Application: {app}",
                    f"Operation: {operation}",
                    f"Status: {status}",
                    f"Timestamp: {utc_timestamp()}",
                    f"Build: {build.build_number}",
                    f"Pipeline: {build.pipeline_slug}",
                    f"Branch: {build.branch}",
                    "================================",
                    "",
                    "",
                ])
            )
        logger.debug("Created deployment log: %s", handle.name)
        return cls(Path(handle.name))

    def write(self, *lines: str) -> None:
        if not self.path.exists():
            return
        with self.path.open("a", encoding="utf-8") as fh:
            for line in lines:
                fh.write(line.rstrip("\n") + "\n")

    def section(self, title: str, *lines: str) -> None:
        self.write(f"=== {title} ===", *lines)

    def record_command(self, title: str, result: CommandResult) -> None:
        """Append a command section: command line, timestamp, output and exit code."""
        self.section(
            title,
            f"Command: {result.command_line}",
            f"Timestamp: {utc_timestamp()}",
        )
        if result.combined_output:
            self.write(result.combined_output)
        self.write(f"Exit code: {result.exit_code}")

    def result(self, outcome: str, *details: str) -> None:
        self.write(f"=== {outcome} ===", *details)

    def read(self) -> str:
        return self.path.read_text(encoding="utf-8") if self.path.exists() else ""

    def discard(self) -> None:
        if self.path.exists():
            logger.debug("Cleaning up deployment log file: %s", self.path)
            self.path.unlink()
