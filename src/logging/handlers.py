# src/logging/handlers.py — v1
"""Output handlers and filters for the step's log.

- BuildkiteGroupHandler opens a collapsible ``--- `` group in the Buildkite
  job log each time the orchestration step changes.
- SecretRedactionFilter masks credential values before any handler sees them.
- create_rotating_handler writes the optional log file.
"""

from __future__ import annotations

import logging
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, TextIO

from argocd_deployer.logging.context import get_context

REDACTED = "********"

_SIZE_RE = re.compile(r"^(\d+)\s*(KB|MB|GB)$", re.IGNORECASE)
_SIZE_UNITS = {"KB": 1024, "MB": 1024**2, "GB": 1024**3}


class BuildkiteGroupHandler(logging.StreamHandler):
    """Stream handler that writes a ``--- <app>: <step>`` header on step changes.

    Buildkite folds everything between two such headers into one group, so
    each state of a deploy or rollback gets its own section in the job log.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        super().__init__(stream)
        self._current_step: str | None = None

    def emit(self, record: logging.LogRecord) -> None:
        ctx = get_context()
        if ctx.step and ctx.step != self._current_step:
            self._current_step = ctx.step
            try:
                self.stream.write(f"--- {ctx.application or 'argocd'}: {ctx.step}{self.terminator}")
            except (OSError, ValueError):
                self.handleError(record)
                return
        super().emit(record)


class SecretRedactionFilter(logging.Filter):
    """Replace known secret values in the rendered message."""

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        super().__init__()
        self._secrets = sorted({s for s in secrets if s}, key=len, reverse=True)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True
        message = record.getMessage()
        redacted = message
        for secret in self._secrets:
            redacted = redacted.replace(secret, REDACTED)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def _parse_size(size_str: str) -> int:
    """Parse '10MB' style sizes into bytes (KB, MB, GB; case-insensitive)."""
    match = _SIZE_RE.match(size_str.strip())
    if not match:
        raise ValueError(f"Invalid size format: {size_str!r}. Use e.g. '10MB'.")
    return int(match.group(1)) * _SIZE_UNITS[match.group(2).upper()]


def create_rotating_handler(
    log_file: str,
    rotation: str = "10MB",
    retention: int = 30,
) -> RotatingFileHandler:
    """Rotating handler for LOG_FILE; parent directories are created.

    Args:
        log_file: Path to log file.
        rotation: Max file size before rotation (e.g. "10MB").
        retention: Number of backup files to keep.
    """
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        filename=str(path),
        maxBytes=_parse_size(rotation),
        backupCount=retention,
        encoding="utf-8",
    )
