# src/logging/logger.py — v1
"""Logging setup for one deploy, rollback or decision step.

Every module logs through ``logging.getLogger(__name__)``, which places it
under the ``argocd_deployer`` root configured here. The run context
(application, operation, run_id, step) is read from ``logging.context`` at
format time.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Iterable

from argocd_deployer.logging.context import get_context
from argocd_deployer.logging.handlers import (
    BuildkiteGroupHandler,
    SecretRedactionFilter,
    create_rotating_handler,
)

ROOT_LOGGER = "argocd_deployer"

_LEVEL_MARKERS = {
    "DEBUG": "🐛",
    "INFO": "ℹ️ ",
    "WARNING": "⚠️ ",
    "ERROR": "❌",
    "CRITICAL": "❌",
}


class JsonFormatter(logging.Formatter):
    """One JSON object per line; run context fields sit at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }
        entry.update(get_context().as_dict())
        entry["message"] = record.getMessage()

        # logger.info(..., extra={"data": {...}})
        data = getattr(record, "data", None)
        if data:
            entry["data"] = data
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Buildkite job log line: time, level marker, [app/operation] (step), message."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context()
        parts = [
            datetime.now(timezone.utc).strftime("%H:%M:%S"),
            _LEVEL_MARKERS.get(record.levelname, record.levelname),
        ]
        if ctx.application:
            scope = ctx.application
            if ctx.operation:
                scope += f"/{ctx.operation}"
            parts.append(f"[{scope}]")
        if ctx.step:
            parts.append(f"({ctx.step})")
        parts.append(record.getMessage())
        line = " ".join(parts)
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 30,
    secrets: Iterable[str] = (),
) -> None:
    """Configure the argocd_deployer root logger.

    Text output to stdout is grouped by step for the Buildkite job log. JSON
    output stays one object per line. Any value in ``secrets`` is masked in
    every handler.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        log_format: Output format ("json" or "text").
        log_file: Path to log file (None = stdout only).
        rotation: Max file size before rotation (e.g. "10MB").
        retention: Number of rotated files to keep.
        secrets: Credential values to redact.
    """
    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers.clear()

    formatter: logging.Formatter
    console: logging.Handler
    if log_format == "json":
        formatter = JsonFormatter()
        console = logging.StreamHandler(sys.stdout)
    else:
        formatter = TextFormatter()
        console = BuildkiteGroupHandler(sys.stdout)
    handlers: list[logging.Handler] = [console]
    if log_file:
        handlers.append(create_rotating_handler(log_file, rotation=rotation, retention=retention))

    redaction = SecretRedactionFilter(secrets)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(redaction)
        root_logger.addHandler(handler)
