# src/controller/argocd_cli.py — v1
"""Argo CD controller backend driving the ``argocd`` command-line client."""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from typing import Any, Callable

from argocd_deployer.controller.base_controller import BaseController, SyncPolicy
from argocd_deployer.controller.history_parser import parse_history
from argocd_deployer.controller.models import CommandResult
from argocd_deployer.core.exceptions import ConnectivityError
from argocd_deployer.core.models import HistoryEntry

logger = logging.getLogger(__name__)

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


class ArgoCDController(BaseController):
    """Run ``argocd`` subcommands and decode their output."""

    def __init__(self, binary: str = "argocd", runner: Runner | None = None) -> None:
        self._binary = binary
        self._runner = runner or subprocess.run

    def check_installed(self) -> None:
        """Raise ConnectivityError when the client is not on PATH."""
        if shutil.which(self._binary) is None:
            raise ConnectivityError(
                f"Missing required dependency: {self._binary}. "
                "Install the Argo CD CLI before running this step."
            )

    def login(self, server: str, username: str, password: str, insecure: bool = True) -> None:
        logger.info("Authenticating with ArgoCD server: %s", server)
        args = ["login", server, "--username", username, "--password", password]
        if insecure:
            args.append("--insecure")
        # The password must never reach logs or the deployment log file.
        result = self._run(args, redact=password)
        if not result.ok:
            raise ConnectivityError(
                f"Failed to authenticate with ArgoCD server {server}; "
                "check credentials and server connectivity"
            )
        logger.info("ArgoCD authentication successful")

    def get_app(self, app: str) -> dict[str, Any] | None:
        result = self._run(["app", "get", app, "--output", "json"], quiet=True)
        if not result.ok:
            logger.debug("Application %s is not readable (exit %d)", app, result.exit_code)
            return None
        try:
            document = json.loads(result.output)
        except json.JSONDecodeError as e:
            logger.warning("Could not decode application document for %s: %s", app, e)
            return None
        return document if isinstance(document, dict) else None

    def history(self, app: str) -> list[HistoryEntry]:
        result = self._run(["app", "history", app], quiet=True)
        if not result.ok:
            logger.warning("No deployment history available for %s", app)
            return []
        entries = parse_history(result.output)
        logger.debug("History window for %s: %d entries", app, len(entries))
        return entries

    def sync(self, app: str, timeout: int) -> CommandResult:
        return self._run(["app", "sync", app, "--timeout", str(timeout)])

    def rollback(self, app: str, history_id: str, timeout: int) -> CommandResult:
        return self._run(["app", "rollback", app, history_id, "--timeout", str(timeout)])

    def wait_healthy(self, app: str, timeout: int) -> CommandResult:
        return self._run(["app", "wait", app, "--health", "--timeout", str(timeout)])

    def set_sync_policy(self, app: str, policy: SyncPolicy) -> CommandResult:
        return self._run(["app", "set", app, "--sync-policy", policy])

    def logs(self, app: str, tail: int) -> CommandResult:
        return self._run(["app", "logs", app, "--tail", str(tail)])

    # --- Internal ---

    def _run(self, args: list[str], quiet: bool = False, redact: str | None = None) -> CommandResult:
        argv = [self._binary, *args]
        shown = [("****" if redact and a == redact else a) for a in argv]
        if not quiet:
            logger.debug("Running: %s", " ".join(shown))
        try:
            proc = self._runner(
                argv,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as e:
            raise ConnectivityError(f"ArgoCD client not found: {self._binary}") from e
        return CommandResult(
            args=shown,
            exit_code=proc.returncode,
            output=proc.stdout or "",
            error_output=proc.stderr or "",
        )
