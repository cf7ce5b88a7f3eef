# src/core/exceptions.py — v1
"""Error taxonomy shared by every component.

Health states are values, not exceptions: see ``core.models.HealthStatus``.
"""

from __future__ import annotations


class DeployerError(Exception):
    """Base class for all errors raised by argocd-deployer."""


class ConfigurationError(DeployerError):
    """Missing or inconsistent required input. Fatal."""


class ConnectivityError(DeployerError):
    """Controller unreachable, login rejected or client binary missing. Fatal."""


class NotFoundError(DeployerError):
    """No resolvable revision or history id."""


class OperationFailure(DeployerError):
    """A controller command exited non-zero."""

    def __init__(self, command: str, exit_code: int, output: str = "") -> None:
        self.command = command
        self.exit_code = exit_code
        self.output = output
        super().__init__(f"'{command}' failed with exit code {exit_code}")


class MetadataError(DeployerError):
    """Metadata backend rejected a write."""


class PipelineUploadError(DeployerError):
    """Injecting steps into the running pipeline failed."""
