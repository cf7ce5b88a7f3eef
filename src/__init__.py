# src/__init__.py — v1
"""argocd-deployer: deploy and roll back Argo CD applications from a Buildkite step."""

from argocd_deployer.version import __version__

__all__ = ["__version__"]
