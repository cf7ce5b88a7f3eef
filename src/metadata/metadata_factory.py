# src/metadata/metadata_factory.py — v1
"""Factory for metadata store instantiation."""

from __future__ import annotations

from argocd_deployer.ci.agent import BuildkiteAgent
from argocd_deployer.config.settings import Settings
from argocd_deployer.metadata.base_metadata_store import (
    BaseMetadataStore,
    MemoryMetadataStore,
)


def create_metadata_store(
    settings: Settings, agent: BuildkiteAgent | None = None
) -> BaseMetadataStore:
    """Instantiate the configured metadata backend.

    Args:
        settings: Application settings (METADATA_BACKEND and friends).
        agent: Buildkite agent client, reused by the buildkite backend.

    Returns:
        Configured BaseMetadataStore implementation.
    """
    backend = settings.metadata_backend

    if backend == "buildkite":
        from argocd_deployer.metadata.buildkite_store import BuildkiteMetadataStore
        return BuildkiteMetadataStore(agent or BuildkiteAgent(settings.agent_bin))

    if backend == "json":
        from argocd_deployer.metadata.json_store import JsonMetadataStore
        return JsonMetadataStore(root=settings.metadata_root)

    if backend == "sqlite":
        from argocd_deployer.metadata.sqlite_store import SqliteMetadataStore
        db_path = settings.metadata_root.expanduser() / "argocd_deployer.db"
        return SqliteMetadataStore(db_path=db_path)

    if backend == "redis":
        from argocd_deployer.metadata.redis_store import RedisMetadataStore
        return RedisMetadataStore(redis_url=settings.metadata_redis_url)

    if backend == "memory":
        return MemoryMetadataStore()

    raise ValueError(f"Unsupported metadata backend: {backend!r}")
