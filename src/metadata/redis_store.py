# src/metadata/redis_store.py — v1
"""Redis-based metadata store (METADATA_BACKEND=redis).

Requires 'redis' package: pip install argocd-deployer[redis].
Shares deployment memory between pipelines, not just between steps of one build.
"""

from __future__ import annotations

import logging

from argocd_deployer.core.exceptions import MetadataError
from argocd_deployer.metadata.base_metadata_store import BaseMetadataStore

logger = logging.getLogger(__name__)

_KEY_PREFIX = "argocd_deployer:metadata:"


class RedisMetadataStore(BaseMetadataStore):
    def __init__(self, redis_url: str, key_prefix: str = _KEY_PREFIX) -> None:
        try:
            import redis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._redis = redis
        self._client = redis.Redis.from_url(redis_url, decode_responses=True)
        self._prefix = key_prefix

    def get(self, key: str, default: str = "") -> str:
        try:
            value = self._client.get(f"{self._prefix}{key}")
        except self._redis.RedisError as e:
            logger.warning("Failed to read metadata entry %s: %s", key, e)
            return default
        return default if value is None else value

    def set(self, key: str, value: str) -> None:
        try:
            self._client.set(f"{self._prefix}{key}", value)
        except self._redis.RedisError as e:
            raise MetadataError(f"Failed to write metadata entry {key}: {e}") from e
