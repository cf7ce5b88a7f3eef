# src/metadata/json_store.py — v1
"""JSON file-based metadata store (METADATA_BACKEND=json).

Stores each key as an individual JSON file under METADATA_ROOT, which lets
local runs keep history outcomes between invocations without a CI agent.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from argocd_deployer.core.exceptions import MetadataError
from argocd_deployer.metadata.base_metadata_store import BaseMetadataStore

logger = logging.getLogger(__name__)


class JsonMetadataStore(BaseMetadataStore):
    """File-based store using one JSON document per key."""

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)

    def get(self, key: str, default: str = "") -> str:
        path = self._entry_path(key)
        if not path.exists():
            return default
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return str(data["value"])
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Failed to read metadata entry %s: %s", key, e)
            return default

    def set(self, key: str, value: str) -> None:
        path = self._entry_path(key)
        payload = {
            "key": key,
            "value": value,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as e:
            raise MetadataError(f"Failed to write metadata entry {key}: {e}") from e

    def keys(self) -> list[str]:
        """List all stored keys."""
        found: list[str] = []
        for path in sorted(self._root.glob("*.json")):
            try:
                found.append(json.loads(path.read_text(encoding="utf-8"))["key"])
            except (OSError, ValueError, KeyError):
                continue
        return found

    def _entry_path(self, key: str) -> Path:
        """Return file path for a metadata key."""
        safe_key = key.replace("/", "_").replace("\\", "_").replace(":", "__")
        return self._root / f"{safe_key}.json"
