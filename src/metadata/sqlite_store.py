# src/metadata/sqlite_store.py — v1
"""SQLite-based metadata store (METADATA_BACKEND=sqlite).

Uses stdlib sqlite3, no external dependency. Suited to a persistent agent
that runs many deploys of the same applications.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from argocd_deployer.core.exceptions import MetadataError
from argocd_deployer.metadata.base_metadata_store import BaseMetadataStore

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""


class SqliteMetadataStore(BaseMetadataStore):
    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    def get(self, key: str, default: str = "") -> str:
        try:
            row = self._conn.execute(
                "SELECT value FROM metadata WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            logger.warning("Failed to read metadata entry %s: %s", key, e)
            return default
        return default if row is None else row[0]

    def set(self, key: str, value: str) -> None:
        try:
            self._conn.execute(
                """INSERT OR REPLACE INTO metadata (key, value, updated_at)
                   VALUES (?, ?, CURRENT_TIMESTAMP)""",
                (key, value),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise MetadataError(f"Failed to write metadata entry {key}: {e}") from e

    def close(self) -> None:
        self._conn.close()
