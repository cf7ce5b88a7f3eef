# src/metadata/base_metadata_store.py — v1
"""Abstract key/value store that survives across pipeline steps."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseMetadataStore(ABC):
    """Unified interface for cross-run metadata backends.

    Reads never raise: a missing or unreadable key yields ``default``.
    Writes raise MetadataError when the backend rejects them.
    """

    @abstractmethod
    def get(self, key: str, default: str = "") -> str:
        """Return the stored value for key, or default."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""


class MemoryMetadataStore(BaseMetadataStore):
    """Process-local store for tests and dry runs."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str, default: str = "") -> str:
        return self._data.get(key, default)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)
