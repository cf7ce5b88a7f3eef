# tests/unit/metadata/test_base_metadata_store.py — v1
"""Tests for metadata/base_metadata_store.py — ABC and memory backend."""

from __future__ import annotations

import pytest

from argocd_deployer.metadata.base_metadata_store import BaseMetadataStore, MemoryMetadataStore


class TestBaseMetadataStore:
    def test_cannot_instantiate(self):
        with pytest.raises(TypeError):
            BaseMetadataStore()  # type: ignore[abstract]

    def test_has_required_methods(self):
        for method in ["get", "set"]:
            assert hasattr(BaseMetadataStore, method)


class TestMemoryMetadataStore:
    def test_get_default(self):
        assert MemoryMetadataStore().get("missing", "fallback") == "fallback"

    def test_set_and_get(self):
        store = MemoryMetadataStore()
        store.set("k", "v")
        assert store.get("k") == "v"

    def test_initial_and_snapshot(self):
        store = MemoryMetadataStore({"a": "1"})
        snap = store.snapshot()
        snap["b"] = "2"
        assert store.snapshot() == {"a": "1"}
