# tests/unit/core/test_exceptions.py — v1
"""Tests for core/exceptions.py — error taxonomy."""

from __future__ import annotations

import pytest

from argocd_deployer.core.exceptions import (
    ConfigurationError,
    ConnectivityError,
    DeployerError,
    MetadataError,
    NotFoundError,
    OperationFailure,
    PipelineUploadError,
)


class TestTaxonomy:
    @pytest.mark.parametrize("cls", [
        ConfigurationError,
        ConnectivityError,
        NotFoundError,
        OperationFailure,
        MetadataError,
        PipelineUploadError,
    ])
    def test_all_derive_from_deployer_error(self, cls):
        assert issubclass(cls, DeployerError)

    def test_configuration_error_is_not_value_error(self):
        assert not issubclass(ConfigurationError, ValueError)

    def test_operation_failure_fields(self):
        err = OperationFailure("argocd app sync", 20, "timeout")
        assert err.exit_code == 20
        assert err.output == "timeout"
        assert "argocd app sync" in str(err)
        assert "20" in str(err)
