"""Tests for ObservabilityConfig defaults, validation and environment loading."""

from __future__ import annotations

import pytest

from observability_objects.config import (
    ADMIN_ACCESS_ALL,
    ADMIN_ACCESS_STANDARD,
    ObservabilityConfig,
)


def test_defaults():
    config = ObservabilityConfig()
    assert config.index_name == ".opensearch-observability"
    assert config.legacy_index_name == ".opensearch-notebooks"
    assert config.operation_timeout_ms == 60000
    assert config.default_items_query_count == 100
    assert config.filter_by_backend_roles is False
    assert config.admin_access == ADMIN_ACCESS_ALL


@pytest.mark.parametrize(
    "kwargs",
    [
        {"admin_access": "Everything"},
        {"operation_timeout_ms": 0},
        {"default_items_query_count": -1},
    ],
)
def test_invalid_values(kwargs):
    with pytest.raises(ValueError):
        ObservabilityConfig(**kwargs)


def test_from_env(monkeypatch):
    monkeypatch.setenv("OBSERVABILITY_INDEX_NAME", "objects")
    monkeypatch.setenv("OBSERVABILITY_OPERATION_TIMEOUT_MS", "2500")
    monkeypatch.setenv("OBSERVABILITY_DEFAULT_ITEMS_QUERY_COUNT", "25")
    monkeypatch.setenv("OBSERVABILITY_FILTER_BY_BACKEND_ROLES", "yes")
    monkeypatch.setenv("OBSERVABILITY_ADMIN_ACCESS", ADMIN_ACCESS_STANDARD)
    monkeypatch.setenv("OBSERVABILITY_STORAGE_URI", "sqlite:///:memory:")
    config = ObservabilityConfig.from_env()
    assert config.index_name == "objects"
    assert config.operation_timeout_ms == 2500
    assert config.default_items_query_count == 25
    assert config.filter_by_backend_roles is True
    assert config.admin_access == ADMIN_ACCESS_STANDARD
    assert config.storage_uri == "sqlite:///:memory:"
    assert config.legacy_index_name == ".opensearch-notebooks"


def test_from_env_false_flag(monkeypatch):
    monkeypatch.setenv("OBSERVABILITY_FILTER_BY_BACKEND_ROLES", "off")
    assert ObservabilityConfig.from_env().filter_by_backend_roles is False
