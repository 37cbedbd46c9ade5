"""Configuration for the observability object store."""

from __future__ import annotations

import os
from dataclasses import dataclass

ADMIN_ACCESS_ALL = "AllObservabilityObjects"
ADMIN_ACCESS_STANDARD = "Standard"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ObservabilityConfig:
    """Configuration for the persistence gateway and access layer."""

    index_name: str = ".opensearch-observability"
    legacy_index_name: str = ".opensearch-notebooks"
    operation_timeout_ms: int = 60000
    default_items_query_count: int = 100
    filter_by_backend_roles: bool = False
    admin_access: str = ADMIN_ACCESS_ALL
    storage_uri: str = "sqlite:///observability.db"

    def __post_init__(self) -> None:
        if self.admin_access not in (ADMIN_ACCESS_ALL, ADMIN_ACCESS_STANDARD):
            raise ValueError(
                f"admin_access must be '{ADMIN_ACCESS_ALL}' or '{ADMIN_ACCESS_STANDARD}', "
                f"got '{self.admin_access}'"
            )
        if self.operation_timeout_ms <= 0:
            raise ValueError("operation_timeout_ms must be positive")
        if self.default_items_query_count <= 0:
            raise ValueError("default_items_query_count must be positive")

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Build config from OBSERVABILITY_* environment variables."""
        defaults = cls()
        return cls(
            index_name=os.getenv("OBSERVABILITY_INDEX_NAME", defaults.index_name),
            legacy_index_name=os.getenv(
                "OBSERVABILITY_LEGACY_INDEX_NAME", defaults.legacy_index_name
            ),
            operation_timeout_ms=int(
                os.getenv("OBSERVABILITY_OPERATION_TIMEOUT_MS", defaults.operation_timeout_ms)
            ),
            default_items_query_count=int(
                os.getenv(
                    "OBSERVABILITY_DEFAULT_ITEMS_QUERY_COUNT", defaults.default_items_query_count
                )
            ),
            filter_by_backend_roles=_env_bool(
                "OBSERVABILITY_FILTER_BY_BACKEND_ROLES", defaults.filter_by_backend_roles
            ),
            admin_access=os.getenv("OBSERVABILITY_ADMIN_ACCESS", defaults.admin_access),
            storage_uri=os.getenv("OBSERVABILITY_STORAGE_URI", defaults.storage_uri),
        )
