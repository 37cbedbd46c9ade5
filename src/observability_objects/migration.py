"""Index lifecycle: create-if-absent and the one-time legacy index migration."""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from importlib import resources
from typing import Any

import yaml

from observability_objects.config import ObservabilityConfig
from observability_objects.errors import IndexNotFoundError, ResourceAlreadyExistsError
from observability_objects.registry import TypeRegistry
from observability_objects.storage import DocumentStoreClient

logger = logging.getLogger(__name__)

MAPPING_RESOURCE = "observability-mapping.yml"
SETTINGS_RESOURCE = "observability-settings.yml"


def _load_resource(name: str) -> dict[str, Any]:
    text = (resources.files("observability_objects") / "resources" / name).read_text("utf-8")
    return yaml.safe_load(text) or {}


def load_index_mapping(registry: TypeRegistry) -> dict[str, Any]:
    """Base mapping plus one object property per registered type."""
    mapping = _load_resource(MAPPING_RESOURCE)
    properties = mapping.setdefault("properties", {})
    for contract in registry.contracts.values():
        fields: dict[str, Any] = {}
        for name in sorted(contract.text_fields):
            fields[name] = {"type": "text", "fields": {"keyword": {"type": "keyword"}}}
        for name in sorted(contract.keyword_fields):
            fields[name] = {"type": "keyword"}
        properties[contract.tag] = {"type": "object", "properties": fields}
    return mapping


def load_index_settings() -> dict[str, Any]:
    return _load_resource(SETTINGS_RESOURCE)


class MigrationState(str, Enum):
    NOT_MIGRATED = "not_migrated"
    MIGRATING = "migrating"
    MIGRATED = "migrated"


@dataclass
class MigrationStatus:
    """Point-in-time view of both indices and the migration state."""

    index_name: str
    index_exists: bool
    legacy_index_name: str
    legacy_index_exists: bool
    state: MigrationState
    documents_copied: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "index_name": self.index_name,
            "index_exists": self.index_exists,
            "legacy_index_name": self.legacy_index_name,
            "legacy_index_exists": self.legacy_index_exists,
            "state": self.state.value,
            "documents_copied": self.documents_copied,
        }


class LegacyIndexMigration:
    """One-time state machine: NOT_MIGRATED -> MIGRATING -> MIGRATED.

    ``ensure()`` is called lazily from every gateway entry point. It creates
    the index if absent, then copies and drops the legacy notebooks index if
    one exists. "Already exists" and "not found" from the store mean another
    caller got there first; they are not errors. Once MIGRATED, ``ensure()``
    does nothing.
    """

    def __init__(
        self,
        client: DocumentStoreClient,
        config: ObservabilityConfig,
        registry: TypeRegistry,
        *,
        mapping: dict[str, Any] | None = None,
        settings: dict[str, Any] | None = None,
    ) -> None:
        self.client = client
        self.config = config
        self.mapping = mapping if mapping is not None else load_index_mapping(registry)
        self.settings = settings if settings is not None else load_index_settings()
        self._state = MigrationState.NOT_MIGRATED
        self._documents_copied = 0
        self._lock = threading.Lock()

    @property
    def state(self) -> MigrationState:
        return self._state

    def ensure(self) -> MigrationState:
        if self._state is MigrationState.MIGRATED:
            return self._state
        with self._lock:
            if self._state is MigrationState.MIGRATED:
                return self._state
            self._state = MigrationState.MIGRATING
            try:
                self._create_index_if_absent()
                self._migrate_legacy_index()
            except Exception:
                self._state = MigrationState.NOT_MIGRATED
                raise
            self._state = MigrationState.MIGRATED
            return self._state

    def reset(self) -> None:
        """Forget the cached state so the next ensure() re-checks the store."""
        with self._lock:
            self._state = MigrationState.NOT_MIGRATED

    def status(self) -> MigrationStatus:
        return MigrationStatus(
            index_name=self.config.index_name,
            index_exists=self.client.index_exists(self.config.index_name),
            legacy_index_name=self.config.legacy_index_name,
            legacy_index_exists=self.client.index_exists(self.config.legacy_index_name),
            state=self._state,
            documents_copied=self._documents_copied,
        )

    def _create_index_if_absent(self) -> None:
        index = self.config.index_name
        if self.client.index_exists(index):
            return
        try:
            self.client.create_index(
                index, copy.deepcopy(self.mapping), copy.deepcopy(self.settings)
            )
            logger.info("observability:Index %s created", index)
        except ResourceAlreadyExistsError:
            logger.info("observability:Index %s already exists", index)

    def _migrate_legacy_index(self) -> None:
        legacy = self.config.legacy_index_name
        index = self.config.index_name
        if not self.client.index_exists(legacy):
            return
        logger.info("observability:Reindexing %s into %s", legacy, index)
        try:
            self._documents_copied = self.client.reindex(legacy, index)
        except IndexNotFoundError:
            logger.info("observability:Legacy index %s already migrated", legacy)
            return
        logger.info("observability:Copied %d document(s) from %s", self._documents_copied, legacy)
        try:
            self.client.delete_index(legacy)
            logger.info("observability:Legacy index %s deleted", legacy)
        except IndexNotFoundError:
            logger.info("observability:Legacy index %s already deleted", legacy)
