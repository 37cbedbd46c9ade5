"""Shared test fixtures for observability object tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from observability_objects.access import User, UserAccessManager
from observability_objects.actions import ObservabilityActions
from observability_objects.config import ObservabilityConfig
from observability_objects.envelope import (
    DocMetadata,
    DocumentCodec,
    ObservabilityObject,
    ObservabilityObjectDoc,
)
from observability_objects.gateway import ObservabilityIndex
from observability_objects.registry import build_default_registry
from observability_objects.storage import SqliteDocumentStore
from observability_objects.types import Notebook, ObjectType

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


class StepClock:
    """Deterministic clock that advances by a fixed step on every call."""

    def __init__(self, start: datetime = T0, step: timedelta = timedelta(seconds=1)) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.now
        self.now = self.now + self.step
        return value


def notebook_doc(
    name: str = "test",
    *,
    tenant: str = "",
    access: tuple[str, ...] = (),
    created: datetime = T0,
    updated: datetime | None = None,
) -> ObservabilityObjectDoc:
    return ObservabilityObjectDoc(
        DocMetadata(
            updated_time=updated or created,
            created_time=created,
            tenant=tenant,
            access=access,
        ),
        ObservabilityObject(ObjectType.NOTEBOOK, Notebook(name=name)),
    )


# --- Fixtures ---


@pytest.fixture
def make_doc():
    """Factory for notebook envelopes."""
    return notebook_doc


@pytest.fixture
def registry():
    return build_default_registry()


@pytest.fixture
def codec(registry):
    return DocumentCodec(registry)


@pytest.fixture
def config():
    return ObservabilityConfig()


@pytest.fixture
def rbac_config():
    """Config with backend-role filtering enabled."""
    return ObservabilityConfig(filter_by_backend_roles=True)


@pytest.fixture
def tmp_db(tmp_path):
    """Create a temporary SQLite database path."""
    return str(tmp_path / "test.db")


@pytest.fixture
def store(tmp_db):
    """Create a SqliteDocumentStore with a temporary database."""
    s = SqliteDocumentStore(tmp_db)
    yield s
    s.close()


@pytest.fixture
def index(store, config, registry):
    return ObservabilityIndex(store, config, registry)


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def actions(index, config, clock):
    return ObservabilityActions(index, UserAccessManager(config), clock=clock)


@pytest.fixture
def rbac_actions(store, rbac_config, registry, clock):
    index = ObservabilityIndex(store, rbac_config, registry)
    return ObservabilityActions(index, UserAccessManager(rbac_config), clock=clock)


@pytest.fixture
def alice():
    return User(name="alice", backend_roles=("ops",), roles=("reader",), requested_tenant="t1")


@pytest.fixture
def bob():
    return User(name="bob", backend_roles=("dev",), roles=("reader",), requested_tenant="t1")


@pytest.fixture
def admin():
    return User(name="root", backend_roles=("infra",), roles=("all_access",), requested_tenant="t1")
