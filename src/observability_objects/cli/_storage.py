"""CLI helpers for opening the store and building the operation layer."""

from __future__ import annotations

from observability_objects.access import User, UserAccessManager
from observability_objects.actions import ObservabilityActions
from observability_objects.config import ObservabilityConfig
from observability_objects.gateway import ObservabilityIndex
from observability_objects.storage import DocumentStoreClient, open_store


def resolve_storage_binding() -> tuple[str | None, str | None]:
    """Return (db_path, storage_uri) from CLI state."""
    from observability_objects.cli import state

    if state.storage_uri:
        return None, state.storage_uri
    return state.db, None


def _config_from_env() -> ObservabilityConfig:
    """Build config from OBSERVABILITY_* environment defaults."""
    return ObservabilityConfig.from_env()


def current_user() -> User | None:
    """The caller described by --user/--role/--backend-role/--tenant, or None."""
    from observability_objects.cli import state

    if state.user is None and state.tenant is None and not state.roles and not state.backend_roles:
        return None
    return User(
        name=state.user or "",
        roles=tuple(state.roles),
        backend_roles=tuple(state.backend_roles),
        requested_tenant=state.tenant,
    )


def open_client() -> DocumentStoreClient:
    db_path, storage_uri = resolve_storage_binding()
    return open_store(db_path, storage_uri=storage_uri, config=_config_from_env())


def open_index(client: DocumentStoreClient) -> ObservabilityIndex:
    return ObservabilityIndex(client, _config_from_env())


def open_actions(client: DocumentStoreClient) -> ObservabilityActions:
    index = open_index(client)
    return ObservabilityActions(index, UserAccessManager(index.config))
