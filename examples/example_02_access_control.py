"""Example 02: Tenants and backend-role access control.

With filter_by_backend_roles enabled, users only see objects stamped with
one of their backend roles, and admins holding all_access see everything
in their tenant.
"""

from observability_objects import (
    ForbiddenError,
    Notebook,
    ObjectType,
    ObservabilityActions,
    ObservabilityConfig,
    ObservabilityIndex,
    ObservabilityObject,
    User,
    UserAccessManager,
    open_store,
)
from observability_objects.messages import CreateObjectRequest, GetObjectRequest


def main():
    config = ObservabilityConfig(filter_by_backend_roles=True)
    client = open_store(storage_uri="sqlite:///:memory:", config=config)
    actions = ObservabilityActions(ObservabilityIndex(client, config), UserAccessManager(config))

    alice = User(name="alice", backend_roles=("ops",), requested_tenant="t1")
    bob = User(name="bob", backend_roles=("dev",), requested_tenant="t1")
    admin = User(
        name="root", backend_roles=("infra",), roles=("all_access",), requested_tenant="t1"
    )

    nb = ObservabilityObject(ObjectType.NOTEBOOK, Notebook(name="On-call notes"))
    object_id = actions.create(CreateObjectRequest(nb), alice).object_id

    for user in (alice, bob, admin):
        total = actions.get(GetObjectRequest(), user).search_result.total_hits
        print(f"{user.name} sees {total} object(s)")

    try:
        actions.get(GetObjectRequest(object_ids=[object_id]), bob)
    except ForbiddenError as e:
        print(f"bob: {e}")

    client.close()


if __name__ == "__main__":
    main()
