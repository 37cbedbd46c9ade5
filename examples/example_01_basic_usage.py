"""Example 01: Basic Usage - Observability Object Fundamentals.

This example demonstrates the fundamental operations:
- Opening a SQLite document store and wiring the operation layer
- Creating notebooks and saved queries with typed payloads
- Fetching by id, listing with filters, sorting and paging
- Updating and deleting objects
"""

from observability_objects import (
    Notebook,
    ObjectType,
    ObservabilityActions,
    ObservabilityIndex,
    ObservabilityObject,
    SavedQuery,
    User,
    open_store,
)
from observability_objects.messages import (
    CreateObjectRequest,
    DeleteObjectRequest,
    GetObjectRequest,
    UpdateObjectRequest,
)


def main():
    """Run the basic usage example."""
    print("=" * 80)
    print("OBSERVABILITY OBJECTS BASIC USAGE EXAMPLE")
    print("=" * 80)

    # Step 1: Open the store
    # The index is created lazily on the first operation.
    client = open_store(storage_uri="sqlite:///:memory:")
    index = ObservabilityIndex(client)
    actions = ObservabilityActions(index)
    user = User(name="alice", backend_roles=("ops",), roles=("reader",), requested_tenant="team")

    # Step 2: Create objects
    notebook = ObservabilityObject(ObjectType.NOTEBOOK, Notebook(name="Error triage"))
    nb_id = actions.create(CreateObjectRequest(notebook), user).object_id
    query = ObservabilityObject(
        ObjectType.SAVED_QUERY,
        SavedQuery(name="5xx by host", query="source=logs | where status >= 500"),
    )
    q_id = actions.create(CreateObjectRequest(query), user).object_id
    print(f"\nCreated notebook {nb_id} and saved query {q_id}")

    # Step 3: Fetch by id
    response = actions.get(GetObjectRequest(object_ids=[nb_id]), user)
    print("\nNotebook:", response.to_json(index.codec)["observabilityObjectList"][0])

    # Step 4: List with a type filter and a free-text query
    request = GetObjectRequest(types=[ObjectType.SAVED_QUERY], filter_params={"query": "host"})
    listed = actions.get(request, user).to_json(index.codec)
    print(f"\nSaved queries matching 'host': {listed['totalHits']}")

    # Step 5: Update (whole payload replace) and delete
    renamed = ObservabilityObject(ObjectType.NOTEBOOK, Notebook(name="Error triage (v2)"))
    actions.update(UpdateObjectRequest(nb_id, renamed), user)
    deleted = actions.delete(DeleteObjectRequest([nb_id, q_id]), user)
    print("\nDeleted:", deleted.to_json())

    client.close()


if __name__ == "__main__":
    main()
