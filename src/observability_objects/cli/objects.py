"""obsctl create/get/list/update/delete: object CRUD from the command line."""

from __future__ import annotations

import sys
from typing import Any, Optional

import typer
import yaml

from observability_objects.cli import _exitcodes as ec
from observability_objects.cli._output import print_error, print_object, print_table
from observability_objects.cli._storage import current_user, open_actions, open_client
from observability_objects.envelope import (
    CREATED_TIME_FIELD,
    OBJECT_ID_FIELD,
    TENANT_FIELD,
    UPDATED_TIME_FIELD,
)
from observability_objects.errors import ObservabilityError
from observability_objects.messages import (
    CreateObjectRequest,
    DeleteObjectRequest,
    GetObjectRequest,
    UpdateObjectRequest,
)
from observability_objects.types import ObjectType


def _read_body(path: str, object_type: Optional[str]) -> dict[str, Any]:
    """Load a JSON or YAML body; with --type the file holds only the payload."""
    if path == "-":
        text = sys.stdin.read()
    else:
        try:
            with open(path, encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            raise typer.BadParameter(f"Cannot read {path}: {e}", param_hint="--file") from e
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise typer.BadParameter(f"Cannot parse {path}: {e}", param_hint="--file") from e
    if object_type is None:
        return data
    if ObjectType.from_tag_or_default(object_type) is ObjectType.NONE:
        raise typer.BadParameter(f"Unknown object type '{object_type}'", param_hint="--type")
    return {object_type: data}


def _parse_filters(filters: list[str]) -> dict[str, str]:
    params: dict[str, str] = {}
    for item in filters:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected KEY=VALUE, got '{item}'", param_hint="--filter")
        params[key] = value
    return params


def _summary_row(item: dict[str, Any]) -> list[Any]:
    tag = next((k for k in item if ObjectType.from_tag_or_default(k) is not ObjectType.NONE), "")
    payload = item.get(tag) or {}
    return [
        item[OBJECT_ID_FIELD],
        tag,
        payload.get("name"),
        item[TENANT_FIELD],
        item[CREATED_TIME_FIELD],
        item[UPDATED_TIME_FIELD],
    ]


_SUMMARY_HEADERS = ["objectId", "type", "name", "tenant", "createdTimeMs", "lastUpdatedTimeMs"]


def create_cmd(
    file: str = typer.Option(..., "--file", "-f", help="JSON/YAML body file, or - for stdin"),
    object_type: Optional[str] = typer.Option(
        None, "--type", "-t", help="Object type when the file holds only the payload"
    ),
    object_id: Optional[str] = typer.Option(None, "--id", help="Use this object id"),
) -> None:
    """Create an object and print its id."""
    from observability_objects.cli import state

    body = _read_body(file, object_type)
    client = open_client()
    try:
        actions = open_actions(client)
        parsed = actions.index.codec.parse_object(body)
        response = actions.create(
            CreateObjectRequest(parsed.object, object_id or parsed.object_id), current_user()
        )
        if state.json_output:
            print_object(response.to_json(), json_mode=True)
        else:
            print(response.object_id)
    except ObservabilityError as e:
        print_error(str(e))
        raise typer.Exit(ec.for_error(e))
    finally:
        client.close()


def get_cmd(
    object_ids: list[str] = typer.Argument(..., help="Object id(s)"),
) -> None:
    """Show one or more objects."""
    from observability_objects.cli import state

    client = open_client()
    try:
        actions = open_actions(client)
        response = actions.get(GetObjectRequest(object_ids=list(object_ids)), current_user())
        data = response.to_json(actions.index.codec)
        if state.json_output:
            print_object(data, json_mode=True)
        else:
            print_object(data["observabilityObjectList"])
    except ObservabilityError as e:
        print_error(str(e))
        raise typer.Exit(ec.for_error(e))
    finally:
        client.close()


def list_cmd(
    object_types: Optional[list[str]] = typer.Option(
        None, "--type", "-t", help="Restrict to object type (repeatable)"
    ),
    sort_field: Optional[str] = typer.Option(None, "--sort-field", help="Field to sort on"),
    sort_order: Optional[str] = typer.Option(None, "--sort-order", help="asc or desc"),
    from_index: Optional[int] = typer.Option(None, "--from", help="Start offset"),
    max_items: Optional[int] = typer.Option(None, "--max-items", help="Page size"),
    filters: Optional[list[str]] = typer.Option(
        None, "--filter", help="KEY=VALUE filter, e.g. name=logs or createdTimeMs=10..20"
    ),
    query: Optional[str] = typer.Option(None, "--query", "-q", help="Free-text query"),
) -> None:
    """List objects visible to the caller."""
    from observability_objects.cli import state

    types: list[ObjectType] = []
    for tag in object_types or []:
        object_type = ObjectType.from_tag_or_default(tag)
        if object_type is ObjectType.NONE:
            raise typer.BadParameter(f"Unknown object type '{tag}'", param_hint="--type")
        types.append(object_type)
    filter_params = _parse_filters(filters or [])
    if query is not None:
        filter_params["query"] = query

    client = open_client()
    try:
        actions = open_actions(client)
        request = GetObjectRequest(
            types=types,
            from_index=from_index,
            max_items=max_items,
            sort_field=sort_field,
            sort_order=sort_order,
            filter_params=filter_params,
        )
        data = actions.get(request, current_user()).to_json(actions.index.codec)
        if state.json_output:
            print_object(data, json_mode=True)
            return
        items = data["observabilityObjectList"]
        print(f"Total hits: {data['totalHits']} (showing {len(items)} from {data['startIndex']})")
        print_table(_SUMMARY_HEADERS, [_summary_row(item) for item in items])
    except ObservabilityError as e:
        print_error(str(e))
        raise typer.Exit(ec.for_error(e))
    finally:
        client.close()


def update_cmd(
    object_id: str = typer.Argument(..., help="Object id"),
    file: str = typer.Option(..., "--file", "-f", help="JSON/YAML body file, or - for stdin"),
    object_type: Optional[str] = typer.Option(
        None, "--type", "-t", help="Object type when the file holds only the payload"
    ),
) -> None:
    """Replace an object's payload."""
    from observability_objects.cli import state

    body = _read_body(file, object_type)
    client = open_client()
    try:
        actions = open_actions(client)
        parsed = actions.index.codec.parse_object(body)
        response = actions.update(UpdateObjectRequest(object_id, parsed.object), current_user())
        if state.json_output:
            print_object(response.to_json(), json_mode=True)
        else:
            print(f"Updated {response.object_id}")
    except ObservabilityError as e:
        print_error(str(e))
        raise typer.Exit(ec.for_error(e))
    finally:
        client.close()


def delete_cmd(
    object_ids: list[str] = typer.Argument(..., help="Object id(s)"),
) -> None:
    """Delete one or more objects; all ids must exist and be accessible."""
    from observability_objects.cli import state

    client = open_client()
    try:
        actions = open_actions(client)
        response = actions.delete(DeleteObjectRequest(list(object_ids)), current_user())
        data = response.to_json()
        if state.json_output:
            print_object(data, json_mode=True)
        else:
            print_table(
                ["objectId", "status"],
                [[k, v] for k, v in data["deleteResponseList"].items()],
            )
        if any(v != "OK" for v in data["deleteResponseList"].values()):
            raise typer.Exit(ec.EXECUTION_FAILURE)
    except ObservabilityError as e:
        print_error(str(e))
        raise typer.Exit(ec.for_error(e))
    finally:
        client.close()
