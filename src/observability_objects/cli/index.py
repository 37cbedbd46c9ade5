"""obsctl index: observability index lifecycle commands."""

from __future__ import annotations

import typer

from observability_objects.cli import _exitcodes as ec
from observability_objects.cli._output import print_error, print_object
from observability_objects.cli._storage import open_client, open_index
from observability_objects.errors import ObservabilityError

app = typer.Typer(no_args_is_help=True)


@app.command(name="status")
def index_status_cmd() -> None:
    """Show whether the index and the legacy notebooks index exist."""
    from observability_objects.cli import state

    client = open_client()
    try:
        index = open_index(client)
        data = index.migration.status().to_dict()
        data.update(client.storage_info())
        print_object(data, json_mode=state.json_output)
    except ObservabilityError as e:
        print_error(str(e))
        raise typer.Exit(ec.for_error(e))
    finally:
        client.close()


@app.command(name="migrate")
def index_migrate_cmd() -> None:
    """Create the index if absent and move documents out of the legacy index."""
    from observability_objects.cli import state

    client = open_client()
    try:
        index = open_index(client)
        index.migration.ensure()
        print_object(index.migration.status().to_dict(), json_mode=state.json_output)
    except ObservabilityError as e:
        print_error(str(e))
        raise typer.Exit(ec.for_error(e))
    finally:
        client.close()
