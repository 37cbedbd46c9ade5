"""obsctl: operator console for observability objects."""

from __future__ import annotations

import logging
from typing import Optional

import typer

from observability_objects.cli import index, objects

app = typer.Typer(
    name="obsctl",
    help="obsctl: create, inspect and migrate observability objects.",
    no_args_is_help=True,
)


class _State:
    """Global CLI state shared across subcommands."""

    db: str = "observability.db"
    storage_uri: str | None = None
    json_output: bool = False
    tenant: str | None = None
    user: str | None = None
    roles: list[str] = []
    backend_roles: list[str] = []


state = _State()


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError, version

        try:
            v = version("observability-objects")
        except PackageNotFoundError:
            v = "unknown"
        print(f"obsctl {v}")
        raise typer.Exit()


def _source_name(ctx: typer.Context, param: str) -> str | None:
    # Typer may report sources from its own click copy, so compare by name.
    source = ctx.get_parameter_source(param)
    return source.name if source is not None else None


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    db: Optional[str] = typer.Option(
        None,
        "--db",
        envvar="OBSERVABILITY_DB",
        help="SQLite database file path (default: observability.db)",
    ),
    storage_uri: Optional[str] = typer.Option(
        None,
        "--storage-uri",
        envvar="OBSERVABILITY_STORAGE_URI",
        help="Storage URI (e.g. sqlite:///observability.db)",
    ),
    tenant: Optional[str] = typer.Option(None, "--tenant", help="Requested tenant"),
    user: Optional[str] = typer.Option(None, "--user", help="Act as this user"),
    roles: Optional[list[str]] = typer.Option(None, "--role", help="User role (repeatable)"),
    backend_roles: Optional[list[str]] = typer.Option(
        None, "--backend-role", help="User backend role (repeatable)"
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output when supported"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to stderr"),
    version: bool = typer.Option(
        False, "--version", help="Show version", is_eager=True, callback=_version_callback
    ),
) -> None:
    """Global options for all obsctl commands."""
    from observability_objects.errors import ObservabilityError
    from observability_objects.storage import parse_storage_target

    db_source = _source_name(ctx, "db")
    uri_source = _source_name(ctx, "storage_uri")

    resolved_uri = storage_uri
    # Explicit --db overrides OBSERVABILITY_STORAGE_URI from the environment.
    if db_source == "COMMANDLINE" and uri_source == "ENVIRONMENT":
        resolved_uri = None
    if resolved_uri:
        try:
            parse_storage_target(storage_uri=resolved_uri)
        except ObservabilityError as e:
            raise typer.BadParameter(str(e), param_hint="--storage-uri") from e

    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    state.db = db or "observability.db"
    state.storage_uri = resolved_uri
    state.json_output = json_output
    state.tenant = tenant
    state.user = user
    state.roles = list(roles or [])
    state.backend_roles = list(backend_roles or [])
    if ctx.invoked_subcommand is None and not version:
        print(ctx.get_help())
        raise typer.Exit()


# Register subcommand groups
app.add_typer(index.app, name="index", help="Index status and legacy index migration")

# Register top-level commands
app.command(name="create")(objects.create_cmd)
app.command(name="get")(objects.get_cmd)
app.command(name="list")(objects.list_cmd)
app.command(name="update")(objects.update_cmd)
app.command(name="delete")(objects.delete_cmd)


def main() -> None:
    """Entry point for the obsctl CLI."""
    app()
