"""Shared fixtures for CLI tests."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest
from typer.testing import CliRunner

from observability_objects.cli import app

if TYPE_CHECKING:
    from click.testing import Result


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep OBSERVABILITY_* settings from the outer environment out of CLI runs."""
    for name in (
        "OBSERVABILITY_DB",
        "OBSERVABILITY_STORAGE_URI",
        "OBSERVABILITY_FILTER_BY_BACKEND_ROLES",
        "OBSERVABILITY_ADMIN_ACCESS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def cli_db(tmp_path):
    """Create a temp DB path for the CLI."""
    return str(tmp_path / "cli_test.db")


@pytest.fixture
def body_file(tmp_path):
    """Write a JSON body to a temp file and return its path."""
    counter = iter(range(1000))

    def _write(data: dict) -> str:
        path = tmp_path / f"body_{next(counter)}.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        return str(path)

    return _write


def invoke(runner: CliRunner, args: list[str], db_path: str | None = None) -> "Result":
    """Invoke CLI with proper state setup."""
    if db_path:
        # Inject --db before subcommand
        args = ["--db", db_path] + args
    return runner.invoke(app, args, catch_exceptions=False)
