"""Output formatting helpers for the CLI."""

from __future__ import annotations

import json
import sys
from typing import Any


def print_table(headers: list[str], rows: list[list[Any]], *, json_mode: bool = False) -> None:
    """Print rows as an aligned text table, or as a JSON array of objects."""
    if json_mode:
        print(json.dumps([dict(zip(headers, row)) for row in rows], indent=2, default=str))
        return

    if not rows:
        return

    str_rows = [["" if v is None else str(v) for v in row] for row in rows]
    widths = [max([len(h)] + [len(r[i]) for r in str_rows]) for i, h in enumerate(headers)]
    print("  ".join(h.ljust(widths[i]) for i, h in enumerate(headers)).rstrip())
    print("  ".join("-" * w for w in widths))
    for row in str_rows:
        print("  ".join(val.ljust(widths[i]) for i, val in enumerate(row)).rstrip())


def print_object(data: dict[str, Any] | list[Any], *, json_mode: bool = False) -> None:
    """Print a single object or list as JSON or key-value pairs."""
    if json_mode:
        print(json.dumps(data, indent=2, default=str))
        return

    items = data if isinstance(data, list) else [data]
    for i, item in enumerate(items):
        if i:
            print()
        if not isinstance(item, dict):
            print(item)
            continue
        for k, v in item.items():
            if isinstance(v, (dict, list)):
                v = json.dumps(v, default=str)
            print(f"{k}: {v}")


def print_error(msg: str) -> None:
    """Print an error message to stderr."""
    print(f"Error: {msg}", file=sys.stderr)
