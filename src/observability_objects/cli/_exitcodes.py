"""Process exit codes for obsctl commands."""

from __future__ import annotations

from observability_objects.errors import ErrorKind, ObservabilityError

SUCCESS = 0
GENERAL_ERROR = 1
USAGE_ERROR = 2
DATABASE_ERROR = 3
NOT_FOUND = 4
FORBIDDEN = 5
EXECUTION_FAILURE = 6

_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: NOT_FOUND,
    ErrorKind.FORBIDDEN: FORBIDDEN,
    ErrorKind.MALFORMED_REQUEST: USAGE_ERROR,
    ErrorKind.STORE_UNAVAILABLE: DATABASE_ERROR,
    ErrorKind.TIMEOUT: DATABASE_ERROR,
}


def for_error(exc: ObservabilityError) -> int:
    return _BY_KIND.get(exc.kind, EXECUTION_FAILURE)
