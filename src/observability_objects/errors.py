"""Structured error types for observability object storage."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum


class ErrorKind(str, Enum):
    """Failure taxonomy surfaced to the REST boundary."""

    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    MALFORMED_REQUEST = "malformed_request"
    CREATE_FAILED = "create_failed"
    UPDATE_FAILED = "update_failed"
    DELETE_FAILED = "delete_failed"
    STORE_UNAVAILABLE = "store_unavailable"
    TIMEOUT = "timeout"
    INVARIANT_VIOLATION = "invariant_violation"


class ObservabilityError(Exception):
    """Base error for all observability object errors."""

    kind: ErrorKind = ErrorKind.STORE_UNAVAILABLE


class NotFoundError(ObservabilityError):
    """Raised when one or more object ids are absent."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, object_ids: Iterable[str]) -> None:
        self.object_ids = sorted(set(object_ids))
        if len(self.object_ids) == 1:
            msg = f"ObservabilityObject {self.object_ids[0]} not found"
        else:
            msg = f"ObservabilityObject(s) {self.object_ids} not found"
        super().__init__(msg)


class ForbiddenError(ObservabilityError):
    """Raised when the caller holds none of the grants an object requires."""

    kind = ErrorKind.FORBIDDEN

    def __init__(self, message: str, object_id: str | None = None) -> None:
        self.object_id = object_id
        super().__init__(message)


class MalformedRequestError(ObservabilityError):
    """Raised for requests that cannot be interpreted."""

    kind = ErrorKind.MALFORMED_REQUEST


class MalformedDocumentError(MalformedRequestError):
    """Raised when a raw document cannot be parsed into an envelope."""


class UnacceptableFilterFieldError(MalformedRequestError):
    """Raised when a filter key is not in the allow-list."""

    def __init__(self, field_name: str, allowed: Iterable[str]) -> None:
        self.field_name = field_name
        self.allowed = sorted(allowed)
        super().__init__(f"Query on {field_name} is not acceptable. Allowed: {self.allowed}")


class UnacceptableSortFieldError(MalformedRequestError):
    """Raised when a sort field cannot be resolved."""

    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(f"Sort on {field_name} is not acceptable")


class InvalidRangeFormatError(MalformedRequestError):
    """Raised when a timestamp filter has more than two '..' segments."""

    def __init__(self, field_name: str, value: str) -> None:
        self.field_name = field_name
        self.value = value
        super().__init__(
            f"Invalid Range format {value} for {field_name}, "
            "allowed format 'exact' or 'from..to'"
        )


class CreateFailedError(ObservabilityError):
    """Raised when the store does not report a creation."""

    kind = ErrorKind.CREATE_FAILED


class UpdateFailedError(ObservabilityError):
    """Raised when the store does not report an update."""

    kind = ErrorKind.UPDATE_FAILED

    def __init__(self, object_id: str, result: str) -> None:
        self.object_id = object_id
        self.result = result
        super().__init__(f"ObservabilityObject {object_id} update failed: {result}")


class DeleteFailedError(ObservabilityError):
    """Raised when the store does not report a deletion."""

    kind = ErrorKind.DELETE_FAILED

    def __init__(self, object_id: str, result: str) -> None:
        self.object_id = object_id
        self.result = result
        super().__init__(f"ObservabilityObject {object_id} delete failed: {result}")


class StoreUnavailableError(ObservabilityError):
    """Raised for transport-level failures of the document store."""

    kind = ErrorKind.STORE_UNAVAILABLE

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Document store error during {operation}: {detail}")


class OperationTimeoutError(ObservabilityError):
    """Raised when a store call exceeds the configured operation timeout."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, operation: str, timeout_ms: int) -> None:
        self.operation = operation
        self.timeout_ms = timeout_ms
        super().__init__(f"Document store {operation} did not complete within {timeout_ms}ms")


class InvariantViolationError(ObservabilityError):
    """Raised when an object or a stored document breaks a structural invariant."""

    kind = ErrorKind.INVARIANT_VIOLATION


class StoreError(StoreUnavailableError):
    """Base for store-level signals the index lifecycle may treat as benign."""


class ResourceAlreadyExistsError(StoreError):
    """Raised by the store when creating an index that already exists."""

    def __init__(self, index: str) -> None:
        self.index = index
        super().__init__("create_index", f"index [{index}] already exists")


class IndexNotFoundError(StoreError):
    """Raised by the store when addressing an index that does not exist."""

    def __init__(self, index: str) -> None:
        self.index = index
        super().__init__("index_lookup", f"no such index [{index}]")
