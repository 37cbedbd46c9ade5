"""Observability objects: tenant-scoped, access-controlled storage of notebooks,
saved queries, saved visualizations and operational panels."""

from observability_objects.access import User, UserAccessManager
from observability_objects.actions import ObservabilityActions
from observability_objects.config import ObservabilityConfig
from observability_objects.envelope import (
    DEFAULT_TENANT,
    DocMetadata,
    DocumentCodec,
    ObservabilityObject,
    ObservabilityObjectDoc,
    ObservabilityObjectDocInfo,
)
from observability_objects.errors import (
    CreateFailedError,
    DeleteFailedError,
    ErrorKind,
    ForbiddenError,
    InvalidRangeFormatError,
    InvariantViolationError,
    MalformedDocumentError,
    MalformedRequestError,
    NotFoundError,
    ObservabilityError,
    OperationTimeoutError,
    StoreUnavailableError,
    UnacceptableFilterFieldError,
    UnacceptableSortFieldError,
    UpdateFailedError,
)
from observability_objects.gateway import ObjectSearchResult, ObservabilityIndex
from observability_objects.migration import LegacyIndexMigration, MigrationState
from observability_objects.query import QueryBuilder
from observability_objects.registry import PayloadContract, TypeRegistry, build_default_registry
from observability_objects.storage import DocumentStoreClient, SqliteDocumentStore, open_store
from observability_objects.types import (
    Notebook,
    ObjectType,
    OperationalPanel,
    SavedQuery,
    SavedVisualization,
)

__version__ = "0.1.0"

__all__ = [
    "CreateFailedError",
    "DEFAULT_TENANT",
    "DeleteFailedError",
    "DocMetadata",
    "DocumentCodec",
    "DocumentStoreClient",
    "ErrorKind",
    "ForbiddenError",
    "InvalidRangeFormatError",
    "InvariantViolationError",
    "LegacyIndexMigration",
    "MalformedDocumentError",
    "MalformedRequestError",
    "MigrationState",
    "Notebook",
    "NotFoundError",
    "ObjectSearchResult",
    "ObjectType",
    "ObservabilityActions",
    "ObservabilityConfig",
    "ObservabilityError",
    "ObservabilityIndex",
    "ObservabilityObject",
    "ObservabilityObjectDoc",
    "ObservabilityObjectDocInfo",
    "OperationTimeoutError",
    "OperationalPanel",
    "PayloadContract",
    "QueryBuilder",
    "SavedQuery",
    "SavedVisualization",
    "SqliteDocumentStore",
    "StoreUnavailableError",
    "TypeRegistry",
    "UnacceptableFilterFieldError",
    "UnacceptableSortFieldError",
    "UpdateFailedError",
    "User",
    "UserAccessManager",
    "build_default_registry",
    "open_store",
]
