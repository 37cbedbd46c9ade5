"""Document envelope: common metadata plus one typed payload.

Persisted layout (one document per object)::

    {
        "type": "notebook",
        "lastUpdatedTimeMs": 1700000000123,
        "createdTimeMs": 1700000000000,
        "tenant": "",
        "access": ["User:alice", "BERole:ops"],
        "notebook": {...payload...}
    }

The ``type`` discriminator is read first. Documents copied from the legacy
notebooks index predate it; for those only, a single probe pass over the
top-level keys picks the first registered tag.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel

from observability_objects.errors import InvariantViolationError, MalformedDocumentError
from observability_objects.registry import TypeRegistry
from observability_objects.types import ObjectType

logger = logging.getLogger(__name__)

DEFAULT_TENANT = ""

TYPE_FIELD = "type"
UPDATED_TIME_FIELD = "lastUpdatedTimeMs"
CREATED_TIME_FIELD = "createdTimeMs"
TENANT_FIELD = "tenant"
ACCESS_LIST_FIELD = "access"
OBJECT_ID_FIELD = "objectId"

METADATA_FIELDS = frozenset(
    {TYPE_FIELD, UPDATED_TIME_FIELD, CREATED_TIME_FIELD, TENANT_FIELD, ACCESS_LIST_FIELD}
)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def to_epoch_ms(value: datetime) -> int:
    return (value - _EPOCH) // _ONE_MS


def from_epoch_ms(value: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=value)


def _normalize_time(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


@dataclass(frozen=True)
class DocMetadata:
    """Tenant, access grants and timestamps shared by every object."""

    updated_time: datetime
    created_time: datetime
    tenant: str = DEFAULT_TENANT
    access: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        updated = _normalize_time(self.updated_time)
        created = _normalize_time(self.created_time)
        if updated < created:
            raise InvariantViolationError(
                f"updatedTime {updated.isoformat()} precedes createdTime {created.isoformat()}"
            )
        object.__setattr__(self, "updated_time", updated)
        object.__setattr__(self, "created_time", created)
        object.__setattr__(self, "access", tuple(self.access))


@dataclass(frozen=True)
class ObservabilityObject:
    """An ObjectType paired with a payload of the matching variant."""

    object_type: ObjectType
    payload: BaseModel | None

    def __post_init__(self) -> None:
        if not validate_object_data(self.object_type, self.payload):
            actual = type(self.payload).__name__
            raise InvariantViolationError(
                f"Payload of type {actual} does not match object type '{self.object_type.tag}'"
            )


def validate_object_data(object_type: ObjectType, payload: Any) -> bool:
    """True when the payload's variant matches object_type; NONE accepts anything."""
    if object_type is ObjectType.NONE:
        return True
    if payload is None:
        return False
    return getattr(type(payload), "object_type", None) is object_type


@dataclass(frozen=True)
class ObservabilityObjectDoc:
    """The persisted unit: metadata plus typed object."""

    metadata: DocMetadata
    object: ObservabilityObject

    @property
    def object_type(self) -> ObjectType:
        return self.object.object_type

    @property
    def payload(self) -> BaseModel | None:
        return self.object.payload


@dataclass(frozen=True)
class ObservabilityObjectDocInfo:
    """A stored document with its store-assigned identity and versioning."""

    id: str
    doc: ObservabilityObjectDoc
    version: int = -1
    seq_no: int = -2
    primary_term: int = 0


@dataclass
class ParsedObjectBody:
    """A request body: an optional caller-supplied id and the object."""

    object: ObservabilityObject
    object_id: str | None = None
    skipped_fields: list[str] = field(default_factory=list)


class DocumentCodec:
    """Parses and serializes envelopes using an injected TypeRegistry."""

    def __init__(self, registry: TypeRegistry) -> None:
        self.registry = registry

    # --- Stored documents ---

    def parse_document(self, raw: Any) -> ObservabilityObjectDoc:
        if not isinstance(raw, dict):
            raise MalformedDocumentError(
                f"Document must be an object, got {type(raw).__name__}"
            )
        updated_ms = raw.get(UPDATED_TIME_FIELD)
        created_ms = raw.get(CREATED_TIME_FIELD)
        if updated_ms is None:
            raise MalformedDocumentError(f"{UPDATED_TIME_FIELD} field absent")
        if created_ms is None:
            raise MalformedDocumentError(f"{CREATED_TIME_FIELD} field absent")
        if not _is_epoch_ms(updated_ms) or not _is_epoch_ms(created_ms):
            raise MalformedDocumentError(
                f"{UPDATED_TIME_FIELD} and {CREATED_TIME_FIELD} must be epoch milliseconds"
            )
        if updated_ms < created_ms:
            raise MalformedDocumentError(
                f"{UPDATED_TIME_FIELD} {updated_ms} precedes {CREATED_TIME_FIELD} {created_ms}"
            )

        tenant = raw.get(TENANT_FIELD, DEFAULT_TENANT)
        if tenant is None:
            tenant = DEFAULT_TENANT
        if not isinstance(tenant, str):
            raise MalformedDocumentError(f"{TENANT_FIELD} must be a string")
        access = raw.get(ACCESS_LIST_FIELD) or []
        if not isinstance(access, list) or not all(isinstance(a, str) for a in access):
            raise MalformedDocumentError(f"{ACCESS_LIST_FIELD} must be a list of strings")

        object_type, tag = self._resolve_document_type(raw)
        payload = self._parse_payload(object_type, raw.get(tag))
        for key in raw:
            if key not in METADATA_FIELDS and key != tag:
                logger.info("observability:ObservabilityObjectDoc Skipping unknown field %s", key)

        metadata = DocMetadata(
            updated_time=from_epoch_ms(updated_ms),
            created_time=from_epoch_ms(created_ms),
            tenant=tenant,
            access=tuple(access),
        )
        return ObservabilityObjectDoc(metadata, ObservabilityObject(object_type, payload))

    def serialize_document(self, doc: ObservabilityObjectDoc) -> dict[str, Any]:
        object_type = doc.object_type
        if object_type is ObjectType.NONE:
            raise InvariantViolationError("Objects of type 'none' cannot be persisted")
        meta = doc.metadata
        return {
            TYPE_FIELD: object_type.tag,
            UPDATED_TIME_FIELD: to_epoch_ms(meta.updated_time),
            CREATED_TIME_FIELD: to_epoch_ms(meta.created_time),
            TENANT_FIELD: meta.tenant,
            ACCESS_LIST_FIELD: list(meta.access),
            object_type.tag: self.registry.serializer_for(object_type)(doc.payload),
        }

    def _resolve_document_type(self, raw: dict[str, Any]) -> tuple[ObjectType, str]:
        tag = raw.get(TYPE_FIELD)
        if tag is not None:
            object_type = self.registry.resolve(tag) if isinstance(tag, str) else ObjectType.NONE
            if object_type is ObjectType.NONE:
                raise MalformedDocumentError(f"Unknown object type '{tag}'")
            return object_type, object_type.tag

        # Legacy documents carry no discriminator; the first registered tag wins.
        for key in raw:
            if key in METADATA_FIELDS:
                continue
            object_type = self.registry.resolve(key)
            if object_type is not ObjectType.NONE:
                logger.info(
                    "observability:ObservabilityObjectDoc Inferred type '%s' for legacy document",
                    key,
                )
                return object_type, key
        raise MalformedDocumentError("Document has no object type and no recognized payload")

    def _parse_payload(self, object_type: ObjectType, raw_payload: Any) -> BaseModel:
        if raw_payload is None:
            raise MalformedDocumentError(f"Payload '{object_type.tag}' absent")
        payload = self.registry.parser_for(object_type)(raw_payload)
        if not self.registry.validate(object_type, payload):
            raise MalformedDocumentError(
                f"Payload does not satisfy the '{object_type.tag}' contract"
            )
        return payload

    # --- Request bodies ---

    def parse_object(self, raw: Any) -> ParsedObjectBody:
        """Parse a create/update body of the form ``{"objectId"?: ..., "<tag>": {...}}``."""
        if not isinstance(raw, dict):
            raise MalformedDocumentError("Request body must be a JSON object")
        object_id = raw.get(OBJECT_ID_FIELD)
        if object_id is not None and not isinstance(object_id, str):
            raise MalformedDocumentError(f"{OBJECT_ID_FIELD} must be a string")

        found: ObservabilityObject | None = None
        skipped: list[str] = []
        for key, value in raw.items():
            if key == OBJECT_ID_FIELD:
                continue
            object_type = self.registry.resolve(key)
            if object_type is ObjectType.NONE or found is not None:
                logger.info("observability:ObservabilityObject Skipping unknown field %s", key)
                skipped.append(key)
                continue
            found = ObservabilityObject(object_type, self._parse_payload(object_type, value))
        if found is None:
            raise MalformedDocumentError(
                f"Request body contains no object data; expected one of {self.registry.tags()}"
            )
        return ParsedObjectBody(object=found, object_id=object_id or None, skipped_fields=skipped)

    def render_info(
        self, info: ObservabilityObjectDocInfo, *, include_access: bool = True
    ) -> dict[str, Any]:
        """Render a stored object for responses."""
        raw = self.serialize_document(info.doc)
        out: dict[str, Any] = {
            OBJECT_ID_FIELD: info.id,
            UPDATED_TIME_FIELD: raw[UPDATED_TIME_FIELD],
            CREATED_TIME_FIELD: raw[CREATED_TIME_FIELD],
            TENANT_FIELD: raw[TENANT_FIELD],
        }
        if include_access:
            out[ACCESS_LIST_FIELD] = raw[ACCESS_LIST_FIELD]
        tag = info.doc.object_type.tag
        out[tag] = raw[tag]
        return out


def _is_epoch_ms(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
