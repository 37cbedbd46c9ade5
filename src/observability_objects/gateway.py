"""Persistence gateway: envelope-level CRUD and search over the observability index."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from http import HTTPStatus

from observability_objects.config import ObservabilityConfig
from observability_objects.envelope import (
    DocumentCodec,
    ObservabilityObjectDoc,
    ObservabilityObjectDocInfo,
)
from observability_objects.errors import (
    CreateFailedError,
    DeleteFailedError,
    InvariantViolationError,
    UpdateFailedError,
)
from observability_objects.filters import SearchRequest
from observability_objects.migration import LegacyIndexMigration
from observability_objects.query import QueryBuilder
from observability_objects.registry import TypeRegistry, build_default_registry
from observability_objects.storage import DocumentStoreClient, GetResult, ResultKind
from observability_objects.types import ObjectType

logger = logging.getLogger(__name__)


@dataclass
class ObjectSearchResult:
    """One page of search results."""

    start_index: int
    total_hits: int
    total_hit_relation: str = "eq"
    objects: list[ObservabilityObjectDocInfo] = field(default_factory=list)


class ObservabilityIndex:
    """Owns the on-wire representation and the index lifecycle.

    Every public operation first calls ``migration.ensure()``; after the
    first successful call that is a no-op.
    """

    def __init__(
        self,
        client: DocumentStoreClient,
        config: ObservabilityConfig | None = None,
        registry: TypeRegistry | None = None,
        *,
        migration: LegacyIndexMigration | None = None,
    ) -> None:
        self.client = client
        self.config = config or ObservabilityConfig()
        self.registry = registry or build_default_registry()
        self.codec = DocumentCodec(self.registry)
        self.query_builder = QueryBuilder(
            self.registry, default_page_size=self.config.default_items_query_count
        )
        self.migration = migration or LegacyIndexMigration(client, self.config, self.registry)

    @property
    def index_name(self) -> str:
        return self.config.index_name

    def _ensure_index(self) -> None:
        self.migration.ensure()

    def _to_info(self, result: GetResult) -> ObservabilityObjectDocInfo:
        if result.source is None:
            raise InvariantViolationError(f"Document {result.id} was returned without a source")
        return ObservabilityObjectDocInfo(
            id=result.id,
            doc=self.codec.parse_document(result.source),
            version=result.version,
            seq_no=result.seq_no,
            primary_term=result.primary_term,
        )

    def create(self, doc: ObservabilityObjectDoc, object_id: str | None = None) -> str:
        """Store a new document and return its id."""
        self._ensure_index()
        result = self.client.index_document(
            self.index_name,
            self.codec.serialize_document(doc),
            doc_id=object_id,
            create_only=True,
        )
        if result.result is not ResultKind.CREATED:
            logger.warning("observability:create - response:%s", result.result.value)
            raise CreateFailedError(f"Object creation failed: {result.result.value}")
        return result.id

    def get(self, object_id: str) -> ObservabilityObjectDocInfo | None:
        self._ensure_index()
        result = self.client.get_document(self.index_name, object_id)
        if not result.found:
            logger.warning("observability:get - %s not found", object_id)
            return None
        return self._to_info(result)

    def multi_get(self, object_ids: Iterable[str]) -> list[ObservabilityObjectDocInfo]:
        """Fetch several ids; missing ids are simply absent from the result."""
        self._ensure_index()
        results = self.client.multi_get(self.index_name, list(object_ids))
        return [self._to_info(r) for r in results if r.found]

    def search(self, request: SearchRequest) -> ObjectSearchResult:
        self._ensure_index()
        response = self.client.search(self.index_name, request.to_dsl())
        objects = [
            ObservabilityObjectDocInfo(
                id=hit.id,
                doc=self.codec.parse_document(hit.source),
                version=hit.version,
                seq_no=hit.seq_no,
                primary_term=hit.primary_term,
            )
            for hit in response.hits
        ]
        return ObjectSearchResult(
            start_index=request.from_index,
            total_hits=response.total_hits,
            total_hit_relation=response.total_hits_relation,
            objects=objects,
        )

    def search_objects(
        self,
        *,
        tenant: str,
        access: Iterable[str] = (),
        object_types: Iterable[ObjectType] | None = None,
        filter_params: Mapping[str, str] | None = None,
        sort_field: str | None = None,
        sort_order: str | None = None,
        from_index: int | None = None,
        max_items: int | None = None,
    ) -> ObjectSearchResult:
        """Build a tenant-scoped, access-filtered query and run it."""
        request = self.query_builder.build_search_query(
            tenant=tenant,
            access=access,
            object_types=object_types,
            filter_params=filter_params,
            sort_field=sort_field,
            sort_order=sort_order,
            from_index=from_index,
            max_items=max_items,
        )
        result = self.search(request)
        logger.info(
            "observability:search - from %d size %d: %d of %d hit(s)",
            request.from_index,
            request.size,
            len(result.objects),
            result.total_hits,
        )
        return result

    def update(self, object_id: str, doc: ObservabilityObjectDoc) -> None:
        """Replace the whole document."""
        self._ensure_index()
        result = self.client.update_document(
            self.index_name, object_id, self.codec.serialize_document(doc)
        )
        if result.result is not ResultKind.UPDATED:
            logger.warning("observability:update - response:%s", result.result.value)
            raise UpdateFailedError(object_id, result.result.value)

    def delete(self, object_id: str) -> None:
        self._ensure_index()
        result = self.client.delete_document(self.index_name, object_id)
        if result.result is not ResultKind.DELETED:
            logger.warning("observability:delete - response:%s", result.result.value)
            raise DeleteFailedError(object_id, result.result.value)

    def bulk_delete(self, object_ids: Iterable[str]) -> dict[str, HTTPStatus]:
        """Delete several ids; each id's outcome is reported separately."""
        self._ensure_index()
        items = self.client.bulk_delete(self.index_name, list(object_ids))
        statuses = {item.id: item.status for item in items}
        failed = [i for i, status in statuses.items() if status is not HTTPStatus.OK]
        if failed:
            logger.warning("observability:bulk_delete - failed for %s", failed)
        return statuses
