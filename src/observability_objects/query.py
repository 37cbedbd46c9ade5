"""Query builder: listing requests to tenant-scoped, access-filtered searches."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from observability_objects.envelope import (
    ACCESS_LIST_FIELD,
    CREATED_TIME_FIELD,
    TENANT_FIELD,
    UPDATED_TIME_FIELD,
)
from observability_objects.errors import (
    InvalidRangeFormatError,
    MalformedRequestError,
    UnacceptableFilterFieldError,
    UnacceptableSortFieldError,
)
from observability_objects.filters import (
    SORT_ORDERS,
    BoolQuery,
    ExistsQuery,
    MatchQuery,
    QueryClause,
    QueryStringQuery,
    RangeQuery,
    SearchRequest,
    SortSpec,
    TermQuery,
    TermsQuery,
    any_of,
)
from observability_objects.registry import TypeRegistry
from observability_objects.types import ObjectType

logger = logging.getLogger(__name__)

QUERY_FIELD = "query"
METADATA_RANGE_FIELDS = frozenset({UPDATED_TIME_FIELD, CREATED_TIME_FIELD})
DEFAULT_SORT_FIELD = UPDATED_TIME_FIELD
DEFAULT_SORT_ORDER = "asc"
RANGE_SEPARATOR = ".."


class QueryBuilder:
    """Builds SearchRequests; field names are resolved through the TypeRegistry."""

    def __init__(self, registry: TypeRegistry, *, default_page_size: int = 100) -> None:
        self.registry = registry
        self.default_page_size = default_page_size

    def filter_param_names(self, object_types: Iterable[ObjectType] | None = None) -> set[str]:
        """Allow-list of filter keys for the selected types (all types when none)."""
        types = list(object_types or [])
        return (
            {QUERY_FIELD}
            | set(METADATA_RANGE_FIELDS)
            | self.registry.text_fields(types)
            | self.registry.keyword_fields(types)
        )

    def build_search_query(
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
    ) -> SearchRequest:
        types = [t for t in (object_types or []) if t is not ObjectType.NONE]
        access_list = list(access)

        query = BoolQuery()
        query.filter.append(TermQuery(TENANT_FIELD, tenant))
        if access_list:
            query.filter.append(TermsQuery(ACCESS_LIST_FIELD, access_list))
        if types:
            # Legacy documents have no discriminator, so match on the payload key.
            query.filter.append(any_of([ExistsQuery(t.tag) for t in types]))

        allowed = self.filter_param_names(types)
        for key, value in (filter_params or {}).items():
            if key not in allowed:
                raise UnacceptableFilterFieldError(key, allowed)
            query.filter.append(self._filter_clause(key, value, types))

        from_index = 0 if from_index is None else from_index
        size = self.default_page_size if max_items is None else max_items
        if from_index < 0:
            raise MalformedRequestError(f"fromIndex must be >= 0, got {from_index}")
        if size < 0:
            raise MalformedRequestError(f"maxItems must be >= 0, got {size}")

        return SearchRequest(
            query=query,
            sort=self._sort_specs(sort_field, sort_order, types),
            from_index=from_index,
            size=size,
        )

    def _filter_clause(self, key: str, value: str, types: list[ObjectType]) -> QueryClause:
        if key == QUERY_FIELD:
            fields = sorted(
                f"{c.tag}.{f}" for c in self.registry.contracts.values()
                if not types or c.object_type in types
                for f in c.text_fields
            )
            return QueryStringQuery(value, fields)
        if key in METADATA_RANGE_FIELDS:
            return self._range_clause(key, value)

        clauses: list[QueryClause] = []
        for contract in self.registry.types_with_field(key, types):
            path = f"{contract.tag}.{key}"
            if key in contract.keyword_fields:
                clauses.append(TermsQuery(path, [v for v in value.split(",") if v]))
            else:
                clauses.append(MatchQuery(path, value, operator="and"))
        return any_of(clauses)

    def _range_clause(self, key: str, value: str) -> QueryClause:
        parts = value.split(RANGE_SEPARATOR)
        if len(parts) == 1:
            exact = _range_bound(key, value, parts[0])
            if exact is None:
                raise InvalidRangeFormatError(key, value)
            return TermQuery(key, exact)
        if len(parts) == 2:
            return RangeQuery(
                key,
                gte=_range_bound(key, value, parts[0]),
                lte=_range_bound(key, value, parts[1]),
            )
        raise InvalidRangeFormatError(key, value)

    def _sort_specs(
        self, sort_field: str | None, sort_order: str | None, types: list[ObjectType]
    ) -> list[SortSpec]:
        """One sort key per type carrying the field, in registry order.

        Payload fields live under their type's key, so sorting across several types
        orders the first type's objects first, then the next type's, each group sorted
        by the field. Select a single type for one global ordering.
        """
        order = (sort_order or DEFAULT_SORT_ORDER).lower()
        if order not in SORT_ORDERS:
            raise MalformedRequestError(f"sortOrder must be one of {list(SORT_ORDERS)}")
        name = sort_field or DEFAULT_SORT_FIELD
        if name in METADATA_RANGE_FIELDS:
            return [SortSpec(name, order)]

        specs: list[SortSpec] = []
        for contract in self.registry.types_with_field(name, types):
            if name in contract.keyword_fields:
                specs.append(SortSpec(f"{contract.tag}.{name}", order))
            else:
                specs.append(SortSpec(f"{contract.tag}.{name}.keyword", order))
        if not specs:
            raise UnacceptableSortFieldError(name)
        return specs


def _range_bound(key: str, raw: str, part: str) -> int | None:
    part = part.strip()
    if not part:
        return None
    try:
        return int(part)
    except ValueError:
        raise InvalidRangeFormatError(key, raw) from None
