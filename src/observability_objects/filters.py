"""Structured query clauses emitted by the query builder.

Each clause renders to the document store's JSON query DSL via ``to_dsl()``.
Clauses compose with ``&`` (all must hold) and ``|`` (any may hold).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

SORT_ORDERS = ("asc", "desc")


def resolve_nested_path(data: dict[str, Any], dotted_path: str) -> Any:
    """Resolve a dotted path against a nested dict, returning None on missing keys."""
    current: Any = data
    for segment in dotted_path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(segment)
        if current is None:
            return None
    return current


class QueryClause:
    """Base class for query clauses."""

    def to_dsl(self) -> dict[str, Any]:
        raise NotImplementedError

    def __and__(self, other: QueryClause) -> BoolQuery:
        return BoolQuery(must=[self, other])

    def __or__(self, other: QueryClause) -> BoolQuery:
        return BoolQuery(should=[self, other], minimum_should_match=1)


@dataclass
class TermQuery(QueryClause):
    """Exact match of a single value."""

    field: str
    value: Any

    def to_dsl(self) -> dict[str, Any]:
        return {"term": {self.field: self.value}}


@dataclass
class TermsQuery(QueryClause):
    """Exact match of any of several values."""

    field: str
    values: list[Any]

    def to_dsl(self) -> dict[str, Any]:
        return {"terms": {self.field: list(self.values)}}


@dataclass
class RangeQuery(QueryClause):
    """Inclusive range; an absent bound is open."""

    field: str
    gte: Any = None
    lte: Any = None

    def to_dsl(self) -> dict[str, Any]:
        bounds: dict[str, Any] = {}
        if self.gte is not None:
            bounds["gte"] = self.gte
        if self.lte is not None:
            bounds["lte"] = self.lte
        return {"range": {self.field: bounds}}


@dataclass
class MatchQuery(QueryClause):
    """Full-text token match; operator "and" requires every token."""

    field: str
    text: str
    operator: str = "and"

    def to_dsl(self) -> dict[str, Any]:
        return {"match": {self.field: {"query": self.text, "operator": self.operator}}}


@dataclass
class QueryStringQuery(QueryClause):
    """Free-text query across several fields."""

    query: str
    fields: list[str]

    def to_dsl(self) -> dict[str, Any]:
        return {"query_string": {"query": self.query, "fields": list(self.fields)}}


@dataclass
class ExistsQuery(QueryClause):
    field: str

    def to_dsl(self) -> dict[str, Any]:
        return {"exists": {"field": self.field}}


@dataclass
class BoolQuery(QueryClause):
    """Boolean combination: filter and must clauses all hold, should needs a minimum."""

    filter: list[QueryClause] = field(default_factory=list)
    must: list[QueryClause] = field(default_factory=list)
    should: list[QueryClause] = field(default_factory=list)
    minimum_should_match: int | None = None

    def to_dsl(self) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if self.filter:
            body["filter"] = [c.to_dsl() for c in self.filter]
        if self.must:
            body["must"] = [c.to_dsl() for c in self.must]
        if self.should:
            body["should"] = [c.to_dsl() for c in self.should]
            if self.minimum_should_match is not None:
                body["minimum_should_match"] = self.minimum_should_match
        return {"bool": body}


def any_of(clauses: list[QueryClause]) -> QueryClause:
    """Collapse a non-empty clause list into one clause matching any of them."""
    if len(clauses) == 1:
        return clauses[0]
    return BoolQuery(should=list(clauses), minimum_should_match=1)


@dataclass
class SortSpec:
    field: str
    order: str = "asc"

    def to_dsl(self) -> dict[str, Any]:
        return {self.field: {"order": self.order}}


@dataclass
class SearchRequest:
    """A complete search: query, sort, and pagination."""

    query: QueryClause
    sort: list[SortSpec] = field(default_factory=list)
    from_index: int = 0
    size: int = 100

    def to_dsl(self) -> dict[str, Any]:
        return {
            "query": self.query.to_dsl(),
            "sort": [s.to_dsl() for s in self.sort],
            "from": self.from_index,
            "size": self.size,
        }
