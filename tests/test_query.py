"""Tests for the query builder: tenant/access scoping, filters, sorting and paging."""

from __future__ import annotations

import pytest

from observability_objects.errors import (
    InvalidRangeFormatError,
    MalformedRequestError,
    UnacceptableFilterFieldError,
    UnacceptableSortFieldError,
)
from observability_objects.filters import (
    ExistsQuery,
    RangeQuery,
    TermQuery,
    any_of,
    resolve_nested_path,
)
from observability_objects.query import QueryBuilder
from observability_objects.types import ObjectType


@pytest.fixture
def builder(registry):
    return QueryBuilder(registry)


def _filters(request) -> list[dict]:
    return request.to_dsl()["query"]["bool"]["filter"]


class TestScoping:
    def test_defaults(self, builder):
        dsl = builder.build_search_query(tenant="t1").to_dsl()
        assert dsl == {
            "query": {"bool": {"filter": [{"term": {"tenant": "t1"}}]}},
            "sort": [{"lastUpdatedTimeMs": {"order": "asc"}}],
            "from": 0,
            "size": 100,
        }

    def test_default_page_size_is_configurable(self, registry):
        request = QueryBuilder(registry, default_page_size=7).build_search_query(tenant="")
        assert request.size == 7

    def test_access_filter_only_when_non_empty(self, builder):
        request = builder.build_search_query(tenant="", access=["BERole:ops", "BERole:dev"])
        assert _filters(request) == [
            {"term": {"tenant": ""}},
            {"terms": {"access": ["BERole:ops", "BERole:dev"]}},
        ]
        assert len(_filters(builder.build_search_query(tenant="", access=[]))) == 1

    def test_single_type_filter(self, builder):
        request = builder.build_search_query(tenant="t1", object_types=[ObjectType.NOTEBOOK])
        assert _filters(request)[1] == {"exists": {"field": "notebook"}}

    def test_multiple_type_filter(self, builder):
        request = builder.build_search_query(
            tenant="t1", object_types=[ObjectType.NOTEBOOK, ObjectType.SAVED_QUERY]
        )
        assert _filters(request)[1] == {
            "bool": {
                "should": [
                    {"exists": {"field": "notebook"}},
                    {"exists": {"field": "saved_query"}},
                ],
                "minimum_should_match": 1,
            }
        }

    def test_none_type_is_ignored(self, builder):
        request = builder.build_search_query(tenant="t1", object_types=[ObjectType.NONE])
        assert len(_filters(request)) == 1


class TestFilterParams:
    def test_param_allow_list(self, builder):
        assert builder.filter_param_names() == {
            "query",
            "lastUpdatedTimeMs",
            "createdTimeMs",
            "name",
            "description",
            "backend",
            "applicationId",
        }
        assert builder.filter_param_names([ObjectType.NOTEBOOK]) == {
            "query",
            "lastUpdatedTimeMs",
            "createdTimeMs",
            "name",
            "backend",
        }

    def test_unknown_filter_rejected(self, builder):
        with pytest.raises(UnacceptableFilterFieldError, match="color"):
            builder.build_search_query(tenant="", filter_params={"color": "blue"})

    def test_filter_not_on_selected_type_rejected(self, builder):
        with pytest.raises(UnacceptableFilterFieldError):
            builder.build_search_query(
                tenant="",
                object_types=[ObjectType.NOTEBOOK],
                filter_params={"description": "x"},
            )

    def test_text_field_on_single_type(self, builder):
        request = builder.build_search_query(
            tenant="",
            object_types=[ObjectType.NOTEBOOK],
            filter_params={"name": "error logs"},
        )
        assert _filters(request)[-1] == {
            "match": {"notebook.name": {"query": "error logs", "operator": "and"}}
        }

    def test_text_field_across_types(self, builder):
        request = builder.build_search_query(tenant="", filter_params={"description": "d"})
        clause = _filters(request)[-1]["bool"]
        assert clause["minimum_should_match"] == 1
        assert [list(c["match"])[0] for c in clause["should"]] == [
            "saved_query.description",
            "saved_visualization.description",
        ]

    def test_keyword_field_splits_commas(self, builder):
        request = builder.build_search_query(tenant="", filter_params={"backend": "a,b,"})
        assert _filters(request)[-1] == {"terms": {"notebook.backend": ["a", "b"]}}

    def test_free_text_query_fields(self, builder):
        request = builder.build_search_query(tenant="", filter_params={"query": "logs"})
        assert _filters(request)[-1] == {
            "query_string": {
                "query": "logs",
                "fields": [
                    "notebook.name",
                    "operational_panel.name",
                    "saved_query.description",
                    "saved_query.name",
                    "saved_visualization.description",
                    "saved_visualization.name",
                ],
            }
        }

    def test_free_text_query_restricted_to_types(self, builder):
        request = builder.build_search_query(
            tenant="",
            object_types=[ObjectType.OPERATIONAL_PANEL],
            filter_params={"query": "cpu"},
        )
        assert _filters(request)[-1]["query_string"]["fields"] == ["operational_panel.name"]


class TestRangeParams:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("10..20", {"range": {"createdTimeMs": {"gte": 10, "lte": 20}}}),
            ("10..", {"range": {"createdTimeMs": {"gte": 10}}}),
            ("..20", {"range": {"createdTimeMs": {"lte": 20}}}),
            ("42", {"term": {"createdTimeMs": 42}}),
        ],
    )
    def test_valid_ranges(self, builder, value, expected):
        request = builder.build_search_query(tenant="", filter_params={"createdTimeMs": value})
        assert _filters(request)[-1] == expected

    @pytest.mark.parametrize("value", ["10..20..30", "", "abc", "a..b", "1.5"])
    def test_invalid_ranges(self, builder, value):
        with pytest.raises(InvalidRangeFormatError):
            builder.build_search_query(tenant="", filter_params={"lastUpdatedTimeMs": value})


class TestSortAndPaging:
    def test_metadata_sort_field(self, builder):
        request = builder.build_search_query(
            tenant="", sort_field="createdTimeMs", sort_order="DESC"
        )
        assert request.to_dsl()["sort"] == [{"createdTimeMs": {"order": "desc"}}]

    def test_text_sort_uses_keyword_subfield(self, builder):
        request = builder.build_search_query(
            tenant="", object_types=[ObjectType.SAVED_QUERY], sort_field="name"
        )
        assert request.to_dsl()["sort"] == [{"saved_query.name.keyword": {"order": "asc"}}]

    def test_keyword_sort(self, builder):
        request = builder.build_search_query(tenant="", sort_field="applicationId")
        assert request.to_dsl()["sort"] == [
            {"operational_panel.applicationId": {"order": "asc"}}
        ]

    def test_unknown_sort_field(self, builder):
        with pytest.raises(UnacceptableSortFieldError):
            builder.build_search_query(tenant="", sort_field="color")

    def test_invalid_sort_order(self, builder):
        with pytest.raises(MalformedRequestError, match="sortOrder"):
            builder.build_search_query(tenant="", sort_order="sideways")

    def test_paging(self, builder):
        request = builder.build_search_query(tenant="", from_index=20, max_items=5)
        assert (request.from_index, request.size) == (20, 5)

    @pytest.mark.parametrize("kwargs", [{"from_index": -1}, {"max_items": -3}])
    def test_negative_paging_rejected(self, builder, kwargs):
        with pytest.raises(MalformedRequestError):
            builder.build_search_query(tenant="", **kwargs)


class TestClauses:
    def test_and_or_composition(self):
        a = TermQuery("tenant", "t1")
        b = ExistsQuery("notebook")
        assert (a & b).to_dsl() == {
            "bool": {"must": [{"term": {"tenant": "t1"}}, {"exists": {"field": "notebook"}}]}
        }
        assert (a | b).to_dsl()["bool"]["minimum_should_match"] == 1

    def test_any_of_single_clause_is_unwrapped(self):
        clause = TermQuery("tenant", "t1")
        assert any_of([clause]) is clause

    def test_open_range_bounds_omitted(self):
        assert RangeQuery("createdTimeMs").to_dsl() == {"range": {"createdTimeMs": {}}}

    def test_resolve_nested_path(self):
        data = {"notebook": {"name": "nb", "paragraphs": None}}
        assert resolve_nested_path(data, "notebook.name") == "nb"
        assert resolve_nested_path(data, "notebook.paragraphs.id") is None
        assert resolve_nested_path(data, "saved_query.name") is None
