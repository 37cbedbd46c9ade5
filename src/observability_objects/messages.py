"""Request and response objects for the operation layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any

from observability_objects.envelope import DocumentCodec, ObservabilityObject
from observability_objects.gateway import ObjectSearchResult
from observability_objects.types import ObjectType


@dataclass
class CreateObjectRequest:
    object: ObservabilityObject
    object_id: str | None = None


@dataclass
class CreateObjectResponse:
    object_id: str

    def to_json(self) -> dict[str, Any]:
        return {"objectId": self.object_id}


@dataclass
class UpdateObjectRequest:
    object_id: str
    object: ObservabilityObject


@dataclass
class UpdateObjectResponse:
    object_id: str

    def to_json(self) -> dict[str, Any]:
        return {"objectId": self.object_id}


@dataclass
class GetObjectRequest:
    """Get one (single id), get many (several ids) or list (no ids)."""

    object_ids: list[str] = field(default_factory=list)
    types: list[ObjectType] = field(default_factory=list)
    from_index: int | None = None
    max_items: int | None = None
    sort_field: str | None = None
    sort_order: str | None = None
    filter_params: dict[str, str] = field(default_factory=dict)


@dataclass
class GetObjectResponse:
    search_result: ObjectSearchResult
    filter_sensitive_info: bool = False

    def to_json(self, codec: DocumentCodec) -> dict[str, Any]:
        result = self.search_result
        return {
            "startIndex": result.start_index,
            "totalHits": result.total_hits,
            "totalHitRelation": result.total_hit_relation,
            "observabilityObjectList": [
                codec.render_info(info, include_access=not self.filter_sensitive_info)
                for info in result.objects
            ],
        }


@dataclass
class DeleteObjectRequest:
    object_ids: list[str]


@dataclass
class DeleteObjectResponse:
    status_by_id: dict[str, HTTPStatus]

    def to_json(self) -> dict[str, Any]:
        return {"deleteResponseList": {k: v.name for k, v in self.status_by_id.items()}}
