"""Access-controlled operation layer around the persistence gateway."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from http import HTTPStatus

from observability_objects.access import User, UserAccessManager
from observability_objects.envelope import (
    DocMetadata,
    ObservabilityObjectDoc,
    ObservabilityObjectDocInfo,
)
from observability_objects.errors import ForbiddenError, MalformedRequestError, NotFoundError
from observability_objects.gateway import ObjectSearchResult, ObservabilityIndex
from observability_objects.messages import (
    CreateObjectRequest,
    CreateObjectResponse,
    DeleteObjectRequest,
    DeleteObjectResponse,
    GetObjectRequest,
    GetObjectResponse,
    UpdateObjectRequest,
    UpdateObjectResponse,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ObservabilityActions:
    """Checks tenant and access grants, then calls the gateway.

    Validation and authorization happen before any mutation; a rejected
    request leaves the index untouched.
    """

    def __init__(
        self,
        index: ObservabilityIndex,
        access_manager: UserAccessManager | None = None,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self.index = index
        self.access = access_manager or UserAccessManager(index.config)
        self.clock = clock

    # --- Create / update ---

    def create(self, request: CreateObjectRequest, user: User | None) -> CreateObjectResponse:
        logger.info("observability:create")
        self.access.validate_user(user)
        now = self.clock()
        doc = ObservabilityObjectDoc(
            DocMetadata(
                updated_time=now,
                created_time=now,
                tenant=self.access.get_user_tenant(user),
                access=tuple(self.access.get_all_access_info(user)),
            ),
            request.object,
        )
        object_id = self.index.create(doc, request.object_id)
        return CreateObjectResponse(object_id)

    def update(self, request: UpdateObjectRequest, user: User | None) -> UpdateObjectResponse:
        logger.info("observability:update %s", request.object_id)
        self.access.validate_user(user)
        current = self._get_accessible(request.object_id, user)
        created = current.doc.metadata.created_time
        doc = ObservabilityObjectDoc(
            DocMetadata(
                updated_time=max(self.clock(), created),
                created_time=created,
                tenant=self.access.get_user_tenant(user),
                access=tuple(self.access.get_all_access_info(user)),
            ),
            request.object,
        )
        self.index.update(request.object_id, doc)
        return UpdateObjectResponse(request.object_id)

    # --- Get ---

    def get(self, request: GetObjectRequest, user: User | None) -> GetObjectResponse:
        object_ids = list(dict.fromkeys(request.object_ids))
        if len(object_ids) == 1:
            return self.get_by_id(object_ids[0], user)
        if object_ids:
            return self.get_by_ids(object_ids, user)
        return self.get_all(request, user)

    def get_by_id(self, object_id: str, user: User | None) -> GetObjectResponse:
        logger.info("observability:get %s", object_id)
        self.access.validate_user(user)
        info = self._get_accessible(object_id, user)
        return self._response(ObjectSearchResult(0, 1, "eq", [info]), user)

    def get_by_ids(self, object_ids: list[str], user: User | None) -> GetObjectResponse:
        logger.info("observability:get %s", object_ids)
        self.access.validate_user(user)
        infos = self._get_all_accessible(object_ids, user)
        return self._response(ObjectSearchResult(0, len(infos), "eq", infos), user)

    def get_all(self, request: GetObjectRequest, user: User | None) -> GetObjectResponse:
        logger.info(
            "observability:get_all from:%s, maxItems:%s, sortField:%s, sortOrder:%s, types:%s",
            request.from_index,
            request.max_items,
            request.sort_field,
            request.sort_order,
            [t.tag for t in request.types],
        )
        self.access.validate_user(user)
        result = self.index.search_objects(
            tenant=self.access.get_user_tenant(user),
            access=self.access.get_search_access_info(user),
            object_types=request.types,
            filter_params=request.filter_params,
            sort_field=request.sort_field,
            sort_order=request.sort_order,
            from_index=request.from_index,
            max_items=request.max_items,
        )
        return self._response(result, user)

    # --- Delete ---

    def delete(self, request: DeleteObjectRequest, user: User | None) -> DeleteObjectResponse:
        # Repeated ids are reported once.
        object_ids = list(dict.fromkeys(request.object_ids))
        if not object_ids:
            raise MalformedRequestError("objectIdList must not be empty")
        if len(object_ids) == 1:
            return self.delete_by_id(object_ids[0], user)
        return self.delete_by_ids(object_ids, user)

    def delete_by_id(self, object_id: str, user: User | None) -> DeleteObjectResponse:
        logger.info("observability:delete %s", object_id)
        self.access.validate_user(user)
        self._get_accessible(object_id, user)
        self.index.delete(object_id)
        return DeleteObjectResponse({object_id: HTTPStatus.OK})

    def delete_by_ids(self, object_ids: list[str], user: User | None) -> DeleteObjectResponse:
        logger.info("observability:delete %s", object_ids)
        self.access.validate_user(user)
        self._get_all_accessible(object_ids, user)
        return DeleteObjectResponse(self.index.bulk_delete(object_ids))

    # --- Helpers ---

    def _response(self, result: ObjectSearchResult, user: User | None) -> GetObjectResponse:
        return GetObjectResponse(result, not self.access.has_all_info_access(user))

    def _check_access(self, info: ObservabilityObjectDocInfo, user: User | None) -> None:
        meta = info.doc.metadata
        if not self.access.does_user_have_access(user, meta.tenant, meta.access):
            raise ForbiddenError(f"Permission denied for ObservabilityObject {info.id}", info.id)

    def _get_accessible(self, object_id: str, user: User | None) -> ObservabilityObjectDocInfo:
        info = self.index.get(object_id)
        if info is None:
            raise NotFoundError([object_id])
        self._check_access(info, user)
        return info

    def _get_all_accessible(
        self, object_ids: list[str], user: User | None
    ) -> list[ObservabilityObjectDocInfo]:
        """Fetch every id; fail on the first missing or forbidden one before any mutation."""
        infos = self.index.multi_get(object_ids)
        missing = set(object_ids) - {info.id for info in infos}
        if missing:
            raise NotFoundError(missing)
        for info in infos:
            self._check_access(info, user)
        return infos
