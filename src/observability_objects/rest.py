"""HTTP surface: FastAPI routes over the operation layer."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any, Optional

from fastapi import APIRouter, Body, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from observability_objects.access import User, UserInfoProvider
from observability_objects.actions import ObservabilityActions
from observability_objects.errors import ErrorKind, MalformedRequestError, ObservabilityError
from observability_objects.messages import (
    CreateObjectRequest,
    DeleteObjectRequest,
    GetObjectRequest,
    UpdateObjectRequest,
)
from observability_objects.types import ObjectType

logger = logging.getLogger(__name__)

BASE_URI = "/_plugins/_observability"

USER_HEADER = "x-observability-user"
ROLES_HEADER = "x-observability-roles"
BACKEND_ROLES_HEADER = "x-observability-backend-roles"
TENANT_HEADER = "x-observability-tenant"

STATUS_BY_KIND: dict[ErrorKind, HTTPStatus] = {
    ErrorKind.NOT_FOUND: HTTPStatus.NOT_FOUND,
    ErrorKind.FORBIDDEN: HTTPStatus.FORBIDDEN,
    ErrorKind.MALFORMED_REQUEST: HTTPStatus.BAD_REQUEST,
    ErrorKind.CREATE_FAILED: HTTPStatus.INTERNAL_SERVER_ERROR,
    ErrorKind.UPDATE_FAILED: HTTPStatus.INTERNAL_SERVER_ERROR,
    ErrorKind.DELETE_FAILED: HTTPStatus.REQUEST_TIMEOUT,
    ErrorKind.STORE_UNAVAILABLE: HTTPStatus.SERVICE_UNAVAILABLE,
    ErrorKind.TIMEOUT: HTTPStatus.GATEWAY_TIMEOUT,
    ErrorKind.INVARIANT_VIOLATION: HTTPStatus.INTERNAL_SERVER_ERROR,
}

def _split(value: str | None) -> list[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def user_from_headers(request: Request) -> User | None:
    """Resolve the caller from headers; no identity headers means a system caller."""
    headers = request.headers
    name = headers.get(USER_HEADER)
    tenant = headers.get(TENANT_HEADER)
    roles = _split(headers.get(ROLES_HEADER))
    backend_roles = _split(headers.get(BACKEND_ROLES_HEADER))
    if name is None and tenant is None and not roles and not backend_roles:
        return None
    return User(
        name=name or "",
        roles=tuple(roles),
        backend_roles=tuple(backend_roles),
        requested_tenant=tenant,
    )


def error_response(status: HTTPStatus, kind: str, reason: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.value,
        content={"status": status.value, "error": {"type": kind, "reason": reason}},
    )


def _parse_types(value: str | None) -> list[ObjectType]:
    types: list[ObjectType] = []
    for tag in _split(value):
        object_type = ObjectType.from_tag_or_default(tag)
        if object_type is ObjectType.NONE:
            raise MalformedRequestError(f"Unknown object type '{tag}'")
        types.append(object_type)
    return types


router = APIRouter(prefix=BASE_URI)


def _actions(request: Request) -> ObservabilityActions:
    return request.app.state.actions


def _user(request: Request) -> User | None:
    return request.app.state.user_provider(request)


@router.post("/object")
def create_object(request: Request, body: Any = Body(default=None)) -> dict[str, Any]:
    actions = _actions(request)
    parsed = actions.index.codec.parse_object(body)
    response = actions.create(CreateObjectRequest(parsed.object, parsed.object_id), _user(request))
    return response.to_json()


@router.put("/object/{object_id}")
def update_object(
    request: Request, object_id: str, body: Any = Body(default=None)
) -> dict[str, Any]:
    actions = _actions(request)
    parsed = actions.index.codec.parse_object(body)
    response = actions.update(UpdateObjectRequest(object_id, parsed.object), _user(request))
    return response.to_json()


@router.get("/object/{object_id}")
def get_object(request: Request, object_id: str) -> dict[str, Any]:
    actions = _actions(request)
    response = actions.get(GetObjectRequest(object_ids=[object_id]), _user(request))
    return response.to_json(actions.index.codec)


@router.get("/object")
def list_objects(
    request: Request,
    object_id_list: Optional[str] = Query(None, alias="objectIdList"),
    object_type: Optional[str] = Query(None, alias="type"),
    sort_field: Optional[str] = Query(None, alias="sortField"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    from_index: Optional[int] = Query(None, alias="fromIndex"),
    max_items: Optional[int] = Query(None, alias="maxItems"),
) -> dict[str, Any]:
    actions = _actions(request)
    types = _parse_types(object_type)
    # Parameters outside the filter allow-list are ignored.
    allowed = actions.index.query_builder.filter_param_names(types)
    filter_params = {k: v for k, v in request.query_params.items() if k in allowed}
    get_request = GetObjectRequest(
        object_ids=_split(object_id_list),
        types=types,
        from_index=from_index,
        max_items=max_items,
        sort_field=sort_field,
        sort_order=sort_order,
        filter_params=filter_params,
    )
    response = actions.get(get_request, _user(request))
    return response.to_json(actions.index.codec)


@router.delete("/object/{object_id}")
def delete_object(request: Request, object_id: str) -> dict[str, Any]:
    actions = _actions(request)
    return actions.delete(DeleteObjectRequest([object_id]), _user(request)).to_json()


@router.delete("/object")
def delete_objects(
    request: Request, object_id_list: Optional[str] = Query(None, alias="objectIdList")
) -> dict[str, Any]:
    actions = _actions(request)
    ids = _split(object_id_list)
    return actions.delete(DeleteObjectRequest(ids), _user(request)).to_json()


def create_app(
    actions: ObservabilityActions, user_provider: UserInfoProvider | None = None
) -> FastAPI:
    """Build the FastAPI application serving the observability object routes."""
    app = FastAPI(title="Observability Objects API", version="0.1.0")
    app.state.actions = actions
    app.state.user_provider = user_provider or user_from_headers

    @app.exception_handler(ObservabilityError)
    async def handle_observability_error(request: Request, exc: ObservabilityError):
        status = STATUS_BY_KIND.get(exc.kind, HTTPStatus.INTERNAL_SERVER_ERROR)
        if status.value >= 500:
            logger.warning("observability:%s %s failed: %s", request.method, request.url.path, exc)
        return error_response(status, exc.kind.value, str(exc))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        reasons = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}"
            for err in exc.errors()
        )
        return error_response(
            HTTPStatus.BAD_REQUEST, ErrorKind.MALFORMED_REQUEST.value, reasons or "invalid request"
        )

    app.include_router(router)
    return app
