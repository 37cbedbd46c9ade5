"""Tests for the access-controlled operation layer."""

from __future__ import annotations

from datetime import timedelta
from http import HTTPStatus

import pytest

from observability_objects.access import User
from observability_objects.envelope import ObservabilityObject
from observability_objects.errors import (
    ForbiddenError,
    MalformedRequestError,
    NotFoundError,
    UnacceptableFilterFieldError,
)
from observability_objects.messages import (
    CreateObjectRequest,
    DeleteObjectRequest,
    GetObjectRequest,
    UpdateObjectRequest,
)
from observability_objects.types import Notebook, ObjectType, SavedQuery


def _notebook(name: str) -> ObservabilityObject:
    return ObservabilityObject(ObjectType.NOTEBOOK, Notebook(name=name))


def _create(actions, user, name="test", object_type=ObjectType.NOTEBOOK, object_id=None):
    payload = Notebook(name=name) if object_type is ObjectType.NOTEBOOK else SavedQuery(name=name)
    request = CreateObjectRequest(ObservabilityObject(object_type, payload), object_id)
    return actions.create(request, user).object_id


def _get_one(actions, object_id, user):
    return actions.get(GetObjectRequest(object_ids=[object_id]), user).search_result.objects[0]


def _list_ids(actions, user, **kwargs) -> list[str]:
    response = actions.get(GetObjectRequest(**kwargs), user)
    return [info.id for info in response.search_result.objects]


class TestLifecycle:
    def test_end_to_end(self, actions, alice):
        object_id = _create(actions, alice, "test")

        info = _get_one(actions, object_id, alice)
        meta = info.doc.metadata
        assert meta.tenant == "t1"
        assert meta.created_time == meta.updated_time
        assert info.doc.payload == Notebook(name="test")

        actions.update(UpdateObjectRequest(object_id, _notebook("renamed")), alice)
        updated = _get_one(actions, object_id, alice)
        assert updated.doc.payload == Notebook(name="renamed")
        assert updated.doc.metadata.created_time == meta.created_time
        assert updated.doc.metadata.updated_time > meta.updated_time

        response = actions.delete(DeleteObjectRequest([object_id]), alice)
        assert response.status_by_id == {object_id: HTTPStatus.OK}
        with pytest.raises(NotFoundError):
            actions.get(GetObjectRequest(object_ids=[object_id]), alice)

    def test_create_stamps_access_grants(self, actions, alice):
        object_id = _create(actions, alice)
        meta = _get_one(actions, object_id, None).doc.metadata
        assert meta.access == ("User:alice", "Role:reader", "BERole:ops")

    def test_system_caller_uses_default_tenant(self, actions):
        object_id = _create(actions, None)
        meta = _get_one(actions, object_id, None).doc.metadata
        assert meta.tenant == ""
        assert meta.access == ()

    def test_create_with_caller_id(self, actions, alice):
        assert _create(actions, alice, object_id="chosen") == "chosen"

    def test_update_refreshes_tenant_and_access(self, actions, alice, admin):
        object_id = _create(actions, alice)
        actions.update(UpdateObjectRequest(object_id, _notebook("x")), admin)
        meta = _get_one(actions, object_id, admin).doc.metadata
        assert meta.access == ("User:root", "Role:all_access", "BERole:infra")

    def test_update_can_change_type(self, actions, alice):
        object_id = _create(actions, alice)
        new = ObservabilityObject(ObjectType.SAVED_QUERY, SavedQuery(name="q"))
        actions.update(UpdateObjectRequest(object_id, new), alice)
        assert _get_one(actions, object_id, alice).doc.object_type is ObjectType.SAVED_QUERY

    def test_clock_going_backwards_keeps_updated_after_created(self, actions, clock, alice):
        object_id = _create(actions, alice)
        clock.now -= timedelta(hours=1)
        actions.update(UpdateObjectRequest(object_id, _notebook("x")), alice)
        meta = _get_one(actions, object_id, alice).doc.metadata
        assert meta.updated_time == meta.created_time


class TestAuthorization:
    def test_missing_id_is_not_found_even_when_unauthorized(self, rbac_actions, bob):
        with pytest.raises(NotFoundError):
            rbac_actions.update(UpdateObjectRequest("missing", _notebook("x")), bob)
        with pytest.raises(NotFoundError):
            rbac_actions.delete(DeleteObjectRequest(["missing"]), bob)

    def test_other_backend_role_is_forbidden(self, rbac_actions, alice, bob):
        object_id = _create(rbac_actions, alice)
        with pytest.raises(ForbiddenError) as exc_info:
            rbac_actions.get(GetObjectRequest(object_ids=[object_id]), bob)
        assert exc_info.value.object_id == object_id
        with pytest.raises(ForbiddenError):
            rbac_actions.update(UpdateObjectRequest(object_id, _notebook("x")), bob)
        with pytest.raises(ForbiddenError):
            rbac_actions.delete(DeleteObjectRequest([object_id]), bob)
        assert _get_one(rbac_actions, object_id, alice).doc.payload == Notebook(name="test")

    def test_other_tenant_is_forbidden(self, actions, alice):
        object_id = _create(actions, alice)
        other = User(name="alice", backend_roles=("ops",), requested_tenant="t2")
        with pytest.raises(ForbiddenError):
            actions.get(GetObjectRequest(object_ids=[object_id]), other)

    def test_rbac_rejects_user_without_backend_roles(self, rbac_actions):
        with pytest.raises(ForbiddenError):
            _create(rbac_actions, User(name="carol", requested_tenant="t1"))

    def test_admin_sees_objects_of_other_roles(self, rbac_actions, alice, admin):
        object_id = _create(rbac_actions, alice)
        assert _get_one(rbac_actions, object_id, admin).id == object_id


class TestBulk:
    def test_get_by_ids(self, actions, alice):
        a = _create(actions, alice, "a")
        b = _create(actions, alice, "b")
        response = actions.get(GetObjectRequest(object_ids=[b, a]), alice)
        assert response.search_result.total_hits == 2
        assert [i.id for i in response.search_result.objects] == [b, a]

    def test_get_by_ids_missing(self, actions, alice):
        a = _create(actions, alice, "a")
        with pytest.raises(NotFoundError) as exc_info:
            actions.get(GetObjectRequest(object_ids=[a, "gone"]), alice)
        assert exc_info.value.object_ids == ["gone"]

    def test_bulk_delete(self, actions, alice):
        a = _create(actions, alice, "a")
        b = _create(actions, alice, "b")
        response = actions.delete(DeleteObjectRequest([a, b]), alice)
        assert response.status_by_id == {a: HTTPStatus.OK, b: HTTPStatus.OK}
        assert response.to_json() == {"deleteResponseList": {a: "OK", b: "OK"}}

    def test_repeated_ids_are_reported_once(self, actions, alice):
        a = _create(actions, alice, "a")
        b = _create(actions, alice, "b")
        response = actions.get(GetObjectRequest(object_ids=[a, b, a]), alice)
        assert [i.id for i in response.search_result.objects] == [a, b]
        response = actions.delete(DeleteObjectRequest([a, a]), alice)
        assert response.to_json() == {"deleteResponseList": {a: "OK"}}
        response = actions.delete(DeleteObjectRequest([b, b]), alice)
        assert response.to_json() == {"deleteResponseList": {b: "OK"}}
        with pytest.raises(NotFoundError):
            actions.get(GetObjectRequest(object_ids=[a]), alice)

    def test_bulk_delete_missing_deletes_nothing(self, actions, alice):
        a = _create(actions, alice, "a")
        with pytest.raises(NotFoundError) as exc_info:
            actions.delete(DeleteObjectRequest([a, "B"]), alice)
        assert exc_info.value.object_ids == ["B"]
        assert _get_one(actions, a, alice).id == a

    def test_bulk_delete_forbidden_deletes_nothing(self, rbac_actions, alice, bob):
        a = _create(rbac_actions, alice, "a")
        b = _create(rbac_actions, bob, "b")
        with pytest.raises(ForbiddenError):
            rbac_actions.delete(DeleteObjectRequest([b, a]), bob)
        assert _get_one(rbac_actions, b, bob).id == b

    def test_empty_delete_rejected(self, actions, alice):
        with pytest.raises(MalformedRequestError):
            actions.delete(DeleteObjectRequest([]), alice)


class TestList:
    def test_rbac_listing_is_scoped_to_backend_roles(self, rbac_actions, alice, bob, admin):
        a = _create(rbac_actions, alice, "a")
        b = _create(rbac_actions, bob, "b")
        assert _list_ids(rbac_actions, alice) == [a]
        assert _list_ids(rbac_actions, bob) == [b]
        assert _list_ids(rbac_actions, admin) == [a, b]

    def test_listing_is_scoped_to_tenant(self, actions, alice):
        a = _create(actions, alice, "a")
        _create(actions, User(name="zed", requested_tenant="t2"), "z")
        assert _list_ids(actions, alice) == [a]

    def test_listed_objects_pass_access_check(self, rbac_actions, alice, bob):
        _create(rbac_actions, alice, "a")
        _create(rbac_actions, bob, "b")
        response = rbac_actions.get(GetObjectRequest(), alice)
        for info in response.search_result.objects:
            meta = info.doc.metadata
            assert rbac_actions.access.does_user_have_access(alice, meta.tenant, meta.access)

    def test_type_filter_and_sort(self, actions, alice):
        nb = _create(actions, alice, "zeta")
        q = _create(actions, alice, "alpha", object_type=ObjectType.SAVED_QUERY)
        assert _list_ids(actions, alice, types=[ObjectType.SAVED_QUERY]) == [q]
        assert _list_ids(actions, alice, sort_field="lastUpdatedTimeMs", sort_order="desc") == [
            q,
            nb,
        ]
        beta = _create(actions, alice, "beta")
        by_name = _list_ids(actions, alice, types=[ObjectType.NOTEBOOK], sort_field="name")
        assert by_name == [beta, nb]

    def test_name_sort_across_types_groups_by_type(self, actions, alice):
        b = _create(actions, alice, "b")
        d = _create(actions, alice, "d")
        a = _create(actions, alice, "a", object_type=ObjectType.SAVED_QUERY)
        c = _create(actions, alice, "c", object_type=ObjectType.SAVED_QUERY)
        assert _list_ids(actions, alice, sort_field="name") == [b, d, a, c]

    def test_paging(self, actions, alice):
        ids = [_create(actions, alice, f"n{i}") for i in range(5)]
        response = actions.get(GetObjectRequest(from_index=2, max_items=2), alice)
        assert response.search_result.total_hits == 5
        assert response.search_result.start_index == 2
        assert [i.id for i in response.search_result.objects] == ids[2:4]

    def test_bad_filter_rejected(self, actions, alice):
        with pytest.raises(UnacceptableFilterFieldError):
            actions.get(GetObjectRequest(filter_params={"color": "red"}), alice)

    def test_access_hidden_from_non_admin(self, actions, codec, alice, admin):
        _create(actions, alice)
        as_alice = actions.get(GetObjectRequest(), alice).to_json(codec)
        as_admin = actions.get(GetObjectRequest(), admin).to_json(codec)
        assert "access" not in as_alice["observabilityObjectList"][0]
        assert as_admin["observabilityObjectList"][0]["access"] == [
            "User:alice",
            "Role:reader",
            "BERole:ops",
        ]
        assert as_alice["totalHits"] == 1
        assert as_alice["startIndex"] == 0
        assert as_alice["totalHitRelation"] == "eq"
