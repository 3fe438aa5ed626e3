"""Tests for the attribute resolver and the policy selector."""
from __future__ import annotations

from datetime import timedelta

import pytest
from bson import ObjectId

from campus.abac.attributes import AttributeResolver
from campus.abac.exceptions import SubjectNotFoundError
from campus.abac.models import UserAttribute
from campus.abac.selector import PolicySelector

from conftest import FakeAttributeStore, FakePolicyStore, FakeUserStore, make_policy


@pytest.mark.asyncio
async def test_resolve_builds_bag(user_store, attribute_store, now):
    resolver = AttributeResolver(user_store, attribute_store)
    attrs = await resolver.resolve("u1", now)

    assert attrs["user_id"] == "u1"
    assert attrs["username"] == "alice"
    assert attrs["is_super_admin"] is False
    assert attrs["departments"] == ["D1", "D2"]
    assert attrs["primary_department"] == "D1"
    assert attrs["roles"] == ["hod", "faculty"]
    assert attrs["current_day"] == "wednesday"
    assert attrs["current_hour"] == 10


@pytest.mark.asyncio
async def test_resolve_unknown_user(attribute_store, now):
    resolver = AttributeResolver(FakeUserStore(), attribute_store)
    with pytest.raises(SubjectNotFoundError):
        await resolver.resolve("ghost", now)


@pytest.mark.asyncio
async def test_department_ids_are_stringified(now):
    d1 = ObjectId()
    users = FakeUserStore(
        {"u9": {"_id": "u9", "primary_department": d1, "department_roles": [{"department_id": d1, "role": "hod"}]}}
    )
    attrs = await AttributeResolver(users, FakeAttributeStore()).resolve("u9", now)
    assert attrs["departments"] == [str(d1)]
    assert attrs["primary_department"] == str(d1)


@pytest.mark.asyncio
async def test_stored_attributes_override_and_expire(user_store, now):
    store = FakeAttributeStore(
        [
            UserAttribute(user_id="u1", attribute_name="designation", attribute_value="professor"),
            UserAttribute(user_id="u1", attribute_name="roles", attribute_value=["principal"]),
            UserAttribute(
                user_id="u1",
                attribute_name="acting_dean",
                attribute_value=True,
                valid_until=now - timedelta(days=1),
            ),
            UserAttribute(user_id="u1", attribute_name="on_leave", attribute_value=True, is_active=False),
            UserAttribute(user_id="u2", attribute_name="designation", attribute_value="clerk"),
        ]
    )
    attrs = await AttributeResolver(user_store, store).resolve("u1", now)

    assert attrs["designation"] == "professor"
    assert attrs["roles"] == ["principal"]
    assert "acting_dean" not in attrs
    assert "on_leave" not in attrs


@pytest.mark.asyncio
async def test_selector_filters_and_orders(now):
    store = FakePolicyStore(
        [
            make_policy(name="late", priority=50),
            make_policy(name="early", priority=10),
            make_policy(name="tie", priority=50),
            make_policy(name="inactive", priority=1, is_active=False),
            make_policy(name="other-model", priority=1, resource={"model_name": "Course"}),
            make_policy(name="write-only", priority=1, actions=["update"]),
            make_policy(name="expired", priority=1, time_based_access={"valid_until": now - timedelta(hours=1)}),
        ]
    )
    selected = await PolicySelector(store).select("Department", "read", now)
    assert [p.name for p in selected] == ["early", "late", "tie"]
