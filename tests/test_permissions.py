from __future__ import annotations

import pytest
from pydantic import ValidationError

from campus.abac.dependencies import collection_for_model
from campus.abac.schemas import CreatePolicyRequest, SetUserAttributeRequest
from campus.rbac.permissions import check_permission


@pytest.mark.parametrize(
    "granted,required,expected",
    [
        (["*:*"], "abac:manage", True),
        (["abac:*"], "abac:manage", True),
        (["abac:read"], "abac:read", True),
        (["abac:read"], "abac:manage", False),
        (["departments:*"], "abac:read", False),
        (["abac"], "abac:read", False),
        ([], "abac:read", False),
        (["*:*"], "malformed", False),
    ],
)
def test_check_permission(granted, required, expected):
    assert check_permission(granted, required) is expected


@pytest.mark.parametrize(
    "model_name,collection",
    [("Department", "departments"), ("CourseSection", "course_sections"), ("user", "users")],
)
def test_collection_for_model(model_name, collection):
    assert collection_for_model(model_name) == collection


def test_policy_needs_an_action():
    with pytest.raises(ValidationError):
        CreatePolicyRequest(name="p", resource={"model_name": "Department"}, actions=[])


def test_policy_rejects_unknown_weekday():
    with pytest.raises(ValidationError):
        CreatePolicyRequest(
            name="p",
            resource={"model_name": "Department"},
            actions=["read"],
            time_based_access={"allowed_days": ["Funday"]},
        )


def test_same_as_user_needs_reference():
    with pytest.raises(ValidationError):
        CreatePolicyRequest(
            name="p",
            resource={
                "model_name": "Department",
                "resource_conditions": [{"attribute": "_id", "operator": "same_as_user"}],
            },
            actions=["read"],
        )


def test_policy_defaults():
    policy = CreatePolicyRequest(name="p", resource={"model_name": "Department"}, actions=["read"])
    data = policy.model_dump()
    assert data["effect"] == "allow"
    assert data["priority"] == 100
    assert data["policy_group"] == "default"


def test_user_attribute_value_required():
    with pytest.raises(ValidationError):
        SetUserAttributeRequest(attribute_name="designation", attribute_value=None)
