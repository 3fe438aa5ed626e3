"""
ABAC Admin Routes — manage policies and attributes, test decisions,
browse the evaluation log.

Endpoints:
    GET    /attributes                               List active attribute definitions
    POST   /attributes                               Create attribute definition
    PUT    /attributes/{id}                          Update attribute definition
    DELETE /attributes/{id}                          Deactivate attribute definition
    GET    /policies                                 List policies (filter by model, active)
    POST   /policies                                 Create policy
    POST   /policies/test                            Evaluate a request and return the trace
    PUT    /policies/{id}                            Update policy
    DELETE /policies/{id}                            Deactivate policy
    GET    /users/{user_id}/attributes               List a user's active attributes
    POST   /users/{user_id}/attributes               Set (upsert) a user attribute
    DELETE /users/{user_id}/attributes/{name}        Deactivate a user attribute
    GET    /evaluations                              Paginated evaluation log
    GET    /models                                   Registered resource models
    GET    /my-scope/{model_name}                    The caller's data scope on a model
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from campus.config import get_database
from campus.rbac.decorators import require_permission
from campus.utils import serialize_mongo_doc, success_response
from .dependencies import get_engine
from .engine import DecisionEngine
from .models import Decision, PolicyAction
from .schemas import (
    CreateAttributeDefinitionRequest,
    CreatePolicyRequest,
    PolicyTestRequest,
    SetUserAttributeRequest,
    UpdateAttributeDefinitionRequest,
    UpdatePolicyRequest,
)
from .service import AbacAdminService

abac_router = APIRouter()


def _service(request: Request, db: AsyncIOMotorDatabase) -> AbacAdminService:
    return AbacAdminService(db, getattr(request.app.state, "policy_cache", None))


# ── Attribute definitions ────────────────────────────────────────


@abac_router.get("/attributes")
@require_permission("abac:read")
async def list_attributes(
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    attributes = await _service(request, db).list_attribute_definitions()
    return success_response(data=attributes)


@abac_router.post("/attributes")
@require_permission("abac:manage")
async def create_attribute(
    request: Request,
    body: CreateAttributeDefinitionRequest,
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    attribute = await _service(request, db).create_attribute_definition(body)
    return success_response(data=attribute, message="Attribute created", code=201)


@abac_router.put("/attributes/{attribute_id}")
@require_permission("abac:manage")
async def update_attribute(
    request: Request,
    attribute_id: str,
    body: UpdateAttributeDefinitionRequest,
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    attribute = await _service(request, db).update_attribute_definition(attribute_id, body)
    return success_response(data=attribute, message="Attribute updated")


@abac_router.delete("/attributes/{attribute_id}")
@require_permission("abac:manage")
async def delete_attribute(
    request: Request,
    attribute_id: str,
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    await _service(request, db).deactivate_attribute_definition(attribute_id)
    return success_response(message="Attribute deactivated")


# ── Policies ─────────────────────────────────────────────────────


@abac_router.get("/policies")
@require_permission("abac:read")
async def list_policies(
    request: Request,
    model_name: Optional[str] = Query(None, description="Department, Course, ..."),
    is_active: Optional[bool] = Query(None),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    """
    List policy rules, lowest priority number first.

    Permission: abac:read
    Collection: policy_rules
    """
    policies = await _service(request, db).list_policies(
        model_name=model_name, is_active=is_active
    )
    return success_response(data=policies)


@abac_router.post("/policies")
@require_permission("abac:manage")
async def create_policy(
    request: Request,
    body: CreatePolicyRequest,
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    policy = await _service(request, db).create_policy(body, created_by=request.state.user_id)
    return success_response(data=policy, message="Policy created", code=201)


@abac_router.post("/policies/test")
@require_permission("abac:manage")
async def test_policy(
    request: Request,
    body: PolicyTestRequest,
    engine: DecisionEngine = Depends(get_engine),
):
    """
    Run a full evaluation for an arbitrary user/resource/action and return
    the decision with every policy and condition trace. The evaluation is
    audited like any other.

    Permission: abac:manage
    """
    result = await engine.evaluate(body.user_id, body.resource, body.action, body.context)
    data = result.model_dump()
    data["matched_policies"] = [p.policy_name for p in result.matched_policies]
    return success_response(data=serialize_mongo_doc(data))


@abac_router.put("/policies/{policy_id}")
@require_permission("abac:manage")
async def update_policy(
    request: Request,
    policy_id: str,
    body: UpdatePolicyRequest,
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    policy = await _service(request, db).update_policy(
        policy_id, body, modified_by=request.state.user_id
    )
    return success_response(data=policy, message="Policy updated")


@abac_router.delete("/policies/{policy_id}")
@require_permission("abac:manage")
async def delete_policy(
    request: Request,
    policy_id: str,
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    await _service(request, db).deactivate_policy(policy_id, modified_by=request.state.user_id)
    return success_response(message="Policy deactivated")


# ── User attributes ──────────────────────────────────────────────


@abac_router.get("/users/{user_id}/attributes")
@require_permission("abac:read")
async def list_user_attributes(
    request: Request,
    user_id: str,
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    attributes = await _service(request, db).list_user_attributes(user_id)
    return success_response(data=attributes)


@abac_router.post("/users/{user_id}/attributes")
@require_permission("abac:manage")
async def set_user_attribute(
    request: Request,
    user_id: str,
    body: SetUserAttributeRequest,
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    attribute = await _service(request, db).set_user_attribute(
        user_id, body, set_by=request.state.user_id
    )
    return success_response(data=attribute, message="User attribute set")


@abac_router.delete("/users/{user_id}/attributes/{attribute_name}")
@require_permission("abac:manage")
async def delete_user_attribute(
    request: Request,
    user_id: str,
    attribute_name: str,
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    await _service(request, db).remove_user_attribute(user_id, attribute_name)
    return success_response(message="User attribute removed")


# ── Evaluation log ───────────────────────────────────────────────


@abac_router.get("/evaluations")
@require_permission("abac:read")
async def list_evaluations(
    request: Request,
    user_id: Optional[str] = Query(None),
    model_name: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    decision: Optional[Decision] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    page: int = Query(1, ge=1),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    """
    Browse the evaluation log, newest first.

    Common queries:
        - Everything one user was denied: ?user_id=xxx&decision=deny
        - Who read departments: ?model_name=Department&action=read

    Permission: abac:read
    Collection: policy_evaluations (TTL-expired)
    """
    evaluations, total = await _service(request, db).list_evaluations(
        user_id=user_id,
        model_name=model_name,
        action=action,
        decision=decision.value if decision else None,
        limit=limit,
        page=page,
    )
    return success_response(
        data={
            "evaluations": evaluations,
            "total": total,
            "page": page,
            "limit": limit,
            "pages": (total + limit - 1) // limit,
        }
    )


# ── Models & scope ───────────────────────────────────────────────


@abac_router.get("/models")
@require_permission("abac:read")
async def list_models(
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    models = await _service(request, db).list_models()
    return success_response(data=models)


@abac_router.get("/my-scope/{model_name}")
async def my_scope(
    request: Request,
    model_name: str,
    action: PolicyAction = Query(PolicyAction.READ),
    engine: DecisionEngine = Depends(get_engine),
):
    """The caller's own data scope on ``model_name``. Any authenticated user."""
    if getattr(request.state, "is_super_admin", False):
        return success_response(data={"has_access": True, "filter": {}})

    scope = await engine.get_data_scope(request.state.user_id, model_name, action.value)
    return success_response(data=scope.model_dump())
