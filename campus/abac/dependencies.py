"""
Dynamic ABAC dependency for resource routes.

Usage:
    @router.get("/")
    async def list_departments(
        request: Request,
        abac: dict = Depends(check_dynamic_access("Department", "read")),
    ):
        query = get_data_filter(request)
        ...

With an id path parameter the document is loaded and the caller is
checked against that instance. Without one the caller's data scope is
computed and handed to the handler as a list filter.
"""

import re
from typing import Any, Dict

from fastapi import Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from starlette.requests import Request

from campus.config import get_database
from campus.utils import as_lookup_id, serialize_mongo_doc
from campus.utils.exceptions import AuthenticationError, NotFoundError, PermissionDeniedError
from .engine import DecisionEngine
from .repository import to_mongo_filter

FULL_ACCESS: Dict[str, Any] = {"has_access": True, "filter": {}}


def get_engine(request: Request) -> DecisionEngine:
    engine = getattr(request.app.state, "abac_engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Access control engine not initialised",
        )
    return engine


def collection_for_model(model_name: str) -> str:
    """``Department`` -> ``departments``, ``CourseSection`` -> ``course_sections``."""
    snake = re.sub(r"(?<!^)(?=[A-Z])", "_", model_name).lower()
    return f"{snake}s"


def request_context(request: Request) -> Dict[str, Any]:
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
        "method": request.method,
        "path": request.url.path,
        "query": dict(request.query_params),
    }


def check_dynamic_access(model_name: str, action: str, id_param: str = "id"):
    """Build a dependency that enforces ABAC on ``model_name`` for ``action``."""

    async def dependency(
        request: Request,
        engine: DecisionEngine = Depends(get_engine),
        db: AsyncIOMotorDatabase = Depends(get_database),
    ) -> Dict[str, Any]:
        user_id = getattr(request.state, "user_id", None)
        if not user_id:
            raise AuthenticationError("Authentication required")

        if getattr(request.state, "is_super_admin", False):
            request.state.abac_context = dict(FULL_ACCESS)
            return request.state.abac_context

        resource_id = request.path_params.get(id_param)

        if resource_id:
            doc = await db[collection_for_model(model_name)].find_one(
                {"_id": as_lookup_id(resource_id)}
            )
            if not doc:
                raise NotFoundError(f"{model_name} not found")

            evaluation = await engine.evaluate(
                user_id,
                {**doc, "model_name": model_name},
                action,
                request_context(request),
            )
            if not evaluation.allowed:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail={
                        "message": "Access denied by policy",
                        "policies": [
                            {"policy_id": p.policy_id, "policy_name": p.policy_name, "effect": p.effect}
                            for p in evaluation.matched_policies
                        ],
                    },
                )

            abac_context = {
                "has_access": True,
                "resource": serialize_mongo_doc(doc),
                "evaluation_time_ms": evaluation.evaluation_time_ms,
            }
        else:
            scope = await engine.get_data_scope(user_id, model_name, action)
            if not scope.has_access:
                raise PermissionDeniedError(f"No {action} access to {model_name}")
            abac_context = scope.model_dump()

        request.state.abac_context = abac_context
        return abac_context

    return dependency


def get_data_filter(request: Request) -> Dict[str, Any]:
    """MongoDB filter for the current caller's data scope (``{}`` when none)."""
    abac_context = getattr(request.state, "abac_context", None) or {}
    return to_mongo_filter(abac_context.get("filter"))
