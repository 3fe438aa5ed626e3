"""
Department Routes — read endpoints guarded by dynamic ABAC.

Endpoints:
    GET  /                 List departments within the caller's data scope
    GET  /{department_id}  Get one department after an instance-level check
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from campus.abac.dependencies import check_dynamic_access, get_data_filter
from campus.config import get_database
from campus.utils import success_response
from .service import DepartmentService

departments_router = APIRouter()


@departments_router.get("/")
async def list_departments(
    request: Request,
    q: Optional[str] = Query(None, description="Search by name or code"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    abac: dict = Depends(check_dynamic_access("Department", "read")),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    svc = DepartmentService(db)
    departments, total = await svc.list_departments(
        scope_filter=get_data_filter(request),
        query=q,
        limit=limit,
        offset=offset,
    )
    return success_response(
        data={"departments": departments, "total": total, "limit": limit, "offset": offset}
    )


@departments_router.get("/{department_id}")
async def get_department(
    request: Request,
    department_id: str,
    abac: dict = Depends(check_dynamic_access("Department", "read", id_param="department_id")),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    # super admins skip the instance check, so the document may not be loaded yet
    department = abac.get("resource")
    if department is None:
        department = await DepartmentService(db).get_department(department_id)
    return success_response(data=department)
