"""Scope-filtered reads on the departments collection."""

from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from campus.utils import as_lookup_id, serialize_mongo_doc
from campus.utils.exceptions import NotFoundError


class DepartmentService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.departments = db["departments"]

    async def list_departments(
        self,
        scope_filter: Optional[dict] = None,
        query: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[dict], int]:
        """
        List departments the caller may see.

        ``scope_filter`` is the MongoDB filter derived from the caller's
        ABAC data scope and is ANDed with the search.
        """
        filters: dict = {"is_active": {"$ne": False}}
        if query:
            filters["$or"] = [
                {"name": {"$regex": query, "$options": "i"}},
                {"code": {"$regex": query, "$options": "i"}},
            ]
        if scope_filter:
            filters = {"$and": [filters, scope_filter]}

        total = await self.departments.count_documents(filters)
        cursor = (
            self.departments.find(filters)
            .sort("name", 1)
            .skip(offset)
            .limit(limit)
        )
        docs = [serialize_mongo_doc(d) async for d in cursor]
        return docs, total

    async def get_department(self, department_id: str) -> dict:
        doc = await self.departments.find_one({"_id": as_lookup_id(department_id)})
        if not doc:
            raise NotFoundError("Department not found")
        return serialize_mongo_doc(doc)
