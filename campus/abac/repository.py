"""
MongoDB-backed ABAC stores.

Collections:
    users                 user records with department_roles / primary_department
    user_attributes       one row per (user_id, attribute_name)
    policy_rules          PolicyRule documents
    policy_evaluations    audit trail, TTL-indexed on timestamp
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo.errors import PyMongoError

from campus.utils import Logger, as_lookup_id
from .exceptions import StoreUnavailableError
from .models import PolicyEvaluationRecord, PolicyRule, UserAttribute
from .stores import AttributeStore, AuditStore, PolicyStore, UserStore

logger = Logger(__name__)

_REFERENCE_FIELDS = ("user_id", "set_by", "created_by", "last_modified_by")

MONGO_OPERATORS: Dict[str, str] = {
    "ne": "$ne",
    "in": "$in",
    "nin": "$nin",
    "gt": "$gt",
    "lt": "$lt",
}


def document_to_model_data(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Move ``_id`` to ``id`` and stringify top-level ObjectId references."""
    data = dict(doc)
    if "_id" in data:
        data["id"] = str(data.pop("_id"))
    for key in _REFERENCE_FIELDS:
        if isinstance(data.get(key), ObjectId):
            data[key] = str(data[key])
    return data


def _unbounded_or(field: str, operator: str, as_of: datetime) -> Dict[str, Any]:
    return {
        "$or": [
            {field: {"$exists": False}},
            {field: None},
            {field: {operator: as_of}},
        ]
    }


def to_mongo_filter(scope_filter: Optional[Dict[str, Dict[str, Any]]]) -> Dict[str, Any]:
    """
    Translate a data-scope filter into a MongoDB query.

        {"department_id": {"eq": "D1"}, "level": {"gt": 2}}
        -> {"department_id": "D1", "level": {"$gt": 2}}
    """
    query: Dict[str, Any] = {}
    for field, clause in (scope_filter or {}).items():
        for op, value in clause.items():
            if op == "eq":
                query[field] = value
            elif op in MONGO_OPERATORS:
                query[field] = {MONGO_OPERATORS[op]: value}
    return query


class MongoUserStore(UserStore):
    def __init__(self, db: AsyncIOMotorDatabase):
        self.users = db.users

    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.users.find_one({"_id": as_lookup_id(str(user_id))})
        except PyMongoError as e:
            raise StoreUnavailableError(f"User store unavailable: {e}") from e


class MongoAttributeStore(AttributeStore):
    def __init__(self, db: AsyncIOMotorDatabase):
        self.attributes = db.user_attributes

    async def find_active_user_attributes(
        self, user_id: str, as_of: datetime
    ) -> List[UserAttribute]:
        query = {
            "user_id": str(user_id),
            "is_active": True,
            **_unbounded_or("valid_until", "$gte", as_of),
        }
        try:
            cursor = self.attributes.find(query)
            return [
                UserAttribute.model_validate(document_to_model_data(doc))
                async for doc in cursor
            ]
        except PyMongoError as e:
            raise StoreUnavailableError(f"Attribute store unavailable: {e}") from e


class MongoPolicyStore(PolicyStore):
    def __init__(self, db: AsyncIOMotorDatabase):
        self.policies = db.policy_rules

    async def find_candidate_policies(
        self, model_name: str, action: str, as_of: datetime
    ) -> List[PolicyRule]:
        query = {
            "resource.model_name": model_name,
            "actions": action,
            "is_active": True,
            "$and": [
                _unbounded_or("time_based_access.valid_from", "$lte", as_of),
                _unbounded_or("time_based_access.valid_until", "$gte", as_of),
            ],
        }
        try:
            cursor = self.policies.find(query).sort([("priority", 1), ("_id", 1)])
            docs = [doc async for doc in cursor]
        except PyMongoError as e:
            raise StoreUnavailableError(f"Policy store unavailable: {e}") from e

        policies = []
        for doc in docs:
            try:
                policies.append(PolicyRule.model_validate(document_to_model_data(doc)))
            except ValidationError as e:
                logger.warning(f"Skipping invalid policy {doc.get('_id')}: {e.error_count()} error(s)")
        return policies


class MongoAuditStore(AuditStore):
    def __init__(self, db: AsyncIOMotorDatabase):
        self.evaluations = db.policy_evaluations

    async def append_evaluation(self, record: PolicyEvaluationRecord) -> None:
        try:
            await self.evaluations.insert_one(record.model_dump())
        except PyMongoError as e:
            raise StoreUnavailableError(f"Audit store unavailable: {e}") from e
