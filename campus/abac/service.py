"""
ABAC Admin Service — manage attribute definitions, policy rules, user
attributes, and browse the evaluation log.

Collections:
    attribute_definitions, policy_rules, user_attributes,
    policy_evaluations, models

Every policy write invalidates the engine's policy cache (when one is
configured) so the next evaluation sees the change.
"""

from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from campus.utils import Logger, parse_object_id, serialize_mongo_doc
from campus.utils.exceptions import DuplicateError, NotFoundError
from .cache import CachedPolicyStore
from .schemas import (
    CreateAttributeDefinitionRequest,
    CreatePolicyRequest,
    SetUserAttributeRequest,
    UpdateAttributeDefinitionRequest,
    UpdatePolicyRequest,
)

logger = Logger(__name__)


def _object_id(id_str: str, label: str) -> ObjectId:
    try:
        return parse_object_id(id_str)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {label} ID")


class AbacAdminService:
    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        policy_cache: Optional[CachedPolicyStore] = None,
    ):
        self.db = db
        self.policy_cache = policy_cache
        self.definitions = db["attribute_definitions"]
        self.policies = db["policy_rules"]
        self.user_attributes = db["user_attributes"]
        self.evaluations = db["policy_evaluations"]
        self.models = db["models"]

    def _policies_changed(self) -> None:
        if self.policy_cache is not None:
            self.policy_cache.invalidate()

    # ── Attribute definitions ─────────────────────────────────────

    async def list_attribute_definitions(self) -> list[dict]:
        cursor = self.definitions.find({"is_active": True}).sort(
            [("category", ASCENDING), ("name", ASCENDING)]
        )
        return [serialize_mongo_doc(d) async for d in cursor]

    async def create_attribute_definition(
        self, body: CreateAttributeDefinitionRequest
    ) -> dict:
        if await self.definitions.find_one({"name": body.name}):
            raise DuplicateError(f"Attribute '{body.name}' already exists")

        now = datetime.now(timezone.utc)
        doc = {**body.model_dump(exclude={"id"}), "created_at": now, "updated_at": now}
        try:
            result = await self.definitions.insert_one(doc)
        except DuplicateKeyError:
            raise DuplicateError(f"Attribute '{body.name}' already exists")

        doc["_id"] = result.inserted_id
        logger.info(f"Attribute definition created: {body.name}")
        return serialize_mongo_doc(doc)

    async def update_attribute_definition(
        self, definition_id: str, body: UpdateAttributeDefinitionRequest
    ) -> dict:
        oid = _object_id(definition_id, "attribute")
        update = body.model_dump(exclude_unset=True)
        update["updated_at"] = datetime.now(timezone.utc)

        doc = await self.definitions.find_one_and_update(
            {"_id": oid},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
        )
        if not doc:
            raise NotFoundError("Attribute not found")
        return serialize_mongo_doc(doc)

    async def deactivate_attribute_definition(self, definition_id: str) -> None:
        oid = _object_id(definition_id, "attribute")
        result = await self.definitions.update_one(
            {"_id": oid},
            {"$set": {"is_active": False, "updated_at": datetime.now(timezone.utc)}},
        )
        if result.matched_count == 0:
            raise NotFoundError("Attribute not found")

    # ── Policy rules ──────────────────────────────────────────────

    async def list_policies(
        self,
        model_name: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> list[dict]:
        filters: dict = {}
        if model_name:
            filters["resource.model_name"] = model_name
        if is_active is not None:
            filters["is_active"] = is_active

        cursor = self.policies.find(filters).sort(
            [("priority", ASCENDING), ("created_at", DESCENDING)]
        )
        return [serialize_mongo_doc(d) async for d in cursor]

    async def create_policy(self, body: CreatePolicyRequest, created_by: str) -> dict:
        now = datetime.now(timezone.utc)
        doc = {
            **body.model_dump(),
            "created_by": created_by,
            "last_modified_by": created_by,
            "created_at": now,
            "updated_at": now,
        }
        result = await self.policies.insert_one(doc)
        doc["_id"] = result.inserted_id
        self._policies_changed()

        logger.info(f"Policy created: {body.name} by {created_by}")
        return serialize_mongo_doc(doc)

    async def update_policy(
        self, policy_id: str, body: UpdatePolicyRequest, modified_by: str
    ) -> dict:
        oid = _object_id(policy_id, "policy")
        update = body.model_dump(exclude_unset=True)
        update["last_modified_by"] = modified_by
        update["updated_at"] = datetime.now(timezone.utc)

        doc = await self.policies.find_one_and_update(
            {"_id": oid},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
        )
        if not doc:
            raise NotFoundError("Policy not found")
        self._policies_changed()

        logger.info(f"Policy updated: {doc.get('name')} by {modified_by}")
        return serialize_mongo_doc(doc)

    async def deactivate_policy(self, policy_id: str, modified_by: str) -> None:
        oid = _object_id(policy_id, "policy")
        result = await self.policies.update_one(
            {"_id": oid},
            {
                "$set": {
                    "is_active": False,
                    "last_modified_by": modified_by,
                    "updated_at": datetime.now(timezone.utc),
                }
            },
        )
        if result.matched_count == 0:
            raise NotFoundError("Policy not found")
        self._policies_changed()
        logger.info(f"Policy deactivated: {policy_id} by {modified_by}")

    # ── User attributes ───────────────────────────────────────────

    async def list_user_attributes(self, user_id: str) -> list[dict]:
        cursor = self.user_attributes.find({"user_id": user_id, "is_active": True})
        return [serialize_mongo_doc(d) async for d in cursor]

    async def set_user_attribute(
        self, user_id: str, body: SetUserAttributeRequest, set_by: str
    ) -> dict:
        """Create or replace the user's value for one attribute."""
        now = datetime.now(timezone.utc)
        doc = await self.user_attributes.find_one_and_update(
            {"user_id": user_id, "attribute_name": body.attribute_name},
            {
                "$set": {
                    "attribute_value": body.attribute_value,
                    "valid_from": body.valid_from or now,
                    "valid_until": body.valid_until,
                    "is_active": True,
                    "set_by": set_by,
                    "updated_at": now,
                },
                "$setOnInsert": {"created_at": now},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        logger.info(f"User attribute set: {user_id}.{body.attribute_name} by {set_by}")
        return serialize_mongo_doc(doc)

    async def remove_user_attribute(self, user_id: str, attribute_name: str) -> None:
        result = await self.user_attributes.update_one(
            {"user_id": user_id, "attribute_name": attribute_name},
            {"$set": {"is_active": False, "updated_at": datetime.now(timezone.utc)}},
        )
        if result.matched_count == 0:
            raise NotFoundError("User attribute not found")

    # ── Evaluation log ────────────────────────────────────────────

    async def list_evaluations(
        self,
        user_id: Optional[str] = None,
        model_name: Optional[str] = None,
        action: Optional[str] = None,
        decision: Optional[str] = None,
        limit: int = 50,
        page: int = 1,
    ) -> tuple[list[dict], int]:
        """Evaluation records, newest first."""
        filters: dict = {}
        if user_id:
            filters["user_id"] = user_id
        if model_name:
            filters["resource.model_name"] = model_name
        if action:
            filters["action"] = action
        if decision:
            filters["final_decision"] = decision

        total = await self.evaluations.count_documents(filters)
        cursor = (
            self.evaluations.find(filters)
            .sort("timestamp", DESCENDING)
            .skip((page - 1) * limit)
            .limit(limit)
        )
        docs = [serialize_mongo_doc(d) async for d in cursor]
        return docs, total

    # ── Model registry ────────────────────────────────────────────

    async def list_models(self) -> list[dict]:
        cursor = self.models.find({"is_active": True}).sort("name", ASCENDING)
        return [serialize_mongo_doc(d) async for d in cursor]
