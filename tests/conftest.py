"""Shared fixtures: in-memory stores, a fixed clock and a small Motor stand-in."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest
from jose import jwt

from campus.abac.engine import DecisionEngine
from campus.abac.exceptions import StoreUnavailableError
from campus.abac.models import PolicyEvaluationRecord, PolicyRule, UserAttribute
from campus.abac.stores import AttributeStore, AuditStore, PolicyStore, UserStore
from campus.config import settings

# Wednesday
NOW = datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)


# ----- ABAC stores -----


class FakeUserStore(UserStore):
    def __init__(self, users: Optional[Dict[str, dict]] = None):
        self.users = users or {}

    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.users.get(user_id)


class FakeAttributeStore(AttributeStore):
    """Returns every row for the user unfiltered, like a store with stale reads."""

    def __init__(self, rows: Optional[List[UserAttribute]] = None):
        self.rows = rows or []

    async def find_active_user_attributes(self, user_id: str, as_of: datetime) -> List[UserAttribute]:
        return [row for row in self.rows if row.user_id == user_id]


class FakePolicyStore(PolicyStore):
    def __init__(self, policies: Optional[List[PolicyRule]] = None):
        self.policies = policies or []
        self.calls = 0
        self.fail = False

    async def find_candidate_policies(self, model_name: str, action: str, as_of: datetime) -> List[PolicyRule]:
        self.calls += 1
        if self.fail:
            raise StoreUnavailableError("Policy store unavailable: connection refused")
        return list(self.policies)


class FakeAuditStore(AuditStore):
    def __init__(self):
        self.records: List[PolicyEvaluationRecord] = []
        self.fail = False

    async def append_evaluation(self, record: PolicyEvaluationRecord) -> None:
        if self.fail:
            raise StoreUnavailableError("Audit store unavailable: disk full")
        self.records.append(record)


def make_policy(**overrides) -> PolicyRule:
    data = {
        "id": overrides.pop("id", overrides.get("name", "p1")),
        "name": "p1",
        "resource": {"model_name": "Department", "resource_conditions": []},
        "actions": ["read"],
        "effect": "allow",
        "priority": 100,
    }
    data.update(overrides)
    return PolicyRule.model_validate(data)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def alice():
    return {
        "_id": "u1",
        "username": "alice",
        "email": "alice@college.edu",
        "is_super_admin": False,
        "is_active": True,
        "primary_department": "D1",
        "department_roles": [
            {"department_id": "D1", "role": "hod"},
            {"department_id": "D2", "role": "faculty"},
        ],
    }


@pytest.fixture
def user_store(alice):
    return FakeUserStore({"u1": alice})


@pytest.fixture
def attribute_store():
    return FakeAttributeStore()


@pytest.fixture
def policy_store():
    return FakePolicyStore()


@pytest.fixture
def audit_store():
    return FakeAuditStore()


@pytest.fixture
def engine(user_store, attribute_store, policy_store, audit_store):
    return DecisionEngine(
        user_store=user_store,
        attribute_store=attribute_store,
        policy_store=policy_store,
        audit_store=audit_store,
        clock=lambda: NOW,
    )


# ----- Motor stand-in -----


def _lookup(doc: dict, path: str) -> Any:
    value: Any = doc
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def matches(doc: dict, query: dict) -> bool:
    """Enough of the MongoDB query language for the services under test."""
    for key, expected in query.items():
        if key == "$and":
            if not all(matches(doc, q) for q in expected):
                return False
            continue
        if key == "$or":
            if not any(matches(doc, q) for q in expected):
                return False
            continue

        actual = _lookup(doc, key)
        if isinstance(expected, dict) and any(k.startswith("$") for k in expected):
            for op, value in expected.items():
                if op == "$ne" and actual == value:
                    return False
                if op == "$in" and actual not in value:
                    return False
                if op == "$nin" and actual in value:
                    return False
                if op == "$gt" and not (actual is not None and actual > value):
                    return False
                if op == "$lt" and not (actual is not None and actual < value):
                    return False
                if op == "$gte" and not (actual is not None and actual >= value):
                    return False
                if op == "$lte" and not (actual is not None and actual <= value):
                    return False
                if op == "$exists" and (actual is not None) != value:
                    return False
        elif isinstance(actual, list) and not isinstance(expected, list):
            if expected not in actual:
                return False
        elif actual != expected:
            return False
    return True


class FakeResult:
    def __init__(self, inserted_id=None, matched_count=0):
        self.inserted_id = inserted_id
        self.matched_count = matched_count


class FakeCursor:
    def __init__(self, docs: List[dict]):
        self.docs = docs

    def sort(self, key, direction=None):
        keys = key if isinstance(key, list) else [(key, direction or 1)]
        for field, order in reversed(keys):
            self.docs.sort(key=lambda d: (_lookup(d, field) is None, _lookup(d, field)), reverse=order < 0)
        return self

    def skip(self, n: int):
        self.docs = self.docs[n:]
        return self

    def limit(self, n: int):
        self.docs = self.docs[:n]
        return self

    def __aiter__(self):
        self._iter = iter(self.docs)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    def __init__(self, docs: Optional[List[dict]] = None):
        self.docs = [dict(d) for d in (docs or [])]
        self.queries: List[dict] = []
        self._next_id = 1

    def find(self, query: Optional[dict] = None):
        query = query or {}
        self.queries.append(query)
        return FakeCursor([dict(d) for d in self.docs if matches(d, query)])

    async def find_one(self, query: dict):
        for doc in self.docs:
            if matches(doc, query):
                return dict(doc)
        return None

    async def count_documents(self, query: dict) -> int:
        return sum(1 for d in self.docs if matches(d, query))

    async def insert_one(self, doc: dict):
        doc.setdefault("_id", f"id{self._next_id}")
        self._next_id += 1
        self.docs.append(dict(doc))
        return FakeResult(inserted_id=doc["_id"])

    async def update_one(self, query: dict, update: dict):
        for doc in self.docs:
            if matches(doc, query):
                doc.update(update.get("$set", {}))
                return FakeResult(matched_count=1)
        return FakeResult(matched_count=0)

    async def find_one_and_update(self, query: dict, update: dict, upsert=False, return_document=None):
        for doc in self.docs:
            if matches(doc, query):
                doc.update(update.get("$set", {}))
                return dict(doc)
        if not upsert:
            return None
        doc = {**query, **update.get("$setOnInsert", {}), **update.get("$set", {})}
        await self.insert_one(doc)
        return dict(doc)


class FakeDatabase:
    def __init__(self):
        self.collections: Dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection())

    def __getattr__(self, name: str) -> FakeCollection:
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]


@pytest.fixture
def fake_db():
    return FakeDatabase()


# ----- Auth -----


def make_token(sub: str = "u1", permissions: Optional[List[str]] = None, is_super_admin: bool = False) -> str:
    payload = {
        "sub": sub,
        "permissions": permissions or [],
        "is_super_admin": is_super_admin,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def auth_header(**kwargs) -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(**kwargs)}"}
