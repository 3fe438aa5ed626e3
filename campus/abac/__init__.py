from .engine import DecisionEngine
from .models import (
    Condition,
    DataScope,
    EvaluationResult,
    PolicyRule,
    PolicyTrace,
    ConditionTrace,
)
from .exceptions import ABACError, SubjectNotFoundError, StoreUnavailableError
from .cache import CachedPolicyStore
from .repository import (
    MongoUserStore,
    MongoAttributeStore,
    MongoPolicyStore,
    MongoAuditStore,
    to_mongo_filter,
)
from .dependencies import check_dynamic_access, get_data_filter, get_engine
from .routes import abac_router

__all__ = [
    "DecisionEngine",
    "Condition",
    "DataScope",
    "EvaluationResult",
    "PolicyRule",
    "PolicyTrace",
    "ConditionTrace",
    "ABACError",
    "SubjectNotFoundError",
    "StoreUnavailableError",
    "CachedPolicyStore",
    "MongoUserStore",
    "MongoAttributeStore",
    "MongoPolicyStore",
    "MongoAuditStore",
    "to_mongo_filter",
    "check_dynamic_access",
    "get_data_filter",
    "get_engine",
    "abac_router",
]
