from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from .models import PolicyEvaluationRecord, PolicyRule, UserAttribute


class UserStore(ABC):
    """Source of user records: username, email, flags and department roles"""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Return the user document, or None when it does not exist"""
        pass


class AttributeStore(ABC):
    """Source of stored per-user attributes"""

    @abstractmethod
    async def find_active_user_attributes(
        self, user_id: str, as_of: datetime
    ) -> List[UserAttribute]:
        """Active rows whose valid_until is unset or not before ``as_of``"""
        pass


class PolicyStore(ABC):
    """Source of policy rules"""

    @abstractmethod
    async def find_candidate_policies(
        self, model_name: str, action: str, as_of: datetime
    ) -> List[PolicyRule]:
        """Active rules for (model_name, action) valid at ``as_of``, by priority"""
        pass


class AuditStore(ABC):
    """Sink for policy evaluation records"""

    @abstractmethod
    async def append_evaluation(self, record: PolicyEvaluationRecord) -> None:
        pass
