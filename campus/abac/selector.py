from datetime import datetime
from typing import List

from .models import PolicyRule
from .stores import PolicyStore
from .time_window import within_validity


class PolicySelector:
    """Fetches the candidate policies for a (model_name, action) pair"""

    def __init__(self, policy_store: PolicyStore):
        self.policy_store = policy_store

    async def select(self, model_name: str, action: str, now: datetime) -> List[PolicyRule]:
        """
        Active policies for the model and action, inside their validity
        window, ordered by ascending priority. Equal priorities keep the
        order the store returned them in.
        """
        policies = await self.policy_store.find_candidate_policies(model_name, action, now)
        candidates = [
            policy
            for policy in policies
            if policy.is_active
            and policy.resource.model_name == model_name
            and action in policy.actions
            and within_validity(policy.time_based_access, now)
        ]
        return sorted(candidates, key=lambda p: p.priority)
