import time
from datetime import datetime
from typing import Dict, List, Tuple

from .models import PolicyRule
from .stores import PolicyStore


class CachedPolicyStore(PolicyStore):
    """
    Keeps candidate policy lists per (model_name, action) for ``ttl_seconds``.

    The admin endpoints call ``invalidate()`` after every policy write. A
    cached policy that expires is still dropped by the selector; one that
    becomes valid shows up once the cache entry runs out.
    """

    def __init__(self, inner: PolicyStore, ttl_seconds: float):
        self.inner = inner
        self.ttl_seconds = ttl_seconds
        self._cache: Dict[Tuple[str, str], Tuple[float, List[PolicyRule]]] = {}

    async def find_candidate_policies(
        self, model_name: str, action: str, as_of: datetime
    ) -> List[PolicyRule]:
        key = (model_name, action)
        now = time.monotonic()

        cached = self._cache.get(key)
        if cached and (now - cached[0]) < self.ttl_seconds:
            return list(cached[1])

        policies = await self.inner.find_candidate_policies(model_name, action, as_of)
        self._cache[key] = (now, list(policies))
        return policies

    def invalidate(self) -> None:
        self._cache.clear()
