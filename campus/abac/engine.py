import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from campus.utils.logger import Logger
from .attributes import AttributeResolver
from .audit import AuditLogger
from .evaluator import PolicyEvaluator
from .models import DataScope, EvaluationResult, PolicyEffect, PolicyTrace
from .scope import build_scope_filter
from .selector import PolicySelector
from .stores import AttributeStore, AuditStore, PolicyStore, UserStore
from .time_window import local_now

logger = Logger(__name__)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 3)


class DecisionEngine:
    """
    Core ABAC decision point.

    Built once at startup with its stores and shared by every request.
    It keeps no per-call state: each ``evaluate`` resolves a fresh
    attribute bag and a fresh candidate policy list.
    """

    def __init__(
        self,
        user_store: UserStore,
        attribute_store: AttributeStore,
        policy_store: PolicyStore,
        audit_store: Optional[AuditStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
        audit_enabled: bool = True,
    ):
        self.resolver = AttributeResolver(user_store, attribute_store)
        self.selector = PolicySelector(policy_store)
        self.policy_evaluator = PolicyEvaluator()
        self.audit = AuditLogger(audit_store, enabled=audit_enabled)
        self.clock = clock or local_now

    async def evaluate(
        self,
        user_id: str,
        resource: Mapping[str, Any],
        action: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> EvaluationResult:
        """
        Decide whether ``user_id`` may perform ``action`` on ``resource``.

        Candidates run in priority order. A matching policy sets the
        decision to its effect. A matching allow ends the scan, while a
        matching deny does not, so a later policy can still overwrite it.
        With no match the decision stays deny. Any error on the way
        returns deny with ``error`` set instead of raising.
        """
        start = time.perf_counter()
        context = dict(context or {})
        traces: List[PolicyTrace] = []
        decision = PolicyEffect.DENY

        try:
            now = self.clock()
            user_attributes = await self.resolver.resolve(user_id, now)
            candidates = await self.selector.select(resource["model_name"], action, now)

            for policy in candidates:
                trace = self.policy_evaluator.evaluate(
                    policy, user_attributes, resource, action, context, now
                )
                traces.append(trace)

                if trace.matched:
                    decision = PolicyEffect(trace.effect)
                    if decision == PolicyEffect.ALLOW:
                        break

        except Exception as e:
            logger.error(f"ABAC evaluation error for user {user_id}: {e!r}")
            return EvaluationResult(
                decision=PolicyEffect.DENY,
                policies=[],
                evaluation_time_ms=_elapsed_ms(start),
                error=str(e) or e.__class__.__name__,
            )

        elapsed = _elapsed_ms(start)
        self.audit.record(user_id, resource, action, context, traces, decision.value, elapsed)

        return EvaluationResult(decision=decision, policies=traces, evaluation_time_ms=elapsed)

    async def get_data_scope(
        self, user_id: str, model_name: str, action: str = "read"
    ) -> DataScope:
        """What rows of ``model_name`` the user may see, as a query filter."""
        evaluation = await self.evaluate(user_id, {"model_name": model_name}, action)

        if evaluation.decision == PolicyEffect.DENY:
            return DataScope(has_access=False, filter=None)

        scope_filter: Dict[str, Dict[str, Any]] = build_scope_filter(evaluation)
        return DataScope(has_access=True, filter=scope_filter)
