"""
Best-effort persistence of every evaluation trace.

Usage from the engine:
    audit = AuditLogger(MongoAuditStore(db))
    audit.record(user_id, resource, action, context, traces, decision, elapsed_ms)

``record`` schedules the write on the running event loop and returns at
once. A failed write is logged and dropped; it never reaches the caller.
"""

import asyncio
from typing import Any, List, Mapping, Optional, Set

from campus.utils.logger import Logger
from .models import Decision, PolicyEvaluationRecord, PolicyTrace, ResourceRef
from .stores import AuditStore

logger = Logger(__name__)


def _resource_id(resource: Mapping[str, Any]) -> Optional[str]:
    value = resource.get("_id", resource.get("id"))
    return str(value) if value is not None else None


class AuditLogger:
    def __init__(self, audit_store: Optional[AuditStore], enabled: bool = True):
        self.audit_store = audit_store
        self.enabled = enabled and audit_store is not None
        self._pending: Set[asyncio.Task] = set()

    def record(
        self,
        user_id: str,
        resource: Mapping[str, Any],
        action: str,
        context: Mapping[str, Any],
        evaluated_policies: List[PolicyTrace],
        final_decision: str,
        evaluation_time_ms: float,
    ) -> None:
        if not self.enabled:
            return
        try:
            entry = PolicyEvaluationRecord(
                user_id=str(user_id),
                resource=ResourceRef(
                    model_name=resource.get("model_name"),
                    resource_id=_resource_id(resource),
                ),
                action=action,
                request_context=dict(context),
                evaluated_policies=evaluated_policies,
                final_decision=Decision(final_decision),
                evaluation_time_ms=evaluation_time_ms,
                ip_address=context.get("ip_address"),
                user_agent=context.get("user_agent"),
            )
            task = asyncio.get_running_loop().create_task(self._write(entry))
        except Exception as e:
            logger.error(f"Failed to schedule policy evaluation log: {e}")
            return

        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, entry: PolicyEvaluationRecord) -> None:
        try:
            await self.audit_store.append_evaluation(entry)
        except Exception as e:
            logger.error(f"Failed to log policy evaluation: {e}")

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for scheduled writes; used on shutdown and in tests."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
