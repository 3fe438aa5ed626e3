from datetime import datetime
from typing import Any, Dict, Mapping

from campus.utils.logger import Logger
from .conditions import ConditionEvaluator, evaluate_condition_group
from .models import ConditionTrace, ConditionType, PolicyRule, PolicyTrace
from .time_window import evaluate_time_window, time_attributes

logger = Logger(__name__)

OUTSIDE_TIME_WINDOW = "Outside allowed time window"


class PolicyEvaluator:
    """Runs one policy's subject, resource, environment and time checks"""

    def __init__(self, condition_evaluator: ConditionEvaluator | None = None):
        self.condition_evaluator = condition_evaluator or ConditionEvaluator()

    def evaluate(
        self,
        policy: PolicyRule,
        user_attributes: Dict[str, Any],
        resource: Mapping[str, Any],
        action: str,
        context: Mapping[str, Any],
        now: datetime,
    ) -> PolicyTrace:
        """
        Stop at the first failing stage. The trace keeps every condition
        that was evaluated, so a denied request shows exactly which test
        failed.
        """
        trace = PolicyTrace(
            policy_id=policy.id,
            policy_name=policy.name,
            matched=False,
            effect=policy.effect,
        )

        try:
            subject = evaluate_condition_group(
                policy.subject_conditions,
                user_attributes,
                ConditionType.SUBJECT,
                self.condition_evaluator,
            )
            trace.conditions.extend(subject.trace)
            if not subject.matched:
                return trace

            resource_match = evaluate_condition_group(
                policy.resource.resource_conditions,
                resource,
                ConditionType.RESOURCE,
                self.condition_evaluator,
                user_attributes=user_attributes,
            )
            trace.conditions.extend(resource_match.trace)
            if not resource_match.matched:
                return trace

            environment = evaluate_condition_group(
                policy.environment_conditions,
                self._environment_attributes(context, user_attributes, now),
                ConditionType.ENVIRONMENT,
                self.condition_evaluator,
            )
            trace.conditions.extend(environment.trace)
            if not environment.matched:
                return trace

            if not evaluate_time_window(policy.time_based_access, now):
                trace.conditions.append(
                    ConditionTrace(
                        type=ConditionType.TIME,
                        result=False,
                        reason=OUTSIDE_TIME_WINDOW,
                    )
                )
                return trace

            trace.matched = True
            return trace

        except Exception as e:
            logger.error(f"Policy '{policy.name}' evaluation error: {e}")
            trace.matched = False
            trace.error = str(e)
            return trace

    def _environment_attributes(
        self,
        context: Mapping[str, Any],
        user_attributes: Dict[str, Any],
        now: datetime,
    ) -> Dict[str, Any]:
        # subject attributes win over request context on name clashes
        return {**context, **time_attributes(now), **user_attributes}
