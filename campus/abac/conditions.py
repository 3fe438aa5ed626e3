from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from campus.utils.logger import Logger
from .models import Condition, ConditionOperator, ConditionTrace, ConditionType, LogicalOperator
from .values import AttributeValue, ValueKind

logger = Logger(__name__)


class ConditionEvaluator:
    """Evaluates one ABAC condition against an actual value"""

    def evaluate(
        self,
        condition: Condition,
        actual: Any,
        user_attributes: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """
        Return whether ``actual`` satisfies ``condition``.

        ``user_attributes`` is only consulted by ``same_as_user`` and
        ``different_from_user``, which compare against a subject attribute
        instead of the literal ``condition.value``. Without it both are False.
        """
        try:
            actual_value = AttributeValue.of(actual)
            if condition.operator in (
                ConditionOperator.SAME_AS_USER,
                ConditionOperator.DIFFERENT_FROM_USER,
            ):
                return self._compare_to_user(condition, actual_value, user_attributes)
            return self._evaluate_operator(
                condition.operator, actual_value, AttributeValue.of(condition.value)
            )
        except Exception as e:
            logger.warning(
                f"Condition '{condition.attribute} {condition.operator}' failed: {e}"
            )
            return False

    def _compare_to_user(
        self,
        condition: Condition,
        actual: AttributeValue,
        user_attributes: Optional[Mapping[str, Any]],
    ) -> bool:
        if user_attributes is None:
            return False
        reference = AttributeValue.of(
            user_attributes.get(condition.reference_user_attribute or "")
        )
        same = actual.equals(reference)
        if condition.operator == ConditionOperator.SAME_AS_USER:
            return same
        return not same

    def _evaluate_operator(
        self, operator: str, actual: AttributeValue, expected: AttributeValue
    ) -> bool:
        if operator == ConditionOperator.EQUALS:
            return actual.equals(expected)
        elif operator == ConditionOperator.NOT_EQUALS:
            return not actual.equals(expected)
        elif operator == ConditionOperator.IN:
            return expected.kind is ValueKind.LIST and expected.has_member(actual)
        elif operator == ConditionOperator.NOT_IN:
            return expected.kind is ValueKind.LIST and not expected.has_member(actual)
        elif operator == ConditionOperator.CONTAINS:
            return actual.kind is ValueKind.LIST and actual.has_member(expected)
        elif operator == ConditionOperator.STARTS_WITH:
            return self._both_strings(actual, expected) and actual.raw.startswith(expected.raw)
        elif operator == ConditionOperator.ENDS_WITH:
            return self._both_strings(actual, expected) and actual.raw.endswith(expected.raw)
        elif operator == ConditionOperator.GREATER_THAN:
            return actual.compare(expected) == 1
        elif operator == ConditionOperator.LESS_THAN:
            return actual.compare(expected) == -1
        elif operator == ConditionOperator.BETWEEN:
            return self._between(actual, expected)

        return False

    def _both_strings(self, actual: AttributeValue, expected: AttributeValue) -> bool:
        return actual.kind is ValueKind.STRING and expected.kind is ValueKind.STRING

    def _between(self, actual: AttributeValue, expected: AttributeValue) -> bool:
        """Inclusive on both ends; expected must be a [low, high] pair."""
        bounds = expected.items
        if expected.kind is not ValueKind.LIST or len(bounds) != 2:
            return False
        low, high = bounds
        above_low = actual.compare(low)
        below_high = actual.compare(high)
        if above_low is None or below_high is None:
            return False
        return above_low >= 0 and below_high <= 0


@dataclass
class GroupResult:
    matched: bool
    trace: List[ConditionTrace] = field(default_factory=list)


def evaluate_condition_group(
    conditions: Optional[List[Condition]],
    attributes: Mapping[str, Any],
    condition_type: ConditionType,
    evaluator: Optional[ConditionEvaluator] = None,
    user_attributes: Optional[Dict[str, Any]] = None,
) -> GroupResult:
    """
    Fold a condition list left to right.

    Each condition's ``logical_operator`` says how it joins the next one.
    There is no precedence: an OR that holds ends the group as matched, an
    AND that fails ends it as not matched, anything else moves on and keeps
    the running result. A list that runs out without short-circuiting is
    matched, so a trailing failed OR does not fail the group.
    """
    if not conditions:
        return GroupResult(matched=True)

    evaluator = evaluator or ConditionEvaluator()
    acc = True
    trace: List[ConditionTrace] = []

    for condition in conditions:
        actual = attributes.get(condition.attribute)
        result = evaluator.evaluate(condition, actual, user_attributes)

        trace.append(
            ConditionTrace(
                type=condition_type,
                attribute=condition.attribute,
                operator=condition.operator,
                expected_value=condition.value,
                actual_value=actual,
                result=result,
                logical_operator=condition.logical_operator,
                reference_user_attribute=condition.reference_user_attribute,
            )
        )

        if condition.logical_operator == LogicalOperator.OR:
            if result:
                acc = True
                break
        elif not result:
            acc = False
            break

    return GroupResult(matched=acc, trace=trace)
