"""Turns the resource conditions of matched allow policies into a query filter."""

from enum import Enum
from typing import Any, Dict

from .models import (
    ConditionOperator,
    ConditionType,
    EvaluationResult,
    PolicyEffect,
    ScopeOperator,
)

# contains, starts_with, ends_with, between, same_as_user and
# different_from_user have no entry and never reach the filter.
SCOPE_OPERATORS: Dict[str, ScopeOperator] = {
    ConditionOperator.EQUALS.value: ScopeOperator.EQ,
    ConditionOperator.NOT_EQUALS.value: ScopeOperator.NE,
    ConditionOperator.IN.value: ScopeOperator.IN,
    ConditionOperator.NOT_IN.value: ScopeOperator.NOT_IN,
    ConditionOperator.GREATER_THAN.value: ScopeOperator.GT,
    ConditionOperator.LESS_THAN.value: ScopeOperator.LT,
}


def _operator_name(operator: Any) -> Any:
    return operator.value if isinstance(operator, Enum) else operator


def build_scope_filter(evaluation: EvaluationResult) -> Dict[str, Dict[str, Any]]:
    """
    Fold every passing resource condition of every matched allow policy
    into ``{attribute: {scope_operator: value}}``.

    A later condition on the same attribute replaces the earlier one.
    """
    scope_filter: Dict[str, Dict[str, Any]] = {}

    for policy in evaluation.policies:
        if not policy.matched or policy.effect != PolicyEffect.ALLOW:
            continue
        for condition in policy.conditions:
            if condition.type != ConditionType.RESOURCE or not condition.result:
                continue
            scope_op = SCOPE_OPERATORS.get(_operator_name(condition.operator))
            if scope_op is None:
                continue
            scope_filter[condition.attribute] = {scope_op.value: condition.expected_value}

    return scope_filter
