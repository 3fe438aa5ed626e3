"""Tests for tagged values, the condition evaluator and condition-group folding."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest
from bson import ObjectId

from campus.abac.conditions import ConditionEvaluator, evaluate_condition_group
from campus.abac.models import Condition, ConditionType
from campus.abac.values import AttributeValue, ValueKind


def cond(attribute="a", operator="equals", value=None, **kwargs) -> Condition:
    return Condition(attribute=attribute, operator=operator, value=value, **kwargs)


@pytest.fixture
def evaluator():
    return ConditionEvaluator()


# ----- AttributeValue -----


def test_bool_is_not_number():
    assert AttributeValue.of(True).kind is ValueKind.BOOLEAN
    assert AttributeValue.of(1).kind is ValueKind.NUMBER
    assert not AttributeValue.of(True).equals(AttributeValue.of(1))


def test_object_id_compares_as_string():
    oid = ObjectId()
    assert AttributeValue.of(oid).equals(AttributeValue.of(str(oid)))


def test_naive_datetime_is_utc():
    naive = datetime(2025, 1, 1, 12, 0)
    aware = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert AttributeValue.of(naive).equals(AttributeValue.of(aware))


def test_nan_is_other():
    assert AttributeValue.of(float("nan")).kind is ValueKind.OTHER


def test_compare_needs_same_ordered_kind():
    assert AttributeValue.of(3).compare(AttributeValue.of(2)) == 1
    assert AttributeValue.of("b").compare(AttributeValue.of("a")) == 1
    assert AttributeValue.of(3).compare(AttributeValue.of("2")) is None
    assert AttributeValue.of(True).compare(AttributeValue.of(False)) is None


# ----- ConditionEvaluator -----


@pytest.mark.parametrize(
    "operator,actual,value,expected",
    [
        ("equals", "D1", "D1", True),
        ("equals", 5, "5", False),
        ("equals", None, None, True),
        ("not_equals", "D1", "D2", True),
        ("not_equals", None, "archived", True),
        ("in", "hod", ["hod", "dean"], True),
        ("in", "hod", "hod", False),
        ("not_in", "student", ["hod", "dean"], True),
        ("not_in", "student", "hod", False),
        ("contains", ["D1", "D2"], "D2", True),
        ("contains", "D1,D2", "D2", False),
        ("starts_with", "CS101", "CS", True),
        ("starts_with", 101, "1", False),
        ("ends_with", "report.pdf", ".pdf", True),
        ("greater_than", 10, 5, True),
        ("greater_than", "10", 5, False),
        ("less_than", 3, 5, True),
        ("less_than", 5, 5, False),
    ],
)
def test_operators(evaluator, operator, actual, value, expected):
    assert evaluator.evaluate(cond(operator=operator, value=value), actual) is expected


def test_between_is_inclusive(evaluator):
    c = cond(operator="between", value=[9, 17])
    assert evaluator.evaluate(c, 9) is True
    assert evaluator.evaluate(c, 17) is True
    assert evaluator.evaluate(c, 18) is False


@pytest.mark.parametrize("actual,expected", [(9, False), (10, True), (20, True), (21, False)])
def test_between_bounds(evaluator, actual, expected):
    assert evaluator.evaluate(cond(operator="between", value=[10, 20]), actual) is expected


def test_between_requires_pair_of_same_kind(evaluator):
    assert evaluator.evaluate(cond(operator="between", value=[1, 2, 3]), 2) is False
    assert evaluator.evaluate(cond(operator="between", value=["1", "9"]), 5) is False
    assert evaluator.evaluate(cond(operator="between", value=5), 5) is False


def test_unknown_operator_is_false(evaluator):
    assert evaluator.evaluate(cond(operator="matches_regex", value=".*"), "x") is False


def test_same_as_user(evaluator):
    c = cond(attribute="department_id", operator="same_as_user", reference_user_attribute="primary_department")
    assert evaluator.evaluate(c, "D1", {"primary_department": "D1"}) is True
    assert evaluator.evaluate(c, "D2", {"primary_department": "D1"}) is False
    assert evaluator.evaluate(c, "D1") is False


def test_different_from_user(evaluator):
    c = cond(attribute="owner_id", operator="different_from_user", reference_user_attribute="user_id")
    assert evaluator.evaluate(c, "u2", {"user_id": "u1"}) is True
    assert evaluator.evaluate(c, "u1", {"user_id": "u1"}) is False


# ----- Condition groups -----


def test_empty_group_matches():
    result = evaluate_condition_group([], {}, ConditionType.SUBJECT)
    assert result.matched is True
    assert result.trace == []


def test_and_failure_stops_group():
    conditions = [
        cond("role", "equals", "hod"),
        cond("level", "greater_than", 1),
    ]
    result = evaluate_condition_group(conditions, {"role": "faculty", "level": 5}, ConditionType.SUBJECT)
    assert result.matched is False
    assert len(result.trace) == 1
    assert result.trace[0].result is False


def test_true_or_short_circuits():
    conditions = [
        cond("role", "equals", "hod", logical_operator="OR"),
        cond("level", "greater_than", 100),
    ]
    result = evaluate_condition_group(conditions, {"role": "hod", "level": 1}, ConditionType.SUBJECT)
    assert result.matched is True
    assert len(result.trace) == 1


def test_false_or_moves_on():
    conditions = [
        cond("role", "equals", "dean", logical_operator="OR"),
        cond("role", "equals", "hod"),
    ]
    result = evaluate_condition_group(conditions, {"role": "hod"}, ConditionType.SUBJECT)
    assert result.matched is True
    assert [t.result for t in result.trace] == [False, True]


def test_trailing_false_or_still_matches():
    conditions = [
        cond("role", "equals", "hod"),
        cond("level", "greater_than", 100, logical_operator="OR"),
    ]
    result = evaluate_condition_group(conditions, {"role": "hod", "level": 1}, ConditionType.SUBJECT)
    assert result.matched is True


def test_trace_records_values():
    conditions = [cond("role", "in", ["hod", "dean"])]
    result = evaluate_condition_group(conditions, {"role": "hod"}, ConditionType.RESOURCE)
    entry = result.trace[0]
    assert entry.type == "resource"
    assert entry.operator == "in"
    assert entry.expected_value == ["hod", "dean"]
    assert entry.actual_value == "hod"
    assert entry.logical_operator == "AND"
