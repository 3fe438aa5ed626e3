"""
Request bodies accepted by the ABAC admin endpoints.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator, model_validator

from .models import (
    ABACModel,
    AttributeCategory,
    AttributeDataType,
    AttributeDefinition,
    Condition,
    ConditionOperator,
    PolicyAction,
    PolicyEffect,
    PossibleValue,
    ResourceSpec,
    TimeBasedAccess,
    ValidationRules,
)
from .time_window import WEEKDAYS, as_aware

USER_REFERENCE_OPERATORS = {
    ConditionOperator.SAME_AS_USER.value,
    ConditionOperator.DIFFERENT_FROM_USER.value,
}


def _check_subject_conditions(conditions: Optional[List[Condition]]) -> None:
    for condition in conditions or []:
        if condition.operator in USER_REFERENCE_OPERATORS:
            raise ValueError(
                f"'{condition.operator}' is only valid in resource conditions"
            )


def _check_resource(resource: Optional[ResourceSpec]) -> None:
    if resource is None:
        return
    for condition in resource.resource_conditions:
        if condition.operator in USER_REFERENCE_OPERATORS and not condition.reference_user_attribute:
            raise ValueError(
                f"'{condition.operator}' on '{condition.attribute}' needs reference_user_attribute"
            )


def _check_days(time_based_access: Optional[TimeBasedAccess]) -> None:
    if time_based_access is None:
        return
    unknown = [d for d in time_based_access.allowed_days if d.lower() not in WEEKDAYS]
    if unknown:
        raise ValueError(f"Unknown weekday(s): {', '.join(unknown)}")


# ── Attribute definitions ────────────────────────────────────────


class CreateAttributeDefinitionRequest(AttributeDefinition):
    @model_validator(mode="after")
    def reference_needs_model(self):
        if self.data_type == AttributeDataType.REFERENCE and not self.reference_model:
            raise ValueError("reference_model is required for reference attributes")
        return self


class UpdateAttributeDefinitionRequest(ABACModel):
    display_name: Optional[str] = Field(None, min_length=1, max_length=200)
    data_type: Optional[AttributeDataType] = None
    category: Optional[AttributeCategory] = None
    reference_model: Optional[str] = None
    possible_values: Optional[List[PossibleValue]] = None
    is_required: Optional[bool] = None
    is_active: Optional[bool] = None
    description: Optional[str] = Field(None, max_length=500)
    validation_rules: Optional[ValidationRules] = None


# ── Policy rules ─────────────────────────────────────────────────


class CreatePolicyRequest(ABACModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    is_active: bool = True
    priority: int = Field(100, description="Lower number is evaluated first")
    subject_conditions: List[Condition] = Field(default_factory=list)
    resource: ResourceSpec
    actions: List[PolicyAction] = Field(..., min_length=1)
    environment_conditions: List[Condition] = Field(default_factory=list)
    effect: PolicyEffect = PolicyEffect.ALLOW
    policy_group: str = "default"
    time_based_access: Optional[TimeBasedAccess] = None

    @model_validator(mode="after")
    def validate_conditions(self):
        _check_subject_conditions(self.subject_conditions)
        _check_resource(self.resource)
        _check_days(self.time_based_access)
        return self


class UpdatePolicyRequest(ABACModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    is_active: Optional[bool] = None
    priority: Optional[int] = None
    subject_conditions: Optional[List[Condition]] = None
    resource: Optional[ResourceSpec] = None
    actions: Optional[List[PolicyAction]] = Field(None, min_length=1)
    environment_conditions: Optional[List[Condition]] = None
    effect: Optional[PolicyEffect] = None
    policy_group: Optional[str] = None
    time_based_access: Optional[TimeBasedAccess] = None

    @model_validator(mode="after")
    def validate_conditions(self):
        _check_subject_conditions(self.subject_conditions)
        _check_resource(self.resource)
        _check_days(self.time_based_access)
        return self


class PolicyTestRequest(ABACModel):
    user_id: str
    resource: Dict[str, Any]
    action: str
    context: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("resource")
    @classmethod
    def resource_has_model(cls, v):
        if not v.get("model_name"):
            raise ValueError("resource.model_name is required")
        return v


# ── User attributes ──────────────────────────────────────────────


class SetUserAttributeRequest(ABACModel):
    attribute_name: str = Field(..., min_length=1, max_length=100)
    attribute_value: Any = Field(...)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None

    @model_validator(mode="after")
    def validate_window(self):
        if self.attribute_value is None:
            raise ValueError("attribute_value is required")
        if (
            self.valid_from
            and self.valid_until
            and as_aware(self.valid_until) < as_aware(self.valid_from)
        ):
            raise ValueError("valid_until must not be before valid_from")
        return self
