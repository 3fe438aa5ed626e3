import re
from enum import Enum
from typing import Dict, List, Optional, Any, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime, timezone


class ABACModel(BaseModel):
    """Base for documents that end up in MongoDB or a JSON response."""

    model_config = ConfigDict(use_enum_values=True)


class PolicyEffect(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    INDETERMINATE = "indeterminate"


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    IN = "in"
    NOT_IN = "not_in"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    BETWEEN = "between"
    SAME_AS_USER = "same_as_user"
    DIFFERENT_FROM_USER = "different_from_user"


class LogicalOperator(str, Enum):
    AND = "AND"
    OR = "OR"


class PolicyAction(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    APPROVE = "approve"
    REJECT = "reject"
    EXPORT = "export"
    IMPORT = "import"


class ConditionType(str, Enum):
    SUBJECT = "subject"
    RESOURCE = "resource"
    ENVIRONMENT = "environment"
    TIME = "time"


class AttributeDataType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    REFERENCE = "reference"
    ARRAY = "array"


class AttributeCategory(str, Enum):
    USER = "user"
    RESOURCE = "resource"
    ENVIRONMENT = "environment"
    CONTEXT = "context"


class ScopeOperator(str, Enum):
    EQ = "eq"
    NE = "ne"
    IN = "in"
    NOT_IN = "nin"
    GT = "gt"
    LT = "lt"


# ── Policy rules ─────────────────────────────────────────────────


class Condition(ABACModel):
    """One (attribute, operator, value) test inside a condition list."""

    attribute: str
    # Unknown operator names are kept and evaluate to False
    operator: Union[ConditionOperator, str]
    value: Any = None
    reference_user_attribute: Optional[str] = None
    logical_operator: LogicalOperator = LogicalOperator.AND


class ResourceSpec(ABACModel):
    model_name: str
    resource_conditions: List[Condition] = Field(default_factory=list)


_HOUR_MINUTE = re.compile(r"^\d{1,2}:\d{2}$")


class TimeSlot(ABACModel):
    start: str = Field(..., description='"HH:MM"')
    end: str = Field(..., description='"HH:MM"')

    @field_validator("start", "end")
    @classmethod
    def validate_hh_mm(cls, v):
        if not _HOUR_MINUTE.match(v):
            raise ValueError("Time must be formatted as HH:MM")
        return v

    @property
    def start_hour(self) -> int:
        return int(self.start.split(":")[0])

    @property
    def end_hour(self) -> int:
        return int(self.end.split(":")[0])


class TimeBasedAccess(ABACModel):
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    allowed_days: List[str] = Field(default_factory=list)
    allowed_hours: List[TimeSlot] = Field(default_factory=list)


class PolicyRule(ABACModel):
    """A prioritized allow/deny rule over subject, resource and environment."""

    id: Optional[str] = None
    name: str
    description: Optional[str] = None
    is_active: bool = True
    priority: int = Field(default=100, description="Lower number is evaluated first")
    subject_conditions: List[Condition] = Field(default_factory=list)
    resource: ResourceSpec
    actions: List[str] = Field(default_factory=list)
    environment_conditions: List[Condition] = Field(default_factory=list)
    effect: PolicyEffect = PolicyEffect.ALLOW
    policy_group: str = "default"
    time_based_access: Optional[TimeBasedAccess] = None
    created_by: Optional[str] = None
    last_modified_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ── Attributes ───────────────────────────────────────────────────


class PossibleValue(ABACModel):
    value: str
    label: Optional[str] = None


class ValidationRules(ABACModel):
    min: Optional[float] = None
    max: Optional[float] = None
    pattern: Optional[str] = None
    custom_validator: Optional[str] = None


class AttributeDefinition(ABACModel):
    """Vocabulary entry offered by the policy authoring screens."""

    id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=100)
    display_name: str = Field(..., min_length=1, max_length=200)
    data_type: AttributeDataType
    category: AttributeCategory
    reference_model: Optional[str] = None
    possible_values: List[PossibleValue] = Field(default_factory=list)
    is_required: bool = False
    is_active: bool = True
    description: Optional[str] = Field(None, max_length=500)
    validation_rules: Optional[ValidationRules] = None


class UserAttribute(ABACModel):
    user_id: str
    attribute_name: str
    attribute_value: Any
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: bool = True
    set_by: Optional[str] = None


# ── Evaluation results ───────────────────────────────────────────


class ConditionTrace(ABACModel):
    type: ConditionType
    attribute: Optional[str] = None
    operator: Optional[str] = None
    expected_value: Any = None
    actual_value: Any = None
    result: bool
    logical_operator: Optional[LogicalOperator] = None
    reference_user_attribute: Optional[str] = None
    reason: Optional[str] = None


class PolicyTrace(ABACModel):
    policy_id: Optional[str] = None
    policy_name: str
    matched: bool = False
    effect: PolicyEffect
    conditions: List[ConditionTrace] = Field(default_factory=list)
    error: Optional[str] = None


class EvaluationResult(ABACModel):
    decision: PolicyEffect = PolicyEffect.DENY
    policies: List[PolicyTrace] = Field(default_factory=list)
    evaluation_time_ms: float = 0.0
    error: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.decision == PolicyEffect.ALLOW

    @property
    def matched_policies(self) -> List[PolicyTrace]:
        return [p for p in self.policies if p.matched]


class DataScope(ABACModel):
    has_access: bool
    filter: Optional[Dict[str, Dict[str, Any]]] = None


class ResourceRef(ABACModel):
    model_name: Optional[str] = None
    resource_id: Optional[str] = None


class PolicyEvaluationRecord(ABACModel):
    """Append-only audit entry for one evaluate() call."""

    user_id: str
    resource: ResourceRef
    action: str
    request_context: Dict[str, Any] = Field(default_factory=dict)
    evaluated_policies: List[PolicyTrace] = Field(default_factory=list)
    final_decision: Decision
    evaluation_time_ms: float = 0.0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
