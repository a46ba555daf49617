"""
Rule data models for the Billing Rules Service.
"""

from typing import Dict, Any, Optional, List, Tuple, Union
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class RuleType(str, Enum):
    """Billing rule categories."""
    USAGE = "usage"
    DISCOUNT = "discount"
    SURCHARGE = "surcharge"
    CREDIT = "credit"
    PRORATION = "proration"


class TriggerEvent(str, Enum):
    """Events that make a rule eligible for action execution."""
    USAGE_THRESHOLD = "usage_threshold"
    PLAN_CHANGE = "plan_change"
    RENEWAL = "renewal"
    MANUAL = "manual"
    SCHEDULED = "scheduled"


class ConditionOperator(str, Enum):
    """Rule condition operators."""
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    IN = "in"
    BETWEEN = "between"


COMPARISON_OPERATORS = (
    ConditionOperator.EQ,
    ConditionOperator.NE,
    ConditionOperator.GT,
    ConditionOperator.GTE,
    ConditionOperator.LT,
    ConditionOperator.LTE,
)


class ActionType(str, Enum):
    """Rule action types."""
    APPLY_DISCOUNT = "apply_discount"
    ADD_CHARGE = "add_charge"
    ADD_CREDIT = "add_credit"
    SEND_NOTIFICATION = "send_notification"
    UPGRADE_PLAN = "upgrade_plan"
    DOWNGRADE_PLAN = "downgrade_plan"


class AmountType(str, Enum):
    """How an action amount is interpreted."""
    FIXED = "fixed"
    PERCENTAGE = "percentage"


class PlanChangeDirection(str, Enum):
    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"


class ExecutionStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class _Missing:
    """Marker for a condition field that did not resolve."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RuleTrigger:
    """Activation event for a rule."""
    event: TriggerEvent
    threshold: Optional[float] = None
    metric: Optional[str] = None
    schedule: Optional[str] = None  # cron expression

    def is_well_formed(self) -> bool:
        """Usage thresholds need both a metric name and a threshold."""
        if self.event == TriggerEvent.USAGE_THRESHOLD:
            return bool(self.metric) and self.threshold is not None
        return True


# Conditions: one variant per operator family, so each carries exactly the
# operands its evaluation needs.

@dataclass(frozen=True)
class ComparisonCondition:
    """Scalar comparison: eq, ne, gt, gte, lt, lte."""
    field: str
    operator: ConditionOperator
    value: Any


@dataclass(frozen=True)
class MembershipCondition:
    """Resolved value must be one of ``values``."""
    field: str
    values: Tuple[Any, ...]

    @property
    def operator(self) -> ConditionOperator:
        return ConditionOperator.IN


@dataclass(frozen=True)
class RangeCondition:
    """Inclusive numeric range check."""
    field: str
    low: Any
    high: Any

    @property
    def operator(self) -> ConditionOperator:
        return ConditionOperator.BETWEEN


RuleCondition = Union[ComparisonCondition, MembershipCondition, RangeCondition]


# Actions

@dataclass(frozen=True)
class DiscountAction:
    amount: float
    amount_type: AmountType = AmountType.FIXED
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def type(self) -> ActionType:
        return ActionType.APPLY_DISCOUNT


@dataclass(frozen=True)
class ChargeAction:
    """Per-unit charge on the usage of ``target`` above the trigger threshold."""
    amount: float
    target: str
    amount_type: AmountType = AmountType.FIXED
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def type(self) -> ActionType:
        return ActionType.ADD_CHARGE


@dataclass(frozen=True)
class CreditAction:
    amount: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def type(self) -> ActionType:
        return ActionType.ADD_CREDIT


@dataclass(frozen=True)
class NotificationAction:
    metadata: Dict[str, Any] = field(default_factory=dict)
    target: Optional[str] = None

    @property
    def type(self) -> ActionType:
        return ActionType.SEND_NOTIFICATION


@dataclass(frozen=True)
class PlanChangeAction:
    direction: PlanChangeDirection
    target: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def type(self) -> ActionType:
        if self.direction == PlanChangeDirection.UPGRADE:
            return ActionType.UPGRADE_PLAN
        return ActionType.DOWNGRADE_PLAN


RuleAction = Union[DiscountAction, ChargeAction, CreditAction, NotificationAction, PlanChangeAction]


@dataclass
class BillingRule:
    """A named pricing policy: trigger, conditions and action."""
    id: str
    name: str
    type: RuleType
    trigger: RuleTrigger
    action: RuleAction
    description: str = ""
    conditions: List[RuleCondition] = field(default_factory=list)
    priority: int = 0
    is_active: bool = True
    tenant_ids: Optional[List[str]] = None
    plans: Optional[List[str]] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class UsageMetric:
    """Usage snapshot for one metric, supplied by the usage collaborator."""
    name: str
    value: float
    unit: str = "units"
    period: str = "month"
    cost: Optional[float] = None


@dataclass(frozen=True)
class Tenant:
    """Billed account, as far as the rules engine needs to see it."""
    id: str
    plan: str
    name: Optional[str] = None
    billing_cycle: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Adjustment:
    """One rule's contribution to a billing calculation."""
    rule_id: str
    rule_name: str
    type: str
    amount: float
    description: str


@dataclass(frozen=True)
class BillingCalculation:
    base_amount: float
    adjustments: List[Adjustment]
    final_amount: float
    currency: str = "USD"


@dataclass
class ExecutionRecord:
    """Audit entry written after every action execution attempt."""
    rule_id: str
    tenant_id: str
    action: ActionType
    context: Dict[str, Any] = field(default_factory=dict)
    executed_at: datetime = field(default_factory=utcnow)
    status: ExecutionStatus = ExecutionStatus.SUCCEEDED
    error: Optional[str] = None
    id: Optional[str] = None


@dataclass
class RuleTestResult:
    triggered: bool
    result: Optional[Dict[str, Any]] = None
    errors: Optional[List[str]] = None


# API request / response models

class UsageMetricModel(BaseModel):
    name: str = Field(..., description="Metric name, e.g. storage")
    value: float = Field(..., description="Measured value")
    unit: str = Field("units", description="Unit of measure")
    period: str = Field("month", description="Billing period")
    cost: Optional[float] = Field(None, description="Optional reported cost")


class RuleCreateRequest(BaseModel):
    """Request model for creating a billing rule."""
    name: str = Field(..., min_length=1, description="Rule name")
    description: str = Field("", description="Rule description")
    type: RuleType = Field(..., description="Rule type")
    trigger: Dict[str, Any] = Field(..., description="Rule trigger")
    conditions: List[Dict[str, Any]] = Field(default_factory=list, description="Rule conditions")
    action: Dict[str, Any] = Field(..., description="Rule action")
    priority: int = Field(0, description="Lower values apply first")
    is_active: bool = Field(True, description="Whether the rule is active")
    tenant_ids: Optional[List[str]] = Field(None, description="Tenant allow-list")
    plans: Optional[List[str]] = Field(None, description="Plan allow-list")


class RuleUpdateRequest(BaseModel):
    """Request model for updating a billing rule."""
    name: Optional[str] = Field(None, description="Rule name")
    description: Optional[str] = Field(None, description="Rule description")
    type: Optional[RuleType] = Field(None, description="Rule type")
    trigger: Optional[Dict[str, Any]] = Field(None, description="Rule trigger")
    conditions: Optional[List[Dict[str, Any]]] = Field(None, description="Rule conditions")
    action: Optional[Dict[str, Any]] = Field(None, description="Rule action")
    priority: Optional[int] = Field(None, description="Rule priority")
    is_active: Optional[bool] = Field(None, description="Whether the rule is active")
    tenant_ids: Optional[List[str]] = Field(None, description="Tenant allow-list")
    plans: Optional[List[str]] = Field(None, description="Plan allow-list")


class CalculationRequest(BaseModel):
    tenant_id: str = Field(..., description="Tenant ID")
    usage: Optional[List[UsageMetricModel]] = Field(
        None, description="Usage snapshot; fetched from the usage service when omitted"
    )
    period: Optional[str] = Field(None, description="Usage period to fetch")


class RuleEventRequest(BaseModel):
    tenant_id: str = Field(..., description="Tenant ID")
    context: Dict[str, Any] = Field(default_factory=dict, description="Event context")


class RuleTestRequest(BaseModel):
    rule: Dict[str, Any] = Field(..., description="Draft rule")
    sample_data: Dict[str, Any] = Field(default_factory=dict, description="Sample context")
