"""
Conversion between stored/wire rule payloads and typed rule models.

Stores and HTTP handlers deal in plain dicts (the Postgres store keeps
trigger, conditions and action as JSONB). Everything past this module works
on the typed models only.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from shared.errors import RuleValidationError
from .models import (
    ActionType, AmountType, BillingRule, ChargeAction, ComparisonCondition,
    ConditionOperator, CreditAction, DiscountAction, ExecutionRecord,
    ExecutionStatus, MembershipCondition, NotificationAction,
    PlanChangeAction, PlanChangeDirection, RangeCondition, RuleAction,
    RuleCondition, RuleTrigger, RuleType, Tenant, TriggerEvent, UsageMetric,
    utcnow,
)


def _enum(enum_cls, raw: Any, what: str):
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise RuleValidationError(
            f"Unknown {what} '{raw}'",
            details={"allowed": allowed}
        )


def _number(raw: Any, what: str) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise RuleValidationError(f"{what} must be a number", details={"value": raw})
    return raw


def _optional_number(raw: Any, what: str) -> Optional[float]:
    return None if raw is None else _number(raw, what)


def _datetime(raw: Any) -> Optional[datetime]:
    if raw is None or isinstance(raw, datetime):
        return raw
    try:
        return datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        raise RuleValidationError("Invalid timestamp", details={"value": raw})


def trigger_from_dict(data: Mapping[str, Any]) -> RuleTrigger:
    if not isinstance(data, Mapping):
        raise RuleValidationError("Trigger must be an object")
    return RuleTrigger(
        event=_enum(TriggerEvent, data.get("event"), "trigger event"),
        threshold=_optional_number(data.get("threshold"), "Trigger threshold"),
        metric=data.get("metric"),
        schedule=data.get("schedule"),
    )


def trigger_to_dict(trigger: RuleTrigger) -> Dict[str, Any]:
    data: Dict[str, Any] = {"event": trigger.event.value}
    if trigger.threshold is not None:
        data["threshold"] = trigger.threshold
    if trigger.metric is not None:
        data["metric"] = trigger.metric
    if trigger.schedule is not None:
        data["schedule"] = trigger.schedule
    return data


def condition_from_dict(data: Mapping[str, Any]) -> RuleCondition:
    if not isinstance(data, Mapping):
        raise RuleValidationError("Condition must be an object")

    field_path = data.get("field")
    if not isinstance(field_path, str) or not field_path:
        raise RuleValidationError("Condition field must be a non-empty string", details={"condition": dict(data)})

    operator = _enum(ConditionOperator, data.get("operator"), "condition operator")
    value = data.get("value")

    if operator == ConditionOperator.IN:
        if not isinstance(value, (list, tuple)):
            raise RuleValidationError(
                "'in' condition requires a list value",
                details={"field": field_path}
            )
        return MembershipCondition(field=field_path, values=tuple(value))

    if operator == ConditionOperator.BETWEEN:
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise RuleValidationError(
                "'between' condition requires a [low, high] pair",
                details={"field": field_path}
            )
        return RangeCondition(field=field_path, low=value[0], high=value[1])

    return ComparisonCondition(field=field_path, operator=operator, value=value)


def condition_to_dict(condition: RuleCondition) -> Dict[str, Any]:
    if isinstance(condition, MembershipCondition):
        value: Any = list(condition.values)
    elif isinstance(condition, RangeCondition):
        value = [condition.low, condition.high]
    else:
        value = condition.value
    return {
        "field": condition.field,
        "operator": condition.operator.value,
        "value": value,
    }


def action_from_dict(data: Mapping[str, Any]) -> RuleAction:
    if not isinstance(data, Mapping):
        raise RuleValidationError("Action must be an object")

    action_type = _enum(ActionType, data.get("type"), "action type")
    metadata = dict(data.get("metadata") or {})
    amount_type = _enum(AmountType, data.get("amountType", data.get("amount_type", "fixed")), "amount type")

    if action_type == ActionType.APPLY_DISCOUNT:
        return DiscountAction(
            amount=_number(data.get("amount"), "Discount amount"),
            amount_type=amount_type,
            metadata=metadata,
        )

    if action_type == ActionType.ADD_CHARGE:
        target = data.get("target")
        if not target:
            raise RuleValidationError("Charge action requires a target metric")
        return ChargeAction(
            amount=_number(data.get("amount"), "Charge amount"),
            target=target,
            amount_type=amount_type,
            metadata=metadata,
        )

    if action_type == ActionType.ADD_CREDIT:
        return CreditAction(amount=_number(data.get("amount"), "Credit amount"), metadata=metadata)

    if action_type == ActionType.SEND_NOTIFICATION:
        return NotificationAction(metadata=metadata, target=data.get("target"))

    target = data.get("target")
    if not target:
        raise RuleValidationError("Plan change action requires a target plan")
    direction = (
        PlanChangeDirection.UPGRADE
        if action_type == ActionType.UPGRADE_PLAN
        else PlanChangeDirection.DOWNGRADE
    )
    return PlanChangeAction(direction=direction, target=target, metadata=metadata)


def action_to_dict(action: RuleAction) -> Dict[str, Any]:
    data: Dict[str, Any] = {"type": action.type.value}
    if isinstance(action, (DiscountAction, ChargeAction)):
        data["amount"] = action.amount
        data["amountType"] = action.amount_type.value
    elif isinstance(action, CreditAction):
        data["amount"] = action.amount
    target = getattr(action, "target", None)
    if target is not None:
        data["target"] = target
    if action.metadata:
        data["metadata"] = dict(action.metadata)
    return data


def _string_list(raw: Any, what: str) -> Optional[List[str]]:
    if raw is None:
        return None
    if not isinstance(raw, (list, tuple)):
        raise RuleValidationError(f"{what} must be a list")
    return [str(item) for item in raw]


def rule_from_dict(data: Mapping[str, Any], rule_id: Optional[str] = None) -> BillingRule:
    """Build a typed rule from a dict; accepts camelCase or snake_case keys."""
    if not isinstance(data, Mapping):
        raise RuleValidationError("Rule must be an object")

    name = data.get("name")
    if not name:
        raise RuleValidationError("Rule name is required")

    if "trigger" not in data:
        raise RuleValidationError("Rule trigger is required")
    if "action" not in data:
        raise RuleValidationError("Rule action is required")

    conditions = data.get("conditions") or []
    if not isinstance(conditions, (list, tuple)):
        raise RuleValidationError("Rule conditions must be a list")

    priority = data.get("priority", 0)
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise RuleValidationError("Rule priority must be an integer")

    is_active = data.get("isActive", data.get("is_active", True))

    rule = BillingRule(
        id=str(rule_id or data.get("id") or uuid.uuid4()),
        name=name,
        description=data.get("description") or "",
        type=_enum(RuleType, data.get("type"), "rule type"),
        trigger=trigger_from_dict(data["trigger"]),
        conditions=[condition_from_dict(c) for c in conditions],
        action=action_from_dict(data["action"]),
        priority=priority,
        is_active=bool(is_active),
        tenant_ids=_string_list(data.get("tenantIds", data.get("tenant_ids")), "Tenant IDs"),
        plans=_string_list(data.get("plans"), "Plans"),
    )

    created = _datetime(data.get("created", data.get("created_at")))
    updated = _datetime(data.get("updated", data.get("updated_at")))
    if created is not None:
        rule.created_at = created
    if updated is not None:
        rule.updated_at = updated
    return rule


def rule_to_dict(rule: BillingRule) -> Dict[str, Any]:
    return {
        "id": rule.id,
        "name": rule.name,
        "description": rule.description,
        "type": rule.type.value,
        "trigger": trigger_to_dict(rule.trigger),
        "conditions": [condition_to_dict(c) for c in rule.conditions],
        "action": action_to_dict(rule.action),
        "priority": rule.priority,
        "is_active": rule.is_active,
        "tenant_ids": rule.tenant_ids,
        "plans": rule.plans,
        "created_at": rule.created_at.isoformat(),
        "updated_at": rule.updated_at.isoformat(),
    }


_UPDATE_KEY_ALIASES = {"isActive": "is_active", "tenantIds": "tenant_ids"}
_IMMUTABLE_KEYS = ("id", "created_at", "created", "updated_at", "updated")


def apply_rule_updates(rule: BillingRule, updates: Mapping[str, Any]) -> BillingRule:
    """Return a new rule with ``updates`` merged in and re-validated."""
    data = rule_to_dict(rule)
    for key, value in updates.items():
        key = _UPDATE_KEY_ALIASES.get(key, key)
        if key in _IMMUTABLE_KEYS:
            continue
        data[key] = value

    updated = rule_from_dict(data, rule_id=rule.id)
    updated.created_at = rule.created_at
    updated.updated_at = utcnow()
    return updated


def usage_from_dict(data: Any) -> UsageMetric:
    if isinstance(data, UsageMetric):
        return data
    if not isinstance(data, Mapping):
        raise RuleValidationError("Usage metric must be an object")
    return UsageMetric(
        name=str(data.get("name")),
        value=_number(data.get("value"), "Usage value"),
        unit=data.get("unit") or "units",
        period=data.get("period") or "month",
        cost=data.get("cost"),
    )


def usage_list_from_data(items: Optional[Sequence[Any]]) -> List[UsageMetric]:
    return [usage_from_dict(item) for item in (items or [])]


def usage_to_dict(metric: UsageMetric) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "name": metric.name,
        "value": metric.value,
        "unit": metric.unit,
        "period": metric.period,
    }
    if metric.cost is not None:
        data["cost"] = metric.cost
    return data


def tenant_from_dict(data: Mapping[str, Any]) -> Tenant:
    known = {"id", "plan", "name", "billing_cycle", "billingCycle"}
    return Tenant(
        id=str(data["id"]),
        plan=str(data.get("plan") or ""),
        name=data.get("name"),
        billing_cycle=data.get("billing_cycle", data.get("billingCycle")),
        attributes={k: v for k, v in data.items() if k not in known},
    )


def tenant_to_dict(tenant: Tenant) -> Dict[str, Any]:
    """Flat view of a tenant: provider fields next to the core ones."""
    data = dict(tenant.attributes)
    data.update(
        id=tenant.id,
        plan=tenant.plan,
        name=tenant.name,
        billing_cycle=tenant.billing_cycle,
        billingCycle=tenant.billing_cycle,
    )
    return data


def execution_record_to_dict(record: ExecutionRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "rule_id": record.rule_id,
        "tenant_id": record.tenant_id,
        "action": record.action.value,
        "context": record.context,
        "executed_at": record.executed_at.isoformat(),
        "status": record.status.value,
        "error": record.error,
    }


def execution_record_from_dict(data: Mapping[str, Any]) -> ExecutionRecord:
    return ExecutionRecord(
        id=data.get("id"),
        rule_id=data["rule_id"],
        tenant_id=data["tenant_id"],
        action=ActionType(data["action"]),
        context=dict(data.get("context") or {}),
        executed_at=_datetime(data["executed_at"]),
        status=ExecutionStatus(data.get("status", ExecutionStatus.SUCCEEDED.value)),
        error=data.get("error"),
    )


__all__ = [
    "action_from_dict", "action_to_dict", "apply_rule_updates",
    "condition_from_dict", "condition_to_dict",
    "execution_record_from_dict", "execution_record_to_dict",
    "rule_from_dict", "rule_to_dict",
    "tenant_from_dict", "tenant_to_dict",
    "trigger_from_dict", "trigger_to_dict",
    "usage_from_dict", "usage_list_from_data", "usage_to_dict",
]
