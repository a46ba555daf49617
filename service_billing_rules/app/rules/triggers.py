"""
Trigger evaluation: does a rule's activation event currently hold?
"""

from typing import Any, Iterable, Mapping, Optional

from shared.logging import get_logger
from .conditions import evaluate_all
from .models import BillingRule, TriggerEvent, UsageMetric

logger = get_logger("billing_rules.triggers")

PLAN_CHANGED_EVENT = "plan_changed"
SUBSCRIPTION_RENEWED_EVENT = "subscription_renewed"


def find_metric(usage: Optional[Iterable[Any]], name: Optional[str]) -> Optional[UsageMetric]:
    """Find a usage metric by name; entries may be models or plain dicts."""
    if not usage or not name:
        return None
    for entry in usage:
        if isinstance(entry, UsageMetric):
            if entry.name == name:
                return entry
        elif isinstance(entry, Mapping) and entry.get("name") == name:
            value = entry.get("value")
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return None
            return UsageMetric(
                name=name,
                value=value,
                unit=entry.get("unit") or "units",
                period=entry.get("period") or "month",
                cost=entry.get("cost"),
            )
    return None


def _event_decision(rule: BillingRule, context: Mapping[str, Any]) -> Optional[bool]:
    """Outcome of an event-driven trigger, or None when conditions decide."""
    trigger = rule.trigger

    if trigger.event == TriggerEvent.USAGE_THRESHOLD:
        if not trigger.is_well_formed():
            logger.warning("Malformed usage threshold trigger", rule_id=rule.id)
            return False
        metric = find_metric(context.get("usage"), trigger.metric)
        if metric is None:
            return False
        return metric.value > trigger.threshold

    if trigger.event == TriggerEvent.PLAN_CHANGE:
        return context.get("event") == PLAN_CHANGED_EVENT

    if trigger.event == TriggerEvent.RENEWAL:
        return context.get("event") == SUBSCRIPTION_RENEWED_EVENT

    # Manual and scheduled rules are fired by an explicit caller.
    return None


def is_triggered(rule: BillingRule, context: Optional[Mapping[str, Any]]) -> bool:
    """Whether the rule has fired.

    Usage-threshold, plan-change and renewal triggers settle the answer on
    their own. Manual and scheduled rules fire when all conditions hold.
    """
    if not rule.is_active:
        return False

    context = context or {}
    if not isinstance(context, Mapping):
        return False

    decision = _event_decision(rule, context)
    if decision is not None:
        return decision

    return evaluate_all(rule.conditions, context)
