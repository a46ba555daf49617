"""
Adjustment sequencing: fold scoped rules into a billing calculation.

Pure and deterministic: the same base amount, rules and usage always give
the same calculation, adjustments in the order the rules were applied.
"""

from typing import List, Optional, Sequence

from .models import (
    Adjustment, AmountType, BillingCalculation, BillingRule, ChargeAction,
    CreditAction, DiscountAction, UsageMetric,
)
from .triggers import find_metric

DEFAULT_CURRENCY = "USD"


def order_by_priority(rules: Sequence[BillingRule]) -> List[BillingRule]:
    """Ascending priority; ``sorted`` is stable so ties keep their input order."""
    return sorted(rules, key=lambda rule: rule.priority)


def compute_adjustment(
    rule: BillingRule,
    base_amount: float,
    usage: Sequence[UsageMetric],
) -> Optional[Adjustment]:
    """Monetary effect of one rule, or None when it has none."""
    action = rule.action

    if isinstance(action, DiscountAction):
        # Percentages are taken from the original base, not the running total.
        if action.amount_type == AmountType.PERCENTAGE:
            amount = -(base_amount * (action.amount / 100))
        else:
            amount = -action.amount
        return Adjustment(
            rule_id=rule.id,
            rule_name=rule.name,
            type="discount",
            amount=amount,
            description=rule.description,
        )

    if isinstance(action, ChargeAction):
        metric = find_metric(usage, action.target)
        if metric is None:
            return None
        overage = max(0, metric.value - (rule.trigger.threshold or 0))
        amount = overage * action.amount
        if amount == 0:
            return None
        return Adjustment(
            rule_id=rule.id,
            rule_name=rule.name,
            type="usage",
            amount=amount,
            description=f"{overage:g} {metric.unit} over limit",
        )

    if isinstance(action, CreditAction):
        return Adjustment(
            rule_id=rule.id,
            rule_name=rule.name,
            type="credit",
            amount=-action.amount,
            description=rule.description,
        )

    # Notifications and plan changes only act through the executor.
    return None


def compute_calculation(
    base_amount: float,
    scoped_rules: Sequence[BillingRule],
    usage: Sequence[UsageMetric],
    currency: str = DEFAULT_CURRENCY,
) -> BillingCalculation:
    """Apply scoped rules in priority order to ``base_amount``."""
    adjustments: List[Adjustment] = []

    for rule in order_by_priority(scoped_rules):
        adjustment = compute_adjustment(rule, base_amount, usage)
        if adjustment is not None:
            adjustments.append(adjustment)

    total = base_amount + sum(adjustment.amount for adjustment in adjustments)

    return BillingCalculation(
        base_amount=base_amount,
        adjustments=adjustments,
        final_amount=max(0.0, total),
        currency=currency,
    )
