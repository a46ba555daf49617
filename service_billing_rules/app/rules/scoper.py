"""
Rule scoping: narrow the rule set to what applies to one tenant and usage snapshot.
"""

from typing import Iterable, List, Sequence

from .conditions import evaluate_all
from .models import BillingRule, Tenant, UsageMetric
from .serialization import tenant_to_dict, usage_to_dict


def is_rule_applicable(rule: BillingRule, tenant: Tenant, usage: Sequence[UsageMetric]) -> bool:
    """Check if a rule is applicable to the tenant."""
    if not rule.is_active:
        return False

    if rule.tenant_ids is not None and tenant.id not in rule.tenant_ids:
        return False

    if rule.plans is not None and tenant.plan not in rule.plans:
        return False

    context = {
        "tenant": tenant_to_dict(tenant),
        "usage": [usage_to_dict(metric) for metric in usage],
    }
    return evaluate_all(rule.conditions, context)


def select_applicable(
    rules: Iterable[BillingRule],
    tenant: Tenant,
    usage: Sequence[UsageMetric],
) -> List[BillingRule]:
    """Rules applicable to ``tenant``, in input order."""
    return [rule for rule in rules if is_rule_applicable(rule, tenant, usage)]
