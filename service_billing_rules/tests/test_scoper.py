"""
Unit tests for rule scoping.
"""

import pytest

from service_billing_rules.app.rules.models import (
    BillingRule, ComparisonCondition, ConditionOperator, CreditAction,
    RuleTrigger, RuleType, Tenant, TriggerEvent, UsageMetric,
)
from service_billing_rules.app.rules.scoper import is_rule_applicable, select_applicable
from service_billing_rules.app.rules.serialization import tenant_from_dict


def make_rule(rule_id="rule-1", **overrides):
    fields = dict(
        id=rule_id,
        name=f"Rule {rule_id}",
        type=RuleType.CREDIT,
        trigger=RuleTrigger(event=TriggerEvent.MANUAL),
        action=CreditAction(amount=5),
    )
    fields.update(overrides)
    return BillingRule(**fields)


class TestRuleScoper:
    """Test cases for rule applicability."""

    @pytest.fixture
    def tenant(self):
        return Tenant(id="tenant-1", plan="professional", billing_cycle="annual")

    @pytest.fixture
    def usage(self):
        return [UsageMetric(name="storage", value=150, unit="GB")]

    def test_unrestricted_rule_applies(self, tenant, usage):
        assert is_rule_applicable(make_rule(), tenant, usage) is True

    def test_inactive_rule(self, tenant, usage):
        assert is_rule_applicable(make_rule(is_active=False), tenant, usage) is False

    def test_tenant_allow_list(self, tenant, usage):
        assert is_rule_applicable(make_rule(tenant_ids=["tenant-1"]), tenant, usage) is True
        assert is_rule_applicable(make_rule(tenant_ids=["tenant-2"]), tenant, usage) is False

    def test_empty_allow_list_matches_nothing(self, tenant, usage):
        assert is_rule_applicable(make_rule(tenant_ids=[]), tenant, usage) is False
        assert is_rule_applicable(make_rule(plans=[]), tenant, usage) is False

    def test_plan_allow_list(self, tenant, usage):
        assert is_rule_applicable(make_rule(plans=["professional", "enterprise"]), tenant, usage) is True
        assert is_rule_applicable(make_rule(plans=["basic"]), tenant, usage) is False

    def test_conditions_see_tenant_and_usage(self, tenant, usage):
        rule = make_rule(conditions=[
            ComparisonCondition("tenant.billing_cycle", ConditionOperator.EQ, "annual"),
            ComparisonCondition("usage.0.value", ConditionOperator.GT, 100),
        ])
        assert is_rule_applicable(rule, tenant, usage) is True

    def test_conditions_see_provider_tenant_fields(self, usage):
        tenant = tenant_from_dict({
            "id": "tenant-9",
            "plan": "basic",
            "billingCycle": "annual",
            "region": "eu",
        })
        rule = make_rule(conditions=[
            ComparisonCondition("tenant.region", ConditionOperator.EQ, "eu"),
            ComparisonCondition("tenant.billingCycle", ConditionOperator.EQ, "annual"),
        ])

        assert select_applicable([rule], tenant, usage) == [rule]

    def test_conditions_see_usage_fields(self, tenant, usage):
        rule = make_rule(conditions=[
            ComparisonCondition("usage.0.unit", ConditionOperator.EQ, "GB"),
        ])
        assert is_rule_applicable(rule, tenant, usage) is True

    def test_failing_condition(self, tenant, usage):
        rule = make_rule(conditions=[
            ComparisonCondition("tenant.billing_cycle", ConditionOperator.EQ, "monthly"),
        ])
        assert is_rule_applicable(rule, tenant, usage) is False

    def test_select_preserves_input_order(self, tenant, usage):
        rules = [
            make_rule("c", priority=3),
            make_rule("skip", plans=["basic"]),
            make_rule("a", priority=1),
            make_rule("b", priority=2),
        ]

        selected = select_applicable(rules, tenant, usage)

        assert [rule.id for rule in selected] == ["c", "a", "b"]
