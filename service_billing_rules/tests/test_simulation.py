"""
Unit tests for draft rule simulation.
"""

import copy

import pytest

from service_billing_rules.app.rules.models import (
    AmountType, ChargeAction, CreditAction, DiscountAction, NotificationAction,
    PlanChangeAction, PlanChangeDirection,
)
from service_billing_rules.app.rules.serialization import rule_from_dict
from service_billing_rules.app.rules.simulation import describe_action, test_rule as simulate
from shared.test_helpers import TestDataFactory


class TestDescribeAction:
    """Test cases for action descriptions."""

    @pytest.mark.parametrize("action,expected", [
        (
            DiscountAction(20, AmountType.PERCENTAGE),
            {"discount": 20, "type": "percentage", "description": "20% discount applied"},
        ),
        (
            DiscountAction(10),
            {"discount": 10, "type": "fixed", "description": "$10 discount applied"},
        ),
        (
            ChargeAction(amount=0.1, target="storage"),
            {"charge": 0.1, "target": "storage", "description": "$0.1 charge for storage"},
        ),
        (
            CreditAction(5),
            {"credit": 5, "description": "$5 credit applied"},
        ),
        (
            PlanChangeAction(direction=PlanChangeDirection.UPGRADE, target="enterprise"),
            {"target": "enterprise", "type": "upgrade", "description": "Plan upgrade to enterprise"},
        ),
    ])
    def test_descriptions(self, action, expected):
        assert describe_action(action) == expected

    def test_notification(self):
        result = describe_action(NotificationAction(metadata={"template": "x"}))
        assert result["notification"] == {"template": "x"}


class TestRuleSimulation:
    """Test cases for side-effect-free rule tests."""

    @pytest.fixture
    def draft(self):
        rule = TestDataFactory.create_annual_discount_rule()
        rule.pop("id")
        return rule

    def test_conditions_hold(self, draft):
        result = simulate(draft, {"tenant": {"billing_cycle": "annual"}})

        assert result.triggered is True
        assert result.result == {
            "discount": 20,
            "type": "percentage",
            "description": "20% discount applied",
        }
        assert result.errors is None

    def test_conditions_fail(self, draft):
        result = simulate(draft, {"tenant": {"billing_cycle": "monthly"}})

        assert result.triggered is False
        assert result.result is None
        assert result.errors is None

    def test_trigger_is_not_consulted(self):
        rule = TestDataFactory.create_storage_overage_rule()

        result = simulate(rule, {})

        assert result.triggered is True
        assert result.result["charge"] == 0.1

    def test_accepts_typed_rule(self):
        rule = rule_from_dict(TestDataFactory.create_loyalty_credit_rule())
        assert simulate(rule, {}).triggered is True

    def test_invalid_draft_returns_errors(self, draft):
        draft["conditions"] = [{"field": "plan", "operator": "like", "value": "pro"}]

        result = simulate(draft, {})

        assert result.triggered is False
        assert len(result.errors) == 1
        assert "like" in result.errors[0]

    def test_missing_action(self, draft):
        del draft["action"]

        result = simulate(draft, {})

        assert result.triggered is False
        assert result.errors == ["Rule action is required"]

    def test_inputs_left_untouched(self, draft):
        sample = {"tenant": {"billing_cycle": "annual"}}
        draft_before = copy.deepcopy(draft)
        sample_before = copy.deepcopy(sample)

        simulate(draft, sample)

        assert draft == draft_before
        assert sample == sample_before
