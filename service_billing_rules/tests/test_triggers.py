"""
Unit tests for trigger evaluation.
"""

import pytest

from service_billing_rules.app.rules.models import (
    BillingRule, ComparisonCondition, ConditionOperator, CreditAction,
    RuleTrigger, RuleType, TriggerEvent, UsageMetric,
)
from service_billing_rules.app.rules.triggers import find_metric, is_triggered


def make_rule(trigger, conditions=None, is_active=True):
    return BillingRule(
        id="rule-1",
        name="Test Rule",
        type=RuleType.CREDIT,
        trigger=trigger,
        action=CreditAction(amount=5),
        conditions=conditions or [],
        is_active=is_active,
    )


class TestFindMetric:
    """Test cases for usage metric lookup."""

    def test_finds_typed_metric(self):
        usage = [UsageMetric(name="api_calls", value=10), UsageMetric(name="storage", value=150)]
        assert find_metric(usage, "storage").value == 150

    def test_finds_dict_metric(self):
        metric = find_metric([{"name": "storage", "value": 150, "unit": "GB"}], "storage")
        assert metric == UsageMetric(name="storage", value=150, unit="GB")

    def test_non_numeric_dict_value(self):
        assert find_metric([{"name": "storage", "value": "lots"}], "storage") is None

    def test_missing_metric(self):
        assert find_metric([{"name": "storage", "value": 1}], "bandwidth") is None
        assert find_metric(None, "storage") is None


class TestUsageThresholdTrigger:
    """Test cases for usage_threshold triggers."""

    @pytest.fixture
    def rule(self):
        return make_rule(RuleTrigger(event=TriggerEvent.USAGE_THRESHOLD, metric="storage", threshold=100))

    def test_above_threshold(self, rule):
        assert is_triggered(rule, {"usage": [{"name": "storage", "value": 150}]}) is True

    def test_at_threshold_is_not_triggered(self, rule):
        assert is_triggered(rule, {"usage": [{"name": "storage", "value": 100}]}) is False

    def test_metric_absent(self, rule):
        assert is_triggered(rule, {"usage": [{"name": "api_calls", "value": 500}]}) is False

    def test_no_usage_in_context(self, rule):
        assert is_triggered(rule, {}) is False

    @pytest.mark.parametrize("trigger", [
        RuleTrigger(event=TriggerEvent.USAGE_THRESHOLD, metric="storage"),
        RuleTrigger(event=TriggerEvent.USAGE_THRESHOLD, threshold=100),
    ])
    def test_malformed_trigger(self, trigger):
        rule = make_rule(trigger)
        assert is_triggered(rule, {"usage": [{"name": "storage", "value": 1000}]}) is False


class TestEventTriggers:
    """Test cases for event-driven triggers."""

    def test_plan_change(self):
        rule = make_rule(RuleTrigger(event=TriggerEvent.PLAN_CHANGE))

        assert is_triggered(rule, {"event": "plan_changed"}) is True
        assert is_triggered(rule, {"event": "subscription_renewed"}) is False
        assert is_triggered(rule, {}) is False

    def test_renewal(self):
        rule = make_rule(RuleTrigger(event=TriggerEvent.RENEWAL))

        assert is_triggered(rule, {"event": "subscription_renewed"}) is True
        assert is_triggered(rule, {"event": "plan_changed"}) is False

    @pytest.mark.parametrize("event", [TriggerEvent.MANUAL, TriggerEvent.SCHEDULED])
    def test_manual_and_scheduled_fire_when_conditions_hold(self, event):
        rule = make_rule(
            RuleTrigger(event=event, schedule="0 0 1 * *"),
            conditions=[ComparisonCondition("tenant.plan", ConditionOperator.EQ, "basic")],
        )

        assert is_triggered(rule, {"tenant": {"plan": "basic"}}) is True
        assert is_triggered(rule, {"tenant": {"plan": "free"}}) is False


class TestTriggerGuards:
    """Test cases for inactive rules and unusable contexts."""

    def test_inactive_rule_never_fires(self):
        rule = make_rule(RuleTrigger(event=TriggerEvent.MANUAL), is_active=False)
        assert is_triggered(rule, {}) is False

    def test_event_trigger_settles_without_conditions(self):
        rule = make_rule(
            RuleTrigger(event=TriggerEvent.RENEWAL),
            conditions=[ComparisonCondition("seats", ConditionOperator.GTE, 10)],
        )

        assert is_triggered(rule, {"event": "subscription_renewed", "seats": 2}) is True
        assert is_triggered(rule, {"event": "plan_changed", "seats": 12}) is False

    def test_plan_change_ignores_tenant_condition(self):
        rule = make_rule(
            RuleTrigger(event=TriggerEvent.PLAN_CHANGE),
            conditions=[ComparisonCondition("billing_cycle", ConditionOperator.EQ, "annual")],
        )

        assert is_triggered(rule, {"event": "plan_changed"}) is True

    def test_storage_overage_with_condition(self):
        rule = make_rule(
            RuleTrigger(event=TriggerEvent.USAGE_THRESHOLD, metric="storage", threshold=100),
            conditions=[ComparisonCondition("storage_gb", ConditionOperator.GT, 100)],
        )

        assert is_triggered(rule, {"usage": [{"name": "storage", "value": 150}]}) is True
        assert is_triggered(rule, {"usage": [{"name": "storage", "value": 90}]}) is False

    def test_none_context(self):
        assert is_triggered(make_rule(RuleTrigger(event=TriggerEvent.MANUAL)), None) is True

    def test_non_mapping_context(self):
        assert is_triggered(make_rule(RuleTrigger(event=TriggerEvent.MANUAL)), ["event"]) is False
