"""
Billing rules engine for the Billing Rules Service.
"""

import time
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from .collaborators import (
    BillingEffectuator, ExecutionLogStore, NotificationDispatcher,
    PlanPriceTable, RuleStore, TenantProvider,
)
from .executor import ActionExecutor
from .models import (
    BillingCalculation, BillingRule, ExecutionRecord, RuleTestResult,
    UsageMetric,
)
from .scoper import select_applicable
from .sequencer import DEFAULT_CURRENCY, compute_calculation
from .serialization import usage_list_from_data
from .simulation import test_rule as simulate_rule
from .triggers import is_triggered


class BillingRulesEngine:
    """Rule evaluation and adjustment engine.

    Holds no rule or tenant state of its own: every call reads what it needs
    from the injected collaborators.
    """

    def __init__(
        self,
        rule_store: RuleStore,
        tenant_provider: TenantProvider,
        price_table: PlanPriceTable,
        effectuator: BillingEffectuator,
        notifier: NotificationDispatcher,
        execution_log: ExecutionLogStore,
        currency: str = DEFAULT_CURRENCY,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.rule_store = rule_store
        self.tenant_provider = tenant_provider
        self.price_table = price_table
        self.execution_log = execution_log
        self.currency = currency
        self.metrics = metrics
        self.executor = ActionExecutor(effectuator, notifier, execution_log, metrics=metrics)
        self.logger = get_logger("billing_rules.engine")

    async def calculate_billing(
        self,
        tenant_id: str,
        usage: Sequence[Union[UsageMetric, Mapping[str, Any]]],
    ) -> BillingCalculation:
        """Calculate a tenant's bill with all applicable rules applied.

        Lookup failures propagate to the caller; nothing is retried here.
        """
        start_time = time.time()
        try:
            usage_metrics = usage_list_from_data(usage)
            tenant = await self.tenant_provider.get_tenant(tenant_id)
            rules = await self.rule_store.get_active_rules()

            applicable = select_applicable(rules, tenant, usage_metrics)
            base_amount = self.price_table.get_base_amount(tenant.plan)

            calculation = compute_calculation(
                base_amount, applicable, usage_metrics, currency=self.currency
            )
        except Exception as e:
            self.logger.error("Billing calculation failed", tenant_id=tenant_id, error=str(e))
            self._count("billing_calculations_total", status="error")
            raise

        self._count("billing_calculations_total", status="ok")
        if self.metrics is not None:
            self.metrics.observe("billing_calculation_duration_seconds", time.time() - start_time)

        self.logger.info(
            "Billing calculated",
            tenant_id=tenant_id,
            plan=tenant.plan,
            applicable_rules=len(applicable),
            adjustments=len(calculation.adjustments),
            final_amount=calculation.final_amount
        )
        return calculation

    async def evaluate_trigger(self, rule_id: str, tenant_id: str, context: Optional[Mapping[str, Any]]) -> bool:
        """Whether the rule fires for this event context; fails closed."""
        try:
            rule = await self.rule_store.get_rule(rule_id)
            triggered = is_triggered(rule, context)
        except Exception as e:
            self.logger.error(
                "Trigger evaluation error",
                rule_id=rule_id,
                tenant_id=tenant_id,
                error=str(e)
            )
            return False

        self._count(
            "rule_trigger_evaluations_total",
            event=rule.trigger.event.value,
            triggered=str(triggered).lower()
        )
        self.logger.debug(
            "Trigger evaluated",
            rule_id=rule_id,
            tenant_id=tenant_id,
            triggered=triggered
        )
        return triggered

    async def execute_action(self, rule_id: str, tenant_id: str, context: Optional[Mapping[str, Any]] = None) -> None:
        """Perform the rule's action for the tenant and log the attempt."""
        rule = await self.rule_store.get_rule(rule_id)
        await self.executor.execute(rule, tenant_id, context)

    def test_rule(self, candidate: Union[BillingRule, Mapping[str, Any]], sample_data: Any) -> RuleTestResult:
        """Simulate a rule without side effects."""
        result = simulate_rule(candidate, sample_data)
        if result.errors:
            outcome = "error"
        else:
            outcome = "triggered" if result.triggered else "not_triggered"
        self._count("rule_tests_total", outcome=outcome)
        return result

    async def get_execution_history(self, rule_id: str, limit: int = 50) -> List[ExecutionRecord]:
        """Most recent executions of a rule, newest first."""
        return await self.execution_log.list_history(rule_id, limit)

    async def get_rules(self, filters: Optional[Dict[str, Any]] = None) -> List[BillingRule]:
        return await self.rule_store.get_rules(filters)

    async def get_rule(self, rule_id: str) -> BillingRule:
        return await self.rule_store.get_rule(rule_id)

    async def create_rule(self, rule: BillingRule) -> BillingRule:
        created = await self.rule_store.create_rule(rule)
        self.logger.info("Rule created", rule_id=created.id, name=created.name)
        return created

    async def update_rule(self, rule_id: str, updates: Dict[str, Any]) -> BillingRule:
        updated = await self.rule_store.update_rule(rule_id, updates)
        self.logger.info("Rule updated", rule_id=rule_id, name=updated.name)
        return updated

    async def delete_rule(self, rule_id: str) -> None:
        await self.rule_store.delete_rule(rule_id)
        self.logger.info("Rule deleted", rule_id=rule_id)

    def _count(self, metric_name: str, **labels) -> None:
        if self.metrics is not None:
            self.metrics.increment_counter(metric_name, **labels)
