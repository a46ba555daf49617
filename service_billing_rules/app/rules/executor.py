"""
Action execution for fired billing rules.

Each execution is attempted once: the action handler runs, then one history
record is written whether the handler succeeded or not. A failed history
write is logged and counted but never undoes or hides the action outcome.
Retrying is left to the caller.
"""

from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from shared.errors import ActionExecutionError, BillingPlatformException
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from .collaborators import BillingEffectuator, ExecutionLogStore, NotificationDispatcher
from .models import (
    ActionType, BillingRule, ChargeAction, CreditAction, DiscountAction,
    ExecutionRecord, ExecutionStatus, NotificationAction, PlanChangeAction,
    PlanChangeDirection,
)

Handler = Callable[[BillingRule, str], Awaitable[None]]


class ActionExecutor:
    """Dispatches a rule's action to the billing and notification collaborators."""

    def __init__(
        self,
        effectuator: BillingEffectuator,
        notifier: NotificationDispatcher,
        execution_log: ExecutionLogStore,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.effectuator = effectuator
        self.notifier = notifier
        self.execution_log = execution_log
        self.metrics = metrics
        self.logger = get_logger("billing_rules.executor")

        self._handlers: Dict[ActionType, Handler] = {
            ActionType.APPLY_DISCOUNT: self._apply_discount,
            ActionType.ADD_CHARGE: self._add_charge,
            ActionType.ADD_CREDIT: self._add_credit,
            ActionType.SEND_NOTIFICATION: self._send_notification,
            ActionType.UPGRADE_PLAN: self._upgrade_plan,
            ActionType.DOWNGRADE_PLAN: self._downgrade_plan,
        }

    async def execute(self, rule: BillingRule, tenant_id: str, context: Optional[Mapping[str, Any]] = None) -> None:
        """Run the rule's action for ``tenant_id`` and record the attempt."""
        action_type = rule.action.type
        record = ExecutionRecord(
            rule_id=rule.id,
            tenant_id=tenant_id,
            action=action_type,
            context=dict(context or {}),
        )

        try:
            handler = self._handlers[action_type]
            await handler(rule, tenant_id)
        except Exception as e:
            record.status = ExecutionStatus.FAILED
            record.error = str(e)
            self.logger.error(
                "Rule action failed",
                rule_id=rule.id,
                tenant_id=tenant_id,
                action=action_type.value,
                error=str(e)
            )
            self._count("rule_executions_total", action=action_type.value, status="failed")
            await self._record(record)
            if isinstance(e, BillingPlatformException):
                raise
            raise ActionExecutionError(rule.id, action_type.value, str(e)) from e

        self.logger.info(
            "Rule action executed",
            rule_id=rule.id,
            tenant_id=tenant_id,
            action=action_type.value
        )
        self._count("rule_executions_total", action=action_type.value, status="succeeded")
        await self._record(record)

    async def _record(self, record: ExecutionRecord) -> None:
        try:
            await self.execution_log.record(record)
        except Exception as e:
            self.logger.error(
                "Failed to record rule execution",
                rule_id=record.rule_id,
                tenant_id=record.tenant_id,
                action=record.action.value,
                execution_status=record.status.value,
                error=str(e)
            )
            self._count("rule_execution_log_failures_total", action=record.action.value)

    def _count(self, metric_name: str, **labels) -> None:
        if self.metrics is not None:
            self.metrics.increment_counter(metric_name, **labels)

    async def _apply_discount(self, rule: BillingRule, tenant_id: str) -> None:
        action: DiscountAction = rule.action
        await self.effectuator.apply_discount(tenant_id, action.amount, action.amount_type.value)

    async def _add_charge(self, rule: BillingRule, tenant_id: str) -> None:
        action: ChargeAction = rule.action
        await self.effectuator.add_charge(tenant_id, action.amount, action.target, rule.name)

    async def _add_credit(self, rule: BillingRule, tenant_id: str) -> None:
        action: CreditAction = rule.action
        await self.effectuator.add_credit(tenant_id, action.amount)

    async def _send_notification(self, rule: BillingRule, tenant_id: str) -> None:
        action: NotificationAction = rule.action
        metadata = dict(action.metadata)
        metadata.setdefault("rule_id", rule.id)
        metadata.setdefault("rule_name", rule.name)
        if action.target:
            metadata.setdefault("channel", action.target)
        await self.notifier.send(tenant_id, metadata)

    async def _upgrade_plan(self, rule: BillingRule, tenant_id: str) -> None:
        action: PlanChangeAction = rule.action
        await self.effectuator.change_plan(tenant_id, action.target, PlanChangeDirection.UPGRADE.value)

    async def _downgrade_plan(self, rule: BillingRule, tenant_id: str) -> None:
        action: PlanChangeAction = rule.action
        await self.effectuator.change_plan(tenant_id, action.target, PlanChangeDirection.DOWNGRADE.value)
