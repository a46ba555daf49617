"""
Interfaces of the collaborators the billing rules engine is built from.

The engine only ever talks to these protocols; concrete implementations live
in ``app.persistence`` (rule store, execution log) and ``app.clients``
(tenants, usage, ledger, notifications, plan prices).
"""

from typing import Any, Dict, List, Optional, Protocol

from .models import BillingRule, ExecutionRecord, Tenant, UsageMetric


class RuleStore(Protocol):
    async def get_rules(self, filters: Optional[Dict[str, Any]] = None) -> List[BillingRule]: ...

    async def get_active_rules(self, filters: Optional[Dict[str, Any]] = None) -> List[BillingRule]: ...

    async def get_rule(self, rule_id: str) -> BillingRule: ...

    async def create_rule(self, rule: BillingRule) -> BillingRule: ...

    async def update_rule(self, rule_id: str, updates: Dict[str, Any]) -> BillingRule: ...

    async def delete_rule(self, rule_id: str) -> None: ...


class TenantProvider(Protocol):
    async def get_tenant(self, tenant_id: str) -> Tenant: ...


class UsageProvider(Protocol):
    async def get_usage(self, tenant_id: str, period: Optional[str] = None) -> List[UsageMetric]: ...


class PlanPriceTable(Protocol):
    def get_base_amount(self, plan: str) -> float: ...


class BillingEffectuator(Protocol):
    """Performs the monetary mutation behind discount, charge and credit actions."""

    async def apply_discount(self, tenant_id: str, amount: float, amount_type: str) -> None: ...

    async def add_charge(self, tenant_id: str, amount: float, target: str, description: str) -> None: ...

    async def add_credit(self, tenant_id: str, amount: float) -> None: ...

    async def change_plan(self, tenant_id: str, new_plan: str, direction: str) -> None: ...


class NotificationDispatcher(Protocol):
    async def send(self, tenant_id: str, metadata: Dict[str, Any]) -> None: ...


class ExecutionLogStore(Protocol):
    async def record(self, entry: ExecutionRecord) -> None: ...

    async def list_history(self, rule_id: str, limit: int = 50) -> List[ExecutionRecord]: ...
