"""
Billing rules service for the tenant billing platform.
"""

from dataclasses import asdict
from typing import Any, Dict, Optional

from fastapi import Query

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import BillingCalculationError, BillingPlatformException
from shared.logging import set_billing_context

from .clients.ledger import BillingLedgerClient
from .clients.notifications import LogNotificationDispatcher, WebhookNotificationDispatcher
from .clients.pricing import StaticPlanPriceTable
from .clients.tenants import TenantServiceClient
from .clients.usage import UsageServiceClient
from .persistence.memory import InMemoryExecutionLog, InMemoryRuleStore
from .persistence.postgres import PostgresDatabase, PostgresExecutionLog, PostgresRuleStore
from .rules.collaborators import UsageProvider
from .rules.engine import BillingRulesEngine
from .rules.models import (
    BillingCalculation, CalculationRequest, RuleCreateRequest, RuleEventRequest,
    RuleTestRequest, RuleType, RuleUpdateRequest,
)
from .rules.serialization import (
    execution_record_to_dict, rule_from_dict, rule_to_dict,
)

SERVICE_NAME = "billing_rules"
SERVICE_PORT = 8015


def calculation_to_dict(calculation: BillingCalculation) -> Dict[str, Any]:
    return asdict(calculation)


class BillingRulesService(BaseService):
    """Billing rules service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        engine: Optional[BillingRulesEngine] = None,
        usage_provider: Optional[UsageProvider] = None,
    ):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config=config)

        self.database: Optional[PostgresDatabase] = None
        self.engine = engine or self._build_engine()
        self.usage_provider = usage_provider or UsageServiceClient(
            self.config.usage_service_url, timeout=self.config.http_timeout_seconds
        )

        self._setup_billing_routes()

    def _build_engine(self) -> BillingRulesEngine:
        """Wire the engine from configuration."""
        if self.config.rule_store_backend == "postgres":
            self.database = PostgresDatabase(self.config.postgres_dsn)
            rule_store = PostgresRuleStore(self.database)
            execution_log = PostgresExecutionLog(self.database)
        else:
            rule_store = InMemoryRuleStore()
            execution_log = InMemoryExecutionLog()

        if self.config.notification_webhook_url:
            notifier = WebhookNotificationDispatcher(
                self.config.notification_webhook_url, timeout=self.config.http_timeout_seconds
            )
        else:
            notifier = LogNotificationDispatcher()

        return BillingRulesEngine(
            rule_store=rule_store,
            tenant_provider=TenantServiceClient(
                self.config.tenant_service_url, timeout=self.config.http_timeout_seconds
            ),
            price_table=StaticPlanPriceTable(self.config.plan_prices),
            effectuator=BillingLedgerClient(
                self.config.billing_ledger_url, timeout=self.config.http_timeout_seconds
            ),
            notifier=notifier,
            execution_log=execution_log,
            currency=self.config.currency,
            metrics=self.metrics,
        )

    def _setup_billing_routes(self):
        """Set up billing-rule routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": SERVICE_NAME,
                "message": "Tenant billing platform - Billing Rules Service",
                "version": "1.0.0",
                "capabilities": ["calculation", "triggers", "actions", "simulation", "history"]
            }

        @self.app.get("/billing/rules")
        async def list_rules(
            type: Optional[RuleType] = Query(None, description="Filter by rule type"),
            is_active: Optional[bool] = Query(None, description="Filter by active flag"),
        ):
            """List rules, lowest priority value first."""
            filters: Dict[str, Any] = {}
            if type is not None:
                filters["type"] = type.value
            if is_active is not None:
                filters["is_active"] = is_active

            rules = await self.engine.get_rules(filters)
            return {"rules": [rule_to_dict(rule) for rule in rules], "total": len(rules)}

        @self.app.post("/billing/rules", status_code=201)
        async def create_rule(request: RuleCreateRequest):
            """Create a new rule."""
            rule = rule_from_dict(request.model_dump(mode="json"))
            created = await self.engine.create_rule(rule)
            return rule_to_dict(created)

        @self.app.get("/billing/rules/{rule_id}")
        async def get_rule(rule_id: str):
            rule = await self.engine.get_rule(rule_id)
            return rule_to_dict(rule)

        @self.app.put("/billing/rules/{rule_id}")
        async def update_rule(rule_id: str, request: RuleUpdateRequest):
            """Update an existing rule."""
            updates = request.model_dump(mode="json", exclude_unset=True)
            updated = await self.engine.update_rule(rule_id, updates)
            return rule_to_dict(updated)

        @self.app.delete("/billing/rules/{rule_id}")
        async def delete_rule(rule_id: str):
            """Delete a rule."""
            await self.engine.delete_rule(rule_id)
            return {"success": True, "message": "Rule deleted successfully"}

        @self.app.post("/billing/calculate")
        async def calculate_billing(request: CalculationRequest):
            """Calculate a tenant's bill with rules applied."""
            set_billing_context(tenant_id=request.tenant_id)
            try:
                if request.usage is None:
                    usage = await self.usage_provider.get_usage(request.tenant_id, request.period)
                else:
                    usage = [metric.model_dump() for metric in request.usage]

                calculation = await self.engine.calculate_billing(request.tenant_id, usage)

            except BillingPlatformException:
                raise
            except Exception as e:
                self.logger.error("Billing calculation failed", tenant_id=request.tenant_id, error=str(e))
                raise BillingCalculationError(details={"tenant_id": request.tenant_id})

            return calculation_to_dict(calculation)

        @self.app.post("/billing/rules/test")
        async def test_rule(request: RuleTestRequest):
            """Simulate a draft rule against sample data; never performs the action."""
            result = self.engine.test_rule(request.rule, request.sample_data)
            response: Dict[str, Any] = {"triggered": result.triggered}
            if result.result is not None:
                response["result"] = result.result
            if result.errors:
                response["errors"] = result.errors
            return response

        @self.app.post("/billing/rules/{rule_id}/evaluate")
        async def evaluate_trigger(rule_id: str, request: RuleEventRequest):
            set_billing_context(tenant_id=request.tenant_id, rule_id=rule_id)
            triggered = await self.engine.evaluate_trigger(rule_id, request.tenant_id, request.context)
            return {"rule_id": rule_id, "tenant_id": request.tenant_id, "triggered": triggered}

        @self.app.post("/billing/rules/{rule_id}/execute")
        async def execute_action(rule_id: str, request: RuleEventRequest):
            set_billing_context(tenant_id=request.tenant_id, rule_id=rule_id)
            await self.engine.execute_action(rule_id, request.tenant_id, request.context)
            return {"success": True, "rule_id": rule_id, "tenant_id": request.tenant_id}

        @self.app.get("/billing/rules/{rule_id}/executions")
        async def execution_history(
            rule_id: str,
            limit: Optional[int] = Query(None, ge=1, le=500, description="Maximum entries"),
        ):
            limit = limit or self.config.execution_history_limit
            history = await self.engine.get_execution_history(rule_id, limit)
            return {"rule_id": rule_id, "executions": [execution_record_to_dict(e) for e in history]}

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check billing rules service dependencies."""
        dependencies: Dict[str, str] = {}
        if self.database is not None:
            try:
                dependencies["postgres"] = "ok" if await self.database.health_check() else "error"
            except Exception:
                dependencies["postgres"] = "error"
        return dependencies

    async def start(self):
        """Start service components."""
        if self.database is not None:
            await self.database.start()
        self.logger.info("Billing rules service started", backend=self.config.rule_store_backend)

    async def stop(self):
        """Stop service components."""
        if self.database is not None:
            await self.database.stop()
        self.logger.info("Billing rules service stopped")


def create_app(
    config: Optional[ServiceConfig] = None,
    engine: Optional[BillingRulesEngine] = None,
    usage_provider: Optional[UsageProvider] = None,
):
    """Create billing rules service application."""
    service = BillingRulesService(config=config, engine=engine, usage_provider=usage_provider)
    return service.app


if __name__ == "__main__":
    service = BillingRulesService()
    service.run()
