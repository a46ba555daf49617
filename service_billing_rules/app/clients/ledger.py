"""
Billing ledger client: performs the monetary side of rule actions.

Writes are sent once. Any retry belongs to whoever called ``execute_action``.
"""

from typing import Any, Dict, Optional

import httpx

from shared.errors import ExternalServiceError
from shared.logging import get_logger


class BillingLedgerClient:
    """Applies discounts, charges, credits and plan changes in the billing ledger."""

    def __init__(
        self,
        billing_ledger_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = billing_ledger_url.rstrip('/')
        self.timeout = timeout
        self._transport = transport
        self.logger = get_logger("billing_rules.clients.ledger")

    async def _post(self, path: str, payload: Dict[str, Any]) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(f"{self.base_url}{path}", json=payload)
        except httpx.HTTPError as e:
            self.logger.error("Billing ledger unreachable", path=path, error=str(e))
            raise ExternalServiceError("billing_ledger", "Ledger unreachable", details={"error": str(e)}) from e

        if response.status_code >= 400:
            self.logger.error(
                "Billing ledger rejected request",
                path=path,
                status_code=response.status_code,
                body=response.text
            )
            raise ExternalServiceError(
                "billing_ledger",
                "Ledger rejected request",
                details={"status_code": response.status_code, "path": path}
            )

    async def apply_discount(self, tenant_id: str, amount: float, amount_type: str) -> None:
        await self._post(
            f"/tenants/{tenant_id}/discounts",
            {"amount": amount, "amount_type": amount_type}
        )
        self.logger.info("Discount applied", tenant_id=tenant_id, amount=amount, amount_type=amount_type)

    async def add_charge(self, tenant_id: str, amount: float, target: str, description: str) -> None:
        await self._post(
            f"/tenants/{tenant_id}/charges",
            {"amount": amount, "target": target, "description": description}
        )
        self.logger.info("Charge added", tenant_id=tenant_id, amount=amount, target=target)

    async def add_credit(self, tenant_id: str, amount: float) -> None:
        await self._post(f"/tenants/{tenant_id}/credits", {"amount": amount})
        self.logger.info("Credit added", tenant_id=tenant_id, amount=amount)

    async def change_plan(self, tenant_id: str, new_plan: str, direction: str) -> None:
        await self._post(
            f"/tenants/{tenant_id}/plan",
            {"plan": new_plan, "direction": direction}
        )
        self.logger.info("Plan changed", tenant_id=tenant_id, plan=new_plan, direction=direction)
