"""
Usage service client.
"""

from typing import List, Optional

import httpx

from shared.errors import ExternalServiceError
from shared.logging import get_logger
from shared.retry import RetryConfig, retry_on_exception
from ..rules.models import UsageMetric
from ..rules.serialization import usage_list_from_data


class UsageServiceClient:
    """Reads a tenant's usage snapshot; the rules engine never computes usage itself."""

    def __init__(
        self,
        usage_service_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = usage_service_url.rstrip('/')
        self.timeout = timeout
        self._transport = transport
        self.logger = get_logger("billing_rules.clients.usage")

    @retry_on_exception((httpx.TransportError,), config=RetryConfig(max_attempts=3, base_delay=0.5, max_delay=5.0))
    async def get_usage(self, tenant_id: str, period: Optional[str] = None) -> List[UsageMetric]:
        params = {"period": period} if period else None
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(f"{self.base_url}/tenants/{tenant_id}/usage", params=params)

        if response.status_code != 200:
            self.logger.error(
                "Usage service error",
                tenant_id=tenant_id,
                status_code=response.status_code
            )
            raise ExternalServiceError(
                "usage_service",
                "Usage lookup failed",
                details={"status_code": response.status_code, "tenant_id": tenant_id}
            )

        payload = response.json()
        items = payload.get("items", []) if isinstance(payload, dict) else payload
        return usage_list_from_data(items)
