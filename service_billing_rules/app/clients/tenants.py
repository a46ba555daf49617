"""
Tenant service client.
"""

from typing import Optional

import httpx

from shared.errors import ExternalServiceError, TenantNotFoundError
from shared.logging import get_logger
from shared.retry import RetryConfig, retry_on_exception
from ..rules.models import Tenant
from ..rules.serialization import tenant_from_dict


class TenantServiceClient:
    """Looks tenants up in the tenant service."""

    def __init__(
        self,
        tenant_service_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = tenant_service_url.rstrip('/')
        self.timeout = timeout
        self._transport = transport
        self.logger = get_logger("billing_rules.clients.tenants")

    @retry_on_exception((httpx.TransportError,), config=RetryConfig(max_attempts=3, base_delay=0.5, max_delay=5.0))
    async def get_tenant(self, tenant_id: str) -> Tenant:
        """Fetch ``{id, plan, ...}`` for a tenant."""
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(f"{self.base_url}/tenants/{tenant_id}")

        if response.status_code == 404:
            raise TenantNotFoundError(tenant_id)

        if response.status_code != 200:
            self.logger.error(
                "Tenant service error",
                tenant_id=tenant_id,
                status_code=response.status_code,
                body=response.text
            )
            raise ExternalServiceError(
                "tenant_service",
                "Tenant lookup failed",
                details={"status_code": response.status_code, "tenant_id": tenant_id}
            )

        return tenant_from_dict(response.json())
