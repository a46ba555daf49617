"""
Notification dispatchers for ``send_notification`` actions.
"""

from typing import Any, Dict, Optional

import httpx

from shared.errors import ExternalServiceError
from shared.logging import get_logger


class WebhookNotificationDispatcher:
    """Posts notifications to a configured webhook."""

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._transport = transport
        self.logger = get_logger("billing_rules.clients.notifications")

    async def send(self, tenant_id: str, metadata: Dict[str, Any]) -> None:
        payload = {"tenant_id": tenant_id, "metadata": metadata}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as e:
            raise ExternalServiceError("notifications", "Webhook unreachable", details={"error": str(e)}) from e

        if response.status_code >= 400:
            raise ExternalServiceError(
                "notifications",
                "Webhook rejected notification",
                details={"status_code": response.status_code}
            )
        self.logger.info("Notification sent", tenant_id=tenant_id, channel="webhook")


class LogNotificationDispatcher:
    """Channel used when no webhook is configured: the notification goes to the log."""

    def __init__(self):
        self.logger = get_logger("billing_rules.clients.notifications")

    async def send(self, tenant_id: str, metadata: Dict[str, Any]) -> None:
        self.logger.info("Notification sent", tenant_id=tenant_id, channel="log", metadata=metadata)
