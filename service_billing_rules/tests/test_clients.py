"""
Unit tests for the collaborator HTTP clients.
"""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from service_billing_rules.app.clients.ledger import BillingLedgerClient
from service_billing_rules.app.clients.notifications import WebhookNotificationDispatcher
from service_billing_rules.app.clients.pricing import StaticPlanPriceTable
from service_billing_rules.app.clients.tenants import TenantServiceClient
from service_billing_rules.app.clients.usage import UsageServiceClient
from shared.errors import ExternalServiceError, TenantNotFoundError
from shared.retry import RetryError


class TestTenantServiceClient:
    """Test cases for TenantServiceClient."""

    @pytest.mark.asyncio
    async def test_get_tenant(self):
        def handler(request):
            assert request.url.path == "/tenants/tenant-1"
            return httpx.Response(200, json={"id": "tenant-1", "plan": "professional", "billing_cycle": "annual"})

        client = TenantServiceClient("http://tenants.local/", transport=httpx.MockTransport(handler))

        tenant = await client.get_tenant("tenant-1")

        assert tenant.plan == "professional"
        assert tenant.billing_cycle == "annual"

    @pytest.mark.asyncio
    async def test_unknown_tenant(self):
        client = TenantServiceClient(
            "http://tenants.local",
            transport=httpx.MockTransport(lambda request: httpx.Response(404)),
        )

        with pytest.raises(TenantNotFoundError):
            await client.get_tenant("tenant-404")

    @pytest.mark.asyncio
    async def test_server_error(self):
        client = TenantServiceClient(
            "http://tenants.local",
            transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom")),
        )

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.get_tenant("tenant-1")

        assert exc_info.value.details["status_code"] == 500

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"id": "tenant-1", "plan": "basic"})

        client = TenantServiceClient("http://tenants.local", transport=httpx.MockTransport(handler))

        with patch("shared.retry.asyncio.sleep", new=AsyncMock()):
            tenant = await client.get_tenant("tenant-1")

        assert tenant.plan == "basic"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_retries_exhausted(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = TenantServiceClient("http://tenants.local", transport=httpx.MockTransport(handler))

        with patch("shared.retry.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(RetryError) as exc_info:
                await client.get_tenant("tenant-1")

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_exception, httpx.ConnectError)


class TestUsageServiceClient:
    """Test cases for UsageServiceClient."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        [{"name": "storage", "value": 150, "unit": "GB"}],
        {"items": [{"name": "storage", "value": 150, "unit": "GB"}]},
    ])
    async def test_get_usage(self, payload):
        def handler(request):
            assert request.url.path == "/tenants/tenant-1/usage"
            assert request.url.params["period"] == "2024-01"
            return httpx.Response(200, json=payload)

        client = UsageServiceClient("http://usage.local", transport=httpx.MockTransport(handler))

        usage = await client.get_usage("tenant-1", "2024-01")

        assert usage[0].name == "storage"
        assert usage[0].value == 150

    @pytest.mark.asyncio
    async def test_error(self):
        client = UsageServiceClient(
            "http://usage.local",
            transport=httpx.MockTransport(lambda request: httpx.Response(503)),
        )

        with pytest.raises(ExternalServiceError):
            await client.get_usage("tenant-1")


class TestBillingLedgerClient:
    """Test cases for BillingLedgerClient."""

    @pytest.fixture
    def requests(self):
        return []

    @pytest.fixture
    def client(self, requests):
        def handler(request):
            requests.append(request)
            return httpx.Response(201, json={})

        return BillingLedgerClient("http://ledger.local", transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_actions_post_to_ledger(self, client, requests):
        await client.apply_discount("tenant-1", 20, "percentage")
        await client.add_charge("tenant-1", 0.1, "storage", "Storage Overage")
        await client.add_credit("tenant-1", 10)
        await client.change_plan("tenant-1", "enterprise", "upgrade")

        assert [request.url.path for request in requests] == [
            "/tenants/tenant-1/discounts",
            "/tenants/tenant-1/charges",
            "/tenants/tenant-1/credits",
            "/tenants/tenant-1/plan",
        ]
        assert json.loads(requests[0].content) == {"amount": 20, "amount_type": "percentage"}
        assert json.loads(requests[3].content) == {"plan": "enterprise", "direction": "upgrade"}

    @pytest.mark.asyncio
    async def test_rejected_write_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(409, text="duplicate")

        client = BillingLedgerClient("http://ledger.local", transport=httpx.MockTransport(handler))

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.add_credit("tenant-1", 10)

        assert exc_info.value.status_code == 502
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_unreachable_ledger(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = BillingLedgerClient("http://ledger.local", transport=httpx.MockTransport(handler))

        with pytest.raises(ExternalServiceError):
            await client.add_credit("tenant-1", 10)


class TestNotificationDispatchers:
    """Test cases for notification dispatch."""

    @pytest.mark.asyncio
    async def test_webhook(self):
        received = []

        def handler(request):
            received.append(json.loads(request.content))
            return httpx.Response(202)

        dispatcher = WebhookNotificationDispatcher("http://hooks.local/billing", transport=httpx.MockTransport(handler))

        await dispatcher.send("tenant-1", {"template": "plan-changed"})

        assert received == [{"tenant_id": "tenant-1", "metadata": {"template": "plan-changed"}}]

    @pytest.mark.asyncio
    async def test_webhook_failure(self):
        dispatcher = WebhookNotificationDispatcher(
            "http://hooks.local/billing",
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )

        with pytest.raises(ExternalServiceError):
            await dispatcher.send("tenant-1", {})


class TestStaticPlanPriceTable:
    """Test cases for plan pricing."""

    def test_defaults(self):
        prices = StaticPlanPriceTable()

        assert prices.get_base_amount("professional") == 99.0
        assert prices.get_base_amount("unknown") == 0.0

    def test_custom_prices(self):
        assert StaticPlanPriceTable({"team": 49}).get_base_amount("team") == 49.0
