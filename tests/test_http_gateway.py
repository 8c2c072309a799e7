import json
from decimal import Decimal

import httpx
import pytest

from order_service.core.exceptions import GatewayUnavailableError
from order_service.services.payment.base import SIMULATED_MESSAGE, STATUS_APPROVED, STATUS_DECLINED
from order_service.services.payment.http import HttpPaymentGateway

BASE_URL = "https://payments.test"


def build_gateway(handler) -> HttpPaymentGateway:
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return HttpPaymentGateway(base_url=BASE_URL, api_key="key", client=client)


async def charge(gateway: HttpPaymentGateway):
    return await gateway.process_payment(
        amount=Decimal("96.80"),
        method="pix",
        order_id="order-1",
        idempotency_key="order-order-1-abc",
        metadata={"sequence_number": "ORD000001"},
    )


class TestHttpGateway:

    @pytest.mark.asyncio
    async def test_approved_payment(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["key"] = request.headers.get("Idempotency-Key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"status": "APPROVED", "transactionId": "tx-9"})

        result = await charge(build_gateway(handler))

        assert result.success is True
        assert result.status == STATUS_APPROVED
        assert result.transaction_id == "tx-9"
        assert result.provider == "http"
        assert seen["path"] == "/payments"
        assert seen["key"] == "order-order-1-abc"
        assert seen["body"] == {
            "amount": "96.80",
            "method": "pix",
            "orderId": "order-1",
            "metadata": {"sequence_number": "ORD000001"},
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{"status": "approved"}, {"status": "approved", "transactionId": ""}])
    async def test_approval_without_transaction_id_is_unavailable(self, body):
        def handler(request):
            return httpx.Response(200, json=body)

        with pytest.raises(GatewayUnavailableError):
            await charge(build_gateway(handler))

    @pytest.mark.asyncio
    async def test_other_status_is_decline(self):
        def handler(request):
            return httpx.Response(200, json={"status": "rejected", "reason": "risk", "message": "Blocked"})

        result = await charge(build_gateway(handler))

        assert result.success is False
        assert result.status == STATUS_DECLINED
        assert result.reason == "risk"
        assert result.message == "Blocked"
        assert result.raw["status"] == "rejected"

    @pytest.mark.asyncio
    async def test_error_status_with_body_is_decline(self):
        def handler(request):
            return httpx.Response(422, json={"reason": "invalid_card", "message": "Card invalid"})

        result = await charge(build_gateway(handler))

        assert result.success is False
        assert result.reason == "invalid_card"

    @pytest.mark.asyncio
    async def test_error_status_without_body_is_unavailable(self):
        def handler(request):
            return httpx.Response(502, text="Bad Gateway")

        with pytest.raises(GatewayUnavailableError):
            await charge(build_gateway(handler))

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [httpx.ConnectError("refused"), httpx.ReadTimeout("slow")],
    )
    async def test_transport_failures_are_unavailable(self, error):
        def handler(request):
            raise error

        with pytest.raises(GatewayUnavailableError):
            await charge(build_gateway(handler))

    @pytest.mark.asyncio
    async def test_refund(self):
        def handler(request):
            assert request.url.path == "/refunds"
            assert json.loads(request.content) == {"transactionId": "tx-9", "amount": "10.00"}
            return httpx.Response(200, json={"refundId": "rf-1"})

        result = await build_gateway(handler).refund("tx-9", Decimal("10.00"))

        assert result.success is True
        assert result.refund_id == "rf-1"

    @pytest.mark.asyncio
    async def test_health(self):
        def handler(request):
            return httpx.Response(200, json={"ok": True})

        status = await build_gateway(handler).get_status()
        assert status["status"] == "healthy"


class TestDisabledHttpGateway:

    @pytest.mark.asyncio
    async def test_simulates_without_credentials(self):
        gateway = HttpPaymentGateway(base_url=BASE_URL, api_key=None)

        result = await charge(gateway)

        assert gateway.is_enabled() is False
        assert result.success is True
        assert result.simulated is True
        assert result.message == SIMULATED_MESSAGE
        assert result.transaction_id.startswith("SIM-http-")

    @pytest.mark.asyncio
    async def test_simulated_ids_are_unique(self):
        gateway = HttpPaymentGateway()
        first, second = await charge(gateway), await charge(gateway)
        assert first.transaction_id != second.transaction_id

    @pytest.mark.asyncio
    async def test_status_reports_disabled(self):
        status = await HttpPaymentGateway().get_status()
        assert status["status"] == "disabled"
