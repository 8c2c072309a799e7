from decimal import Decimal

import pytest

from order_service.core.exceptions import (
    ConcurrentUpdateError,
    GatewayUnavailableError,
    InvalidStateError,
    NotFoundError,
    PaymentDeclinedError,
)
from order_service.domain.order import OrderStatus
from order_service.services.orders import PayOrder, PayOrderCommand, derive_idempotency_key
from order_service.services.payment.http import HttpPaymentGateway
from tests.fakes import FakeGateway


def pay(order_id: str, **overrides) -> PayOrderCommand:
    return PayOrderCommand(order_id=order_id, payment_method="card", **overrides)


class TestPayOrder:

    @pytest.mark.asyncio
    async def test_pays_pending_order(self, pay_order, pending_order, gateway, orders, bus):
        result = await pay_order.execute(pay(pending_order.id))

        assert result.payment.transaction_id == "tx-1"
        assert result.payment.idempotent is False
        assert result.order.status == OrderStatus.PAID
        stored = orders.stored(pending_order.id)
        assert stored.payment.transaction_id == "tx-1"
        assert stored.payment.provider == "fake"
        assert gateway.calls[0]["amount"] == Decimal("96.80")
        assert bus.subjects == ["order.paid"]
        assert bus.published[0][1]["amount"] == "96.80"

    @pytest.mark.asyncio
    async def test_second_payment_never_reaches_gateway(self, pay_order, pending_order, gateway, bus):
        first = await pay_order.execute(pay(pending_order.id))
        second = await pay_order.execute(pay(pending_order.id))

        assert len(gateway.calls) == 1
        assert second.payment.idempotent is True
        assert second.payment.transaction_id == first.payment.transaction_id
        assert second.payment.message == "Payment already processed"
        assert bus.subjects == ["order.paid"]

    @pytest.mark.asyncio
    async def test_forwards_metadata_and_derived_key(self, pay_order, pending_order, gateway):
        await pay_order.execute(pay(pending_order.id, payment_data={"payment_method_id": "pm_card_visa"}))

        call = gateway.calls[0]
        assert call["idempotency_key"] == derive_idempotency_key(pending_order)
        assert call["metadata"] == {
            "sequence_number": "ORD000001",
            "customer_id": "cust-1",
            "payment_method_id": "pm_card_visa",
        }

    @pytest.mark.asyncio
    async def test_client_key_wins(self, pay_order, pending_order, gateway):
        await pay_order.execute(pay(pending_order.id, idempotency_key="client-key-1"))
        assert gateway.calls[0]["idempotency_key"] == "client-key-1"

    def test_derived_key_is_stable(self, pending_order):
        key = derive_idempotency_key(pending_order)
        assert key == derive_idempotency_key(pending_order)
        assert key.startswith(f"order-{pending_order.id}-")
        assert len(key.rsplit("-", 1)[1]) == 16

    @pytest.mark.asyncio
    async def test_records_metrics(self, pay_order, pending_order, metrics):
        await pay_order.execute(pay(pending_order.id))

        assert ("payment_attempts_total", {"provider": "fake"}) in metrics.increments
        assert ("payment_success_total", {"provider": "fake"}) in metrics.increments
        assert metrics.observations[0][0] == "payment_latency_seconds"

    @pytest.mark.asyncio
    async def test_payment_failed_order_can_be_paid(self, pay_order, pending_order, orders):
        stored = orders.stored(pending_order.id)
        stored.status = OrderStatus.PAYMENT_FAILED

        result = await pay_order.execute(pay(pending_order.id))
        assert result.order.status == OrderStatus.PAID

    @pytest.mark.asyncio
    async def test_disabled_gateway_simulates(self, orders, pending_order, bus, metrics):
        use_case = PayOrder(orders=orders, gateway=HttpPaymentGateway(), bus=bus, metrics=metrics)

        result = await use_case.execute(pay(pending_order.id))

        assert result.payment.simulated is True
        assert result.payment.transaction_id.startswith("SIM-http-")
        assert orders.stored(pending_order.id).status == OrderStatus.PAID


class TestPayOrderFailures:

    @pytest.mark.asyncio
    async def test_unknown_order(self, pay_order):
        with pytest.raises(NotFoundError):
            await pay_order.execute(pay("missing"))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [OrderStatus.PREPARING, OrderStatus.DELIVERED, OrderStatus.CANCELED])
    async def test_not_payable(self, pay_order, pending_order, orders, gateway, status):
        orders.stored(pending_order.id).status = status

        with pytest.raises(InvalidStateError):
            await pay_order.execute(pay(pending_order.id))
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_decline_leaves_order_payable(self, orders, pending_order, bus, metrics):
        gateway = FakeGateway(approve=False, reason="insufficient_funds")
        use_case = PayOrder(orders=orders, gateway=gateway, bus=bus, metrics=metrics)

        with pytest.raises(PaymentDeclinedError) as exc_info:
            await use_case.execute(pay(pending_order.id))

        assert exc_info.value.reason == "insufficient_funds"
        assert "raw" not in exc_info.value.to_dict()
        stored = orders.stored(pending_order.id)
        assert stored.status == OrderStatus.PENDING
        assert stored.is_payable
        assert (
            "payment_failures_total",
            {"provider": "fake", "reason": "insufficient_funds"},
        ) in metrics.increments
        assert bus.published == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "reason, label",
        [
            (None, "declined"),
            ("CARD_DECLINED", "card_declined"),
            ("Blocked by issuer 4711 for order ORD000001", "other"),
        ],
    )
    async def test_failure_metric_reason_is_bounded(self, orders, pending_order, bus, metrics, reason, label):
        gateway = FakeGateway(approve=False, reason=reason)
        use_case = PayOrder(orders=orders, gateway=gateway, bus=bus, metrics=metrics)

        with pytest.raises(PaymentDeclinedError) as exc_info:
            await use_case.execute(pay(pending_order.id))

        assert exc_info.value.reason == reason
        assert ("payment_failures_total", {"provider": "fake", "reason": label}) in metrics.increments

    @pytest.mark.asyncio
    async def test_gateway_unavailable_propagates(self, orders, pending_order, bus, metrics):
        gateway = FakeGateway(error=GatewayUnavailableError("Payment gateway timed out"))
        use_case = PayOrder(orders=orders, gateway=gateway, bus=bus, metrics=metrics)

        with pytest.raises(GatewayUnavailableError):
            await use_case.execute(pay(pending_order.id))

        assert orders.stored(pending_order.id).status == OrderStatus.PENDING
        assert len(metrics.observations) == 1


class TestPayWebhookRace:

    @pytest.mark.asyncio
    async def test_webhook_wins_with_same_transaction(self, orders, pending_order, bus, metrics):
        async def webhook_applies_first(order_id, transaction_id):
            current = await orders.find_by_id(order_id)
            current.mark_as_paid(transaction_id, "card", "stripe")
            await orders.update(current)

        gateway = FakeGateway(on_charge=webhook_applies_first)
        use_case = PayOrder(orders=orders, gateway=gateway, bus=bus, metrics=metrics)

        result = await use_case.execute(pay(pending_order.id))

        assert result.payment.idempotent is True
        assert result.payment.transaction_id == "tx-1"
        assert orders.writes == 1
        assert bus.published == []

    @pytest.mark.asyncio
    async def test_conflicting_write_is_raised(self, orders, pending_order, bus, metrics):
        async def someone_cancels(order_id, transaction_id):
            current = await orders.find_by_id(order_id)
            current.cancel()
            await orders.update_status(current)

        gateway = FakeGateway(on_charge=someone_cancels)
        use_case = PayOrder(orders=orders, gateway=gateway, bus=bus, metrics=metrics)

        with pytest.raises(ConcurrentUpdateError):
            await use_case.execute(pay(pending_order.id))
        assert orders.stored(pending_order.id).status == OrderStatus.CANCELED
