from datetime import datetime, timezone
from decimal import Decimal
from itertools import product

import pytest

from order_service.core.exceptions import InvalidStateError, InvalidTransitionError
from order_service.domain.order import (
    ALLOWED_TRANSITIONS,
    Order,
    OrderLineItem,
    OrderStatus,
    to_money,
)

EXPECTED_EDGES = {
    (OrderStatus.PENDING, OrderStatus.PAID),
    (OrderStatus.PENDING, OrderStatus.CONFIRMED),
    (OrderStatus.PENDING, OrderStatus.CANCELED),
    (OrderStatus.PENDING, OrderStatus.PAYMENT_FAILED),
    (OrderStatus.PAID, OrderStatus.CONFIRMED),
    (OrderStatus.PAID, OrderStatus.CANCELED),
    (OrderStatus.CONFIRMED, OrderStatus.PREPARING),
    (OrderStatus.CONFIRMED, OrderStatus.CANCELED),
    (OrderStatus.PREPARING, OrderStatus.READY),
    (OrderStatus.PREPARING, OrderStatus.CANCELED),
    (OrderStatus.READY, OrderStatus.OUT_FOR_DELIVERY),
    (OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED),
    (OrderStatus.PAYMENT_FAILED, OrderStatus.PENDING),
}

NOW = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)


def make_order(status: OrderStatus = OrderStatus.PENDING, **payment) -> Order:
    order = Order.create(
        customer_id="cust-1",
        restaurant_id="rest-1",
        items=[OrderLineItem("pizza", "Pizza Margherita", Decimal("45.90"), 2)],
        delivery_fee=Decimal("5.00"),
    )
    order.id = "3f2b6c1e-8a4d-4e8f-9c1a-2b3c4d5e6f70"
    order.sequence_number = "ORD000001"
    order.status = status
    for key, value in payment.items():
        setattr(order.payment, key, value)
    return order


class TestTransitionTable:

    @pytest.mark.parametrize("current,target", list(product(OrderStatus, OrderStatus)))
    def test_can_transition_to_matches_table(self, current, target):
        order = make_order(current)
        assert order.can_transition_to(target) is ((current, target) in EXPECTED_EDGES)

    def test_every_status_has_an_entry(self):
        assert set(ALLOWED_TRANSITIONS) == set(OrderStatus)

    @pytest.mark.parametrize("current,target", sorted(EXPECTED_EDGES, key=lambda edge: (edge[0].value, edge[1].value)))
    def test_transition_to_follows_edges(self, current, target):
        order = make_order(current)
        order.transition_to(target, now=NOW)
        assert order.status == target
        assert order.updated_at == NOW

    def test_invalid_transition_names_both_states(self):
        order = make_order(OrderStatus.DELIVERED)
        with pytest.raises(InvalidTransitionError) as exc_info:
            order.transition_to(OrderStatus.PENDING)
        assert exc_info.value.current == "delivered"
        assert exc_info.value.requested == "pending"
        assert order.status == OrderStatus.DELIVERED

    def test_confirm_and_deliver_stamp_timestamps(self):
        order = make_order(OrderStatus.PENDING)
        order.transition_to(OrderStatus.CONFIRMED, now=NOW)
        assert order.confirmed_at == NOW
        assert order.delivered_at is None

        order.status = OrderStatus.OUT_FOR_DELIVERY
        order.transition_to(OrderStatus.DELIVERED, now=NOW)
        assert order.delivered_at == NOW


class TestTotals:

    def test_grand_total_is_exact(self):
        order = make_order()
        assert order.subtotal == Decimal("91.80")
        assert order.grand_total == Decimal("96.80")

    def test_mixed_items_round_to_cents(self):
        order = Order.create(
            customer_id="c",
            restaurant_id="r",
            items=[
                OrderLineItem("a", "A", Decimal("0.10"), 3),
                OrderLineItem("b", "B", Decimal("19.99"), 1),
            ],
            delivery_fee="0",
        )
        assert order.grand_total == Decimal("20.29")
        assert order.delivery_fee == Decimal("0.00")

    def test_to_money_rounds_half_up(self):
        assert to_money("2.675") == Decimal("2.68")
        assert to_money(1) == Decimal("1.00")

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, True])
    def test_line_item_rejects_bad_quantity(self, quantity):
        with pytest.raises(ValueError):
            OrderLineItem("pizza", "Pizza", Decimal("10.00"), quantity)

    def test_order_without_items_is_rejected(self):
        with pytest.raises(InvalidStateError):
            Order.create("c", "r", [], Decimal("5.00"))


class TestPaymentRules:

    @pytest.mark.parametrize("status", [OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PAYMENT_FAILED])
    def test_payable_statuses(self, status):
        assert make_order(status).is_payable

    @pytest.mark.parametrize(
        "status",
        [s for s in OrderStatus if s not in (OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PAYMENT_FAILED)],
    )
    def test_not_payable_statuses(self, status):
        assert not make_order(status).is_payable

    def test_transaction_id_blocks_payment(self):
        order = make_order(OrderStatus.CONFIRMED, transaction_id="pi_123")
        assert not order.is_payable

    def test_mark_as_paid_sets_everything_at_once(self):
        order = make_order()
        order.mark_as_paid("pi_123", "card", "stripe", now=NOW)

        assert order.status == OrderStatus.PAID
        assert order.payment.transaction_id == "pi_123"
        assert order.payment.method == "card"
        assert order.payment.provider == "stripe"
        assert order.payment.paid_at == NOW
        assert order.is_paid_with("pi_123")
        assert not order.is_paid_with("pi_other")

    def test_mark_as_paid_twice_is_rejected(self):
        order = make_order()
        order.mark_as_paid("pi_123", "card", "stripe")
        with pytest.raises(InvalidStateError):
            order.mark_as_paid("pi_456", "card", "stripe")
        assert order.payment.transaction_id == "pi_123"

    @pytest.mark.parametrize("transaction_id", [None, ""])
    def test_mark_as_paid_requires_transaction_id(self, transaction_id):
        order = make_order()
        with pytest.raises(InvalidStateError):
            order.mark_as_paid(transaction_id, "card", "http")
        assert order.status == OrderStatus.PENDING
        assert order.is_payable

    def test_payment_failed_only_from_pending(self):
        order = make_order()
        order.mark_payment_failed()
        assert order.status == OrderStatus.PAYMENT_FAILED

        with pytest.raises(InvalidStateError):
            make_order(OrderStatus.CONFIRMED).mark_payment_failed()

    def test_refund_recorded_once(self):
        order = make_order(OrderStatus.PAID, transaction_id="pi_123")
        assert order.mark_as_refunded("re_1", now=NOW) is True
        assert order.mark_as_refunded("re_2") is False

        assert order.payment.refund_id == "re_1"
        assert order.payment.refunded_at == NOW
        assert order.status == OrderStatus.PAID


class TestCancel:

    @pytest.mark.parametrize("status", [s for s in OrderStatus if s not in (OrderStatus.DELIVERED, OrderStatus.CANCELED)])
    def test_cancel_from_open_statuses(self, status):
        order = make_order(status)
        order.cancel()
        assert order.status == OrderStatus.CANCELED

    @pytest.mark.parametrize("status", [OrderStatus.DELIVERED, OrderStatus.CANCELED])
    def test_cancel_terminal_is_rejected(self, status):
        order = make_order(status)
        assert not order.is_cancelable
        with pytest.raises(InvalidStateError):
            order.cancel()
        assert order.status == status
