from datetime import timedelta
from decimal import Decimal

import pytest

from order_service.core.exceptions import (
    ForbiddenError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
)
from order_service.domain.order import OrderStatus
from order_service.repositories.base import OrderFilters
from order_service.services.orders import (
    CancelOrder,
    CancelOrderCommand,
    CreateOrderCommand,
    GetDashboardStats,
    GetOrder,
    ListOrders,
    RequestedItem,
    UpdateOrderStatus,
)


@pytest.fixture
def cancel_order(orders, policy, bus, metrics) -> CancelOrder:
    return CancelOrder(orders=orders, policy=policy, bus=bus, metrics=metrics)


@pytest.fixture
def update_status(orders) -> UpdateOrderStatus:
    return UpdateOrderStatus(orders)


def cancel(order_id: str) -> CancelOrderCommand:
    return CancelOrderCommand(order_id=order_id, reason="changed my mind", canceled_by="cust-1")


class TestCancelOrder:

    @pytest.mark.asyncio
    async def test_cancels_and_publishes(self, cancel_order, pending_order, orders, bus, metrics):
        order = await cancel_order.execute(cancel(pending_order.id))

        assert order.status == OrderStatus.CANCELED
        assert orders.stored(pending_order.id).status == OrderStatus.CANCELED
        assert metrics.count("orders_canceled_total") == 1
        subject, payload = bus.published[0]
        assert subject == "order.canceled"
        assert payload["reason"] == "changed my mind"
        assert payload["canceled_by"] == "cust-1"

    @pytest.mark.asyncio
    async def test_policy_sees_order_state(self, cancel_order, pending_order, policy):
        await cancel_order.execute(cancel(pending_order.id))

        call = policy.calls[-1]
        assert call["action"] == "cancel_order"
        assert call["resource"] == {
            "type": "order",
            "id": pending_order.id,
            "status": "pending",
            "customer_id": "cust-1",
        }
        assert call["subject"] == {"id": "cust-1", "type": "user"}

    @pytest.mark.asyncio
    async def test_ready_order_can_still_be_canceled(self, cancel_order, pending_order, orders):
        orders.stored(pending_order.id).status = OrderStatus.READY
        order = await cancel_order.execute(cancel(pending_order.id))
        assert order.status == OrderStatus.CANCELED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [OrderStatus.DELIVERED, OrderStatus.CANCELED])
    async def test_terminal_orders_cannot_be_canceled(self, cancel_order, pending_order, orders, bus, status):
        orders.stored(pending_order.id).status = status

        with pytest.raises(InvalidStateError):
            await cancel_order.execute(cancel(pending_order.id))
        assert orders.stored(pending_order.id).status == status
        assert bus.published == []

    @pytest.mark.asyncio
    async def test_denied_cancel_changes_nothing(self, cancel_order, pending_order, orders, policy, bus):
        policy.allowed = False

        with pytest.raises(ForbiddenError):
            await cancel_order.execute(cancel(pending_order.id))

        assert orders.stored(pending_order.id).status == OrderStatus.PENDING
        assert orders.writes == 0
        assert bus.published == []

    @pytest.mark.asyncio
    async def test_unknown_order(self, cancel_order):
        with pytest.raises(NotFoundError):
            await cancel_order.execute(cancel("missing"))


class TestUpdateOrderStatus:

    @pytest.mark.asyncio
    async def test_walks_the_happy_path(self, update_status, pending_order, orders):
        for status in (
            OrderStatus.CONFIRMED,
            OrderStatus.PREPARING,
            OrderStatus.READY,
            OrderStatus.OUT_FOR_DELIVERY,
            OrderStatus.DELIVERED,
        ):
            order = await update_status.execute(pending_order.id, status)
            assert order.status == status

        stored = orders.stored(pending_order.id)
        assert stored.confirmed_at is not None
        assert stored.delivered_at is not None
        assert stored.version == 6

    @pytest.mark.asyncio
    async def test_rejects_illegal_edge(self, update_status, pending_order, orders):
        with pytest.raises(InvalidTransitionError):
            await update_status.execute(pending_order.id, OrderStatus.DELIVERED)
        assert orders.writes == 0

    @pytest.mark.asyncio
    async def test_ready_cannot_be_canceled_via_status_update(self, update_status, pending_order, orders):
        orders.stored(pending_order.id).status = OrderStatus.READY
        with pytest.raises(InvalidTransitionError):
            await update_status.execute(pending_order.id, OrderStatus.CANCELED)


class TestQueries:

    @pytest.mark.asyncio
    async def test_get_order(self, orders, pending_order):
        order = await GetOrder(orders).execute(pending_order.id)
        assert order.sequence_number == pending_order.sequence_number

        with pytest.raises(NotFoundError):
            await GetOrder(orders).execute("missing")

    @pytest.mark.asyncio
    async def test_list_filters_and_orders_newest_first(self, create_order, orders):
        first = await create_order.execute(CreateOrderCommand("cust-1", "rest-1", [RequestedItem("pizza", 1)]))
        second = await create_order.execute(CreateOrderCommand("cust-1", "rest-1", [RequestedItem("soda", 1)]))
        orders.stored(first.id).status = OrderStatus.CONFIRMED
        orders.stored(first.id).placed_at = second.placed_at - timedelta(minutes=5)

        listed = await ListOrders(orders).execute(OrderFilters(customer_id="cust-1"))
        assert [o.id for o in listed] == [second.id, first.id]

        confirmed = await ListOrders(orders).execute(OrderFilters(status=OrderStatus.CONFIRMED))
        assert [o.id for o in confirmed] == [first.id]

        assert await ListOrders(orders).execute(OrderFilters(customer_id="someone-else")) == []

    @pytest.mark.asyncio
    async def test_dashboard_stats(self, create_order, orders):
        placed = [
            await create_order.execute(CreateOrderCommand("cust-1", "rest-1", [RequestedItem("pizza", 2)]))
            for _ in range(4)
        ]
        orders.stored(placed[0].id).status = OrderStatus.CONFIRMED
        orders.stored(placed[1].id).status = OrderStatus.DELIVERED
        orders.stored(placed[2].id).status = OrderStatus.DELIVERED

        stats = await GetDashboardStats(orders).execute()

        assert stats.pending_orders == 1
        assert stats.confirmed_orders == 1
        assert stats.delivered_orders == 2
        assert stats.total_sales == Decimal("193.60")
