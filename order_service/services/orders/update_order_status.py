"""
UpdateOrderStatus Use Case

Internal/admin operation moving an order along the state machine.
No authorization and no events.
"""

import logging

from order_service.domain.order import Order, OrderStatus
from order_service.repositories.base import OrderRepository
from order_service.services.orders.common import load_order

logger = logging.getLogger(__name__)


class UpdateOrderStatus:

    def __init__(self, orders: OrderRepository):
        self._orders = orders

    async def execute(self, order_id: str, status: OrderStatus) -> Order:
        order = await load_order(self._orders, order_id)
        previous = order.status
        order.transition_to(status)
        await self._orders.update_status(order)
        logger.info(f"Order {order.sequence_number}: {previous.value} -> {order.status.value}")
        return order
