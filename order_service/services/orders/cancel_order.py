"""
CancelOrder Use Case
"""

import logging
from dataclasses import dataclass
from typing import Optional

from order_service.core.exceptions import ForbiddenError, InvalidStateError
from order_service.core.metrics import MetricsSink
from order_service.domain.events import OrderCanceled
from order_service.domain.order import Order
from order_service.repositories.base import OrderRepository
from order_service.services.messaging.base import BaseMessageBus
from order_service.services.orders.common import load_order, publish_event
from order_service.services.policy.base import BasePolicyClient

logger = logging.getLogger(__name__)


@dataclass
class CancelOrderCommand:
    order_id: str
    reason: Optional[str] = None
    canceled_by: Optional[str] = None


class CancelOrder:

    def __init__(
        self,
        orders: OrderRepository,
        policy: BasePolicyClient,
        bus: BaseMessageBus,
        metrics: MetricsSink,
    ):
        self._orders = orders
        self._policy = policy
        self._bus = bus
        self._metrics = metrics

    async def execute(self, command: CancelOrderCommand) -> Order:
        logger.info(f"Canceling order {command.order_id} (by={command.canceled_by}, reason={command.reason})")

        order = await load_order(self._orders, command.order_id)

        decision = await self._policy.authorize(
            action="cancel_order",
            resource={
                "type": "order",
                "id": order.id,
                "status": order.status.value,
                "customer_id": order.customer_id,
            },
            subject={"id": command.canceled_by, "type": "user"},
        )
        if not decision.allowed:
            logger.warning(f"Cancel of order {order.id} denied: {decision.reason}")
            raise ForbiddenError(decision.reason or "Not authorized to cancel order")

        if not order.is_cancelable:
            raise InvalidStateError(
                f"Order {order.sequence_number} cannot be canceled in status {order.status.value}"
            )

        order.cancel()
        await self._orders.update_status(order)

        logger.info(f"Order {order.sequence_number} canceled")
        self._metrics.increment("orders_canceled_total")
        await publish_event(
            self._bus,
            OrderCanceled.from_order(order, command.reason, command.canceled_by),
        )
        return order
