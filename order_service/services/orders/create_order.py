"""
CreateOrder Use Case

Validates the customer, restaurant and every requested menu item, snapshots
names and prices into line items, fixes the totals and stores a pending
order. Publishes OrderCreated once the order is stored.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from order_service.core.exceptions import ForbiddenError, InvalidStateError, NotFoundError
from order_service.core.metrics import MetricsSink
from order_service.domain.events import OrderCreated
from order_service.domain.order import Order, OrderLineItem
from order_service.repositories.base import CatalogRepository, OrderRepository
from order_service.services.messaging.base import BaseMessageBus
from order_service.services.orders.common import publish_event
from order_service.services.policy.base import BasePolicyClient

logger = logging.getLogger(__name__)


@dataclass
class RequestedItem:
    menu_item_id: str
    quantity: int


@dataclass
class CreateOrderCommand:
    customer_id: str
    restaurant_id: str
    items: list[RequestedItem]
    delivery_fee: Optional[Decimal] = None
    delivery_address: Optional[dict[str, Any]] = None
    notes: Optional[str] = None


class CreateOrder:

    def __init__(
        self,
        orders: OrderRepository,
        catalog: CatalogRepository,
        policy: BasePolicyClient,
        bus: BaseMessageBus,
        metrics: MetricsSink,
        default_delivery_fee: Decimal = Decimal("5.00"),
    ):
        self._orders = orders
        self._catalog = catalog
        self._policy = policy
        self._bus = bus
        self._metrics = metrics
        self._default_delivery_fee = default_delivery_fee

    async def execute(self, command: CreateOrderCommand) -> Order:
        logger.info(
            f"Creating order for customer {command.customer_id} "
            f"at restaurant {command.restaurant_id}"
        )

        decision = await self._policy.authorize(
            action="create_order",
            resource={"type": "order", "restaurant_id": command.restaurant_id},
            subject={"id": command.customer_id, "type": "customer"},
        )
        if not decision.allowed:
            logger.warning(f"Order creation denied for {command.customer_id}: {decision.reason}")
            raise ForbiddenError(decision.reason or "Not authorized to create order")

        customer = await self._catalog.get_customer(command.customer_id)
        if customer is None:
            raise NotFoundError("Customer", command.customer_id)

        restaurant = await self._catalog.get_restaurant(command.restaurant_id)
        if restaurant is None:
            raise NotFoundError("Restaurant", command.restaurant_id)
        if not restaurant.is_active:
            raise InvalidStateError(f"Restaurant {restaurant.name} is not active")

        line_items = []
        for requested in command.items:
            menu_item = await self._catalog.get_menu_item(requested.menu_item_id)
            if menu_item is None:
                raise NotFoundError("Menu item", requested.menu_item_id)
            if not menu_item.is_available:
                raise InvalidStateError(f"Menu item not available: {menu_item.name}")
            try:
                line_items.append(OrderLineItem(
                    menu_item_id=menu_item.id,
                    name=menu_item.name,
                    unit_price=menu_item.price,
                    quantity=requested.quantity,
                ))
            except ValueError as e:
                raise InvalidStateError(str(e)) from e

        fee = self._default_delivery_fee if command.delivery_fee is None else command.delivery_fee

        order = Order.create(
            customer_id=customer.id,
            restaurant_id=restaurant.id,
            items=line_items,
            delivery_fee=fee,
            delivery_address=command.delivery_address or customer.address,
            notes=command.notes,
        )
        order = await self._orders.insert(order)

        logger.info(
            f"Order {order.sequence_number} created ({order.id}) "
            f"total={order.grand_total}"
        )
        self._metrics.increment("orders_created_total")
        await publish_event(self._bus, OrderCreated.from_order(order))
        return order
