"""
Helpers shared by the order use cases.
"""

import logging

from order_service.core.exceptions import NotFoundError
from order_service.domain.events import DomainEvent
from order_service.domain.order import Order
from order_service.repositories.base import OrderRepository
from order_service.services.messaging.base import BaseMessageBus

logger = logging.getLogger(__name__)


async def load_order(repository: OrderRepository, order_id: str) -> Order:
    order = await repository.find_by_id(order_id)
    if order is None:
        raise NotFoundError("Order", order_id)
    return order


async def publish_event(bus: BaseMessageBus, event: DomainEvent) -> None:
    """Publish after commit; a failure here never reaches the caller."""
    if not bus.is_enabled():
        return
    try:
        await bus.publish(event.event_type, event.to_dict())
    except Exception as e:
        logger.error(f"Could not publish {event.event_type} for order {event.order_id}: {e}")
