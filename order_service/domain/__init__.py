"""
Domain model: order aggregate, line items, status workflow and events.
"""

from order_service.domain.order import (
    ALLOWED_TRANSITIONS,
    Order,
    OrderLineItem,
    OrderStatus,
    PaymentInfo,
    to_money,
)
from order_service.domain.events import OrderCanceled, OrderCreated, OrderPaid

__all__ = [
    "ALLOWED_TRANSITIONS",
    "Order",
    "OrderLineItem",
    "OrderStatus",
    "PaymentInfo",
    "to_money",
    "OrderCanceled",
    "OrderCreated",
    "OrderPaid",
]
