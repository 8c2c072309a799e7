"""
Order use cases.

Each use case is a small class taking its collaborators in the constructor
and exposing a single ``execute`` coroutine.
"""

from order_service.services.orders.cancel_order import CancelOrder, CancelOrderCommand
from order_service.services.orders.create_order import (
    CreateOrder,
    CreateOrderCommand,
    RequestedItem,
)
from order_service.services.orders.pay_order import (
    PayOrder,
    PayOrderCommand,
    PayOrderResult,
    PaymentSummary,
    derive_idempotency_key,
)
from order_service.services.orders.queries import (
    DashboardStats,
    GetDashboardStats,
    GetOrder,
    ListOrders,
)
from order_service.services.orders.update_order_status import UpdateOrderStatus

__all__ = [
    "CancelOrder",
    "CancelOrderCommand",
    "CreateOrder",
    "CreateOrderCommand",
    "RequestedItem",
    "PayOrder",
    "PayOrderCommand",
    "PayOrderResult",
    "PaymentSummary",
    "derive_idempotency_key",
    "DashboardStats",
    "GetDashboardStats",
    "GetOrder",
    "ListOrders",
    "UpdateOrderStatus",
]
