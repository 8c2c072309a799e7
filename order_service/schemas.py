"""
Pydantic Schemas for Request/Response Validation

Money fields are Decimals and serialize as strings with two decimal
places ("96.80"), so clients never see binary float drift.

Author: Khalil Bannouri
Version: 1.0.0
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from order_service.domain.order import Order, OrderStatus
from order_service.services.orders import DashboardStats, PaymentSummary


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderItemRequest(BaseModel):
    """Single requested item; price and name come from the menu."""
    menu_item_id: str = Field(..., min_length=1, examples=["pizza-margherita"])
    quantity: int = Field(..., ge=1, le=99, examples=[2])


class OrderCreate(BaseModel):
    """Request schema for creating a new order."""
    customer_id: str = Field(..., min_length=1)
    restaurant_id: str = Field(..., min_length=1)
    items: List[OrderItemRequest] = Field(..., min_length=1)
    delivery_fee: Optional[Decimal] = Field(None, ge=0, decimal_places=2, examples=["5.00"])
    delivery_address: Optional[dict[str, Any]] = None
    notes: Optional[str] = Field(None, max_length=500)


class PayOrderRequest(BaseModel):
    """Payment method plus method-specific data forwarded to the gateway."""
    payment_method: str = Field(..., min_length=1, examples=["card", "pix"])
    payment_data: dict[str, Any] = Field(default_factory=dict)


class CancelOrderRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)
    canceled_by: str = Field(..., min_length=1)


class UpdateStatusRequest(BaseModel):
    status: OrderStatus


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class OrderItemResponse(BaseModel):
    menu_item_id: str
    name: str
    unit_price: Decimal
    quantity: int
    subtotal: Decimal


class PaymentInfoResponse(BaseModel):
    transaction_id: Optional[str] = None
    method: Optional[str] = None
    provider: Optional[str] = None
    paid_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    refund_id: Optional[str] = None


class OrderResponse(BaseModel):
    """Response schema for a single order."""
    id: str
    sequence_number: str
    customer_id: str
    restaurant_id: str
    items: List[OrderItemResponse]
    subtotal: Decimal
    delivery_fee: Decimal
    grand_total: Decimal
    status: OrderStatus
    delivery_address: Optional[dict[str, Any]]
    notes: Optional[str]
    payment: PaymentInfoResponse
    placed_at: datetime
    confirmed_at: Optional[datetime]
    delivered_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id,
            sequence_number=order.sequence_number,
            customer_id=order.customer_id,
            restaurant_id=order.restaurant_id,
            items=[
                OrderItemResponse(
                    menu_item_id=item.menu_item_id,
                    name=item.name,
                    unit_price=item.unit_price,
                    quantity=item.quantity,
                    subtotal=item.subtotal,
                )
                for item in order.items
            ],
            subtotal=order.subtotal,
            delivery_fee=order.delivery_fee,
            grand_total=order.grand_total,
            status=order.status,
            delivery_address=order.delivery_address,
            notes=order.notes,
            payment=PaymentInfoResponse(
                transaction_id=order.payment.transaction_id,
                method=order.payment.method,
                provider=order.payment.provider,
                paid_at=order.payment.paid_at,
                refunded_at=order.payment.refunded_at,
                refund_id=order.payment.refund_id,
            ),
            placed_at=order.placed_at,
            confirmed_at=order.confirmed_at,
            delivered_at=order.delivered_at,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class OrderEnvelope(BaseModel):
    """Successful single-order response."""
    success: bool = True
    message: Optional[str] = None
    data: OrderResponse


class OrderListResponse(BaseModel):
    """Response for listing multiple orders."""
    success: bool = True
    total: int
    data: List[OrderResponse]


class PaymentSummaryResponse(BaseModel):
    transaction_id: Optional[str]
    status: str
    message: str
    provider: Optional[str] = None
    idempotent: bool = False
    simulated: bool = False

    @classmethod
    def from_summary(cls, summary: PaymentSummary) -> "PaymentSummaryResponse":
        return cls(
            transaction_id=summary.transaction_id,
            status=summary.status,
            message=summary.message,
            provider=summary.provider,
            idempotent=summary.idempotent,
            simulated=summary.simulated,
        )


class PayOrderData(BaseModel):
    order: OrderResponse
    payment: PaymentSummaryResponse


class PayOrderResponse(BaseModel):
    success: bool = True
    message: str
    data: PayOrderData


class DashboardResponse(BaseModel):
    pending_orders: int
    confirmed_orders: int
    delivered_orders: int
    total_sales: Decimal

    @classmethod
    def from_stats(cls, stats: DashboardStats) -> "DashboardResponse":
        return cls(
            pending_orders=stats.pending_orders,
            confirmed_orders=stats.confirmed_orders,
            delivered_orders=stats.delivered_orders,
            total_sales=stats.total_sales,
        )


class ErrorBody(BaseModel):
    kind: str
    message: str
    reason: Optional[str] = None


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: ErrorBody


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    payment_gateway: dict[str, Any]
    policy_engine: dict[str, Any]
    message_bus: dict[str, Any]
    timestamp: datetime
