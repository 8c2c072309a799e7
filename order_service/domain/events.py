"""
Domain Events

Immutable notifications published after a use case commits. Each event
carries only what subscribers need, never the whole order.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar, Optional

from order_service.domain.order import Order, utcnow


@dataclass(frozen=True)
class DomainEvent:
    event_type: ClassVar[str] = "order.event"

    order_id: str
    sequence_number: str

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe payload with decimals as two-place strings."""
        payload: dict[str, Any] = {"event_type": self.event_type}
        for key, value in asdict(self).items():
            if isinstance(value, Decimal):
                value = str(value)
            elif isinstance(value, datetime):
                value = value.isoformat()
            payload[key] = value
        return payload


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    event_type: ClassVar[str] = "order.created"

    customer_id: str = ""
    restaurant_id: str = ""
    subtotal: Decimal = Decimal("0.00")
    grand_total: Decimal = Decimal("0.00")
    items: tuple = ()
    occurred_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_order(cls, order: Order) -> "OrderCreated":
        return cls(
            order_id=order.id,
            sequence_number=order.sequence_number,
            customer_id=order.customer_id,
            restaurant_id=order.restaurant_id,
            subtotal=order.subtotal,
            grand_total=order.grand_total,
            items=tuple(item.to_dict() for item in order.items),
        )

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["items"] = list(self.items)
        return payload


@dataclass(frozen=True)
class OrderPaid(DomainEvent):
    event_type: ClassVar[str] = "order.paid"

    amount: Decimal = Decimal("0.00")
    payment_method: str = ""
    transaction_id: str = ""
    provider: Optional[str] = None
    occurred_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_order(cls, order: Order) -> "OrderPaid":
        return cls(
            order_id=order.id,
            sequence_number=order.sequence_number,
            amount=order.grand_total,
            payment_method=order.payment.method,
            transaction_id=order.payment.transaction_id,
            provider=order.payment.provider,
        )


@dataclass(frozen=True)
class OrderCanceled(DomainEvent):
    event_type: ClassVar[str] = "order.canceled"

    reason: Optional[str] = None
    canceled_by: Optional[str] = None
    occurred_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_order(
        cls,
        order: Order,
        reason: Optional[str],
        canceled_by: Optional[str],
    ) -> "OrderCanceled":
        return cls(
            order_id=order.id,
            sequence_number=order.sequence_number,
            reason=reason,
            canceled_by=canceled_by,
        )
