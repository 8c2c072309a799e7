"""
Order Aggregate

The order and its lifecycle rules. Status only changes through the
methods on Order; persistence and use cases never assign ``status``
directly.

State machine:

    pending          -> paid, confirmed, canceled, payment_failed
    paid             -> confirmed, canceled
    confirmed        -> preparing, canceled
    preparing        -> ready, canceled
    ready            -> out_for_delivery
    out_for_delivery -> delivered
    payment_failed   -> pending
    delivered, canceled are terminal

Author: Your Name
Version: 1.0.0
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Union

from order_service.core.exceptions import InvalidStateError, InvalidTransitionError

CENTS = Decimal("0.01")


def to_money(value: Union[Decimal, int, float, str]) -> Decimal:
    """Quantize to cents, rounding half up."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "pending"
    PAID = "paid"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELED = "canceled"
    PAYMENT_FAILED = "payment_failed"


ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({
        OrderStatus.PAID,
        OrderStatus.CONFIRMED,
        OrderStatus.CANCELED,
        OrderStatus.PAYMENT_FAILED,
    }),
    OrderStatus.PAID: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELED}),
    OrderStatus.READY: frozenset({OrderStatus.OUT_FOR_DELIVERY}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELED: frozenset(),
    OrderStatus.PAYMENT_FAILED: frozenset({OrderStatus.PENDING}),
}

PAYABLE_STATUSES = frozenset({
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PAYMENT_FAILED,
})

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELED})


@dataclass(frozen=True)
class OrderLineItem:
    """Menu item snapshot captured when the order was placed."""
    menu_item_id: str
    name: str
    unit_price: Decimal
    quantity: int

    def __post_init__(self):
        if not isinstance(self.quantity, int) or isinstance(self.quantity, bool) or self.quantity < 1:
            raise ValueError(f"Quantity for {self.name} must be a positive integer")
        object.__setattr__(self, "unit_price", to_money(self.unit_price))

    @property
    def subtotal(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)

    def to_dict(self) -> dict[str, Any]:
        return {
            "menu_item_id": self.menu_item_id,
            "name": self.name,
            "unit_price": str(self.unit_price),
            "quantity": self.quantity,
            "subtotal": str(self.subtotal),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrderLineItem":
        return cls(
            menu_item_id=data["menu_item_id"],
            name=data["name"],
            unit_price=Decimal(str(data["unit_price"])),
            quantity=int(data["quantity"]),
        )


@dataclass
class PaymentInfo:
    """Settlement details recorded once a gateway approves the charge."""
    transaction_id: Optional[str] = None
    method: Optional[str] = None
    provider: Optional[str] = None
    paid_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    refund_id: Optional[str] = None


@dataclass
class Order:
    """
    Order aggregate root.

    ``id`` and ``sequence_number`` are empty until the repository inserts
    the order. ``version`` is bumped on every persisted write and used for
    compare-and-swap updates.
    """
    customer_id: str
    restaurant_id: str
    items: list[OrderLineItem]
    subtotal: Decimal
    delivery_fee: Decimal
    grand_total: Decimal
    delivery_address: Optional[dict[str, Any]] = None
    notes: Optional[str] = None
    status: OrderStatus = OrderStatus.PENDING
    id: Optional[str] = None
    sequence_number: Optional[str] = None
    payment: PaymentInfo = field(default_factory=PaymentInfo)
    placed_at: datetime = field(default_factory=utcnow)
    confirmed_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    version: int = 0

    @classmethod
    def create(
        cls,
        customer_id: str,
        restaurant_id: str,
        items: list[OrderLineItem],
        delivery_fee: Union[Decimal, int, float, str],
        delivery_address: Optional[dict[str, Any]] = None,
        notes: Optional[str] = None,
    ) -> "Order":
        """Build a pending order; totals are fixed here and never recomputed."""
        if not items:
            raise InvalidStateError("An order needs at least one item")
        subtotal = to_money(sum((item.subtotal for item in items), Decimal("0")))
        fee = to_money(delivery_fee)
        now = utcnow()
        return cls(
            customer_id=customer_id,
            restaurant_id=restaurant_id,
            items=list(items),
            subtotal=subtotal,
            delivery_fee=fee,
            grand_total=to_money(subtotal + fee),
            delivery_address=delivery_address,
            notes=notes,
            placed_at=now,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def can_transition_to(self, target: OrderStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[self.status]

    @property
    def is_cancelable(self) -> bool:
        return self.status not in TERMINAL_STATUSES

    @property
    def is_payable(self) -> bool:
        return self.status in PAYABLE_STATUSES and not self.payment.transaction_id

    @property
    def is_paid(self) -> bool:
        return self.status == OrderStatus.PAID and bool(self.payment.transaction_id)

    def is_paid_with(self, transaction_id: str) -> bool:
        return self.is_paid and self.payment.transaction_id == transaction_id

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def transition_to(self, target: OrderStatus, now: Optional[datetime] = None) -> None:
        """
        Move along an edge of the state machine.

        Raises:
            InvalidTransitionError: If ``target`` is not reachable
        """
        target = OrderStatus(target)
        if not self.can_transition_to(target):
            raise InvalidTransitionError(self.status.value, target.value)
        now = now or utcnow()
        self.status = target
        if target == OrderStatus.CONFIRMED:
            self.confirmed_at = now
        elif target == OrderStatus.DELIVERED:
            self.delivered_at = now
        self.updated_at = now

    def mark_as_paid(
        self,
        transaction_id: str,
        method: str,
        provider: str,
        now: Optional[datetime] = None,
    ) -> None:
        """Set PAID and the payment record in one step."""
        if not transaction_id:
            raise InvalidStateError(f"Order {self.id} cannot be paid without a transaction id")
        if not self.is_payable:
            raise InvalidStateError(
                f"Order {self.id} cannot be paid in status {self.status.value}"
            )
        now = now or utcnow()
        self.status = OrderStatus.PAID
        self.payment.transaction_id = transaction_id
        self.payment.method = method
        self.payment.provider = provider
        self.payment.paid_at = now
        self.updated_at = now

    def mark_payment_failed(self, now: Optional[datetime] = None) -> None:
        if self.status != OrderStatus.PENDING:
            raise InvalidStateError(
                f"Only pending orders can fail payment, order {self.id} is {self.status.value}"
            )
        self.transition_to(OrderStatus.PAYMENT_FAILED, now)

    def mark_as_refunded(self, refund_id: str, now: Optional[datetime] = None) -> bool:
        """
        Record a refund without touching ``status``.

        Returns:
            False when a refund was already recorded (nothing changes)
        """
        if self.payment.refund_id:
            return False
        now = now or utcnow()
        self.payment.refund_id = refund_id
        self.payment.refunded_at = now
        self.updated_at = now
        return True

    def cancel(self, now: Optional[datetime] = None) -> None:
        """
        Cancel from any non-terminal status.

        Wider than the CANCELED edges of the transition table: ready and
        out-for-delivery orders can still be canceled here, but not through
        a generic status update.
        """
        if not self.is_cancelable:
            raise InvalidStateError(
                f"Order {self.id} cannot be canceled in status {self.status.value}"
            )
        now = now or utcnow()
        self.status = OrderStatus.CANCELED
        self.updated_at = now
