"""
SQLAlchemy Database Models

Tables owned by the order service plus the read-only catalog tables
(customers, restaurants, menu items) it looks orders up against.

Author: Khalil Bannouri
Version: 1.0.0
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.sql import func

from order_service.database import Base
from order_service.domain.order import OrderStatus

ORDER_SEQUENCE_NAME = "orders"


class OrderRecord(Base):
    """
    Persisted order.

    ``version`` is incremented by every update and checked in the WHERE
    clause so concurrent writers cannot overwrite each other.
    """
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True)
    sequence_number = Column(String(20), unique=True, nullable=False, index=True)

    # =========================================================================
    # REFERENCES
    # =========================================================================
    customer_id = Column(String(64), nullable=False, index=True)
    restaurant_id = Column(String(64), nullable=False, index=True)

    # =========================================================================
    # CONTENT (fixed at creation)
    # =========================================================================
    items = Column(JSON, nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)
    delivery_fee = Column(Numeric(10, 2), nullable=False)
    grand_total = Column(Numeric(10, 2), nullable=False)
    delivery_address = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================
    status = Column(
        Enum(OrderStatus, name="order_status", values_callable=lambda e: [s.value for s in e]),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True,
    )
    version = Column(Integer, nullable=False, default=1)

    # =========================================================================
    # PAYMENT
    # =========================================================================
    payment_transaction_id = Column(String(255), nullable=True, index=True)
    payment_method = Column(String(50), nullable=True)
    payment_provider = Column(String(50), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    refund_id = Column(String(255), nullable=True)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    placed_at = Column(DateTime(timezone=True), nullable=False, index=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Order {self.sequence_number} - {self.status}>"


class OrderSequence(Base):
    """Monotonic counter backing human-readable order numbers."""
    __tablename__ = "order_sequences"

    name = Column(String(50), primary_key=True)
    value = Column(Integer, nullable=False, default=0)


# =============================================================================
# CATALOG (read-only from the order service's point of view)
# =============================================================================

class Customer(Base):
    __tablename__ = "customers"

    id = Column(String(64), primary_key=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    address = Column(JSON, nullable=True)


class Restaurant(Base):
    __tablename__ = "restaurants"

    id = Column(String(64), primary_key=True)
    name = Column(String(100), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(String(64), primary_key=True)
    restaurant_id = Column(String(64), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)
