"""
SQLAlchemy Repositories

Async implementations of the repository contracts. Each call opens its
own short-lived session from the injected session factory.

Concurrency:
    - Order numbers come from the ``order_sequences`` counter row,
      incremented with UPDATE ... RETURNING inside the insert transaction.
    - Updates carry ``WHERE version = :expected``; zero affected rows
      means another writer got there first.
"""

import logging
import uuid
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from order_service.core.exceptions import ConcurrentUpdateError
from order_service.domain.order import (
    Order,
    OrderLineItem,
    OrderStatus,
    PaymentInfo,
    to_money,
)
from order_service.models import (
    ORDER_SEQUENCE_NAME,
    Customer,
    MenuItem,
    OrderRecord,
    OrderSequence,
    Restaurant,
)
from order_service.repositories.base import (
    CatalogRepository,
    CustomerRef,
    MenuItemRef,
    OrderFilters,
    OrderRepository,
    RestaurantRef,
)

logger = logging.getLogger(__name__)


def record_to_order(record: OrderRecord) -> Order:
    """Rebuild the aggregate from its row."""
    return Order(
        id=record.id,
        sequence_number=record.sequence_number,
        customer_id=record.customer_id,
        restaurant_id=record.restaurant_id,
        items=[OrderLineItem.from_dict(item) for item in record.items or []],
        subtotal=to_money(record.subtotal),
        delivery_fee=to_money(record.delivery_fee),
        grand_total=to_money(record.grand_total),
        delivery_address=record.delivery_address,
        notes=record.notes,
        status=OrderStatus(record.status),
        payment=PaymentInfo(
            transaction_id=record.payment_transaction_id,
            method=record.payment_method,
            provider=record.payment_provider,
            paid_at=record.paid_at,
            refunded_at=record.refunded_at,
            refund_id=record.refund_id,
        ),
        placed_at=record.placed_at,
        confirmed_at=record.confirmed_at,
        delivered_at=record.delivered_at,
        created_at=record.created_at or record.placed_at,
        updated_at=record.updated_at or record.placed_at,
        version=record.version,
    )


def _status_values(order: Order) -> dict[str, Any]:
    return {
        "status": order.status,
        "confirmed_at": order.confirmed_at,
        "delivered_at": order.delivered_at,
        "updated_at": order.updated_at,
    }


def _mutable_values(order: Order) -> dict[str, Any]:
    values = _status_values(order)
    values.update(
        payment_transaction_id=order.payment.transaction_id,
        payment_method=order.payment.method,
        payment_provider=order.payment.provider,
        paid_at=order.payment.paid_at,
        refunded_at=order.payment.refunded_at,
        refund_id=order.payment.refund_id,
        delivery_address=order.delivery_address,
        notes=order.notes,
    )
    return values


class SqlOrderRepository(OrderRepository):
    """Order persistence on SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], sequence_prefix: str = "ORD"):
        self._session_factory = session_factory
        self._sequence_prefix = sequence_prefix

    async def find_by_id(self, order_id: str) -> Optional[Order]:
        async with self._session_factory() as session:
            record = await session.get(OrderRecord, order_id)
            return record_to_order(record) if record else None

    async def find_all(self, filters: Optional[OrderFilters] = None) -> list[Order]:
        filters = filters or OrderFilters()
        query = select(OrderRecord).order_by(OrderRecord.placed_at.desc())

        if filters.customer_id:
            query = query.where(OrderRecord.customer_id == filters.customer_id)
        if filters.restaurant_id:
            query = query.where(OrderRecord.restaurant_id == filters.restaurant_id)
        if filters.status:
            query = query.where(OrderRecord.status == filters.status)
        if filters.placed_from:
            query = query.where(OrderRecord.placed_at >= filters.placed_from)
        if filters.placed_to:
            query = query.where(OrderRecord.placed_at <= filters.placed_to)

        query = query.offset(filters.offset).limit(filters.limit)

        async with self._session_factory() as session:
            result = await session.execute(query)
            return [record_to_order(record) for record in result.scalars().all()]

    async def find_by_transaction_id(self, transaction_id: str) -> Optional[Order]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(OrderRecord).where(OrderRecord.payment_transaction_id == transaction_id)
            )
            record = result.scalars().first()
            return record_to_order(record) if record else None

    async def _next_sequence(self, session: AsyncSession) -> int:
        result = await session.execute(
            update(OrderSequence)
            .where(OrderSequence.name == ORDER_SEQUENCE_NAME)
            .values(value=OrderSequence.value + 1)
            .returning(OrderSequence.value)
        )
        number = result.scalar_one_or_none()
        if number is None:
            # Counter row missing (init_db not run); start it inside this transaction
            session.add(OrderSequence(name=ORDER_SEQUENCE_NAME, value=1))
            number = 1
        return number

    async def insert(self, order: Order) -> Order:
        async with self._session_factory() as session:
            async with session.begin():
                number = await self._next_sequence(session)
                order.id = str(uuid.uuid4())
                order.sequence_number = f"{self._sequence_prefix}{number:06d}"
                order.version = 1
                session.add(OrderRecord(
                    id=order.id,
                    sequence_number=order.sequence_number,
                    customer_id=order.customer_id,
                    restaurant_id=order.restaurant_id,
                    items=[item.to_dict() for item in order.items],
                    subtotal=order.subtotal,
                    delivery_fee=order.delivery_fee,
                    grand_total=order.grand_total,
                    placed_at=order.placed_at,
                    created_at=order.created_at,
                    version=order.version,
                    **_mutable_values(order),
                ))
        logger.info(f"Order {order.sequence_number} stored with id {order.id}")
        return order

    async def _conditional_update(self, order: Order, values: dict[str, Any]) -> Order:
        statement = (
            update(OrderRecord)
            .where(OrderRecord.id == order.id, OrderRecord.version == order.version)
            .values(version=order.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(statement)
        if result.rowcount == 0:
            logger.warning(f"Order {order.id}: version {order.version} is stale, update rejected")
            raise ConcurrentUpdateError(order.id)
        order.version += 1
        return order

    async def update(self, order: Order) -> Order:
        return await self._conditional_update(order, _mutable_values(order))

    async def update_status(self, order: Order) -> Order:
        return await self._conditional_update(order, _status_values(order))

    async def count_by_status(self, status: OrderStatus) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count(OrderRecord.id)).where(OrderRecord.status == status)
            )
            return result.scalar() or 0

    async def total_sales(self, status: OrderStatus = OrderStatus.DELIVERED) -> Decimal:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.sum(OrderRecord.grand_total)).where(OrderRecord.status == status)
            )
            return to_money(result.scalar() or 0)


class SqlCatalogRepository(CatalogRepository):
    """Lookups against the catalog tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_customer(self, customer_id: str) -> Optional[CustomerRef]:
        async with self._session_factory() as session:
            row = await session.get(Customer, customer_id)
            if row is None:
                return None
            return CustomerRef(id=row.id, name=row.name, address=row.address)

    async def get_restaurant(self, restaurant_id: str) -> Optional[RestaurantRef]:
        async with self._session_factory() as session:
            row = await session.get(Restaurant, restaurant_id)
            if row is None:
                return None
            return RestaurantRef(id=row.id, name=row.name, is_active=row.is_active)

    async def get_menu_item(self, menu_item_id: str) -> Optional[MenuItemRef]:
        async with self._session_factory() as session:
            row = await session.get(MenuItem, menu_item_id)
            if row is None:
                return None
            return MenuItemRef(
                id=row.id,
                name=row.name,
                price=to_money(row.price),
                is_available=row.is_available,
                restaurant_id=row.restaurant_id,
            )
