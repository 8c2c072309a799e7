"""
Read-only order use cases: single order, filtered listing, dashboard stats.
"""

import asyncio
from dataclasses import dataclass
from decimal import Decimal

from order_service.domain.order import Order, OrderStatus
from order_service.repositories.base import OrderFilters, OrderRepository
from order_service.services.orders.common import load_order


class GetOrder:

    def __init__(self, orders: OrderRepository):
        self._orders = orders

    async def execute(self, order_id: str) -> Order:
        return await load_order(self._orders, order_id)


class ListOrders:

    def __init__(self, orders: OrderRepository):
        self._orders = orders

    async def execute(self, filters: OrderFilters) -> list[Order]:
        return await self._orders.find_all(filters)


@dataclass
class DashboardStats:
    pending_orders: int
    confirmed_orders: int
    delivered_orders: int
    total_sales: Decimal


class GetDashboardStats:
    """Counts per key status and revenue from delivered orders."""

    def __init__(self, orders: OrderRepository):
        self._orders = orders

    async def execute(self) -> DashboardStats:
        pending, confirmed, delivered, sales = await asyncio.gather(
            self._orders.count_by_status(OrderStatus.PENDING),
            self._orders.count_by_status(OrderStatus.CONFIRMED),
            self._orders.count_by_status(OrderStatus.DELIVERED),
            self._orders.total_sales(OrderStatus.DELIVERED),
        )
        return DashboardStats(
            pending_orders=pending,
            confirmed_orders=confirmed,
            delivered_orders=delivered,
            total_sales=sales,
        )
