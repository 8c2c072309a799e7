"""
Repository Contracts

The use cases depend only on these interfaces. Writes are conditional:
``update`` and ``update_status`` succeed only when the stored version
still equals ``order.version`` and raise ConcurrentUpdateError otherwise.
On success the order's ``version`` is advanced in place.

Author: Your Name
Version: 1.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from order_service.domain.order import Order, OrderStatus


@dataclass
class OrderFilters:
    """Optional criteria for listing orders; unset fields do not filter."""
    customer_id: Optional[str] = None
    restaurant_id: Optional[str] = None
    status: Optional[OrderStatus] = None
    placed_from: Optional[datetime] = None
    placed_to: Optional[datetime] = None
    limit: int = 50
    offset: int = 0


@dataclass
class CustomerRef:
    id: str
    name: str
    address: Optional[dict[str, Any]] = None


@dataclass
class RestaurantRef:
    id: str
    name: str
    is_active: bool = True


@dataclass
class MenuItemRef:
    id: str
    name: str
    price: Decimal
    is_available: bool = True
    restaurant_id: Optional[str] = None


class OrderRepository(ABC):
    """Persistence boundary for orders."""

    @abstractmethod
    async def find_by_id(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def find_all(self, filters: Optional[OrderFilters] = None) -> list[Order]:
        """Orders matching ``filters``, newest first."""
        pass

    @abstractmethod
    async def find_by_transaction_id(self, transaction_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def insert(self, order: Order) -> Order:
        """
        Persist a new order.

        Assigns ``id`` and a never-reused ``sequence_number``.
        """
        pass

    @abstractmethod
    async def update(self, order: Order) -> Order:
        """Write every mutable field back, guarded by version."""
        pass

    @abstractmethod
    async def update_status(self, order: Order) -> Order:
        """Write status and its timestamps only, guarded by version."""
        pass

    @abstractmethod
    async def count_by_status(self, status: OrderStatus) -> int:
        pass

    @abstractmethod
    async def total_sales(self, status: OrderStatus = OrderStatus.DELIVERED) -> Decimal:
        """Sum of grand totals of orders in ``status``."""
        pass


class CatalogRepository(ABC):
    """Read-only lookups into customer, restaurant and menu data."""

    @abstractmethod
    async def get_customer(self, customer_id: str) -> Optional[CustomerRef]:
        pass

    @abstractmethod
    async def get_restaurant(self, restaurant_id: str) -> Optional[RestaurantRef]:
        pass

    @abstractmethod
    async def get_menu_item(self, menu_item_id: str) -> Optional[MenuItemRef]:
        pass
