"""
Persistence contracts and their SQLAlchemy implementations.
"""

from order_service.repositories.base import (
    CatalogRepository,
    CustomerRef,
    MenuItemRef,
    OrderFilters,
    OrderRepository,
    RestaurantRef,
)

__all__ = [
    "CatalogRepository",
    "CustomerRef",
    "MenuItemRef",
    "OrderFilters",
    "OrderRepository",
    "RestaurantRef",
]
