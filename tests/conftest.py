"""
Shared pytest fixtures.

Environment variables are set before any order_service import so the
cached settings (and the module-level engine) never point at a real
database or collaborator.
"""

import os
from decimal import Decimal

import pytest
import pytest_asyncio

os.environ["ENV_MODE"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["PAYMENT_PROVIDER"] = "http"
for key in (
    "PAYMENT_BASE_URL",
    "PAYMENT_API_KEY",
    "STRIPE_SECRET_KEY",
    "STRIPE_WEBHOOK_SECRET",
    "OPA_URL",
    "MESSAGE_BUS_URL",
):
    os.environ.pop(key, None)

from order_service.repositories.base import CustomerRef, MenuItemRef, RestaurantRef  # noqa: E402
from order_service.services.orders import (  # noqa: E402
    CreateOrder,
    CreateOrderCommand,
    PayOrder,
    RequestedItem,
)
from tests.fakes import (  # noqa: E402
    FakeCatalog,
    FakeGateway,
    InMemoryOrderRepository,
    RecordingMessageBus,
    RecordingMetrics,
    StubPolicy,
)

CUSTOMER_ADDRESS = {"street": "Rua das Flores, 10", "city": "Lisboa", "zip": "1200-195"}


# ============================================================================
# COLLABORATORS
# ============================================================================


@pytest.fixture
def orders() -> InMemoryOrderRepository:
    return InMemoryOrderRepository()


@pytest.fixture
def catalog() -> FakeCatalog:
    catalog = FakeCatalog()
    catalog.customers["cust-1"] = CustomerRef(id="cust-1", name="Ana Costa", address=CUSTOMER_ADDRESS)
    catalog.restaurants["rest-1"] = RestaurantRef(id="rest-1", name="Forno Bom")
    catalog.restaurants["rest-closed"] = RestaurantRef(id="rest-closed", name="Closed Diner", is_active=False)
    catalog.menu_items["pizza"] = MenuItemRef(
        id="pizza", name="Pizza Margherita", price=Decimal("45.90"), restaurant_id="rest-1"
    )
    catalog.menu_items["soda"] = MenuItemRef(
        id="soda", name="Soda", price=Decimal("5.00"), restaurant_id="rest-1"
    )
    catalog.menu_items["tiramisu"] = MenuItemRef(
        id="tiramisu", name="Tiramisu", price=Decimal("12.00"), is_available=False, restaurant_id="rest-1"
    )
    return catalog


@pytest.fixture
def policy() -> StubPolicy:
    return StubPolicy()


@pytest.fixture
def bus() -> RecordingMessageBus:
    return RecordingMessageBus()


@pytest.fixture
def metrics() -> RecordingMetrics:
    return RecordingMetrics()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


# ============================================================================
# USE CASES
# ============================================================================


@pytest.fixture
def create_order(orders, catalog, policy, bus, metrics) -> CreateOrder:
    return CreateOrder(
        orders=orders,
        catalog=catalog,
        policy=policy,
        bus=bus,
        metrics=metrics,
        default_delivery_fee=Decimal("5.00"),
    )


@pytest.fixture
def pay_order(orders, gateway, bus, metrics) -> PayOrder:
    return PayOrder(orders=orders, gateway=gateway, bus=bus, metrics=metrics)


@pytest_asyncio.fixture
async def pending_order(create_order, bus):
    """A stored PENDING order for 2 x 45.90 plus the default fee."""
    order = await create_order.execute(CreateOrderCommand(
        customer_id="cust-1",
        restaurant_id="rest-1",
        items=[RequestedItem("pizza", 2)],
    ))
    bus.published.clear()
    return order
