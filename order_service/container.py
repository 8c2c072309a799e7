"""
Dependency Wiring

Cached factories building the collaborators and use cases. FastAPI routes
depend on the ``get_*`` functions below, which lets tests swap any of them
through ``app.dependency_overrides``.
"""

from functools import lru_cache

from order_service.core.config import get_settings
from order_service.core.metrics import MetricsSink, NullMetrics, PrometheusMetrics
from order_service.database import async_session_maker
from order_service.repositories.base import CatalogRepository, OrderRepository
from order_service.repositories.sql import SqlCatalogRepository, SqlOrderRepository
from order_service.services.messaging import get_message_bus
from order_service.services.orders import (
    CancelOrder,
    CreateOrder,
    GetDashboardStats,
    GetOrder,
    ListOrders,
    PayOrder,
    UpdateOrderStatus,
)
from order_service.services.payment import get_payment_gateway
from order_service.services.policy import get_policy_client
from order_service.services.webhooks import StripeWebhookHandler


@lru_cache()
def get_metrics() -> MetricsSink:
    if get_settings().metrics_enabled:
        return PrometheusMetrics()
    return NullMetrics()


@lru_cache()
def get_order_repository() -> OrderRepository:
    return SqlOrderRepository(async_session_maker, sequence_prefix=get_settings().sequence_prefix)


@lru_cache()
def get_catalog_repository() -> CatalogRepository:
    return SqlCatalogRepository(async_session_maker)


def get_create_order() -> CreateOrder:
    return CreateOrder(
        orders=get_order_repository(),
        catalog=get_catalog_repository(),
        policy=get_policy_client(),
        bus=get_message_bus(),
        metrics=get_metrics(),
        default_delivery_fee=get_settings().default_delivery_fee,
    )


def get_pay_order() -> PayOrder:
    return PayOrder(
        orders=get_order_repository(),
        gateway=get_payment_gateway(),
        bus=get_message_bus(),
        metrics=get_metrics(),
    )


def get_cancel_order() -> CancelOrder:
    return CancelOrder(
        orders=get_order_repository(),
        policy=get_policy_client(),
        bus=get_message_bus(),
        metrics=get_metrics(),
    )


def get_update_order_status() -> UpdateOrderStatus:
    return UpdateOrderStatus(get_order_repository())


def get_get_order() -> GetOrder:
    return GetOrder(get_order_repository())


def get_list_orders() -> ListOrders:
    return ListOrders(get_order_repository())


def get_dashboard_stats() -> GetDashboardStats:
    return GetDashboardStats(get_order_repository())


def get_stripe_webhook_handler() -> StripeWebhookHandler:
    return StripeWebhookHandler(
        orders=get_order_repository(),
        webhook_secret=get_settings().stripe_webhook_secret,
    )
