"""
FastAPI Application Entry Point

Food Delivery Order Service - order lifecycle and payment settlement.

Endpoints:
    - POST  /api/orders: Create order
    - GET   /api/orders: List orders (filters)
    - GET   /api/orders/dashboard: Status counts and delivered sales
    - GET   /api/orders/{id}: Get order
    - POST  /api/orders/{id}/pay: Pay order (Idempotency-Key header)
    - PATCH /api/orders/{id}/cancel: Cancel order
    - PATCH /api/orders/{id}/status: Move order along the workflow
    - POST  /webhooks/stripe: Stripe payment reconciliation
    - GET   /health: System health check
    - GET   /metrics: Prometheus exposition

Author: Your Name
Version: 1.0.0
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from order_service.container import (
    get_cancel_order,
    get_create_order,
    get_dashboard_stats,
    get_get_order,
    get_list_orders,
    get_metrics,
    get_pay_order,
    get_stripe_webhook_handler,
    get_update_order_status,
)
from order_service.core.config import get_settings, setup_logging
from order_service.core.exceptions import OrderServiceError
from order_service.core.metrics import MetricsSink, PrometheusMetrics
from order_service.database import engine, get_db, init_db
from order_service.domain.order import OrderStatus
from order_service.repositories.base import OrderFilters
from order_service.schemas import (
    CancelOrderRequest,
    DashboardResponse,
    ErrorResponse,
    HealthResponse,
    OrderCreate,
    OrderEnvelope,
    OrderListResponse,
    OrderResponse,
    PaymentSummaryResponse,
    PayOrderData,
    PayOrderRequest,
    PayOrderResponse,
    UpdateStatusRequest,
)
from order_service.services.messaging import BaseMessageBus, get_message_bus
from order_service.services.orders import (
    CancelOrder,
    CancelOrderCommand,
    CreateOrder,
    CreateOrderCommand,
    GetDashboardStats,
    GetOrder,
    ListOrders,
    PayOrder,
    PayOrderCommand,
    RequestedItem,
    UpdateOrderStatus,
)
from order_service.services.payment import BasePaymentGateway, get_payment_gateway
from order_service.services.policy import BasePolicyClient, get_policy_client
from order_service.services.webhooks import StripeWebhookHandler

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"Missing production config: {missing}")

    # Fails fast on an unconfigured gateway in production
    payment_gateway = get_payment_gateway()
    policy_client = get_policy_client()
    message_bus = get_message_bus()

    await init_db()
    logger.info("Database initialized")

    logger.info(f"Payment Gateway: {payment_gateway.provider_name} (enabled={payment_gateway.is_enabled()})")
    logger.info(f"Policy Engine: enabled={policy_client.is_enabled()}")
    logger.info(f"Message Bus: enabled={message_bus.is_enabled()}")
    logger.info("Application ready")

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await message_bus.close()
    await payment_gateway.close()
    await policy_client.close()
    await engine.dispose()
    logger.info("Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Order lifecycle and payment settlement for food delivery: "
        "state machine, idempotent payments and webhook reconciliation."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db),
    gateway: BasePaymentGateway = Depends(get_payment_gateway),
    policy: BasePolicyClient = Depends(get_policy_client),
    bus: BaseMessageBus = Depends(get_message_bus),
) -> HealthResponse:
    """Report database and collaborator status."""

    db_status = "healthy"
    try:
        await db.execute(select(func.now()))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    payment_status = await gateway.get_status()
    policy_status = await policy.get_status()
    bus_status = await bus.get_status()

    degraded = db_status != "healthy" or any(
        component["status"] == "unhealthy"
        for component in (payment_status, policy_status, bus_status)
    )

    return HealthResponse(
        status="degraded" if degraded else "operational",
        database=db_status,
        payment_gateway=payment_status,
        policy_engine=policy_status,
        message_bus=bus_status,
        timestamp=datetime.now(timezone.utc),
    )


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics(sink: MetricsSink = Depends(get_metrics)) -> Response:
    """Prometheus text exposition."""
    if not isinstance(sink, PrometheusMetrics):
        return Response(status_code=404)
    return Response(content=sink.render(), media_type=sink.content_type)


# =============================================================================
# ORDER API ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders",
    response_model=OrderEnvelope,
    status_code=201,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Create Order",
)
async def create_order(
    order_data: OrderCreate,
    use_case: CreateOrder = Depends(get_create_order),
) -> OrderEnvelope:
    """Create a pending order from menu item references."""
    order = await use_case.execute(CreateOrderCommand(
        customer_id=order_data.customer_id,
        restaurant_id=order_data.restaurant_id,
        items=[RequestedItem(item.menu_item_id, item.quantity) for item in order_data.items],
        delivery_fee=order_data.delivery_fee,
        delivery_address=order_data.delivery_address,
        notes=order_data.notes,
    ))
    return OrderEnvelope(message="Order created", data=OrderResponse.from_order(order))


@app.get(
    "/api/orders",
    response_model=OrderListResponse,
    tags=["Orders"],
    summary="List Orders",
)
async def list_orders(
    customer_id: Optional[str] = Query(None),
    restaurant_id: Optional[str] = Query(None),
    status: Optional[OrderStatus] = Query(None),
    placed_from: Optional[datetime] = Query(None),
    placed_to: Optional[datetime] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    use_case: ListOrders = Depends(get_list_orders),
) -> OrderListResponse:
    """Orders matching the filters, newest first."""
    orders = await use_case.execute(OrderFilters(
        customer_id=customer_id,
        restaurant_id=restaurant_id,
        status=status,
        placed_from=placed_from,
        placed_to=placed_to,
        limit=limit,
        offset=skip,
    ))
    return OrderListResponse(
        total=len(orders),
        data=[OrderResponse.from_order(order) for order in orders],
    )


@app.get(
    "/api/orders/dashboard",
    response_model=DashboardResponse,
    tags=["Dashboard"],
)
async def dashboard(
    use_case: GetDashboardStats = Depends(get_dashboard_stats),
) -> DashboardResponse:
    """Aggregated order statistics."""
    return DashboardResponse.from_stats(await use_case.execute())


@app.get(
    "/api/orders/{order_id}",
    response_model=OrderEnvelope,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def get_order(
    order_id: str,
    use_case: GetOrder = Depends(get_get_order),
) -> OrderEnvelope:
    """Get a specific order by ID."""
    order = await use_case.execute(order_id)
    return OrderEnvelope(data=OrderResponse.from_order(order))


@app.post(
    "/api/orders/{order_id}/pay",
    response_model=PayOrderResponse,
    responses={**ERROR_RESPONSES, 402: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    tags=["Payments"],
    summary="Pay Order",
)
async def pay_order(
    order_id: str,
    payment: PayOrderRequest,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    use_case: PayOrder = Depends(get_pay_order),
) -> PayOrderResponse:
    """
    Charge the order through the configured gateway.

    Repeating the call for a paid order returns the original transaction
    without charging again.
    """
    result = await use_case.execute(PayOrderCommand(
        order_id=order_id,
        payment_method=payment.payment_method,
        payment_data=payment.payment_data,
        idempotency_key=idempotency_key,
    ))
    return PayOrderResponse(
        message=result.payment.message,
        data=PayOrderData(
            order=OrderResponse.from_order(result.order),
            payment=PaymentSummaryResponse.from_summary(result.payment),
        ),
    )


@app.patch(
    "/api/orders/{order_id}/cancel",
    response_model=OrderEnvelope,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def cancel_order(
    order_id: str,
    request: CancelOrderRequest,
    use_case: CancelOrder = Depends(get_cancel_order),
) -> OrderEnvelope:
    order = await use_case.execute(CancelOrderCommand(
        order_id=order_id,
        reason=request.reason,
        canceled_by=request.canceled_by,
    ))
    return OrderEnvelope(message="Order canceled", data=OrderResponse.from_order(order))


@app.patch(
    "/api/orders/{order_id}/status",
    response_model=OrderEnvelope,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def update_order_status(
    order_id: str,
    request: UpdateStatusRequest,
    use_case: UpdateOrderStatus = Depends(get_update_order_status),
) -> OrderEnvelope:
    order = await use_case.execute(order_id, request.status)
    return OrderEnvelope(message="Order status updated", data=OrderResponse.from_order(order))


# =============================================================================
# WEBHOOK ENDPOINTS
# =============================================================================

@app.post(
    "/webhooks/stripe",
    tags=["Webhooks"],
    summary="Stripe Webhook Endpoint",
)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    handler: StripeWebhookHandler = Depends(get_stripe_webhook_handler),
) -> JSONResponse:
    """
    Reconcile payment events sent by Stripe.

    Configure this URL in the Stripe dashboard:
        https://your-domain.com/webhooks/stripe
    """
    body = await request.body()
    result = await handler.handle(body, stripe_signature)
    return JSONResponse(status_code=result.status_code, content=result.body)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(OrderServiceError)
async def order_service_exception_handler(request: Request, exc: OrderServiceError) -> JSONResponse:
    """Map business errors to their HTTP status."""
    log = logger.error if exc.status_code >= 500 else logger.info
    log(f"{request.method} {request.url.path} -> {exc.status_code} {exc.kind}: {exc.message}")

    content: dict[str, Any] = {"success": False, "error": exc.to_dict()}
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": {
                "kind": "internal_error",
                "message": str(exc) if settings.debug else "An unexpected error occurred",
            },
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "order_service.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
    )
