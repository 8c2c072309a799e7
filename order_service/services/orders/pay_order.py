"""
PayOrder Use Case

Charges an order through the configured gateway exactly once.

Idempotency works at two levels:
    - Aggregate: an order already PAID with a transaction id returns that
      transaction and the gateway is never called again.
    - Provider: every charge carries an idempotency key. Without a
      client-supplied key one is derived from the order id, sequence
      number and grand total, so blind client retries still collapse to
      the same provider-side key.

The webhook handler may mark the same order paid concurrently. Both paths
go through Order.mark_as_paid and a version-checked write; whichever
loses re-reads the order and returns the winner's result when it is the
same payment.
"""

import hashlib
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from order_service.core.exceptions import (
    ConcurrentUpdateError,
    InvalidStateError,
    PaymentDeclinedError,
)
from order_service.core.metrics import MetricsSink
from order_service.domain.events import OrderPaid
from order_service.domain.order import Order
from order_service.repositories.base import OrderRepository
from order_service.services.messaging.base import BaseMessageBus
from order_service.services.orders.common import load_order, publish_event
from order_service.services.payment.base import STATUS_APPROVED, BasePaymentGateway

logger = logging.getLogger(__name__)

IDEMPOTENCY_HASH_LENGTH = 16

# Decline reasons kept as metric labels; anything else is counted as "other"
DECLINE_REASON_LABELS = frozenset({
    "declined",
    "card_declined",
    "insufficient_funds",
    "expired_card",
    "incorrect_cvc",
    "incorrect_number",
    "invalid_card",
    "fraudulent",
    "processing_error",
    "authentication_required",
    "requires_action",
    "requires_payment_method",
    "canceled",
    "stripe_error",
})


def decline_reason_label(reason: Optional[str]) -> str:
    label = (reason or "declined").strip().lower()
    return label if label in DECLINE_REASON_LABELS else "other"


def derive_idempotency_key(order: Order) -> str:
    """Deterministic provider key for requests that did not send one."""
    fingerprint = f"{order.id}:{order.sequence_number}:{order.grand_total}"
    digest = hashlib.sha256(fingerprint.encode("utf-8")).hexdigest()
    return f"order-{order.id}-{digest[:IDEMPOTENCY_HASH_LENGTH]}"


@dataclass
class PayOrderCommand:
    order_id: str
    payment_method: str
    payment_data: dict[str, Any] = field(default_factory=dict)
    idempotency_key: Optional[str] = None


@dataclass
class PaymentSummary:
    transaction_id: Optional[str]
    status: str
    message: str
    provider: Optional[str] = None
    idempotent: bool = False
    simulated: bool = False


@dataclass
class PayOrderResult:
    order: Order
    payment: PaymentSummary


def _already_paid(order: Order) -> PayOrderResult:
    return PayOrderResult(
        order=order,
        payment=PaymentSummary(
            transaction_id=order.payment.transaction_id,
            status=STATUS_APPROVED,
            message="Payment already processed",
            provider=order.payment.provider,
            idempotent=True,
        ),
    )


class PayOrder:

    def __init__(
        self,
        orders: OrderRepository,
        gateway: BasePaymentGateway,
        bus: BaseMessageBus,
        metrics: MetricsSink,
    ):
        self._orders = orders
        self._gateway = gateway
        self._bus = bus
        self._metrics = metrics

    async def execute(self, command: PayOrderCommand) -> PayOrderResult:
        started = time.perf_counter()
        provider = self._gateway.provider_name
        logger.info(f"Processing payment for order {command.order_id} via {command.payment_method}")

        order = await load_order(self._orders, command.order_id)

        if order.is_paid:
            logger.info(
                f"Order {order.id} already paid ({order.payment.transaction_id}), "
                f"skipping gateway"
            )
            return _already_paid(order)

        if not order.is_payable:
            raise InvalidStateError(
                f"Order {order.sequence_number} cannot be paid in status {order.status.value}"
            )

        idempotency_key = command.idempotency_key or derive_idempotency_key(order)

        self._metrics.increment("payment_attempts_total", {"provider": provider})
        try:
            result = await self._gateway.process_payment(
                amount=order.grand_total,
                method=command.payment_method,
                order_id=order.id,
                idempotency_key=idempotency_key,
                metadata={
                    "sequence_number": order.sequence_number,
                    "customer_id": order.customer_id,
                    **command.payment_data,
                },
            )
        finally:
            self._metrics.observe(
                "payment_latency_seconds",
                {"provider": provider},
                time.perf_counter() - started,
            )

        if not result.success:
            self._metrics.increment(
                "payment_failures_total",
                {"provider": provider, "reason": decline_reason_label(result.reason)},
            )
            logger.warning(
                f"Payment declined for order {order.id}: {result.message} "
                f"(reason={result.reason}, raw={result.raw})"
            )
            raise PaymentDeclinedError(result.message, reason=result.reason, raw=result.raw)

        self._metrics.increment("payment_success_total", {"provider": provider})
        if result.simulated:
            logger.warning(f"Order {order.id} approved by a simulated gateway ({result.transaction_id})")

        order.mark_as_paid(result.transaction_id, command.payment_method, provider)
        try:
            await self._orders.update(order)
        except ConcurrentUpdateError:
            current = await load_order(self._orders, order.id)
            if current.is_paid_with(result.transaction_id):
                logger.info(f"Order {order.id} was reconciled by webhook first")
                return _already_paid(current)
            raise

        logger.info(f"Order {order.sequence_number} paid - {result.transaction_id}")
        await publish_event(self._bus, OrderPaid.from_order(order))

        return PayOrderResult(
            order=order,
            payment=PaymentSummary(
                transaction_id=result.transaction_id,
                status=result.status,
                message=result.message,
                provider=provider,
                simulated=result.simulated,
            ),
        )
