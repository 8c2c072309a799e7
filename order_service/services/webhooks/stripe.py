"""
Stripe Webhook Reconciliation

Applies provider-side payment outcomes to orders, independently of the
client that initiated the payment. Stripe delivers at least once and in
any order, so every branch is idempotent:

    payment_intent.succeeded       mark paid if payable, no-op if already
                                   paid with the same intent
    payment_intent.payment_failed  pending → payment_failed, else ignored
    charge.refunded                record the first refund id only
    anything else                  acknowledged and ignored

Order lookup:
    The PaymentIntent description must read "Order <order-id>", with the
    order's canonical lowercase UUID (StripePaymentGateway writes it that
    way). ``metadata.order_id`` is used when the description does not
    match. Operators creating intents by other means must keep this
    convention or the event is dropped with a warning.

Response codes:
    400  bad signature or unparseable payload (nothing processed)
    500  processing error; Stripe retries the delivery
    200  everything else, including unknown orders

Author: Your Name
Version: 1.0.0
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

import stripe

from order_service.core.exceptions import ConcurrentUpdateError
from order_service.domain.order import Order, OrderStatus
from order_service.repositories.base import OrderRepository

logger = logging.getLogger(__name__)

ORDER_ID_PATTERN = re.compile(
    r"Order\s+([0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})",
    re.IGNORECASE,
)

WEBHOOK_PAYMENT_METHOD = "card"
WEBHOOK_PROVIDER = "stripe"

# Reads + conditional write attempts per event before handing back to Stripe
MAX_WRITE_ATTEMPTS = 2


def extract_order_id(payment_intent: dict[str, Any]) -> Optional[str]:
    """Order id from the intent description, falling back to metadata."""
    match = ORDER_ID_PATTERN.search(payment_intent.get("description") or "")
    if match:
        return match.group(1).lower()
    return (payment_intent.get("metadata") or {}).get("order_id")


@dataclass
class WebhookResult:
    status_code: int
    body: dict[str, Any] = field(default_factory=dict)


class StripeWebhookHandler:
    """
    Args:
        orders: Order repository
        webhook_secret: Endpoint signing secret; None skips verification
        tolerance: Maximum signature age in seconds
    """

    def __init__(
        self,
        orders: OrderRepository,
        webhook_secret: Optional[str] = None,
        tolerance: int = stripe.Webhook.DEFAULT_TOLERANCE,
    ):
        self._orders = orders
        self._webhook_secret = webhook_secret
        self._tolerance = tolerance
        self._handlers: dict[str, Callable[[dict[str, Any]], Awaitable[None]]] = {
            "payment_intent.succeeded": self._payment_succeeded,
            "payment_intent.payment_failed": self._payment_failed,
            "charge.refunded": self._charge_refunded,
        }

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    def _parse(self, payload: bytes, signature: Optional[str]) -> dict[str, Any]:
        """
        Verify and decode the payload.

        Raises:
            stripe.SignatureVerificationError: Bad or missing signature
            ValueError: Payload is not a JSON object
        """
        text = payload.decode("utf-8")

        if self._webhook_secret:
            stripe.WebhookSignature.verify_header(
                text, signature or "", self._webhook_secret, self._tolerance
            )
        else:
            logger.error(
                "STRIPE_WEBHOOK_SECRET not configured - accepting webhook WITHOUT "
                "signature verification (never run like this in production)"
            )

        event = json.loads(text)
        if not isinstance(event, dict):
            raise ValueError("Webhook payload is not a JSON object")
        return event

    async def handle(self, payload: bytes, signature: Optional[str]) -> WebhookResult:
        try:
            event = self._parse(payload, signature)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Stripe webhook: signature verification failed - {e}")
            return WebhookResult(400, {"error": "Webhook signature verification failed"})
        except ValueError as e:
            logger.warning(f"Stripe webhook: malformed payload - {e}")
            return WebhookResult(400, {"error": "Malformed webhook payload"})

        event_type = event.get("type")
        logger.info(f"Stripe webhook: {event_type} ({event.get('id')})")

        handler = self._handlers.get(event_type)
        if handler is None:
            logger.info(f"Stripe webhook: ignoring unhandled event type {event_type}")
            return WebhookResult(200, {"received": True})

        try:
            data_object = (event.get("data") or {}).get("object") or {}
            await handler(data_object)
        except Exception:
            logger.exception(f"Stripe webhook: error processing {event_type}")
            return WebhookResult(500, {"error": "Internal server error"})

        return WebhookResult(200, {"received": True})

    # -------------------------------------------------------------------------
    # Conditional write with one re-read on conflict
    # -------------------------------------------------------------------------

    async def _reconcile(
        self,
        load: Callable[[], Awaitable[Optional[Order]]],
        apply: Callable[[Order], bool],
    ) -> None:
        """
        Load, mutate and write an order; ``apply`` returns False for no-ops.

        A stale write re-runs the whole cycle so the decision is made against
        the current state.
        """
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            order = await load()
            if order is None or not apply(order):
                return
            try:
                await self._orders.update(order)
                return
            except ConcurrentUpdateError:
                if attempt == MAX_WRITE_ATTEMPTS:
                    raise
                logger.info(f"Stripe webhook: order {order.id} changed concurrently, re-reading")

    # -------------------------------------------------------------------------
    # Event handlers
    # -------------------------------------------------------------------------

    async def _find_order(self, payment_intent: dict[str, Any]) -> Optional[Order]:
        order_id = extract_order_id(payment_intent)
        if not order_id:
            logger.warning(
                f"Stripe webhook: no order id in intent {payment_intent.get('id')} "
                f"(description={payment_intent.get('description')!r})"
            )
            return None
        order = await self._orders.find_by_id(order_id)
        if order is None:
            logger.warning(f"Stripe webhook: order {order_id} not found for intent {payment_intent.get('id')}")
        return order

    async def _payment_succeeded(self, payment_intent: dict[str, Any]) -> None:
        intent_id = payment_intent.get("id")

        def apply(order: Order) -> bool:
            if order.is_paid_with(intent_id):
                logger.info(f"Stripe webhook: order {order.id} already paid with {intent_id}")
                return False
            if not order.is_payable:
                logger.warning(
                    f"Stripe webhook: order {order.id} not payable in status {order.status.value}, "
                    f"intent {intent_id} left unapplied"
                )
                return False
            order.mark_as_paid(intent_id, WEBHOOK_PAYMENT_METHOD, WEBHOOK_PROVIDER)
            logger.info(f"Stripe webhook: order {order.id} marked paid with {intent_id}")
            return True

        await self._reconcile(lambda: self._find_order(payment_intent), apply)

    async def _payment_failed(self, payment_intent: dict[str, Any]) -> None:
        error = (payment_intent.get("last_payment_error") or {}).get("message")

        def apply(order: Order) -> bool:
            if order.status != OrderStatus.PENDING:
                logger.info(
                    f"Stripe webhook: payment failure for order {order.id} ignored "
                    f"in status {order.status.value}"
                )
                return False
            order.mark_payment_failed()
            logger.info(f"Stripe webhook: order {order.id} marked payment_failed ({error})")
            return True

        await self._reconcile(lambda: self._find_order(payment_intent), apply)

    async def _charge_refunded(self, charge: dict[str, Any]) -> None:
        intent_id = charge.get("payment_intent")
        if not intent_id:
            logger.warning(f"Stripe webhook: charge {charge.get('id')} has no payment intent")
            return

        refunds = (charge.get("refunds") or {}).get("data") or []
        refund_id = refunds[0].get("id") if refunds else None
        refund_id = refund_id or f"refund_{charge.get('id')}"

        async def load() -> Optional[Order]:
            order = await self._orders.find_by_transaction_id(intent_id)
            if order is None:
                logger.warning(f"Stripe webhook: no order paid with {intent_id}")
            return order

        def apply(order: Order) -> bool:
            if not order.mark_as_refunded(refund_id):
                logger.info(f"Stripe webhook: order {order.id} already refunded")
                return False
            logger.info(f"Stripe webhook: order {order.id} refunded ({refund_id})")
            return True

        await self._reconcile(load, apply)
