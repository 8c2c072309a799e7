"""
Stripe Payment Gateway

Production implementation using the official Stripe Python SDK.
Creates and confirms a PaymentIntent in one call; only the "succeeded"
intent status counts as an approval.

Requirements:
    - STRIPE_SECRET_KEY enables the gateway (otherwise approvals are simulated)
    - STRIPE_WEBHOOK_SECRET is used by the webhook handler, not here

Order reference convention:
    Every PaymentIntent description is written as "Order <order-id>" with
    the order's canonical UUID. The webhook handler relies on it to find
    the order again, so dashboards or scripts creating intents by hand
    must keep this format.

Security Notes:
    - Never log full card numbers or CVCs
    - Always pass the idempotency key so retries collapse to one charge

Author: Your Name
Version: 1.0.0
"""

import asyncio
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

import stripe

from order_service.core.exceptions import GatewayUnavailableError
from order_service.services.payment.base import (
    STATUS_APPROVED,
    STATUS_DECLINED,
    BasePaymentGateway,
    PaymentResult,
    RefundResult,
)

logger = logging.getLogger(__name__)

ORDER_DESCRIPTION_PREFIX = "Order "


def order_description(order_id: str) -> str:
    """Description text the webhook handler parses the order id from."""
    return f"{ORDER_DESCRIPTION_PREFIX}{order_id}"


class StripePaymentGateway(BasePaymentGateway):
    """
    Stripe card payments.

    Blocking SDK calls run in a worker thread and are bounded by
    ``timeout`` so a slow Stripe response never stalls the event loop.

    Example:
        >>> gateway = StripePaymentGateway(secret_key="sk_test_...")
        >>> result = await gateway.process_payment(
        ...     amount=Decimal("96.80"), method="card",
        ...     order_id=order.id, idempotency_key=key,
        ... )
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        currency: str = "usd",
        timeout: float = 10.0,
        default_payment_method: str = "pm_card_visa",
    ):
        self._enabled = bool(secret_key)
        self._currency = currency
        self._timeout = timeout
        self._default_payment_method = default_payment_method

        if self._enabled:
            stripe.api_key = secret_key

        logger.info(
            f"StripePaymentGateway initialized "
            f"({'enabled' if self._enabled else 'disabled'}, currency={currency})"
        )

    @property
    def provider_name(self) -> str:
        return "stripe"

    def is_enabled(self) -> bool:
        return self._enabled

    def _convert_to_cents(self, amount: Decimal) -> int:
        """
        Convert a major-unit amount to the smallest currency unit.

        Args:
            amount: Amount in dollars (e.g., 96.80)

        Returns:
            int: Amount in cents (e.g., 9680)
        """
        cents = (Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return int(cents)

    async def _call(self, func, **params):
        """Run an SDK call off the event loop with the configured timeout."""
        return await asyncio.wait_for(
            asyncio.to_thread(func, **params),
            timeout=self._timeout,
        )

    async def process_payment(
        self,
        amount: Decimal,
        method: str,
        order_id: str,
        idempotency_key: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> PaymentResult:
        if not self._enabled:
            return self._simulated_payment(amount, order_id)

        extra = dict(metadata or {})
        payment_method = extra.pop("payment_method_id", None) or self._default_payment_method

        logger.info(f"Stripe: charging {amount} for order {order_id}")

        try:
            intent = await self._call(
                stripe.PaymentIntent.create,
                amount=self._convert_to_cents(amount),
                currency=self._currency,
                description=order_description(order_id),
                confirm=True,
                payment_method=payment_method,
                metadata={
                    "order_id": order_id,
                    "method": method,
                    **{key: str(value) for key, value in extra.items()},
                },
                idempotency_key=idempotency_key,
            )

        except asyncio.TimeoutError as e:
            logger.error(f"Stripe: timed out after {self._timeout}s for order {order_id}")
            raise GatewayUnavailableError("Stripe did not answer in time") from e

        except stripe.CardError as e:
            logger.warning(f"Stripe: card declined for order {order_id} - {e.code}: {e.user_message}")
            return PaymentResult(
                success=False,
                status=STATUS_DECLINED,
                message=e.user_message or "Your card was declined.",
                reason=e.code,
                raw=e.json_body,
                provider=self.provider_name,
            )

        except (stripe.APIConnectionError, stripe.AuthenticationError) as e:
            logger.error(f"Stripe: unavailable for order {order_id} - {e}")
            raise GatewayUnavailableError("Payment service temporarily unavailable") from e

        except stripe.StripeError as e:
            logger.error(f"Stripe: error for order {order_id} - {e}")
            return PaymentResult(
                success=False,
                status=STATUS_DECLINED,
                message="Payment processing error",
                reason=e.code or "stripe_error",
                raw=e.json_body,
                provider=self.provider_name,
            )

        raw = {"id": intent.id, "status": intent.status}

        if intent.status == "succeeded":
            logger.info(f"Stripe: PaymentIntent {intent.id} succeeded for order {order_id}")
            return PaymentResult(
                success=True,
                transaction_id=intent.id,
                status=STATUS_APPROVED,
                message="Payment approved",
                raw=raw,
                provider=self.provider_name,
            )

        logger.warning(
            f"Stripe: PaymentIntent {intent.id} for order {order_id} ended as {intent.status}"
        )
        return PaymentResult(
            success=False,
            transaction_id=intent.id,
            status=STATUS_DECLINED,
            message=f"Payment not completed ({intent.status})",
            reason=intent.status,
            raw=raw,
            provider=self.provider_name,
        )

    async def refund(
        self,
        transaction_id: str,
        amount: Optional[Decimal] = None,
    ) -> RefundResult:
        """
        Refund a PaymentIntent through Stripe.

        Args:
            transaction_id: The PaymentIntent to refund
            amount: Partial refund amount (None = full refund)
        """
        if not self._enabled:
            return self._simulated_refund(transaction_id)

        refund_params: dict[str, Any] = {"payment_intent": transaction_id}
        if amount is not None:
            refund_params["amount"] = self._convert_to_cents(amount)

        try:
            refund = await self._call(stripe.Refund.create, **refund_params)
        except (asyncio.TimeoutError, stripe.APIConnectionError) as e:
            logger.error(f"Stripe: refund of {transaction_id} unavailable - {e}")
            raise GatewayUnavailableError("Payment service temporarily unavailable") from e
        except stripe.StripeError as e:
            logger.error(f"Stripe: refund of {transaction_id} failed - {e}")
            return RefundResult(success=False, message=str(e), raw=e.json_body)

        logger.info(f"Stripe: refund {refund.id} status={refund.status}")
        return RefundResult(
            success=True,
            refund_id=refund.id,
            message=f"Refund {refund.status}",
            raw={"id": refund.id, "status": refund.status},
        )

    async def get_status(self) -> dict[str, Any]:
        if not self._enabled:
            return self._disabled_status()

        try:
            account = await self._call(stripe.Account.retrieve)
        except (asyncio.TimeoutError, stripe.StripeError) as e:
            logger.warning(f"Stripe: health check failed - {e}")
            return {"status": "unhealthy", "message": str(e), "provider": self.provider_name}

        return {
            "status": "healthy",
            "message": "Stripe is operational",
            "provider": self.provider_name,
            "details": {"account_id": account.id},
        }
