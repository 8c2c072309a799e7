"""
Payment Gateway Factory

Provides a single entry point for obtaining the configured gateway.
The rest of the application only sees BasePaymentGateway.

Usage:
    from order_service.services.payment import get_payment_gateway

    gateway = get_payment_gateway()
    result = await gateway.process_payment(...)

Provider selection (PAYMENT_PROVIDER):
    - http   → HttpPaymentGateway (PAYMENT_BASE_URL + PAYMENT_API_KEY)
    - stripe → StripePaymentGateway (STRIPE_SECRET_KEY)

A provider without credentials simulates approvals. In production that
is refused unless ALLOW_SIMULATED_PAYMENTS=true.

Author: Your Name
Version: 1.0.0
"""

import logging
from functools import lru_cache

from order_service.core.config import PaymentProvider, Settings, get_settings
from order_service.services.payment.base import (
    BasePaymentGateway,
    PaymentResult,
    RefundResult,
)
from order_service.services.payment.http import HttpPaymentGateway
from order_service.services.payment.stripe import StripePaymentGateway

logger = logging.getLogger(__name__)


def build_payment_gateway(settings: Settings) -> BasePaymentGateway:
    """
    Construct the gateway selected by ``settings``.

    Raises:
        ValueError: Production mode with no usable credentials and
            simulated payments not explicitly allowed
    """
    if settings.payment_provider == PaymentProvider.STRIPE:
        gateway: BasePaymentGateway = StripePaymentGateway(
            secret_key=settings.stripe_secret_key,
            currency=settings.stripe_currency,
            timeout=settings.payment_timeout_seconds,
            default_payment_method=settings.stripe_payment_method,
        )
    else:
        gateway = HttpPaymentGateway(
            base_url=settings.payment_base_url,
            api_key=settings.payment_api_key,
            timeout=settings.payment_timeout_seconds,
        )

    if not gateway.is_enabled():
        if settings.is_production and not settings.allow_simulated_payments:
            raise ValueError(
                f"Payment provider '{gateway.provider_name}' has no credentials in production. "
                "Configure it or set ALLOW_SIMULATED_PAYMENTS=true explicitly."
            )
        logger.warning(
            f"Payment Gateway: {gateway.provider_name} disabled, approvals will be simulated"
        )
    else:
        logger.info(f"Payment Gateway: using {gateway.provider_name}")

    return gateway


@lru_cache()
def get_payment_gateway() -> BasePaymentGateway:
    """
    Get the configured payment gateway instance (cached).

    Returns:
        BasePaymentGateway: Configured gateway
    """
    return build_payment_gateway(get_settings())


def reset_payment_gateway() -> None:
    """
    Clear the cached gateway instance.

    The next call to get_payment_gateway() builds a new one.
    """
    get_payment_gateway.cache_clear()
    logger.debug("Payment gateway cache cleared")


__all__ = [
    "build_payment_gateway",
    "get_payment_gateway",
    "reset_payment_gateway",
    "BasePaymentGateway",
    "PaymentResult",
    "RefundResult",
    "HttpPaymentGateway",
    "StripePaymentGateway",
]
