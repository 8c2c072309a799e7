"""
Payment provider webhook handlers.
"""

from order_service.services.webhooks.stripe import (
    ORDER_ID_PATTERN,
    StripeWebhookHandler,
    WebhookResult,
    extract_order_id,
)

__all__ = [
    "ORDER_ID_PATTERN",
    "StripeWebhookHandler",
    "WebhookResult",
    "extract_order_id",
]
