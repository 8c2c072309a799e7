"""
Payment Gateway Abstract Base Class

Defines the interface contract for all payment gateway implementations.
HttpPaymentGateway and StripePaymentGateway both implement these methods,
so PayOrder behaves identically regardless of which provider is active.

Design Pattern: Strategy Pattern
    - The provider is picked by configuration in the factory
    - A gateway without credentials is "disabled" and simulates approvals

Result semantics:
    - A decline is a PaymentResult with success=False
    - Transport failures and timeouts raise GatewayUnavailableError

Author: Your Name
Version: 1.0.0
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

logger = logging.getLogger(__name__)

STATUS_APPROVED = "APPROVED"
STATUS_DECLINED = "DECLINED"

SIMULATED_MESSAGE = "Payment simulated (gateway disabled)"


@dataclass
class PaymentResult:
    """
    Standardized result from payment processing.

    Attributes:
        success: Whether the payment was approved
        transaction_id: Provider transaction identifier
        status: Normalized status (APPROVED / DECLINED)
        message: Human readable outcome
        reason: Machine-readable decline code, if any
        raw: Provider payload, kept for logs only
        simulated: True when no real provider was involved
        provider: Name of the gateway that produced the result
    """
    success: bool
    transaction_id: Optional[str] = None
    status: str = STATUS_DECLINED
    message: str = ""
    reason: Optional[str] = None
    raw: Optional[dict] = None
    simulated: bool = False
    provider: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization (without ``raw``)."""
        return {
            "success": self.success,
            "transaction_id": self.transaction_id,
            "status": self.status,
            "message": self.message,
            "reason": self.reason,
            "simulated": self.simulated,
            "provider": self.provider,
        }


@dataclass
class RefundResult:
    """
    Standardized result from refund processing.

    Attributes:
        success: Whether the refund was accepted
        refund_id: Provider refund identifier
        message: Human readable outcome
        raw: Provider payload, kept for logs only
        simulated: True when no real provider was involved
    """
    success: bool
    refund_id: Optional[str] = None
    message: str = ""
    raw: Optional[dict] = None
    simulated: bool = False


class BasePaymentGateway(ABC):
    """
    Abstract base class for payment gateways.

    Example:
        >>> gateway = get_payment_gateway()
        >>> result = await gateway.process_payment(
        ...     amount=Decimal("96.80"),
        ...     method="card",
        ...     order_id=order.id,
        ...     idempotency_key="order-...",
        ... )
        >>> if result.success:
        ...     print(f"Transaction: {result.transaction_id}")
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the payment provider.

        Returns:
            str: Provider name (e.g., "http", "stripe")
        """
        pass

    @abstractmethod
    def is_enabled(self) -> bool:
        """Whether real credentials are configured."""
        pass

    @abstractmethod
    async def process_payment(
        self,
        amount: Decimal,
        method: str,
        order_id: str,
        idempotency_key: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> PaymentResult:
        """
        Charge ``amount`` for an order.

        Args:
            amount: Amount in major currency units (e.g., 96.80)
            method: Payment method label supplied by the client
            order_id: Order being paid
            idempotency_key: Forwarded to the provider so retries collapse
            metadata: Extra key-value data to attach

        Returns:
            PaymentResult: Approved or declined

        Raises:
            GatewayUnavailableError: Transport failure or timeout
        """
        pass

    @abstractmethod
    async def refund(
        self,
        transaction_id: str,
        amount: Optional[Decimal] = None,
    ) -> RefundResult:
        """
        Refund a previous payment.

        Args:
            transaction_id: The payment to refund
            amount: Amount to refund (None = full refund)
        """
        pass

    @abstractmethod
    async def get_status(self) -> dict[str, Any]:
        """
        Health descriptor.

        Returns:
            dict: ``{"status": "healthy" | "unhealthy" | "disabled", "message": ...}``
        """
        pass

    async def close(self) -> None:
        """Release network resources held by the gateway."""
        return None

    # -------------------------------------------------------------------------
    # Disabled-mode helpers shared by all providers
    # -------------------------------------------------------------------------

    def _simulated_payment(self, amount: Decimal, order_id: str) -> PaymentResult:
        transaction_id = f"SIM-{self.provider_name}-{uuid.uuid4().hex[:20]}"
        logger.warning(
            f"{self.provider_name}: gateway disabled, simulating approval "
            f"of {amount} for order {order_id} ({transaction_id})"
        )
        return PaymentResult(
            success=True,
            transaction_id=transaction_id,
            status=STATUS_APPROVED,
            message=SIMULATED_MESSAGE,
            simulated=True,
            provider=self.provider_name,
        )

    def _simulated_refund(self, transaction_id: str) -> RefundResult:
        refund_id = f"SIM-REFUND-{uuid.uuid4().hex[:20]}"
        logger.warning(
            f"{self.provider_name}: gateway disabled, simulating refund of {transaction_id}"
        )
        return RefundResult(
            success=True,
            refund_id=refund_id,
            message="Refund simulated (gateway disabled)",
            simulated=True,
        )

    def _disabled_status(self) -> dict[str, Any]:
        return {
            "status": "disabled",
            "message": f"{self.provider_name} gateway not configured, payments are simulated",
            "provider": self.provider_name,
        }
