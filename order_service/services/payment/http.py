"""
HTTP Payment Gateway

Talks to an external payment service over JSON/HTTP:

    POST /payments   {amount, method, orderId, metadata}   Idempotency-Key header
    POST /refunds    {transactionId, amount}
    GET  /health

Response handling:
    - ``status`` equal to "approved" (any case)  -> approved
    - any other 2xx body                         -> declined
    - 4xx/5xx carrying a JSON object body        -> declined with that body
    - transport error, timeout, bodiless error   -> GatewayUnavailableError

Without a base URL and API key the gateway is disabled and simulates
approvals.

Author: Your Name
Version: 1.0.0
"""

import logging
from decimal import Decimal
from typing import Any, Optional

import httpx

from order_service.core.exceptions import GatewayUnavailableError
from order_service.services.payment.base import (
    STATUS_APPROVED,
    STATUS_DECLINED,
    BasePaymentGateway,
    PaymentResult,
    RefundResult,
)

logger = logging.getLogger(__name__)


def _json_body(response: httpx.Response) -> Optional[dict]:
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


class HttpPaymentGateway(BasePaymentGateway):
    """
    Generic HTTP payment provider.

    Args:
        base_url: Payment service root URL
        api_key: Bearer token
        timeout: Seconds allowed for each call
        client: Pre-built AsyncClient (tests inject one with MockTransport)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._enabled = bool(base_url and api_key)
        self._timeout = timeout
        self._client = client
        if self._enabled and self._client is None:
            self._client = httpx.AsyncClient(
                base_url=base_url,
                timeout=timeout,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {api_key}",
                },
            )

        logger.info(
            f"HttpPaymentGateway initialized "
            f"({'enabled' if self._enabled else 'disabled'}, timeout={timeout}s)"
        )

    @property
    def provider_name(self) -> str:
        return "http"

    def is_enabled(self) -> bool:
        return self._enabled

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

        logger.info(f"HTTP gateway: charging {amount} for order {order_id} via {method}")

        try:
            response = await self._client.post(
                "/payments",
                json={
                    "amount": str(amount),
                    "method": method,
                    "orderId": order_id,
                    "metadata": metadata or {},
                },
                headers={"Idempotency-Key": idempotency_key},
            )
        except httpx.TimeoutException as e:
            logger.error(f"HTTP gateway: timeout for order {order_id} - {e}")
            raise GatewayUnavailableError("Payment gateway timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"HTTP gateway: transport error for order {order_id} - {e}")
            raise GatewayUnavailableError(f"Payment gateway error: {e}") from e

        body = _json_body(response)

        if response.is_error:
            if body is None:
                logger.error(
                    f"HTTP gateway: status {response.status_code} without body "
                    f"for order {order_id}"
                )
                raise GatewayUnavailableError(
                    f"Payment gateway returned HTTP {response.status_code}"
                )
            logger.warning(
                f"HTTP gateway: order {order_id} declined with HTTP {response.status_code} - {body}"
            )
            return PaymentResult(
                success=False,
                transaction_id=body.get("transactionId"),
                status=STATUS_DECLINED,
                message=body.get("message") or "Payment gateway error",
                reason=body.get("reason"),
                raw=body,
                provider=self.provider_name,
            )

        body = body or {}
        if str(body.get("status", "")).lower() == "approved":
            if not body.get("transactionId"):
                logger.error(
                    f"HTTP gateway: approval without transaction id for order {order_id} - {body}"
                )
                raise GatewayUnavailableError(
                    "Payment gateway approved without a transaction id"
                )
            logger.info(
                f"HTTP gateway: order {order_id} approved - {body.get('transactionId')}"
            )
            return PaymentResult(
                success=True,
                transaction_id=body.get("transactionId"),
                status=STATUS_APPROVED,
                message=body.get("message") or "Payment approved",
                raw=body,
                provider=self.provider_name,
            )

        logger.warning(f"HTTP gateway: order {order_id} declined - {body.get('reason')}")
        return PaymentResult(
            success=False,
            transaction_id=body.get("transactionId"),
            status=STATUS_DECLINED,
            message=body.get("message") or "Payment declined",
            reason=body.get("reason"),
            raw=body,
            provider=self.provider_name,
        )

    async def refund(
        self,
        transaction_id: str,
        amount: Optional[Decimal] = None,
    ) -> RefundResult:
        if not self._enabled:
            return self._simulated_refund(transaction_id)

        logger.info(f"HTTP gateway: refunding {transaction_id} ({amount or 'full'})")

        payload: dict[str, Any] = {"transactionId": transaction_id}
        if amount is not None:
            payload["amount"] = str(amount)

        try:
            response = await self._client.post("/refunds", json=payload)
        except httpx.HTTPError as e:
            logger.error(f"HTTP gateway: refund transport error - {e}")
            raise GatewayUnavailableError(f"Payment gateway error: {e}") from e

        body = _json_body(response) or {}
        if response.is_error:
            logger.warning(f"HTTP gateway: refund rejected - {body}")
            return RefundResult(
                success=False,
                message=body.get("message") or f"Refund failed with HTTP {response.status_code}",
                raw=body,
            )

        return RefundResult(
            success=True,
            refund_id=body.get("refundId"),
            message=body.get("message") or "Refund processed",
            raw=body,
        )

    async def get_status(self) -> dict[str, Any]:
        if not self._enabled:
            return self._disabled_status()

        try:
            response = await self._client.get("/health", timeout=5.0)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"HTTP gateway: health check failed - {e}")
            return {"status": "unhealthy", "message": str(e), "provider": self.provider_name}

        return {
            "status": "healthy",
            "message": "Payment gateway is operational",
            "provider": self.provider_name,
            "details": _json_body(response),
        }

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
