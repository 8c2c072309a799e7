"""
Open Policy Agent Client

Queries an OPA decision endpoint:

    POST {opa_url}{policy_path}
    {"input": {"action": ..., "resource": {...}, "subject": {...}}}

A decision of ``true`` or ``{"allow": true, ...}`` permits the action.
When OPA cannot be reached (connection error, timeout, error status) the
client fails open or closed according to configuration.
"""

import logging
from typing import Any, Optional

import httpx

from order_service.services.policy.base import AuthorizationResult, BasePolicyClient

logger = logging.getLogger(__name__)


class OPAPolicyClient(BasePolicyClient):

    def __init__(
        self,
        base_url: str,
        policy_path: str = "/v1/data/orders/allow",
        timeout: float = 2.0,
        fail_open: bool = True,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._policy_path = policy_path
        self._fail_open = fail_open
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )
        logger.info(
            f"OPAPolicyClient initialized ({base_url}{policy_path}, "
            f"{'fail-open' if fail_open else 'fail-closed'})"
        )

    def is_enabled(self) -> bool:
        return True

    async def authorize(
        self,
        action: str,
        resource: dict[str, Any],
        subject: dict[str, Any],
    ) -> AuthorizationResult:
        logger.debug(f"OPA: authorizing {action} on {resource} for {subject}")

        try:
            response = await self._client.post(
                self._policy_path,
                json={"input": {"action": action, "resource": resource, "subject": subject}},
            )
            response.raise_for_status()
            body = response.json()
            if not isinstance(body, dict):
                raise ValueError(f"Unexpected policy response: {body!r}")
            decision = body.get("result")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"OPA: authorization of {action} failed - {e}")
            if self._fail_open:
                logger.warning(f"OPA: failing open for {action}")
                return AuthorizationResult(
                    allowed=True,
                    reason=f"Policy engine error (fail-open): {e}",
                    failed_open=True,
                )
            logger.warning(f"OPA: failing closed for {action}")
            return AuthorizationResult(
                allowed=False,
                reason=f"Policy engine error (fail-closed): {e}",
                failed_closed=True,
            )

        if isinstance(decision, dict):
            allowed = decision.get("allow") is True
            reason = decision.get("reason")
        else:
            allowed = decision is True
            reason = None

        if not allowed and not reason:
            reason = f"Denied by policy for action {action}"

        logger.debug(f"OPA: {action} allowed={allowed}")
        return AuthorizationResult(allowed=allowed, reason=reason, details=decision)

    async def get_status(self) -> dict[str, Any]:
        try:
            response = await self._client.get("/health", timeout=3.0)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"OPA: health check failed - {e}")
            return {
                "status": "unhealthy",
                "message": str(e),
                "fail_open": self._fail_open,
            }
        return {"status": "healthy", "message": "OPA is operational"}

    async def close(self) -> None:
        await self._client.aclose()
