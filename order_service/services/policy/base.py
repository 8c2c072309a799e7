"""
Policy Client Abstract Base Class

Authorization gate consulted by the use cases before mutating an order.
The disabled variant allows everything, so use cases always call
``authorize`` without checking whether a policy engine is configured.

Author: Your Name
Version: 1.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class AuthorizationResult:
    """
    Outcome of an authorization query.

    Attributes:
        allowed: Whether the action may proceed
        reason: Explanation from the policy, or the failure mode
        details: Raw policy decision document
        failed_open: Allowed only because the engine was unreachable
        failed_closed: Denied only because the engine was unreachable
    """
    allowed: bool
    reason: Optional[str] = None
    details: Optional[Any] = None
    failed_open: bool = False
    failed_closed: bool = False


class BasePolicyClient(ABC):
    """Contract for authorization gates."""

    @abstractmethod
    def is_enabled(self) -> bool:
        pass

    @abstractmethod
    async def authorize(
        self,
        action: str,
        resource: dict[str, Any],
        subject: dict[str, Any],
    ) -> AuthorizationResult:
        """
        Ask whether ``subject`` may perform ``action`` on ``resource``.

        Never raises for an unreachable engine; the fail-open or
        fail-closed setting decides the result instead.
        """
        pass

    @abstractmethod
    async def get_status(self) -> dict[str, Any]:
        pass

    async def close(self) -> None:
        return None


class AllowAllPolicyClient(BasePolicyClient):
    """Used when no policy engine is configured."""

    def is_enabled(self) -> bool:
        return False

    async def authorize(
        self,
        action: str,
        resource: dict[str, Any],
        subject: dict[str, Any],
    ) -> AuthorizationResult:
        return AuthorizationResult(allowed=True, reason="Policy engine not configured")

    async def get_status(self) -> dict[str, Any]:
        return {"status": "disabled", "message": "Policy engine not configured"}
