"""
Error Taxonomy

Every business failure raised by the use cases derives from
OrderServiceError. The HTTP layer maps ``status_code`` and ``to_dict()``
straight onto the response, so each subclass decides what the client
is allowed to see.

Author: Your Name
Version: 1.0.0
"""

from typing import Any, Optional


class OrderServiceError(Exception):
    """Base class for errors surfaced to API clients."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Client-safe error body."""
        return {"kind": self.kind, "message": self.message}


class NotFoundError(OrderServiceError):
    """Order, customer, restaurant or menu item does not exist."""

    kind = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class InvalidStateError(OrderServiceError):
    """A business rule forbids the operation in the current state."""

    kind = "invalid_state"
    status_code = 400


class InvalidTransitionError(OrderServiceError):
    """The requested status is not reachable from the current one."""

    kind = "invalid_transition"
    status_code = 400

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot transition order from {current} to {requested}")
        self.current = current
        self.requested = requested

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body.update(current=self.current, requested=self.requested)
        return body


class ForbiddenError(OrderServiceError):
    """The policy engine denied the action."""

    kind = "forbidden"
    status_code = 403

    def __init__(self, reason: str):
        super().__init__(f"Action not allowed: {reason}")
        self.reason = reason

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["reason"] = self.reason
        return body


class PaymentDeclinedError(OrderServiceError):
    """
    The gateway explicitly declined the charge.

    ``raw`` keeps the provider payload for logging; it is never part
    of the client response.
    """

    kind = "payment_declined"
    status_code = 402

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        raw: Optional[dict] = None,
    ):
        super().__init__(message)
        self.reason = reason
        self.raw = raw

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        if self.reason:
            body["reason"] = self.reason
        return body


class GatewayUnavailableError(OrderServiceError):
    """Transport failure or timeout talking to a collaborator."""

    kind = "gateway_unavailable"
    status_code = 503


class ConcurrentUpdateError(OrderServiceError):
    """The order changed between read and conditional write."""

    kind = "conflict"
    status_code = 409

    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} was modified concurrently, retry the request")
        self.order_id = order_id
