"""
Message Bus Abstract Base Class

Domain events leave the service through a BaseMessageBus. Publishing is
fire-and-forget: ``publish`` logs failures and never raises, so a broker
outage can not undo a committed order.

Author: Your Name
Version: 1.0.0
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

MessageHandler = Callable[[dict[str, Any]], Awaitable[None]]


class BaseMessageBus(ABC):

    @abstractmethod
    def is_enabled(self) -> bool:
        pass

    @abstractmethod
    async def publish(self, subject: str, data: dict[str, Any]) -> None:
        """Send ``data`` to ``subject``; failures are logged, not raised."""
        pass

    @abstractmethod
    async def subscribe(self, subject: str, handler: MessageHandler) -> None:
        """Deliver every message on ``subject`` to ``handler`` in the background."""
        pass

    @abstractmethod
    async def get_status(self) -> dict[str, Any]:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class DisabledMessageBus(BaseMessageBus):
    """No broker configured: every call is a no-op."""

    def is_enabled(self) -> bool:
        return False

    async def publish(self, subject: str, data: dict[str, Any]) -> None:
        return None

    async def subscribe(self, subject: str, handler: MessageHandler) -> None:
        return None

    async def get_status(self) -> dict[str, Any]:
        return {"status": "disabled", "message": "Message bus not configured"}

    async def close(self) -> None:
        return None
