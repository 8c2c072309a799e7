"""
Message Bus Factory

MESSAGE_BUS_URL set   → RedisMessageBus (lazy connection)
MESSAGE_BUS_URL empty → DisabledMessageBus
"""

import logging
from functools import lru_cache

from order_service.core.config import Settings, get_settings
from order_service.services.messaging.base import (
    BaseMessageBus,
    DisabledMessageBus,
    MessageHandler,
)
from order_service.services.messaging.redis import RedisMessageBus

logger = logging.getLogger(__name__)


def build_message_bus(settings: Settings) -> BaseMessageBus:
    if not settings.message_bus_url:
        logger.info("Message Bus: not configured, domain events are dropped")
        return DisabledMessageBus()
    return RedisMessageBus(
        url=settings.message_bus_url,
        connect_attempts=settings.message_bus_connect_attempts,
        retry_delay=settings.message_bus_retry_delay,
        reconnect_cooldown=settings.message_bus_reconnect_cooldown,
        channel_prefix=settings.message_bus_channel_prefix,
    )


@lru_cache()
def get_message_bus() -> BaseMessageBus:
    """Get the configured message bus (cached)."""
    return build_message_bus(get_settings())


def reset_message_bus() -> None:
    get_message_bus.cache_clear()


__all__ = [
    "build_message_bus",
    "get_message_bus",
    "reset_message_bus",
    "BaseMessageBus",
    "DisabledMessageBus",
    "MessageHandler",
    "RedisMessageBus",
]
