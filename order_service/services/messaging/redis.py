"""
Redis Pub/Sub Message Bus

Publishes domain events as JSON on Redis channels.

Connection lifecycle:
    - Nothing connects until the first publish/subscribe/status call
    - Connecting is single-flight: concurrent callers wait on one lock and
      reuse whatever client the first caller established
    - Up to ``connect_attempts`` pings, ``retry_delay`` seconds apart
    - Callers that queued behind a failed cycle give up without retrying, and
      for ``reconnect_cooldown`` seconds after it every call fails fast
    - One shared client for all calls, closed exactly once by ``close()``
"""

import asyncio
import json
import logging
import time
from typing import Any, Callable, Optional

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from order_service.core.exceptions import GatewayUnavailableError
from order_service.services.messaging.base import BaseMessageBus, MessageHandler

logger = logging.getLogger(__name__)


class RedisMessageBus(BaseMessageBus):
    """
    Args:
        url: Redis connection URL
        connect_attempts: Pings tried before giving up
        retry_delay: Seconds between attempts
        reconnect_cooldown: Seconds after a failed cycle before connecting is tried again
        channel_prefix: Prepended to every subject ("orders" → "orders:order.paid")
        client_factory: Builds a client; defaults to ``redis.asyncio.from_url``
    """

    def __init__(
        self,
        url: str,
        connect_attempts: int = 5,
        retry_delay: float = 2.0,
        reconnect_cooldown: float = 30.0,
        channel_prefix: str = "",
        client_factory: Optional[Callable[[], aioredis.Redis]] = None,
    ):
        self._url = url
        self._connect_attempts = max(1, connect_attempts)
        self._retry_delay = retry_delay
        self._reconnect_cooldown = reconnect_cooldown
        self._channel_prefix = channel_prefix
        self._client_factory = client_factory or (
            lambda: aioredis.from_url(url, decode_responses=True, socket_connect_timeout=5.0)
        )
        self._client: Optional[aioredis.Redis] = None
        self._connect_lock = asyncio.Lock()
        self._failed_cycles = 0
        self._last_failure: Optional[float] = None
        self._last_error: Optional[Exception] = None
        self._listeners: list[tuple[asyncio.Task, Any]] = []
        self._closed = False

    def is_enabled(self) -> bool:
        return True

    def _channel(self, subject: str) -> str:
        return f"{self._channel_prefix}:{subject}" if self._channel_prefix else subject

    async def _ensure_connection(self) -> aioredis.Redis:
        if self._closed:
            raise GatewayUnavailableError("Message bus is closed")
        if self._client is not None:
            return self._client
        self._check_cooldown()

        failed_cycles = self._failed_cycles
        async with self._connect_lock:
            # Another caller may have connected while we waited
            if self._client is not None:
                return self._client
            if self._failed_cycles != failed_cycles:
                raise GatewayUnavailableError(f"Message bus unreachable: {self._last_error}")
            self._check_cooldown()

            last_error: Optional[Exception] = None
            for attempt in range(1, self._connect_attempts + 1):
                client = self._client_factory()
                try:
                    await client.ping()
                except (RedisConnectionError, RedisTimeoutError, OSError) as e:
                    last_error = e
                    logger.warning(
                        f"Message bus: connection attempt {attempt}/{self._connect_attempts} failed: {e}"
                    )
                    await client.aclose()
                    if attempt < self._connect_attempts:
                        await asyncio.sleep(self._retry_delay)
                    continue

                self._client = client
                self._last_failure = None
                logger.info(f"Message bus: connected after {attempt} attempt(s)")
                return client

            self._failed_cycles += 1
            self._last_failure = time.monotonic()
            self._last_error = last_error

        logger.error(
            f"Message bus: giving up after {self._connect_attempts} attempts: {last_error}"
        )
        raise GatewayUnavailableError(f"Message bus unreachable: {last_error}")

    def _check_cooldown(self) -> None:
        if self._last_failure is None:
            return
        if time.monotonic() - self._last_failure < self._reconnect_cooldown:
            raise GatewayUnavailableError(
                f"Message bus unreachable, next attempt after cool-down: {self._last_error}"
            )

    async def publish(self, subject: str, data: dict[str, Any]) -> None:
        try:
            client = await self._ensure_connection()
            await client.publish(self._channel(subject), json.dumps(data, default=str))
            logger.info(f"Message bus: published {subject}")
        except Exception as e:
            logger.error(f"Message bus: failed to publish {subject} - {e}")

    async def subscribe(self, subject: str, handler: MessageHandler) -> None:
        client = await self._ensure_connection()
        pubsub = client.pubsub()
        await pubsub.subscribe(self._channel(subject))
        task = asyncio.create_task(self._listen(subject, pubsub, handler))
        self._listeners.append((task, pubsub))
        logger.info(f"Message bus: subscribed to {subject}")

    async def _listen(self, subject: str, pubsub: Any, handler: MessageHandler) -> None:
        async for message in pubsub.listen():
            if message.get("type") != "message":
                continue
            try:
                await handler(json.loads(message["data"]))
            except Exception:
                logger.exception(f"Message bus: handler for {subject} failed")

    async def get_status(self) -> dict[str, Any]:
        try:
            client = await self._ensure_connection()
            await client.ping()
        except Exception as e:
            return {"status": "unhealthy", "message": str(e)}
        return {"status": "healthy", "message": "Redis connection is active"}

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        for task, _ in self._listeners:
            task.cancel()
        await asyncio.gather(*(task for task, _ in self._listeners), return_exceptions=True)
        for _, pubsub in self._listeners:
            await pubsub.aclose()
        self._listeners.clear()

        if self._client is not None:
            await self._client.aclose()
            self._client = None
        logger.info("Message bus: connection closed")
