"""
Redis Message Bus Adapter

Architectural Intent:
- Infrastructure adapter implementing MessageBusPort over Redis pub/sub
- Uses the redis-py asyncio client with a retry policy for transient errors
- Startup connection is verified with a bounded ping loop; running out of
  attempts is fatal for the server
- A dropped subscription is re-established transparently, bounded by the
  same retry count
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Optional

from redis.asyncio import Redis
from redis.asyncio.client import PubSub
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    RedisError,
    TimeoutError as RedisTimeoutError,
)

from termbridge.domain.errors import BusConnectionError
from termbridge.infrastructure.config import BusConfig

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (RedisConnectionError, RedisTimeoutError)
SUBSCRIBE_CONFIRM_TIMEOUT = 5.0


def create_client(config: BusConfig) -> Redis:
    return Redis(
        host=config.host,
        port=config.port,
        password=config.password or None,
        db=config.db,
        decode_responses=True,
        retry=Retry(ExponentialBackoff(cap=config.retry_delay_seconds), config.connect_retries),
        retry_on_error=list(TRANSIENT_ERRORS),
        health_check_interval=30,
    )


class RedisMessageBus:
    def __init__(self, config: Optional[BusConfig] = None, client: Optional[Redis] = None):
        self.config = config or BusConfig()
        self._client = client if client is not None else create_client(self.config)
        self._pubsubs: set[PubSub] = set()
        self._closed = False

    async def connect(self) -> None:
        """Ping the server until it answers or the attempts run out."""
        attempts = max(1, self.config.connect_retries)
        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            try:
                await self._client.ping()
                logger.info(
                    "Connected to Redis at %s:%d", self.config.host, self.config.port
                )
                return
            except TRANSIENT_ERRORS as e:
                last_error = e
                logger.warning(
                    "Redis connection attempt %d/%d failed: %s", attempt, attempts, e
                )
                if attempt < attempts:
                    await asyncio.sleep(self.config.retry_delay_seconds)
        raise BusConnectionError(
            f"Could not connect to Redis at {self.config.host}:{self.config.port} "
            f"after {attempts} attempts: {last_error}"
        ) from last_error

    async def subscribe(self, channel: str) -> AsyncIterator[str]:
        try:
            pubsub = await self._open_subscription(channel)
        except TRANSIENT_ERRORS as e:
            raise BusConnectionError(f"Cannot subscribe to {channel}: {e}") from e
        return self._listen(channel, pubsub)

    async def _open_subscription(self, channel: str) -> PubSub:
        pubsub = self._client.pubsub()
        self._pubsubs.add(pubsub)
        try:
            await pubsub.subscribe(channel)
            # Wait for the server's confirmation so a publish issued after
            # this call returns is delivered to us.
            async with asyncio.timeout(SUBSCRIBE_CONFIRM_TIMEOUT):
                while True:
                    message = await pubsub.get_message(timeout=1.0)
                    if message and message.get("type") == "subscribe":
                        break
        except TimeoutError as e:
            await self._close_pubsub(pubsub)
            raise RedisTimeoutError(f"No subscribe confirmation for {channel}") from e
        except TRANSIENT_ERRORS:
            await self._close_pubsub(pubsub)
            raise
        logger.debug("Subscribed to %s", channel)
        return pubsub

    async def _listen(self, channel: str, pubsub: Optional[PubSub]) -> AsyncIterator[str]:
        failures = 0
        try:
            while not self._closed:
                try:
                    if pubsub is None:
                        pubsub = await self._open_subscription(channel)
                        logger.info("Resubscribed to %s", channel)
                    async for message in pubsub.listen():
                        if message.get("type") != "message":
                            continue
                        failures = 0
                        yield _as_text(message.get("data"))
                    return
                except TRANSIENT_ERRORS as e:
                    if self._closed:
                        return
                    failures += 1
                    if pubsub is not None:
                        await self._close_pubsub(pubsub)
                        pubsub = None
                    if failures > self.config.connect_retries:
                        raise BusConnectionError(
                            f"Lost subscription to {channel}: {e}"
                        ) from e
                    logger.warning(
                        "Subscription to %s dropped (%s), retry %d/%d",
                        channel,
                        e,
                        failures,
                        self.config.connect_retries,
                    )
                    await asyncio.sleep(self.config.retry_delay_seconds)
        finally:
            if pubsub is not None:
                await self._close_pubsub(pubsub)

    async def publish(self, channel: str, message: str) -> bool:
        try:
            receivers = await self._client.publish(channel, message)
        except RedisError as e:
            logger.error("Failed to publish to %s: %s", channel, e)
            return False
        logger.debug("Published to %s (%s receivers)", channel, receivers)
        return True

    async def _close_pubsub(self, pubsub: PubSub) -> None:
        self._pubsubs.discard(pubsub)
        try:
            await pubsub.aclose()
        except RedisError as e:
            logger.debug("Error closing subscription: %s", e)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for pubsub in list(self._pubsubs):
            await self._close_pubsub(pubsub)
        await self._client.aclose()
        logger.info("Redis connection closed")


def _as_text(data: Any) -> str:
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return str(data)
