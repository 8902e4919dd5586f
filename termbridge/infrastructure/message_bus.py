"""
In-Memory Message Bus

Architectural Intent:
- In-process implementation of MessageBusPort for tests and local runs
- Each subscriber owns an asyncio queue; publish fans out to every queue
  registered on the channel at that moment
- close() ends every open subscription so receive loops drain and return
"""

import asyncio
import logging
from typing import AsyncIterator, Optional

from termbridge.domain.errors import BusConnectionError

logger = logging.getLogger(__name__)


class InMemoryMessageBus:
    def __init__(self) -> None:
        self._subscribers: dict[str, list[asyncio.Queue[Optional[str]]]] = {}
        self._connected = False
        self._closed = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        if self._closed:
            raise BusConnectionError("Message bus has been closed")
        self._connected = True

    async def subscribe(self, channel: str) -> AsyncIterator[str]:
        # The queue is registered before returning so no later publish is lost.
        queue: asyncio.Queue[Optional[str]] = asyncio.Queue()
        self._subscribers.setdefault(channel, []).append(queue)
        logger.debug("Subscribed to %s", channel)
        return self._iterate(channel, queue)

    async def _iterate(
        self, channel: str, queue: asyncio.Queue[Optional[str]]
    ) -> AsyncIterator[str]:
        try:
            while True:
                message = await queue.get()
                if message is None:
                    return
                yield message
        finally:
            queues = self._subscribers.get(channel, [])
            if queue in queues:
                queues.remove(queue)

    async def publish(self, channel: str, message: str) -> bool:
        if self._closed:
            logger.warning("Publish to %s after close dropped", channel)
            return False
        for queue in list(self._subscribers.get(channel, [])):
            queue.put_nowait(message)
        return True

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscribers.get(channel, []))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._connected = False
        for queues in self._subscribers.values():
            for queue in queues:
                queue.put_nowait(None)
