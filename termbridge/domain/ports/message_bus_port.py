"""
Message Bus Port

Architectural Intent:
- Abstract interface for the pub/sub transport carrying commands and results
- subscribe() returns only once the subscription is active, so a publish
  issued afterwards cannot be missed
- Implementation can be Redis or in-memory
"""

from typing import AsyncIterator, Protocol, runtime_checkable


@runtime_checkable
class MessageBusPort(Protocol):
    async def connect(self) -> None: ...

    async def subscribe(self, channel: str) -> AsyncIterator[str]: ...

    async def publish(self, channel: str, message: str) -> bool: ...

    async def close(self) -> None: ...
