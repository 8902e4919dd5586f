"""
Serve Commands Use Case

Architectural Intent:
- The receive loop: consumes raw payloads from the command channel and
  publishes one result per accepted message on the result channel
- Each message becomes its own task; a semaphore bounds how many execute
  at once, so a slow command never blocks unrelated sessions
- Messages for one session are handled strictly in arrival order; messages
  without a session id share no ordering and run independently
- Malformed payloads are logged and dropped; no other error stops the loop
"""

from __future__ import annotations
from typing import Optional
import asyncio
import logging

from termbridge.application.dtos.command_dtos import CommandRequest
from termbridge.application.use_cases.execute_command import ExecuteCommand
from termbridge.domain.entities.command_result import CommandResult
from termbridge.domain.errors import PayloadParseError
from termbridge.domain.ports.message_bus_port import MessageBusPort
from termbridge.infrastructure.telemetry.otel_exporter import OTELExporter

logger = logging.getLogger(__name__)


class CommandServer:
    def __init__(
        self,
        bus: MessageBusPort,
        execute_command: ExecuteCommand,
        command_channel: str = "terminal:commands",
        result_channel: str = "terminal:results",
        workers: int = 8,
        telemetry: Optional[OTELExporter] = None,
    ):
        self.bus = bus
        self.execute_command = execute_command
        self.command_channel = command_channel
        self.result_channel = result_channel
        self.workers = max(1, workers)
        self.telemetry = telemetry
        self._semaphore = asyncio.Semaphore(self.workers)
        self._session_locks: dict[str, asyncio.Lock] = {}
        self._session_waiters: dict[str, int] = {}
        self._tasks: set[asyncio.Task] = set()
        self.processed = 0
        self.dropped = 0

    async def serve(self) -> None:
        """Run until the subscription ends, then wait for in-flight messages."""
        messages = await self.bus.subscribe(self.command_channel)
        logger.info("Listening for commands on %s", self.command_channel)
        try:
            async for payload in messages:
                self.dispatch(payload)
        finally:
            await self.drain()
        logger.info(
            "Receive loop stopped (%d processed, %d dropped)", self.processed, self.dropped
        )

    def dispatch(self, payload: str) -> Optional[asyncio.Task]:
        """Parse a payload and schedule it; returns None when it was dropped."""
        logger.debug("Received payload: %s", payload)
        try:
            request = CommandRequest.from_json(payload)
        except PayloadParseError as e:
            self.dropped += 1
            logger.warning("Dropping malformed payload: %s", e)
            return None

        # Reserve the session lock now so tasks queue in arrival order.
        lock = None
        key = request.session_id
        if key.strip():
            lock = self._session_locks.setdefault(key, asyncio.Lock())
            self._session_waiters[key] = self._session_waiters.get(key, 0) + 1

        task = asyncio.create_task(self._process(request, lock))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _process(
        self, request: CommandRequest, lock: Optional[asyncio.Lock]
    ) -> None:
        try:
            if lock is None:
                async with self._semaphore:
                    result = await self._execute(request)
            else:
                async with lock:
                    async with self._semaphore:
                        result = await self._execute(request)
            published = await self.bus.publish(self.result_channel, result.to_json())
            if not published:
                logger.error(
                    "Result for session %r could not be published", result.session_id
                )
            self.processed += 1
        finally:
            if lock is not None:
                self._release(request.session_id)

    def _release(self, key: str) -> None:
        self._session_waiters[key] -= 1
        if not self._session_waiters[key]:
            del self._session_waiters[key]
            del self._session_locks[key]

    async def _execute(self, request: CommandRequest) -> CommandResult:
        span = None
        if self.telemetry:
            span = self.telemetry.start_span(
                "termbridge.command", {"session_id": request.session_id}
            )
        try:
            result = await self.execute_command.execute(request)
        except Exception as e:
            logger.exception("Unexpected failure handling %r", request.command)
            result = CommandResult.failure(
                request.command, f"Internal error: {e}", request.session_id
            )
        if self.telemetry:
            self.telemetry.end_span(span, result.status.value)
        return result
