"""
Send Command Use Case

Architectural Intent:
- Client side of the command bus: publish one command, wait for its result
- Subscribes to the result channel before publishing so the reply cannot
  be missed
- Replies are matched on session_id; without an id the first result wins
- Timeouts and unreadable replies become error results, never exceptions
"""

from __future__ import annotations
from typing import AsyncIterator
import asyncio
import json
import logging

from termbridge.application.dtos.command_dtos import CommandRequest
from termbridge.domain.entities.command_result import CommandResult
from termbridge.domain.ports.message_bus_port import MessageBusPort

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class SendCommand:
    def __init__(
        self,
        bus: MessageBusPort,
        command_channel: str = "terminal:commands",
        result_channel: str = "terminal:results",
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.bus = bus
        self.command_channel = command_channel
        self.result_channel = result_channel
        self.timeout = timeout

    async def execute(self, command: str, session_id: str = "") -> CommandResult:
        request = CommandRequest(command=command, session_id=session_id)
        replies = await self.bus.subscribe(self.result_channel)
        try:
            if not await self.bus.publish(self.command_channel, request.to_json()):
                return CommandResult.failure(
                    command, "Failed to publish command", session_id
                )
            try:
                async with asyncio.timeout(self.timeout):
                    return await self._await_reply(replies, request)
            except TimeoutError:
                logger.warning(
                    "No result for session %r within %gs", session_id, self.timeout
                )
                return CommandResult.failure(
                    command,
                    f"Command timed out after {self.timeout:g}s",
                    session_id,
                )
        finally:
            await replies.aclose()

    async def _await_reply(
        self, replies: AsyncIterator[str], request: CommandRequest
    ) -> CommandResult:
        async for payload in replies:
            try:
                data = json.loads(payload)
            except json.JSONDecodeError as e:
                logger.warning("Unreadable result payload: %s", e)
                return CommandResult.failure(
                    request.command, f"Invalid result payload: {e}", request.session_id
                )
            if not isinstance(data, dict):
                return CommandResult.failure(
                    request.command, "Invalid result payload", request.session_id
                )
            if request.session_id and data.get("session_id") != request.session_id:
                continue
            return CommandResult.from_dict(data)
        return CommandResult.failure(
            request.command, "Result channel closed", request.session_id
        )
