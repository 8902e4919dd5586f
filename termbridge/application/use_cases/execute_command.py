"""
Execute Command Use Case

Architectural Intent:
- Handles exactly one inbound command message end to end
- Validation gate first: blacklisted commands never reach a shell
- Session lookup, chain evaluation and shell I/O are blocking and run in
  the default executor so the receive loop stays responsive
- Result gate last: a result that fails the sanity checks is replaced by
  an error result carrying the original command and session id
- Every failure becomes an error CommandResult; nothing escapes to the loop
"""

from __future__ import annotations
from typing import Optional
import asyncio
import logging
import time

from termbridge.application.dtos.command_dtos import CommandRequest
from termbridge.domain.entities.command_result import CommandResult
from termbridge.domain.errors import (
    CommandBlacklistedError,
    InvalidSessionError,
    ResultValidationError,
    SessionClosedError,
    SessionCreateError,
)
from termbridge.domain.services.chain_evaluator import ChainEvaluator, execute_single
from termbridge.domain.services.command_validator import CommandValidator
from termbridge.domain.value_objects.command_chain import CommandChain
from termbridge.domain.value_objects.session_id import SessionId
from termbridge.infrastructure.session_registry import SessionRegistry
from termbridge.infrastructure.telemetry.otel_exporter import OTELExporter

logger = logging.getLogger(__name__)


class ExecuteCommand:
    def __init__(
        self,
        registry: SessionRegistry,
        validator: CommandValidator,
        evaluator: ChainEvaluator,
        generate_session_ids: bool = False,
        telemetry: Optional[OTELExporter] = None,
    ):
        self.registry = registry
        self.validator = validator
        self.evaluator = evaluator
        self.generate_session_ids = generate_session_ids
        self.telemetry = telemetry

    async def execute(self, request: CommandRequest) -> CommandResult:
        started = time.monotonic()
        result = await self._handle(request)
        if self.telemetry:
            duration_ms = (time.monotonic() - started) * 1000
            self.telemetry.record_command(
                result.session_id, result.status.value, duration_ms
            )
            self.telemetry.record_active_sessions(len(self.registry))
        return result

    def _session_id(self, raw: str) -> SessionId:
        if not raw.strip() and self.generate_session_ids:
            return SessionId.generate()
        return SessionId(raw)

    async def _handle(self, request: CommandRequest) -> CommandResult:
        command = request.command

        try:
            chain = self.validator.validate_command(command)
        except CommandBlacklistedError as e:
            logger.warning(
                "Rejected command for session %r: %s",
                request.session_id,
                e,
                extra={"session_id": request.session_id, "command": command},
            )
            return CommandResult.failure(command, str(e), request.session_id)

        try:
            session_id = self._session_id(request.session_id)
        except InvalidSessionError as e:
            logger.warning("Rejected command %r: %s", command, e)
            return CommandResult.failure(command, str(e), request.session_id)

        loop = asyncio.get_event_loop()
        try:
            result = await loop.run_in_executor(None, self._run, session_id, chain)
        except SessionCreateError as e:
            logger.error("Cannot create session %s: %s", session_id, e)
            return CommandResult.failure(command, str(e), str(session_id))
        except SessionClosedError as e:
            logger.warning("Session %s ended during command: %s", session_id, e)
            await loop.run_in_executor(None, self.registry.close, session_id)
            return CommandResult.failure(
                command, str(e), str(session_id), result=e.output
            )

        try:
            self.validator.validate_result(result)
        except ResultValidationError as e:
            logger.warning("Discarding result for session %s: %s", result.session_id, e)
            return CommandResult.failure(command, str(e), result.session_id)

        return result

    def _run(self, session_id: SessionId, chain: CommandChain) -> CommandResult:
        shell = self.registry.resolve(session_id)

        if len(chain) == 1:
            outcome = execute_single(shell, chain.commands[0], self.evaluator.timeout)
        else:
            outcome = self.evaluator.evaluate(shell, chain)

        return CommandResult(
            status=outcome.status,
            command=outcome.command,
            result=outcome.output,
            error=outcome.error,
            pwd=shell.cwd,
            username=shell.username,
            session_id=str(session_id),
            prompt=shell.prompt_line,
        )
