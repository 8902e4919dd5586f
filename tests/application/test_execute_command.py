"""Tests for ExecuteCommand use case."""

import uuid

import pytest

from conftest import FakeShell
from termbridge.application.dtos.command_dtos import CommandRequest
from termbridge.application.use_cases.execute_command import ExecuteCommand
from termbridge.domain.entities.command_result import CommandStatus, ExecutionOutcome
from termbridge.domain.errors import SessionClosedError, SessionCreateError
from termbridge.domain.services.chain_evaluator import ChainEvaluator
from termbridge.domain.services.command_validator import CommandValidator
from termbridge.domain.value_objects.session_id import SessionId
from termbridge.infrastructure.session_registry import SessionRegistry
from termbridge.infrastructure.telemetry.otel_exporter import (
    ACTIVE_SESSIONS_METRIC,
    COMMAND_DURATION_METRIC,
    OTELConfig,
    OTELExporter,
)


class VerboseShell(FakeShell):
    def execute(self, command, timeout=None):
        self.executed.append(command)
        return ExecutionOutcome(output="x" * 10_001)


def _use_case(factory, **kwargs):
    registry = SessionRegistry(factory)
    use_case = ExecuteCommand(registry, CommandValidator(), ChainEvaluator(), **kwargs)
    return use_case, registry


class TestExecuteCommand:
    @pytest.mark.asyncio
    async def test_single_command(self, fake_shell_factory):
        use_case, _ = _use_case(fake_shell_factory)
        result = await use_case.execute(CommandRequest("whoami", "s1"))

        assert result.status == CommandStatus.SUCCESS
        assert result.command == "whoami"
        assert result.result == "out:whoami\n"
        assert result.pwd == "/home/tester"
        assert result.username == "tester"
        assert result.session_id == "s1"
        assert result.prompt == "tester@host:/home/tester$ "

    @pytest.mark.asyncio
    async def test_state_shared_between_messages(self, fake_shell_factory):
        use_case, _ = _use_case(fake_shell_factory)
        await use_case.execute(CommandRequest("cd /tmp", "s1"))
        result = await use_case.execute(CommandRequest("pwd", "s1"))

        assert result.pwd == "/tmp"
        assert len(fake_shell_factory.created) == 1

    @pytest.mark.asyncio
    async def test_chain(self, fake_shell_factory):
        use_case, _ = _use_case(fake_shell_factory)
        result = await use_case.execute(CommandRequest("fail && b || c", "s1"))

        assert fake_shell_factory.created[0].executed == ["fail", "c"]
        assert result.status == CommandStatus.ERROR
        assert result.command == "fail && b || c"
        assert result.result == "fail failed\nout:c\n"

    @pytest.mark.asyncio
    async def test_blacklisted_command_never_spawns(self, fake_shell_factory):
        use_case, registry = _use_case(fake_shell_factory)
        result = await use_case.execute(CommandRequest("rm -rf /", "s1"))

        assert result.status == CommandStatus.ERROR
        assert result.error == "Command not allowed: rm"
        assert result.session_id == "s1"
        assert fake_shell_factory.created == []
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_blank_session_rejected_in_persistent_mode(self, fake_shell_factory):
        use_case, registry = _use_case(fake_shell_factory)
        result = await use_case.execute(CommandRequest("ls", ""))

        assert result.status == CommandStatus.ERROR
        assert result.error == "Session ID cannot be empty"
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_blank_session_generated_in_stateless_mode(self, fake_shell_factory):
        use_case, registry = _use_case(fake_shell_factory, generate_session_ids=True)
        result = await use_case.execute(CommandRequest("ls", ""))

        assert result.status == CommandStatus.SUCCESS
        uuid.UUID(result.session_id)
        assert result.session_id in registry

    @pytest.mark.asyncio
    async def test_session_create_error(self):
        def failing_factory(session_id):
            raise SessionCreateError("Cannot start shell 'bash'")

        use_case, registry = _use_case(failing_factory)
        result = await use_case.execute(CommandRequest("ls", "s1"))

        assert result.status == CommandStatus.ERROR
        assert "Cannot start shell" in result.error
        assert result.session_id == "s1"
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_closed_session_is_removed(self):
        shells = []

        def factory(session_id):
            shell = FakeShell(
                str(session_id), errors={"exit": SessionClosedError("Shell exited", "bye")}
            )
            shells.append(shell)
            return shell

        use_case, registry = _use_case(factory)
        result = await use_case.execute(CommandRequest("exit", "s1"))

        assert result.status == CommandStatus.ERROR
        assert result.error == "Shell exited"
        assert result.result == "bye"
        assert shells[0].closed
        assert SessionId("s1") not in registry

        await use_case.execute(CommandRequest("ls", "s1"))
        assert len(shells) == 2

    @pytest.mark.asyncio
    async def test_oversized_output_replaced(self):
        use_case, _ = _use_case(lambda sid: VerboseShell(str(sid)))
        result = await use_case.execute(CommandRequest("cat big.log", "s1"))

        assert result.status == CommandStatus.ERROR
        assert "too long" in result.error
        assert result.result == ""
        assert result.command == "cat big.log"
        assert result.session_id == "s1"

    @pytest.mark.asyncio
    async def test_records_telemetry(self, fake_shell_factory):
        telemetry = OTELExporter(OTELConfig())
        use_case, _ = _use_case(fake_shell_factory, telemetry=telemetry)
        await use_case.execute(CommandRequest("ls", "s1"))

        names = [m["name"] for m in telemetry.buffered_metrics]
        assert names == [COMMAND_DURATION_METRIC, ACTIVE_SESSIONS_METRIC]
        assert telemetry.buffered_metrics[0]["attributes"]["status"] == "success"
        assert telemetry.buffered_metrics[1]["value"] == 1.0
