"""
Composition Root

Architectural Intent:
- Dependency injection composition root for the termbridge application
- Single place where all adapters and use cases are wired together
- No adapter instantiation should occur outside this module (except CLI)

Design Decisions:
- Uses a simple dataclass container instead of a DI framework
- The session registry is built here once and passed by reference
- shell.mode picks the session factory; the two modes are never mixed
- The bus is injectable so tests and `exec` can run without Redis
"""

from dataclasses import dataclass
from typing import Optional

from termbridge.application.use_cases.execute_command import ExecuteCommand
from termbridge.application.use_cases.send_command import SendCommand
from termbridge.application.use_cases.serve_commands import CommandServer
from termbridge.domain.ports.message_bus_port import MessageBusPort
from termbridge.domain.ports.shell_port import ShellPort
from termbridge.domain.services.chain_evaluator import ChainEvaluator
from termbridge.domain.services.command_validator import CommandValidator
from termbridge.domain.value_objects.session_id import SessionId
from termbridge.infrastructure.adapters.persistent_shell_adapter import (
    PersistentShellSession,
)
from termbridge.infrastructure.adapters.redis_bus_adapter import RedisMessageBus
from termbridge.infrastructure.adapters.stateless_shell_adapter import (
    StatelessShellSession,
)
from termbridge.infrastructure.config import ShellConfig, TermbridgeConfig
from termbridge.infrastructure.session_registry import SessionFactory, SessionRegistry
from termbridge.infrastructure.telemetry.otel_exporter import OTELConfig, OTELExporter


@dataclass
class TermbridgeContainer:
    """DI container holding all wired dependencies."""

    config: TermbridgeConfig
    bus: MessageBusPort
    registry: SessionRegistry
    validator: CommandValidator
    evaluator: ChainEvaluator
    telemetry: OTELExporter
    execute_command: ExecuteCommand
    server: CommandServer
    send_command: SendCommand

    async def shutdown(self) -> None:
        """Close the bus and every live session, then flush telemetry."""
        await self.bus.close()
        self.registry.close_all()
        await self.telemetry.shutdown()


def build_session_factory(shell: ShellConfig) -> SessionFactory:
    if shell.mode == "stateless":
        def create_stateless(session_id: SessionId) -> ShellPort:
            return StatelessShellSession(
                session_id,
                default_home=shell.default_home,
                argv=(*shell.argv, "-c"),
                term=shell.term,
                timeout=shell.command_timeout_seconds,
            )

        return create_stateless

    def create_persistent(session_id: SessionId) -> ShellPort:
        return PersistentShellSession(
            session_id,
            argv=shell.argv,
            term=shell.term,
            timeout=shell.command_timeout_seconds,
            ready_timeout=shell.ready_timeout_seconds,
        )

    return create_persistent


def create_container(
    config: Optional[TermbridgeConfig] = None,
    bus: Optional[MessageBusPort] = None,
    session_factory: Optional[SessionFactory] = None,
) -> TermbridgeContainer:
    """Create and wire all dependencies."""
    config = config or TermbridgeConfig()
    bus = bus if bus is not None else RedisMessageBus(config.bus)

    telemetry = OTELExporter(
        OTELConfig(
            endpoint=config.telemetry.endpoint,
            insecure=config.telemetry.insecure,
        )
    )
    registry = SessionRegistry(session_factory or build_session_factory(config.shell))
    validator = CommandValidator(
        blacklist=config.validation.blacklist,
        max_output_chars=config.validation.max_output_chars,
    )
    evaluator = ChainEvaluator(timeout=config.shell.command_timeout_seconds)

    execute_command = ExecuteCommand(
        registry,
        validator,
        evaluator,
        generate_session_ids=config.shell.mode == "stateless",
        telemetry=telemetry,
    )
    server = CommandServer(
        bus,
        execute_command,
        command_channel=config.bus.command_channel,
        result_channel=config.bus.result_channel,
        workers=config.server.workers,
        telemetry=telemetry,
    )
    send_command = SendCommand(
        bus,
        command_channel=config.bus.command_channel,
        result_channel=config.bus.result_channel,
        timeout=config.client.timeout_seconds,
    )

    return TermbridgeContainer(
        config=config,
        bus=bus,
        registry=registry,
        validator=validator,
        evaluator=evaluator,
        telemetry=telemetry,
        execute_command=execute_command,
        server=server,
        send_command=send_command,
    )
