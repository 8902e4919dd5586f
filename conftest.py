"""Global test configuration.

Provides a scripted in-memory shell for domain and application tests, and a
marker that skips tests needing a real bash when none is installed.
"""

import shutil
import threading
from contextlib import AbstractContextManager
from typing import Optional

import pytest

from termbridge.domain.entities.command_result import ExecutionOutcome
from termbridge.domain.ports.shell_port import ShellPort
from termbridge.domain.value_objects.session_id import SessionId

requires_bash = pytest.mark.skipif(
    shutil.which("bash") is None, reason="bash is not installed"
)


class FakeShell(ShellPort):
    """ShellPort double: `fail*` commands exit 1, `raise:*` raise, others echo."""

    def __init__(self, session_id: str = "test-session", errors: Optional[dict] = None):
        self.session_id = SessionId(session_id)
        self.executed: list[str] = []
        self.errors = errors or {}
        self.closed = False
        self._cwd = "/home/tester"
        self._lock = threading.RLock()

    def execute(self, command: str, timeout: Optional[float] = None) -> ExecutionOutcome:
        with self._lock:
            self.executed.append(command)
            if command in self.errors:
                raise self.errors[command]
            if command.startswith("cd "):
                self._cwd = command[3:].strip()
                return ExecutionOutcome(output="")
            if command.startswith("fail"):
                return ExecutionOutcome(output=f"{command} failed", exit_code=1)
            return ExecutionOutcome(output=f"out:{command}")

    def locked(self) -> AbstractContextManager:
        return self._lock

    def close(self) -> None:
        self.closed = True

    @property
    def cwd(self) -> str:
        return self._cwd

    @property
    def username(self) -> str:
        return "tester"

    @property
    def prompt_line(self) -> str:
        return f"tester@host:{self._cwd}$ "


@pytest.fixture
def fake_shell():
    return FakeShell()


@pytest.fixture
def fake_shell_factory():
    """Session factory that records every shell it creates."""
    created: list[FakeShell] = []

    def factory(session_id: SessionId) -> FakeShell:
        shell = FakeShell(str(session_id))
        created.append(shell)
        return shell

    factory.created = created
    return factory
