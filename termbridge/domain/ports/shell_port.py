"""
Shell Port

Architectural Intent:
- Port interface for one client's live shell session
- Abstracts command submission and working-directory/user state
- Implemented by PersistentShellSession and StatelessShellSession
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Optional
from termbridge.domain.entities.command_result import ExecutionOutcome
from termbridge.domain.value_objects.session_id import SessionId


class ShellPort(ABC):
    """
    Port interface for a session bound to exactly one shell environment.
    """

    session_id: SessionId

    @abstractmethod
    def execute(self, command: str, timeout: Optional[float] = None) -> ExecutionOutcome:
        """
        Runs one command and blocks until its output is complete.
        Raises CommandExecutionError subclasses for command-level failures.
        """
        pass

    @abstractmethod
    def locked(self) -> AbstractContextManager:
        """
        Holds the session lock so several commands run without interleaving.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """
        Terminates the session. Safe to call more than once.
        """
        pass

    @property
    @abstractmethod
    def cwd(self) -> str:
        pass

    @property
    @abstractmethod
    def username(self) -> str:
        pass

    @property
    def prompt_line(self) -> str:
        return ""

    @property
    def is_alive(self) -> bool:
        return True
