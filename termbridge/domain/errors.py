"""
Domain Errors

Architectural Intent:
- Single error taxonomy for the command execution engine
- Every error is local to one inbound message; none stops the receive loop
  except BusConnectionError at startup
- Command-level errors carry the output captured before the failure
"""

from __future__ import annotations


class TermbridgeError(Exception):
    """Base class for all termbridge errors."""


class PayloadParseError(TermbridgeError):
    """Inbound payload is not a valid command message. The message is dropped."""


class CommandBlacklistedError(TermbridgeError):
    """Command was rejected before execution."""

    def __init__(self, base_command: str) -> None:
        super().__init__(f"Command not allowed: {base_command}")
        self.base_command = base_command


class InvalidSessionError(TermbridgeError, ValueError):
    """Session identifier is missing or malformed."""


class SessionCreateError(TermbridgeError):
    """Shell process or one of its pipes could not be set up."""


class SessionClosedError(TermbridgeError):
    """The shell process backing a session has exited."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class CommandExecutionError(TermbridgeError):
    """A single command failed inside a live session."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class ExecutionTimeoutError(CommandExecutionError):
    """Command did not complete before the deadline. The session stays usable."""

    def __init__(self, timeout: float, output: str = "") -> None:
        super().__init__(f"Command timed out after {timeout:g}s", output)
        self.timeout = timeout


class DirectoryChangeError(CommandExecutionError):
    """A `cd` could not be applied. Session directory state is unchanged."""


class NoPreviousDirectoryError(DirectoryChangeError):
    def __init__(self) -> None:
        super().__init__("No previous directory")


class HomeUnavailableError(DirectoryChangeError):
    def __init__(self) -> None:
        super().__init__("Home directory is not available")


class DirectoryNotFoundError(DirectoryChangeError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Directory does not exist: {path}")
        self.path = path


class ResultValidationError(TermbridgeError):
    """Result failed the post-execution sanity gate."""


class BusConnectionError(TermbridgeError):
    """Message bus connection could not be established or was lost for good."""
