"""
Stateless Shell Adapter

Architectural Intent:
- Infrastructure adapter implementing ShellPort without a long-lived process
- Each command runs in a fresh `bash -l -c`, prefixed with a `cd` into the
  session's tracked directory
- `cd` itself never reaches bash: the session keeps current and previous
  directory bookkeeping explicitly

Directory Rules:
- `cd`          -> default home, previous := current
- `cd -`        -> swap current and previous
- `cd ~...`     -> leading `~` replaced by $HOME
- `cd <path>`   -> relative to current, normalized, must be a directory
- Any failure leaves both directories unchanged
"""

from __future__ import annotations
from contextlib import AbstractContextManager
from typing import Optional, Sequence
import getpass
import logging
import os
import shlex
import subprocess
import threading

from termbridge.domain.entities.command_result import ExecutionOutcome
from termbridge.domain.errors import (
    CommandExecutionError,
    DirectoryNotFoundError,
    ExecutionTimeoutError,
    HomeUnavailableError,
    NoPreviousDirectoryError,
    SessionCreateError,
)
from termbridge.domain.ports.shell_port import ShellPort
from termbridge.domain.value_objects.session_id import SessionId

logger = logging.getLogger(__name__)

DEFAULT_HOME = "/home/nonroot"
DEFAULT_ARGV = ("bash", "-l", "-c")
DEFAULT_TERM = "xterm-256color"
DEFAULT_TIMEOUT = 30.0


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="surrogateescape")


class StatelessShellSession(ShellPort):
    def __init__(
        self,
        session_id: SessionId,
        default_home: str = DEFAULT_HOME,
        argv: Sequence[str] = DEFAULT_ARGV,
        term: str = DEFAULT_TERM,
        timeout: float = DEFAULT_TIMEOUT,
        env: Optional[dict[str, str]] = None,
    ):
        self.session_id = session_id
        self.default_home = default_home
        self.argv = tuple(argv)
        self.timeout = timeout

        try:
            self._username = getpass.getuser()
        except (KeyError, OSError) as e:
            raise SessionCreateError(f"Cannot resolve user name: {e}") from e

        self._env = dict(os.environ)
        if env:
            self._env.update(env)
        self._env["TERM"] = term

        self._cwd = default_home
        self._previous: Optional[str] = None
        self._lock = threading.RLock()

    @property
    def cwd(self) -> str:
        return self._cwd

    @property
    def previous_dir(self) -> Optional[str]:
        return self._previous

    @property
    def username(self) -> str:
        return self._username

    def locked(self) -> AbstractContextManager:
        return self._lock

    def execute(self, command: str, timeout: Optional[float] = None) -> ExecutionOutcome:
        with self._lock:
            parts = command.split()
            if parts and parts[0] == "cd":
                self.change_directory(parts[1] if len(parts) > 1 else None)
                return ExecutionOutcome(output="")
            return self._run(command, self.timeout if timeout is None else timeout)

    def change_directory(self, target: Optional[str]) -> str:
        """Apply a `cd` to the tracked state and return the new directory."""
        with self._lock:
            if target is None:
                self._previous, self._cwd = self._cwd, self.default_home
                return self._cwd

            if target == "-":
                if not self._previous:
                    raise NoPreviousDirectoryError()
                self._previous, self._cwd = self._cwd, self._previous
                return self._cwd

            if target.startswith("~"):
                home = os.environ.get("HOME", "")
                if not home:
                    raise HomeUnavailableError()
                target = target.replace("~", home, 1)

            if not os.path.isabs(target):
                target = os.path.join(self._cwd, target)
            new_dir = os.path.normpath(target)

            if not os.path.isdir(new_dir):
                raise DirectoryNotFoundError(new_dir)

            self._previous, self._cwd = self._cwd, new_dir
            logger.debug("Session %s changed directory to %s", self.session_id, new_dir)
            return self._cwd

    def close(self) -> None:
        # No process to terminate; kept for ShellPort parity.
        logger.debug("Closed stateless session %s", self.session_id)

    def _run(self, command: str, timeout: float) -> ExecutionOutcome:
        script = f"cd {shlex.quote(self._cwd)} && {command}"
        try:
            completed = subprocess.run(
                [*self.argv, script],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                env=self._env,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            logger.warning(
                "Command timed out after %.1fs in session %s", timeout, self.session_id
            )
            raise ExecutionTimeoutError(timeout, _decode(e.output).strip()) from e
        except OSError as e:
            raise CommandExecutionError(f"Cannot run command: {e}") from e

        output = _decode(completed.stdout).strip()
        if completed.returncode != 0:
            logger.info(
                "Command exited with status %d in session %s: %s",
                completed.returncode,
                self.session_id,
                output,
            )
        return ExecutionOutcome(output=output, exit_code=completed.returncode)
