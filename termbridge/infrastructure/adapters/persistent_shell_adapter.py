"""
Persistent Shell Adapter

Architectural Intent:
- Infrastructure adapter implementing ShellPort with one long-lived bash
  process per session, driven over its stdin/stdout/stderr pipes
- Shell state (cwd, variables, user) persists between commands
- The process survives command timeouts and is only killed by close()

Framing:
- Each command is followed by a framing line that prints a unique token,
  the exit status and a `user@host:/path$ ` prompt on stdout, and the token
  alone on stderr; the command is complete once both tokens are read
- Output and error lines share one buffer with no stream marker
- Tokens from earlier timed-out commands are recognised and discarded along
  with the lines of their stream that preceded them
- The command runs in a brace group with stdin from /dev/null, so programs
  that read input see EOF instead of consuming the framing line

Startup:
- A background warm-up drains the login banner with one framing exchange
  and then sets a readiness event; execute() waits for it before writing
- Pipe I/O is guarded by its own lock, taken in __init__ and released by the
  warm-up thread, so waiting for readiness never contends with locked()
"""

from __future__ import annotations
from contextlib import AbstractContextManager
from typing import IO, Optional, Sequence
import getpass
import logging
import os
import queue
import re
import subprocess
import threading
import time
import uuid

from termbridge.domain.entities.command_result import ExecutionOutcome
from termbridge.domain.errors import (
    ExecutionTimeoutError,
    SessionClosedError,
    SessionCreateError,
)
from termbridge.domain.ports.shell_port import ShellPort
from termbridge.domain.value_objects.prompt import PromptInfo, is_prompt_line
from termbridge.domain.value_objects.session_id import SessionId

logger = logging.getLogger(__name__)

DEFAULT_ARGV = ("bash", "-l")
DEFAULT_TERM = "xterm-256color"
DEFAULT_TIMEOUT = 30.0
DEFAULT_READY_TIMEOUT = 5.0

STDOUT = "stdout"
STDERR = "stderr"

TOKEN_PREFIX = "__TERMBRIDGE_"
_TOKEN_RE = re.compile(re.escape(TOKEN_PREFIX) + r"[0-9a-f]{32}__")

# $? must be read first: it still holds the status of the user's command.
_FRAME_TEMPLATE = (
    "__tb_rc=$?; "
    "if [ \"$EUID\" -eq 0 ]; then __tb_sym='#'; else __tb_sym='$'; fi; "
    "printf '%s %d %s@%s:%s%s \\n' '{token}' \"$__tb_rc\" "
    "\"$(id -un 2>/dev/null)\" \"$HOSTNAME\" \"$PWD\" \"$__tb_sym\"; "
    "printf '%s\\n' '{token}' >&2"
)


def _new_token() -> str:
    return f"{TOKEN_PREFIX}{uuid.uuid4().hex}__"


def _join(lines: list[tuple[str, str]]) -> str:
    return "\n".join(text for _, text in lines)


def _parse_frame(rest: str) -> tuple[int, Optional[PromptInfo]]:
    """Parse `<status> <prompt>` following a stdout token."""
    status_text, _, prompt_text = rest.lstrip(" ").partition(" ")
    try:
        exit_code = int(status_text)
    except ValueError:
        exit_code = 0
    prompt = PromptInfo.parse(prompt_text) if is_prompt_line(prompt_text) else None
    return exit_code, prompt


class PersistentShellSession(ShellPort):
    def __init__(
        self,
        session_id: SessionId,
        argv: Sequence[str] = DEFAULT_ARGV,
        term: str = DEFAULT_TERM,
        timeout: float = DEFAULT_TIMEOUT,
        ready_timeout: float = DEFAULT_READY_TIMEOUT,
        cwd: Optional[str] = None,
        env: Optional[dict[str, str]] = None,
    ):
        self.session_id = session_id
        self.timeout = timeout
        self.ready_timeout = ready_timeout

        try:
            self._username = getpass.getuser()
        except (KeyError, OSError) as e:
            raise SessionCreateError(f"Cannot resolve user name: {e}") from e

        environ = dict(os.environ)
        if env:
            environ.update(env)
        environ["TERM"] = term

        try:
            self._process = subprocess.Popen(
                list(argv),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=environ,
                cwd=cwd,
            )
        except (OSError, ValueError) as e:
            raise SessionCreateError(f"Cannot start shell {argv[0]!r}: {e}") from e

        if None in (self._process.stdin, self._process.stdout, self._process.stderr):
            self._process.kill()
            raise SessionCreateError("Shell pipes could not be opened")

        self._start_dir = cwd or os.getcwd()
        self._prompt: Optional[PromptInfo] = None
        self._lock = threading.RLock()
        self._io_lock = threading.Lock()
        self._io_lock.acquire()
        self._state_lock = threading.Lock()
        self._alive = True
        self._closed = False
        self._ready = threading.Event()
        self._lines: queue.Queue[tuple[str, Optional[str]]] = queue.Queue()

        for name, stream in ((STDOUT, self._process.stdout), (STDERR, self._process.stderr)):
            threading.Thread(
                target=self._pump,
                args=(name, stream),
                name=f"termbridge-{session_id}-{name}",
                daemon=True,
            ).start()

        threading.Thread(
            target=self._warm_up,
            name=f"termbridge-{session_id}-warmup",
            daemon=True,
        ).start()

        logger.info(
            "Started shell for session %s (pid %d)",
            session_id,
            self._process.pid,
            extra={"session_id": session_id},
        )

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def cwd(self) -> str:
        if self._prompt and self._prompt.cwd:
            return self._prompt.cwd
        return self._start_dir

    @property
    def username(self) -> str:
        if self._prompt and self._prompt.user:
            return self._prompt.user
        return self._username

    @property
    def prompt_line(self) -> str:
        return self._prompt.line if self._prompt else ""

    @property
    def is_alive(self) -> bool:
        return self._alive and self._process.poll() is None

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    def wait_ready(self, timeout: Optional[float] = None) -> bool:
        return self._ready.wait(self.ready_timeout if timeout is None else timeout)

    def locked(self) -> AbstractContextManager:
        return self._lock

    def execute(self, command: str, timeout: Optional[float] = None) -> ExecutionOutcome:
        if not self.wait_ready():
            logger.warning(
                "Shell for session %s not ready after %.1fs, sending command anyway",
                self.session_id,
                self.ready_timeout,
            )
        with self._lock, self._io_lock:
            if not self.is_alive:
                raise SessionClosedError(f"Shell for session {self.session_id} has exited")
            return self._exchange(command, self.timeout if timeout is None else timeout)

    def close(self) -> None:
        with self._state_lock:
            if self._closed:
                return
            self._closed = True
            self._alive = False

        self._process.kill()
        try:
            self._process.stdin.close()
        except OSError as e:
            logger.debug("Closing stdin for session %s: %s", self.session_id, e)
        try:
            self._process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            logger.warning("Shell for session %s did not exit after kill", self.session_id)
        self._ready.set()
        logger.info(
            "Closed shell for session %s",
            self.session_id,
            extra={"session_id": self.session_id},
        )

    def _pump(self, name: str, stream: IO[bytes]) -> None:
        try:
            for raw in iter(stream.readline, b""):
                line = raw.decode("utf-8", errors="surrogateescape").rstrip("\r\n")
                self._lines.put((name, line))
        except (OSError, ValueError) as e:
            logger.debug("Reader %s for session %s stopped: %s", name, self.session_id, e)
        finally:
            self._lines.put((name, None))

    def _warm_up(self) -> None:
        try:
            outcome = self._exchange(None, self.ready_timeout)
            if outcome.output:
                logger.debug(
                    "Drained startup output for session %s: %r",
                    self.session_id,
                    outcome.output,
                )
        except (ExecutionTimeoutError, SessionClosedError) as e:
            logger.warning("Warm-up for session %s did not complete: %s", self.session_id, e)
        finally:
            self._io_lock.release()
            self._ready.set()

    def _discard_pending(self) -> None:
        discarded = 0
        while True:
            try:
                name, line = self._lines.get_nowait()
            except queue.Empty:
                break
            if line is None:
                self._alive = False
                raise SessionClosedError(f"Shell for session {self.session_id} has exited")
            discarded += 1
        if discarded:
            logger.debug(
                "Discarded %d stale lines in session %s", discarded, self.session_id
            )

    def _exchange(self, command: Optional[str], timeout: float) -> ExecutionOutcome:
        token = _new_token()
        self._discard_pending()

        payload = ""
        if command is not None and command.strip():
            payload = f"{{ {command}\n}} </dev/null\n"
        payload += _FRAME_TEMPLATE.format(token=token) + "\n"
        try:
            self._process.stdin.write(payload.encode("utf-8", errors="surrogateescape"))
            self._process.stdin.flush()
        except (OSError, ValueError) as e:
            self._alive = False
            raise SessionClosedError(
                f"Shell for session {self.session_id} is not accepting input: {e}"
            ) from e

        lines: list[tuple[str, str]] = []
        exit_code = 0
        stdout_done = stderr_done = False
        deadline = time.monotonic() + timeout

        while not (stdout_done and stderr_done):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.warning(
                    "Command timed out after %.1fs in session %s",
                    timeout,
                    self.session_id,
                    extra={"session_id": self.session_id, "command": command},
                )
                raise ExecutionTimeoutError(timeout, _join(lines))
            try:
                name, line = self._lines.get(timeout=remaining)
            except queue.Empty:
                continue

            if line is None:
                self._alive = False
                raise SessionClosedError(
                    f"Shell for session {self.session_id} exited", _join(lines)
                )

            index = line.find(token)
            if index >= 0:
                if index:
                    lines.append((name, line[:index]))
                if name == STDOUT:
                    exit_code, prompt = _parse_frame(line[index + len(token):])
                    if prompt:
                        self._prompt = prompt
                    stdout_done = True
                else:
                    stderr_done = True
                continue

            stale = _TOKEN_RE.search(line)
            if stale:
                # Earlier lines on this stream belong to the timed-out command.
                lines = [entry for entry in lines if entry[0] != name]
                continue

            lines.append((name, line))

        return ExecutionOutcome(
            output=_join(lines), exit_code=exit_code, prompt=self._prompt
        )
