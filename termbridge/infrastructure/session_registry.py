"""
Session Registry

Architectural Intent:
- Central registry mapping session identifiers to live ShellPort sessions
- Sessions are created lazily on first reference and destroyed only by close()
- Lookups share a read lock so commands for different sessions never serialize
- Insert/delete take the write lock; creation re-checks after acquiring it so
  concurrent first access yields exactly one session per identifier
"""

from __future__ import annotations
from contextlib import contextmanager
from typing import Callable, Iterator
import logging
import threading

from termbridge.domain.ports.shell_port import ShellPort
from termbridge.domain.value_objects.session_id import SessionId

logger = logging.getLogger(__name__)

SessionFactory = Callable[[SessionId], ShellPort]


class ReadWriteLock:
    """Many concurrent readers or a single writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class SessionRegistry:
    """Registry of all live shell sessions."""

    def __init__(self, factory: SessionFactory) -> None:
        self._factory = factory
        self._sessions: dict[str, ShellPort] = {}
        self._lock = ReadWriteLock()

    def resolve(self, session_id: SessionId) -> ShellPort:
        """Return the session for an identifier, creating it on first use."""
        key = str(session_id)
        with self._lock.read_locked():
            session = self._sessions.get(key)
        if session is not None:
            return session
        return self._create(session_id)

    def _create(self, session_id: SessionId) -> ShellPort:
        key = str(session_id)
        with self._lock.write_locked():
            session = self._sessions.get(key)
            if session is not None:
                return session
            # SessionCreateError propagates; nothing is registered.
            session = self._factory(session_id)
            self._sessions[key] = session
            logger.info(
                "Session created: %s (%d active)",
                key,
                len(self._sessions),
                extra={"session_id": key},
            )
            return session

    def get(self, session_id: SessionId) -> ShellPort | None:
        with self._lock.read_locked():
            return self._sessions.get(str(session_id))

    def close(self, session_id: SessionId) -> bool:
        """Force-close and remove a session. No-op when absent."""
        key = str(session_id)
        with self._lock.write_locked():
            session = self._sessions.pop(key, None)
            if session is None:
                return False
            session.close()
        logger.info("Session closed: %s", key, extra={"session_id": key})
        return True

    def close_all(self) -> int:
        with self._lock.write_locked():
            sessions = list(self._sessions.values())
            self._sessions.clear()
            for session in sessions:
                session.close()
        if sessions:
            logger.info("Closed %d sessions", len(sessions))
        return len(sessions)

    def session_ids(self) -> list[str]:
        with self._lock.read_locked():
            return list(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock.read_locked():
            return str(session_id) in self._sessions

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._sessions)
