"""Bookkeeping for concurrently running poll sessions."""

import itertools
import logging
import threading
from typing import NewType

from ..cancellation import CancelToken

logger = logging.getLogger(__name__)

SessionHandle = NewType("SessionHandle", int)


class SessionRegistry:
    """
    Tracks the cancellation tokens of all running sessions.

    A handle is present exactly while its session loop runs. All mutation
    is guarded by a lock, so sessions may register and deregister while
    cancel_all() runs, including from other threads.

    Registry operations never raise; they only touch bookkeeping.

    Example:
        registry = SessionRegistry()
        handle = registry.register(token)
        try:
            ...
        finally:
            registry.deregister(handle)
    """

    def __init__(self) -> None:
        self._sessions: dict[SessionHandle, CancelToken] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)

    def register(self, token: CancelToken) -> SessionHandle:
        """
        Add a session and return the handle used to deregister it.

        Args:
            token: The session's cancellation token

        Returns:
            A handle unique for the lifetime of this registry
        """
        with self._lock:
            handle = SessionHandle(next(self._ids))
            self._sessions[handle] = token
        logger.debug(f"Registered session {handle}")
        return handle

    def deregister(self, handle: SessionHandle) -> None:
        """Remove a session. Unknown handles are ignored."""
        with self._lock:
            removed = self._sessions.pop(handle, None)
        if removed is not None:
            logger.debug(f"Deregistered session {handle}")

    def cancel_all(self) -> int:
        """
        Trigger the cancellation token of every registered session.

        Does not wait for the sessions to finish; they observe the signal
        at their next checkpoint and deregister themselves.

        Returns:
            Number of sessions signalled
        """
        with self._lock:
            tokens = list(self._sessions.values())

        for token in tokens:
            token.cancel()

        if tokens:
            logger.info(f"Cancelled {len(tokens)} active poll session(s)")
        return len(tokens)

    def active_count(self) -> int:
        """Snapshot of the number of running sessions."""
        with self._lock:
            return len(self._sessions)

    def __len__(self) -> int:
        return self.active_count()

    def __contains__(self, handle: object) -> bool:
        with self._lock:
            return handle in self._sessions
