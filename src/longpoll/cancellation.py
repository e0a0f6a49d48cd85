"""Cooperative cancellation for polling sessions."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Awaitable
from typing import Any, Callable, Optional, TypeVar

from .errors import PollCancelledError

T = TypeVar("T")


class CancelToken:
    """
    One-shot, idempotent cancellation signal.

    A token is observed at checkpoints: before each attempt, while an
    exchange is in flight (via race()), and during retry sleeps. Calling
    cancel() more than once has the same effect as calling it once.

    cancel() may be called from any thread. When called off the loop that
    is waiting on the token, the wake-up is scheduled with
    call_soon_threadsafe().

    Example:
        token = CancelToken()
        task = asyncio.create_task(client.poll(url, handler, cancel_token=token))
        ...
        token.cancel()
        with pytest.raises(PollCancelledError):
            await task
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._lock = threading.Lock()
        self._event: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        """True once cancel() has been called."""
        return self._cancelled

    def cancel(self) -> None:
        """Trigger the signal. Safe to call repeatedly and from any thread."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            event, loop = self._event, self._loop
            callbacks = list(self._callbacks)
            self._callbacks.clear()

        if event is not None and loop is not None:
            self._wake(event, loop)

        for callback in callbacks:
            callback()

    @staticmethod
    def _wake(event: asyncio.Event, loop: asyncio.AbstractEventLoop) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            event.set()
        elif not loop.is_closed():
            loop.call_soon_threadsafe(event.set)

    def _get_event(self) -> asyncio.Event:
        with self._lock:
            if self._event is None:
                self._event = asyncio.Event()
                self._loop = asyncio.get_running_loop()
                if self._cancelled:
                    self._event.set()
            return self._event

    def raise_if_cancelled(self) -> None:
        """Non-blocking checkpoint."""
        if self._cancelled:
            raise PollCancelledError()

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._get_event().wait()

    async def sleep(self, delay: float) -> None:
        """
        Sleep for delay seconds unless the token fires first.

        Args:
            delay: Seconds to sleep

        Raises:
            PollCancelledError: If the token is or becomes cancelled
        """
        self.raise_if_cancelled()
        if delay <= 0:
            return

        try:
            await asyncio.wait_for(self.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise PollCancelledError()

    async def race(
        self,
        awaitable: Awaitable[T],
        *,
        discard: Optional[Callable[[T], Awaitable[Any]]] = None,
    ) -> T:
        """
        Await awaitable, aborting it if the token fires first.

        The inner task is cancelled and awaited before PollCancelledError
        is raised, so the transport gets a chance to tear down the request.
        The same happens when the task running race() is itself cancelled.

        Args:
            awaitable: Work to run
            discard: Called with a result the inner task produced anyway
                     after being abandoned (e.g. to release a response)

        Raises:
            PollCancelledError: If the token fires before awaitable completes
        """
        if self._cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise PollCancelledError()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            await self._abandon(task, discard)
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        await self._abandon(task, discard)
        raise PollCancelledError()

    @staticmethod
    async def _abandon(
        task: asyncio.Future[T],
        discard: Optional[Callable[[T], Awaitable[Any]]],
    ) -> None:
        task.cancel()
        (result,) = await asyncio.gather(task, return_exceptions=True)
        if discard is not None and not isinstance(result, BaseException):
            await discard(result)

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run callback on cancellation (immediately if already cancelled)."""
        with self._lock:
            if not self._cancelled:
                self._callbacks.append(callback)
                return
        callback()

    def remove_callback(self, callback: Callable[[], None]) -> None:
        """Unregister a callback. Unknown callbacks are ignored."""
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def child(self) -> CancelToken:
        """
        Create a token that is cancelled whenever this one is.

        Cancelling the child does not cancel the parent. Call
        remove_callback(child.cancel) to unlink a child that is done.
        """
        token = CancelToken()
        self.add_callback(token.cancel)
        return token

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"<CancelToken {state}>"
