"""Long-polling client: the per-session retry and cancellation loop."""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from collections.abc import Awaitable, Mapping
from types import TracebackType
from typing import Callable, Optional, Union

from ..cancellation import CancelToken
from ..errors import (
    AttemptError,
    BodyFactoryError,
    HandlerError,
    RetriesExhaustedError,
    StatusError,
    TransportError,
)
from ..models.config import PollConfig, merge_headers
from ..models.directive import Directive
from ..models.stats import PollStats
from ..transport.client import AiohttpTransport
from ..transport.protocols import PollResponse, RequestBody, Transport
from .registry import SessionHandle, SessionRegistry

logger = logging.getLogger(__name__)

ResponseHandler = Callable[[PollResponse], Union[Directive, Awaitable[Directive]]]
SimpleResponseHandler = Callable[[PollResponse], Union[bool, Awaitable[bool]]]
BodyFactory = Callable[[], object]


async def _release(response: PollResponse) -> None:
    await response.release()


class LongPollClient:
    """
    Long-polling HTTP client.

    Each call to poll() runs one session: requests are issued one at a
    time, every successful response is passed to the handler, and the
    handler's Directive decides whether to continue, switch URL or stop.
    Failed attempts (transport errors, non-2xx responses, body factory
    errors) are retried after a delay until max_retries consecutive
    failures have been retried.

    poll() blocks until the session ends. Run several sessions
    concurrently with asyncio.create_task() or spawn(); stop_all()
    cancels every running session.

    Example:
        config = PollConfig(poll_timeout=50, retry_delay=1.0)

        async with LongPollClient(config) as client:
            offset = 0

            async def on_updates(response: PollResponse) -> Directive:
                nonlocal offset
                updates = (await response.json())["result"]
                if updates:
                    offset = updates[-1]["update_id"] + 1
                return Directive.redirect(f"{base_url}?timeout=50&offset={offset}")

            await client.poll(f"{base_url}?timeout=50&offset=0", on_updates)
    """

    def __init__(
        self,
        config: Optional[PollConfig] = None,
        *,
        transport: Optional[Transport] = None,
        registry: Optional[SessionRegistry] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Session configuration (defaults to PollConfig())
            transport: Transport performing the exchanges. When omitted an
                       AiohttpTransport is created on first use and closed
                       by aclose().
            registry: Session registry; pass one to share bulk
                      cancellation between clients
        """
        self._config = config or PollConfig()
        self._transport = transport
        self._owns_transport = transport is None
        self._registry = registry or SessionRegistry()
        self._stats = PollStats()
        self._lock = threading.Lock()

    @property
    def config(self) -> PollConfig:
        """Current configuration snapshot."""
        with self._lock:
            return self._config

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def stats(self) -> PollStats:
        """Cumulative statistics across all sessions."""
        return self._stats

    async def __aenter__(self) -> LongPollClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Cancel running sessions and close an owned transport."""
        self.stop_all()
        if self._transport is not None and self._owns_transport:
            await self._transport.aclose()
            self._transport = None

    def _get_transport(self) -> Transport:
        if self._transport is None:
            self._transport = AiohttpTransport()
            self._owns_transport = True
        return self._transport

    # Configuration mutators. Each attempt reads a snapshot, so changes
    # apply from the next attempt on and never to one already in flight.

    def with_header(self, key: str, value: str) -> LongPollClient:
        """
        Add a header that will be included in all polling requests.

        Names are case-insensitive: a header differing only in case is
        replaced. The value is sent as given.
        """
        with self._lock:
            headers = merge_headers(self._config.headers, {key: value})
            self._config = self._config.updated(headers=headers)
        return self

    def with_headers(self, headers: Mapping[str, str]) -> LongPollClient:
        """Add several headers; existing names (any case) are overwritten."""
        with self._lock:
            merged = merge_headers(self._config.headers, headers)
            self._config = self._config.updated(headers=merged)
        return self

    def with_method(self, method: str) -> LongPollClient:
        """Set the HTTP method for polling requests (GET, POST, etc.)."""
        with self._lock:
            self._config = self._config.updated(method=method)
        return self

    def with_body_factory(self, factory: Optional[BodyFactory]) -> LongPollClient:
        """Set the function that builds the request body for each attempt."""
        with self._lock:
            self._config = self._config.updated(body_factory=factory)
        return self

    # Session control

    def stop_all(self) -> int:
        """
        Cancel every active polling session.

        Returns immediately; sessions end at their next checkpoint with
        PollCancelledError.

        Returns:
            Number of sessions signalled
        """
        return self._registry.cancel_all()

    def active_count(self) -> int:
        """Number of sessions currently running."""
        return self._registry.active_count()

    def spawn(
        self,
        url: str,
        handler: ResponseHandler,
        *,
        cancel_token: Optional[CancelToken] = None,
    ) -> asyncio.Task[None]:
        """Run poll() as a background task and return the task."""
        return asyncio.ensure_future(self.poll(url, handler, cancel_token=cancel_token))

    async def poll(
        self,
        url: str,
        handler: ResponseHandler,
        *,
        cancel_token: Optional[CancelToken] = None,
    ) -> None:
        """
        Poll url until the handler stops, fails, retries run out, or the
        session is cancelled.

        The handler may return a new URL through its Directive; this is
        how APIs such as Telegram's getUpdates advance their offset.

        Args:
            url: Initial URL to poll
            handler: Function (sync or async) turning a response into a Directive
            cancel_token: Optional parent token; cancelling it cancels this session

        Raises:
            HandlerError: The handler raised or returned Directive.fail()
            RetriesExhaustedError: max_retries consecutive retries failed
            PollCancelledError: The session was cancelled
        """
        token = cancel_token.child() if cancel_token is not None else CancelToken()
        handle = self._registry.register(token)
        self._stats.sessions_started += 1
        logger.info(f"Session {handle} started polling {url}")

        try:
            await self._poll_loop(handle, url, handler, token)
        except Exception as e:
            logger.info(f"Session {handle} ended: {e}")
            raise
        else:
            logger.info(f"Session {handle} stopped by handler")
        finally:
            self._registry.deregister(handle)
            if cancel_token is not None:
                cancel_token.remove_callback(token.cancel)
            self._stats.sessions_finished += 1

    async def poll_simple(
        self,
        url: str,
        handler: SimpleResponseHandler,
        *,
        cancel_token: Optional[CancelToken] = None,
    ) -> None:
        """
        Poll with a handler that returns True to continue, False to stop.

        The URL stays the same for every request.
        """

        async def wrapped(response: PollResponse) -> Directive:
            result = handler(response)
            if inspect.isawaitable(result):
                result = await result
            return Directive(keep_polling=bool(result))

        await self.poll(url, wrapped, cancel_token=cancel_token)

    async def _poll_loop(
        self,
        handle: SessionHandle,
        url: str,
        handler: ResponseHandler,
        token: CancelToken,
    ) -> None:
        current_url = url
        failures = 0

        while True:
            token.raise_if_cancelled()
            config = self.config

            try:
                response = await self._attempt(config, current_url, token)
            except AttemptError as e:
                self._stats.failures += 1
                logger.warning(f"Session {handle}: long poll request failed for {current_url}: {e}")

                if not config.is_unlimited and failures >= config.max_retries:
                    raise RetriesExhaustedError(failures + 1, e) from e

                failures += 1
                self._stats.retries += 1
                delay = config.retry_delay_for(failures)
                logger.debug(f"Session {handle}: retry {failures} for {current_url} in {delay:.2f}s")
                await token.sleep(delay)
                continue

            failures = 0
            self._stats.successes += 1

            try:
                directive = await self._call_handler(handler, response)
            finally:
                await response.release()

            if directive.next_url:
                current_url = directive.next_url
                self._stats.redirects += 1
                logger.debug(f"Session {handle}: handler updated URL to {current_url}")

            if not directive.keep_polling:
                logger.debug(f"Session {handle}: handler requested stop at {current_url}")
                return

            token.raise_if_cancelled()

    async def _attempt(self, config: PollConfig, url: str, token: CancelToken) -> PollResponse:
        """Run one exchange; raise AttemptError unless the status is 2xx."""
        self._stats.attempts += 1
        body = await self._build_body(config)
        headers = self._build_headers(config, body)
        transport = self._get_transport()

        token.raise_if_cancelled()
        exchange = transport.exchange(
            config.method,
            url,
            headers=headers,
            body=body,
            timeout=config.poll_timeout,
            cancel_token=token,
        )
        try:
            response = await token.race(
                asyncio.wait_for(exchange, timeout=config.poll_timeout),
                discard=_release,
            )
        except asyncio.TimeoutError as e:
            raise TransportError(f"request timed out after {config.poll_timeout:.1f}s", url=url) from e
        except OSError as e:
            raise TransportError(f"http request: {str(e) or e.__class__.__name__}", url=url) from e

        if 200 <= response.status < 300:
            return response

        try:
            content = await response.read()
        except Exception as e:
            logger.debug(f"Could not read error body from {url}: {e}")
            content = b""
        finally:
            await response.release()
        raise StatusError(response.status, content, url=url)

    async def _build_body(self, config: PollConfig) -> RequestBody:
        factory = config.body_factory
        if factory is None:
            return None

        try:
            body = factory()
            if inspect.isawaitable(body):
                body = await body
        except Exception as e:
            raise BodyFactoryError(str(e) or e.__class__.__name__) from e
        return body

    @staticmethod
    def _build_headers(config: PollConfig, body: RequestBody) -> dict[str, str]:
        headers = dict(config.headers)
        if body is not None and config.method == "POST":
            if not any(name.lower() == "content-type" for name in headers):
                headers["Content-Type"] = config.default_content_type
        return headers

    @staticmethod
    async def _call_handler(handler: ResponseHandler, response: PollResponse) -> Directive:
        try:
            result = handler(response)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            raise HandlerError(str(e) or e.__class__.__name__) from e

        if not isinstance(result, Directive):
            cause = TypeError(f"handler returned {type(result).__name__}, expected Directive")
            raise HandlerError(str(cause)) from cause

        if result.error is not None:
            raise HandlerError(str(result.error) or result.error.__class__.__name__) from result.error

        return result
