"""aiohttp-backed transport for long-polling requests."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Mapping
from types import TracebackType
from typing import TYPE_CHECKING, Any, Optional

import aiohttp

from ..errors import TransportError
from .protocols import RequestBody

if TYPE_CHECKING:
    from ..cancellation import CancelToken

logger = logging.getLogger(__name__)


class AiohttpResponse:
    """PollResponse wrapping an unread aiohttp.ClientResponse."""

    def __init__(self, response: aiohttp.ClientResponse) -> None:
        self._response = response
        self._closed = False

    @property
    def status(self) -> int:
        return self._response.status

    @property
    def headers(self) -> Mapping[str, str]:
        return self._response.headers

    @property
    def url(self) -> str:
        return str(self._response.url)

    @property
    def closed(self) -> bool:
        return self._closed

    async def read(self) -> bytes:
        if self._closed:
            raise RuntimeError("Response body already released")
        return await self._response.read()

    async def text(self, encoding: Optional[str] = None) -> str:
        if self._closed:
            raise RuntimeError("Response body already released")
        return await self._response.text(encoding=encoding, errors="replace")

    async def json(self) -> Any:
        if self._closed:
            raise RuntimeError("Response body already released")
        return await self._response.json(content_type=None)

    async def release(self) -> None:
        if self._closed:
            return
        self._closed = True
        # release() is a coroutine-returning method on older aiohttp releases
        result = self._response.release()
        if inspect.isawaitable(result):
            await result

    def __repr__(self) -> str:
        return f"<AiohttpResponse {self.status} {self.url}>"


class AiohttpTransport:
    """
    Transport that performs exchanges with an aiohttp.ClientSession.

    The session is created lazily on first use unless one is injected.
    Injected sessions are left open on aclose(); the caller owns them.

    Example:
        async with AiohttpTransport(user_agent="my-bot/1.0") as transport:
            client = LongPollClient(config, transport=transport)
            await client.poll(url, handler)
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        *,
        user_agent: Optional[str] = None,
        proxy: Optional[str] = None,
        connection_limit: int = 100,
    ) -> None:
        """
        Initialize the transport.

        Args:
            session: Existing session to use (not closed by this transport)
            user_agent: Custom User-Agent string
            proxy: Proxy URL passed to every request
            connection_limit: Total connection limit for an owned session
        """
        self._session = session
        self._owns_session = session is None
        self._proxy = proxy
        self._connection_limit = connection_limit

        if user_agent is None:
            from .. import __version__

            user_agent = f"longpoll/{__version__}"
        self._user_agent = user_agent

    async def __aenter__(self) -> AiohttpTransport:
        self._ensure_session()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(limit=self._connection_limit)
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={"User-Agent": self._user_agent},
            )
            self._owns_session = True
        return self._session

    async def aclose(self) -> None:
        """Close the session if this transport created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def exchange(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        body: RequestBody = None,
        timeout: float = 60.0,
        cancel_token: Optional[CancelToken] = None,
    ) -> AiohttpResponse:
        """
        Send one request and return the response with its body unread.

        Cancellation of an in-flight request happens by cancelling the
        task awaiting this coroutine, which aiohttp honours.

        Raises:
            TransportError: On connection errors and timeouts
        """
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        session = self._ensure_session()
        try:
            response = await session.request(
                method,
                url,
                headers=dict(headers),
                data=body,
                timeout=aiohttp.ClientTimeout(total=timeout),
                proxy=self._proxy,
                allow_redirects=True,
            )
        except asyncio.TimeoutError as e:
            raise TransportError(f"request timed out after {timeout:.1f}s", url=url) from e
        except (aiohttp.ClientError, OSError) as e:
            raise TransportError(f"http request: {str(e) or e.__class__.__name__}", url=url) from e

        logger.debug(f"{method} {url} -> {response.status}")
        return AiohttpResponse(response)
