"""Protocol definitions for the transport abstraction."""

from __future__ import annotations

import json
from collections.abc import AsyncIterable, Mapping
from typing import IO, TYPE_CHECKING, Any, Optional, Protocol, Union

if TYPE_CHECKING:
    from ..cancellation import CancelToken

# Anything aiohttp accepts as request data. A stream is consumed by one attempt.
RequestBody = Union[bytes, str, IO[bytes], AsyncIterable[bytes], None]


class PollResponse(Protocol):
    """
    A response handed to a poll handler.

    The body is only readable while the handler runs. The client calls
    release() as soon as the handler returns, on every path.
    """

    @property
    def status(self) -> int: ...

    @property
    def headers(self) -> Mapping[str, str]: ...

    @property
    def url(self) -> str: ...

    @property
    def closed(self) -> bool: ...

    async def read(self) -> bytes: ...

    async def text(self, encoding: Optional[str] = None) -> str: ...

    async def json(self) -> Any: ...

    async def release(self) -> None: ...


class Transport(Protocol):
    """
    Protocol for performing one HTTP exchange.

    This abstraction allows for:
    - Scripted implementations in tests
    - Different backends (aiohttp, httpx, etc.)
    - Custom connection pooling and TLS setup owned by the caller
    """

    async def exchange(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        body: RequestBody = None,
        timeout: float = 60.0,
        cancel_token: Optional[CancelToken] = None,
    ) -> PollResponse:
        """
        Perform one request and return the response with an unread body.

        Args:
            method: HTTP method
            url: Target URL
            headers: Request headers
            body: Optional request body
            timeout: Upper bound for the whole exchange in seconds
            cancel_token: Session cancellation signal

        Returns:
            PollResponse of any status; status checks belong to the caller

        Raises:
            TransportError: When the exchange could not be completed
        """
        ...

    async def aclose(self) -> None:
        """Release transport resources."""
        ...


def _charset_from_content_type(content_type: str) -> Optional[str]:
    for part in content_type.split(";"):
        part = part.strip()
        if part.lower().startswith("charset="):
            return part.split("=", 1)[1].strip().strip("\"'")
    return None


class BufferedResponse:
    """
    PollResponse backed by an in-memory body.

    Useful for custom transports that read the whole body up front, and
    for tests.

    Example:
        response = BufferedResponse(200, b'{"ok": true}', url="https://example.com/poll")
        assert (await response.json()) == {"ok": True}
    """

    def __init__(
        self,
        status: int,
        content: bytes = b"",
        *,
        headers: Optional[Mapping[str, str]] = None,
        url: str = "",
    ) -> None:
        self._status = status
        self._content = content
        self._headers = dict(headers or {})
        self._url = url
        self._closed = False

    @property
    def status(self) -> int:
        return self._status

    @property
    def headers(self) -> Mapping[str, str]:
        return self._headers

    @property
    def url(self) -> str:
        return self._url

    @property
    def closed(self) -> bool:
        return self._closed

    async def read(self) -> bytes:
        if self._closed:
            raise RuntimeError("Response body already released")
        return self._content

    async def text(self, encoding: Optional[str] = None) -> str:
        content = await self.read()
        if encoding is None:
            encoding = _charset_from_content_type(self._headers.get("Content-Type", "")) or "utf-8"
        try:
            return content.decode(encoding)
        except LookupError:
            return content.decode("utf-8", errors="replace")

    async def json(self) -> Any:
        return json.loads(await self.text())

    async def release(self) -> None:
        self._closed = True

    def __repr__(self) -> str:
        return f"<BufferedResponse {self._status} {self._url}>"
