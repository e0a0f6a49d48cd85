"""Shared fixtures for longpoll tests."""

import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Optional

import pytest
from longpoll import BufferedResponse, PollConfig
from longpoll.cancellation import CancelToken


class Hang:
    """Script item: block until the exchange is cancelled."""

    def __init__(self, seconds: float = 3600.0) -> None:
        self.seconds = seconds


class ScriptedTransport:
    """
    Transport that replays a script instead of touching the network.

    Script items:
        int                      -> response with that status and empty body
        (int, bytes)             -> response with status and body
        (int, bytes, dict)       -> response with status, body and headers
        BaseException instance   -> raised from exchange()
        Hang                     -> sleeps until cancelled (or timeout)

    When the script runs out, ``default`` is replayed forever.
    """

    def __init__(self, script: Optional[list] = None, default: Any = 200) -> None:
        self.script = list(script or [])
        self.default = default
        self.calls: list[dict] = []
        self.responses: list[BufferedResponse] = []
        self.aborted = 0
        self.closed = False

    @property
    def urls(self) -> list[str]:
        return [call["url"] for call in self.calls]

    async def exchange(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        body: Any = None,
        timeout: float = 60.0,
        cancel_token: Optional[CancelToken] = None,
    ) -> BufferedResponse:
        if hasattr(body, "read"):
            body = body.read()
        self.calls.append(
            {
                "method": method,
                "url": url,
                "headers": dict(headers),
                "body": body,
                "timeout": timeout,
            }
        )
        item = self.script.pop(0) if self.script else self.default

        if isinstance(item, BaseException):
            raise item

        if isinstance(item, Hang):
            try:
                await asyncio.sleep(item.seconds)
            except asyncio.CancelledError:
                self.aborted += 1
                raise
            item = 200

        if isinstance(item, int):
            item = (item, b"")
        status, content, *rest = item
        response = BufferedResponse(status, content, headers=rest[0] if rest else None, url=url)
        self.responses.append(response)
        return response

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def make_transport():
    """Factory for ScriptedTransport instances."""
    return ScriptedTransport


@pytest.fixture
def hang():
    """Factory for Hang script items."""
    return Hang


@pytest.fixture
def fast_config():
    """Config with tiny delays so retry tests run quickly."""
    return PollConfig(poll_timeout=5.0, retry_delay=0.01, max_retries=3)


@pytest.fixture(autouse=True)
def reset_longpoll_logger():
    """Undo setup_logging() calls made by CLI tests."""
    logger = logging.getLogger("longpoll")
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
