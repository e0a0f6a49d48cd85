"""Exceptions raised by the long-polling client.

Hierarchy:
- LongPollError: Base exception for all longpoll errors
  - AttemptError: A single attempt failed; subject to the retry policy
    - TransportError: The HTTP exchange could not be completed
    - StatusError: The exchange completed with a non-2xx status
    - BodyFactoryError: The request body could not be built
  - HandlerError: The response handler rejected a response (fatal)
  - RetriesExhaustedError: Too many consecutive failed attempts (fatal)
  - PollCancelledError: The session was cancelled (fatal)
  - ConfigurationError: Invalid client configuration
"""

from __future__ import annotations

from typing import Optional


class LongPollError(Exception):
    """Base exception for all longpoll errors.

    Callers can catch every failure of a polling session with a single
    except clause on this class.
    """

    pass


class AttemptError(LongPollError):
    """A single poll attempt failed.

    Attempt errors are recoverable: the client backs off and retries the
    same URL until the retry budget is spent.
    """

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class TransportError(AttemptError):
    """The HTTP exchange could not be completed (DNS, connect, timeout)."""

    def __str__(self) -> str:
        return f"transport error: {super().__str__()}"


class StatusError(AttemptError):
    """The server answered with a status outside [200, 300).

    Attributes:
        status: HTTP status code returned by the server
        body: Response body captured for diagnostics
    """

    def __init__(self, status: int, body: bytes = b"", url: Optional[str] = None):
        self.status = status
        self.body = body
        text = body.decode("utf-8", errors="replace").strip()
        message = f"http error {status}"
        if text:
            message = f"{message}: {text}"
        super().__init__(message, url=url)


class BodyFactoryError(AttemptError):
    """The configured body factory raised while building a request body."""

    def __str__(self) -> str:
        return f"build request body: {super().__str__()}"


class HandlerError(LongPollError):
    """The response handler raised or returned an error directive.

    The original exception is available as ``__cause__``.
    """

    def __str__(self) -> str:
        return f"handler error: {super().__str__()}"


class RetriesExhaustedError(LongPollError):
    """Consecutive failures reached the configured maximum.

    Attributes:
        attempts: Number of consecutive failed attempts
        last_error: The failure that ended the session
    """

    def __init__(self, attempts: int, last_error: AttemptError):
        super().__init__(f"max retries exceeded after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class PollCancelledError(LongPollError):
    """The session's cancellation signal fired."""

    def __init__(self, message: str = "long poll cancelled"):
        super().__init__(message)


class ConfigurationError(LongPollError):
    """Configuration is invalid or could not be loaded."""

    pass
