"""
longpoll - Generic long-polling HTTP client for asyncio.

Usage:
    from longpoll import Directive, LongPollClient, PollConfig

    config = PollConfig(poll_timeout=50, retry_delay=1.0, max_retries=5)

    async with LongPollClient(config) as client:
        await client.poll(
            "https://api.example.com/events",
            lambda response: Directive.proceed(),
        )
"""

__version__ = "1.0.0"

from .cancellation import CancelToken
from .core.poller import LongPollClient, ResponseHandler, SimpleResponseHandler
from .core.registry import SessionHandle, SessionRegistry
from .errors import (
    AttemptError,
    BodyFactoryError,
    ConfigurationError,
    HandlerError,
    LongPollError,
    PollCancelledError,
    RetriesExhaustedError,
    StatusError,
    TransportError,
)
from .logging_config import setup_logging
from .models.config import DEFAULT_CONTENT_TYPE, UNLIMITED_RETRIES, PollConfig
from .models.directive import Directive, DirectiveKind
from .models.stats import PollStats
from .transport import AiohttpTransport, BufferedResponse, PollResponse, Transport

__all__ = [
    "__version__",
    # Core
    "LongPollClient",
    "ResponseHandler",
    "SimpleResponseHandler",
    "SessionHandle",
    "SessionRegistry",
    "CancelToken",
    # Config
    "PollConfig",
    "UNLIMITED_RETRIES",
    "DEFAULT_CONTENT_TYPE",
    # Directives and stats
    "Directive",
    "DirectiveKind",
    "PollStats",
    # Transport
    "AiohttpTransport",
    "BufferedResponse",
    "PollResponse",
    "Transport",
    # Errors
    "LongPollError",
    "AttemptError",
    "TransportError",
    "StatusError",
    "BodyFactoryError",
    "HandlerError",
    "RetriesExhaustedError",
    "PollCancelledError",
    "ConfigurationError",
    # Logging
    "setup_logging",
]
