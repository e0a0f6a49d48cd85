"""HTTP transports for longpoll."""

from .client import AiohttpResponse, AiohttpTransport
from .protocols import BufferedResponse, PollResponse, RequestBody, Transport

__all__ = [
    "AiohttpResponse",
    "AiohttpTransport",
    "BufferedResponse",
    "PollResponse",
    "RequestBody",
    "Transport",
]
