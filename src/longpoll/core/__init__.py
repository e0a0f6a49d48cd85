"""Core polling engine and session registry."""

from .poller import LongPollClient, ResponseHandler, SimpleResponseHandler
from .registry import SessionHandle, SessionRegistry

__all__ = [
    "LongPollClient",
    "ResponseHandler",
    "SessionHandle",
    "SessionRegistry",
    "SimpleResponseHandler",
]
