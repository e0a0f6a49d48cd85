"""Continuation directives returned by response handlers."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class DirectiveKind(str, Enum):
    """What the client does after a successful response."""

    CONTINUE = "continue"
    REDIRECT = "redirect"
    STOP = "stop"
    ERROR = "error"


@dataclass(frozen=True)
class Directive:
    """
    A handler's decision after a successful poll.

    Fields are applied in order: error first (ends the session with a
    HandlerError regardless of the other fields), then next_url (an
    empty string keeps the current URL), then keep_polling.

    Prefer the named constructors over building instances by hand:

        Directive.proceed()                       # poll the same URL again
        Directive.redirect(f"{base}?offset={n}")  # poll a new URL
        Directive.stop()                          # finish without error
        Directive.fail(ValueError("bad body"))    # finish with HandlerError
    """

    next_url: str = ""
    keep_polling: bool = True
    error: Optional[BaseException] = None

    @classmethod
    def proceed(cls, next_url: str = "") -> "Directive":
        """Keep polling, optionally at a new URL."""
        return cls(next_url=next_url, keep_polling=True)

    @classmethod
    def redirect(cls, url: str) -> "Directive":
        """Keep polling at url."""
        if not url:
            raise ValueError("redirect() requires a non-empty URL")
        return cls(next_url=url, keep_polling=True)

    @classmethod
    def stop(cls, next_url: str = "") -> "Directive":
        """Finish the session without error."""
        return cls(next_url=next_url, keep_polling=False)

    @classmethod
    def fail(cls, error: BaseException) -> "Directive":
        """Finish the session with a handler error wrapping error."""
        return cls(keep_polling=False, error=error)

    @property
    def kind(self) -> DirectiveKind:
        if self.error is not None:
            return DirectiveKind.ERROR
        if not self.keep_polling:
            return DirectiveKind.STOP
        if self.next_url:
            return DirectiveKind.REDIRECT
        return DirectiveKind.CONTINUE
