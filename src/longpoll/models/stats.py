"""Cumulative statistics for a long-polling client."""

from dataclasses import dataclass


@dataclass
class PollStats:
    """
    Counters collected across every session run by one client.

    Updated from the event loop only; read them between sessions or
    accept that a snapshot may be a little stale.
    """

    sessions_started: int = 0
    sessions_finished: int = 0
    attempts: int = 0
    successes: int = 0
    failures: int = 0
    retries: int = 0
    redirects: int = 0

    @property
    def success_rate(self) -> float:
        """Calculate success rate as a percentage."""
        total = self.successes + self.failures
        if total == 0:
            return 0.0
        return (self.successes / total) * 100

    def to_dict(self) -> dict:
        """Convert stats to dictionary for serialization."""
        return {
            "sessions_started": self.sessions_started,
            "sessions_finished": self.sessions_finished,
            "attempts": self.attempts,
            "successes": self.successes,
            "failures": self.failures,
            "retries": self.retries,
            "redirects": self.redirects,
            "success_rate": round(self.success_rate, 1),
        }
