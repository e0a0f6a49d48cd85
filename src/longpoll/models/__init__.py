"""Longpoll configuration, directive, and statistics models."""

from .config import DEFAULT_CONTENT_TYPE, UNLIMITED_RETRIES, PollConfig, expand_env_vars, merge_headers
from .directive import Directive, DirectiveKind
from .stats import PollStats

__all__ = [
    # Config
    "DEFAULT_CONTENT_TYPE",
    "PollConfig",
    "UNLIMITED_RETRIES",
    "expand_env_vars",
    "merge_headers",
    # Directives
    "Directive",
    "DirectiveKind",
    # Stats
    "PollStats",
]
