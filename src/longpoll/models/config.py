"""Pydantic configuration model for long-polling sessions."""

import os
import random
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field, field_validator

from ..errors import ConfigurationError

# Sentinel for max_retries meaning "retry forever"
UNLIMITED_RETRIES = -1

DEFAULT_CONTENT_TYPE = "application/x-www-form-urlencoded"

_METHOD_PATTERN = re.compile(r"^[A-Z]+$")
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


def expand_env_vars(value: str) -> str:
    """Expand environment variable references in a string.

    Supports $VAR and ${VAR} syntax. References to unset variables are
    left untouched. Only applied to values loaded from files or the
    command line; headers set in code are sent verbatim.
    """

    def replace(match: re.Match) -> str:
        var_name = match.group(1) or match.group(2)
        return os.environ.get(var_name, match.group(0))

    return _ENV_VAR_PATTERN.sub(replace, value)


def merge_headers(base: Mapping[str, str], updates: Mapping[str, str]) -> dict[str, str]:
    """
    Merge header mappings, last write wins.

    Header names compare case-insensitively: an update replaces any
    existing entry whose name differs only in case, and the update's
    spelling is kept.
    """
    merged = dict(base)
    for name, value in updates.items():
        for existing in [key for key in merged if key.lower() == name.lower()]:
            del merged[existing]
        merged[name] = value
    return merged


class PollConfig(BaseModel):
    """
    Configuration for a long-polling client.

    The model is frozen: use updated() (or the client's with_* helpers)
    to derive a modified, re-validated configuration.

    Example:
        config = PollConfig(
            poll_timeout=50,
            retry_delay=1.0,
            max_retries=UNLIMITED_RETRIES,
            headers={"Authorization": f"Bearer {token}"},
        )

    YAML format ($VAR and ${VAR} in header values are expanded):
        poll_timeout: 50
        retry_delay: 1.0
        max_retries: 5
        method: POST
        headers:
          Accept: application/json
          Authorization: Bearer ${API_TOKEN}
    """

    poll_timeout: float = Field(60.0, gt=0, description="Timeout for each individual poll request (seconds)")
    retry_delay: float = Field(1.0, ge=0, description="Delay after a failed request (seconds)")
    max_retries: int = Field(
        UNLIMITED_RETRIES,
        ge=UNLIMITED_RETRIES,
        description="Maximum consecutive retries before giving up (-1 = unlimited)",
    )
    backoff_factor: float = Field(
        1.0,
        ge=1.0,
        description="Multiplier applied to the retry delay for each consecutive failure",
    )
    max_retry_delay: Optional[float] = Field(
        None,
        gt=0,
        description="Upper bound for the backed-off retry delay (None = no cap)",
    )
    jitter: bool = Field(False, description="Add up to 10% random jitter to retry delays")
    method: str = Field("GET", description="HTTP method used for poll requests")
    headers: dict[str, str] = Field(default_factory=dict, description="Extra headers sent with every request")
    body_factory: Optional[Callable[[], Any]] = Field(
        None,
        exclude=True,
        description="Zero-argument callable building a fresh request body for each attempt",
    )
    default_content_type: str = Field(
        DEFAULT_CONTENT_TYPE,
        description="Content-Type for POST bodies when no Content-Type header is set",
    )

    model_config = {"extra": "forbid", "frozen": True}

    @field_validator("method", mode="before")
    @classmethod
    def _normalize_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().upper()
            if not _METHOD_PATTERN.match(value):
                raise ValueError(f"Invalid HTTP method: {value!r}")
        return value

    @field_validator("headers")
    @classmethod
    def _unique_header_names(cls, value: dict[str, str]) -> dict[str, str]:
        return merge_headers({}, value)

    @property
    def is_unlimited(self) -> bool:
        """True when the session retries forever."""
        return self.max_retries == UNLIMITED_RETRIES

    def retry_delay_for(self, failures: int) -> float:
        """
        Delay to wait after the given number of consecutive failures.

        Args:
            failures: Consecutive failures so far (1 for the first failure)

        Returns:
            Delay in seconds
        """
        exponent = max(failures - 1, 0)
        delay = self.retry_delay * (self.backoff_factor**exponent)
        if self.max_retry_delay is not None:
            delay = min(delay, self.max_retry_delay)
        if self.jitter and delay > 0:
            delay += random.uniform(0, delay * 0.1)
        return delay

    def updated(self, **changes: Any) -> "PollConfig":
        """Return a validated copy with changes applied.

        Unlike model_copy(update=...), the result goes through validation,
        so methods are normalised and header names deduplicated.
        """
        data = dict(self)
        data.update(changes)
        return type(self)(**data)

    def to_yaml(self) -> str:
        """Serialize config to YAML string."""
        import yaml

        return yaml.dump(self.model_dump(mode="json", exclude_none=True), default_flow_style=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "PollConfig":
        """Load config from YAML string."""
        import yaml

        try:
            data = yaml.safe_load(yaml_str) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError("Config YAML must be a mapping")
        headers = data.get("headers")
        if isinstance(headers, dict):
            data["headers"] = {
                name: expand_env_vars(value) if isinstance(value, str) else value
                for name, value in headers.items()
            }
        return cls.model_validate(data)

    @classmethod
    def from_yaml_file(cls, path: Path) -> "PollConfig":
        """Load config from YAML file."""
        return cls.from_yaml(path.read_text())
