"""Runtime settings for pyshadow, read from the environment."""

import os
from collections.abc import Mapping
from dataclasses import dataclass

from pyshadow.errors import ConfigError

DEFAULT_INTERVAL = 0.3
MIN_INTERVAL = 0.05
DEFAULT_CANCEL_KEY = "q"
DEFAULT_STREAM_LIMIT = 1024 * 1024

ENV_INTERVAL_MS = "PYSHADOW_INTERVAL_MS"
ENV_CANCEL_KEY = "PYSHADOW_CANCEL_KEY"
ENV_LOG_FILE = "PYSHADOW_LOG_FILE"
ENV_STREAM_LIMIT = "PYSHADOW_STREAM_LIMIT"


@dataclass(slots=True, frozen=True)
class Settings:
    """Immutable settings for one dashboard run."""

    interval: float = DEFAULT_INTERVAL  # Seconds between samples
    cancel_key: str = DEFAULT_CANCEL_KEY
    log_file: str | None = None
    stream_limit: int = DEFAULT_STREAM_LIMIT  # Longest accepted output line, in bytes

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """
        Build settings from environment variables.

        Unset variables fall back to the defaults. The interval is clamped
        to MIN_INTERVAL.

        Raises:
            ConfigError: If a variable is set to an unusable value.
        """
        env = os.environ if environ is None else environ

        interval = DEFAULT_INTERVAL
        raw_interval = env.get(ENV_INTERVAL_MS)
        if raw_interval:
            interval = max(MIN_INTERVAL, _parse_positive_int(ENV_INTERVAL_MS, raw_interval) / 1000)

        stream_limit = DEFAULT_STREAM_LIMIT
        raw_limit = env.get(ENV_STREAM_LIMIT)
        if raw_limit:
            stream_limit = _parse_positive_int(ENV_STREAM_LIMIT, raw_limit)

        cancel_key = env.get(ENV_CANCEL_KEY) or DEFAULT_CANCEL_KEY

        return cls(
            interval=interval,
            cancel_key=cancel_key,
            log_file=env.get(ENV_LOG_FILE) or None,
            stream_limit=stream_limit,
        )


def _parse_positive_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value
