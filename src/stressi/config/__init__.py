from __future__ import annotations

from stressi.config.models import (
    DEFAULT_MAX_WORKERS,
    DEFAULT_METHOD,
    DEFAULT_REPETITIONS,
    DEFAULT_TIMEOUT_SEC,
    DEFAULT_USERS,
    MAX_COUNT,
    ConfigError,
    Count,
    RunConfig,
    parse_headers,
)

__all__ = [
    "DEFAULT_MAX_WORKERS",
    "DEFAULT_METHOD",
    "DEFAULT_REPETITIONS",
    "DEFAULT_TIMEOUT_SEC",
    "DEFAULT_USERS",
    "MAX_COUNT",
    "ConfigError",
    "Count",
    "RunConfig",
    "parse_headers",
]
