from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

DEFAULT_METHOD = "GET"
DEFAULT_USERS = 10
DEFAULT_REPETITIONS = 10
DEFAULT_MAX_WORKERS = 256
DEFAULT_TIMEOUT_SEC = 100.0
UNBOUNDED = -1
MAX_COUNT = 2**63 - 1


class ConfigError(ValueError):
    """Raised when a run cannot be configured."""


@dataclass(frozen=True, slots=True)
class Count:
    """A user or repetition count that is either bounded or unbounded."""

    value: int | None

    @classmethod
    def bounded(cls, value: int) -> Count:
        if value < 0:
            msg = f"Count must be zero or positive, got {value}"
            raise ConfigError(msg)
        return cls(value)

    @classmethod
    def unbounded(cls) -> Count:
        return cls(None)

    @classmethod
    def from_option(cls, raw: int | None, default: int) -> Count:
        if raw is None:
            return cls.bounded(default)
        if raw == UNBOUNDED:
            return cls.unbounded()
        return cls.bounded(raw)

    @property
    def is_unbounded(self) -> bool:
        return self.value is None

    def resolve(self) -> int:
        if self.value is None:
            return MAX_COUNT
        return self.value


@dataclass(frozen=True, slots=True)
class RunConfig:
    url: str
    method: str = DEFAULT_METHOD
    users: Count = field(default_factory=lambda: Count(DEFAULT_USERS))
    repetitions: Count = field(default_factory=lambda: Count(DEFAULT_REPETITIONS))
    verbose: bool = False
    user_agent: str | None = None
    headers: Mapping[str, str] = field(default_factory=dict)
    timeout_ms: int | None = None
    max_workers: int = DEFAULT_MAX_WORKERS

    def __post_init__(self) -> None:
        if not self.url:
            raise ConfigError("URL param is required!")
        if self.timeout_ms is not None and self.timeout_ms <= 0:
            msg = f"Timeout must be a positive number of milliseconds, got {self.timeout_ms}"
            raise ConfigError(msg)
        if self.max_workers <= 0:
            msg = f"Worker pool size must be positive, got {self.max_workers}"
            raise ConfigError(msg)

    @property
    def timeout_sec(self) -> float | None:
        if self.timeout_ms is None:
            return None
        return self.timeout_ms / 1000.0

    def total_requests(self) -> int:
        return self.users.resolve() * self.repetitions.resolve()

    def to_metadata(self) -> Mapping[str, object]:
        return {
            "url": self.url,
            "method": self.method,
            "users": self.users.resolve(),
            "repetitions": self.repetitions.resolve(),
            "verbose": self.verbose,
            "user_agent": self.user_agent,
            "headers": dict(self.headers),
            "timeout_ms": self.timeout_ms,
            "max_workers": self.max_workers,
        }


def parse_headers(raw: str | None) -> dict[str, str]:
    """Parse ``key1:value1,key2:value2`` into a mapping.

    Items that do not split into exactly one name and one value are dropped.
    """
    if raw is None:
        return {}
    headers: dict[str, str] = {}
    for item in raw.split(","):
        parts = item.split(":")
        if len(parts) != 2:
            continue
        name, value = parts
        headers[name] = value
    return headers
