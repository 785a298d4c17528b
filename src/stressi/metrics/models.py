from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum


class StatusClass(str, Enum):
    SUCCESSFUL = "successful"
    FURTHER_ACTION = "further_action"
    USER_ERROR = "user_error"
    SERVER_ERROR = "server_error"


@dataclass(frozen=True, slots=True)
class RequestOutcome:
    """Result of one request.

    ``status_code`` is ``None`` when no usable response came back, in which
    case ``error`` holds the failure message. ``elapsed_ms`` is ``None`` when
    the exchange was not timed to completion.
    """

    status_code: int | None
    elapsed_ms: int | None = None
    bytes_sent: int = 0
    bytes_received: int = 0
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.status_code is None


@dataclass(slots=True)
class RunStats:
    started: datetime | None = None
    ended: datetime | None = None
    total_requests: int = 0
    successful: int = 0
    further_action: int = 0
    user_errors: int = 0
    server_errors: int = 0
    exceptions: int = 0
    response_times: list[int] = field(default_factory=list)
    bytes_sent: int = 0
    bytes_received: int = 0

    @property
    def duration(self) -> timedelta | None:
        if self.started is None or self.ended is None:
            return None
        return self.ended - self.started

    def outcome_total(self) -> int:
        return (
            self.successful
            + self.further_action
            + self.user_errors
            + self.server_errors
            + self.exceptions
        )
