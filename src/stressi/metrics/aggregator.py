from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime

from stressi.metrics.models import RequestOutcome, RunStats, StatusClass


def classify_status(status_code: int) -> StatusClass | None:
    if 200 <= status_code < 300:
        return StatusClass.SUCCESSFUL
    if 300 <= status_code < 400:
        return StatusClass.FURTHER_ACTION
    if 400 <= status_code < 500:
        return StatusClass.USER_ERROR
    if 500 <= status_code < 600:
        return StatusClass.SERVER_ERROR
    return None


class StatsAggregator:
    """Thread-safe accumulator for one run.

    Every mutation of the underlying ``RunStats`` happens under a single lock.
    """

    def __init__(self, stats: RunStats | None = None) -> None:
        self._stats = stats if stats is not None else RunStats()
        self._lock = threading.Lock()

    def mark_started(self, when: datetime | None = None) -> None:
        with self._lock:
            self._stats.started = when or datetime.now().astimezone()

    def mark_ended(self, when: datetime | None = None) -> None:
        with self._lock:
            self._stats.ended = when or datetime.now().astimezone()

    def count_request(self) -> None:
        """Count a request before it is sent so in-flight requests are included."""
        with self._lock:
            self._stats.total_requests += 1

    def record(self, outcome: RequestOutcome) -> None:
        with self._lock:
            stats = self._stats
            if outcome.status_code is None:
                stats.exceptions += 1
                return
            if outcome.elapsed_ms is not None:
                stats.response_times.append(outcome.elapsed_ms)
            stats.bytes_sent += outcome.bytes_sent
            stats.bytes_received += outcome.bytes_received
            bucket = classify_status(outcome.status_code)
            if bucket is StatusClass.SUCCESSFUL:
                stats.successful += 1
            elif bucket is StatusClass.FURTHER_ACTION:
                stats.further_action += 1
            elif bucket is StatusClass.USER_ERROR:
                stats.user_errors += 1
            elif bucket is StatusClass.SERVER_ERROR:
                stats.server_errors += 1

    def snapshot(self) -> RunStats:
        with self._lock:
            return replace(self._stats, response_times=list(self._stats.response_times))
