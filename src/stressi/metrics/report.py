from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

import numpy as np

from stressi.metrics.models import RunStats

_SIZE_SUFFIXES = ("", "KB", "MB", "GB", "TB")


@dataclass(frozen=True, slots=True)
class RunReport:
    run_id: str
    url: str
    method: str
    users: int
    repetitions: int
    started: datetime | None
    ended: datetime | None
    duration: timedelta | None
    total_requests: int
    successful: int
    further_action: int
    user_errors: int
    server_errors: int
    exceptions: int
    avg_ms: int | None
    min_ms: int | None
    max_ms: int | None
    p50_ms: float | None
    p95_ms: float | None
    p99_ms: float | None
    bytes_sent: int
    bytes_received: int
    interrupted: bool = False


def format_bytes(num_bytes: int) -> str:
    """Render a byte count on a base-1024 scale with two decimals.

    The largest suffix whose divisor does not exceed the count is used;
    anything below 1 KB, including zero and negative totals, stays in bytes.
    """
    for power in range(len(_SIZE_SUFFIXES) - 1, 0, -1):
        divisor = 1024**power
        if divisor <= num_bytes:
            return f"{num_bytes / divisor:.2f} {_SIZE_SUFFIXES[power]}"
    return f"{float(num_bytes):.2f} "


def build_report(
    run_id: str,
    url: str,
    method: str,
    stats: RunStats,
    users: int,
    repetitions: int,
    interrupted: bool = False,
) -> RunReport:
    latencies = np.asarray(stats.response_times, dtype=np.int64)
    if latencies.size:
        avg_ms: int | None = int(latencies.sum() // latencies.size)
        min_ms: int | None = int(latencies.min())
        max_ms: int | None = int(latencies.max())
        p50, p95, p99 = (float(v) for v in np.percentile(latencies, [50, 95, 99]))
    else:
        avg_ms = min_ms = max_ms = None
        p50 = p95 = p99 = None
    return RunReport(
        run_id=run_id,
        url=url,
        method=method,
        users=users,
        repetitions=repetitions,
        started=stats.started,
        ended=stats.ended,
        duration=stats.duration,
        total_requests=stats.total_requests,
        successful=stats.successful,
        further_action=stats.further_action,
        user_errors=stats.user_errors,
        server_errors=stats.server_errors,
        exceptions=stats.exceptions,
        avg_ms=avg_ms,
        min_ms=min_ms,
        max_ms=max_ms,
        p50_ms=p50,
        p95_ms=p95,
        p99_ms=p99,
        bytes_sent=stats.bytes_sent,
        bytes_received=stats.bytes_received,
        interrupted=interrupted,
    )


def _ms(value: float | None) -> str:
    if value is None:
        return "N/A"
    if isinstance(value, float):
        return f"{value:.2f} ms"
    return f"{value} ms"


def _or_na(value: object) -> str:
    return "N/A" if value is None else str(value)


def render_report(report: RunReport) -> list[str]:
    lines = [
        "Timing:",
        f" # Started:                     {_or_na(report.started)}",
        f" # Ended:                       {_or_na(report.ended)}",
        f" # Duration:                    {_or_na(report.duration)}",
    ]
    if report.interrupted:
        lines.append(" # Interrupted:                 yes, partial results")
    lines += [
        "",
        "Responses:",
        f" # Total Requests:              {report.total_requests}",
        f" # Successful Requests (2xx):   {report.successful}",
        f" # Further Action Needed (3xx): {report.further_action}",
        f" # User Errors (4xx):           {report.user_errors}",
        f" # Server Errors (5xx):         {report.server_errors}",
        f" # Unhandled Exceptions:        {report.exceptions}",
        "",
        "Response Times:",
        f" # Average:                     {_ms(report.avg_ms)}",
        f" # Min:                         {_ms(report.min_ms)}",
        f" # Max:                         {_ms(report.max_ms)}",
        f" # P50:                         {_ms(report.p50_ms)}",
        f" # P95:                         {_ms(report.p95_ms)}",
        f" # P99:                         {_ms(report.p99_ms)}",
        "",
        "Request/Response Sizes:",
        f" # Total Bytes Sent:            {report.bytes_sent} ({format_bytes(report.bytes_sent)})",
        f" # Total Bytes Received:        {report.bytes_received} ({format_bytes(report.bytes_received)})",
    ]
    return lines
