from __future__ import annotations

from stressi.metrics.aggregator import StatsAggregator, classify_status
from stressi.metrics.models import RequestOutcome, RunStats, StatusClass
from stressi.metrics.report import RunReport, build_report, format_bytes, render_report

__all__ = [
    "RequestOutcome",
    "RunReport",
    "RunStats",
    "StatsAggregator",
    "StatusClass",
    "build_report",
    "classify_status",
    "format_bytes",
    "render_report",
]
