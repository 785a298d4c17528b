from __future__ import annotations

import itertools
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import httpx
import pytest

from stressi.config import MAX_COUNT, Count, RunConfig
from stressi.loadgen import runner
from stressi.loadgen.runner import run_stress, run_user
from stressi.metrics import RequestOutcome, StatsAggregator
from stressi.storage import Storage

URL = "http://test.local/"


def _config(users: int, reps: int, **kwargs) -> RunConfig:
    return RunConfig(url=URL, users=Count.bounded(users), repetitions=Count.bounded(reps), **kwargs)


class _OverlapTracker:
    """Counts how many requests are in flight at once, holding each one briefly."""

    def __init__(self, hold_sec: float = 0.02) -> None:
        self.hold_sec = hold_sec
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def handler(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        time.sleep(self.hold_sec)
        with self._lock:
            self.active -= 1
        return httpx.Response(200)


def test_run_user_is_sequential(make_client) -> None:
    tracker = _OverlapTracker(hold_sec=0.005)
    agg = StatsAggregator()
    run_user(make_client(tracker.handler), _config(1, 7), agg, repetitions=7)
    stats = agg.snapshot()
    assert stats.total_requests == 7
    assert stats.successful == 7
    assert tracker.peak == 1


def test_run_user_stops_when_asked(make_client) -> None:
    stop = threading.Event()
    stop.set()
    agg = StatsAggregator()
    run_user(make_client(lambda request: httpx.Response(200)), _config(1, 5), agg, 5, stop)
    assert agg.snapshot().total_requests == 0


@pytest.mark.parametrize("attempt", range(3))
def test_many_users_lose_no_updates(make_client, attempt: int) -> None:
    client = make_client(lambda request: httpx.Response(200, content=b"ok"))
    report = run_stress(_config(50, 50), client=client, echo=lambda line: None)
    assert report.total_requests == 2500
    assert report.successful == 2500
    assert report.exceptions == 0
    assert report.bytes_received == 2500 * 2
    assert report.bytes_sent == 2500 * 50


def test_totals_match_sum_of_buckets(make_client) -> None:
    codes = itertools.cycle([200, 301, 404, 500, 102])
    lock = threading.Lock()

    def handler(request: httpx.Request) -> httpx.Response:
        with lock:
            code = next(codes)
        if code == 102:
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(code)

    report = run_stress(_config(5, 20), client=make_client(handler), echo=lambda line: None)
    assert report.total_requests == 100
    assert report.total_requests == (
        report.successful
        + report.further_action
        + report.user_errors
        + report.server_errors
        + report.exceptions
    )
    assert report.successful == report.further_action == report.user_errors == 20
    assert report.server_errors == report.exceptions == 20


def test_zero_repetitions_reports_empty_latencies(make_client) -> None:
    lines: list[str] = []
    report = run_stress(
        _config(4, 0),
        client=make_client(lambda request: httpx.Response(200)),
        echo=lines.append,
    )
    assert report.total_requests == 0
    assert report.avg_ms is None
    assert report.min_ms is None
    assert report.max_ms is None
    assert " # Average:                     N/A" in lines


def test_zero_users(make_client) -> None:
    report = run_stress(
        _config(0, 10),
        client=make_client(lambda request: httpx.Response(200)),
        echo=lambda line: None,
    )
    assert report.total_requests == 0
    assert report.started is not None and report.ended is not None


def test_connection_refused_counts_exceptions_and_keeps_going(make_client) -> None:
    calls = 0
    lock = threading.Lock()

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        with lock:
            calls += 1
        raise httpx.ConnectError("connection refused", request=request)

    report = run_stress(_config(3, 4), client=make_client(handler), echo=lambda line: None)
    assert calls == 12
    assert report.total_requests == 12
    assert report.exceptions == 12
    assert report.successful == report.user_errors == report.server_errors == 0
    assert report.avg_ms is None


def test_pool_capacity_bounds_concurrent_users(make_client) -> None:
    tracker = _OverlapTracker()
    report = run_stress(
        _config(10, 3, max_workers=2),
        client=make_client(tracker.handler),
        echo=lambda line: None,
    )
    assert report.total_requests == 30
    assert report.successful == 30
    assert tracker.peak == 2


def test_users_run_at_the_same_time(make_client) -> None:
    tracker = _OverlapTracker()
    report = run_stress(_config(10, 3), client=make_client(tracker.handler), echo=lambda line: None)
    assert report.total_requests == 30
    assert tracker.peak > 1
    assert tracker.peak <= 10


def test_crashing_user_does_not_affect_others(make_client, monkeypatch, caplog) -> None:
    calls = itertools.count()
    lock = threading.Lock()

    def flaky_send(client: httpx.Client, config: RunConfig) -> RequestOutcome:
        with lock:
            n = next(calls)
        if n == 0:
            raise RuntimeError("user crashed")
        return RequestOutcome(status_code=200, elapsed_ms=1)

    monkeypatch.setattr(runner, "send_request", flaky_send)
    with caplog.at_level(logging.ERROR, logger="stressi.loadgen.runner"):
        report = run_stress(
            _config(4, 5),
            client=make_client(lambda request: httpx.Response(200)),
            echo=lambda line: None,
        )
    assert report.successful == 15
    assert "Simulated user failed" in caplog.text


def test_banner_and_report_are_echoed(make_client) -> None:
    lines: list[str] = []
    run_stress(_config(2, 3), client=make_client(lambda request: httpx.Response(200)), echo=lines.append)
    assert lines[0] == (
        f" # Spinning up 2 users with 3 requests per user for a total of 6 request against {URL}"
    )
    assert "Responses:" in lines
    assert " # Total Requests:              6" in lines


def test_run_is_saved_to_storage(make_client, tmp_path) -> None:
    storage = Storage(tmp_path / "runs.duckdb")
    report = run_stress(
        _config(2, 2),
        client=make_client(lambda request: httpx.Response(200)),
        storage=storage,
        echo=lambda line: None,
    )
    runs = storage.list_runs()
    assert list(runs["run_id"]) == [report.run_id]
    assert int(runs["total_requests"][0]) == 4


def test_ctrl_c_stops_unbounded_run_with_partial_report(make_client, monkeypatch, caplog) -> None:
    enough = threading.Event()
    calls = itertools.count(1)

    def handler(request: httpx.Request) -> httpx.Response:
        if next(calls) >= 20:
            enough.set()
        return httpx.Response(200)

    class InterruptedPool(ThreadPoolExecutor):
        interrupted = False

        def shutdown(self, wait: bool = True, *, cancel_futures: bool = False) -> None:
            if not InterruptedPool.interrupted:
                InterruptedPool.interrupted = True
                enough.wait(timeout=5)
                raise KeyboardInterrupt
            super().shutdown(wait=wait, cancel_futures=cancel_futures)

    monkeypatch.setattr(runner, "ThreadPoolExecutor", InterruptedPool)
    lines: list[str] = []
    config = RunConfig(url=URL, users=Count.bounded(3), repetitions=Count.unbounded())
    with caplog.at_level(logging.WARNING, logger="stressi.loadgen.runner"):
        report = run_stress(config, client=make_client(handler), echo=lines.append)

    assert "Unbounded run" in caplog.text
    assert report.interrupted
    assert report.total_requests >= 20
    assert report.total_requests == report.successful
    assert report.total_requests == (
        report.successful
        + report.further_action
        + report.user_errors
        + report.server_errors
        + report.exceptions
    )
    assert report.repetitions == MAX_COUNT
    assert any(line.startswith(" # Interrupted:") for line in lines)
