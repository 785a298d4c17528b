from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

import httpx

from stressi.config import RunConfig
from stressi.loadgen.client import build_client, send_request
from stressi.metrics import RunReport, StatsAggregator, build_report, render_report
from stressi.storage import Storage

logger = logging.getLogger(__name__)

Echo = Callable[[str], None]


def _new_run_id() -> str:
    return uuid.uuid4().hex


def run_user(
    client: httpx.Client,
    config: RunConfig,
    aggregator: StatsAggregator,
    repetitions: int,
    stop: threading.Event | None = None,
) -> None:
    """Run one simulated user's repetitions back to back."""
    for _ in range(repetitions):
        if stop is not None and stop.is_set():
            return
        aggregator.count_request()
        outcome = send_request(client, config)
        aggregator.record(outcome)


def run_stress(
    config: RunConfig,
    client: httpx.Client | None = None,
    storage: Storage | None = None,
    echo: Echo = print,
) -> RunReport:
    users = config.users.resolve()
    repetitions = config.repetitions.resolve()
    run_id = _new_run_id()

    echo(
        f" # Spinning up {users} users with {repetitions} requests per user "
        f"for a total of {config.total_requests()} request against {config.url}"
    )
    echo("")
    if config.users.is_unbounded or config.repetitions.is_unbounded:
        logger.warning("Unbounded run, press Ctrl-C to stop it")

    aggregator = StatsAggregator()
    owns_client = client is None
    http = client if client is not None else build_client(config)
    try:
        aggregator.mark_started()
        interrupted = _fan_out(http, config, aggregator, users, repetitions)
        aggregator.mark_ended()
    finally:
        if owns_client:
            http.close()

    report = build_report(
        run_id,
        config.url,
        config.method,
        aggregator.snapshot(),
        users,
        repetitions,
        interrupted=interrupted,
    )
    if config.verbose:
        echo("")
    for line in render_report(report):
        echo(line)
    if storage is not None:
        storage.save_report(report, config)
        logger.info("Saved run %s to %s", run_id, storage.db_path)
    return report


def _fan_out(
    client: httpx.Client,
    config: RunConfig,
    aggregator: StatsAggregator,
    users: int,
    repetitions: int,
) -> bool:
    """Run every user on the thread pool and wait for all of them.

    Returns ``True`` if the run was cut short by Ctrl-C.
    """
    pool_size = max(1, min(users, config.max_workers))
    slots = threading.BoundedSemaphore(pool_size)
    stop = threading.Event()
    logger.debug("Starting %d users on a pool of %d threads", users, pool_size)

    def _on_done(future: Future[None]) -> None:
        slots.release()
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Simulated user failed", exc_info=exc)

    pool = ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="stressi-user")
    try:
        for _ in range(users):
            slots.acquire()
            future = pool.submit(run_user, client, config, aggregator, repetitions, stop)
            future.add_done_callback(_on_done)
        pool.shutdown(wait=True)
    except KeyboardInterrupt:
        logger.warning("Interrupted, waiting for in-flight requests to finish")
        stop.set()
        pool.shutdown(wait=True, cancel_futures=True)
        return True
    return False
