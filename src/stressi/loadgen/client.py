from __future__ import annotations

import logging
import time

import httpx

from stressi.config import DEFAULT_METHOD, DEFAULT_TIMEOUT_SEC, RunConfig
from stressi.metrics import RequestOutcome

logger = logging.getLogger(__name__)

BASE_REQUEST_BYTES = 50
TIMEOUT_BYTES = 12
USER_AGENT_BYTES = 12
HEADER_OVERHEAD_BYTES = 5


def build_client(config: RunConfig, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    """Client shared by every user thread.

    Redirects are not followed so 3xx responses can be counted, and no
    connection is kept alive between requests.
    """
    return httpx.Client(
        follow_redirects=False,
        timeout=DEFAULT_TIMEOUT_SEC,
        limits=httpx.Limits(max_connections=None, max_keepalive_connections=0),
        transport=transport,
    )


def estimate_bytes_sent(config: RunConfig) -> int:
    size = BASE_REQUEST_BYTES
    if config.timeout_ms is not None:
        size += TIMEOUT_BYTES
    if config.user_agent is not None:
        size += USER_AGENT_BYTES + len(config.user_agent)
    for name, value in config.headers.items():
        size += len(name) + len(value) + HEADER_OVERHEAD_BYTES
    return size


def _request_headers(config: RunConfig) -> dict[str, str]:
    headers = {"Connection": "close"}
    if config.user_agent is not None:
        headers["User-Agent"] = config.user_agent
    headers.update(config.headers)
    return headers


def _content_length(resp: httpx.Response) -> int:
    raw = resp.headers.get("content-length")
    if raw is None:
        return -1
    try:
        return int(raw)
    except ValueError:
        return -1


def _echo_verbose(config: RunConfig, line: str) -> None:
    if config.verbose:
        print(f" > {line}")


def send_request(client: httpx.Client, config: RunConfig) -> RequestOutcome:
    """Perform one exchange against the configured URL.

    Never raises: transport failures and unexpected errors come back as a
    failed outcome.
    """
    start = time.perf_counter()
    try:
        kwargs: dict[str, float] = {}
        if config.timeout_sec is not None:
            kwargs["timeout"] = config.timeout_sec
        resp = client.request(
            config.method or DEFAULT_METHOD,
            config.url,
            headers=_request_headers(config),
            **kwargs,
        )
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        _echo_verbose(config, f"{resp.status_code} {resp.reason_phrase}")
        return RequestOutcome(
            status_code=resp.status_code,
            elapsed_ms=elapsed_ms,
            bytes_sent=estimate_bytes_sent(config),
            bytes_received=_content_length(resp),
        )
    except httpx.HTTPStatusError as exc:
        resp = exc.response
        _echo_verbose(config, f"{resp.status_code} {resp.reason_phrase}")
        return RequestOutcome(status_code=resp.status_code)
    except httpx.HTTPError as exc:
        logger.debug("Request to %s failed: %r", config.url, exc)
        _echo_verbose(config, f"[ERROR] {exc}")
        return RequestOutcome(status_code=None, error=str(exc))
    except Exception as exc:
        logger.debug("Unexpected failure requesting %s", config.url, exc_info=True)
        _echo_verbose(config, f"[ERROR] {exc}")
        return RequestOutcome(status_code=None, error=str(exc))
