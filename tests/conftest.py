from __future__ import annotations

from typing import Callable, Iterator

import httpx
import pytest

from stressi.config import RunConfig
from stressi.loadgen.client import build_client

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def make_client() -> Iterator[Callable[..., httpx.Client]]:
    clients: list[httpx.Client] = []

    def factory(handler: Handler, config: RunConfig | None = None) -> httpx.Client:
        cfg = config or RunConfig(url="http://test.local/")
        client = build_client(cfg, transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.close()
