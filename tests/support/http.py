"""HTTP fakes built on ``httpx.MockTransport``."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from jellysync.adapters.http_resilience import ResilientClient
from jellysync.config.http_resilience import ResilienceConfig

if TYPE_CHECKING:
    from collections.abc import Callable

    from jellysync.runtime.instance import ClientFactory

type Handler = Callable[[httpx.Request], httpx.Response]


def make_client(handler: Handler, config: ResilienceConfig | None = None) -> ResilientClient:
    return ResilientClient(
        config or ResilienceConfig(name="test"),
        transport=httpx.MockTransport(handler),
    )


def make_client_factory(handler: Handler) -> ClientFactory:
    def factory(config: ResilienceConfig) -> ResilientClient:
        return make_client(handler, config)

    return factory


class SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that only remembers the requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def status_sequence(*codes: int, body: object = None) -> Handler:
    """Answer successive requests with ``codes``; the last code repeats."""

    remaining = list(codes)

    def handler(request: httpx.Request) -> httpx.Response:
        _ = request
        code = remaining.pop(0) if len(remaining) > 1 else remaining[0]
        return httpx.Response(code, json=body)

    return handler
