from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, replace
from logging import getLogger
from typing import TYPE_CHECKING, Any, TypedDict

import httpx
from aiolimiter import AsyncLimiter

from jellysync.config.http_resilience import BackoffSchedule, ResilienceConfig
from jellysync.domain.errors import SyncExternalRequestError, SyncRateLimit

if TYPE_CHECKING:
    from types import TracebackType

    from httpx._types import TimeoutTypes

log = getLogger(__name__)

type Sleep = Callable[[float], Awaitable[None]]


@dataclass(slots=True, frozen=True)
class HttpRequest:
    """A single outbound call, as integrations describe it."""

    method: str
    url: str
    base_url: str | None = None
    params: Mapping[str, Any] | None = None
    headers: Mapping[str, str] = field(default_factory=dict[str, str])
    json: Any = None
    data: Mapping[str, Any] | None = None
    timeout: float | None = None

    @property
    def full_url(self) -> str:
        if self.base_url is None:
            return self.url
        return f"{self.base_url.rstrip('/')}/{self.url.lstrip('/')}"

    def with_header(self, name: str, value: str) -> HttpRequest:
        return replace(self, headers={**self.headers, name: value})


@dataclass(slots=True, frozen=True)
class HttpResult:
    code: int
    body: Any = None


class AsyncClientOptions(TypedDict, total=False):
    base_url: str
    timeout: TimeoutTypes
    headers: dict[str, str]
    transport: httpx.AsyncBaseTransport


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text


class ResilientClient:
    """Rate-limited ``httpx.AsyncClient`` wrapper; retries live in :func:`http_request`."""

    def __init__(
        self,
        config: ResilienceConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._limiter: AsyncLimiter | None = (
            AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
            if config.ratelimit
            else None
        )

        client_kwargs: AsyncClientOptions = {"timeout": config.timeout_seconds}
        if config.base_url is not None:
            client_kwargs["base_url"] = config.base_url
        if config.default_headers:
            client_kwargs["headers"] = dict(config.default_headers)
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.AsyncClient(**client_kwargs)

    @property
    def backoff(self) -> BackoffSchedule:
        return self.config.backoff

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send(self, request: HttpRequest) -> HttpResult:
        async def do_request() -> httpx.Response:
            return await self._client.request(
                request.method,
                request.full_url,
                params=request.params,
                headers=dict(request.headers),
                json=request.json,
                data=request.data,
                timeout=(
                    request.timeout
                    if request.timeout is not None
                    else self.config.timeout_seconds
                ),
            )

        response = await self._send(do_request)
        return HttpResult(code=response.status_code, body=_decode_body(response))

    async def _send(self, func: Callable[[], Awaitable[httpx.Response]]) -> httpx.Response:
        if self._limiter is None:
            return await func()
        async with self._limiter:
            return await func()


async def http_request(
    client: ResilientClient,
    request: HttpRequest,
    *,
    retries: int | None = None,
    schedule: BackoffSchedule | None = None,
    sleep: Sleep = asyncio.sleep,
) -> HttpResult:
    """Perform ``request``, waiting and retrying on server errors and rate limiting.

    At most ``retries`` extra attempts are made (``client.backoff.retries`` by
    default). ``schedule`` replaces the client's backoff schedule for this
    call. Transport errors are not retried. Any status the backoff schedule
    does not cover, 4xx included, is returned to the caller as-is.
    """

    schedule = schedule or client.backoff
    remaining = schedule.retries if retries is None else retries
    url = request.full_url

    while True:
        try:
            result = await client.send(request)
        except httpx.HTTPError as exc:
            raise SyncExternalRequestError(
                f"Request to {url} failed: {exc}",
                url=url,
            ) from exc

        delay = schedule.delay_for(result.code)
        if delay is None:
            return result

        if remaining <= 0:
            if schedule.is_server_error(result.code):
                raise SyncExternalRequestError(
                    f"External service responded with {result.code} to {url}",
                    url=url,
                    status=result.code,
                    body=result.body,
                )
            raise SyncRateLimit(
                f"External service rate limit with {result.code} to {url}",
                url=url,
                status=result.code,
                body=result.body,
            )

        log.warning(
            "%s %s answered %d, retrying in %.1fs (%d left)",
            request.method,
            url,
            result.code,
            delay,
            remaining,
        )
        await sleep(delay)
        remaining -= 1


__all__ = ["HttpRequest", "HttpResult", "ResilientClient", "Sleep", "http_request"]
