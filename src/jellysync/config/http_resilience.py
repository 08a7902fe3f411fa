"""Configuration types for resilient HTTP clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_RETRIES: Final[int] = 30
SERVER_ERROR_DELAY_SECONDS: Final[float] = 2.0
RATE_LIMIT_DELAY_SECONDS: Final[float] = 5.0


@dataclass(slots=True, frozen=True)
class BackoffSchedule:
    """Fixed per-status-class wait times between attempts of one request.

    Server errors (5xx) wait ``server_error_delay`` seconds, rate limiting and
    request timeouts wait ``rate_limit_delay`` seconds. Every other status is
    final and handed back to the caller untouched.
    """

    retries: int = DEFAULT_RETRIES
    server_error_delay: float = SERVER_ERROR_DELAY_SECONDS
    rate_limit_delay: float = RATE_LIMIT_DELAY_SECONDS
    rate_limit_statuses: frozenset[int] = field(default_factory=lambda: frozenset({408, 429}))

    def delay_for(self, status_code: int) -> float | None:
        if status_code >= 500:  # noqa: PLR2004
            return self.server_error_delay
        if status_code in self.rate_limit_statuses:
            return self.rate_limit_delay
        return None

    def is_server_error(self, status_code: int) -> bool:
        return status_code >= 500  # noqa: PLR2004


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    name: str
    base_url: str | None = None
    timeout_seconds: float = 30.0
    backoff: BackoffSchedule = field(default_factory=BackoffSchedule)
    ratelimit: RateLimit | None = None
    default_headers: Mapping[str, str] | None = None
