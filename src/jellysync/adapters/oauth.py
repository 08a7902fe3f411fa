"""OAuth 2.0 authorization-code helpers shared by OAuth-capable integrations."""

from __future__ import annotations

import asyncio
import json
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from jellysync.adapters.http_resilience import HttpRequest, http_request
from jellysync.config.http_resilience import BackoffSchedule

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from jellysync.adapters.http_resilience import ResilientClient, Sleep

log = getLogger(__name__)

AUTHORIZE_PATH: Final[str] = "/oauth/authorize"
TOKEN_PATH: Final[str] = "/oauth/token"
OAUTH_RETRIES: Final[int] = 10
OAUTH_BACKOFF: Final[BackoffSchedule] = BackoffSchedule(
    retries=OAUTH_RETRIES,
    rate_limit_statuses=frozenset(),
)


class OAuthError(RuntimeError):
    """Base class for failures of the OAuth helpers."""


class OAuthRequestError(OAuthError):
    """The token endpoint failed or answered with an unexpected status."""


class OAuthInvalidOption(OAuthError):
    """A required OAuth option (app id, redirect URI, scopes, refresh token) is missing."""


class OAuthUnsuccessfulResponse(OAuthError):
    """The token endpoint rejected the request (4xx)."""


class OAuthCredential(BaseModel):
    """Token set stored under ``data.oauth[<provider>]`` of a user contract."""

    model_config = ConfigDict(extra="allow")

    access_token: str
    token_type: str | None = None
    expires_in: int | None = None
    refresh_token: str | None = None
    scope: str | None = None


def get_authorize_url(
    base_url: str,
    scopes: Sequence[str],
    state: Any = None,
    *,
    app_id: str | None,
    redirect_uri: str | None,
) -> str:
    """Return the provider URL a user is sent to in order to grant access."""

    if not app_id:
        raise OAuthInvalidOption("Missing app_id")
    if not redirect_uri:
        raise OAuthInvalidOption("Missing redirect_uri")
    if not scopes:
        raise OAuthInvalidOption("Missing or invalid scopes")

    params: list[tuple[str, str]] = [
        ("response_type", "code"),
        ("client_id", app_id),
        ("redirect_uri", redirect_uri),
        ("scope", " ".join(scopes)),
    ]
    if state:
        params.append(("state", state if isinstance(state, str) else json.dumps(state)))

    url = httpx.URL(base_url).join(AUTHORIZE_PATH)
    return str(url.copy_with(params=httpx.QueryParams(params)))


def _describe(body: Any) -> str:
    if isinstance(body, str):
        return body
    return json.dumps(body, indent=2, default=str)


async def oauth_post(
    client: ResilientClient,
    base_url: str,
    data: Mapping[str, str],
    *,
    path: str = TOKEN_PATH,
    sleep: Sleep = asyncio.sleep,
) -> OAuthCredential:
    """POST a form to the token endpoint and validate the returned credential."""

    request = HttpRequest(
        method="POST",
        url=path,
        base_url=base_url,
        data=dict(data),
        headers={"Accept": "application/json"},
    )
    result = await http_request(client, request, schedule=OAUTH_BACKOFF, sleep=sleep)

    target = f"POST {request.full_url}"
    if result.code >= 500:  # noqa: PLR2004
        raise OAuthRequestError(f"{target} responded with {result.code}: {_describe(result.body)}")
    if result.code >= 400:  # noqa: PLR2004
        raise OAuthUnsuccessfulResponse(
            f"{target} responded with {result.code}: {_describe(result.body)}"
        )
    if result.code != 200:  # noqa: PLR2004
        raise OAuthRequestError(f"{target} responded with {result.code}: {_describe(result.body)}")

    try:
        return OAuthCredential.model_validate(result.body)
    except ValidationError as exc:
        raise OAuthRequestError(f"{target} returned an invalid credential") from exc


async def get_access_token(
    client: ResilientClient,
    base_url: str,
    code: str,
    *,
    app_id: str | None,
    app_secret: str | None,
    redirect_uri: str | None,
) -> OAuthCredential:
    """Exchange a short-lived authorization code for an access token."""

    if not app_id or not app_secret or not redirect_uri:
        raise OAuthInvalidOption("app_id, app_secret and redirect_uri are required")
    log.info("Exchanging OAuth code at %s", base_url)
    return await oauth_post(
        client,
        base_url,
        {
            "grant_type": "authorization_code",
            "client_id": app_id,
            "client_secret": app_secret,
            "redirect_uri": redirect_uri,
            "code": code,
        },
    )


async def refresh_access_token(
    client: ResilientClient,
    base_url: str,
    credential: OAuthCredential,
    *,
    app_id: str | None,
    app_secret: str | None,
    redirect_uri: str | None,
) -> OAuthCredential:
    """Trade ``credential.refresh_token`` for a new token set."""

    if not app_id or not app_secret or not redirect_uri:
        raise OAuthInvalidOption("app_id, app_secret and redirect_uri are required")
    if not credential.refresh_token:
        raise OAuthInvalidOption("Credential has no refresh_token")
    return await oauth_post(
        client,
        base_url,
        {
            "grant_type": "refresh_token",
            "client_id": app_id,
            "client_secret": app_secret,
            "redirect_uri": redirect_uri,
            "refresh_token": credential.refresh_token,
        },
    )


__all__ = [
    "OAUTH_BACKOFF",
    "OAuthCredential",
    "OAuthError",
    "OAuthInvalidOption",
    "OAuthRequestError",
    "OAuthUnsuccessfulResponse",
    "get_access_token",
    "get_authorize_url",
    "oauth_post",
    "refresh_access_token",
]
