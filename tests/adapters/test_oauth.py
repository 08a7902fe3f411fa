from __future__ import annotations

import httpx
import pytest

from jellysync.adapters.oauth import (
    OAuthCredential,
    OAuthInvalidOption,
    OAuthUnsuccessfulResponse,
    get_access_token,
    get_authorize_url,
    oauth_post,
    refresh_access_token,
)
from jellysync.domain.errors import SyncExternalRequestError
from tests.support.http import SleepRecorder, make_client

BASE_URL = "https://api.balena-cloud.com"
REDIRECT_URI = "https://jel.ly.fish/oauth/balena"
APP_ID = "xxxxxxxxxxxx"
APP_SECRET = "yyyyyyyy"
REFRESH_TOKEN = "IwOGYzYTlmM2YxOTQ5MGE3YmNmMDFkNTVk"


def _form(request: httpx.Request) -> dict[str, str]:
    return dict(httpx.QueryParams(request.content.decode()))


def token_endpoint(request: httpx.Request) -> httpx.Response:
    assert request.method == "POST"
    assert request.url.path == "/oauth/token"
    form = _form(request)
    if form == {
        "grant_type": "authorization_code",
        "client_id": APP_ID,
        "client_secret": APP_SECRET,
        "redirect_uri": REDIRECT_URI,
        "code": "123456",
    }:
        return httpx.Response(
            200,
            json={
                "access_token": "MTQ0NjJkZmQ5OTM2NDE1ZTZjNGZmZjI3",
                "token_type": "bearer",
                "expires_in": 3600,
                "refresh_token": REFRESH_TOKEN,
                "scope": "create",
            },
        )
    if form == {
        "grant_type": "refresh_token",
        "client_id": APP_ID,
        "client_secret": APP_SECRET,
        "redirect_uri": REDIRECT_URI,
        "refresh_token": REFRESH_TOKEN,
    }:
        return httpx.Response(
            200,
            json={
                "access_token": "KSTWMqidua67hjM2NDE1ZTZjNGZmZjI3",
                "token_type": "bearer",
                "expires_in": 3600,
                "refresh_token": "POolsdYTlmM2YxOTQ5MGE3YmNmMDFkNTVk",
                "scope": "create",
            },
        )
    return httpx.Response(
        400, json={"error": "invalid_request", "error_description": "Something went wrong"}
    )


def test_authorize_url_without_state() -> None:
    url = httpx.URL(
        get_authorize_url(BASE_URL, ["foo"], None, app_id="xxxxxxxxxx", redirect_uri=REDIRECT_URI)
    )

    assert url.host == "api.balena-cloud.com"
    assert url.path == "/oauth/authorize"
    assert list(url.params.multi_items()) == [
        ("response_type", "code"),
        ("client_id", "xxxxxxxxxx"),
        ("redirect_uri", REDIRECT_URI),
        ("scope", "foo"),
    ]


def test_authorize_url_joins_scopes_and_encodes_state() -> None:
    url = httpx.URL(
        get_authorize_url(
            BASE_URL,
            ["read", "write"],
            {"slug": "user-jellyfish"},
            app_id=APP_ID,
            redirect_uri=REDIRECT_URI,
        )
    )

    assert url.params["scope"] == "read write"
    assert url.params["state"] == '{"slug": "user-jellyfish"}'


def test_authorize_url_keeps_string_state() -> None:
    url = httpx.URL(
        get_authorize_url(BASE_URL, ["foo"], "user-jellyfish", app_id=APP_ID, redirect_uri="x")
    )

    assert url.params["state"] == "user-jellyfish"


@pytest.mark.parametrize(
    ("app_id", "redirect_uri", "scopes"),
    [
        (None, REDIRECT_URI, ["foo"]),
        (APP_ID, None, ["foo"]),
        (APP_ID, REDIRECT_URI, []),
    ],
)
def test_authorize_url_requires_options(
    app_id: str | None, redirect_uri: str | None, scopes: list[str]
) -> None:
    with pytest.raises(OAuthInvalidOption):
        get_authorize_url(BASE_URL, scopes, None, app_id=app_id, redirect_uri=redirect_uri)


@pytest.mark.asyncio
async def test_get_access_token_exchanges_code() -> None:
    async with make_client(token_endpoint) as client:
        credential = await get_access_token(
            client,
            BASE_URL,
            "123456",
            app_id=APP_ID,
            app_secret=APP_SECRET,
            redirect_uri=REDIRECT_URI,
        )

    assert credential.access_token == "MTQ0NjJkZmQ5OTM2NDE1ZTZjNGZmZjI3"
    assert credential.refresh_token == REFRESH_TOKEN
    assert credential.expires_in == 3600


@pytest.mark.asyncio
async def test_get_access_token_rejects_unknown_code() -> None:
    async with make_client(token_endpoint) as client:
        with pytest.raises(OAuthUnsuccessfulResponse) as exc:
            await get_access_token(
                client,
                BASE_URL,
                "000000",
                app_id=APP_ID,
                app_secret=APP_SECRET,
                redirect_uri=REDIRECT_URI,
            )

    assert "invalid_request" in str(exc.value)


@pytest.mark.asyncio
async def test_refresh_access_token() -> None:
    credential = OAuthCredential(access_token="old", refresh_token=REFRESH_TOKEN)

    async with make_client(token_endpoint) as client:
        refreshed = await refresh_access_token(
            client,
            BASE_URL,
            credential,
            app_id=APP_ID,
            app_secret=APP_SECRET,
            redirect_uri=REDIRECT_URI,
        )

    assert refreshed.access_token == "KSTWMqidua67hjM2NDE1ZTZjNGZmZjI3"
    assert refreshed.refresh_token == "POolsdYTlmM2YxOTQ5MGE3YmNmMDFkNTVk"


@pytest.mark.asyncio
async def test_refresh_requires_refresh_token_and_app_credentials() -> None:
    async with make_client(token_endpoint) as client:
        with pytest.raises(OAuthInvalidOption):
            await refresh_access_token(
                client,
                BASE_URL,
                OAuthCredential(access_token="old"),
                app_id=APP_ID,
                app_secret=APP_SECRET,
                redirect_uri=REDIRECT_URI,
            )
        with pytest.raises(OAuthInvalidOption):
            await refresh_access_token(
                client,
                BASE_URL,
                OAuthCredential(access_token="old", refresh_token=REFRESH_TOKEN),
                app_id=None,
                app_secret=APP_SECRET,
                redirect_uri=REDIRECT_URI,
            )


@pytest.mark.asyncio
async def test_token_endpoint_server_errors_are_retried_ten_times() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(503)

    sleep = SleepRecorder()
    async with make_client(handler) as client:
        with pytest.raises(SyncExternalRequestError):
            await oauth_post(client, BASE_URL, {"grant_type": "refresh_token"}, sleep=sleep)

    assert len(calls) == 11
    assert sleep.delays == [2.0] * 10
