"""Pick the user whose OAuth credential signs an outbound request, and refresh it."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Any, cast

from pydantic import ValidationError

from jellysync.adapters.http_resilience import http_request
from jellysync.adapters.oauth import OAuthCredential, refresh_access_token
from jellysync.domain.errors import (
    SyncInvalidArg,
    SyncNoActor,
    SyncOAuthError,
    SyncOAuthNoUserError,
)
from jellysync.domain.types import UpsertOptions

if TYPE_CHECKING:
    from jellysync.adapters.http_resilience import HttpRequest, HttpResult, ResilientClient
    from jellysync.config.integrations import IntegrationToken
    from jellysync.domain.ports.integration import Integration
    from jellysync.domain.ports.storage import ContractLookup, SyncContext
    from jellysync.domain.types import Contract

log = getLogger(__name__)

UNAUTHORIZED = 401


def get_credential(user: Contract, provider: str) -> Contract | None:
    """Return ``data.oauth[provider]`` of a user contract, if present."""

    oauth = (user.get("data") or {}).get("oauth") or {}
    if not isinstance(oauth, dict) or provider not in oauth:
        return None
    return cast(dict[str, Any], oauth)[provider]


def has_credential(user: Contract, provider: str) -> bool:
    oauth = (user.get("data") or {}).get("oauth") or {}
    return isinstance(oauth, dict) and provider in oauth


async def get_oauth_user(
    store: ContractLookup,
    provider: str,
    actor: str,
    *,
    default_user: str | None,
) -> Contract:
    """Return the user contract whose credential should be used for ``actor``.

    The actor's own credential wins. Otherwise the configured default user acts
    on its behalf, provided that user has linked ``provider``.
    """

    user = await store.get_element_by_id(actor)
    if user is None:
        raise SyncNoActor(f"No such actor: {actor}")
    if has_credential(user, provider):
        return user

    if not default_user:
        raise SyncOAuthNoUserError(
            f"No default integrations actor to act as {actor} for {provider}"
        )

    fallback = await store.get_element_by_slug(f"user-{default_user}@latest")
    if fallback is None:
        raise SyncNoActor(f"No such actor: {default_user}")
    if not has_credential(fallback, provider):
        raise SyncOAuthNoUserError(f"Default actor {default_user} does not support {provider}")
    return fallback


def with_credential(user: Contract, provider: str, credential: OAuthCredential) -> Contract:
    """Copy of ``user`` with ``data.oauth[provider]`` replaced by ``credential``."""

    updated = copy.deepcopy(user)
    data = updated.setdefault("data", {})
    oauth = data.get("oauth")
    if not isinstance(oauth, dict):
        oauth = {}
        data["oauth"] = oauth
    cast(dict[str, Any], oauth)[provider] = credential.model_dump(exclude_none=True)
    return updated


@dataclass(slots=True)
class OAuthRequester:
    """The ``request`` capability handed to integrations.

    Injects the bearer token of the acting (or default) user and, when the
    provider answers 401, refreshes the token once, stores it on that user and
    repeats the call. Concurrent refreshes for the same user are not
    coordinated: if two requests refresh at the same time, only the rotation
    stored last survives.
    """

    integration: type[Integration]
    token: IntegrationToken
    context: SyncContext
    client: ResilientClient
    provider: str
    origin_url: str | None = None
    default_user: str | None = None

    async def __call__(self, actor: str | None, request: HttpRequest) -> HttpResult:
        if not actor:
            raise SyncNoActor("Missing request actor")

        base_url = self.integration.OAUTH_BASE_URL
        if not base_url or not self.token.has_app_credentials:
            return await http_request(self.client, request)

        if not self.origin_url:
            raise SyncOAuthError("Missing OAuth origin URL")

        user = await get_oauth_user(
            self.context, self.provider, actor, default_user=self.default_user
        )
        log.info("Sync OAuth user %s for %s", user.get("slug"), self.provider)

        stored = get_credential(user, self.provider)
        credential: OAuthCredential | None = None
        if stored:
            try:
                credential = OAuthCredential.model_validate(stored)
            except ValidationError as exc:
                raise SyncInvalidArg(
                    f"Stored {self.provider} credential of {user.get('slug')} is malformed"
                ) from exc
            request = request.with_header("Authorization", f"Bearer {credential.access_token}")

        result = await http_request(self.client, request)
        if result.code != UNAUTHORIZED or credential is None:
            return result

        log.info("Refreshing OAuth token for %s at %s", user.get("slug"), self.provider)
        refreshed = await refresh_access_token(
            self.client,
            base_url,
            credential,
            app_id=self.token.app_id,
            app_secret=self.token.app_secret,
            redirect_uri=self.origin_url,
        )
        updated = with_credential(user, self.provider, refreshed)
        await self.context.upsert_element(
            updated.get("type"),
            {key: value for key, value in updated.items() if key != "type"},
            UpsertOptions(timestamp=datetime.now(UTC)),
        )

        retried = request.with_header("Authorization", f"Bearer {refreshed.access_token}")
        return await http_request(self.client, retried)


__all__ = [
    "OAuthRequester",
    "get_credential",
    "get_oauth_user",
    "has_credential",
    "with_credential",
]
