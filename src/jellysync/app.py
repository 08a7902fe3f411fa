"""Application entry points used by workers and the HTTP API."""

from __future__ import annotations

import copy
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Any

from jellysync.adapters.integrations import INTEGRATIONS
from jellysync.adapters.oauth import OAuthCredential, get_access_token, get_authorize_url
from jellysync.config.http_resilience import ResilienceConfig
from jellysync.domain.errors import (
    SyncNoCompatibleIntegration,
    SyncNoIntegrationAppCredentials,
    SyncNoMatchingUser,
)
from jellysync.domain.types import UpsertOptions
from jellysync.runtime.instance import RunOptions, default_client_factory, run
from jellysync.runtime.operations import mirror_contract, translate_external_event

if TYPE_CHECKING:
    from collections.abc import Mapping

    from jellysync.adapters.integrations import IntegrationRegistry
    from jellysync.config.integrations import IntegrationToken
    from jellysync.domain.ports.integration import Integration
    from jellysync.domain.ports.storage import SyncContext
    from jellysync.domain.types import Contract
    from jellysync.runtime.instance import ClientFactory

log = getLogger(__name__)


def _registry(registry: IntegrationRegistry | None) -> IntegrationRegistry:
    return registry if registry is not None else INTEGRATIONS


def oauth_integrations(registry: IntegrationRegistry | None = None) -> list[str]:
    """Providers users can link their account with."""

    return _registry(registry).oauth_integrations()


def get_associate_url(
    provider: str,
    token: IntegrationToken | None,
    slug: str,
    *,
    origin: str,
    registry: IntegrationRegistry | None = None,
) -> str | None:
    """Return the URL that lets the user ``slug`` link ``provider``, if it supports OAuth."""

    integration = _registry(registry).get(provider)
    if integration is None or token is None or not token.app_id:
        return None
    if not integration.oauth_capable() or integration.OAUTH_BASE_URL is None:
        return None
    return get_authorize_url(
        integration.OAUTH_BASE_URL,
        integration.OAUTH_SCOPES,
        slug,
        app_id=token.app_id,
        redirect_uri=origin,
    )


async def authorize(
    provider: str,
    token: IntegrationToken | None,
    *,
    code: str,
    origin: str,
    registry: IntegrationRegistry | None = None,
    client_factory: ClientFactory | None = None,
) -> OAuthCredential:
    """Exchange the code returned to ``origin`` for the user's credential."""

    integration = _registry(registry).require(provider)
    if token is None or not token.has_app_credentials:
        raise SyncNoIntegrationAppCredentials(
            f"No application credentials found for integration: {provider}"
        )
    if integration.OAUTH_BASE_URL is None:
        raise SyncNoCompatibleIntegration(f"Integration {provider} does not support OAuth")

    factory = client_factory or default_client_factory
    async with factory(ResilienceConfig(name=f"{provider}-oauth")) as client:
        return await get_access_token(
            client,
            integration.OAUTH_BASE_URL,
            code,
            app_id=token.app_id,
            app_secret=token.app_secret,
            redirect_uri=origin,
        )


async def whoami(
    context: SyncContext,
    provider: str,
    credentials: Mapping[str, Any],
    *,
    registry: IntegrationRegistry | None = None,
) -> Any:
    """Return the provider's view of the user owning ``credentials``."""

    integration = _registry(registry).require(provider)
    return await integration.whoami(context, credentials)


async def match(
    context: SyncContext,
    provider: str,
    external_user: Any,
    *,
    slug: str,
    registry: IntegrationRegistry | None = None,
) -> Contract | None:
    """Return the local user matching ``external_user``; it must be ``slug``."""

    integration = _registry(registry).require(provider)
    user = await integration.match(context, external_user, slug=f"{slug}@latest")
    if user is not None and user.get("slug") != slug:
        raise SyncNoMatchingUser(
            f"Could not find matching user for provider: {provider}, "
            f"slugs do not match {user.get('slug')} != {slug}"
        )
    return user


async def get_external_user_sync_event_data(
    context: SyncContext,
    provider: str,
    external_user: Any,
    *,
    registry: IntegrationRegistry | None = None,
) -> Contract:
    integration = _registry(registry).require(provider)
    event = await integration.get_external_user_sync_event_data(context, external_user)
    if not event:
        raise SyncNoMatchingUser("Could not generate external user sync event")
    return event


async def associate(
    provider: str,
    user: Contract,
    credentials: OAuthCredential | Mapping[str, Any],
    context: SyncContext,
    *,
    registry: IntegrationRegistry | None = None,
) -> Contract | None:
    """Store ``credentials`` on ``user`` under ``data.oauth[provider]``."""

    _registry(registry).require(provider)
    payload = (
        credentials.model_dump(exclude_none=True)
        if isinstance(credentials, OAuthCredential)
        else dict(credentials)
    )
    updated = copy.deepcopy(user)
    data = updated.setdefault("data", {})
    data.setdefault("oauth", {})[provider] = payload
    return await context.upsert_element(
        updated.get("type"),
        {key: value for key, value in updated.items() if key != "type"},
        UpsertOptions(timestamp=datetime.now(UTC)),
    )


def is_valid_event(
    provider: str,
    token: IntegrationToken | None,
    raw_event: str | bytes,
    headers: Mapping[str, str],
    *,
    registry: IntegrationRegistry | None = None,
) -> bool:
    """Whether an incoming webhook for ``provider`` should be accepted."""

    integration = _registry(registry).get(provider)
    if integration is None or token is None:
        return False
    return integration.is_event_valid(token, raw_event, headers)


def _resolve_for_run(
    action: str,
    provider: str,
    token: IntegrationToken | None,
    registry: IntegrationRegistry | None,
) -> type[Integration] | None:
    if token is None:
        log.warning("Ignoring %s as there is no token for %s", action, provider)
        return None
    integration = _registry(registry).get(provider)
    if integration is None:
        log.warning("Ignoring %s as there is no compatible integration for %s", action, provider)
    return integration


def _run_options(
    context: SyncContext,
    provider: str,
    *,
    actor: str | None,
    origin_url: str | None,
    default_user: str | None,
    client_factory: ClientFactory | None,
) -> RunOptions:
    return RunOptions(
        context=context,
        provider=provider,
        actor=actor,
        origin_url=origin_url,
        default_user=default_user,
        client_factory=client_factory or default_client_factory,
    )


async def translate(
    provider: str,
    token: IntegrationToken | None,
    event: Contract,
    context: SyncContext,
    *,
    actor: str | None,
    origin_url: str | None = None,
    default_user: str | None = None,
    registry: IntegrationRegistry | None = None,
    client_factory: ClientFactory | None = None,
) -> list[Contract]:
    """Translate an external event into local contracts."""

    integration = _resolve_for_run("translate", provider, token, registry)
    if integration is None or token is None:
        return []

    log.info("Translating external event %s (%s)", event.get("slug"), provider)
    contracts = await translate_external_event(
        integration,
        token,
        event,
        _run_options(
            context,
            provider,
            actor=actor,
            origin_url=origin_url,
            default_user=default_user,
            client_factory=client_factory,
        ),
    )
    log.info(
        "Translated external event into %s",
        ", ".join(str(contract.get("slug")) for contract in contracts) or "nothing",
    )
    return contracts


async def mirror(
    provider: str,
    token: IntegrationToken | None,
    contract: Contract,
    context: SyncContext,
    *,
    actor: str | None,
    origin_url: str | None = None,
    default_user: str | None = None,
    registry: IntegrationRegistry | None = None,
    client_factory: ClientFactory | None = None,
) -> list[Contract]:
    """Mirror a local contract to ``provider``."""

    integration = _resolve_for_run("mirror", provider, token, registry)
    if integration is None or token is None:
        return []

    return await mirror_contract(
        integration,
        token,
        contract,
        _run_options(
            context,
            provider,
            actor=actor,
            origin_url=origin_url,
            default_user=default_user,
            client_factory=client_factory,
        ),
    )


async def get_file(
    provider: str,
    token: IntegrationToken | None,
    file_id: str,
    context: SyncContext,
    *,
    actor: str | None,
    origin_url: str | None = None,
    default_user: str | None = None,
    registry: IntegrationRegistry | None = None,
    client_factory: ClientFactory | None = None,
) -> bytes | None:
    """Fetch a file stored at ``provider``."""

    integration = _resolve_for_run("file fetch", provider, token, registry)
    if integration is None or token is None:
        return None

    log.info("Retrieving external file %s from %s", file_id, provider)

    async def fetch(instance: Integration) -> bytes | None:
        return await instance.get_file(file_id)

    return await run(
        integration,
        token,
        fetch,
        _run_options(
            context,
            provider,
            actor=actor,
            origin_url=origin_url,
            default_user=default_user,
            client_factory=client_factory,
        ),
    )


__all__ = [
    "associate",
    "authorize",
    "get_associate_url",
    "get_external_user_sync_event_data",
    "get_file",
    "is_valid_event",
    "match",
    "mirror",
    "oauth_integrations",
    "translate",
    "whoami",
]
