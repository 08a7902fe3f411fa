"""Scoped lifecycle of one integration instance."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

from jellysync.adapters.http_resilience import ResilientClient
from jellysync.common.logging import get_integration_logger
from jellysync.config.http_resilience import ResilienceConfig
from jellysync.domain.actors import ActorInformation, build_actor_contract, get_or_create_actor
from jellysync.domain.ports.integration import IntegrationOptions
from jellysync.runtime.credentials import OAuthRequester

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping
    from logging import Logger

    from jellysync.adapters.http_resilience import HttpRequest, HttpResult
    from jellysync.config.integrations import IntegrationToken
    from jellysync.domain.ports.integration import Integration
    from jellysync.domain.ports.storage import SyncContext
    from jellysync.domain.types import Contract

log = getLogger(__name__)

INTERCOM_SLUG: Final[str] = "intercom"

type ClientFactory = Callable[[ResilienceConfig], ResilientClient]


def default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True, frozen=True)
class RunOptions:
    """Who an integration runs for and where its results go."""

    context: SyncContext
    provider: str
    actor: str | None = None
    origin_url: str | None = None
    default_user: str | None = None
    client_factory: ClientFactory = field(default=default_client_factory)


class RuntimeIntegrationContext:
    """Capabilities exposed to an integration instance, and nothing more."""

    def __init__(
        self,
        store: SyncContext,
        requester: Callable[[str | None, HttpRequest], Awaitable[HttpResult]],
        logger: Logger,
    ) -> None:
        self._store = store
        self._requester = requester
        self._log = logger

    @property
    def log(self) -> Logger:
        return self._log

    async def get_local_username(self, username: str) -> str:
        return await self._store.get_local_username(username)

    async def get_remote_username(self, username: str) -> str:
        return await self._store.get_remote_username(username)

    async def get_element_by_slug(self, slug: str) -> Contract | None:
        return await self._store.get_element_by_slug(slug)

    async def get_element_by_id(self, contract_id: str) -> Contract | None:
        return await self._store.get_element_by_id(contract_id)

    async def get_element_by_mirror_id(
        self,
        type_name: str,
        mirror_id: str,
        *,
        use_pattern: bool = False,
    ) -> Contract | None:
        return await self._store.get_element_by_mirror_id(
            type_name, mirror_id, use_pattern=use_pattern
        )

    async def request(self, actor: str | None, request: HttpRequest) -> HttpResult:
        return await self._requester(actor, request)

    async def get_actor_id(self, information: ActorInformation | Mapping[str, Any]) -> str:
        """Return the id of the local user behind ``information``, creating it if needed."""

        if not isinstance(information, ActorInformation):
            information = ActorInformation.model_validate(information)
        self._log.info("Creating sync actor %s", information.handle or information.email)

        username = await self.get_local_username(information.username().lower())
        contract = build_actor_contract(information, username)
        if contract["slug"] == f"user-{INTERCOM_SLUG}":
            self._log.warning("Using %r actor for %s", INTERCOM_SLUG, information)
        return await get_or_create_actor(self._store, contract)


async def run[TResult](
    integration: type[Integration],
    token: IntegrationToken,
    fn: Callable[[Integration], Awaitable[TResult]],
    options: RunOptions,
) -> TResult:
    """Construct ``integration``, run ``fn`` against it and always destroy it."""

    config = ResilienceConfig(name=options.provider)
    async with options.client_factory(config) as client:
        requester = OAuthRequester(
            integration=integration,
            token=token,
            context=options.context,
            client=client,
            provider=options.provider,
            origin_url=options.origin_url,
            default_user=options.default_user,
        )
        context = RuntimeIntegrationContext(
            options.context,
            requester,
            get_integration_logger(options.provider),
        )
        instance = integration(
            IntegrationOptions(token=token, context=context, default_user=options.default_user)
        )

        try:
            await instance.initialize()
            return await fn(instance)
        finally:
            await instance.destroy()


__all__ = [
    "ClientFactory",
    "RunOptions",
    "RuntimeIntegrationContext",
    "default_client_factory",
    "run",
]
