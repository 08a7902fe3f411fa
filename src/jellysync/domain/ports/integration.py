"""Port implemented by provider integrations (GitHub, Front, ...)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, Protocol, runtime_checkable

from jellysync.domain.errors import SyncNoCompatibleIntegration, SyncNoExternalResource

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from logging import Logger

    from jellysync.adapters.http_resilience import HttpRequest, HttpResult
    from jellysync.config.integrations import IntegrationToken
    from jellysync.domain.actors import ActorInformation
    from jellysync.domain.ports.storage import SyncContext
    from jellysync.domain.types import Contract, SequenceStep


@runtime_checkable
class IntegrationContext(Protocol):
    """Capabilities an integration instance may use while it runs."""

    @property
    def log(self) -> Logger: ...

    async def get_local_username(self, username: str) -> str: ...

    async def get_remote_username(self, username: str) -> str: ...

    async def get_element_by_slug(self, slug: str) -> Contract | None: ...

    async def get_element_by_id(self, contract_id: str) -> Contract | None: ...

    async def get_element_by_mirror_id(
        self,
        type_name: str,
        mirror_id: str,
        *,
        use_pattern: bool = False,
    ) -> Contract | None: ...

    async def request(self, actor: str | None, request: HttpRequest) -> HttpResult: ...

    async def get_actor_id(
        self, information: ActorInformation | Mapping[str, Any]
    ) -> str: ...


@dataclass(slots=True, frozen=True)
class IntegrationOptions:
    token: IntegrationToken
    context: IntegrationContext
    default_user: str | None = None


class Integration(ABC):
    """Base class of provider adapters.

    Subclasses that talk OAuth set ``OAUTH_BASE_URL`` and ``OAUTH_SCOPES``;
    every outbound call should go through ``self.context.request`` so bearer
    tokens are injected and refreshed.
    """

    OAUTH_BASE_URL: ClassVar[str | None] = None
    OAUTH_SCOPES: ClassVar[Sequence[str]] = ()

    def __init__(self, options: IntegrationOptions) -> None:
        self.options = options
        self.context = options.context

    async def initialize(self) -> None:
        return None

    async def destroy(self) -> None:
        return None

    @abstractmethod
    async def translate(
        self, event: Contract, *, actor: str | None
    ) -> Sequence[SequenceStep]: ...

    @abstractmethod
    async def mirror(self, contract: Contract, *, actor: str | None) -> Sequence[SequenceStep]: ...

    async def get_file(self, file_id: str) -> bytes | None:
        raise SyncNoExternalResource(f"{type(self).__name__} does not serve files ({file_id})")

    @classmethod
    @abstractmethod
    def is_event_valid(
        cls,
        token: IntegrationToken,
        raw_event: str | bytes,
        headers: Mapping[str, str],
    ) -> bool: ...

    @classmethod
    def oauth_capable(cls) -> bool:
        return bool(cls.OAUTH_BASE_URL and cls.OAUTH_SCOPES)

    @classmethod
    async def whoami(
        cls,
        context: SyncContext,  # noqa: ARG003
        credentials: Mapping[str, Any],  # noqa: ARG003
    ) -> Any:
        raise SyncNoCompatibleIntegration(f"{cls.__name__} cannot identify users")

    @classmethod
    async def match(
        cls,
        context: SyncContext,  # noqa: ARG003
        external_user: Any,  # noqa: ARG003
        *,
        slug: str | None = None,  # noqa: ARG003
    ) -> Contract | None:
        raise SyncNoCompatibleIntegration(f"{cls.__name__} cannot match users")

    @classmethod
    async def get_external_user_sync_event_data(
        cls,
        context: SyncContext,  # noqa: ARG003
        external_user: Any,  # noqa: ARG003
    ) -> Contract:
        raise SyncNoCompatibleIntegration(f"{cls.__name__} cannot sync users")


__all__ = ["Integration", "IntegrationContext", "IntegrationOptions"]
