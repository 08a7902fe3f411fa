"""Registry of provider integrations, keyed by provider name."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from jellysync.domain.errors import SyncNoCompatibleIntegration

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from jellysync.domain.ports.integration import Integration

log = getLogger(__name__)


class IntegrationRegistry:
    """Maps provider names (``"github"``, ``"front"``, ...) to integration classes."""

    def __init__(self) -> None:
        self._integrations: dict[str, type[Integration]] = {}

    def __contains__(self, provider: object) -> bool:
        return provider in self._integrations

    def __iter__(self) -> Iterator[str]:
        return iter(self._integrations)

    def __len__(self) -> int:
        return len(self._integrations)

    def register(
        self,
        provider: str,
        integration: type[Integration],
        *,
        replace: bool = False,
    ) -> None:
        if provider in self._integrations and not replace:
            raise ValueError(f"Integration already registered for provider {provider!r}")
        log.debug("Registering integration %s for %s", integration.__name__, provider)
        self._integrations[provider] = integration

    def get(self, provider: str) -> type[Integration] | None:
        return self._integrations.get(provider)

    def require(self, provider: str) -> type[Integration]:
        integration = self._integrations.get(provider)
        if integration is None:
            raise SyncNoCompatibleIntegration(
                f"There is no compatible integration for provider: {provider}"
            )
        return integration

    def oauth_integrations(self) -> list[str]:
        """Providers whose integration declares an OAuth base URL and scopes."""

        return [
            provider
            for provider, integration in self._integrations.items()
            if integration.oauth_capable()
        ]


INTEGRATIONS = IntegrationRegistry()


def register_integration[TIntegration: type[Integration]](
    provider: str,
    *,
    registry: IntegrationRegistry | None = None,
) -> Callable[[TIntegration], TIntegration]:
    """Class decorator registering an integration under ``provider``."""

    def decorator(integration: TIntegration) -> TIntegration:
        (registry if registry is not None else INTEGRATIONS).register(provider, integration)
        return integration

    return decorator


__all__ = ["INTEGRATIONS", "IntegrationRegistry", "register_integration"]
