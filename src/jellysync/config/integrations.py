"""Integration credentials and sync settings loaded from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from .env import env_prefix, optional_env_var, require_env_vars

if TYPE_CHECKING:
    from collections.abc import Mapping

_TOKEN_EXTRA_MARKER = "TOKEN_"


@dataclass(frozen=True, slots=True)
class IntegrationToken:
    """Static credentials of the sync application at one provider.

    ``app_id``/``app_secret`` identify the OAuth application. Providers that
    authenticate with plain API keys or webhook signatures keep those values in
    ``extras`` (for example ``api``, ``signature`` or ``key``).
    """

    app_id: str | None = None
    app_secret: str | None = None
    extras: Mapping[str, str] = field(default_factory=dict[str, str])

    @property
    def has_app_credentials(self) -> bool:
        return bool(self.app_id and self.app_secret)

    def get(self, name: str) -> str | None:
        return self.extras.get(name)


@dataclass(frozen=True, slots=True)
class SyncSettings:
    """Process-wide sync settings.

    ``default_user`` is the handle of the service account used when the acting
    user has not linked the provider. ``origin_url`` is the OAuth redirect URI
    registered with the providers; token refreshes need it.
    """

    default_user: str | None = None
    origin_url: str | None = None


def get_integration_token(provider: str) -> IntegrationToken | None:
    """Read a provider token from ``JELLYSYNC_<PROVIDER>_*`` variables.

    Returns ``None`` when nothing is configured for the provider.
    """

    prefix = env_prefix(provider)
    extras: dict[str, str] = {}
    extra_prefix = f"{prefix}{_TOKEN_EXTRA_MARKER}"
    for name, value in os.environ.items():
        if name.startswith(extra_prefix) and value.strip():
            extras[name.removeprefix(extra_prefix).lower()] = value

    app_id = optional_env_var(f"{prefix}APP_ID")
    app_secret = optional_env_var(f"{prefix}APP_SECRET")
    if app_id is None and app_secret is None and not extras:
        return None
    return IntegrationToken(app_id=app_id, app_secret=app_secret, extras=extras)


def require_integration_token(provider: str) -> IntegrationToken:
    """Like :func:`get_integration_token` but both app credentials are mandatory."""

    prefix = env_prefix(provider)
    values = require_env_vars((f"{prefix}APP_ID", f"{prefix}APP_SECRET"))
    token = get_integration_token(provider)
    extras = token.extras if token is not None else {}
    return IntegrationToken(
        app_id=values[f"{prefix}APP_ID"],
        app_secret=values[f"{prefix}APP_SECRET"],
        extras=extras,
    )


def load_settings(*, dotenv: bool = True) -> SyncSettings:
    if dotenv:
        load_dotenv()
    return SyncSettings(
        default_user=optional_env_var("JELLYSYNC_DEFAULT_USER"),
        origin_url=optional_env_var("JELLYSYNC_OAUTH_ORIGIN"),
    )
