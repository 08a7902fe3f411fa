"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import BackoffSchedule, RateLimit, ResilienceConfig
from .integrations import (
    IntegrationToken,
    SyncSettings,
    get_integration_token,
    load_settings,
    require_integration_token,
)

__all__ = [
    "BackoffSchedule",
    "ConfigurationError",
    "IntegrationToken",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "SyncSettings",
    "get_integration_token",
    "load_settings",
    "optional_env_var",
    "require_env_vars",
    "require_integration_token",
]
