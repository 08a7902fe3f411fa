"""Integration runtime: lifecycle, request signing and translate/mirror runs."""

from __future__ import annotations

from .credentials import OAuthRequester, get_oauth_user
from .instance import RunOptions, RuntimeIntegrationContext, run
from .operations import mirror_contract, run_integration, translate_external_event

__all__ = [
    "OAuthRequester",
    "RunOptions",
    "RuntimeIntegrationContext",
    "get_oauth_user",
    "mirror_contract",
    "run",
    "run_integration",
    "translate_external_event",
]
