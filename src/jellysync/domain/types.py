"""Core value types shared by the sync pipeline and its adapters."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Final, TypeGuard

type Contract = dict[str, Any]
"""A contract document as stored by the contract store (slug, type, data, ...)."""

type JsonPatch = list[dict[str, Any]]

EXTERNAL_EVENT_TYPE: Final[str] = "external-event"
USER_TYPE: Final[str] = "user@1.0.0"
DEFAULT_VERSION: Final[str] = "1.0.0"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def default_contract() -> Contract:
    """Return a fresh copy of the fields every committed record starts from."""

    return {
        "active": True,
        "version": DEFAULT_VERSION,
        "tags": [],
        "markers": [],
        "links": {},
        "requires": [],
        "capabilities": [],
        "data": {},
    }


def base_type(type_name: str) -> str:
    """Strip the version suffix: ``"external-event@1.0.0"`` -> ``"external-event"``."""

    return type_name.split("@", 1)[0]


def is_external_event(contract: Contract | None) -> TypeGuard[Contract]:
    if not contract:
        return False
    type_name = contract.get("type")
    return isinstance(type_name, str) and base_type(type_name) == EXTERNAL_EVENT_TYPE


def versioned_slug(contract: Contract) -> str:
    return f"{contract['slug']}@{contract.get('version', DEFAULT_VERSION)}"


def is_patch(card: Contract) -> bool:
    return "patch" in card


@dataclass(slots=True)
class SequenceItem:
    """One intent produced by an integration: commit ``card`` on behalf of ``actor``."""

    card: Contract
    actor: str | None
    time: datetime = field(default_factory=_utcnow)
    skip_originator: bool = False


type SequenceStep = SequenceItem | Sequence[SequenceItem]
"""A single intent or a batch of independent intents."""


@dataclass(slots=True, frozen=True)
class UpsertOptions:
    timestamp: datetime
    actor: str | None = None
    originator: str | None = None


__all__ = [
    "DEFAULT_VERSION",
    "EXTERNAL_EVENT_TYPE",
    "USER_TYPE",
    "Contract",
    "JsonPatch",
    "SequenceItem",
    "SequenceStep",
    "UpsertOptions",
    "base_type",
    "default_contract",
    "is_external_event",
    "is_patch",
    "versioned_slug",
]
