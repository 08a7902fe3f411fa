"""Local user contracts created from partial external identities."""

from __future__ import annotations

import copy
import re
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final, cast

from pydantic import BaseModel, ConfigDict

from jellysync.domain.errors import SyncInvalidArg, SyncNoElement
from jellysync.domain.types import DEFAULT_VERSION, USER_TYPE, UpsertOptions

if TYPE_CHECKING:
    from jellysync.domain.ports.storage import SyncContext
    from jellysync.domain.types import Contract

log = getLogger(__name__)

PASSWORDLESS_HASH: Final[str] = "PASSWORDLESS"
"""Password hash no real password can produce; marks users without local login."""

_SLUG_INVALID = re.compile(r"[^a-z0-9-]")
_PROFILE_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("company",),
    ("name", "first"),
    ("name", "last"),
    ("title",),
    ("country",),
    ("city",),
)


class ActorName(BaseModel):
    model_config = ConfigDict(extra="ignore")

    first: str | None = None
    last: str | None = None


class ActorInformation(BaseModel):
    """What an integration knows about the person behind an external event."""

    model_config = ConfigDict(extra="ignore")

    handle: str | None = None
    email: str | list[str] | None = None
    name: ActorName | None = None
    title: str | None = None
    company: str | None = None
    country: str | None = None
    city: str | None = None
    active: bool | None = None

    def username(self) -> str:
        if self.handle:
            return self.handle
        if isinstance(self.email, str) and self.email:
            return self.email
        if isinstance(self.email, list) and self.email:
            return self.email[0]
        raise SyncInvalidArg("Actor information needs a handle or an email")


def normalize_slug(username: str) -> str:
    return _SLUG_INVALID.sub("-", username.lower())


def build_actor_contract(information: ActorInformation, username: str) -> Contract:
    """Build the user contract for ``information``.

    ``username`` is the (already translated) local username the slug derives
    from.
    """

    profile: dict[str, Any] = {}
    for key in ("title", "company", "country", "city"):
        value = getattr(information, key)
        if value:
            profile[key] = value
    if information.name is not None:
        name = {
            key: value
            for key, value in (("first", information.name.first), ("last", information.name.last))
            if value
        }
        if name:
            profile["name"] = name

    data: dict[str, Any] = {"hash": PASSWORDLESS_HASH, "roles": [], "profile": profile}
    if information.email:
        data["email"] = information.email

    return {
        "slug": f"user-{normalize_slug(username)}",
        "active": information.active if information.active is not None else True,
        "type": USER_TYPE,
        "version": DEFAULT_VERSION,
        "data": data,
    }


def _get_path(document: Any, path: tuple[str, ...]) -> tuple[bool, Any]:
    current = document
    for key in path:
        if not isinstance(current, dict) or key not in current:
            return False, None
        current = cast(dict[str, Any], current)[key]
    return True, current


def _set_path(document: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    current = document
    for key in path[:-1]:
        child = current.get(key)
        if not isinstance(child, dict):
            child = {}
            current[key] = child
        current = cast(dict[str, Any], child)
    current[path[-1]] = value


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return cast(list[Any], value)
    return [value]


def merge_actor(existing: Contract, incoming: Contract) -> Contract:
    """Fold what ``incoming`` knows into ``existing`` and return the result.

    E-mails are unioned; the listed profile fields are only filled in where
    ``existing`` has no value yet.
    """

    merged = copy.deepcopy(existing)
    merged.setdefault("data", {})

    found, incoming_email = _get_path(incoming, ("data", "email"))
    if found:
        _, current_email = _get_path(merged, ("data", "email"))
        emails = sorted(
            {email for email in _as_list(current_email) + _as_list(incoming_email) if email}
        )
        merged["data"]["email"] = emails[0] if len(emails) == 1 else emails

    for field in _PROFILE_FIELDS:
        path = ("data", "profile", *field)
        found, value = _get_path(incoming, path)
        if not found or not value:
            continue
        _, current = _get_path(merged, path)
        if not current:
            _set_path(merged, path, value)

    return merged


def _without_type(contract: Contract) -> Contract:
    return {key: value for key, value in contract.items() if key != "type"}


async def get_or_create_actor(context: SyncContext, contract: Contract) -> str:
    """Return the id of the user contract matching ``contract``, creating it if needed."""

    versioned = f"{contract['slug']}@{contract.get('version', DEFAULT_VERSION)}"
    existing = await context.get_element_by_slug(versioned)
    if existing is not None:
        merged = merge_actor(existing, contract)
        log.info("Unifying actor contracts %s", versioned)
        await context.upsert_element(
            merged.get("type", USER_TYPE),
            _without_type(merged),
            UpsertOptions(timestamp=datetime.now(UTC)),
        )
        return existing["id"]

    log.info("Inserting non-existent actor %s", versioned)
    result = await context.upsert_element(
        contract["type"],
        _without_type(contract),
        UpsertOptions(timestamp=datetime.now(UTC)),
    )
    if result is not None:
        return result["id"]

    # The insert changed nothing, so someone else created the actor meanwhile.
    created = await context.get_element_by_slug(versioned)
    if created is None:
        raise SyncNoElement(f"Upsert returned nothing, but {versioned} cannot be retrieved")
    return created["id"]


__all__ = [
    "PASSWORDLESS_HASH",
    "ActorInformation",
    "ActorName",
    "build_actor_contract",
    "get_or_create_actor",
    "merge_actor",
    "normalize_slug",
]
