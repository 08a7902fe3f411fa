"""In-memory contract store and integration fakes for tests."""

from __future__ import annotations

import copy
import re
import uuid
from typing import TYPE_CHECKING, Any, ClassVar

import jsonpatch

from jellysync.domain.ports.integration import Integration
from jellysync.domain.types import base_type, is_patch

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from jellysync.config.integrations import IntegrationToken
    from jellysync.domain.types import Contract, SequenceStep, UpsertOptions


class InMemoryContractStore:
    """Dictionary-backed store that records every upsert it receives."""

    def __init__(self, contracts: Sequence[Contract] = ()) -> None:
        self.contracts: dict[str, Contract] = {}
        self.upserts: list[tuple[str | None, Contract, UpsertOptions]] = []
        self.usernames: dict[str, str] = {}
        for contract in contracts:
            stored = {"id": str(uuid.uuid4()), "version": "1.0.0", **copy.deepcopy(contract)}
            self.contracts[stored["id"]] = stored

    def add(self, contract: Contract) -> Contract:
        stored = {"id": str(uuid.uuid4()), "version": "1.0.0", **copy.deepcopy(contract)}
        self.contracts[stored["id"]] = stored
        return copy.deepcopy(stored)

    async def get_element_by_id(self, contract_id: str) -> Contract | None:
        contract = self.contracts.get(contract_id)
        return copy.deepcopy(contract) if contract else None

    async def get_element_by_slug(self, slug: str) -> Contract | None:
        name, _, version = slug.partition("@")
        for contract in self.contracts.values():
            if contract["slug"] != name:
                continue
            if version in {"", "latest"} or contract.get("version") == version:
                return copy.deepcopy(contract)
        return None

    async def get_element_by_mirror_id(
        self,
        type_name: str,
        mirror_id: str,
        *,
        use_pattern: bool = False,
    ) -> Contract | None:
        for contract in self.contracts.values():
            if base_type(contract.get("type", "")) != base_type(type_name):
                continue
            for mirror in contract.get("data", {}).get("mirrors", []):
                if (use_pattern and re.search(mirror_id, mirror)) or mirror == mirror_id:
                    return copy.deepcopy(contract)
        return None

    async def upsert_element(
        self,
        type_name: str | None,
        contract: Contract,
        options: UpsertOptions,
    ) -> Contract | None:
        self.upserts.append((type_name, copy.deepcopy(contract), options))
        if is_patch(contract):
            target = self.contracts[contract["id"]]
            updated = jsonpatch.apply_patch(target, contract["patch"])
            self.contracts[target["id"]] = updated
            return copy.deepcopy(updated)

        existing = None
        if contract.get("id"):
            existing = self.contracts.get(contract["id"])
        if existing is None:
            existing = next(
                (c for c in self.contracts.values() if c["slug"] == contract.get("slug")),
                None,
            )
        if existing is not None:
            merged = {**existing, **copy.deepcopy(contract), "id": existing["id"]}
            if type_name:
                merged["type"] = type_name
            if merged == existing:
                return None
            self.contracts[existing["id"]] = merged
            return copy.deepcopy(merged)

        stored = {**copy.deepcopy(contract), "id": str(uuid.uuid4())}
        if type_name:
            stored["type"] = type_name
        self.contracts[stored["id"]] = stored
        return copy.deepcopy(stored)

    async def query(self, schema: Mapping[str, Any], *, limit: int | None = None) -> list[Contract]:
        _ = schema
        results = [copy.deepcopy(contract) for contract in self.contracts.values()]
        return results[:limit] if limit is not None else results

    async def get_local_username(self, username: str) -> str:
        return self.usernames.get(username, username)

    async def get_remote_username(self, username: str) -> str:
        return username


class ScriptedIntegration(Integration):
    """Integration returning canned sequences; records its lifecycle calls."""

    SEQUENCE: ClassVar[Sequence[SequenceStep]] = ()
    calls: ClassVar[list[str]] = []

    async def initialize(self) -> None:
        type(self).calls.append("initialize")

    async def destroy(self) -> None:
        type(self).calls.append("destroy")

    async def translate(self, event: Contract, *, actor: str | None) -> Sequence[SequenceStep]:
        _ = event, actor
        type(self).calls.append("translate")
        return type(self).SEQUENCE

    async def mirror(self, contract: Contract, *, actor: str | None) -> Sequence[SequenceStep]:
        _ = contract, actor
        type(self).calls.append("mirror")
        return type(self).SEQUENCE

    @classmethod
    def is_event_valid(
        cls,
        token: IntegrationToken,
        raw_event: str | bytes,
        headers: Mapping[str, str],
    ) -> bool:
        _ = raw_event
        return headers.get("x-signature") == token.get("signature")


def make_integration(
    sequence: Sequence[SequenceStep] = (),
    *,
    oauth_base_url: str | None = None,
    oauth_scopes: Sequence[str] = (),
) -> type[ScriptedIntegration]:
    """Fresh :class:`ScriptedIntegration` subclass with its own call log."""

    return type(
        "Scripted",
        (ScriptedIntegration,),
        {
            "SEQUENCE": sequence,
            "calls": [],
            "OAUTH_BASE_URL": oauth_base_url,
            "OAUTH_SCOPES": oauth_scopes,
        },
    )
