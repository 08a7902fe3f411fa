"""Port for the contract store the sync core reads from and writes to."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from jellysync.domain.types import Contract, UpsertOptions


@runtime_checkable
class ContractLookup(Protocol):
    """Read-only lookups handed to integrations."""

    async def get_element_by_id(self, contract_id: str) -> Contract | None: ...

    async def get_element_by_slug(self, slug: str) -> Contract | None: ...

    async def get_element_by_mirror_id(
        self,
        type_name: str,
        mirror_id: str,
        *,
        use_pattern: bool = False,
    ) -> Contract | None: ...


@runtime_checkable
class SyncContext(ContractLookup, Protocol):
    """Everything the sync core needs from the contract store.

    ``upsert_element`` returns the committed contract, or ``None`` when the
    write changed nothing.
    """

    async def upsert_element(
        self,
        type_name: str | None,
        contract: Contract,
        options: UpsertOptions,
    ) -> Contract | None: ...

    async def query(
        self,
        schema: Mapping[str, Any],
        *,
        limit: int | None = None,
    ) -> list[Contract]: ...

    async def get_local_username(self, username: str) -> str: ...

    async def get_remote_username(self, username: str) -> str: ...


__all__ = ["ContractLookup", "SyncContext"]
