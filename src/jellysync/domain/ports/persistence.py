"""Ports for persisting contracts and their write history."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from jellysync.domain.types import Contract, JsonPatch


@dataclass(slots=True, frozen=True)
class HistoryEntry:
    """One write applied to a contract."""

    contract_id: str
    operation: str
    timestamp: datetime
    patch: JsonPatch
    actor: str | None = None
    originator: str | None = None


@runtime_checkable
class ContractRepository(Protocol):
    """Persistence contract for contract documents."""

    def get(self, contract_id: str) -> Contract | None: ...

    def get_by_slug(self, slug: str, version: str | None = None) -> Contract | None: ...

    def list_by_type(
        self,
        base_type: str | None = None,
        *,
        containing: str | None = None,
    ) -> Iterable[Contract]: ...

    def add(self, contract: Contract) -> None: ...

    def replace(self, contract: Contract) -> None: ...


@runtime_checkable
class HistoryRepository(Protocol):
    """Append-only log of contract writes."""

    def add(self, entry: HistoryEntry) -> None: ...

    def for_contract(self, contract_id: str) -> list[HistoryEntry]: ...


__all__ = ["ContractRepository", "HistoryEntry", "HistoryRepository"]
