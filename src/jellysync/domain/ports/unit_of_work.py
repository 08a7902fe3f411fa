"""Unit-of-work boundary around the contract store repositories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from jellysync.domain.ports.persistence import ContractRepository, HistoryRepository


@dataclass(slots=True)
class ContractRepositories:
    """Repositories sharing one transaction."""

    contracts: ContractRepository
    history: HistoryRepository


@runtime_checkable
class ContractUnitOfWork(Protocol):
    """Transaction scope for contract writes.

    Entering opens the transaction; nothing is persisted unless ``commit`` is
    called before leaving, and leaving with an exception rolls back.
    """

    @property
    def repositories(self) -> ContractRepositories: ...

    def __enter__(self) -> ContractUnitOfWork: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
