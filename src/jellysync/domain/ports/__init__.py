"""Domain port definitions for adapters."""

from __future__ import annotations

from .integration import Integration, IntegrationContext, IntegrationOptions
from .persistence import ContractRepository, HistoryEntry, HistoryRepository
from .storage import ContractLookup, SyncContext
from .unit_of_work import ContractRepositories, ContractUnitOfWork

__all__ = [
    "ContractLookup",
    "ContractRepositories",
    "ContractRepository",
    "ContractUnitOfWork",
    "HistoryEntry",
    "HistoryRepository",
    "Integration",
    "IntegrationContext",
    "IntegrationOptions",
    "SyncContext",
]
