"""SQLAlchemy adapter package for jellysync."""

from __future__ import annotations

from .context import SqlAlchemyContractStore, split_slug
from .mappings import contract_history_table, contract_table, create_all_tables, metadata
from .repositories import SqlAlchemyContractRepository, SqlAlchemyHistoryRepository
from .unit_of_work import (
    SqlAlchemyContractUnitOfWork,
    StartupError,
    configured_engine,
    create_store_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyContractRepository",
    "SqlAlchemyContractStore",
    "SqlAlchemyContractUnitOfWork",
    "SqlAlchemyHistoryRepository",
    "StartupError",
    "configured_engine",
    "contract_history_table",
    "contract_table",
    "create_all_tables",
    "create_store_engine",
    "is_started",
    "metadata",
    "shutdown",
    "split_slug",
    "startup",
]
