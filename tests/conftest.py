from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.engine import Engine  # noqa: TC002

from jellysync.adapters.sqlalchemy import (
    SqlAlchemyContractStore,
    create_all_tables,
    create_store_engine,
    shutdown,
    startup,
)
from tests.support.contracts import InMemoryContractStore

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_store_engine("sqlite+pysqlite:///:memory:")
    create_all_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def contract_store(sqlite_engine: Engine) -> Iterator[SqlAlchemyContractStore]:
    startup(engine=sqlite_engine, force=True)
    try:
        yield SqlAlchemyContractStore()
    finally:
        shutdown()


@pytest.fixture
def memory_store() -> InMemoryContractStore:
    return InMemoryContractStore()
