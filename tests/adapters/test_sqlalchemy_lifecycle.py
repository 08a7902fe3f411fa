from __future__ import annotations

import pytest
from sqlalchemy import inspect
from sqlalchemy.engine import Engine  # noqa: TC002

from jellysync.adapters.sqlalchemy import (
    SqlAlchemyContractUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)


def test_unit_of_work_requires_startup() -> None:
    shutdown()

    assert not is_started()
    with pytest.raises(StartupError), SqlAlchemyContractUnitOfWork():
        pass


def test_startup_creates_tables_and_refuses_second_start(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    try:
        assert configured_engine() is sqlite_engine
        assert {"contracts", "contract_history"} <= set(inspect(sqlite_engine).get_table_names())
        with pytest.raises(StartupError):
            startup(engine=sqlite_engine)
    finally:
        shutdown()

    assert configured_engine() is None


def test_unit_of_work_rolls_back_without_commit(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    try:
        with SqlAlchemyContractUnitOfWork() as uow:
            uow.repositories.contracts.add(
                {
                    "id": "c1",
                    "slug": "thread-1",
                    "version": "1.0.0",
                    "type": "thread@1.0.0",
                    "created_at": "2024-01-01T00:00:00+00:00",
                }
            )
        with SqlAlchemyContractUnitOfWork() as uow:
            assert uow.repositories.contracts.get("c1") is None

        uow = SqlAlchemyContractUnitOfWork()
        with pytest.raises(StartupError):
            _ = uow.repositories
    finally:
        shutdown()
