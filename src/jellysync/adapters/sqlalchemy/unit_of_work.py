"""Engine lifecycle and unit of work for the SQLAlchemy contract store."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from jellysync.adapters.sqlalchemy.mappings import create_all_tables
from jellysync.adapters.sqlalchemy.repositories import (
    SqlAlchemyContractRepository,
    SqlAlchemyHistoryRepository,
)
from jellysync.common.storage import get_database_uri
from jellysync.domain.ports.unit_of_work import ContractRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = getLogger(__name__)


class StartupError(RuntimeError):
    """The contract store is used before ``startup`` or started twice."""


@dataclass(slots=True)
class _StoreState:
    engine: Engine | None = None
    sessions: sessionmaker[Session] | None = None

    def require_sessions(self) -> sessionmaker[Session]:
        if self.sessions is None:
            raise StartupError(
                "Contract store not started. Call jellysync.adapters.sqlalchemy.startup() "
                "before opening a unit of work."
            )
        return self.sessions


_STATE = _StoreState()


def create_store_engine(database_uri: str) -> Engine:
    """Create an engine usable from the worker threads the contract store runs on.

    In-memory SQLite databases live in a single connection, so every thread
    has to share it.
    """

    url = make_url(database_uri)
    if url.get_backend_name() == "sqlite" and url.database in {None, "", ":memory:"}:
        return create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_engine(url)


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> Engine:
    """Bind the contract store to an engine and create missing tables."""

    if _STATE.engine is not None and not force:
        raise StartupError("Contract store already started. Pass force=True to reconfigure.")

    resolved = engine or create_store_engine(database_uri or get_database_uri())
    create_all_tables(resolved)
    _STATE.engine = resolved
    _STATE.sessions = sessionmaker(bind=resolved, expire_on_commit=False)
    log.info("Contract store started on %s", resolved.url.render_as_string(hide_password=True))
    return resolved


def configured_engine() -> Engine | None:
    return _STATE.engine


def is_started() -> bool:
    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the engine and forget it (mostly for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None
    _STATE.sessions = None


class SqlAlchemyContractUnitOfWork:
    """One session holding the contract and history repositories."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory
        self._session: Session | None = None
        self._repositories: ContractRepositories | None = None

    def __enter__(self) -> SqlAlchemyContractUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work already entered")
        factory = self._session_factory or _STATE.require_sessions()
        self._session = factory()
        self._repositories = ContractRepositories(
            contracts=SqlAlchemyContractRepository(self._session),
            history=SqlAlchemyHistoryRepository(self._session),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        session = self.session
        try:
            if exc_type is not None:
                session.rollback()
        finally:
            session.close()
            self._session = None
            self._repositories = None

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work not entered")
        return self._session

    @property
    def repositories(self) -> ContractRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work not entered")
        return self._repositories

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


if TYPE_CHECKING:
    from jellysync.domain.ports.unit_of_work import ContractUnitOfWork

    _uow_check: ContractUnitOfWork = SqlAlchemyContractUnitOfWork()
