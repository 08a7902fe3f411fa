"""SQLAlchemy table metadata for contracts and their write history."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Dialect,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    TypeDecorator,
    UniqueConstraint,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

contract_table = Table(
    "contracts",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("slug", String(255), nullable=False),
    Column("version", String(64), nullable=False),
    Column("type", String(255), nullable=False),
    Column("document", JSON, nullable=False),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=True),
    UniqueConstraint("slug", "version"),
    Index("ix_contracts_type", "type"),
)

contract_history_table = Table(
    "contract_history",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("contract_id", String(36), ForeignKey("contracts.id"), nullable=False),
    Column("operation", String(16), nullable=False),
    Column("timestamp", UTCDateTime(), nullable=False),
    Column("actor", String(36), nullable=True),
    Column("originator", String(36), nullable=True),
    Column("patch", JSON, nullable=False),
    Index("ix_contract_history_contract_id", "contract_id"),
)


def create_all_tables(engine: Engine) -> None:
    metadata.create_all(engine)


__all__ = [
    "UTCDateTime",
    "contract_history_table",
    "contract_table",
    "create_all_tables",
    "metadata",
]
