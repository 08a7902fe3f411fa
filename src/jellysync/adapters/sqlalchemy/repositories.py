"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

import copy
import json
import re
from datetime import datetime
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import Text, insert, select, update
from sqlalchemy import cast as sql_cast

from jellysync.adapters.sqlalchemy.mappings import contract_history_table, contract_table
from jellysync.domain.ports.persistence import HistoryEntry

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.orm import Session

    from jellysync.domain.types import Contract

_VERSION_PART = re.compile(r"\d+")


def version_key(version: str) -> tuple[int, ...]:
    """Sort key for ``major.minor.patch`` versions (non-numeric parts sort as 0)."""

    parts: list[int] = []
    for chunk in version.split("-", 1)[0].split("."):
        match = _VERSION_PART.match(chunk)
        parts.append(int(match.group()) if match else 0)
    return tuple(parts)


def _timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return None


class SqlAlchemyContractRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, contract_id: str) -> Contract | None:
        stmt = select(contract_table.c.document).where(contract_table.c.id == contract_id)
        document = self.session.execute(stmt).scalar_one_or_none()
        return self._load(document)

    def get_by_slug(self, slug: str, version: str | None = None) -> Contract | None:
        stmt = select(contract_table.c.version, contract_table.c.document).where(
            contract_table.c.slug == slug
        )
        if version is not None:
            stmt = stmt.where(contract_table.c.version == version)
        rows = self.session.execute(stmt).all()
        if not rows:
            return None
        latest = max(rows, key=lambda row: version_key(row.version))
        return self._load(latest.document)

    def list_by_type(
        self,
        base_type: str | None = None,
        *,
        containing: str | None = None,
    ) -> Iterator[Contract]:
        """Contracts of ``base_type`` in creation order.

        ``containing`` keeps only documents holding that exact string value
        somewhere; callers still check where it occurs.
        """

        stmt = select(contract_table.c.document).order_by(contract_table.c.created_at)
        if containing is not None:
            stmt = stmt.where(
                sql_cast(contract_table.c.document, Text).contains(
                    json.dumps(containing), autoescape=True
                )
            )
        if base_type is not None:
            stmt = stmt.where(
                (contract_table.c.type == base_type)
                | contract_table.c.type.startswith(f"{base_type}@")
            )
        for document in self.session.execute(stmt).scalars():
            loaded = self._load(document)
            if loaded is not None:
                yield loaded

    def add(self, contract: Contract) -> None:
        self.session.execute(insert(contract_table).values(**self._row(contract)))

    def replace(self, contract: Contract) -> None:
        row = self._row(contract)
        contract_id = row.pop("id")
        row.pop("created_at")
        self.session.execute(
            update(contract_table).where(contract_table.c.id == contract_id).values(**row)
        )

    @staticmethod
    def _row(contract: Contract) -> dict[str, Any]:
        return {
            "id": contract["id"],
            "slug": contract["slug"],
            "version": contract["version"],
            "type": contract["type"],
            "document": copy.deepcopy(contract),
            "created_at": _timestamp(contract.get("created_at")),
            "updated_at": _timestamp(contract.get("updated_at")),
        }

    @staticmethod
    def _load(document: Any) -> Contract | None:
        if document is None:
            return None
        return copy.deepcopy(cast("Contract", document))


class SqlAlchemyHistoryRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entry: HistoryEntry) -> None:
        self.session.execute(
            insert(contract_history_table).values(
                contract_id=entry.contract_id,
                operation=entry.operation,
                timestamp=entry.timestamp,
                actor=entry.actor,
                originator=entry.originator,
                patch=entry.patch,
            )
        )

    def for_contract(self, contract_id: str) -> list[HistoryEntry]:
        stmt = (
            select(contract_history_table)
            .where(contract_history_table.c.contract_id == contract_id)
            .order_by(contract_history_table.c.id)
        )
        return [
            HistoryEntry(
                contract_id=row.contract_id,
                operation=row.operation,
                timestamp=row.timestamp,
                patch=row.patch,
                actor=row.actor,
                originator=row.originator,
            )
            for row in self.session.execute(stmt)
        ]


__all__ = ["SqlAlchemyContractRepository", "SqlAlchemyHistoryRepository", "version_key"]
