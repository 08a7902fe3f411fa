"""Contract store implementing the sync core's storage port on SQLAlchemy."""

from __future__ import annotations

import asyncio
import copy
import re
import uuid
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final, cast

import jsonpatch
from jsonschema import SchemaError
from jsonschema.validators import validator_for

from jellysync.adapters.sqlalchemy.unit_of_work import SqlAlchemyContractUnitOfWork
from jellysync.domain.errors import SyncInvalidArg, SyncInvalidType, SyncNoElement
from jellysync.domain.ports.persistence import HistoryEntry
from jellysync.domain.types import DEFAULT_VERSION, base_type, is_patch

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from jsonschema.protocols import Validator

    from jellysync.domain.ports.unit_of_work import ContractUnitOfWork
    from jellysync.domain.types import Contract, UpsertOptions

log = getLogger(__name__)

LATEST: Final[str] = "latest"


def split_slug(slug: str) -> tuple[str, str | None]:
    """``"foo@1.0.0"`` -> ``("foo", "1.0.0")``; ``"foo@latest"`` and ``"foo"`` -> ``("foo", None)``."""

    name, _, version = slug.partition("@")
    if not version or version == LATEST:
        return name, None
    return name, version


def _pinned_type(schema: Mapping[str, Any]) -> str | None:
    """Base type a query schema fixes with ``properties.type.const``, if any."""

    properties = schema.get("properties")
    if not isinstance(properties, dict):
        return None
    type_schema = cast(dict[str, Any], properties).get("type")
    if isinstance(type_schema, dict):
        const = cast(dict[str, Any], type_schema).get("const")
        if isinstance(const, str):
            return base_type(const)
    return None


class SqlAlchemyContractStore:
    """:class:`~jellysync.domain.ports.storage.SyncContext` over SQLAlchemy.

    Every call opens its own unit of work on a worker thread, so awaiting the
    store lets other tasks run. ``max_sessions`` bounds how many units of work
    run at once; keep it at 1 for SQLite. Writes that change nothing return
    ``None``; every other write is recorded as a JSON patch in the contract's
    history together with its actor and originator.
    """

    def __init__(
        self,
        unit_of_work_factory: Callable[[], ContractUnitOfWork] = SqlAlchemyContractUnitOfWork,
        *,
        max_sessions: int = 1,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._sessions = asyncio.Semaphore(max_sessions)

    async def _run[TResult](self, fn: Callable[..., TResult], /, *args: Any) -> TResult:
        await self._sessions.acquire()
        task = asyncio.ensure_future(asyncio.to_thread(fn, *args))
        task.add_done_callback(lambda _: self._sessions.release())
        # A cancelled caller must not free the slot while the thread still holds a session.
        return await asyncio.shield(task)

    async def get_element_by_id(self, contract_id: str) -> Contract | None:
        return await self._run(self._get_by_id, contract_id)

    async def get_element_by_slug(self, slug: str) -> Contract | None:
        return await self._run(self._get_by_slug, slug)

    async def get_element_by_mirror_id(
        self,
        type_name: str,
        mirror_id: str,
        *,
        use_pattern: bool = False,
    ) -> Contract | None:
        return await self._run(self._get_by_mirror_id, type_name, mirror_id, use_pattern)

    async def query(
        self,
        schema: Mapping[str, Any],
        *,
        limit: int | None = None,
    ) -> list[Contract]:
        validator_cls = validator_for(schema)
        try:
            validator_cls.check_schema(schema)
        except SchemaError as exc:
            raise SyncInvalidArg(f"Invalid query schema: {exc.message}") from exc
        return await self._run(self._query, validator_cls(schema), _pinned_type(schema), limit)

    async def get_local_username(self, username: str) -> str:
        return username

    async def get_remote_username(self, username: str) -> str:
        return username

    async def upsert_element(
        self,
        type_name: str | None,
        contract: Contract,
        options: UpsertOptions,
    ) -> Contract | None:
        return await self._run(self._upsert, type_name, contract, options)

    def _get_by_id(self, contract_id: str) -> Contract | None:
        with self._unit_of_work_factory() as uow:
            return uow.repositories.contracts.get(contract_id)

    def _get_by_slug(self, slug: str) -> Contract | None:
        name, version = split_slug(slug)
        with self._unit_of_work_factory() as uow:
            return uow.repositories.contracts.get_by_slug(name, version)

    def _get_by_mirror_id(
        self, type_name: str, mirror_id: str, use_pattern: bool
    ) -> Contract | None:
        pattern = re.compile(mirror_id) if use_pattern else None
        with self._unit_of_work_factory() as uow:
            candidates = uow.repositories.contracts.list_by_type(
                base_type(type_name),
                containing=None if use_pattern else mirror_id,
            )
            for contract in candidates:
                mirrors = (contract.get("data") or {}).get("mirrors") or []
                for mirror in cast(list[Any], mirrors):
                    if not isinstance(mirror, str):
                        continue
                    if pattern is not None and pattern.search(mirror):
                        return contract
                    if pattern is None and mirror == mirror_id:
                        return contract
        return None

    def _query(
        self,
        validator: Validator,
        type_name: str | None,
        limit: int | None,
    ) -> list[Contract]:
        results: list[Contract] = []
        with self._unit_of_work_factory() as uow:
            for contract in uow.repositories.contracts.list_by_type(type_name):
                if validator.is_valid(contract):
                    results.append(contract)
                    if limit is not None and len(results) >= limit:
                        break
        return results

    def _upsert(
        self,
        type_name: str | None,
        contract: Contract,
        options: UpsertOptions,
    ) -> Contract | None:
        with self._unit_of_work_factory() as uow:
            if is_patch(contract):
                result = self._apply_patch(uow, contract, options)
            else:
                result = self._upsert_record(uow, type_name, contract, options)
            uow.commit()
            return result

    def _apply_patch(
        self,
        uow: ContractUnitOfWork,
        contract: Contract,
        options: UpsertOptions,
    ) -> Contract | None:
        target = uow.repositories.contracts.get(contract["id"])
        if target is None:
            raise SyncNoElement(f"No such contract: {contract['id']}")
        try:
            patched = jsonpatch.apply_patch(target, contract["patch"])
        except (jsonpatch.JsonPatchException, jsonpatch.JsonPointerException) as exc:
            raise SyncInvalidArg(f"Cannot patch {target['slug']}: {exc}") from exc
        return self._update(uow, target, cast("Contract", patched), options)

    def _upsert_record(
        self,
        uow: ContractUnitOfWork,
        type_name: str | None,
        contract: Contract,
        options: UpsertOptions,
    ) -> Contract | None:
        contracts = uow.repositories.contracts
        existing: Contract | None = None
        if contract.get("id"):
            existing = contracts.get(contract["id"])
        if existing is None and contract.get("slug"):
            existing = contracts.get_by_slug(
                contract["slug"], contract.get("version", DEFAULT_VERSION)
            )

        if existing is not None:
            merged = {
                **existing,
                **copy.deepcopy(contract),
                "id": existing["id"],
                "slug": existing["slug"],
                "type": type_name or contract.get("type") or existing["type"],
            }
            return self._update(uow, existing, merged, options)

        resolved_type = type_name or contract.get("type")
        if not resolved_type:
            raise SyncInvalidType(f"Cannot insert {contract.get('slug')} without a type")
        if not contract.get("slug"):
            raise SyncInvalidArg("Cannot insert a contract without a slug")

        document: Contract = {
            **copy.deepcopy(contract),
            "id": contract.get("id") or str(uuid.uuid4()),
            "type": resolved_type,
            "version": contract.get("version", DEFAULT_VERSION),
            "created_at": options.timestamp.isoformat(),
            "updated_at": None,
        }
        contracts.add(document)
        self._record(uow, document["id"], "insert", jsonpatch.make_patch({}, document), options)
        log.debug("Inserted %s@%s", document["slug"], document["version"])
        return copy.deepcopy(document)

    def _update(
        self,
        uow: ContractUnitOfWork,
        before: Contract,
        after: Contract,
        options: UpsertOptions,
    ) -> Contract | None:
        diff = jsonpatch.make_patch(before, after)
        if not diff.patch:
            return None
        after["updated_at"] = options.timestamp.isoformat()
        uow.repositories.contracts.replace(after)
        self._record(uow, after["id"], "update", diff, options)
        log.debug("Updated %s@%s", after["slug"], after["version"])
        return copy.deepcopy(after)

    @staticmethod
    def _record(
        uow: ContractUnitOfWork,
        contract_id: str,
        operation: str,
        patch: jsonpatch.JsonPatch,
        options: UpsertOptions,
    ) -> None:
        uow.repositories.history.add(
            HistoryEntry(
                contract_id=contract_id,
                operation=operation,
                timestamp=options.timestamp,
                patch=list(patch.patch),
                actor=options.actor,
                originator=options.originator,
            )
        )


__all__ = ["SqlAlchemyContractStore", "split_slug"]
