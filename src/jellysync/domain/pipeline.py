"""Import sequences of intents produced by integrations into the contract store."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from logging import getLogger
from typing import TYPE_CHECKING, Final

from jellysync.domain.errors import SyncInvalidTemplate, SyncInvalidType, SyncNoActor
from jellysync.domain.templates import ReferenceTable, Unresolved, evaluate
from jellysync.domain.types import (
    SequenceItem,
    UpsertOptions,
    default_contract,
    is_external_event,
    is_patch,
    versioned_slug,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from jellysync.domain.ports.storage import SyncContext
    from jellysync.domain.types import Contract, JsonPatch, SequenceStep

log = getLogger(__name__)

DEFAULT_CONCURRENCY: Final[int] = 3
ORIGIN_PATH: Final[str] = "/data/origin"


def as_batch(step: SequenceStep) -> list[SequenceItem]:
    if isinstance(step, SequenceItem):
        return [step]
    return list(step)


def _without_links(card: Contract) -> Contract:
    return {key: value for key, value in card.items() if key != "links"}


def _resolve(card: Contract, references: ReferenceTable) -> Contract:
    result = evaluate(_without_links(card), references.as_environment())
    if isinstance(result, Unresolved):
        raise SyncInvalidTemplate(
            f"Could not evaluate template {result.expression!r} ({result.reason}) "
            f"in contract {card.get('slug') or card.get('id')}"
        )
    return result.value


def _with_origin_operation(card: Contract, origin: Contract | None) -> Contract:
    patch: JsonPatch = list(card.get("patch") or [])
    if is_external_event(origin) and not any(
        operation.get("path") == ORIGIN_PATH for operation in patch
    ):
        patch.append({"op": "add", "path": ORIGIN_PATH, "value": versioned_slug(origin)})
        return {**card, "patch": patch}
    return card


def prepare_contract(
    item: SequenceItem,
    references: ReferenceTable,
    *,
    origin: Contract | None = None,
) -> Contract:
    """Turn an intent's card into the document handed to the store."""

    if is_patch(item.card):
        return _resolve(_with_origin_operation(item.card, origin), references)

    resolved = _resolve(item.card, references)
    contract = {**default_contract(), **resolved}
    if is_external_event(origin) and not item.skip_originator:
        contract["data"] = {**(contract.get("data") or {}), "origin": versioned_slug(origin)}
    return contract


async def _commit(
    context: SyncContext,
    item: SequenceItem,
    references: ReferenceTable,
    origin: Contract | None,
) -> Contract | None:
    contract = prepare_contract(item, references, origin=origin)

    if not item.actor:
        name = item.card.get("slug") or item.card.get("id")
        raise SyncNoActor(f"No actor in sequence item for {name}")

    type_name = contract.get("type")
    if not is_patch(contract) and not type_name:
        raise SyncInvalidType(f"Contract {contract.get('slug')} has no type")

    originator = None if item.skip_originator or origin is None else origin.get("id")
    return await context.upsert_element(
        type_name,
        contract,
        UpsertOptions(timestamp=item.time, actor=item.actor, originator=originator),
    )


async def _run_bounded(
    jobs: Sequence[Callable[[], Awaitable[None]]],
    concurrency: int,
) -> None:
    semaphore = asyncio.Semaphore(concurrency)

    async def guarded(job: Callable[[], Awaitable[None]]) -> None:
        async with semaphore:
            await job()

    tasks = [asyncio.ensure_future(guarded(job)) for job in jobs]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def import_contracts(
    context: SyncContext,
    sequence: Sequence[SequenceStep],
    *,
    origin: Contract | None = None,
    references: ReferenceTable | None = None,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> list[Contract]:
    """Commit every intent of ``sequence`` and return what was written.

    Batches run one after another; the intents of one batch run concurrently
    (at most ``concurrency`` at a time) and must not depend on each other.
    Placeholders are resolved right before their intent is committed, against
    everything committed earlier in the same call. A failure aborts the import
    but keeps what was already written.
    """

    table = references if references is not None else ReferenceTable()
    committed: list[Contract] = []

    for step in sequence:
        batch = as_batch(step)
        index = table.open_batch(len(batch))

        def make_job(
            subindex: int, item: SequenceItem, index: int = index
        ) -> Callable[[], Awaitable[None]]:
            async def job() -> None:
                result = await _commit(context, item, table, origin)
                if result is not None:
                    committed.append(result)
                    table.record(index, subindex, result)

            return job

        await _run_bounded(
            [make_job(subindex, item) for subindex, item in enumerate(batch)],
            concurrency,
        )

    log.debug("Imported %d contract(s) from %d step(s)", len(committed), len(sequence))
    return committed


__all__ = [
    "DEFAULT_CONCURRENCY",
    "as_batch",
    "import_contracts",
    "prepare_contract",
]
