"""Run an integration's translate or mirror step and import what it produces."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Literal

from jellysync.domain.pipeline import import_contracts
from jellysync.runtime.instance import run

if TYPE_CHECKING:
    from jellysync.config.integrations import IntegrationToken
    from jellysync.domain.ports.integration import Integration
    from jellysync.domain.types import Contract
    from jellysync.runtime.instance import RunOptions

log = getLogger(__name__)

type Direction = Literal["translate", "mirror"]


async def run_integration(
    integration: type[Integration],
    token: IntegrationToken,
    direction: Direction,
    contract: Contract,
    options: RunOptions,
) -> list[Contract]:
    async def step(instance: Integration) -> list[Contract]:
        if direction == "translate":
            sequence = await instance.translate(contract, actor=options.actor)
        else:
            sequence = await instance.mirror(contract, actor=options.actor)
        log.debug(
            "Processing %s pipeline sequence of %d step(s) for %s",
            direction,
            len(sequence),
            contract.get("slug"),
        )
        return await import_contracts(options.context, sequence, origin=contract)

    return await run(integration, token, step, options)


async def translate_external_event(
    integration: type[Integration],
    token: IntegrationToken,
    event: Contract,
    options: RunOptions,
) -> list[Contract]:
    """Turn an external event into local contracts."""

    return await run_integration(integration, token, "translate", event, options)


async def mirror_contract(
    integration: type[Integration],
    token: IntegrationToken,
    contract: Contract,
    options: RunOptions,
) -> list[Contract]:
    """Propagate a local contract to the provider and import the resulting updates."""

    return await run_integration(integration, token, "mirror", contract, options)


__all__ = ["Direction", "mirror_contract", "run_integration", "translate_external_event"]
