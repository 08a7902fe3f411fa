"""Forward-reference templates for contract cards.

A card may contain ``{"$eval": "<path>"}`` placeholders anywhere inside it. The
placeholder is replaced by the value found at ``<path>`` in an environment that
grows while a sequence is imported, so a later intent can point at a contract
that did not exist when the sequence was built::

    {"type": "message@1.0.0", "data": {"target": {"$eval": "contracts[0].id"}}}

Paths are restricted to lookups: a leading name followed by any number of
``.name``, ``[index]`` or ``["key"]`` selectors. A path that cannot be followed
(missing key, index out of range, ``None`` on the way) leaves the placeholder
:class:`Unresolved`. A path that cannot be parsed is a programming error and
raises :class:`~jellysync.domain.errors.SyncInvalidTemplate`.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from functools import cache
from typing import Any, Final, cast

from jellysync.domain.errors import SyncInvalidTemplate

EVAL_KEY: Final[str] = "$eval"

_NAME: Final[str] = r"[A-Za-z_$][A-Za-z0-9_$]*"
_HEAD = re.compile(rf"\s*({_NAME})")
_SELECTORS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(rf"\s*\.\s*({_NAME})"),
    re.compile(r"\s*\[\s*(-?\d+)\s*\]"),
    re.compile(r'\s*\[\s*"((?:[^"\\]|\\.)*)"\s*\]'),
    re.compile(r"\s*\[\s*'((?:[^'\\]|\\.)*)'\s*\]"),
)
_ESCAPE = re.compile(r"\\(.)")

type PathStep = str | int


@dataclass(slots=True, frozen=True)
class Resolved:
    value: Any


@dataclass(slots=True, frozen=True)
class Unresolved:
    expression: str
    reason: str


type EvaluationResult = Resolved | Unresolved


@cache
def parse_path(expression: str) -> tuple[PathStep, ...]:
    """Split a lookup expression into keys and indices."""

    head = _HEAD.match(expression)
    if head is None:
        raise SyncInvalidTemplate(f"Invalid template expression: {expression!r}")
    steps: list[PathStep] = [head.group(1)]
    position = head.end()
    end = len(expression.rstrip())
    while position < end:
        for index, pattern in enumerate(_SELECTORS):
            match = pattern.match(expression, position)
            if match is None:
                continue
            token = match.group(1)
            if index == 1:
                steps.append(int(token))
            elif index >= 2:  # noqa: PLR2004
                steps.append(_ESCAPE.sub(r"\1", token))
            else:
                steps.append(token)
            position = match.end()
            break
        else:
            raise SyncInvalidTemplate(
                f"Invalid template expression: {expression!r} (at offset {position})"
            )
    return tuple(steps)


def lookup(expression: str, environment: Mapping[str, Any]) -> EvaluationResult:
    """Follow ``expression`` through ``environment``."""

    current: Any = environment
    for step in parse_path(expression):
        if isinstance(step, int):
            if not isinstance(current, Sequence) or isinstance(current, str):
                return Unresolved(expression, f"cannot index into {type(current).__name__}")
            items = cast(Sequence[Any], current)
            if not -len(items) <= step < len(items):
                return Unresolved(expression, f"index {step} out of range")
            current = items[step]
        else:
            if not isinstance(current, Mapping):
                return Unresolved(expression, f"cannot read {step!r} from {type(current).__name__}")
            mapping = cast(Mapping[str, Any], current)
            if step not in mapping:
                return Unresolved(expression, f"{step!r} is not defined")
            current = mapping[step]
        if current is None:
            return Unresolved(expression, f"{step!r} is null")
    return Resolved(current)


def evaluate(node: Any, environment: Mapping[str, Any]) -> EvaluationResult:
    """Resolve every placeholder inside ``node`` without modifying it.

    Falsy nodes and scalars come back as they are. A single unresolved
    placeholder anywhere below ``node`` makes the whole node unresolved.
    """

    if not node:
        return Resolved(node)
    if isinstance(node, Mapping):
        mapping = cast(Mapping[str, Any], node)
        if EVAL_KEY in mapping:
            expression = mapping[EVAL_KEY]
            if not isinstance(expression, str):
                raise SyncInvalidTemplate(f"{EVAL_KEY} expects a string, got {expression!r}")
            return lookup(expression, environment)
        resolved: dict[str, Any] = {}
        for key, value in mapping.items():
            result = evaluate(value, environment)
            if isinstance(result, Unresolved):
                return result
            resolved[key] = result.value
        return Resolved(resolved)
    if isinstance(node, list):
        items: list[Any] = []
        for value in cast(list[Any], node):
            result = evaluate(value, environment)
            if isinstance(result, Unresolved):
                return result
            items.append(result.value)
        return Resolved(items)
    return Resolved(node)


type ReferenceEntry = Any


class ReferenceTable:
    """Contracts committed so far by one import, addressable by batch position.

    A batch holding a single intent is stored directly (``contracts[i]``); a
    batch of several intents is stored as a list (``contracts[i][j]``).
    Entries stay ``None`` until their intent is committed.
    """

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        self._initial: dict[str, Any] = dict(initial or {})
        self._contracts: list[ReferenceEntry] = []

    def __len__(self) -> int:
        return len(self._contracts)

    def open_batch(self, size: int) -> int:
        self._contracts.append(None if size == 1 else [None] * size)
        return len(self._contracts) - 1

    def record(self, index: int, subindex: int, contract: Mapping[str, Any]) -> None:
        slot = self._contracts[index]
        if isinstance(slot, list):
            cast(list[Any], slot)[subindex] = contract
        else:
            self._contracts[index] = contract

    def as_environment(self) -> dict[str, Any]:
        return {**self._initial, "contracts": self._contracts}


__all__ = [
    "EVAL_KEY",
    "EvaluationResult",
    "ReferenceTable",
    "Resolved",
    "Unresolved",
    "evaluate",
    "lookup",
    "parse_path",
]
