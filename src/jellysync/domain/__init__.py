"""Domain layer: contracts, intents, templates and the import pipeline."""

from __future__ import annotations

from .errors import ERRORS, SyncError, is_retryable
from .pipeline import import_contracts
from .templates import ReferenceTable, Resolved, Unresolved, evaluate
from .types import Contract, SequenceItem, SequenceStep, UpsertOptions, default_contract

__all__ = [
    "ERRORS",
    "Contract",
    "ReferenceTable",
    "Resolved",
    "SequenceItem",
    "SequenceStep",
    "SyncError",
    "Unresolved",
    "UpsertOptions",
    "default_contract",
    "evaluate",
    "import_contracts",
    "is_retryable",
]
