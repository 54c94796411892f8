"""Domain models for drive letter export and restore."""

from __future__ import annotations

from .models import (
    ActionKind,
    ActionStatus,
    EntryResult,
    Mapping,
    MappingEntry,
    Outcome,
    PlannedAction,
    RestoreReport,
    Volume,
    normalize_durable_id,
    normalize_letter,
)


__all__ = [
    "ActionKind",
    "ActionStatus",
    "EntryResult",
    "Mapping",
    "MappingEntry",
    "Outcome",
    "PlannedAction",
    "RestoreReport",
    "Volume",
    "normalize_durable_id",
    "normalize_letter",
]
