"""Domain model for drive letter export and restore.

Volumes come from the live system, mappings come from a config file, and
the restorer produces one ``EntryResult`` per mapping entry.
"""

from __future__ import annotations

import string
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Iterator

from drivepin.storage.exceptions import MappingFormatError


VALID_LETTERS = frozenset(string.ascii_uppercase)


def normalize_letter(value: Any) -> str | None:
    """Normalize a drive letter to a single uppercase character.

    Accepts ``"e"``, ``"E"``, ``"E:"`` and ``"E:\\"``. Returns None for
    empty values and the NUL character PowerShell uses for "no letter".

    Raises:
        ValueError: If the value is not a drive letter
    """
    if value is None:
        return None
    text = str(value).strip().rstrip("\\/")
    if text.endswith(":"):
        text = text[:-1]
    if not text or text == "\x00":
        return None
    letter = text.upper()
    if len(letter) != 1 or letter not in VALID_LETTERS:
        raise ValueError(f"Invalid drive letter: {value!r}")
    return letter


def normalize_durable_id(value: Any) -> str | None:
    """Strip curly braces and whitespace from a volume identifier, lowercased."""
    if value is None:
        return None
    text = str(value).strip()
    if text.startswith("{") and text.endswith("}"):
        text = text[1:-1].strip()
    if not text:
        return None
    return text.lower()


# ==============================================================================
# Volume Domain
# ==============================================================================


@dataclass(frozen=True)
class Volume:
    """A partition as reported by the volume directory.

    ``disk_index`` and ``partition_index`` are only used to address
    mutation calls. Identity is ``durable_id``.
    """

    disk_index: int
    partition_index: int
    durable_id: str | None = None
    current_letter: str | None = None
    size_bytes: int | None = None

    @property
    def is_exportable(self) -> bool:
        """True when the volume has both a letter and a durable identifier."""
        return self.current_letter is not None and self.durable_id is not None

    @property
    def key(self) -> tuple[int, int]:
        return (self.disk_index, self.partition_index)

    def format_label(self) -> str:
        """Format a human-readable label.

        Returns: e.g., "disk 1 part 2 (E:)" or "disk 0 part 1 (no letter)"
        """
        letter = f"{self.current_letter}:" if self.current_letter else "no letter"
        return f"disk {self.disk_index} part {self.partition_index} ({letter})"

    def with_letter(self, letter: str | None) -> Volume:
        return Volume(
            disk_index=self.disk_index,
            partition_index=self.partition_index,
            durable_id=self.durable_id,
            current_letter=letter,
            size_bytes=self.size_bytes,
        )

    @classmethod
    def from_partition_dict(cls, partition: dict[str, Any]) -> Volume:
        """Convert a ``Get-Partition`` JSON row to a Volume.

        Args:
            partition: Dict with keys DiskNumber, PartitionNumber, DriveLetter,
                Guid and Size

        Returns:
            Volume domain object

        Raises:
            KeyError: If DiskNumber or PartitionNumber is missing
            ValueError: If an index is not an integer or the letter is invalid
        """
        size = partition.get("Size")
        return cls(
            disk_index=int(partition["DiskNumber"]),
            partition_index=int(partition["PartitionNumber"]),
            durable_id=normalize_durable_id(partition.get("Guid")),
            current_letter=normalize_letter(partition.get("DriveLetter")),
            size_bytes=int(size) if size is not None else None,
        )


# ==============================================================================
# Mapping Domain
# ==============================================================================


@dataclass(frozen=True)
class MappingEntry:
    """One desired assignment: ``letter`` should belong to ``durable_id``."""

    letter: str
    durable_id: str


@dataclass(frozen=True)
class Mapping:
    """Ordered, immutable letter -> identifier declaration.

    Letters and identifiers are expected to be unique but repeats are
    tolerated: every entry is processed on its own, in order.
    ``duplicate_letters()`` and ``duplicate_ids()`` list them for validation.
    """

    entries: tuple[MappingEntry, ...] = ()

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[Any, Any]]) -> Mapping:
        """Build a mapping from (letter, identifier) pairs, normalizing both.

        Raises:
            MappingFormatError: On an invalid letter or empty identifier
        """
        entries = []
        for raw_letter, raw_id in pairs:
            try:
                letter = normalize_letter(raw_letter)
            except ValueError as error:
                raise MappingFormatError(str(error)) from error
            if letter is None:
                raise MappingFormatError(f"Missing drive letter for {raw_id!r}")
            durable_id = normalize_durable_id(raw_id)
            if durable_id is None:
                raise MappingFormatError(f"Missing volume identifier for {letter}")
            entries.append(MappingEntry(letter=letter, durable_id=durable_id))
        return cls(entries=tuple(entries))

    def __iter__(self) -> Iterator[MappingEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def letters(self) -> list[str]:
        return [entry.letter for entry in self.entries]

    def duplicate_letters(self) -> list[str]:
        counts = Counter(entry.letter for entry in self.entries)
        return [letter for letter, count in counts.items() if count > 1]

    def duplicate_ids(self) -> list[str]:
        counts = Counter(entry.durable_id for entry in self.entries)
        return [durable_id for durable_id, count in counts.items() if count > 1]


# ==============================================================================
# Restore Domain
# ==============================================================================


class ActionKind(Enum):
    """Mutation issued against the letter mutator."""

    UNASSIGN = "unassign"
    ASSIGN = "assign"


class ActionStatus(Enum):
    """What happened to a planned mutation."""

    EXECUTED = "executed"
    DRY_RUN = "dry-run"  # would have been executed
    DECLINED = "declined"  # operator said no
    FAILED = "failed"


@dataclass(frozen=True)
class PlannedAction:
    """A single gated mutation: assign or remove ``letter`` on ``volume``."""

    kind: ActionKind
    volume: Volume
    letter: str
    status: ActionStatus | None = None
    error: str | None = None

    def describe(self) -> str:
        """Short operator-facing description of the action."""
        target = f"disk {self.volume.disk_index} part {self.volume.partition_index}"
        if self.kind == ActionKind.UNASSIGN:
            return f"remove {self.letter}: from {target}"
        return f"assign {self.letter}: to {target}"

    def resolved(self, status: ActionStatus, error: str | None = None) -> PlannedAction:
        return PlannedAction(
            kind=self.kind,
            volume=self.volume,
            letter=self.letter,
            status=status,
            error=error,
        )


class Outcome(Enum):
    """Final result of processing one mapping entry."""

    ALREADY_CORRECT = "already-correct"
    ASSIGNED = "assigned"
    NOT_FOUND = "not-found"
    CONFLICT_UNASSIGN_FAILED = "conflict-unassign-failed"
    ASSIGN_FAILED = "assign-failed"
    SKIPPED = "skipped"
    ENUMERATION_FAILED = "enumeration-failed"

    @property
    def is_error(self) -> bool:
        return self in (
            Outcome.CONFLICT_UNASSIGN_FAILED,
            Outcome.ASSIGN_FAILED,
            Outcome.ENUMERATION_FAILED,
        )

    @property
    def is_warning(self) -> bool:
        return self in (Outcome.NOT_FOUND, Outcome.SKIPPED)


@dataclass(frozen=True)
class EntryResult:
    """Resolution of one mapping entry, including any actions taken."""

    entry: MappingEntry
    outcome: Outcome
    target: Volume | None = None
    conflict: Volume | None = None
    actions: tuple[PlannedAction, ...] = ()
    error: str | None = None

    def status_line(self, dry_run: bool = False) -> str:
        """Format the one-line per-entry status shown to the operator."""
        letter = f"{self.entry.letter}:"
        prefix = "[DRY RUN] " if dry_run else ""
        if self.outcome == Outcome.ALREADY_CORRECT:
            return f"{prefix}{letter} already assigned to {self.entry.durable_id}"
        if self.outcome == Outcome.NOT_FOUND:
            return f"{prefix}{letter} no volume found with id {self.entry.durable_id}"
        if self.outcome == Outcome.ASSIGNED:
            verb = "would assign" if dry_run else "assigned"
            line = f"{prefix}{letter} {verb} to {self.entry.durable_id}"
            if self.conflict is not None:
                taken = "would be removed from" if dry_run else "removed from"
                line += f" ({letter} {taken} {self.conflict.format_label()})"
            return line
        if self.outcome == Outcome.SKIPPED:
            return f"{prefix}{letter} skipped by operator"
        detail = f": {self.error}" if self.error else ""
        if self.outcome == Outcome.CONFLICT_UNASSIGN_FAILED:
            return f"{prefix}{letter} could not be freed{detail}"
        if self.outcome == Outcome.ASSIGN_FAILED:
            return f"{prefix}{letter} assignment failed{detail}"
        return f"{prefix}{letter} volume listing failed{detail}"


@dataclass
class RestoreReport:
    """Ordered results of a restore run."""

    dry_run: bool = False
    results: list[EntryResult] = field(default_factory=list)

    def add(self, result: EntryResult) -> None:
        self.results.append(result)

    @property
    def actions(self) -> list[PlannedAction]:
        return [action for result in self.results for action in result.actions]

    @property
    def outcomes(self) -> list[Outcome]:
        return [result.outcome for result in self.results]

    @property
    def has_errors(self) -> bool:
        return any(outcome.is_error for outcome in self.outcomes)

    def counts(self) -> dict[Outcome, int]:
        counts = Counter(self.outcomes)
        return {outcome: counts.get(outcome, 0) for outcome in Outcome}

    def summary_line(self) -> str:
        parts = [
            f"{count} {outcome.value}"
            for outcome, count in self.counts().items()
            if count
        ]
        prefix = "[DRY RUN] " if self.dry_run else ""
        if not parts:
            return f"{prefix}No mapping entries processed"
        return f"{prefix}{len(self.results)} entries: " + ", ".join(parts)
