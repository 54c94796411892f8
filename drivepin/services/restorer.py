"""Restore drive letters from a mapping.

Entries are processed one at a time in mapping order. For each entry the
volume list is queried again, because earlier entries in the same run may
have moved letters around:

    1. Find the volume whose durable id matches the entry (NOT_FOUND if none)
    2. Stop if it already holds the letter (ALREADY_CORRECT)
    3. If another volume holds the letter, remove it from that volume first
       (CONFLICT_UNASSIGN_FAILED stops the entry if that fails)
    4. Assign the letter to the target (ASSIGNED or ASSIGN_FAILED)

Every mutation passes through one gate. In dry-run mode the gate records the
action without executing it and keeps a simulated letter table so later
entries see the planned changes, just as they would see real ones. With a
confirm callback the gate asks before each mutation; a declined action ends
that entry as SKIPPED and the run continues.

Failures never stop the run and are never retried. Only an enumeration
failure before the first entry propagates to the caller.
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence

from drivepin.domain.models import (
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
)
from drivepin.logging import LoggerFactory, operation_context
from drivepin.storage.exceptions import EnumerationError, MutationError
from drivepin.storage.privilege import require_elevated
from drivepin.storage.volumes import VolumeDirectory, VolumeLetterMutator

ConfirmCallback = Callable[[PlannedAction], bool]
ResultCallback = Callable[[EntryResult], None]


class _SimulatedLetters:
    """Letter changes planned during a dry run, overlaid on fresh listings."""

    def __init__(self) -> None:
        self.overrides: dict[tuple[int, int], Optional[str]] = {}

    def apply(self, volumes: Sequence[Volume]) -> list[Volume]:
        return [
            volume.with_letter(self.overrides[volume.key])
            if volume.key in self.overrides
            else volume
            for volume in volumes
        ]

    def record(self, action: PlannedAction) -> None:
        if action.kind == ActionKind.UNASSIGN:
            self.overrides[action.volume.key] = None
        else:
            self.overrides[action.volume.key] = action.letter


def find_by_id(volumes: Sequence[Volume], durable_id: str) -> Optional[Volume]:
    wanted = normalize_durable_id(durable_id)
    for volume in volumes:
        if volume.durable_id is not None and normalize_durable_id(volume.durable_id) == wanted:
            return volume
    return None


def find_by_letter(
    volumes: Sequence[Volume], letter: str, exclude: Optional[Volume] = None
) -> Optional[Volume]:
    for volume in volumes:
        if exclude is not None and volume.key == exclude.key:
            continue
        if volume.current_letter == letter:
            return volume
    return None


def _gate(
    action: PlannedAction,
    mutator: VolumeLetterMutator,
    dry_run: bool,
    confirm: Optional[ConfirmCallback],
    simulated: Optional[_SimulatedLetters],
    log,
) -> PlannedAction:
    if dry_run:
        if simulated is not None:
            simulated.record(action)
        log.debug(f"Dry run: would {action.describe()}")
        return action.resolved(ActionStatus.DRY_RUN)

    if confirm is not None and not confirm(action):
        log.warning(f"Declined: {action.describe()}")
        return action.resolved(ActionStatus.DECLINED)

    volume = action.volume
    try:
        if action.kind == ActionKind.UNASSIGN:
            mutator.unassign_letter(volume.disk_index, volume.partition_index, action.letter)
        else:
            mutator.assign_letter(volume.disk_index, volume.partition_index, action.letter)
    except MutationError as error:
        log.debug(f"Mutation failed: {error}")
        return action.resolved(ActionStatus.FAILED, str(error))
    log.debug(f"Done: {action.describe()}")
    return action.resolved(ActionStatus.EXECUTED)


def process_entry(
    entry: MappingEntry,
    volumes: Sequence[Volume],
    mutator: VolumeLetterMutator,
    *,
    dry_run: bool = False,
    confirm: Optional[ConfirmCallback] = None,
    simulated: Optional[_SimulatedLetters] = None,
    log=None,
) -> EntryResult:
    """Resolve and apply a single mapping entry against a volume listing."""
    log = log or LoggerFactory.for_restore()
    target = find_by_id(volumes, entry.durable_id)
    if target is None:
        return EntryResult(entry=entry, outcome=Outcome.NOT_FOUND)
    log.debug(f"{entry.letter}: target is {target.format_label()}")

    if target.current_letter == entry.letter:
        return EntryResult(entry=entry, outcome=Outcome.ALREADY_CORRECT, target=target)

    conflict = find_by_letter(volumes, entry.letter, exclude=target)
    actions: list[PlannedAction] = []

    if conflict is not None:
        log.debug(f"{entry.letter}: currently held by {conflict.format_label()}")
        unassign = _gate(
            PlannedAction(kind=ActionKind.UNASSIGN, volume=conflict, letter=entry.letter),
            mutator,
            dry_run,
            confirm,
            simulated,
            log,
        )
        actions.append(unassign)
        if unassign.status == ActionStatus.DECLINED:
            return EntryResult(
                entry=entry,
                outcome=Outcome.SKIPPED,
                target=target,
                conflict=conflict,
                actions=tuple(actions),
            )
        if unassign.status == ActionStatus.FAILED:
            return EntryResult(
                entry=entry,
                outcome=Outcome.CONFLICT_UNASSIGN_FAILED,
                target=target,
                conflict=conflict,
                actions=tuple(actions),
                error=unassign.error,
            )

    assign = _gate(
        PlannedAction(kind=ActionKind.ASSIGN, volume=target, letter=entry.letter),
        mutator,
        dry_run,
        confirm,
        simulated,
        log,
    )
    actions.append(assign)
    if assign.status == ActionStatus.DECLINED:
        outcome = Outcome.SKIPPED
    elif assign.status == ActionStatus.FAILED:
        outcome = Outcome.ASSIGN_FAILED
    else:
        outcome = Outcome.ASSIGNED
    return EntryResult(
        entry=entry,
        outcome=outcome,
        target=target,
        conflict=conflict,
        actions=tuple(actions),
        error=assign.error,
    )


def _log_result(log, result: EntryResult, dry_run: bool, echoed: bool) -> None:
    line = result.status_line(dry_run=dry_run)
    if echoed:
        # The caller already shows this line to the operator.
        log.debug(line)
    elif result.outcome.is_error:
        log.error(line)
    elif result.outcome.is_warning:
        log.warning(line)
    else:
        log.info(line)


def restore(
    mapping: Mapping,
    directory: VolumeDirectory,
    mutator: VolumeLetterMutator,
    *,
    dry_run: bool = False,
    confirm: Optional[ConfirmCallback] = None,
    on_result: Optional[ResultCallback] = None,
    log=None,
) -> RestoreReport:
    """Apply ``mapping`` to the volumes reported by ``directory``.

    Args:
        mapping: Desired letter -> identifier assignments, processed in order
        directory: Live volume listing, queried once per entry
        mutator: Executes letter changes (unused in dry-run mode)
        dry_run: Record intended actions without executing them
        confirm: Called with each action right before it runs; False skips it
        on_result: Called with each entry's result as soon as it is known.
            Status lines and the summary are then logged at DEBUG only
        log: Bound logger (defaults to a restore logger)

    Returns:
        RestoreReport with one result per mapping entry, in order

    Raises:
        EnumerationError: If listing volumes fails before the first entry
    """
    log = log or LoggerFactory.for_restore()
    report = RestoreReport(dry_run=dry_run)
    echoed = on_result is not None
    simulated = _SimulatedLetters() if dry_run else None

    for index, entry in enumerate(mapping):
        try:
            volumes = directory.list_volumes()
        except EnumerationError as error:
            if index == 0:
                raise
            result = EntryResult(
                entry=entry, outcome=Outcome.ENUMERATION_FAILED, error=str(error)
            )
        else:
            if simulated is not None:
                volumes = simulated.apply(volumes)
            result = process_entry(
                entry,
                volumes,
                mutator,
                dry_run=dry_run,
                confirm=confirm,
                simulated=simulated,
                log=log,
            )
        report.add(result)
        _log_result(log, result, dry_run, echoed)
        if on_result is not None:
            on_result(result)

    done = [
        action
        for action in report.actions
        if action.status in (ActionStatus.EXECUTED, ActionStatus.DRY_RUN)
    ]
    verb = "planned" if dry_run else "made"
    summary = f"{report.summary_line()} ({len(done)} of {len(report.actions)} letter changes {verb})"
    if echoed:
        log.debug(summary)
    else:
        log.info(summary)
    return report


class Restorer:
    """Restore flow with its privilege check and collaborators bundled."""

    def __init__(
        self,
        directory: VolumeDirectory,
        mutator: VolumeLetterMutator,
        privilege_check: Optional[Callable[[], None]] = None,
    ):
        self.directory = directory
        self.mutator = mutator
        self.privilege_check = privilege_check or require_elevated

    def restore(
        self,
        mapping: Mapping,
        *,
        dry_run: bool = False,
        confirm: Optional[ConfirmCallback] = None,
        on_result: Optional[ResultCallback] = None,
    ) -> RestoreReport:
        """
        Raises:
            PrivilegeError: If not running elevated
            EnumerationError: If listing volumes fails before the first entry
        """
        self.privilege_check()
        with operation_context(
            "restore", letters=",".join(mapping.letters()), dry_run=dry_run
        ) as log:
            return restore(
                mapping,
                self.directory,
                self.mutator,
                dry_run=dry_run,
                confirm=confirm,
                on_result=on_result,
                log=log,
            )
