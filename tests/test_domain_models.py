"""Tests for drivepin.domain.models."""

import pytest

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
    normalize_letter,
)
from drivepin.storage.exceptions import MappingFormatError


class TestNormalizeLetter:
    @pytest.mark.parametrize("value", ["e", "E", "E:", "E:\\", " e: "])
    def test_accepted_spellings(self, value):
        assert normalize_letter(value) == "E"

    @pytest.mark.parametrize("value", [None, "", "\x00", "  "])
    def test_no_letter(self, value):
        assert normalize_letter(value) is None

    @pytest.mark.parametrize("value", ["EF", "1", "É", "?:"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            normalize_letter(value)


class TestNormalizeDurableId:
    def test_strips_braces_and_lowercases(self):
        assert (
            normalize_durable_id("{5C1E2A44-7F31-4B8E-9A61-0C2D3E4F5A6B}")
            == "5c1e2a44-7f31-4b8e-9a61-0c2d3e4f5a6b"
        )

    def test_plain_id_unchanged(self):
        assert normalize_durable_id("abc-123") == "abc-123"

    def test_empty_values(self):
        assert normalize_durable_id(None) is None
        assert normalize_durable_id("") is None
        assert normalize_durable_id("{}") is None


class TestVolume:
    def test_from_partition_dict(self, partition_rows):
        volume = Volume.from_partition_dict(partition_rows[1])
        assert volume.disk_index == 0
        assert volume.partition_index == 3
        assert volume.current_letter == "C"
        assert volume.durable_id == "5c1e2a44-7f31-4b8e-9a61-0c2d3e4f5a6b"
        assert volume.size_bytes == 255398199296

    def test_from_partition_dict_nul_letter(self, partition_rows):
        volume = Volume.from_partition_dict(partition_rows[0])
        assert volume.current_letter is None
        assert not volume.is_exportable

    def test_from_partition_dict_missing_guid(self, partition_rows):
        volume = Volume.from_partition_dict(partition_rows[2])
        assert volume.durable_id is None
        assert volume.current_letter == "D"
        assert not volume.is_exportable

    def test_from_partition_dict_missing_index(self):
        with pytest.raises(KeyError):
            Volume.from_partition_dict({"PartitionNumber": 1})

    def test_format_label(self, data_volume, recovery_volume):
        assert data_volume.format_label() == "disk 1 part 2 (F:)"
        assert recovery_volume.format_label() == "disk 0 part 4 (no letter)"

    def test_with_letter_returns_copy(self, data_volume):
        moved = data_volume.with_letter("E")
        assert moved.current_letter == "E"
        assert data_volume.current_letter == "F"
        assert moved.key == data_volume.key
        assert moved.durable_id == data_volume.durable_id


class TestMapping:
    def test_from_pairs_keeps_order_and_normalizes(self):
        mapping = Mapping.from_pairs([("e:", "{ABC}"), ("C", "def")])
        assert mapping.letters() == ["E", "C"]
        assert list(mapping) == [
            MappingEntry(letter="E", durable_id="abc"),
            MappingEntry(letter="C", durable_id="def"),
        ]
        assert len(mapping) == 2

    def test_duplicate_letters_allowed_but_reported(self):
        mapping = Mapping.from_pairs([("E", "abc"), ("e:", "def")])
        assert mapping.letters() == ["E", "E"]
        assert mapping.duplicate_letters() == ["E"]
        assert [entry.durable_id for entry in mapping] == ["abc", "def"]

    def test_invalid_letter_rejected(self):
        with pytest.raises(MappingFormatError):
            Mapping.from_pairs([("EE", "abc")])

    def test_empty_id_rejected(self):
        with pytest.raises(MappingFormatError, match="Missing volume identifier"):
            Mapping.from_pairs([("E", "  ")])

    def test_duplicate_ids_allowed_but_reported(self):
        mapping = Mapping.from_pairs([("E", "abc"), ("G", "abc"), ("H", "xyz")])
        assert mapping.duplicate_ids() == ["abc"]

    def test_is_immutable(self):
        mapping = Mapping.from_pairs([("E", "abc")])
        with pytest.raises(AttributeError):
            mapping.entries = ()


class TestEntryResult:
    entry = MappingEntry(letter="E", durable_id="abc")

    def test_assigned_with_conflict_line(self, data_volume, backup_volume):
        result = EntryResult(
            entry=self.entry,
            outcome=Outcome.ASSIGNED,
            target=data_volume,
            conflict=backup_volume,
        )
        line = result.status_line()
        assert line.startswith("E: assigned to abc")
        assert "removed from disk 2 part 1 (E:)" in line

    def test_dry_run_line(self, data_volume):
        result = EntryResult(entry=self.entry, outcome=Outcome.ASSIGNED, target=data_volume)
        assert result.status_line(dry_run=True) == "[DRY RUN] E: would assign to abc"

    def test_failure_line_includes_error(self):
        result = EntryResult(
            entry=self.entry, outcome=Outcome.ASSIGN_FAILED, error="access denied"
        )
        assert result.status_line() == "E: assignment failed: access denied"

    @pytest.mark.parametrize(
        "outcome, text",
        [
            (Outcome.ALREADY_CORRECT, "already assigned"),
            (Outcome.NOT_FOUND, "no volume found"),
            (Outcome.SKIPPED, "skipped"),
            (Outcome.CONFLICT_UNASSIGN_FAILED, "could not be freed"),
            (Outcome.ENUMERATION_FAILED, "volume listing failed"),
        ],
    )
    def test_every_outcome_has_a_line(self, outcome, text):
        result = EntryResult(entry=self.entry, outcome=outcome)
        assert text in result.status_line()


class TestOutcome:
    def test_error_and_warning_classes(self):
        assert Outcome.ASSIGN_FAILED.is_error
        assert Outcome.CONFLICT_UNASSIGN_FAILED.is_error
        assert Outcome.ENUMERATION_FAILED.is_error
        assert Outcome.NOT_FOUND.is_warning
        assert Outcome.SKIPPED.is_warning
        assert not Outcome.ASSIGNED.is_error
        assert not Outcome.ALREADY_CORRECT.is_warning


class TestPlannedAction:
    def test_describe(self, data_volume):
        assign = PlannedAction(kind=ActionKind.ASSIGN, volume=data_volume, letter="E")
        unassign = PlannedAction(kind=ActionKind.UNASSIGN, volume=data_volume, letter="F")
        assert assign.describe() == "assign E: to disk 1 part 2"
        assert unassign.describe() == "remove F: from disk 1 part 2"

    def test_resolved_keeps_fields(self, data_volume):
        action = PlannedAction(kind=ActionKind.ASSIGN, volume=data_volume, letter="E")
        failed = action.resolved(ActionStatus.FAILED, "boom")
        assert failed.status == ActionStatus.FAILED
        assert failed.error == "boom"
        assert failed.kind == ActionKind.ASSIGN
        assert action.status is None


class TestRestoreReport:
    def test_counts_and_summary(self):
        report = RestoreReport()
        entry = MappingEntry(letter="E", durable_id="abc")
        report.add(EntryResult(entry=entry, outcome=Outcome.ASSIGNED))
        report.add(EntryResult(entry=entry, outcome=Outcome.NOT_FOUND))
        report.add(EntryResult(entry=entry, outcome=Outcome.ASSIGNED))

        counts = report.counts()
        assert counts[Outcome.ASSIGNED] == 2
        assert counts[Outcome.NOT_FOUND] == 1
        assert counts[Outcome.SKIPPED] == 0
        assert not report.has_errors
        assert report.summary_line() == "3 entries: 2 assigned, 1 not-found"

    def test_empty_summary(self):
        assert RestoreReport(dry_run=True).summary_line() == (
            "[DRY RUN] No mapping entries processed"
        )

    def test_has_errors(self):
        report = RestoreReport()
        entry = MappingEntry(letter="E", durable_id="abc")
        report.add(EntryResult(entry=entry, outcome=Outcome.ASSIGN_FAILED))
        assert report.has_errors
