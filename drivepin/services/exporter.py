"""Capture the current drive letter layout as a mapping."""

from __future__ import annotations

from typing import Callable, Optional

from drivepin.domain.models import Mapping
from drivepin.logging import LoggerFactory
from drivepin.storage.exceptions import (
    DrivePinError,
    EnumerationError,
    MappingFormatError,
)
from drivepin.storage.privilege import require_elevated
from drivepin.storage.volumes import VolumeDirectory


def export_mapping(directory: VolumeDirectory, log=None) -> Mapping:
    """Build a mapping from every volume that has a letter and an identifier.

    Volumes without either (system reserved, recovery, unlettered data
    partitions) are left out. Entries are sorted by letter so repeated
    exports of an unchanged machine are identical.

    Raises:
        EnumerationError: If listing volumes fails
    """
    log = log or LoggerFactory.for_export()
    try:
        volumes = directory.list_volumes()
    except DrivePinError:
        raise
    except Exception as error:
        raise EnumerationError(f"Volume listing failed: {error}") from error

    exportable = [volume for volume in volumes if volume.is_exportable]
    # Directories other than PowerShellVolumes may hand back decorated
    # letters and ids, so normalize before sorting.
    try:
        unordered = Mapping.from_pairs(
            (volume.current_letter, volume.durable_id) for volume in exportable
        )
    except MappingFormatError as error:
        raise EnumerationError(f"Invalid volume data: {error}") from error
    mapping = Mapping(
        entries=tuple(sorted(unordered.entries, key=lambda entry: entry.letter))
    )

    skipped = len(volumes) - len(mapping)
    for entry in mapping:
        log.debug(f"{entry.letter}: -> {entry.durable_id}")
    log.info(f"Exported {len(mapping)} volumes ({skipped} without letter or id skipped)")
    return mapping


class Exporter:
    """Export flow with its privilege check."""

    def __init__(
        self,
        directory: VolumeDirectory,
        privilege_check: Optional[Callable[[], None]] = None,
    ):
        self.directory = directory
        self.privilege_check = privilege_check or require_elevated

    def export(self) -> Mapping:
        """
        Raises:
            PrivilegeError: If not running elevated
            EnumerationError: If listing volumes fails
        """
        self.privilege_check()
        return export_mapping(self.directory)
