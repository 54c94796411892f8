"""Volume enumeration and drive letter mutation through PowerShell.

This module defines the two narrow collaborators the export and restore flows
depend on, plus the production implementation backed by the Windows
Storage cmdlets.

Collaborators:
    - VolumeDirectory: list_volumes() returns the live partition table
    - VolumeLetterMutator: assign_letter() / unassign_letter() change a
      single partition's drive letter access path

PowerShell Commands:
    Enumeration:
        Get-Partition | Select-Object DiskNumber,PartitionNumber,DriveLetter,
            Guid,Size | ConvertTo-Json -Compress
    Assign:
        Set-Partition -DiskNumber N -PartitionNumber M -NewDriveLetter X
    Unassign:
        Remove-PartitionAccessPath -DiskNumber N -PartitionNumber M -AccessPath 'X:\\'

ConvertTo-Json emits a bare object instead of an array when there is exactly
one partition, and nothing at all when there are none. Both cases are
handled. Results are never cached: every list_volumes() call queries the
system again, since a restore run changes letters between calls.

Example:
    >>> from drivepin.storage.volumes import PowerShellVolumes
    >>> backend = PowerShellVolumes()
    >>> for volume in backend.list_volumes():
    ...     print(volume.format_label(), volume.durable_id)
    disk 0 part 3 (C:) 5c1e2a44-...
"""

from __future__ import annotations

import json
import subprocess
from typing import Any, Iterable, Protocol, Sequence

from drivepin.domain.models import Volume
from drivepin.logging import LoggerFactory
from drivepin.storage.exceptions import EnumerationError, MutationError

DEFAULT_POWERSHELL = "powershell.exe"

LIST_PARTITIONS_SCRIPT = (
    "Get-Partition | "
    "Select-Object DiskNumber,PartitionNumber,DriveLetter,Guid,Size | "
    "ConvertTo-Json -Compress"
)

log = LoggerFactory.for_backend()


class VolumeDirectory(Protocol):
    """Source of the live volume list."""

    def list_volumes(self) -> list[Volume]:
        """
        Enumerate all volumes as they are right now.

        Raises:
            EnumerationError: If the platform listing fails
        """
        ...


class VolumeLetterMutator(Protocol):
    """Changes drive letter access paths on a single partition."""

    def assign_letter(self, disk_index: int, partition_index: int, letter: str) -> None:
        """
        Give the partition ``letter``.

        Raises:
            MutationError: If the letter could not be assigned
        """
        ...

    def unassign_letter(self, disk_index: int, partition_index: int, letter: str) -> None:
        """
        Remove ``letter`` from the partition.

        Raises:
            MutationError: If the access path could not be removed
        """
        ...


def run_command(command, check=True, log_output=True):
    log.trace(f"Running command: {' '.join(command)}")
    try:
        result = subprocess.run(command, check=check, text=True, capture_output=True)
    except subprocess.CalledProcessError as error:
        log.debug(f"Command failed with return code {error.returncode}: {' '.join(command)}")
        if error.stdout:
            log.bind(tags=["command-output"]).trace(f"stdout: {error.stdout.strip()}")
        if error.stderr:
            log.debug(f"stderr: {error.stderr.strip()}")
        raise
    if result.stdout and log_output:
        log.bind(tags=["command-output"]).trace(f"stdout: {result.stdout.strip()}")
    if result.stderr and (log_output or result.returncode != 0):
        log.debug(f"stderr: {result.stderr.strip()}")
    log.trace(f"Command completed with return code {result.returncode}")
    return result


def parse_partition_json(output: str) -> list[Volume]:
    """Parse ``Get-Partition | ConvertTo-Json`` output into volumes.

    Raises:
        EnumerationError: If the output is not valid partition JSON
    """
    text = (output or "").strip()
    if not text:
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError as error:
        raise EnumerationError(f"Invalid partition listing: {error}") from error
    rows: Iterable[Any] = [data] if isinstance(data, dict) else data
    if not isinstance(rows, list):
        raise EnumerationError(f"Unexpected partition listing type: {type(data).__name__}")
    volumes = []
    for row in rows:
        if not isinstance(row, dict):
            raise EnumerationError(f"Unexpected partition entry: {row!r}")
        try:
            volumes.append(Volume.from_partition_dict(row))
        except (KeyError, TypeError, ValueError) as error:
            raise EnumerationError(f"Invalid partition entry {row!r}: {error}") from error
    return volumes


def _stderr_reason(error: Exception) -> str:
    if isinstance(error, subprocess.CalledProcessError):
        return (error.stderr or "").strip() or f"exit code {error.returncode}"
    return str(error)


class PowerShellVolumes:
    """VolumeDirectory and VolumeLetterMutator backed by the Storage cmdlets."""

    def __init__(self, executable: str = DEFAULT_POWERSHELL):
        self.executable = executable

    def _command(self, script: str) -> list[str]:
        return [
            self.executable,
            "-NoProfile",
            "-NonInteractive",
            "-ExecutionPolicy",
            "Bypass",
            "-Command",
            script,
        ]

    def list_volumes(self) -> list[Volume]:
        command = self._command(LIST_PARTITIONS_SCRIPT)
        try:
            result = run_command(command, log_output=True)
        except (subprocess.CalledProcessError, OSError) as error:
            raise EnumerationError(
                f"Get-Partition failed: {_stderr_reason(error)}", command=command
            ) from error
        volumes = parse_partition_json(result.stdout)
        log.debug(f"Enumerated {len(volumes)} partitions")
        return volumes

    def assign_letter(self, disk_index: int, partition_index: int, letter: str) -> None:
        script = (
            f"Set-Partition -DiskNumber {int(disk_index)} "
            f"-PartitionNumber {int(partition_index)} "
            f"-NewDriveLetter {_checked_letter(letter)} -ErrorAction Stop"
        )
        self._mutate("assign", script, disk_index, partition_index, letter)

    def unassign_letter(self, disk_index: int, partition_index: int, letter: str) -> None:
        script = (
            f"Remove-PartitionAccessPath -DiskNumber {int(disk_index)} "
            f"-PartitionNumber {int(partition_index)} "
            f"-AccessPath '{_checked_letter(letter)}:\\' -ErrorAction Stop"
        )
        self._mutate("unassign", script, disk_index, partition_index, letter)

    def _mutate(
        self,
        action: str,
        script: str,
        disk_index: int,
        partition_index: int,
        letter: str,
    ) -> None:
        try:
            run_command(self._command(script))
        except (subprocess.CalledProcessError, OSError) as error:
            raise MutationError(
                action, disk_index, partition_index, letter, _stderr_reason(error)
            ) from error
        log.info(
            f"{action.capitalize()}ed {letter}: on disk {disk_index} "
            f"partition {partition_index}"
        )


def _checked_letter(letter: str) -> str:
    # Letters end up inside a PowerShell command line.
    if len(letter) != 1 or not letter.isascii() or not letter.isalpha():
        raise ValueError(f"Invalid drive letter: {letter!r}")
    return letter.upper()


def format_volume_table(volumes: Sequence[Volume]) -> list[str]:
    """Format volumes as aligned text lines for the ``list`` command."""
    lines = [f"{'LETTER':<7}{'DISK':>5}{'PART':>6}  {'SIZE':>9}  ID"]
    ordered = sorted(
        volumes,
        key=lambda volume: (
            volume.current_letter is None,
            volume.current_letter or "",
            volume.disk_index,
            volume.partition_index,
        ),
    )
    for volume in ordered:
        letter = f"{volume.current_letter}:" if volume.current_letter else "-"
        lines.append(
            f"{letter:<7}{volume.disk_index:>5}{volume.partition_index:>6}  "
            f"{human_size(volume.size_bytes):>9}  {volume.durable_id or '-'}"
        )
    return lines


def human_size(size_bytes):
    if size_bytes is None:
        return "-"
    size = float(size_bytes)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size < 1024.0:
            return f"{size:.1f}{unit}"
        size /= 1024.0
    return f"{size:.1f}PB"
