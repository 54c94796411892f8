"""Custom exceptions for volume and mapping operations.

This module defines a hierarchy of exceptions so callers can tell fatal
pre-flight failures apart from per-entry problems and malformed input.

Exception Hierarchy:
    DrivePinError (base)
        ├── PrivilegeError (also a PermissionError)
        ├── EnumerationError
        ├── MutationError
        └── MappingError
            ├── MappingFormatError
            └── MappingValidationError

Per-entry restore problems (volume not found, assignment failed, etc.) are
NOT raised out of the restorer. They are recorded as ``Outcome`` values in
the restore report.

Usage:
    from drivepin.storage.exceptions import EnumerationError

    try:
        volumes = directory.list_volumes()
    except EnumerationError as error:
        log.error(f"Volume listing failed: {error}")
"""

from __future__ import annotations


class DrivePinError(Exception):
    """Base exception for all drivepin operations."""



class PrivilegeError(DrivePinError, PermissionError):
    """The process lacks the administrative rights needed for volume access."""

    def __init__(self, message: str = "Administrator privileges are required"):
        super().__init__(message)


class EnumerationError(DrivePinError):
    """Listing the volumes on this machine failed."""

    def __init__(self, message: str, command: list[str] | None = None):
        self.command = command
        super().__init__(message)


class MutationError(DrivePinError):
    """Assigning or removing a drive letter failed."""

    def __init__(
        self,
        action: str,
        disk_index: int,
        partition_index: int,
        letter: str,
        reason: str = "",
    ):
        self.action = action
        self.disk_index = disk_index
        self.partition_index = partition_index
        self.letter = letter
        self.reason = reason
        msg = (
            f"Failed to {action} {letter}: on disk {disk_index} "
            f"partition {partition_index}"
        )
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class MappingError(DrivePinError):
    """Base exception for mapping file problems."""



class MappingFormatError(MappingError):
    """Mapping text could not be parsed or holds invalid entries."""

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        if source:
            message = f"{source}: {message}"
        super().__init__(message)


class MappingValidationError(MappingError):
    """Strict validation rejected a mapping before any entry was processed."""

    def __init__(self, problems: list[str]):
        self.problems = list(problems)
        super().__init__("Mapping failed validation: " + "; ".join(self.problems))
