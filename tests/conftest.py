"""
Pytest configuration and shared fixtures for drivepin tests.

This module provides an in-memory volume system implementing both the
VolumeDirectory and VolumeLetterMutator protocols, so the export and
restore flows can be exercised without PowerShell or elevation.
"""

from typing import Dict, List, Optional, Tuple

import pytest

from drivepin.domain.models import Volume
from drivepin.storage.exceptions import EnumerationError, MutationError


# ==============================================================================
# Fake Volume System
# ==============================================================================


class FakeVolumeSystem:
    """Live-state fake: letters change when assign/unassign are called."""

    def __init__(self, volumes: List[Volume]):
        self.volumes: Dict[Tuple[int, int], Volume] = {
            volume.key: volume for volume in volumes
        }
        self.calls: List[Tuple[str, int, int, str]] = []
        self.list_calls = 0
        self.fail_assign: set = set()
        self.fail_unassign: set = set()
        self.fail_listing_after: Optional[int] = None

    def list_volumes(self) -> List[Volume]:
        if self.fail_listing_after is not None and self.list_calls >= self.fail_listing_after:
            self.list_calls += 1
            raise EnumerationError("Get-Partition failed: access denied")
        self.list_calls += 1
        return list(self.volumes.values())

    def assign_letter(self, disk_index: int, partition_index: int, letter: str) -> None:
        self.calls.append(("assign", disk_index, partition_index, letter))
        if (disk_index, partition_index) in self.fail_assign:
            raise MutationError("assign", disk_index, partition_index, letter, "in use")
        for key, volume in self.volumes.items():
            if volume.current_letter == letter:
                raise MutationError(
                    "assign", disk_index, partition_index, letter, "letter already taken"
                )
        key = (disk_index, partition_index)
        self.volumes[key] = self.volumes[key].with_letter(letter)

    def unassign_letter(self, disk_index: int, partition_index: int, letter: str) -> None:
        self.calls.append(("unassign", disk_index, partition_index, letter))
        if (disk_index, partition_index) in self.fail_unassign:
            raise MutationError("unassign", disk_index, partition_index, letter, "busy")
        key = (disk_index, partition_index)
        if self.volumes[key].current_letter != letter:
            raise MutationError(
                "unassign", disk_index, partition_index, letter, "no such access path"
            )
        self.volumes[key] = self.volumes[key].with_letter(None)

    def letter_of(self, durable_id: str) -> Optional[str]:
        for volume in self.volumes.values():
            if volume.durable_id == durable_id:
                return volume.current_letter
        return None

    def letters(self) -> Dict[Tuple[int, int], Optional[str]]:
        return {key: volume.current_letter for key, volume in self.volumes.items()}


# ==============================================================================
# Volume Fixtures
# ==============================================================================

SYSTEM_ID = "5c1e2a44-7f31-4b8e-9a61-0c2d3e4f5a6b"
DATA_ID = "0f9e8d7c-6b5a-4938-8271-605f4e3d2c1b"
BACKUP_ID = "a1b2c3d4-e5f6-4a7b-8c9d-0e1f2a3b4c5d"
RECOVERY_ID = "9e8d7c6b-5a49-4382-a716-05f4e3d2c1b0"


@pytest.fixture
def system_volume() -> Volume:
    return Volume(disk_index=0, partition_index=3, durable_id=SYSTEM_ID, current_letter="C")


@pytest.fixture
def data_volume() -> Volume:
    return Volume(disk_index=1, partition_index=2, durable_id=DATA_ID, current_letter="F")


@pytest.fixture
def backup_volume() -> Volume:
    return Volume(disk_index=2, partition_index=1, durable_id=BACKUP_ID, current_letter="E")


@pytest.fixture
def recovery_volume() -> Volume:
    """Recovery partition: has an id but no letter."""
    return Volume(disk_index=0, partition_index=4, durable_id=RECOVERY_ID, current_letter=None)


@pytest.fixture
def reserved_volume() -> Volume:
    """MBR system reserved partition: lettered but without an id."""
    return Volume(disk_index=3, partition_index=1, durable_id=None, current_letter="R")


@pytest.fixture
def volumes(system_volume, data_volume, backup_volume, recovery_volume, reserved_volume):
    return [system_volume, data_volume, backup_volume, recovery_volume, reserved_volume]


@pytest.fixture
def fake_system(volumes) -> FakeVolumeSystem:
    return FakeVolumeSystem(volumes)


@pytest.fixture
def partition_rows() -> List[dict]:
    """Rows as produced by Get-Partition | ConvertTo-Json."""
    return [
        {
            "DiskNumber": 0,
            "PartitionNumber": 1,
            "DriveLetter": "\u0000",
            "Guid": "{9E8D7C6B-5A49-4382-A716-05F4E3D2C1B0}",
            "Size": 104857600,
        },
        {
            "DiskNumber": 0,
            "PartitionNumber": 3,
            "DriveLetter": "C",
            "Guid": "{5C1E2A44-7F31-4B8E-9A61-0C2D3E4F5A6B}",
            "Size": 255398199296,
        },
        {
            "DiskNumber": 1,
            "PartitionNumber": 1,
            "DriveLetter": "D",
            "Guid": None,
            "Size": 536870912000,
        },
    ]


@pytest.fixture
def make_system():
    """Factory for a FakeVolumeSystem over an explicit volume list."""

    def _make(volume_list: List[Volume]) -> FakeVolumeSystem:
        return FakeVolumeSystem(volume_list)

    return _make
