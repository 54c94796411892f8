"""Administrator privilege checks.

Listing partitions and changing drive letters both need an elevated
process. The check runs once before any enumeration so a missing
privilege is reported as a single fatal error instead of a string of
per-entry failures.
"""

from __future__ import annotations

import ctypes
import os
import sys

from drivepin.logging import LoggerFactory
from drivepin.storage.exceptions import PrivilegeError


def is_elevated() -> bool:
    """Return True when running as Administrator (Windows) or root (POSIX)."""
    if sys.platform == "win32":
        try:
            return ctypes.windll.shell32.IsUserAnAdmin() != 0
        except (AttributeError, OSError):
            return False
    return os.geteuid() == 0


def require_elevated() -> None:
    """Raise PrivilegeError unless the process is elevated."""
    if not is_elevated():
        LoggerFactory.for_system().debug("Privilege check failed")
        raise PrivilegeError(
            "Administrator privileges are required; "
            "re-run from an elevated prompt"
        )
