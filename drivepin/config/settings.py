"""Settings storage for drivepin configuration."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


SETTINGS_PATH = Path(
    os.environ.get(
        "DRIVEPIN_SETTINGS_PATH",
        Path.home() / ".config" / "drivepin" / "settings.json",
    )
)

# Mapping shipped with the package, used when neither the command line nor
# the settings file names one.
BUNDLED_MAPPING_PATH = Path(__file__).with_name("default_mapping.json")

DEFAULT_POWERSHELL_EXECUTABLE = "powershell.exe"

DEFAULT_SETTINGS: dict[str, Any] = {
    "mapping_path": None,
    "log_dir": None,
    "confirm_each": False,
    "powershell_executable": DEFAULT_POWERSHELL_EXECUTABLE,
}


@dataclass
class SettingsStore:
    values: dict[str, Any] = field(default_factory=dict)


settings_store = SettingsStore()


def load_settings() -> None:
    settings_store.values = dict(DEFAULT_SETTINGS)
    if not SETTINGS_PATH.exists():
        return
    try:
        data = json.loads(SETTINGS_PATH.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return
    if isinstance(data, dict):
        settings_store.values.update(data)


def get_setting(key: str, default: Any | None = None) -> Any:
    return settings_store.values.get(key, default)


def get_bool(key: str, default: bool = False) -> bool:
    return bool(get_setting(key, default))


def get_path(key: str) -> Path | None:
    value = get_setting(key)
    if not value:
        return None
    return Path(value).expanduser()


def resolve_mapping_path(cli_value: str | Path | None = None) -> Path:
    """Pick the mapping file: command line, then settings, then the bundled file."""
    if cli_value:
        return Path(cli_value).expanduser()
    return get_path("mapping_path") or BUNDLED_MAPPING_PATH


load_settings()
