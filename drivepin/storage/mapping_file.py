"""Reading and writing drive letter mapping files.

A mapping file is a JSON object whose keys are drive letters and whose
values are volume identifiers. Key order is the processing order:

    {
      "C": "5c1e2a44-7f31-4b8e-9a61-0c2d3e4f5a6b",
      "E": "0f9e8d7c-6b5a-4938-8271-605f4e3d2c1b"
    }

``drivepin export`` writes exactly this format and ``drivepin restore``
reads it back unmodified. Hand-edited files may write letters as ``"e"``,
``"E:"`` or ``"E:\\"`` and may keep the braces around identifiers; both
are normalized on load.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from drivepin.domain.models import Mapping
from drivepin.storage.exceptions import MappingFormatError, MappingValidationError


class _Pairs(list):
    """Key/value pairs of one JSON object, duplicates included."""


def _pairs_hook(pairs: list[tuple[str, Any]]) -> _Pairs:
    return _Pairs(pairs)


def parse_mapping(text: str, source: str | None = None) -> Mapping:
    """Parse mapping JSON text.

    Args:
        text: JSON object text
        source: Where the text came from, used in error messages

    Raises:
        MappingFormatError: If the text is not a valid mapping
    """
    try:
        data = json.loads(text, object_pairs_hook=_pairs_hook)
    except json.JSONDecodeError as error:
        raise MappingFormatError(f"Invalid JSON: {error}", source=source) from error
    if not isinstance(data, _Pairs):
        raise MappingFormatError(
            "Mapping must be a JSON object of letter to volume id", source=source
        )
    for letter, durable_id in data:
        if not isinstance(durable_id, str):
            raise MappingFormatError(
                f"Volume id for {letter!r} must be a string", source=source
            )
    try:
        return Mapping.from_pairs(data)
    except MappingFormatError as error:
        raise MappingFormatError(str(error), source=source) from error


def load_mapping(path: Path) -> Mapping:
    """Load a mapping file.

    Raises:
        MappingFormatError: If the file cannot be read or parsed
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8-sig")
    except OSError as error:
        raise MappingFormatError(f"Cannot read mapping: {error}", source=str(path)) from error
    return parse_mapping(text, source=str(path))


def format_mapping(mapping: Mapping) -> str:
    """Render a mapping in file format, preserving entry order and repeats."""
    if not len(mapping):
        return "{}\n"
    lines = [
        f"  {json.dumps(entry.letter)}: {json.dumps(entry.durable_id)}"
        for entry in mapping
    ]
    return "{\n" + ",\n".join(lines) + "\n}\n"


def write_mapping(mapping: Mapping, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(format_mapping(mapping), encoding="utf-8")


def validate_mapping(mapping: Mapping) -> list[str]:
    """Return the consistency problems found in a mapping.

    Repeated letters and repeated volume identifiers are both reported.
    Neither stops a best-effort restore; later entries simply override
    earlier ones.
    """
    problems = []
    for letter in mapping.duplicate_letters():
        ids = [entry.durable_id for entry in mapping if entry.letter == letter]
        problems.append(f"Letter {letter} is mapped more than once: " + ", ".join(ids))
    for durable_id in mapping.duplicate_ids():
        letters = [entry.letter for entry in mapping if entry.durable_id == durable_id]
        problems.append(
            f"Volume {durable_id} is mapped to more than one letter: "
            + ", ".join(letters)
        )
    return problems


def ensure_valid_mapping(mapping: Mapping) -> None:
    """Raise MappingValidationError if validate_mapping() finds problems."""
    problems = validate_mapping(mapping)
    if problems:
        raise MappingValidationError(problems)
