# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Load rename tables from the line-oriented mapping file format.

Each non-blank line that does not start with ``#`` holds whitespace separated
tokens::

    com.example.Old com.example.New       # class rename
    com.example.Old oldMethod() newMethod() # method rename
    com.example.Old oldField newField       # field rename
"""

import logging
from pathlib import Path

from remap.mapping import MappingEntry, MappingTable

logger = logging.getLogger(__name__)

_METHOD_SUFFIX = "()"


class MappingParseError(RuntimeError):
    """Represent a malformed line in a mapping file.

    Args:
        path: Display path of the mapping source.
        line_number: 1-based number of the offending line.
    """

    def __init__(self, path: str, line_number: int) -> None:
        super().__init__(f"Failed to parse line {line_number} in {path}.")
        self.path = path
        self.line_number = line_number


class _EntryBuilder:
    """Accumulate renames of one class before freezing them."""

    def __init__(self, name: str) -> None:
        self.original_name = name
        self.target_name = name
        self.fields: dict[str, str] = {}
        self.methods: dict[str, str] = {}

    def build(self) -> MappingEntry:
        return MappingEntry(
            original_name=self.original_name,
            target_name=self.target_name,
            fields=dict(self.fields),
            methods=dict(self.methods),
        )


def parse_mappings(
    text: str, invert: bool = False, path: str = "<string>"
) -> MappingTable:
    """Parse mapping file content into a rename table.

    Args:
        text: Raw mapping file content.
        invert: Swap the direction of every rename after parsing.
        path: Display path used in parse errors.

    Returns:
        Rename table keyed by source-scheme class name.

    Raises:
        MappingParseError: If a line contains ``;`` or fewer than two tokens.
    """
    builders: dict[str, _EntryBuilder] = {}
    for line_number, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        parts = stripped.split()
        if len(parts) < 2 or ";" in line:
            raise MappingParseError(path=path, line_number=line_number)

        builder = builders.get(parts[0])
        if builder is None:
            builder = _EntryBuilder(parts[0])
            builders[parts[0]] = builder

        if len(parts) == 2:
            builder.target_name = parts[1]
        elif parts[1].endswith(_METHOD_SUFFIX):
            _put_chained(
                builder.methods,
                name=_strip_method_suffix(parts[1]),
                new_name=_strip_method_suffix(parts[2]),
            )
        else:
            _put_chained(builder.fields, name=parts[1], new_name=parts[2])

    table = MappingTable.from_entries([builder.build() for builder in builders.values()])
    logger.debug(
        "Parsed mapping table (path=%s classes=%d invert=%s)",
        path,
        len(table),
        invert,
    )
    if invert:
        return table.inverted()
    return table


def read_mappings(path: Path | None, invert: bool = False) -> MappingTable:
    """Read a mapping file from disk.

    Args:
        path: Mapping file path. ``None`` yields an empty table.
        invert: Swap the direction of every rename after parsing.

    Returns:
        Rename table.

    Raises:
        OSError: If the file cannot be read.
        UnicodeDecodeError: If the file is not valid UTF-8.
        MappingParseError: If a line is malformed.
    """
    if path is None:
        return MappingTable.empty()
    text = path.read_text(encoding="utf-8")
    return parse_mappings(text=text, invert=invert, path=str(path))


def _put_chained(renames: dict[str, str], name: str, new_name: str) -> None:
    """Record a member rename, keeping the key at the pre-rename name.

    Args:
        renames: Member rename map of one class.
        name: Name being renamed on this line.
        new_name: Name it is renamed to.
    """
    origin = name
    for key, value in renames.items():
        if value == name:
            origin = key
            break
    renames[origin] = new_name


def _strip_method_suffix(token: str) -> str:
    if token.endswith(_METHOD_SUFFIX):
        return token[: -len(_METHOD_SUFFIX)]
    return token
