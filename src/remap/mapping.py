# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""In-memory rename table consulted while remapping sources."""

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MappingEntry:
    """Store the rename record of one class.

    Args:
        original_name: Fully-qualified class name in the source scheme.
        target_name: Fully-qualified class name in the destination scheme.
        fields: Field name (source scheme) to field name (destination scheme).
        methods: Method name (source scheme) to method name (destination scheme).
    """

    original_name: str
    target_name: str
    fields: dict[str, str] = field(default_factory=dict)
    methods: dict[str, str] = field(default_factory=dict)

    @property
    def has_field_renames(self) -> bool:
        """Return True when at least one field is renamed."""
        return bool(self.fields)

    @property
    def has_method_renames(self) -> bool:
        """Return True when at least one method is renamed."""
        return bool(self.methods)

    @property
    def renames_class(self) -> bool:
        """Return True when the class itself changes name."""
        return self.original_name != self.target_name

    def inverted(self) -> "MappingEntry":
        """Swap the direction of this entry.

        Returns:
            Entry mapping the destination scheme back to the source scheme.
        """
        fields = {new: old for old, new in self.fields.items()}
        methods = {new: old for old, new in self.methods.items()}
        if len(fields) != len(self.fields) or len(methods) != len(self.methods):
            logger.warning(
                "Inverted mapping collapsed members sharing a target name "
                "(class=%s fields_before=%d fields_after=%d "
                "methods_before=%d methods_after=%d)",
                self.original_name,
                len(self.fields),
                len(fields),
                len(self.methods),
                len(methods),
            )
        return MappingEntry(
            original_name=self.target_name,
            target_name=self.original_name,
            fields=fields,
            methods=methods,
        )


@dataclass(frozen=True)
class MappingTable:
    """Map fully-qualified source-scheme class names to rename entries.

    Args:
        entries: Entries keyed by their ``original_name``.

    Raises:
        ValueError: If an entry is stored under a key other than its own name.
    """

    entries: dict[str, MappingEntry] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for key, entry in self.entries.items():
            if key != entry.original_name:
                raise ValueError(
                    f"Mapping entry {entry.original_name!r} stored under key {key!r}"
                )

    @classmethod
    def empty(cls) -> "MappingTable":
        """Build a table without entries."""
        return cls(entries={})

    @classmethod
    def from_entries(cls, entries: list[MappingEntry]) -> "MappingTable":
        """Build a table keyed by each entry's original name.

        Args:
            entries: Entries to index. Later entries replace earlier ones.

        Returns:
            Indexed mapping table.
        """
        return cls(entries={entry.original_name: entry for entry in entries})

    def get(self, class_name: str) -> MappingEntry | None:
        """Look up the entry of a fully-qualified class name.

        Args:
            class_name: Dotted class name in the source scheme.

        Returns:
            Matching entry, or None when the class is not mapped.
        """
        return self.entries.get(class_name)

    def mapped_class_name(self, class_name: str) -> str | None:
        """Return the destination name of a class when it is renamed."""
        entry = self.entries.get(class_name)
        if entry is None or not entry.renames_class:
            return None
        return entry.target_name

    def inverted(self) -> "MappingTable":
        """Swap the direction of every entry.

        Returns:
            Table re-keyed by the destination-scheme class names.
        """
        inverted = MappingTable.from_entries(
            [entry.inverted() for entry in self.entries.values()]
        )
        if len(inverted) != len(self):
            logger.warning(
                "Inverted mapping collapsed entries sharing a target name "
                "(before=%d after=%d)",
                len(self),
                len(inverted),
            )
        return inverted

    def __contains__(self, class_name: object) -> bool:
        return class_name in self.entries

    def __len__(self) -> int:
        return len(self.entries)
