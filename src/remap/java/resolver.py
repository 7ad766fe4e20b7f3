# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Resolve a batch of Java sources with tree-sitter."""

import logging
from collections.abc import Sequence
from pathlib import Path

import tree_sitter_java as tsjava
from tree_sitter import Language, Parser

from remap.java.classpath import ClasspathIndex
from remap.java.converter import UnitConverter
from remap.java.declarations import TypeUniverse, index_unit
from remap.tree import CompilationUnit

logger = logging.getLogger(__name__)

JAVA_LANGUAGE = Language(tsjava.language())


class JavaSourceResolver:
    """Parse Java sources and resolve bindings across the whole batch."""

    def __init__(self) -> None:
        self._parser = Parser(JAVA_LANGUAGE)

    def resolve(
        self, files: dict[str, Path], classpath: Sequence[str]
    ) -> dict[str, CompilationUnit]:
        """Parse and resolve every file of a batch.

        All files are indexed before any is converted, so references between
        units of the batch resolve regardless of order.

        Args:
            files: Unit name to source file path.
            classpath: Directories and archives with compiled dependencies.

        Returns:
            Resolved compilation unit per unit name.
        """
        classpath_index = ClasspathIndex(classpath)
        parsed = {}
        for name in sorted(files):
            tree = self._parser.parse(files[name].read_bytes())
            parsed[name] = (tree, index_unit(tree.root_node))

        universe = TypeUniverse(
            [source_type for _, index in parsed.values() for source_type in index.types],
            classpath_index,
        )
        units: dict[str, CompilationUnit] = {}
        for name, (tree, index) in parsed.items():
            units[name] = UnitConverter(name, tree.root_node, index, universe).convert()
        logger.info(
            "Resolved Java sources (units=%d classpath_classes=%d)",
            len(units),
            len(classpath_index),
        )
        return units
