# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Remap a batch of source units through a resolver and a rewriter."""

import concurrent.futures
import logging
import tempfile
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Protocol

from remap.mapping import MappingTable
from remap.remapper import Remapper, ShadowedFieldReference, UnitRemapResult
from remap.tree import CompilationUnit

logger = logging.getLogger(__name__)


class SourceResolver(Protocol):
    """Parse and resolve a batch of source files together."""

    def resolve(
        self, files: dict[str, Path], classpath: Sequence[str]
    ) -> dict[str, CompilationUnit]:
        """Return one resolved compilation unit per unit name."""


class SourceRewriter(Protocol):
    """Turn a modified compilation unit back into source text."""

    def rewrite(self, source: str, unit: CompilationUnit) -> str:
        """Return ``source`` with the unit's recorded modifications applied."""


@dataclass(frozen=True)
class BatchResult:
    """Represent the outcome of one batch run.

    Args:
        sources: Resulting text for every input unit, rewritten or original.
        failures: Rejected references that make the run fail.
        changed_units: Names of units whose text was rewritten.
    """

    sources: dict[str, str]
    failures: list[ShadowedFieldReference] = field(default_factory=list)
    changed_units: frozenset[str] = frozenset()

    @property
    def failed(self) -> bool:
        return bool(self.failures)


class BatchRemapper:
    """Remap source batches with one shared rename table."""

    def __init__(
        self,
        table: MappingTable,
        resolver: SourceResolver,
        rewriter: SourceRewriter,
        max_workers: int = 1,
    ) -> None:
        """Initialize batch remapper.

        Args:
            table: Read-only rename table.
            resolver: Parser/resolver invoked once per batch.
            rewriter: Reconciles modified units into text.
            max_workers: Number of units remapped concurrently.

        Raises:
            ValueError: If ``max_workers`` is not greater than zero.
        """
        if max_workers <= 0:
            raise ValueError("max_workers must be > 0")
        self._remapper = Remapper(table)
        self._resolver = resolver
        self._rewriter = rewriter
        self._max_workers = max_workers

    def remap(self, sources: dict[str, str], classpath: Sequence[str]) -> BatchResult:
        """Remap every unit of a batch.

        Args:
            sources: Unit name (relative path such as ``pkg/Foo.java``) to text.
            classpath: Ordered class path entries handed to the resolver.

        Returns:
            Text for every input unit and the collected failures.

        Raises:
            AccessorTargetError: If an accessor target cannot be determined.
            ValueError: If a unit name escapes the materialization directory.
        """
        with tempfile.TemporaryDirectory(prefix="remap") as tmp_dir:
            files = _materialize(Path(tmp_dir), sources)
            units = self._resolver.resolve(files, classpath)

        for name in sorted(units):
            for problem in units[name].problems:
                logger.warning("%s:%d: %s", name, problem.line, problem.message)

        names = sorted(sources)
        if self._max_workers == 1:
            outcomes = [self._remap_one(name, sources[name], units.get(name)) for name in names]
        else:
            with concurrent.futures.ThreadPoolExecutor(
                max_workers=self._max_workers
            ) as executor:
                outcomes = list(
                    executor.map(
                        lambda name: self._remap_one(name, sources[name], units.get(name)),
                        names,
                    )
                )

        results: dict[str, str] = {}
        failures: list[ShadowedFieldReference] = []
        changed_units: set[str] = set()
        for name, (text, outcome) in zip(names, outcomes):
            results[name] = text
            if outcome is None:
                continue
            failures.extend(outcome.failures)
            if outcome.changed:
                changed_units.add(name)

        logger.info(
            "Remapped batch (units=%d changed=%d failures=%d)",
            len(results),
            len(changed_units),
            len(failures),
        )
        return BatchResult(
            sources=results,
            failures=failures,
            changed_units=frozenset(changed_units),
        )

    def _remap_one(
        self, name: str, source: str, unit: CompilationUnit | None
    ) -> tuple[str, UnitRemapResult | None]:
        if unit is None:
            logger.warning("Resolver returned no unit; keeping source (unit=%s)", name)
            return source, None
        outcome = self._remapper.remap_unit(unit)
        if not outcome.changed:
            return source, outcome
        return self._rewriter.rewrite(source, unit), outcome


def _materialize(root: Path, sources: dict[str, str]) -> dict[str, Path]:
    """Write sources below ``root`` so the resolver can read them as files.

    Args:
        root: Temporary directory.
        sources: Unit name to source text.

    Returns:
        Unit name to written file path.

    Raises:
        ValueError: If a unit name is absolute or contains ``..``.
    """
    files: dict[str, Path] = {}
    for name, source in sources.items():
        relative = PurePosixPath(name.replace("\\", "/"))
        if relative.is_absolute() or ".." in relative.parts:
            raise ValueError(f"Unit name must be a relative path: {name}")
        path = root.joinpath(*relative.parts)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(source.encode("utf-8"))
        files[name] = path
    return files
