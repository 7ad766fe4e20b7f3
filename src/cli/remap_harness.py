# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Run Java identifier remapping over a stdin batch or a project tree."""

import argparse
import logging
import os
import shutil
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

import pathspec
from rich.console import Console
from rich.logging import RichHandler

from remap import (
    AccessorTargetError,
    BatchRemapper,
    BatchResult,
    MappingParseError,
    MappingTable,
    RewriteError,
    TreeRewriter,
    read_mappings,
)
from remap.java import JavaSourceResolver

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_ERROR = 2


@dataclass(frozen=True)
class RemapOptions:
    """Represent settings shared by both run modes.

    Args:
        mappings: Mapping file, None for an empty table.
        invert: Whether to apply the mappings in reverse.
        classpath: Class path entries for binding resolution.
        workers: Number of units remapped concurrently.
    """

    mappings: Path | None
    invert: bool = False
    classpath: tuple[str, ...] = ()
    workers: int = 1


@dataclass(frozen=True)
class CopySummary:
    """Represent copy phase counters."""

    files_copied: int
    dirs_created: int
    paths_skipped_by_gitignore: int
    paths_skipped_git_dir: int
    elapsed_ms: int


@dataclass(frozen=True)
class RemapSummary:
    """Represent remap phase counters."""

    java_files_discovered: int
    java_files_changed: int
    java_files_unchanged: int
    shadowed_references: int
    elapsed_ms: int


class ValidationError(RuntimeError):
    """Represent user input validation failure."""


class InputFormatError(RuntimeError):
    """Represent malformed batch input on stdin."""


class IgnoreMatcher:
    """Match project paths against .gitignore patterns."""

    def __init__(self, spec: pathspec.GitIgnoreSpec) -> None:
        """Initialize matcher.

        Args:
            spec: Compiled gitignore matcher.
        """
        self._spec = spec

    @classmethod
    def from_project_root(cls, input_root: Path) -> "IgnoreMatcher":
        """Build matcher from root and nested .gitignore files.

        Args:
            input_root: Project root.

        Returns:
            Configured ignore matcher; matches nothing without .gitignore files.

        Raises:
            OSError: If .gitignore files cannot be read.
            UnicodeDecodeError: If .gitignore files contain invalid UTF-8.
        """
        patterns: list[str] = []
        for ignore_path in sorted(input_root.rglob(".gitignore")):
            base = ignore_path.parent.relative_to(input_root).as_posix()
            if base == ".":
                base = ""
            for line in ignore_path.read_text(encoding="utf-8").splitlines():
                patterns.append(_translate_gitignore_line(line=line, base=base))
        return cls(spec=pathspec.GitIgnoreSpec.from_lines(patterns))

    def matches(self, relative_path: str, is_dir: bool) -> bool:
        """Check whether a path should be ignored.

        Args:
            relative_path: Project-relative POSIX path.
            is_dir: Whether the path is a directory.

        Returns:
            True when path should be ignored.
        """
        normalized = relative_path.replace(os.sep, "/").strip("/")
        if not normalized:
            return False
        if self._spec.match_file(normalized):
            return True
        return is_dir and self._spec.match_file(f"{normalized}/")


def configure_logging(level: int = logging.INFO) -> None:
    """Configure application logging with Rich handler on stderr.

    Args:
        level: Logging severity threshold.
    """
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=Console(stderr=True), rich_tracebacks=True, show_path=False
            )
        ],
    )


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""
    parser = argparse.ArgumentParser(
        prog="javaremap", description="Remap Java identifiers using a mapping file."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    stream = subparsers.add_parser(
        "stream", help="Read a unit batch from stdin and write the remapped batch to stdout."
    )
    stream.add_argument("mappings", help="Mapping file path; empty for no mappings.")
    stream.add_argument("invert", help="'true' to apply the mappings in reverse.")
    stream.add_argument(
        "classpath_count", type=int, help="Number of class path lines preceding the units."
    )

    tree = subparsers.add_parser(
        "tree", help="Copy a project and remap every Java source file of the copy."
    )
    tree.add_argument("--input", required=True, help="Input project path.")
    tree.add_argument("--output", required=True, help="Output folder path.")
    tree.add_argument("--mappings", default="", help="Mapping file path.")
    tree.add_argument(
        "--invert", action="store_true", help="Apply the mappings in reverse."
    )
    tree.add_argument(
        "--classpath",
        action="append",
        default=[],
        help="Class path directory or archive; repeatable.",
    )
    tree.add_argument(
        "--workers", type=int, default=1, help="Units remapped concurrently."
    )
    return parser


def run(argv: list[str], stdin: TextIO, stdout: TextIO, stderr: TextIO) -> int:
    """Run remap command.

    Args:
        argv: CLI arguments.
        stdin: Standard input stream, read by the ``stream`` command.
        stdout: Standard output stream.
        stderr: Standard error stream.

    Returns:
        Exit code.
    """
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit:
        logger.warning("Argument parsing failed (argv=%s)", argv)
        return EXIT_ERROR

    if args.command == "stream":
        options = RemapOptions(
            mappings=Path(args.mappings) if args.mappings else None,
            invert=args.invert == "true",
        )
        return _run_stream(
            options=options,
            classpath_count=args.classpath_count,
            stdin=stdin,
            stdout=stdout,
            stderr=stderr,
        )

    if args.workers <= 0:
        stderr.write("--workers must be greater than zero\n")
        return EXIT_ERROR
    options = RemapOptions(
        mappings=Path(args.mappings) if args.mappings else None,
        invert=args.invert,
        classpath=tuple(args.classpath),
        workers=args.workers,
    )
    return _run_tree(
        options=options,
        input_path=Path(args.input),
        output_path=Path(args.output),
        stdout=stdout,
        stderr=stderr,
    )


def _load_table(options: RemapOptions, stderr: TextIO) -> MappingTable | None:
    try:
        table = read_mappings(options.mappings, invert=options.invert)
    except MappingParseError as exc:
        logger.warning("Mapping parse failed (error=%s)", exc)
        stderr.write(f"{exc}\n")
        return None
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Failed to read mappings (path=%s error=%s)", options.mappings, exc)
        stderr.write(f"Failed to read mappings: {exc}\n")
        return None
    logger.info("Loaded mappings (classes=%d invert=%s)", len(table), options.invert)
    return table


def _remap_batch(
    options: RemapOptions, table: MappingTable, sources: dict[str, str], stderr: TextIO
) -> BatchResult | None:
    remapper = BatchRemapper(
        table=table,
        resolver=JavaSourceResolver(),
        rewriter=TreeRewriter(),
        max_workers=options.workers,
    )
    try:
        return remapper.remap(sources, options.classpath)
    except (AccessorTargetError, RewriteError, OSError, ValueError) as exc:
        logger.warning("Remap failed (error=%s)", exc)
        stderr.write(f"Remap failed: {exc}\n")
        return None


def _run_stream(
    options: RemapOptions,
    classpath_count: int,
    stdin: TextIO,
    stdout: TextIO,
    stderr: TextIO,
) -> int:
    table = _load_table(options, stderr)
    if table is None:
        return EXIT_ERROR
    try:
        classpath, sources = read_batch(stdin, classpath_count)
    except InputFormatError as exc:
        logger.warning("Invalid batch input (error=%s)", exc)
        stderr.write(f"{exc}\n")
        return EXIT_ERROR

    options = RemapOptions(
        mappings=options.mappings,
        invert=options.invert,
        classpath=tuple(classpath),
        workers=options.workers,
    )
    result = _remap_batch(options, table, sources, stderr)
    if result is None:
        return EXIT_ERROR
    write_batch(stdout, {name: result.sources[name] for name in sources})
    return EXIT_FAILED if result.failed else EXIT_OK


def read_batch(stdin: TextIO, classpath_count: int) -> tuple[list[str], dict[str, str]]:
    """Read class path lines and source units from the batch protocol.

    A unit is its name, its line count and that many lines. An empty name line
    or end of input ends the batch.

    Args:
        stdin: Input stream.
        classpath_count: Number of leading class path lines.

    Returns:
        Class path entries and unit name to source text, in input order.

    Raises:
        InputFormatError: If the input ends early or a line count is invalid.
    """

    def next_line() -> str | None:
        line = stdin.readline()
        if not line:
            return None
        return line[:-1] if line.endswith("\n") else line

    classpath: list[str] = []
    for _ in range(classpath_count):
        entry = next_line()
        if entry is None:
            raise InputFormatError("Input ended inside the class path")
        classpath.append(entry)

    sources: dict[str, str] = {}
    while True:
        name = next_line()
        if not name:
            break
        count_text = next_line()
        try:
            count = int(count_text) if count_text is not None else -1
        except ValueError:
            count = -1
        if count < 0:
            raise InputFormatError(f"Invalid line count for unit {name}: {count_text!r}")
        lines: list[str] = []
        for _ in range(count):
            line = next_line()
            if line is None:
                raise InputFormatError(f"Input ended inside unit {name}")
            lines.append(line)
        sources[name] = "\n".join(lines)
    return classpath, sources


def write_batch(stdout: TextIO, sources: dict[str, str]) -> None:
    """Write units in the batch protocol.

    Trailing empty lines of a unit are not emitted.

    Args:
        stdout: Output stream.
        sources: Unit name to source text.
    """
    for name, source in sources.items():
        lines = _split_lines(source)
        stdout.write(f"{name}\n{len(lines)}\n")
        for line in lines:
            stdout.write(f"{line}\n")


def _split_lines(source: str) -> list[str]:
    if not source:
        return [""]
    lines = source.split("\n")
    while lines and not lines[-1]:
        lines.pop()
    return lines


def _run_tree(
    options: RemapOptions,
    input_path: Path,
    output_path: Path,
    stdout: TextIO,
    stderr: TextIO,
) -> int:
    console = Console(file=stdout, force_terminal=False, color_system="truecolor")
    _emit_marker(console=console, phase="validation", state="start")
    try:
        input_path, output_path = _validate_paths(
            input_path=input_path, output_path=output_path
        )
    except ValidationError as exc:
        logger.warning("Validation failed (error=%s)", exc)
        stderr.write(f"{exc}\n")
        return EXIT_ERROR
    table = _load_table(options, stderr)
    if table is None:
        return EXIT_ERROR
    _emit_marker(console=console, phase="validation", state="done")

    try:
        matcher = IgnoreMatcher.from_project_root(input_root=input_path)
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Failed to read .gitignore files (error=%s)", exc)
        stderr.write(f"Failed to read .gitignore files: {exc}\n")
        return EXIT_ERROR

    _emit_marker(console=console, phase="copy", state="start")
    try:
        copy_summary = _copy_project(
            input_root=input_path, output_root=output_path, matcher=matcher
        )
    except OSError as exc:
        logger.warning("Copy failed (error=%s)", exc)
        stderr.write(f"Copy failed: {exc}\n")
        return EXIT_ERROR
    _emit_marker(console=console, phase="copy", state="done")
    _emit_summary(
        console=console,
        summary={
            "files_copied": copy_summary.files_copied,
            "dirs_created": copy_summary.dirs_created,
            "paths_skipped_by_gitignore": copy_summary.paths_skipped_by_gitignore,
            "paths_skipped_git_dir": copy_summary.paths_skipped_git_dir,
            "elapsed_ms": copy_summary.elapsed_ms,
        },
    )

    _emit_marker(console=console, phase="remap", state="start")
    remap_summary = _remap_java_files(
        options=options, table=table, output_root=output_path, stderr=stderr
    )
    if remap_summary is None:
        return EXIT_ERROR
    _emit_marker(console=console, phase="remap", state="done")
    _emit_summary(
        console=console,
        summary={
            "java_files_discovered": remap_summary.java_files_discovered,
            "java_files_changed": remap_summary.java_files_changed,
            "java_files_unchanged": remap_summary.java_files_unchanged,
            "shadowed_references": remap_summary.shadowed_references,
            "elapsed_ms": remap_summary.elapsed_ms,
        },
    )
    if remap_summary.shadowed_references:
        console.print("status=failed")
        return EXIT_FAILED
    console.print("status=success")
    return EXIT_OK


def _emit_marker(console: Console, phase: str, state: str) -> None:
    console.print(f"{phase}:{state}")


def _emit_summary(console: Console, summary: dict[str, int]) -> None:
    fields = " ".join(f"{key}={value}" for key, value in summary.items())
    console.print(fields)


def _validate_paths(input_path: Path, output_path: Path) -> tuple[Path, Path]:
    """Validate required input and output path constraints.

    Args:
        input_path: Input path from user args.
        output_path: Output path from user args.

    Returns:
        Normalized absolute input and output paths.

    Raises:
        ValidationError: If path constraints are not met.
    """
    input_abs = input_path.resolve()
    output_abs = output_path.resolve()

    if not input_abs.exists():
        raise ValidationError(f"Input path does not exist: {input_abs}")
    if not input_abs.is_dir():
        raise ValidationError(f"Input path must be a directory: {input_abs}")
    if output_abs.exists() and output_abs.is_dir() and any(output_abs.iterdir()):
        raise ValidationError(f"Output path must be empty: {output_abs}")
    if input_abs == output_abs:
        raise ValidationError("Input and output paths must not overlap")
    if input_abs in output_abs.parents or output_abs in input_abs.parents:
        raise ValidationError("Input and output paths must not overlap")
    return input_abs, output_abs


def _copy_project(
    input_root: Path, output_root: Path, matcher: IgnoreMatcher
) -> CopySummary:
    """Copy project tree while applying ignore rules.

    Args:
        input_root: Source project root.
        output_root: Target project root.
        matcher: Ignore matcher instance.

    Returns:
        Copy summary counters.
    """
    started = time.monotonic()
    output_root.mkdir(parents=True, exist_ok=True)
    files_copied = 0
    dirs_created = 0
    skipped_by_gitignore = 0
    skipped_git_dir = 0
    queue: list[Path] = [input_root]

    while queue:
        current = queue.pop(0)
        for child in sorted(current.iterdir(), key=lambda item: item.name):
            relative_child = child.relative_to(input_root)
            if child.name == ".git" and child.is_dir():
                skipped_git_dir += 1
                continue
            if matcher.matches(relative_path=relative_child.as_posix(), is_dir=child.is_dir()):
                skipped_by_gitignore += 1
                continue

            destination = output_root / relative_child
            if child.is_symlink():
                destination.parent.mkdir(parents=True, exist_ok=True)
                destination.symlink_to(os.readlink(child))
                files_copied += 1
            elif child.is_dir():
                queue.append(child)
                destination.mkdir(parents=True, exist_ok=True)
                dirs_created += 1
            else:
                shutil.copy2(child, destination)
                files_copied += 1

    return CopySummary(
        files_copied=files_copied,
        dirs_created=dirs_created,
        paths_skipped_by_gitignore=skipped_by_gitignore,
        paths_skipped_git_dir=skipped_git_dir,
        elapsed_ms=_elapsed_ms(started),
    )


def _remap_java_files(
    options: RemapOptions, table: MappingTable, output_root: Path, stderr: TextIO
) -> RemapSummary | None:
    """Remap all Java sources of the copied tree as one batch.

    Args:
        options: Run settings.
        table: Loaded rename table.
        output_root: Output project root.
        stderr: Standard error stream for failure messages.

    Returns:
        Remap summary counters, or None when the batch could not be remapped.
    """
    started = time.monotonic()
    files = {
        path.relative_to(output_root).as_posix(): path
        for path in sorted(output_root.rglob("*.java"))
        if path.is_file() and not path.is_symlink()
    }
    sources: dict[str, str] = {}
    for name, path in files.items():
        try:
            sources[name] = path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Failed reading file (path=%s error=%s)", path, exc)
            stderr.write(f"Failed reading {path}: {exc}\n")
            return None

    result = _remap_batch(options, table, sources, stderr)
    if result is None:
        return None

    for name in sorted(result.changed_units):
        path = files[name]
        tmp_path = path.with_suffix(f"{path.suffix}.tmp")
        try:
            tmp_path.write_bytes(result.sources[name].encode("utf-8"))
            tmp_path.replace(path)
        except OSError as exc:
            logger.warning("Failed writing file (path=%s error=%s)", path, exc)
            stderr.write(f"Failed writing {path}: {exc}\n")
            return None
    for failure in result.failures:
        stderr.write(f"{failure.describe()}\n")

    return RemapSummary(
        java_files_discovered=len(files),
        java_files_changed=len(result.changed_units),
        java_files_unchanged=len(files) - len(result.changed_units),
        shadowed_references=len(result.failures),
        elapsed_ms=_elapsed_ms(started),
    )


def _elapsed_ms(started: float) -> int:
    return int(round((time.monotonic() - started) * 1000))


def _translate_gitignore_line(line: str, base: str) -> str:
    """Translate one .gitignore line to root-relative pattern.

    Args:
        line: Original .gitignore line.
        base: Parent directory relative to project root.

    Returns:
        Root-relative pattern line.
    """
    if not base or not line or line.lstrip().startswith("#"):
        return line
    if line.startswith(r"\!") or line.startswith(r"\#"):
        return line
    is_negation = line.startswith("!")
    pattern = line[1:] if is_negation else line
    anchored = pattern.startswith("/")
    normalized_pattern = pattern[1:] if anchored else pattern
    prefixed = f"{base}/{normalized_pattern}" if normalized_pattern else base
    if anchored:
        prefixed = f"/{prefixed}"
    return f"!{prefixed}" if is_negation else prefixed


def main() -> None:
    """Run remap CLI."""
    configure_logging()
    exit_code = run(sys.argv[1:], stdin=sys.stdin, stdout=sys.stdout, stderr=sys.stderr)
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
