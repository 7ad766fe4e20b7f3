# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Unit tests for the remap CLI harness."""

import io
import re
from pathlib import Path

from cli.remap_harness import EXIT_ERROR, EXIT_FAILED, EXIT_OK, read_batch, run, write_batch

MAPPINGS = (
    "# entity renames\n"
    "com.example.Entity com.example.Creature\n"
    "com.example.Entity health hp\n"
    "com.example.Entity tick() update()\n"
)

ENTITY = (
    "package com.example;\n"
    "\n"
    "public class Entity {\n"
    "    public int health;\n"
    "\n"
    "    public void tick() {\n"
    "        this.health--;\n"
    "    }\n"
    "}\n"
)

CREATURE = (
    "package com.example;\n"
    "\n"
    "public class Creature {\n"
    "    public int hp;\n"
    "\n"
    "    public void update() {\n"
    "        this.hp--;\n"
    "    }\n"
    "}\n"
)

PLAYER = (
    "package com.example;\n"
    "\n"
    "public class Player extends Entity {\n"
    "    int heal() {\n"
    "        return health;\n"
    "    }\n"
    "}\n"
)


def _write_file(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _strip_ansi(text: str) -> str:
    return re.sub(r"\x1b\[[0-9;]*m", "", text)


def _flat(text: str) -> str:
    return " ".join(_strip_ansi(text).split())


def _unit_block(name: str, source: str) -> str:
    lines = source.rstrip("\n").split("\n")
    return f"{name}\n{len(lines)}\n" + "".join(f"{line}\n" for line in lines)


def _run_stream(args: list[str], stdin_text: str) -> tuple[int, str, str]:
    stdout = io.StringIO()
    stderr = io.StringIO()
    exit_code = run(
        ["stream", *args], stdin=io.StringIO(stdin_text), stdout=stdout, stderr=stderr
    )
    return exit_code, stdout.getvalue(), stderr.getvalue()


def _run_tree(args: list[str]) -> tuple[int, str, str]:
    stdout = io.StringIO()
    stderr = io.StringIO()
    exit_code = run(["tree", *args], stdin=io.StringIO(""), stdout=stdout, stderr=stderr)
    return exit_code, stdout.getvalue(), stderr.getvalue()


def test_cli_801_requires_a_command() -> None:
    exit_code = run([], stdin=io.StringIO(""), stdout=io.StringIO(), stderr=io.StringIO())

    assert exit_code == EXIT_ERROR


def test_cli_802_stream_remaps_units_in_input_order(tmp_path: Path) -> None:
    mappings = tmp_path / "mappings.txt"
    _write_file(mappings, MAPPINGS)
    other = "package other;\n\nclass Other {}\n"
    stdin_text = (
        _unit_block("other/Other.java", other)
        + _unit_block("com/example/Entity.java", ENTITY)
        + "\n"
    )

    exit_code, stdout, stderr = _run_stream([str(mappings), "false", "0"], stdin_text)

    assert exit_code == EXIT_OK, stderr
    assert stdout == _unit_block("other/Other.java", other) + _unit_block(
        "com/example/Entity.java", CREATURE
    )


def test_cli_803_stream_inverts_mappings(tmp_path: Path) -> None:
    mappings = tmp_path / "mappings.txt"
    _write_file(mappings, MAPPINGS)

    exit_code, stdout, _ = _run_stream(
        [str(mappings), "true", "0"], _unit_block("com/example/Creature.java", CREATURE)
    )

    assert exit_code == EXIT_OK
    assert stdout == _unit_block("com/example/Creature.java", ENTITY)


def test_cli_804_stream_without_mappings_echoes_units(tmp_path: Path) -> None:
    exit_code, stdout, _ = _run_stream(
        ["", "false", "0"], _unit_block("com/example/Entity.java", ENTITY)
    )

    assert exit_code == EXIT_OK
    assert stdout == _unit_block("com/example/Entity.java", ENTITY)


def test_cli_805_stream_reports_shadowed_references(tmp_path: Path) -> None:
    mappings = tmp_path / "mappings.txt"
    _write_file(mappings, MAPPINGS)
    stdin_text = _unit_block("com/example/Entity.java", ENTITY) + _unit_block(
        "com/example/Player.java", PLAYER
    )

    exit_code, stdout, _ = _run_stream([str(mappings), "false", "0"], stdin_text)

    assert exit_code == EXIT_FAILED
    assert "public class Player extends Creature {" in stdout
    assert "        return health;" in stdout


def test_cli_806_stream_rejects_malformed_mappings(tmp_path: Path) -> None:
    mappings = tmp_path / "mappings.txt"
    _write_file(mappings, "com.example.Entity com.example.Creature\nbroken;\n")

    exit_code, stdout, stderr = _run_stream([str(mappings), "false", "0"], "")

    assert exit_code == EXIT_ERROR
    assert stdout == ""
    assert f"Failed to parse line 2 in {mappings}." in stderr


def test_cli_807_stream_rejects_truncated_input(tmp_path: Path) -> None:
    exit_code, _, stderr = _run_stream(["", "false", "0"], "A.java\n3\nclass A {}\n")

    assert exit_code == EXIT_ERROR
    assert "Input ended inside unit A.java" in stderr


def test_cli_808_stream_rejects_invalid_line_count() -> None:
    exit_code, _, stderr = _run_stream(["", "false", "0"], "A.java\nmany\n")

    assert exit_code == EXIT_ERROR
    assert "Invalid line count" in stderr


def test_cli_809_batch_reader_collects_class_path_lines() -> None:
    stdin = io.StringIO("/libs/a.jar\n/libs/classes\nA.java\n1\nclass A {}\n\nB.java\n0\n")

    classpath, sources = read_batch(stdin, classpath_count=2)

    assert classpath == ["/libs/a.jar", "/libs/classes"]
    assert sources == {"A.java": "class A {}"}


def test_cli_810_batch_writer_drops_trailing_blank_lines() -> None:
    stdout = io.StringIO()

    write_batch(stdout, {"A.java": "class A {}\n\n", "Empty.java": ""})

    assert stdout.getvalue() == "A.java\n1\nclass A {}\nEmpty.java\n1\n\n"


def test_cli_811_tree_remaps_copied_sources(tmp_path: Path) -> None:
    input_path = tmp_path / "input"
    output_path = tmp_path / "output"
    mappings = tmp_path / "mappings.txt"
    _write_file(mappings, MAPPINGS)
    _write_file(input_path / ".gitignore", "build/\n")
    _write_file(input_path / "src" / "com" / "example" / "Entity.java", ENTITY)
    _write_file(input_path / "src" / "other" / "Other.java", "package other;\nclass Other {}\n")
    _write_file(input_path / "build" / "Generated.java", ENTITY)
    _write_file(input_path / "README.md", "Entity docs\n")

    exit_code, stdout, stderr = _run_tree(
        ["--input", str(input_path), "--output", str(output_path), "--mappings", str(mappings)]
    )

    assert exit_code == EXIT_OK, stderr
    output = _flat(stdout)
    for marker in (
        "validation:start",
        "validation:done",
        "copy:start",
        "copy:done",
        "remap:start",
        "remap:done",
    ):
        assert marker in output
    assert "java_files_discovered=2" in output
    assert "java_files_changed=1" in output
    assert "java_files_unchanged=1" in output
    assert "paths_skipped_by_gitignore=1" in output
    assert "status=success" in output
    assert (output_path / "src" / "com" / "example" / "Entity.java").read_text(
        encoding="utf-8"
    ) == CREATURE
    assert (output_path / "src" / "other" / "Other.java").read_text(
        encoding="utf-8"
    ) == "package other;\nclass Other {}\n"
    assert not (output_path / "build").exists()
    assert (input_path / "src" / "com" / "example" / "Entity.java").read_text(
        encoding="utf-8"
    ) == ENTITY


def test_cli_812_tree_preserves_line_endings(tmp_path: Path) -> None:
    input_path = tmp_path / "input"
    output_path = tmp_path / "output"
    mappings = tmp_path / "mappings.txt"
    _write_file(mappings, MAPPINGS)
    source = input_path / "Entity.java"
    source.parent.mkdir(parents=True)
    source.write_bytes(ENTITY.replace("\n", "\r\n").encode("utf-8"))

    exit_code, _, stderr = _run_tree(
        ["--input", str(input_path), "--output", str(output_path), "--mappings", str(mappings)]
    )

    assert exit_code == EXIT_OK, stderr
    assert (output_path / "Entity.java").read_bytes() == CREATURE.replace(
        "\n", "\r\n"
    ).encode("utf-8")


def test_cli_813_tree_fails_on_shadowed_references(tmp_path: Path) -> None:
    input_path = tmp_path / "input"
    output_path = tmp_path / "output"
    mappings = tmp_path / "mappings.txt"
    _write_file(mappings, MAPPINGS)
    _write_file(input_path / "com" / "example" / "Entity.java", ENTITY)
    _write_file(input_path / "com" / "example" / "Player.java", PLAYER)

    exit_code, stdout, stderr = _run_tree(
        [
            "--input",
            str(input_path),
            "--output",
            str(output_path),
            "--mappings",
            str(mappings),
            "--workers",
            "2",
        ]
    )

    assert exit_code == EXIT_FAILED
    assert "status=failed" in _flat(stdout)
    assert "shadowed_references=1" in _flat(stdout)
    assert 'Implicit member reference to remapped field "health"' in stderr
    assert "com/example/Player.java:5" in stderr


def test_cli_814_tree_validates_paths(tmp_path: Path) -> None:
    input_path = tmp_path / "input"
    output_path = tmp_path / "output"
    _write_file(output_path / "existing.txt", "hello")
    input_path.mkdir()

    missing_code, _, missing_err = _run_tree(
        ["--input", str(tmp_path / "missing"), "--output", str(tmp_path / "out")]
    )
    non_empty_code, _, non_empty_err = _run_tree(
        ["--input", str(input_path), "--output", str(output_path)]
    )
    overlap_code, _, overlap_err = _run_tree(
        ["--input", str(input_path), "--output", str(input_path / "out")]
    )

    assert missing_code == EXIT_ERROR
    assert "Input path does not exist" in missing_err
    assert non_empty_code == EXIT_ERROR
    assert "Output path must be empty" in non_empty_err
    assert overlap_code == EXIT_ERROR
    assert "must not overlap" in overlap_err


def test_cli_815_tree_rejects_non_positive_workers(tmp_path: Path) -> None:
    input_path = tmp_path / "input"
    input_path.mkdir()

    exit_code, _, stderr = _run_tree(
        ["--input", str(input_path), "--output", str(tmp_path / "out"), "--workers", "0"]
    )

    assert exit_code == EXIT_ERROR
    assert "--workers" in stderr


def test_cli_816_tree_reports_missing_mapping_file(tmp_path: Path) -> None:
    input_path = tmp_path / "input"
    input_path.mkdir()

    exit_code, _, stderr = _run_tree(
        [
            "--input",
            str(input_path),
            "--output",
            str(tmp_path / "out"),
            "--mappings",
            str(tmp_path / "missing.txt"),
        ]
    )

    assert exit_code == EXIT_ERROR
    assert "Failed to read mappings" in stderr


def test_cli_817_stream_accessor_without_target_exits_2(tmp_path: Path) -> None:
    mappings = tmp_path / "mappings.txt"
    _write_file(mappings, MAPPINGS)
    mixin = (
        "package com.example.mixin;\n"
        "\n"
        "import com.example.Entity;\n"
        "import org.spongepowered.asm.mixin.Mixin;\n"
        "import org.spongepowered.asm.mixin.gen.Accessor;\n"
        "\n"
        "@Mixin(Entity.class)\n"
        "public abstract class BrokenMixin {\n"
        "    @Accessor\n"
        "    abstract int foo();\n"
        "}\n"
    )
    stdin_text = _unit_block("com/example/Entity.java", ENTITY) + _unit_block(
        "com/example/mixin/BrokenMixin.java", mixin
    )

    exit_code, stdout, stderr = _run_stream([str(mappings), "false", "0"], stdin_text)

    assert exit_code == EXIT_ERROR
    assert stdout == ""
    assert "Remap failed: Cannot determine accessor target for foo" in stderr
