# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Unit tests for reading compiled classes from a class path."""

import struct
import zipfile
from pathlib import Path

import pytest

from remap import BatchRemapper, TreeRewriter, parse_mappings
from remap.java import ClassFileError, ClasspathIndex, JavaSourceResolver, parse_class_file
from remap.java.classpath import descriptor_type_name, internal_to_qualified


class _ConstantPool:
    def __init__(self) -> None:
        self.entries: list[bytes] = []
        self.next_index = 1

    def _add(self, payload: bytes, slots: int = 1) -> int:
        index = self.next_index
        self.entries.append(payload)
        self.next_index += slots
        return index

    def utf8(self, text: str) -> int:
        encoded = text.encode("utf-8")
        return self._add(b"\x01" + struct.pack(">H", len(encoded)) + encoded)

    def class_ref(self, internal_name: str) -> int:
        return self._add(b"\x07" + struct.pack(">H", self.utf8(internal_name)))

    def long(self, value: int) -> int:
        return self._add(b"\x05" + struct.pack(">q", value), slots=2)

    def string(self, text: str) -> int:
        return self._add(b"\x08" + struct.pack(">H", self.utf8(text)))


def _class_bytes(
    name: str,
    superclass: str | None = "java/lang/Object",
    interfaces: tuple[str, ...] = (),
    fields: tuple[tuple[str, str], ...] = (),
    methods: tuple[tuple[str, str], ...] = (),
    access: int = 0x0021,
) -> bytes:
    pool = _ConstantPool()
    pool.long(42)
    pool.string("unused")
    this_index = pool.class_ref(name)
    super_index = pool.class_ref(superclass) if superclass else 0
    interface_indexes = [pool.class_ref(interface) for interface in interfaces]
    code_index = pool.utf8("Code")

    def members(items: tuple[tuple[str, str], ...], with_code: bool) -> bytes:
        out = struct.pack(">H", len(items))
        for member_name, descriptor in items:
            out += struct.pack(">HHH", 0x0001, pool.utf8(member_name), pool.utf8(descriptor))
            if with_code:
                out += struct.pack(">HHI", 1, code_index, 3) + b"\x00\x01\x02"
            else:
                out += struct.pack(">H", 0)
        return out

    field_bytes = members(fields, with_code=False)
    method_bytes = members(methods, with_code=True)
    header = struct.pack(">IHHH", 0xCAFEBABE, 0, 61, pool.next_index)
    body = struct.pack(">HHH", access, this_index, super_index)
    body += struct.pack(">H", len(interface_indexes))
    body += b"".join(struct.pack(">H", index) for index in interface_indexes)
    return (
        header
        + b"".join(pool.entries)
        + body
        + field_bytes
        + method_bytes
        + struct.pack(">H", 0)
    )


def _write(root: Path, member: str, data: bytes) -> None:
    path = root / member
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def test_cp_601_class_file_members_are_decoded() -> None:
    data = _class_bytes(
        "lib/Base",
        superclass="lib/Root",
        interfaces=("lib/Tickable",),
        fields=(("count", "I"), ("owner", "Llib/Owner;"), ("items", "[[Llib/Item;")),
        methods=(("tick", "()V"), ("owner", "(I)Llib/Owner;"), ("tick", "(I)Llib/Other;")),
    )

    info = parse_class_file(data)

    assert info.qualified_name == "lib.Base"
    assert info.superclass == "lib.Root"
    assert info.interfaces == ("lib.Tickable",)
    assert info.field_types == {"count": None, "owner": "lib.Owner", "items": "lib.Item"}
    assert info.method_returns == {"tick": None, "owner": "lib.Owner"}
    assert not info.is_interface


def test_cp_602_interfaces_and_nested_names() -> None:
    data = _class_bytes("lib/Outer$Listener", superclass="java/lang/Object", access=0x0601)

    info = parse_class_file(data)

    assert info.qualified_name == "lib.Outer.Listener"
    assert info.is_interface


def test_cp_603_malformed_class_files_are_rejected() -> None:
    data = _class_bytes("lib/Base")

    with pytest.raises(ClassFileError):
        parse_class_file(b"\x00\x00\x00\x00" + data[4:])
    with pytest.raises(ClassFileError):
        parse_class_file(data[:20])


def test_cp_604_descriptor_helpers() -> None:
    assert internal_to_qualified("a/b/Outer$Inner") == "a.b.Outer.Inner"
    assert descriptor_type_name("Ljava/lang/String;") == "java.lang.String"
    assert descriptor_type_name("[J") is None
    assert descriptor_type_name("Z") is None


def test_cp_605_directory_entries_are_indexed(tmp_path: Path) -> None:
    classes = tmp_path / "classes"
    _write(classes, "lib/Base.class", _class_bytes("lib/Base", methods=(("tick", "()V"),)))
    _write(classes, "lib/package-info.class", b"not a class")

    index = ClasspathIndex([classes])

    assert len(index) == 1
    assert index.has_package("lib")
    info = index.find("lib.Base")
    assert info is not None
    assert "tick" in info.method_returns
    assert index.find("lib.Missing") is None


def test_cp_606_archive_entries_resolve_nested_classes(tmp_path: Path) -> None:
    jar = tmp_path / "lib.jar"
    with zipfile.ZipFile(jar, "w") as archive:
        archive.writestr("lib/deep/Outer$Inner.class", _class_bytes("lib/deep/Outer$Inner"))
        archive.writestr("META-INF/versions/9/lib/Skipped.class", b"ignored")

    index = ClasspathIndex([str(jar)])

    assert len(index) == 1
    assert index.has_package("lib.deep")
    assert index.has_package("lib")
    info = index.find("lib.deep.Outer.Inner")
    assert info is not None
    assert info.qualified_name == "lib.deep.Outer.Inner"


def test_cp_607_earlier_entries_shadow_later_ones(tmp_path: Path) -> None:
    first = tmp_path / "first"
    second = tmp_path / "second"
    _write(first, "lib/Base.class", _class_bytes("lib/Base", fields=(("a", "I"),)))
    _write(second, "lib/Base.class", _class_bytes("lib/Base", fields=(("b", "I"),)))

    info = ClasspathIndex([first, second]).find("lib.Base")

    assert info is not None
    assert set(info.field_types) == {"a"}


def test_cp_608_unreadable_and_missing_entries_are_skipped(tmp_path: Path) -> None:
    classes = tmp_path / "classes"
    _write(classes, "lib/Broken.class", b"\xca\xfe\xba\xbe\x00")

    index = ClasspathIndex([classes, tmp_path / "missing.jar"])

    assert len(index) == 1
    assert index.find("lib.Broken") is None


def test_cp_609_inherited_members_from_class_path_are_remapped(tmp_path: Path) -> None:
    classes = tmp_path / "classes"
    _write(
        classes,
        "lib/Base.class",
        _class_bytes("lib/Base", fields=(("count", "I"),), methods=(("tick", "()V"),)),
    )
    table = parse_mappings("lib.Base tick() update()\nlib.Base count total\n")
    source = (
        "package app;\n"
        "\n"
        "import lib.Base;\n"
        "\n"
        "public class Child extends Base {\n"
        "    void run() {\n"
        "        tick();\n"
        "        this.count = 1;\n"
        "    }\n"
        "}\n"
    )

    batch = BatchRemapper(table, JavaSourceResolver(), TreeRewriter())
    result = batch.remap({"app/Child.java": source}, classpath=[str(classes)])

    assert not result.failed
    assert result.sources["app/Child.java"] == source.replace("tick()", "update()").replace(
        "this.count", "this.total"
    )
