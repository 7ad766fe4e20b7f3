# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Read type declarations from compiled classes on a class path.

Only the parts needed for binding resolution are decoded: the class name, its
supertypes, and the names and types of declared fields and methods.
"""

import logging
import struct
import zipfile
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

_MAGIC = 0xCAFEBABE
_CLASS_SUFFIX = ".class"

# Constant pool tag -> payload size for entries that carry no name we need.
_FIXED_SIZE_TAGS: dict[int, int] = {
    3: 4,  # Integer
    4: 4,  # Float
    8: 2,  # String
    9: 4,  # Fieldref
    10: 4,  # Methodref
    11: 4,  # InterfaceMethodref
    12: 4,  # NameAndType
    15: 3,  # MethodHandle
    16: 2,  # MethodType
    17: 4,  # Dynamic
    18: 4,  # InvokeDynamic
    19: 2,  # Module
    20: 2,  # Package
}
_WIDE_TAGS: frozenset[int] = frozenset({5, 6})  # Long, Double
_TAG_UTF8 = 1
_TAG_CLASS = 7
_ACC_INTERFACE = 0x0200


class ClassFileError(ValueError):
    """Represent a malformed class file."""


@dataclass(frozen=True)
class ClassInfo:
    """Member summary of one compiled class.

    Args:
        qualified_name: Dotted source name, nested classes joined with ``.``.
        superclass: Dotted superclass name, None for ``java.lang.Object``
            and interfaces compiled without one.
        interfaces: Dotted names of direct superinterfaces.
        field_types: Field name to dotted type name (None for primitives).
        method_returns: Method name to dotted return type name (None for
            primitives and ``void``). Overloads keep the first declaration.
        is_interface: Whether the class is an interface or annotation type.
    """

    qualified_name: str
    superclass: str | None = None
    interfaces: tuple[str, ...] = ()
    field_types: dict[str, str | None] = field(default_factory=dict)
    method_returns: dict[str, str | None] = field(default_factory=dict)
    is_interface: bool = False


def internal_to_qualified(internal_name: str) -> str:
    """Convert ``com/example/Outer$Inner`` to ``com.example.Outer.Inner``."""
    return internal_name.replace("/", ".").replace("$", ".")


def descriptor_type_name(descriptor: str) -> str | None:
    """Return the dotted element type of a field descriptor.

    Args:
        descriptor: Field descriptor such as ``Lcom/example/Foo;`` or ``[I``.

    Returns:
        Dotted class name of the (element) type, or None for primitives.
    """
    element = descriptor.lstrip("[")
    if element.startswith("L") and element.endswith(";"):
        return internal_to_qualified(element[1:-1])
    return None


def parse_class_file(data: bytes) -> ClassInfo:
    """Decode a class file.

    Args:
        data: Raw class file bytes.

    Returns:
        Decoded member summary.

    Raises:
        ClassFileError: If the data is not a well-formed class file.
    """
    try:
        return _ClassFileReader(data).read()
    except (struct.error, IndexError, KeyError) as exc:
        raise ClassFileError(f"Truncated or malformed class file: {exc}") from exc


class _ClassFileReader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0
        self._utf8: dict[int, str] = {}
        self._classes: dict[int, int] = {}

    def _u1(self) -> int:
        value = self._data[self._pos]
        self._pos += 1
        return value

    def _u2(self) -> int:
        value = struct.unpack_from(">H", self._data, self._pos)[0]
        self._pos += 2
        return value

    def _u4(self) -> int:
        value = struct.unpack_from(">I", self._data, self._pos)[0]
        self._pos += 4
        return value

    def read(self) -> ClassInfo:
        if self._u4() != _MAGIC:
            raise ClassFileError("Bad magic number")
        self._pos += 4  # minor and major version
        self._read_constant_pool()

        access_flags = self._u2()
        this_class = self._class_name(self._u2())
        super_index = self._u2()
        superclass = self._class_name(super_index) if super_index else None
        interfaces = tuple(self._class_name(self._u2()) for _ in range(self._u2()))

        field_types: dict[str, str | None] = {}
        for name, descriptor in self._read_members():
            field_types.setdefault(name, descriptor_type_name(descriptor))
        method_returns: dict[str, str | None] = {}
        for name, descriptor in self._read_members():
            return_descriptor = descriptor[descriptor.rfind(")") + 1 :]
            method_returns.setdefault(name, descriptor_type_name(return_descriptor))

        return ClassInfo(
            qualified_name=internal_to_qualified(this_class),
            superclass=internal_to_qualified(superclass) if superclass else None,
            interfaces=tuple(internal_to_qualified(name) for name in interfaces),
            field_types=field_types,
            method_returns=method_returns,
            is_interface=bool(access_flags & _ACC_INTERFACE),
        )

    def _read_constant_pool(self) -> None:
        count = self._u2()
        index = 1
        while index < count:
            tag = self._u1()
            if tag == _TAG_UTF8:
                length = self._u2()
                raw = self._data[self._pos : self._pos + length]
                self._pos += length
                # Modified UTF-8 only differs for NUL and supplementary chars.
                self._utf8[index] = raw.decode("utf-8", errors="replace")
            elif tag == _TAG_CLASS:
                self._classes[index] = self._u2()
            elif tag in _WIDE_TAGS:
                self._pos += 8
                index += 1
            elif tag in _FIXED_SIZE_TAGS:
                self._pos += _FIXED_SIZE_TAGS[tag]
            else:
                raise ClassFileError(f"Unknown constant pool tag {tag} at entry {index}")
            index += 1

    def _class_name(self, index: int) -> str:
        return self._utf8[self._classes[index]]

    def _read_members(self) -> list[tuple[str, str]]:
        members: list[tuple[str, str]] = []
        for _ in range(self._u2()):
            self._u2()  # access flags
            name = self._utf8[self._u2()]
            descriptor = self._utf8[self._u2()]
            for _ in range(self._u2()):
                self._u2()  # attribute name
                self._pos += self._u4()
            members.append((name, descriptor))
        return members


class ClasspathIndex:
    """Look up compiled classes from directories and archives.

    Entries are scanned once for class names; class files are decoded lazily
    on first lookup. Unreadable entries are logged and skipped.
    """

    def __init__(self, entries: Sequence[str | Path] = ()) -> None:
        """Initialize class path index.

        Args:
            entries: Directories, ``.jar`` or ``.zip`` files in lookup order.
        """
        self._locations: dict[str, tuple[Path, str]] = {}
        self._packages: set[str] = set()
        self._cache: dict[str, ClassInfo | None] = {}
        for entry in entries:
            self._scan(Path(entry))
        logger.debug(
            "Indexed class path (entries=%d classes=%d)",
            len(entries),
            len(self._locations),
        )

    def __len__(self) -> int:
        return len(self._locations)

    def _scan(self, entry: Path) -> None:
        if entry.is_dir():
            for path in sorted(entry.rglob(f"*{_CLASS_SUFFIX}")):
                self._register(entry, path.relative_to(entry).as_posix())
        elif entry.is_file() and zipfile.is_zipfile(entry):
            try:
                with zipfile.ZipFile(entry) as archive:
                    for member in archive.namelist():
                        if member.endswith(_CLASS_SUFFIX) and not member.startswith(
                            "META-INF/"
                        ):
                            self._register(entry, member)
            except (OSError, zipfile.BadZipFile) as exc:
                logger.warning("Skipping unreadable class path entry (path=%s): %s", entry, exc)
        else:
            logger.warning("Skipping missing or unsupported class path entry (path=%s)", entry)

    def _register(self, entry: Path, member: str) -> None:
        internal_name = member[: -len(_CLASS_SUFFIX)]
        if internal_name.endswith(("module-info", "package-info")):
            return
        # Earlier entries shadow later ones.
        self._locations.setdefault(internal_name, (entry, member))
        package, _, _ = internal_name.rpartition("/")
        while package:
            self._packages.add(package.replace("/", "."))
            package, _, _ = package.rpartition("/")

    def has_package(self, name: str) -> bool:
        return name in self._packages

    def find(self, qualified_name: str) -> ClassInfo | None:
        """Return the decoded class for a dotted name.

        Nested classes are tried by moving trailing ``.`` separators to ``$``.

        Args:
            qualified_name: Dotted name such as ``java.util.Map.Entry``.

        Returns:
            Class summary, or None when the class is unknown or unreadable.
        """
        if qualified_name in self._cache:
            return self._cache[qualified_name]
        info: ClassInfo | None = None
        for internal_name in _binary_name_candidates(qualified_name):
            location = self._locations.get(internal_name)
            if location is not None:
                info = self._load(*location)
                break
        self._cache[qualified_name] = info
        return info

    def _load(self, entry: Path, member: str) -> ClassInfo | None:
        try:
            if entry.is_dir():
                data = (entry / member).read_bytes()
            else:
                with zipfile.ZipFile(entry) as archive:
                    data = archive.read(member)
            return parse_class_file(data)
        except (OSError, zipfile.BadZipFile, ClassFileError) as exc:
            logger.warning("Skipping unreadable class (entry=%s class=%s): %s", entry, member, exc)
            return None


def _binary_name_candidates(qualified_name: str) -> list[str]:
    parts = qualified_name.split(".")
    candidates: list[str] = []
    for nested in range(len(parts)):
        outer = parts[: len(parts) - nested]
        inner = parts[len(parts) - nested :]
        candidates.append("$".join(["/".join(outer), *inner]))
    return candidates
