# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Mutable syntax tree with resolved bindings for one compilation unit.

Resolvers build these nodes, the remapper mutates them in place and the
rewriter turns recorded modifications back into source text. Spans are byte
offsets into the UTF-8 encoded original source.
"""

from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import ClassVar


@dataclass(frozen=True)
class Span:
    """Locate a node in the original source.

    Args:
        start: Start byte offset (inclusive).
        end: End byte offset (exclusive).
        line: 1-based line of the start offset.
    """

    start: int
    end: int
    line: int = 0

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class Problem:
    """Represent a non-fatal parser diagnostic."""

    line: int
    message: str


# Bindings


@dataclass(eq=False)
class TypeBinding:
    """Resolved class, interface, enum or annotation type.

    Args:
        qualified_name: Dotted name, possibly with generic arguments.
            Anonymous and local types have an empty name.
        superclass: Direct superclass, when known.
        interfaces: Directly implemented or extended interfaces.
    """

    qualified_name: str
    superclass: "TypeBinding | None" = None
    interfaces: list["TypeBinding"] = field(default_factory=list)


@dataclass(frozen=True)
class VariableBinding:
    """Resolved field, local variable or parameter.

    Args:
        name: Variable name.
        declaring_class: Declaring type for fields, None for locals.
    """

    name: str
    declaring_class: TypeBinding | None = None


@dataclass(frozen=True)
class MethodBinding:
    """Resolved method or constructor."""

    name: str
    declaring_class: TypeBinding | None = None


@dataclass(frozen=True)
class PackageBinding:
    """Resolved package name segment."""

    name: str


Binding = TypeBinding | VariableBinding | MethodBinding | PackageBinding


# Nodes


@dataclass(eq=False)
class Node:
    """Base class of all tree nodes."""

    _fields: ClassVar[tuple[str, ...]] = ()

    span: Span | None = field(default=None, kw_only=True)
    modified: bool = field(default=False, kw_only=True)

    @property
    def line(self) -> int:
        return self.span.line if self.span is not None else 0


@dataclass(eq=False)
class Opaque(Node):
    """Syntax without remap rules of its own, kept for its children.

    Args:
        kind: Parser-specific node kind, e.g. ``block`` or ``this``.
        children: Child nodes in source order.
    """

    _fields: ClassVar[tuple[str, ...]] = ("children",)

    kind: str
    children: list[Node] = field(default_factory=list)


@dataclass(eq=False)
class SimpleName(Node):
    """Single identifier."""

    identifier: str
    binding: Binding | None = None

    @property
    def full_name(self) -> str:
        return self.identifier

    def set_identifier(self, identifier: str) -> None:
        self.identifier = identifier
        self.modified = True


@dataclass(eq=False)
class QualifiedName(Node):
    """Dotted name such as ``com.example.Foo`` or ``Foo.CONSTANT``."""

    _fields: ClassVar[tuple[str, ...]] = ("qualifier", "name")

    qualifier: "SimpleName | QualifiedName | None"
    name: SimpleName
    binding: Binding | None = None

    @property
    def full_name(self) -> str:
        if self.qualifier is None:
            return self.name.identifier
        return f"{self.qualifier.full_name}.{self.name.identifier}"

    def set_full_name(self, dotted: str) -> None:
        """Replace qualifier and final segment with the parts of ``dotted``.

        Args:
            dotted: Dotted name. A name without dots drops the qualifier,
                as for types in the default package.
        """
        prefix, _, last = dotted.rpartition(".")
        self.qualifier = name_from_dotted(prefix) if prefix else None
        self.name = SimpleName(identifier=last)
        self.modified = True


Name = SimpleName | QualifiedName


def name_from_dotted(dotted: str) -> Name:
    """Build an unbound name node from dotted text.

    Args:
        dotted: Dotted name, e.g. ``a.b.C``.

    Returns:
        Simple or qualified name node without span.
    """
    segments = dotted.split(".")
    node: Name = SimpleName(identifier=segments[0])
    for segment in segments[1:]:
        node = QualifiedName(qualifier=node, name=SimpleName(identifier=segment))
    return node


@dataclass(eq=False)
class StringLiteral(Node):
    """String literal with its unescaped value."""

    literal_value: str

    def set_literal_value(self, value: str) -> None:
        self.literal_value = value
        self.modified = True


@dataclass(eq=False)
class TypeLiteral(Node):
    """Class literal such as ``Foo.class``."""

    _fields: ClassVar[tuple[str, ...]] = ("type",)

    type: Node
    binding: TypeBinding | None = None


@dataclass(eq=False)
class ArrayInitializer(Node):
    """Brace-enclosed element list, e.g. annotation array values."""

    _fields: ClassVar[tuple[str, ...]] = ("expressions",)

    expressions: list[Node] = field(default_factory=list)


@dataclass(eq=False)
class MemberValuePair(Node):
    """``name = value`` argument of a normal annotation."""

    _fields: ClassVar[tuple[str, ...]] = ("name", "value")

    name: SimpleName
    value: Node


@dataclass(eq=False)
class Annotation(Node):
    """Base class of annotation nodes.

    Args:
        type_name: Annotation type name as written.
        binding: Resolved annotation type.
    """

    type_name: Name
    binding: TypeBinding | None = field(default=None, kw_only=True)

    @property
    def qualified_type_name(self) -> str | None:
        if self.binding is None:
            return None
        return self.binding.qualified_name

    def member_value(self, name: str) -> Node | None:
        """Return the value given for an annotation member, if any."""
        return None


@dataclass(eq=False)
class MarkerAnnotation(Annotation):
    """Annotation without arguments, e.g. ``@Accessor``."""

    _fields: ClassVar[tuple[str, ...]] = ("type_name",)


@dataclass(eq=False)
class SingleMemberAnnotation(Annotation):
    """Annotation with one unnamed argument, e.g. ``@Accessor("foo")``."""

    _fields: ClassVar[tuple[str, ...]] = ("type_name", "value")

    value: Node

    def member_value(self, name: str) -> Node | None:
        return self.value if name == "value" else None


@dataclass(eq=False)
class NormalAnnotation(Annotation):
    """Annotation with named arguments, e.g. ``@Inject(method = "tick")``."""

    _fields: ClassVar[tuple[str, ...]] = ("type_name", "values")

    values: list[MemberValuePair] = field(default_factory=list)

    def member_value(self, name: str) -> Node | None:
        for pair in self.values:
            if pair.name.identifier == name:
                return pair.value
        return None


@dataclass(eq=False)
class FieldAccess(Node):
    """Member access on an expression, e.g. ``this.value``."""

    _fields: ClassVar[tuple[str, ...]] = ("expression", "name")

    expression: Node
    name: SimpleName


@dataclass(eq=False)
class MethodInvocation(Node):
    """Method call with optional receiver expression."""

    _fields: ClassVar[tuple[str, ...]] = (
        "expression",
        "type_arguments",
        "name",
        "arguments",
    )

    expression: Node | None
    name: SimpleName
    arguments: list[Node] = field(default_factory=list)
    type_arguments: list[Node] = field(default_factory=list)
    binding: MethodBinding | None = None


@dataclass(eq=False)
class SwitchCase(Node):
    """``case`` label with its constant expressions."""

    _fields: ClassVar[tuple[str, ...]] = ("expressions",)

    expressions: list[Node] = field(default_factory=list)


@dataclass(eq=False)
class VariableDeclarationFragment(Node):
    """One declarator of a field or local variable declaration."""

    _fields: ClassVar[tuple[str, ...]] = ("name", "initializer")

    name: SimpleName
    initializer: Node | None = None


@dataclass(eq=False)
class FieldDeclaration(Node):
    """Field declaration with one or more declarators."""

    _fields: ClassVar[tuple[str, ...]] = ("modifiers", "type", "fragments")

    modifiers: list[Node]
    type: Node
    fragments: list[VariableDeclarationFragment] = field(default_factory=list)

    @property
    def annotations(self) -> list[Annotation]:
        return [node for node in self.modifiers if isinstance(node, Annotation)]


@dataclass(eq=False)
class MethodDeclaration(Node):
    """Method or constructor declaration."""

    _fields: ClassVar[tuple[str, ...]] = (
        "modifiers",
        "type_parameters",
        "return_type",
        "name",
        "parameters",
        "thrown",
        "body",
    )

    modifiers: list[Node]
    name: SimpleName
    parameters: list[Node] = field(default_factory=list)
    return_type: Node | None = None
    body: Node | None = None
    type_parameters: list[Node] = field(default_factory=list)
    thrown: list[Node] = field(default_factory=list)

    @property
    def annotations(self) -> list[Annotation]:
        return [node for node in self.modifiers if isinstance(node, Annotation)]

    def replace_modifier(self, old: Node, new: Node) -> None:
        """Swap a modifier node, recording the replacement at the old span.

        Args:
            old: Modifier currently present in ``modifiers``.
            new: Replacement node.

        Raises:
            ValueError: If ``old`` is not a modifier of this declaration.
        """
        for index, modifier in enumerate(self.modifiers):
            if modifier is old:
                new.span = old.span
                new.modified = True
                self.modifiers[index] = new
                return
        raise ValueError("Modifier does not belong to this declaration")


@dataclass(eq=False)
class EnumConstantDeclaration(Node):
    """Enum constant with optional arguments and body."""

    _fields: ClassVar[tuple[str, ...]] = ("modifiers", "name", "arguments", "body")

    modifiers: list[Node]
    name: SimpleName
    arguments: list[Node] = field(default_factory=list)
    body: list[Node] = field(default_factory=list)


@dataclass(eq=False)
class TypeDeclaration(Node):
    """Class, interface, enum, record or annotation type declaration.

    Args:
        kind: One of ``class``, ``interface``, ``enum``, ``record``,
            ``annotation``.
        modifiers: Modifier keywords and annotations.
        name: Declared simple name.
        header: Type parameters, record components and supertype references.
        members: Body declarations in source order.
        binding: Resolved declared type.
    """

    _fields: ClassVar[tuple[str, ...]] = ("modifiers", "name", "header", "members")

    kind: str
    modifiers: list[Node]
    name: SimpleName
    header: list[Node] = field(default_factory=list)
    members: list[Node] = field(default_factory=list)
    binding: TypeBinding | None = None

    @property
    def annotations(self) -> list[Annotation]:
        return [node for node in self.modifiers if isinstance(node, Annotation)]


@dataclass(eq=False)
class ImportDeclaration(Node):
    """``import`` statement."""

    _fields: ClassVar[tuple[str, ...]] = ("name",)

    name: Name
    is_static: bool = False
    on_demand: bool = False

    def set_name(self, dotted: str) -> None:
        """Replace the imported name, recording the edit at the old span.

        Args:
            dotted: New fully-qualified name.
        """
        replacement = name_from_dotted(dotted)
        replacement.span = self.name.span
        replacement.modified = True
        self.name = replacement


@dataclass(eq=False)
class PackageDeclaration(Node):
    """``package`` statement."""

    _fields: ClassVar[tuple[str, ...]] = ("annotations", "name")

    name: Name
    annotations: list[Node] = field(default_factory=list)


@dataclass(eq=False)
class CompilationUnit(Node):
    """One parsed and resolved source file.

    Args:
        name: Unit name as given by the caller, e.g. ``pkg/Foo.java``.
        package: Package declaration, when present.
        imports: Import declarations in source order.
        types: Top-level type declarations in source order.
        problems: Non-fatal parser diagnostics.
    """

    _fields: ClassVar[tuple[str, ...]] = ("package", "imports", "types")

    name: str
    package: PackageDeclaration | None = None
    imports: list[ImportDeclaration] = field(default_factory=list)
    types: list[TypeDeclaration] = field(default_factory=list)
    problems: list[Problem] = field(default_factory=list)


def iter_child_nodes(node: Node) -> Iterator[Node]:
    """Yield direct children of a node in source order.

    Args:
        node: Parent node.

    Yields:
        Child nodes.
    """
    for name in node._fields:
        value = getattr(node, name)
        if isinstance(value, Node):
            yield value
        elif isinstance(value, list):
            for item in value:
                if isinstance(item, Node):
                    yield item


def walk(node: Node) -> Iterator[Node]:
    """Yield a node and all of its descendants breadth-first."""
    todo: deque[Node] = deque([node])
    while todo:
        current = todo.popleft()
        todo.extend(iter_child_nodes(current))
        yield current


class NodeVisitor:
    """Dispatch ``visit_<NodeClass>`` methods over a tree.

    Subclasses override ``visit_*`` methods; unhandled node classes fall back
    to ``generic_visit``, which visits all children.
    """

    def visit(self, node: Node) -> None:
        method = getattr(self, f"visit_{type(node).__name__}", self.generic_visit)
        method(node)

    def generic_visit(self, node: Node) -> None:
        for child in iter_child_nodes(node):
            self.visit(child)
