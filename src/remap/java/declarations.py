# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Index type declarations of a source batch and resolve names against them.

Every unit is scanned once for its package, imports and declared types before
any unit is converted, so references between units of the same batch resolve
regardless of order. Member types, fields and methods are looked up in the
batch first and on the class path second.
"""

import logging
import re
from collections import deque
from dataclasses import dataclass, field

from tree_sitter import Node as SyntaxNode

from remap.java.classpath import ClassInfo, ClasspathIndex
from remap.tree import TypeBinding

logger = logging.getLogger(__name__)

TYPE_DECLARATION_KINDS: dict[str, str] = {
    "class_declaration": "class",
    "interface_declaration": "interface",
    "enum_declaration": "enum",
    "record_declaration": "record",
    "annotation_type_declaration": "annotation",
}
_BODY_CONTAINERS = frozenset({"enum_body_declarations"})
_FIELD_DECLARATIONS = frozenset({"field_declaration", "constant_declaration"})
_METHOD_DECLARATIONS = frozenset(
    {"method_declaration", "annotation_type_element_declaration"}
)

_IMPLICIT_SUPERCLASS: dict[str, str | None] = {
    "class": "java.lang.Object",
    "enum": "java.lang.Enum",
    "record": "java.lang.Record",
    "interface": None,
    "annotation": None,
}

JAVA_LANG_TYPES: frozenset[str] = frozenset(
    {
        "AutoCloseable",
        "Boolean",
        "Byte",
        "CharSequence",
        "Character",
        "Class",
        "ClassCastException",
        "ClassNotFoundException",
        "CloneNotSupportedException",
        "Cloneable",
        "Comparable",
        "Deprecated",
        "Double",
        "Enum",
        "Error",
        "Exception",
        "Float",
        "FunctionalInterface",
        "IllegalArgumentException",
        "IllegalStateException",
        "IndexOutOfBoundsException",
        "Integer",
        "InterruptedException",
        "Iterable",
        "Long",
        "Math",
        "NullPointerException",
        "Number",
        "Object",
        "Override",
        "Record",
        "Runnable",
        "RuntimeException",
        "SafeVarargs",
        "Short",
        "StrictMath",
        "String",
        "StringBuilder",
        "StringBuffer",
        "SuppressWarnings",
        "System",
        "Thread",
        "ThreadLocal",
        "Throwable",
        "UnsupportedOperationException",
        "Void",
    }
)

_ANNOTATION_PATTERN = re.compile(r"@[\w.]+(\([^)]*\))?\s*")
_ARRAY_PATTERN = re.compile(r"\s*(\[\s*\]|\.\.\.)")


@dataclass
class UnitContext:
    """Names visible at the top level of one compilation unit.

    Args:
        package: Dotted package name, empty for the default package.
        single_imports: Simple name to imported qualified type name.
        on_demand_imports: Packages or types imported with ``.*``.
        static_imports: Simple member name to owner qualified name.
        static_on_demand_imports: Owners imported with ``static ... .*``.
        top_level_types: Simple name to qualified name of the unit's types.
    """

    package: str = ""
    single_imports: dict[str, str] = field(default_factory=dict)
    on_demand_imports: list[str] = field(default_factory=list)
    static_imports: dict[str, str] = field(default_factory=dict)
    static_on_demand_imports: list[str] = field(default_factory=list)
    top_level_types: dict[str, str] = field(default_factory=dict)


@dataclass(eq=False)
class SourceType:
    """Type declared in source.

    Local and anonymous types have an empty qualified name and are never
    registered in the universe; they are looked up through the object itself.

    Args:
        qualified_name: Dotted name, empty for local and anonymous types.
        kind: Declaration kind such as ``class`` or ``enum``.
        context: Names visible in the declaring unit.
        outer: Lexically enclosing type.
        superclass_ref: Superclass as written, already erased.
        interface_refs: Superinterfaces as written, already erased.
        field_refs: Field name to declared type as written.
        method_refs: Method name to declared return type as written.
        member_types: Simple name to qualified name of member types.
        type_parameters: Names of declared type variables.
    """

    qualified_name: str
    kind: str
    context: UnitContext
    outer: "SourceType | None" = None
    superclass_ref: str | None = None
    interface_refs: list[str] = field(default_factory=list)
    field_refs: dict[str, str | None] = field(default_factory=dict)
    method_refs: dict[str, str | None] = field(default_factory=dict)
    member_types: dict[str, str] = field(default_factory=dict)
    type_parameters: set[str] = field(default_factory=set)
    resolved_supertypes: "tuple[TypeRef | None, list[TypeRef]] | None" = None

    @property
    def simple_name(self) -> str:
        return self.qualified_name.rsplit(".", 1)[-1]


TypeRef = str | SourceType


@dataclass
class UnitIndex:
    """Declarations found in one compilation unit.

    Args:
        context: Top-level visible names.
        types: Named types (top-level and member types) in source order.
        by_offset: Declaration start byte to its indexed type.
    """

    context: UnitContext
    types: list[SourceType] = field(default_factory=list)
    by_offset: dict[int, SourceType] = field(default_factory=dict)


def node_text(node: SyntaxNode | None) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8")


def erase_type(text: str) -> str:
    """Reduce a written type to its dotted raw name.

    Args:
        text: Type as written, e.g. ``java.util.List<String>[]``.

    Returns:
        Raw dotted name such as ``java.util.List``.
    """
    text = _ANNOTATION_PATTERN.sub("", text)
    depth = 0
    chars: list[str] = []
    for char in text:
        if char == "<":
            depth += 1
        elif char == ">":
            depth -= 1
        elif depth == 0:
            chars.append(char)
    return "".join(_ARRAY_PATTERN.sub("", "".join(chars)).split())


def type_parameter_names(node: SyntaxNode | None) -> set[str]:
    """Return the names declared by a ``type_parameters`` node."""
    names: set[str] = set()
    if node is None:
        return names
    for parameter in node.named_children:
        if parameter.type != "type_parameter":
            continue
        for child in parameter.named_children:
            if child.type in ("identifier", "type_identifier"):
                names.add(node_text(child))
                break
    return names


def supertype_nodes(node: SyntaxNode) -> tuple[SyntaxNode | None, list[SyntaxNode]]:
    """Return the superclass type node and superinterface type nodes.

    Args:
        node: Type declaration node.

    Returns:
        Superclass type node (or None) and the interface type nodes.
    """
    superclass = None
    extends = node.child_by_field_name("superclass")
    if extends is not None and extends.named_children:
        superclass = extends.named_children[0]

    interfaces: list[SyntaxNode] = []
    containers = [node.child_by_field_name("interfaces")]
    containers.extend(
        child for child in node.named_children if child.type == "extends_interfaces"
    )
    for container in containers:
        if container is None:
            continue
        for type_list in container.named_children:
            if type_list.type == "type_list":
                interfaces.extend(type_list.named_children)
            else:
                interfaces.append(type_list)
    return superclass, interfaces


def index_unit(root: SyntaxNode) -> UnitIndex:
    """Collect the package, imports and named types of one parsed unit.

    Args:
        root: ``program`` node of the unit.

    Returns:
        Unit index with unresolved type references.
    """
    context = UnitContext()
    index = UnitIndex(context=context)
    for child in root.named_children:
        if child.type == "package_declaration":
            for part in child.named_children:
                if part.type in ("identifier", "scoped_identifier"):
                    context.package = node_text(part)
        elif child.type == "import_declaration":
            _index_import(child, context)

    for child in root.named_children:
        if child.type in TYPE_DECLARATION_KINDS:
            source_type = _index_type(child, context, None, index)
            context.top_level_types[source_type.simple_name] = source_type.qualified_name
    return index


def _index_import(node: SyntaxNode, context: UnitContext) -> None:
    is_static = any(child.type == "static" for child in node.children)
    on_demand = any(child.type == "asterisk" for child in node.children)
    name = ""
    for child in node.named_children:
        if child.type in ("identifier", "scoped_identifier"):
            name = node_text(child)
    if not name:
        return
    if is_static and on_demand:
        context.static_on_demand_imports.append(name)
    elif is_static:
        owner, _, member = name.rpartition(".")
        context.static_imports[member] = owner
    elif on_demand:
        context.on_demand_imports.append(name)
    else:
        context.single_imports[name.rsplit(".", 1)[-1]] = name


def index_local_type(node: SyntaxNode, index: UnitIndex, outer: SourceType | None) -> SourceType:
    """Index a type declared inside a block.

    Local types and their member types have an empty qualified name.

    Args:
        node: Type declaration node.
        index: Index of the declaring unit; nested declarations are added.
        outer: Lexically enclosing type.

    Returns:
        Indexed local type.
    """
    return _index_type(node, index.context, outer, index, local=True)


def index_anonymous_type(
    body: SyntaxNode, index: UnitIndex, outer: SourceType | None
) -> SourceType:
    """Index the members of an anonymous class body.

    Supertypes are left unresolved; the caller knows the instantiated type.

    Args:
        body: ``class_body`` node.
        index: Index of the declaring unit.
        outer: Lexically enclosing type.

    Returns:
        Indexed anonymous type.
    """
    source_type = SourceType(qualified_name="", kind="class", context=index.context, outer=outer)
    _index_body(body, source_type, index.context, index)
    return source_type


def _index_type(
    node: SyntaxNode,
    context: UnitContext,
    outer: SourceType | None,
    index: UnitIndex,
    local: bool = False,
) -> SourceType:
    kind = TYPE_DECLARATION_KINDS[node.type]
    name = node_text(node.child_by_field_name("name"))
    if local or (outer is not None and not outer.qualified_name):
        qualified_name = ""
    elif outer is not None:
        qualified_name = f"{outer.qualified_name}.{name}"
    elif context.package:
        qualified_name = f"{context.package}.{name}"
    else:
        qualified_name = name

    superclass, interfaces = supertype_nodes(node)
    source_type = SourceType(
        qualified_name=qualified_name,
        kind=kind,
        context=context,
        outer=outer,
        superclass_ref=erase_type(node_text(superclass)) if superclass is not None else None,
        interface_refs=[erase_type(node_text(ref)) for ref in interfaces],
        type_parameters=type_parameter_names(node.child_by_field_name("type_parameters")),
    )
    index.types.append(source_type)
    index.by_offset[node.start_byte] = source_type

    if kind == "record":
        parameters = node.child_by_field_name("parameters")
        for component in parameters.named_children if parameters is not None else []:
            component_name = node_text(component.child_by_field_name("name"))
            component_type = node_text(component.child_by_field_name("type"))
            if component_name:
                source_type.field_refs.setdefault(component_name, erase_type(component_type))
                source_type.method_refs.setdefault(component_name, erase_type(component_type))

    body = node.child_by_field_name("body")
    if body is not None:
        _index_body(body, source_type, context, index)
    return source_type


def _index_body(
    body: SyntaxNode, owner: SourceType, context: UnitContext, index: UnitIndex
) -> None:
    for member in body.named_children:
        if member.type in _BODY_CONTAINERS:
            _index_body(member, owner, context, index)
        elif member.type == "enum_constant":
            # Enum constants are fields typed as their enum.
            owner.field_refs.setdefault(node_text(member.child_by_field_name("name")), None)
        elif member.type in _FIELD_DECLARATIONS:
            field_type = erase_type(node_text(member.child_by_field_name("type")))
            for declarator in member.children_by_field_name("declarator"):
                owner.field_refs.setdefault(
                    node_text(declarator.child_by_field_name("name")), field_type
                )
        elif member.type in _METHOD_DECLARATIONS:
            owner.method_refs.setdefault(
                node_text(member.child_by_field_name("name")),
                erase_type(node_text(member.child_by_field_name("type"))),
            )
        elif member.type in TYPE_DECLARATION_KINDS:
            nested = _index_type(member, context, owner, index)
            if nested.qualified_name:
                owner.member_types[nested.simple_name] = nested.qualified_name


class TypeUniverse:
    """Resolve type names and members across a batch and its class path."""

    def __init__(self, source_types: list[SourceType], classpath: ClasspathIndex) -> None:
        """Initialize type universe.

        Args:
            source_types: Named types declared in the batch.
            classpath: Compiled classes available to the batch.
        """
        self._source_types: dict[str, SourceType] = {}
        for source_type in source_types:
            if not source_type.qualified_name:
                continue
            if source_type.qualified_name in self._source_types:
                logger.warning(
                    "Duplicate type declaration in batch (type=%s)", source_type.qualified_name
                )
                continue
            self._source_types[source_type.qualified_name] = source_type
        self._packages: set[str] = set()
        for source_type in self._source_types.values():
            package = source_type.context.package
            while package:
                self._packages.add(package)
                package, _, _ = package.rpartition(".")
        self._classpath = classpath
        self._bindings: dict[str, TypeBinding] = {}
        self._local_bindings: dict[int, TypeBinding] = {}
        self._field_types: dict[tuple[int, str], TypeRef | None] = {}

    # Lookup

    def exists(self, qualified_name: str) -> bool:
        return (
            qualified_name in self._source_types
            or self._classpath.find(qualified_name) is not None
        )

    def is_package(self, name: str) -> bool:
        return name in self._packages or self._classpath.has_package(name)

    def is_interface(self, ref: TypeRef) -> bool:
        info = self._info(ref)
        if isinstance(info, SourceType):
            return info.kind in ("interface", "annotation")
        return info is not None and info.is_interface

    def _info(self, ref: TypeRef) -> SourceType | ClassInfo | None:
        if isinstance(ref, SourceType):
            return ref
        return self._source_types.get(ref) or self._classpath.find(ref)

    def binding(self, ref: TypeRef) -> TypeBinding:
        """Return the shared binding of a type, with its supertypes attached.

        Args:
            ref: Qualified type name or source type.

        Returns:
            Type binding. Unknown types get a binding without supertypes.
        """
        if isinstance(ref, SourceType):
            if ref.qualified_name:
                return self.binding(ref.qualified_name)
            binding = self._local_bindings.get(id(ref))
            if binding is None:
                binding = TypeBinding(qualified_name="")
                self._local_bindings[id(ref)] = binding
                self._attach_supertypes(binding, ref)
            return binding

        binding = self._bindings.get(ref)
        if binding is None:
            binding = TypeBinding(qualified_name=ref)
            self._bindings[ref] = binding
            self._attach_supertypes(binding, ref)
        return binding

    def _attach_supertypes(self, binding: TypeBinding, ref: TypeRef) -> None:
        if self._info(ref) is None:
            return
        superclass, interfaces = self.direct_supertypes(ref)
        if superclass is not None:
            binding.superclass = self.binding(superclass)
        binding.interfaces = [self.binding(item) for item in interfaces]

    def direct_supertypes(self, ref: TypeRef) -> tuple[TypeRef | None, list[TypeRef]]:
        """Return the direct superclass and superinterfaces of a type.

        Args:
            ref: Qualified type name or source type.

        Returns:
            Superclass (None for interfaces and unresolvable references) and
            the resolvable superinterfaces.
        """
        info = self._info(ref)
        if isinstance(info, ClassInfo):
            return info.superclass, list(info.interfaces)
        if info is None:
            return None, []
        if info.resolved_supertypes is None:
            # Supertype clauses resolve in the enclosing scope.
            info.resolved_supertypes = (None, [])
            written = info.superclass_ref
            if written is None:
                implicit = _IMPLICIT_SUPERCLASS.get(info.kind)
                if implicit != info.qualified_name:
                    written = implicit
            superclass = (
                self.resolve_type(written, info.context, info.outer) if written else None
            )
            interfaces: list[TypeRef] = []
            for interface in info.interface_refs:
                resolved = self.resolve_type(interface, info.context, info.outer)
                if resolved is not None:
                    interfaces.append(resolved)
            info.resolved_supertypes = (superclass, interfaces)
        return info.resolved_supertypes

    def supertypes(self, ref: TypeRef) -> list[TypeRef]:
        superclass, interfaces = self.direct_supertypes(ref)
        return [superclass, *interfaces] if superclass is not None else interfaces

    def _hierarchy(self, start: TypeRef):
        queue: deque[TypeRef] = deque([start])
        seen: set[object] = set()
        while queue:
            current = queue.popleft()
            key = id(current) if isinstance(current, SourceType) else current
            if key in seen:
                continue
            seen.add(key)
            info = self._info(current)
            if info is None:
                continue
            yield current, info
            queue.extend(self.supertypes(current))

    def find_field(self, start: TypeRef, name: str) -> tuple[TypeRef, TypeRef | None] | None:
        """Find a field declared by a type or one of its supertypes.

        Args:
            start: Type the field is accessed on.
            name: Field name.

        Returns:
            Declaring type and field type, or None when not found.
        """
        for current, info in self._hierarchy(start):
            if isinstance(info, ClassInfo):
                if name in info.field_types:
                    return current, info.field_types[name]
            elif name in info.field_refs:
                return current, self._source_field_type(info, name)
        return None

    def find_method(self, start: TypeRef, name: str) -> tuple[TypeRef, TypeRef | None] | None:
        """Find a method declared by a type or one of its supertypes.

        Args:
            start: Receiver type.
            name: Method name.

        Returns:
            Declaring type and return type, or None when not found.
        """
        for current, info in self._hierarchy(start):
            if isinstance(info, ClassInfo):
                if name in info.method_returns:
                    return current, info.method_returns[name]
            elif name in info.method_refs:
                written = info.method_refs[name]
                resolved = self.resolve_type(written, info.context, info) if written else None
                return current, resolved
        return None

    def member_type(self, owner: TypeRef, simple_name: str) -> str | None:
        """Find a member type declared by a type or inherited from a supertype."""
        for current, info in self._hierarchy(owner):
            if isinstance(info, SourceType):
                if simple_name in info.member_types:
                    return info.member_types[simple_name]
            else:
                candidate = f"{info.qualified_name}.{simple_name}"
                if self._classpath.find(candidate) is not None:
                    return candidate
        return None

    def _source_field_type(self, info: SourceType, name: str) -> TypeRef | None:
        key = (id(info), name)
        if key not in self._field_types:
            written = info.field_refs[name]
            if written is None:
                resolved: TypeRef | None = info if info.kind == "enum" else None
            else:
                resolved = self.resolve_type(written, info.context, info)
            self._field_types[key] = resolved
        return self._field_types[key]

    # Name resolution

    def resolve_simple_type(
        self, name: str, context: UnitContext, enclosing: SourceType | None
    ) -> TypeRef | None:
        """Resolve a simple type name the way the compiler scopes it.

        Enclosing types and their member types come first, then the unit's
        own types, single-type imports, the package, on-demand imports and
        finally ``java.lang``.

        Args:
            name: Simple type name.
            context: Names visible in the unit.
            enclosing: Innermost enclosing type, if any.

        Returns:
            Resolved type, or None for type variables and unknown names.
        """
        current = enclosing
        while current is not None:
            if name in current.type_parameters:
                return None
            if current.qualified_name and current.simple_name == name:
                return current.qualified_name
            member = self.member_type(current, name)
            if member is not None:
                return member
            current = current.outer

        if name in context.top_level_types:
            return context.top_level_types[name]
        if name in context.single_imports:
            return context.single_imports[name]
        same_package = f"{context.package}.{name}" if context.package else name
        if self.exists(same_package):
            return same_package
        for prefix in context.on_demand_imports:
            candidate = f"{prefix}.{name}"
            if self.exists(candidate):
                return candidate
        if name in JAVA_LANG_TYPES or self.exists(f"java.lang.{name}"):
            return f"java.lang.{name}"
        return None

    def resolve_type(
        self, written: str, context: UnitContext, enclosing: SourceType | None
    ) -> TypeRef | None:
        """Resolve a written, possibly qualified, raw type name.

        Args:
            written: Erased type text such as ``Map.Entry`` or ``a.b.C``.
            context: Names visible in the unit.
            enclosing: Innermost enclosing type, if any.

        Returns:
            Resolved type, or None when the name cannot be a known type.
        """
        parts = [part for part in erase_type(written).split(".") if part]
        if not parts:
            return None
        current = self.resolve_simple_type(parts[0], context, enclosing)
        if current is None:
            if len(parts) == 1:
                return None
            return self._resolve_qualified_type(parts)
        for part in parts[1:]:
            current = self.member_type(current, part) or f"{_name_of(current)}.{part}"
        return current

    def _resolve_qualified_type(self, parts: list[str]) -> str:
        for end in range(1, len(parts) + 1):
            candidate = ".".join(parts[:end])
            if self.exists(candidate):
                current = candidate
                for part in parts[end:]:
                    current = self.member_type(current, part) or f"{current}.{part}"
                return current
        # Unknown fully-qualified name; keep it as written.
        return ".".join(parts)


def _name_of(ref: TypeRef) -> str:
    return ref.qualified_name if isinstance(ref, SourceType) else ref
