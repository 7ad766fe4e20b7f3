# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Convert tree-sitter Java syntax into resolved remap trees.

Declarations and references get the bindings the remapper dispatches on.
Syntax without remap rules of its own becomes ``Opaque`` nodes so that every
identifier below it is still visited.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from tree_sitter import Node as SyntaxNode

from remap.java.declarations import (
    TYPE_DECLARATION_KINDS,
    SourceType,
    TypeRef,
    TypeUniverse,
    UnitIndex,
    erase_type,
    index_anonymous_type,
    index_local_type,
    node_text,
    supertype_nodes,
    type_parameter_names,
)
from remap.tree import (
    ArrayInitializer,
    Binding,
    CompilationUnit,
    EnumConstantDeclaration,
    FieldAccess,
    FieldDeclaration,
    ImportDeclaration,
    MarkerAnnotation,
    MemberValuePair,
    MethodBinding,
    MethodDeclaration,
    MethodInvocation,
    Name,
    Node,
    NormalAnnotation,
    Opaque,
    PackageBinding,
    PackageDeclaration,
    Problem,
    QualifiedName,
    SimpleName,
    SingleMemberAnnotation,
    Span,
    StringLiteral,
    SwitchCase,
    TypeDeclaration,
    TypeLiteral,
    VariableBinding,
    VariableDeclarationFragment,
)

logger = logging.getLogger(__name__)

_COMMENTS = frozenset({"line_comment", "block_comment"})
_ANNOTATIONS = frozenset({"annotation", "marker_annotation"})
_PRIMITIVE_TYPES = frozenset(
    {"integral_type", "floating_point_type", "boolean_type", "void_type"}
)
_TYPE_NODES = frozenset(
    {
        "type_identifier",
        "scoped_type_identifier",
        "generic_type",
        "array_type",
        *_PRIMITIVE_TYPES,
    }
)
_SIMPLE_ESCAPES: dict[str, str] = {
    "b": "\b",
    "t": "\t",
    "n": "\n",
    "f": "\f",
    "r": "\r",
    "s": " ",
    '"': '"',
    "'": "'",
    "\\": "\\",
}


def span_of(node: SyntaxNode) -> Span:
    return Span(start=node.start_byte, end=node.end_byte, line=node.start_point[0] + 1)


def unescape_java_string(text: str) -> str:
    """Return the value of a Java string literal or text block.

    Args:
        text: Literal as written, including its quotes.

    Returns:
        Unescaped value.
    """
    if text.startswith('"""'):
        body = text[3:-3]
        # The opening delimiter is followed by a line terminator.
        _, _, body = body.partition("\n")
    else:
        body = text[1:-1]

    chars: list[str] = []
    index = 0
    while index < len(body):
        char = body[index]
        if char != "\\" or index + 1 >= len(body):
            chars.append(char)
            index += 1
            continue
        escape = body[index + 1]
        if escape in _SIMPLE_ESCAPES:
            chars.append(_SIMPLE_ESCAPES[escape])
            index += 2
        elif escape == "u":
            end = index + 1
            while end < len(body) and body[end] == "u":
                end += 1
            chars.append(chr(int(body[end : end + 4], 16)))
            index = end + 4
        elif escape in "01234567":
            end = index + 1
            limit = index + (4 if escape in "0123" else 3)
            while end < min(limit, len(body)) and body[end] in "01234567":
                end += 1
            chars.append(chr(int(body[index + 1 : end], 8)))
            index = end
        elif escape == "\n":
            # Line continuation inside text blocks.
            index += 2
        else:
            chars.append(escape)
            index += 2
    return "".join(chars)


def collect_problems(root: SyntaxNode) -> list[Problem]:
    """Collect syntax errors reported by tree-sitter.

    Args:
        root: ``program`` node.

    Returns:
        Problems sorted by line.
    """
    problems: list[Problem] = []
    pending = [root]
    while pending:
        node = pending.pop()
        line = node.start_point[0] + 1
        if node.is_missing:
            problems.append(Problem(line=line, message=f"Missing {node.type}"))
        elif node.is_error:
            problems.append(Problem(line=line, message=f"Syntax error near '{_excerpt(node)}'"))
        elif node.has_error:
            pending.extend(node.children)
    return sorted(problems, key=lambda problem: problem.line)


def _excerpt(node: SyntaxNode) -> str:
    text = node_text(node).split("\n", 1)[0]
    return text if len(text) <= 40 else text[:37] + "..."


@dataclass
class _Scope:
    depth: int
    variables: dict[str, TypeRef | None] = field(default_factory=dict)
    type_variables: set[str] = field(default_factory=set)


@dataclass(frozen=True)
class _Variable:
    binding: VariableBinding
    type: TypeRef | None


class UnitConverter:
    """Convert one parsed compilation unit.

    Converters are single use and not thread safe; the type universe they
    share caches lookups lazily.
    """

    def __init__(
        self, name: str, root: SyntaxNode, index: UnitIndex, universe: TypeUniverse
    ) -> None:
        """Initialize unit converter.

        Args:
            name: Unit name given by the caller.
            root: ``program`` node of the unit.
            index: Declarations indexed from the unit.
            universe: Types of the whole batch and class path.
        """
        self._name = name
        self._root = root
        self._index = index
        self._context = index.context
        self._universe = universe
        self._types: list[SourceType] = []
        self._scopes: list[_Scope] = []
        self._switch_types: list[TypeRef | None] = []
        self._handlers: dict[str, Callable[[SyntaxNode], Node]] = {
            "annotation": self._annotation,
            "marker_annotation": self._annotation,
            "element_value_array_initializer": self._array_initializer,
            "array_initializer": self._array_initializer,
            "string_literal": self._string_literal,
            "class_literal": self._class_literal,
            "identifier": self._identifier,
            "type_identifier": self._type_identifier,
            "scoped_type_identifier": self._scoped_type_identifier,
            "scoped_identifier": self._scoped_identifier,
            "field_access": self._field_access,
            "method_invocation": self._method_invocation,
            "method_reference": self._method_reference,
            "object_creation_expression": self._object_creation,
            "local_variable_declaration": self._local_variable_declaration,
            "formal_parameter": self._formal_parameter,
            "spread_parameter": self._spread_parameter,
            "catch_formal_parameter": self._catch_formal_parameter,
            "resource": self._resource,
            "lambda_expression": self._lambda,
            "enhanced_for_statement": self._enhanced_for,
            "instanceof_expression": self._instanceof,
            "type_pattern": self._pattern_variable,
            "record_pattern_component": self._pattern_variable,
            "switch_expression": self._switch,
            "switch_statement": self._switch,
            "switch_label": self._switch_label,
            "type_parameter": self._type_parameter,
            "labeled_statement": self._without_label,
            "break_statement": self._without_label,
            "continue_statement": self._without_label,
            "block": self._scoped,
            "constructor_body": self._scoped,
            "switch_block": self._scoped,
            "for_statement": self._scoped,
            "catch_clause": self._scoped,
            "try_with_resources_statement": self._scoped,
        }
        for kind in TYPE_DECLARATION_KINDS:
            self._handlers[kind] = self._type_declaration

    def convert(self) -> CompilationUnit:
        """Convert the unit.

        Returns:
            Resolved compilation unit.
        """
        package: PackageDeclaration | None = None
        imports: list[ImportDeclaration] = []
        types: list[TypeDeclaration] = []
        for child in self._root.named_children:
            if child.type == "package_declaration":
                package = self._package(child)
            elif child.type == "import_declaration":
                imports.append(self._import(child))
            elif child.type in TYPE_DECLARATION_KINDS:
                types.append(self._type_declaration(child))
        logger.debug("Converted unit (unit=%s types=%d)", self._name, len(types))
        return CompilationUnit(
            name=self._name,
            package=package,
            imports=imports,
            types=types,
            problems=collect_problems(self._root),
            span=span_of(self._root),
        )

    # Generic conversion

    def _convert(self, node: SyntaxNode) -> Node:
        handler = self._handlers.get(node.type, self._generic)
        return handler(node)

    def _children(self, node: SyntaxNode | None) -> list[Node]:
        if node is None:
            return []
        return [
            self._convert(child) for child in node.named_children if child.type not in _COMMENTS
        ]

    def _generic(self, node: SyntaxNode) -> Node:
        return Opaque(kind=node.type, children=self._children(node), span=span_of(node))

    def _scoped(self, node: SyntaxNode) -> Node:
        self._push_scope()
        try:
            return self._generic(node)
        finally:
            self._scopes.pop()

    def _without_label(self, node: SyntaxNode) -> Node:
        children = [
            self._convert(child)
            for child in node.named_children
            if child.type != "identifier" and child.type not in _COMMENTS
        ]
        return Opaque(kind=node.type, children=children, span=span_of(node))

    def _modifiers(self, node: SyntaxNode) -> list[Node]:
        for child in node.children:
            if child.type == "modifiers":
                return [
                    self._convert(modifier)
                    for modifier in child.named_children
                    if modifier.type in _ANNOTATIONS
                ]
        return []

    # Scopes

    def _push_scope(self, type_variables: set[str] | None = None) -> None:
        self._scopes.append(
            _Scope(depth=len(self._types), type_variables=type_variables or set())
        )

    def _declare(self, name_node: SyntaxNode, type_ref: TypeRef | None) -> SimpleName:
        name = node_text(name_node)
        if self._scopes:
            self._scopes[-1].variables[name] = type_ref
        return SimpleName(
            identifier=name,
            binding=VariableBinding(name=name),
            span=span_of(name_node),
        )

    def _lookup_variable(self, name: str) -> _Variable | None:
        """Resolve a simple expression name to a local or a field.

        Locals of a type's code shadow that type's fields, which in turn
        shadow locals of enclosing code.
        """
        depth = len(self._types)
        for scope in reversed(self._scopes):
            while depth > scope.depth:
                found = self._field_of(self._types[depth - 1], name)
                if found is not None:
                    return found
                depth -= 1
            if name in scope.variables:
                return _Variable(binding=VariableBinding(name=name), type=scope.variables[name])
        while depth > 0:
            found = self._field_of(self._types[depth - 1], name)
            if found is not None:
                return found
            depth -= 1

        owner = self._context.static_imports.get(name)
        if owner is not None:
            found = self._field_of(owner, name)
            if found is not None:
                return found
            if not self._universe.exists(owner):
                return _Variable(
                    binding=VariableBinding(
                        name=name, declaring_class=self._universe.binding(owner)
                    ),
                    type=None,
                )
        for owner in self._context.static_on_demand_imports:
            found = self._field_of(owner, name)
            if found is not None:
                return found
        return None

    def _field_of(self, owner: TypeRef, name: str) -> _Variable | None:
        found = self._universe.find_field(owner, name)
        if found is None:
            return None
        declaring, field_type = found
        return _Variable(
            binding=VariableBinding(name=name, declaring_class=self._universe.binding(declaring)),
            type=field_type,
        )

    def _is_type_variable(self, name: str) -> bool:
        return any(name in scope.type_variables for scope in self._scopes)

    @property
    def _enclosing(self) -> SourceType | None:
        return self._types[-1] if self._types else None

    # Type names

    def _resolve_type_name(self, name: str) -> TypeRef | None:
        if self._is_type_variable(name):
            return None
        return self._universe.resolve_simple_type(name, self._context, self._enclosing)

    def _resolve_written_type(self, node: SyntaxNode | None) -> TypeRef | None:
        if node is None or node.type in _PRIMITIVE_TYPES:
            return None
        written = erase_type(node_text(node))
        if not written or self._is_type_variable(written.split(".", 1)[0]):
            return None
        return self._universe.resolve_type(written, self._context, self._enclosing)

    def _type_binding(self, ref: TypeRef | None) -> Binding | None:
        return self._universe.binding(ref) if ref is not None else None

    def _bind_type_path(self, parts: list[str], last_is_type: bool = True) -> list[Binding | None]:
        """Bind every prefix of a dotted name used where a type or package is expected.

        Args:
            parts: Name segments.
            last_is_type: Whether an unknown final segment names a type.

        Returns:
            One binding per segment.
        """
        bindings: list[Binding | None] = []
        current = self._resolve_type_name(parts[0])
        if current is not None:
            bindings.append(self._universe.binding(current))
        elif len(parts) > 1 or self._universe.is_package(parts[0]):
            bindings.append(PackageBinding(name=parts[0]))
        else:
            bindings.append(None)

        dotted = parts[0]
        for position, part in enumerate(parts[1:], start=2):
            dotted = f"{dotted}.{part}"
            if current is not None:
                name = current.qualified_name if isinstance(current, SourceType) else current
                current = self._universe.member_type(current, part) or f"{name}.{part}"
            elif self._universe.exists(dotted) or (
                last_is_type and position == len(parts)
            ):
                current = dotted
            if current is not None:
                bindings.append(self._universe.binding(current))
            else:
                bindings.append(PackageBinding(name=dotted))
        return bindings

    def _scoped_name(self, node: SyntaxNode, bindings: list[Binding | None]) -> Name:
        if node.type in ("identifier", "type_identifier"):
            return SimpleName(identifier=node_text(node), binding=bindings[-1], span=span_of(node))
        parts = [
            child
            for child in node.named_children
            if child.type not in _ANNOTATIONS and child.type not in _COMMENTS
        ]
        qualifier = self._scoped_name(parts[0], bindings[:-1])
        last = parts[-1]
        return QualifiedName(
            qualifier=qualifier,
            name=SimpleName(identifier=node_text(last), binding=bindings[-1], span=span_of(last)),
            binding=bindings[-1],
            span=span_of(node),
        )

    @staticmethod
    def _is_plain_name(node: SyntaxNode) -> bool:
        if node.type in ("identifier", "type_identifier"):
            return True
        if node.type not in ("scoped_identifier", "scoped_type_identifier"):
            return False
        parts = [child for child in node.named_children if child.type not in _ANNOTATIONS]
        return len(parts) == 2 and all(UnitConverter._is_plain_name(part) for part in parts)

    def _type_identifier(self, node: SyntaxNode) -> Node:
        name = node_text(node)
        return SimpleName(
            identifier=name,
            binding=self._type_binding(self._resolve_type_name(name)),
            span=span_of(node),
        )

    def _scoped_type_identifier(self, node: SyntaxNode) -> Node:
        if not self._is_plain_name(node):
            return self._generic(node)
        parts = erase_type(node_text(node)).split(".")
        return self._scoped_name(node, self._bind_type_path(parts))

    def _scoped_identifier(self, node: SyntaxNode) -> Node:
        if not self._is_plain_name(node):
            return self._generic(node)
        parts = erase_type(node_text(node)).split(".")
        return self._scoped_name(node, self._bind_type_path(parts, last_is_type=False))

    def _type_parameter(self, node: SyntaxNode) -> Node:
        children: list[Node] = []
        for child in node.named_children:
            if child.type in ("identifier", "type_identifier") and not children:
                children.append(SimpleName(identifier=node_text(child), span=span_of(child)))
            elif child.type not in _COMMENTS:
                children.append(self._convert(child))
        return Opaque(kind=node.type, children=children, span=span_of(node))

    # Unit header

    def _package(self, node: SyntaxNode) -> PackageDeclaration:
        annotations: list[Node] = []
        name: Name | None = None
        for child in node.named_children:
            if child.type in _ANNOTATIONS:
                annotations.append(self._convert(child))
            elif child.type in ("identifier", "scoped_identifier"):
                parts = node_text(child).split(".")
                bindings: list[Binding | None] = [
                    PackageBinding(name=".".join(parts[:end])) for end in range(1, len(parts) + 1)
                ]
                name = self._scoped_name(child, bindings)
        if name is None:
            name = SimpleName(identifier="", span=span_of(node))
        return PackageDeclaration(name=name, annotations=annotations, span=span_of(node))

    def _import(self, node: SyntaxNode) -> ImportDeclaration:
        is_static = any(child.type == "static" for child in node.children)
        on_demand = any(child.type == "asterisk" for child in node.children)
        name: Name | None = None
        for child in node.named_children:
            if child.type in ("identifier", "scoped_identifier"):
                parts = node_text(child).split(".")
                bindings = self._bind_type_path(parts, last_is_type=not on_demand)
                if is_static and not on_demand and len(parts) > 1:
                    bindings[-1] = self._static_member_binding(".".join(parts[:-1]), parts[-1])
                name = self._scoped_name(child, bindings)
        if name is None:
            name = SimpleName(identifier="", span=span_of(node))
        return ImportDeclaration(
            name=name, is_static=is_static, on_demand=on_demand, span=span_of(node)
        )

    def _static_member_binding(self, owner: str, member: str) -> Binding | None:
        found = self._universe.find_field(owner, member)
        if found is not None:
            return VariableBinding(name=member, declaring_class=self._universe.binding(found[0]))
        found = self._universe.find_method(owner, member)
        if found is not None:
            return MethodBinding(name=member, declaring_class=self._universe.binding(found[0]))
        member_type = self._universe.member_type(owner, member)
        return self._type_binding(member_type)

    # Declarations

    def _type_declaration(self, node: SyntaxNode) -> Node:
        source_type = self._index.by_offset.get(node.start_byte)
        if source_type is None:
            source_type = index_local_type(node, self._index, self._enclosing)
        binding = self._universe.binding(source_type)
        modifiers = self._modifiers(node)
        name_node = node.child_by_field_name("name")

        self._types.append(source_type)
        self._push_scope(source_type.type_parameters)
        try:
            header = self._type_header(node)
            body = node.child_by_field_name("body")
            members = self._members(body) if body is not None else []
        finally:
            self._scopes.pop()
            self._types.pop()

        return TypeDeclaration(
            kind=TYPE_DECLARATION_KINDS[node.type],
            modifiers=modifiers,
            name=SimpleName(identifier=node_text(name_node), binding=binding, span=span_of(name_node)),
            header=header,
            members=members,
            binding=binding,
            span=span_of(node),
        )

    def _type_header(self, node: SyntaxNode) -> list[Node]:
        header: list[Node] = []
        type_parameters = node.child_by_field_name("type_parameters")
        if type_parameters is not None:
            header.append(self._convert(type_parameters))
        components = node.child_by_field_name("parameters")
        if components is not None:
            # Record components are fields inside the body, not locals.
            self._push_scope()
            try:
                header.append(self._convert(components))
            finally:
                self._scopes.pop()
        superclass, interfaces = supertype_nodes(node)
        if superclass is not None:
            header.append(self._convert(superclass))
        header.extend(self._convert(interface) for interface in interfaces)
        permits = node.child_by_field_name("permits")
        if permits is not None:
            header.append(self._convert(permits))
        return header

    def _members(self, body: SyntaxNode) -> list[Node]:
        members: list[Node] = []
        for child in body.named_children:
            if child.type in _COMMENTS:
                continue
            if child.type == "enum_body_declarations":
                members.extend(self._members(child))
            elif child.type == "enum_constant":
                members.append(self._enum_constant(child))
            elif child.type in ("field_declaration", "constant_declaration"):
                members.append(self._field_declaration(child))
            elif child.type in (
                "method_declaration",
                "constructor_declaration",
                "compact_constructor_declaration",
                "annotation_type_element_declaration",
            ):
                members.append(self._method_declaration(child))
            else:
                members.append(self._convert(child))
        return members

    def _class_body(self, body: SyntaxNode, source_type: SourceType) -> Node:
        self._types.append(source_type)
        try:
            members = self._members(body)
        finally:
            self._types.pop()
        return Opaque(kind=body.type, children=members, span=span_of(body))

    def _anonymous_body(self, body: SyntaxNode, instantiated: TypeRef | None) -> Node:
        source_type = index_anonymous_type(body, self._index, self._enclosing)
        if instantiated is None:
            source_type.resolved_supertypes = (None, [])
        elif self._universe.is_interface(instantiated):
            source_type.resolved_supertypes = ("java.lang.Object", [instantiated])
        else:
            source_type.resolved_supertypes = (instantiated, [])
        return self._class_body(body, source_type)

    def _enum_constant(self, node: SyntaxNode) -> Node:
        enum_type = self._types[-1]
        name_node = node.child_by_field_name("name")
        name = node_text(name_node)
        body = node.child_by_field_name("body")
        return EnumConstantDeclaration(
            modifiers=self._modifiers(node),
            name=SimpleName(
                identifier=name,
                binding=VariableBinding(
                    name=name, declaring_class=self._universe.binding(enum_type)
                ),
                span=span_of(name_node),
            ),
            arguments=self._children(node.child_by_field_name("arguments")),
            body=[self._anonymous_body(body, enum_type)] if body is not None else [],
            span=span_of(node),
        )

    def _field_declaration(self, node: SyntaxNode) -> Node:
        declaring = self._universe.binding(self._types[-1])
        fragments: list[VariableDeclarationFragment] = []
        for declarator in node.children_by_field_name("declarator"):
            name_node = declarator.child_by_field_name("name")
            value = declarator.child_by_field_name("value")
            name = node_text(name_node)
            fragments.append(
                VariableDeclarationFragment(
                    name=SimpleName(
                        identifier=name,
                        binding=VariableBinding(name=name, declaring_class=declaring),
                        span=span_of(name_node),
                    ),
                    initializer=self._convert(value) if value is not None else None,
                    span=span_of(declarator),
                )
            )
        return FieldDeclaration(
            modifiers=self._modifiers(node),
            type=self._convert(node.child_by_field_name("type")),
            fragments=fragments,
            span=span_of(node),
        )

    def _method_declaration(self, node: SyntaxNode) -> Node:
        declaring = self._universe.binding(self._types[-1])
        type_parameters = node.child_by_field_name("type_parameters")
        name_node = node.child_by_field_name("name")
        name = node_text(name_node)

        self._push_scope(type_parameter_names(type_parameters))
        try:
            return_type = node.child_by_field_name("type")
            body = node.child_by_field_name("body")
            default = node.child_by_field_name("value")
            thrown: list[Node] = []
            for child in node.named_children:
                if child.type == "throws":
                    thrown.extend(self._children(child))
            return MethodDeclaration(
                modifiers=self._modifiers(node),
                type_parameters=self._children(type_parameters),
                return_type=self._convert(return_type) if return_type is not None else None,
                name=SimpleName(
                    identifier=name,
                    binding=MethodBinding(name=name, declaring_class=declaring),
                    span=span_of(name_node),
                ),
                parameters=self._children(node.child_by_field_name("parameters")),
                thrown=thrown,
                body=self._method_body(body, default),
                span=span_of(node),
            )
        finally:
            self._scopes.pop()

    def _method_body(self, body: SyntaxNode | None, default: SyntaxNode | None) -> Node | None:
        if body is not None:
            return self._convert(body)
        if default is not None:
            return Opaque(kind="default_value", children=[self._convert(default)], span=span_of(default))
        return None

    # Variables

    def _local_variable_declaration(self, node: SyntaxNode) -> Node:
        type_node = node.child_by_field_name("type")
        declared = self._resolve_written_type(type_node)
        inferred = node_text(type_node) == "var"
        children: list[Node] = [*self._modifiers(node), self._convert(type_node)]
        for declarator in node.children_by_field_name("declarator"):
            value = declarator.child_by_field_name("value")
            initializer = self._convert(value) if value is not None else None
            variable_type = declared
            if inferred and value is not None:
                variable_type = self._expression_type(value)
            children.append(
                VariableDeclarationFragment(
                    name=self._declare(declarator.child_by_field_name("name"), variable_type),
                    initializer=initializer,
                    span=span_of(declarator),
                )
            )
        return Opaque(kind=node.type, children=children, span=span_of(node))

    def _formal_parameter(self, node: SyntaxNode) -> Node:
        type_node = node.child_by_field_name("type")
        children = self._modifiers(node)
        if type_node is not None:
            children.append(self._convert(type_node))
        name_node = node.child_by_field_name("name")
        if name_node is not None:
            children.append(self._declare(name_node, self._resolve_written_type(type_node)))
        return Opaque(kind=node.type, children=children, span=span_of(node))

    def _spread_parameter(self, node: SyntaxNode) -> Node:
        children = self._modifiers(node)
        declared: TypeRef | None = None
        for child in node.named_children:
            if child.type == "variable_declarator":
                name_node = child.child_by_field_name("name")
                children.append(self._declare(name_node, declared))
            elif child.type in _TYPE_NODES:
                declared = self._resolve_written_type(child)
                children.append(self._convert(child))
        return Opaque(kind=node.type, children=children, span=span_of(node))

    def _catch_formal_parameter(self, node: SyntaxNode) -> Node:
        children = self._modifiers(node)
        declared: TypeRef | None = None
        for child in node.named_children:
            if child.type == "catch_type":
                types = [part for part in child.named_children if part.type not in _COMMENTS]
                if types:
                    declared = self._resolve_written_type(types[0])
                children.append(self._convert(child))
        name_node = node.child_by_field_name("name")
        if name_node is not None:
            children.append(self._declare(name_node, declared))
        return Opaque(kind=node.type, children=children, span=span_of(node))

    def _resource(self, node: SyntaxNode) -> Node:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return self._generic(node)
        type_node = node.child_by_field_name("type")
        value = node.child_by_field_name("value")
        children = self._modifiers(node)
        if type_node is not None:
            children.append(self._convert(type_node))
        converted_value = self._convert(value) if value is not None else None
        children.append(self._declare(name_node, self._resolve_written_type(type_node)))
        if converted_value is not None:
            children.append(converted_value)
        return Opaque(kind=node.type, children=children, span=span_of(node))

    def _lambda(self, node: SyntaxNode) -> Node:
        self._push_scope()
        try:
            children: list[Node] = []
            parameters = node.child_by_field_name("parameters")
            if parameters is not None and parameters.type == "identifier":
                children.append(self._declare(parameters, None))
            elif parameters is not None and parameters.type == "inferred_parameters":
                names = [
                    self._declare(child, None)
                    for child in parameters.named_children
                    if child.type == "identifier"
                ]
                children.append(
                    Opaque(kind=parameters.type, children=names, span=span_of(parameters))
                )
            elif parameters is not None:
                children.append(self._convert(parameters))
            body = node.child_by_field_name("body")
            if body is not None:
                children.append(self._convert(body))
            return Opaque(kind=node.type, children=children, span=span_of(node))
        finally:
            self._scopes.pop()

    def _enhanced_for(self, node: SyntaxNode) -> Node:
        type_node = node.child_by_field_name("type")
        value = node.child_by_field_name("value")
        self._push_scope()
        try:
            children = self._modifiers(node)
            converted_value = self._convert(value)
            children.append(self._convert(type_node))
            children.append(
                self._declare(
                    node.child_by_field_name("name"), self._resolve_written_type(type_node)
                )
            )
            children.append(converted_value)
            children.append(self._convert(node.child_by_field_name("body")))
            return Opaque(kind=node.type, children=children, span=span_of(node))
        finally:
            self._scopes.pop()

    def _instanceof(self, node: SyntaxNode) -> Node:
        right = node.child_by_field_name("right")
        name_node = node.child_by_field_name("name")
        children: list[Node] = []
        for child in node.named_children:
            if child.type in _COMMENTS:
                continue
            if name_node is not None and _same(child, name_node):
                children.append(self._declare(child, self._resolve_written_type(right)))
            else:
                children.append(self._convert(child))
        return Opaque(kind=node.type, children=children, span=span_of(node))

    def _pattern_variable(self, node: SyntaxNode) -> Node:
        children: list[Node] = []
        declared: TypeRef | None = None
        for child in node.named_children:
            if child.type == "identifier":
                children.append(self._declare(child, declared))
            elif child.type not in _COMMENTS:
                if child.type in _TYPE_NODES:
                    declared = self._resolve_written_type(child)
                children.append(self._convert(child))
        return Opaque(kind=node.type, children=children, span=span_of(node))

    # Switch

    def _switch(self, node: SyntaxNode) -> Node:
        condition = node.child_by_field_name("condition")
        self._switch_types.append(
            self._expression_type(condition) if condition is not None else None
        )
        try:
            return self._generic(node)
        finally:
            self._switch_types.pop()

    def _switch_label(self, node: SyntaxNode) -> Node:
        selector = self._switch_types[-1] if self._switch_types else None
        expressions: list[Node] = []
        for child in node.named_children:
            if child.type in _COMMENTS:
                continue
            if child.type == "identifier" and selector is not None:
                # Enum constants are written unqualified in case labels.
                constant = self._field_of(selector, node_text(child))
                if constant is not None:
                    expressions.append(
                        SimpleName(
                            identifier=node_text(child),
                            binding=constant.binding,
                            span=span_of(child),
                        )
                    )
                    continue
            expressions.append(self._convert(child))
        return SwitchCase(expressions=expressions, span=span_of(node))

    # Annotations and literals

    def _annotation(self, node: SyntaxNode) -> Node:
        name_node = node.child_by_field_name("name")
        resolved = self._resolve_written_type(name_node)
        binding = self._universe.binding(resolved) if resolved is not None else None
        if name_node.type == "identifier":
            type_name: Name = SimpleName(
                identifier=node_text(name_node), binding=binding, span=span_of(name_node)
            )
        else:
            type_name = self._scoped_name(
                name_node, self._bind_type_path(node_text(name_node).split("."))
            )

        if node.type == "marker_annotation":
            return MarkerAnnotation(type_name=type_name, binding=binding, span=span_of(node))

        arguments = [
            child
            for child in node.child_by_field_name("arguments").named_children
            if child.type not in _COMMENTS
        ]
        if arguments and arguments[0].type != "element_value_pair":
            return SingleMemberAnnotation(
                type_name=type_name,
                value=self._convert(arguments[0]),
                binding=binding,
                span=span_of(node),
            )
        values: list[MemberValuePair] = []
        for pair in arguments:
            key = pair.child_by_field_name("key")
            value = pair.child_by_field_name("value")
            values.append(
                MemberValuePair(
                    name=SimpleName(
                        identifier=node_text(key),
                        binding=MethodBinding(name=node_text(key), declaring_class=binding),
                        span=span_of(key),
                    ),
                    value=self._convert(value),
                    span=span_of(pair),
                )
            )
        return NormalAnnotation(
            type_name=type_name, values=values, binding=binding, span=span_of(node)
        )

    def _array_initializer(self, node: SyntaxNode) -> Node:
        return ArrayInitializer(expressions=self._children(node), span=span_of(node))

    def _string_literal(self, node: SyntaxNode) -> Node:
        return StringLiteral(
            literal_value=unescape_java_string(node_text(node)), span=span_of(node)
        )

    def _class_literal(self, node: SyntaxNode) -> Node:
        type_node = next(child for child in node.named_children if child.type not in _COMMENTS)
        resolved = self._resolve_written_type(type_node)
        return TypeLiteral(
            type=self._convert(type_node),
            binding=self._universe.binding(resolved) if resolved is not None else None,
            span=span_of(node),
        )

    # Expressions

    def _identifier(self, node: SyntaxNode) -> Node:
        name = node_text(node)
        return SimpleName(
            identifier=name, binding=self._expression_name_binding(name), span=span_of(node)
        )

    def _expression_name_binding(self, name: str) -> Binding | None:
        variable = self._lookup_variable(name)
        if variable is not None:
            return variable.binding
        resolved = self._resolve_type_name(name)
        if resolved is not None:
            return self._universe.binding(resolved)
        if self._universe.is_package(name):
            return PackageBinding(name=name)
        return None

    def _name_chain(self, node: SyntaxNode) -> list[SyntaxNode] | None:
        """Return the identifiers of a dotted expression name such as ``a.b.c``."""
        if node.type == "identifier":
            return [node]
        if node.type != "field_access":
            return None
        if any(child.type == "super" for child in node.children):
            return None
        target = node.child_by_field_name("field")
        receiver = node.child_by_field_name("object")
        if target is None or receiver is None or target.type != "identifier":
            return None
        prefix = self._name_chain(receiver)
        return None if prefix is None else [*prefix, target]

    def _resolve_name_chain(
        self, parts: list[str]
    ) -> list[tuple[Binding | None, TypeRef | None]]:
        """Bind each prefix of a dotted expression name.

        Variables are preferred over types and types over packages, following
        how the compiler reclassifies ambiguous names.

        Args:
            parts: Identifiers in source order.

        Returns:
            Binding and static type of every prefix.
        """
        first = parts[0]
        kind: str | None
        variable = self._lookup_variable(first)
        if variable is not None:
            binding: Binding | None = variable.binding
            current = variable.type
            kind = "value"
        else:
            current = self._resolve_type_name(first)
            if current is not None:
                binding = self._universe.binding(current)
                kind = "type"
            elif len(parts) > 1:
                binding = PackageBinding(name=first)
                kind = "package"
            else:
                binding = None
                kind = None
        resolved: list[tuple[Binding | None, TypeRef | None]] = [(binding, current)]

        dotted = first
        for part in parts[1:]:
            dotted = f"{dotted}.{part}"
            if kind == "package":
                if self._universe.exists(dotted):
                    current = dotted
                    binding = self._universe.binding(dotted)
                    kind = "type"
                else:
                    binding = PackageBinding(name=dotted)
            elif kind is not None and current is not None:
                found = self._field_of(current, part)
                member = self._universe.member_type(current, part) if kind == "type" else None
                if found is not None:
                    binding, current, kind = found.binding, found.type, "value"
                elif member is not None:
                    binding, current = self._universe.binding(member), member
                else:
                    binding = VariableBinding(
                        name=part, declaring_class=self._universe.binding(current)
                    )
                    current, kind = None, None
            else:
                binding, current, kind = None, None, None
            resolved.append((binding, current))
        return resolved

    def _expression_name(self, identifiers: list[SyntaxNode]) -> Name:
        bindings = self._resolve_name_chain([node_text(node) for node in identifiers])
        first = identifiers[0]
        name: Name = SimpleName(
            identifier=node_text(first), binding=bindings[0][0], span=span_of(first)
        )
        for identifier, (binding, _) in zip(identifiers[1:], bindings[1:]):
            name = QualifiedName(
                qualifier=name,
                name=SimpleName(
                    identifier=node_text(identifier), binding=binding, span=span_of(identifier)
                ),
                binding=binding,
                span=Span(
                    start=first.start_byte,
                    end=identifier.end_byte,
                    line=first.start_point[0] + 1,
                ),
            )
        return name

    def _field_access(self, node: SyntaxNode) -> Node:
        chain = self._name_chain(node)
        if chain is not None:
            return self._expression_name(chain)
        receiver = node.child_by_field_name("object")
        target = node.child_by_field_name("field")
        if target.type == "this":
            return Opaque(
                kind="qualified_this", children=[self._convert(receiver)], span=span_of(node)
            )
        owner = self._receiver_type(node)
        name = node_text(target)
        return FieldAccess(
            expression=self._convert(receiver),
            name=SimpleName(
                identifier=name, binding=self._field_binding(owner, name), span=span_of(target)
            ),
            span=span_of(node),
        )

    def _field_binding(self, owner: TypeRef | None, name: str) -> Binding | None:
        if owner is None:
            return None
        found = self._field_of(owner, name)
        if found is not None:
            return found.binding
        return VariableBinding(name=name, declaring_class=self._universe.binding(owner))

    def _method_binding(self, owner: TypeRef | None, name: str) -> MethodBinding | None:
        if owner is None:
            return None
        found = self._universe.find_method(owner, name)
        declaring = found[0] if found is not None else owner
        return MethodBinding(name=name, declaring_class=self._universe.binding(declaring))

    def _unqualified_method_binding(self, name: str) -> MethodBinding | None:
        for source_type in reversed(self._types):
            found = self._universe.find_method(source_type, name)
            if found is not None:
                return MethodBinding(
                    name=name, declaring_class=self._universe.binding(found[0])
                )
        owner = self._context.static_imports.get(name)
        if owner is not None:
            return self._method_binding(owner, name)
        for owner in self._context.static_on_demand_imports:
            if self._universe.find_method(owner, name) is not None:
                return self._method_binding(owner, name)
        # Unknown methods are attributed to the innermost type.
        return self._method_binding(self._enclosing, name)

    def _receiver_type(self, node: SyntaxNode) -> TypeRef | None:
        """Return the static type members of a field access or call are looked up on."""
        receiver = node.child_by_field_name("object")
        if receiver is None:
            return None
        if any(child.type == "super" for child in node.children if not _same(child, receiver)):
            # Outer.super.member
            qualifier = self._resolve_written_type(receiver)
            if qualifier is not None and self._universe.is_interface(qualifier):
                return qualifier
            return self._superclass(qualifier)
        return self._expression_type(receiver)

    def _superclass(self, ref: TypeRef | None) -> TypeRef | None:
        if ref is None:
            return None
        superclass, _ = self._universe.direct_supertypes(ref)
        return superclass

    def _method_invocation(self, node: SyntaxNode) -> Node:
        receiver = node.child_by_field_name("object")
        name_node = node.child_by_field_name("name")
        name = node_text(name_node)
        if receiver is None:
            binding = self._unqualified_method_binding(name)
        else:
            binding = self._method_binding(self._receiver_type(node), name)
        return MethodInvocation(
            expression=self._convert(receiver) if receiver is not None else None,
            name=SimpleName(identifier=name, binding=binding, span=span_of(name_node)),
            arguments=self._children(node.child_by_field_name("arguments")),
            type_arguments=self._children(node.child_by_field_name("type_arguments")),
            binding=binding,
            span=span_of(node),
        )

    def _method_reference(self, node: SyntaxNode) -> Node:
        parts = [child for child in node.named_children if child.type not in _COMMENTS]
        receiver = parts[0]
        if receiver.type in _TYPE_NODES:
            owner = self._resolve_written_type(receiver)
        elif receiver.type == "super":
            owner = self._superclass(self._enclosing)
        else:
            owner = self._expression_type(receiver)
        children = [self._convert(receiver)]
        for child in parts[1:]:
            if child.type == "identifier":
                name = node_text(child)
                children.append(
                    SimpleName(
                        identifier=name,
                        binding=self._method_binding(owner, name),
                        span=span_of(child),
                    )
                )
            else:
                children.append(self._convert(child))
        return Opaque(kind=node.type, children=children, span=span_of(node))

    def _object_creation(self, node: SyntaxNode) -> Node:
        instantiated = self._resolve_written_type(node.child_by_field_name("type"))
        children: list[Node] = []
        for child in node.named_children:
            if child.type in _COMMENTS:
                continue
            if child.type == "class_body":
                children.append(self._anonymous_body(child, instantiated))
            else:
                children.append(self._convert(child))
        return Opaque(kind=node.type, children=children, span=span_of(node))

    def _expression_type(self, node: SyntaxNode) -> TypeRef | None:
        """Infer the static type of an expression as far as members need it.

        Args:
            node: Expression node.

        Returns:
            Erased static type, or None when it cannot be inferred.
        """
        kind = node.type
        if kind == "identifier":
            name = node_text(node)
            variable = self._lookup_variable(name)
            if variable is not None:
                return variable.type
            return self._resolve_type_name(name)
        if kind == "this":
            return self._enclosing
        if kind == "super":
            return self._superclass(self._enclosing)
        if kind == "field_access":
            chain = self._name_chain(node)
            if chain is not None:
                return self._resolve_name_chain([node_text(part) for part in chain])[-1][1]
            target = node.child_by_field_name("field")
            if target.type == "this":
                return self._resolve_written_type(node.child_by_field_name("object"))
            owner = self._receiver_type(node)
            if owner is None:
                return None
            found = self._field_of(owner, node_text(target))
            return found.type if found is not None else None
        if kind == "method_invocation":
            name = node_text(node.child_by_field_name("name"))
            if node.child_by_field_name("object") is None:
                owners: list[TypeRef] = list(reversed(self._types))
            else:
                owner = self._receiver_type(node)
                owners = [owner] if owner is not None else []
            for owner in owners:
                found = self._universe.find_method(owner, name)
                if found is not None:
                    return found[1]
            return None
        if kind in ("object_creation_expression", "cast_expression"):
            return self._resolve_written_type(node.child_by_field_name("type"))
        if kind == "parenthesized_expression":
            inner = [child for child in node.named_children if child.type not in _COMMENTS]
            return self._expression_type(inner[0]) if inner else None
        if kind == "array_access":
            return self._expression_type(node.child_by_field_name("array"))
        if kind == "ternary_expression":
            return self._expression_type(node.child_by_field_name("consequence"))
        if kind == "string_literal":
            return "java.lang.String"
        return None


def _same(left: SyntaxNode, right: SyntaxNode) -> bool:
    return (
        left.start_byte == right.start_byte
        and left.end_byte == right.end_byte
        and left.type == right.type
    )
