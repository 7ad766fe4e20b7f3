# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Remap identifiers of resolved compilation units using a rename table."""

import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field

from remap.descriptor import remap_signature
from remap.mapping import MappingEntry, MappingTable
from remap.tree import (
    Annotation,
    ArrayInitializer,
    Binding,
    CompilationUnit,
    EnumConstantDeclaration,
    FieldAccess,
    ImportDeclaration,
    MarkerAnnotation,
    MethodBinding,
    MethodDeclaration,
    MethodInvocation,
    Node,
    NodeVisitor,
    NormalAnnotation,
    PackageBinding,
    QualifiedName,
    SimpleName,
    SingleMemberAnnotation,
    StringLiteral,
    SwitchCase,
    TypeBinding,
    TypeDeclaration,
    TypeLiteral,
    VariableBinding,
    VariableDeclarationFragment,
    iter_child_nodes,
    name_from_dotted,
)

logger = logging.getLogger(__name__)

CLASS_MIXIN = "org.spongepowered.asm.mixin.Mixin"
CLASS_ACCESSOR = "org.spongepowered.asm.mixin.gen.Accessor"
CLASS_AT = "org.spongepowered.asm.mixin.injection.At"
CLASS_INJECT = "org.spongepowered.asm.mixin.injection.Inject"
CLASS_REDIRECT = "org.spongepowered.asm.mixin.injection.Redirect"

_INJECTOR_CLASSES: frozenset[str] = frozenset({CLASS_INJECT, CLASS_REDIRECT})
_ACCESSOR_PREFIXES: tuple[str, ...] = ("is", "get", "set")

# Parents under which a renamed field reference cannot be captured by a local.
_QUALIFYING_PARENTS: tuple[type[Node], ...] = (
    FieldAccess,
    QualifiedName,
    VariableDeclarationFragment,
    EnumConstantDeclaration,
    SwitchCase,
)


class AccessorTargetError(RuntimeError):
    """Represent an accessor whose target field cannot be determined."""


@dataclass(frozen=True)
class ShadowedFieldReference:
    """Record an unqualified reference to a renamed field.

    Args:
        unit_name: Compilation unit containing the reference.
        identifier: Field name as written.
        line: 1-based source line, 0 when unknown.
    """

    unit_name: str
    identifier: str
    line: int

    def describe(self) -> str:
        location = f"{self.unit_name}:{self.line}" if self.line else self.unit_name
        return (
            f'{location}: Implicit member reference to remapped field "{self.identifier}". '
            "This can cause issues if the remapped reference becomes shadowed by a "
            "local variable and is therefore forbidden. "
            f'Use "this.{self.identifier}" instead.'
        )


@dataclass(frozen=True)
class UnitRemapResult:
    """Store the outcome of remapping one compilation unit.

    Args:
        changed: Whether any node was modified.
        failures: Rejected references that make the run fail.
    """

    changed: bool
    failures: list[ShadowedFieldReference] = field(default_factory=list)


def strip_generics(name: str) -> str:
    """Drop a generic argument suffix from a qualified type name."""
    index = name.find("<")
    return name[:index] if index != -1 else name


def derive_accessor_target(method_name: str) -> str | None:
    """Derive the implied field name of an accessor method.

    Args:
        method_name: Accessor method name, e.g. ``getMaxHealth``.

    Returns:
        Field name such as ``maxHealth``, or None without an accessor prefix.
    """
    for prefix in _ACCESSOR_PREFIXES:
        if method_name.startswith(prefix) and len(method_name) > len(prefix):
            rest = method_name[len(prefix) :]
            return rest[0].lower() + rest[1:]
    return None


class Remapper:
    """Apply a rename table to resolved compilation units."""

    def __init__(self, table: MappingTable) -> None:
        """Initialize remapper.

        Args:
            table: Read-only rename table shared by all units.
        """
        self._table = table

    def remap_unit(self, unit: CompilationUnit) -> UnitRemapResult:
        """Remap one compilation unit in place.

        Args:
            unit: Resolved compilation unit.

        Returns:
            Whether the unit changed and any rejected references.

        Raises:
            AccessorTargetError: If an accessor has no explicit or derivable
                target.
        """
        mixin_mappings: dict[str, MappingEntry] = {}
        changed = self._remap_mixins(unit, mixin_mappings)
        import_aliases: dict[str, str] = {}
        if self._remap_imports(unit, import_aliases):
            changed = True

        renamer = _NameRenamer(
            table=self._table,
            unit_name=unit.name,
            mixin_mappings=mixin_mappings,
            import_aliases=import_aliases,
        )
        renamer.visit(unit)
        if renamer.changed:
            changed = True

        for failure in renamer.failures:
            logger.error(failure.describe())
        return UnitRemapResult(changed=changed, failures=list(renamer.failures))

    def _remap_mixins(
        self, unit: CompilationUnit, mixin_mappings: dict[str, MappingEntry]
    ) -> bool:
        changed = False
        for declaration in unit.types:
            if declaration.binding is None:
                continue
            mixin = _find_annotation(declaration.annotations, CLASS_MIXIN)
            if mixin is None:
                continue

            if _AtTargetRemapper(self._table).remap(unit):
                changed = True

            target = _mixin_target(mixin)
            if target is None:
                continue
            entry = self._table.get(strip_generics(target.qualified_name))
            if entry is None:
                continue

            mixin_name = strip_generics(declaration.binding.qualified_name)
            mixin_mappings[mixin_name] = entry
            logger.debug(
                "Mixin maps to table entry (mixin=%s target=%s)",
                mixin_name,
                entry.original_name,
            )
            if entry.has_field_renames and _AccessorRemapper(entry).remap(unit):
                changed = True
            if entry.has_method_renames and _InjectorRemapper(entry).remap(unit):
                changed = True
        return changed

    def _remap_imports(
        self, unit: CompilationUnit, import_aliases: dict[str, str]
    ) -> bool:
        changed = False
        for declaration in unit.imports:
            name = declaration.name.full_name
            mapped = self._table.mapped_class_name(name)
            if mapped is None:
                continue
            declaration.set_name(mapped)
            changed = True
            simple_name = name.rsplit(".", 1)[-1]
            simple_mapped = mapped.rsplit(".", 1)[-1]
            if simple_name != simple_mapped:
                import_aliases[simple_name] = simple_mapped
        return changed


def _find_annotation(annotations: list[Annotation], qualified_name: str) -> Annotation | None:
    for annotation in annotations:
        if annotation.qualified_type_name == qualified_name:
            return annotation
    return None


def _mixin_target(annotation: Annotation) -> TypeBinding | None:
    """Return the first class-literal target of a mixin annotation.

    Args:
        annotation: ``@Mixin`` annotation node.

    Returns:
        Target type binding, or None for string or missing targets.
    """
    value = annotation.member_value("value")
    if isinstance(value, ArrayInitializer):
        value = value.expressions[0] if value.expressions else None
    if isinstance(value, TypeLiteral):
        return value.binding
    return None


class _MethodDeclarationScanner(NodeVisitor, ABC):
    """Visit method declarations without entering their bodies."""

    def __init__(self) -> None:
        self.changed = False

    def remap(self, unit: CompilationUnit) -> bool:
        self.visit(unit)
        return self.changed

    def visit_MethodDeclaration(self, node: MethodDeclaration) -> None:
        self.remap_method(node)

    @abstractmethod
    def remap_method(self, node: MethodDeclaration) -> None:
        """Remap one method declaration of a mixin class."""


class _AccessorRemapper(_MethodDeclarationScanner):
    """Rewrite ``@Accessor`` targets to mapped field names."""

    def __init__(self, entry: MappingEntry) -> None:
        super().__init__()
        self._entry = entry

    def remap_method(self, node: MethodDeclaration) -> None:
        annotation = _find_annotation(node.annotations, CLASS_ACCESSOR)
        if annotation is None:
            return

        target_by_name = derive_accessor_target(node.name.identifier)
        explicit = annotation.member_value("value")
        if explicit is not None and not isinstance(explicit, StringLiteral):
            return
        target = explicit.literal_value if explicit is not None else target_by_name
        if target is None:
            raise AccessorTargetError(
                f"Cannot determine accessor target for {node.name.identifier}"
            )

        mapped = self._entry.fields.get(target)
        if mapped is None or mapped == target:
            return

        type_name = name_from_dotted(annotation.type_name.full_name)
        replacement: Annotation
        if mapped == target_by_name:
            replacement = MarkerAnnotation(type_name=type_name, binding=annotation.binding)
        else:
            replacement = SingleMemberAnnotation(
                type_name=type_name,
                value=StringLiteral(literal_value=mapped, modified=True),
                binding=annotation.binding,
            )
        node.replace_modifier(annotation, replacement)
        self.changed = True


class _InjectorRemapper(_MethodDeclarationScanner):
    """Rewrite ``method`` literals of ``@Inject`` and ``@Redirect``."""

    def __init__(self, entry: MappingEntry) -> None:
        super().__init__()
        self._entry = entry

    def remap_method(self, node: MethodDeclaration) -> None:
        for annotation in node.annotations:
            if not isinstance(annotation, NormalAnnotation):
                continue
            if annotation.qualified_type_name not in _INJECTOR_CLASSES:
                continue
            for pair in annotation.values:
                if pair.name.identifier != "method":
                    continue
                # Array values select several targets and are not remapped.
                if not isinstance(pair.value, StringLiteral):
                    continue
                method = pair.value.literal_value
                mapped = self._entry.methods.get(method)
                if mapped is not None and mapped != method:
                    pair.value.set_literal_value(mapped)
                    self.changed = True
            return


class _AtTargetRemapper(NodeVisitor):
    """Rewrite descriptor ``target`` values of ``@At`` anywhere in a unit."""

    def __init__(self, table: MappingTable) -> None:
        self._table = table
        self.changed = False

    def remap(self, unit: CompilationUnit) -> bool:
        self.visit(unit)
        return self.changed

    def visit_NormalAnnotation(self, node: NormalAnnotation) -> None:
        if node.qualified_type_name != CLASS_AT:
            self.generic_visit(node)
            return
        for pair in node.values:
            if pair.name.identifier != "target":
                continue
            if not isinstance(pair.value, StringLiteral):
                continue
            signature = pair.value.literal_value
            remapped = remap_signature(signature, self._table)
            if remapped != signature:
                pair.value.set_literal_value(remapped)
                self.changed = True


class _NameRenamer(NodeVisitor):
    """Rename qualified names, simple names and method calls by binding."""

    def __init__(
        self,
        table: MappingTable,
        unit_name: str,
        mixin_mappings: dict[str, MappingEntry],
        import_aliases: dict[str, str],
    ) -> None:
        self._table = table
        self._unit_name = unit_name
        self._mixin_mappings = mixin_mappings
        self._import_aliases = import_aliases
        self._parents: list[Node] = []
        self.changed = False
        self.failures: list[ShadowedFieldReference] = []

    def generic_visit(self, node: Node) -> None:
        self._parents.append(node)
        try:
            for child in iter_child_nodes(node):
                self.visit(child)
        finally:
            self._parents.pop()

    def visit_ImportDeclaration(self, node: ImportDeclaration) -> None:
        return

    def visit_MethodDeclaration(self, node: MethodDeclaration) -> None:
        body = node.body
        if (
            body is not None
            and body.span is not None
            and node.span is not None
            and body.span.length == node.span.length
        ):
            # Body spanning the whole declaration: generated code.
            return
        self.generic_visit(node)

    def visit_QualifiedName(self, node: QualifiedName) -> None:
        name = node.full_name
        mapped = self._table.mapped_class_name(name)
        if mapped is not None:
            node.set_full_name(mapped)
            self.changed = True
            return
        self.generic_visit(node)

    def visit_SimpleName(self, node: SimpleName) -> None:
        self._rename(node.binding, node)

    def visit_MethodInvocation(self, node: MethodInvocation) -> None:
        binding = node.binding if node.binding is not None else node.name.binding
        self._parents.append(node)
        try:
            self._rename(binding, node.name)
            if node.expression is not None:
                self.visit(node.expression)
            for child in node.type_arguments:
                self.visit(child)
            for child in node.arguments:
                self.visit(child)
        finally:
            self._parents.pop()

    def _rename(self, binding: Binding | None, node: SimpleName) -> None:
        if binding is None:
            mapped = self._import_aliases.get(node.identifier)
        elif isinstance(binding, VariableBinding):
            mapped = self._mapped_field(binding, node)
        elif isinstance(binding, MethodBinding):
            mapped = self._mapped_method(binding.declaring_class, node.identifier)
        elif isinstance(binding, TypeBinding):
            mapped = self._mapped_type(binding)
        elif isinstance(binding, PackageBinding):
            mapped = None
        else:
            raise TypeError(f"Unsupported binding kind: {type(binding).__name__}")

        if mapped is not None and mapped != node.identifier:
            node.set_identifier(mapped)
            self.changed = True

    def _mapped_field(self, binding: VariableBinding, node: SimpleName) -> str | None:
        declaring_class = binding.declaring_class
        if declaring_class is None:
            return None
        name = strip_generics(declaring_class.qualified_name)
        if not name:
            return None
        entry = self._mixin_mappings.get(name) or self._table.get(name)
        if entry is None:
            return None
        mapped = entry.fields.get(node.identifier)
        if mapped is None:
            return None

        parent = self._parents[-1] if self._parents else None
        if not isinstance(parent, _QUALIFYING_PARENTS):
            self.failures.append(
                ShadowedFieldReference(
                    unit_name=self._unit_name,
                    identifier=node.identifier,
                    line=node.line,
                )
            )
            return None
        return mapped

    def _mapped_method(
        self, declaring_class: TypeBinding | None, identifier: str
    ) -> str | None:
        """Find a method rename on the declaring class or its ancestors.

        Local mixin mappings apply to the declaring class only; the global
        table is consulted for the declaring class and, breadth-first, for its
        superclasses and interfaces.

        Args:
            declaring_class: Class declaring the bound method.
            identifier: Method name as written.

        Returns:
            Mapped method name of the first match, or None.
        """
        if declaring_class is None:
            return None
        name = strip_generics(declaring_class.qualified_name)
        if not name:
            return None
        entry = self._mixin_mappings.get(name)
        if entry is not None and identifier in entry.methods:
            return entry.methods[identifier]

        queue: deque[TypeBinding] = deque([declaring_class])
        seen: set[int] = set()
        while queue:
            current = queue.popleft()
            if id(current) in seen:
                continue
            seen.add(id(current))
            name = strip_generics(current.qualified_name)
            if not name:
                continue
            entry = self._table.get(name)
            if entry is not None and identifier in entry.methods:
                return entry.methods[identifier]
            if current.superclass is not None:
                queue.append(current.superclass)
            queue.extend(current.interfaces)
        return None

    def _mapped_type(self, binding: TypeBinding) -> str | None:
        name = strip_generics(binding.qualified_name)
        if not name:
            return None
        entry = self._table.get(name)
        if entry is None:
            return None
        return entry.target_name.rsplit(".", 1)[-1]
