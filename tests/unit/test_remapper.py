# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Unit tests for the tree remapper on hand-built compilation units."""

import pytest

from remap import AccessorTargetError, Remapper, TreeRewriter, parse_mappings
from remap.remapper import (
    CLASS_ACCESSOR,
    CLASS_AT,
    CLASS_INJECT,
    CLASS_MIXIN,
    CLASS_REDIRECT,
    _MethodDeclarationScanner,
    derive_accessor_target,
)
from remap.tree import (
    ArrayInitializer,
    CompilationUnit,
    FieldAccess,
    ImportDeclaration,
    MarkerAnnotation,
    MemberValuePair,
    MethodBinding,
    MethodDeclaration,
    MethodInvocation,
    Node,
    NormalAnnotation,
    Opaque,
    QualifiedName,
    SimpleName,
    SingleMemberAnnotation,
    Span,
    StringLiteral,
    TypeBinding,
    TypeDeclaration,
    TypeLiteral,
    VariableBinding,
    name_from_dotted,
    walk,
)


def _method(*statements: Node, name: str = "run", annotations: tuple = ()) -> MethodDeclaration:
    return MethodDeclaration(
        modifiers=list(annotations),
        name=SimpleName(identifier=name),
        body=Opaque(kind="block", children=list(statements)),
    )


def _unit(
    *members: Node,
    binding: TypeBinding | None = None,
    annotations: tuple = (),
    imports: tuple = (),
) -> CompilationUnit:
    declaration = TypeDeclaration(
        kind="class",
        modifiers=list(annotations),
        name=SimpleName(identifier="Sample"),
        members=list(members),
        binding=binding if binding is not None else TypeBinding("pkg.Sample"),
    )
    return CompilationUnit(name="pkg/Sample.java", imports=list(imports), types=[declaration])


def _call(name: str, declaring: TypeBinding | None) -> MethodInvocation:
    return MethodInvocation(
        expression=None,
        name=SimpleName(identifier=name),
        binding=MethodBinding(name=name, declaring_class=declaring),
    )


def _mixin(target: TypeBinding) -> SingleMemberAnnotation:
    simple = target.qualified_name.rsplit(".", 1)[-1]
    return SingleMemberAnnotation(
        type_name=SimpleName(identifier="Mixin"),
        value=TypeLiteral(type=SimpleName(identifier=simple, binding=target), binding=target),
        binding=TypeBinding(CLASS_MIXIN),
    )


def _normal(annotation_class: str, **values: Node) -> NormalAnnotation:
    return NormalAnnotation(
        type_name=SimpleName(identifier=annotation_class.rsplit(".", 1)[-1]),
        values=[
            MemberValuePair(name=SimpleName(identifier=key), value=value)
            for key, value in values.items()
        ],
        binding=TypeBinding(annotation_class),
    )


def _accessor(value: str | None = None) -> MarkerAnnotation | SingleMemberAnnotation:
    if value is None:
        return MarkerAnnotation(
            type_name=SimpleName(identifier="Accessor"), binding=TypeBinding(CLASS_ACCESSOR)
        )
    return SingleMemberAnnotation(
        type_name=SimpleName(identifier="Accessor"),
        value=StringLiteral(literal_value=value),
        binding=TypeBinding(CLASS_ACCESSOR),
    )


def test_engine_301_method_rename_found_on_superclass() -> None:
    table = parse_mappings("a.Base tick() update()\n")
    child = TypeBinding("a.Child", superclass=TypeBinding("a.Base"))
    call = _call("tick", child)
    unit = _unit(_method(call))

    result = Remapper(table).remap_unit(unit)

    assert result.changed
    assert call.name.identifier == "update"
    assert call.name.modified


def test_engine_302_hierarchy_walk_is_breadth_first() -> None:
    table = parse_mappings(
        "a.Root tick() fromRoot()\n"
        "a.Iface tick() fromInterface()\n"
    )
    base = TypeBinding("a.Base", superclass=TypeBinding("a.Root"))
    child = TypeBinding("a.Child", superclass=base, interfaces=[TypeBinding("a.Iface")])
    call = _call("tick", child)

    Remapper(table).remap_unit(_unit(_method(call)))

    assert call.name.identifier == "fromInterface"


def test_engine_303_generic_arguments_are_ignored_for_lookup() -> None:
    table = parse_mappings("a.Box get() fetch()\n")
    call = _call("get", TypeBinding("a.Box<java.lang.String>"))

    Remapper(table).remap_unit(_unit(_method(call)))

    assert call.name.identifier == "fetch"


def test_engine_304_cyclic_hierarchy_terminates() -> None:
    table = parse_mappings("a.Other tick() update()\n")
    first = TypeBinding("a.First")
    second = TypeBinding("a.Second", superclass=first)
    first.superclass = second
    call = _call("tick", first)

    result = Remapper(table).remap_unit(_unit(_method(call)))

    assert not result.changed
    assert call.name.identifier == "tick"


def test_engine_305_nameless_declaring_class_is_skipped() -> None:
    table = parse_mappings("a.Base tick() update()\n")
    anonymous = TypeBinding("", superclass=TypeBinding("a.Base"))
    call = _call("tick", anonymous)

    result = Remapper(table).remap_unit(_unit(_method(call)))

    assert not result.changed
    assert call.name.identifier == "tick"


def test_engine_306_unqualified_renamed_field_is_rejected() -> None:
    table = parse_mappings("a.Entity health hp\n")
    entity = TypeBinding("a.Entity")
    reference = SimpleName(
        identifier="health",
        binding=VariableBinding(name="health", declaring_class=entity),
        span=Span(start=10, end=16, line=4),
    )
    unit = _unit(_method(Opaque(kind="expression_statement", children=[reference])))

    result = Remapper(table).remap_unit(unit)

    assert not result.changed
    assert reference.identifier == "health"
    assert len(result.failures) == 1
    failure = result.failures[0]
    assert failure.identifier == "health"
    assert failure.line == 4
    assert 'Use "this.health" instead.' in failure.describe()
    assert failure.describe().startswith("pkg/Sample.java:4: ")


def test_engine_307_qualified_field_access_is_renamed() -> None:
    table = parse_mappings("a.Entity health hp\n")
    entity = TypeBinding("a.Entity")
    access = FieldAccess(
        expression=Opaque(kind="this"),
        name=SimpleName(
            identifier="health", binding=VariableBinding("health", declaring_class=entity)
        ),
    )
    constant = QualifiedName(
        qualifier=SimpleName(identifier="Entity", binding=entity),
        name=SimpleName(
            identifier="health", binding=VariableBinding("health", declaring_class=entity)
        ),
    )

    result = Remapper(table).remap_unit(_unit(_method(access, constant)))

    assert result.changed
    assert result.failures == []
    assert access.name.identifier == "hp"
    assert constant.name.identifier == "hp"


def test_engine_308_local_variables_are_never_renamed() -> None:
    table = parse_mappings("a.Entity health hp\n")
    local = SimpleName(identifier="health", binding=VariableBinding("health"))

    result = Remapper(table).remap_unit(_unit(_method(local)))

    assert not result.changed
    assert result.failures == []


def test_engine_309_mixin_mapping_applies_to_mixin_members() -> None:
    table = parse_mappings("a.Entity health hp\na.Entity tick() update()\n")
    entity = TypeBinding("a.Entity")
    mixin_type = TypeBinding("pkg.EntityMixin")
    call = _call("tick", mixin_type)
    access = FieldAccess(
        expression=Opaque(kind="this"),
        name=SimpleName(
            identifier="health", binding=VariableBinding("health", declaring_class=mixin_type)
        ),
    )
    unit = _unit(_method(call, access), binding=mixin_type, annotations=(_mixin(entity),))

    result = Remapper(table).remap_unit(unit)

    assert result.changed
    assert call.name.identifier == "update"
    assert access.name.identifier == "hp"


def test_engine_310_mixin_mapping_is_not_inherited_by_subclasses() -> None:
    table = parse_mappings("a.Entity tick() update()\n")
    entity = TypeBinding("a.Entity")
    mixin_type = TypeBinding("pkg.EntityMixin")
    sub_type = TypeBinding("pkg.SubMixin", superclass=mixin_type)
    call = _call("tick", sub_type)
    unit = _unit(_method(call), binding=mixin_type, annotations=(_mixin(entity),))

    Remapper(table).remap_unit(unit)

    assert call.name.identifier == "tick"


def test_engine_311_accessor_marker_becomes_explicit_target() -> None:
    table = parse_mappings("a.Entity health hp\n")
    entity = TypeBinding("a.Entity")
    annotation = _accessor()
    method = MethodDeclaration(modifiers=[annotation], name=SimpleName(identifier="getHealth"))
    unit = _unit(method, binding=TypeBinding("pkg.EntityAccessor"), annotations=(_mixin(entity),))

    result = Remapper(table).remap_unit(unit)

    assert result.changed
    replacement = method.modifiers[0]
    assert isinstance(replacement, SingleMemberAnnotation)
    assert replacement.modified
    assert isinstance(replacement.value, StringLiteral)
    assert replacement.value.literal_value == "hp"
    assert replacement.qualified_type_name == CLASS_ACCESSOR


def test_engine_312_accessor_target_matching_method_name_becomes_marker() -> None:
    table = parse_mappings("a.Entity health hp\n")
    entity = TypeBinding("a.Entity")
    annotation = _accessor("health")
    annotation.span = Span(start=3, end=21, line=2)
    method = MethodDeclaration(modifiers=[annotation], name=SimpleName(identifier="getHp"))
    unit = _unit(method, binding=TypeBinding("pkg.EntityAccessor"), annotations=(_mixin(entity),))

    Remapper(table).remap_unit(unit)

    replacement = method.modifiers[0]
    assert isinstance(replacement, MarkerAnnotation)
    assert replacement.span == Span(start=3, end=21, line=2)


def test_engine_313_accessor_without_derivable_target_raises() -> None:
    table = parse_mappings("a.Entity health hp\n")
    entity = TypeBinding("a.Entity")
    method = MethodDeclaration(modifiers=[_accessor()], name=SimpleName(identifier="health"))
    unit = _unit(method, binding=TypeBinding("pkg.EntityAccessor"), annotations=(_mixin(entity),))

    with pytest.raises(AccessorTargetError):
        Remapper(table).remap_unit(unit)


def test_engine_314_accessor_for_unmapped_field_is_kept() -> None:
    table = parse_mappings("a.Entity health hp\n")
    entity = TypeBinding("a.Entity")
    annotation = _accessor()
    method = MethodDeclaration(modifiers=[annotation], name=SimpleName(identifier="isAlive"))
    unit = _unit(method, binding=TypeBinding("pkg.EntityAccessor"), annotations=(_mixin(entity),))

    result = Remapper(table).remap_unit(unit)

    assert not result.changed
    assert method.modifiers[0] is annotation


def test_engine_315_inject_and_redirect_method_values_are_renamed() -> None:
    table = parse_mappings("a.Entity tick() update()\na.Entity move() travel()\n")
    entity = TypeBinding("a.Entity")
    inject = _normal(CLASS_INJECT, method=StringLiteral(literal_value="tick"))
    redirect = _normal(CLASS_REDIRECT, method=StringLiteral(literal_value="move"))
    several = _normal(
        CLASS_INJECT,
        method=ArrayInitializer(expressions=[StringLiteral(literal_value="tick")]),
    )
    unit = _unit(
        _method(name="onTick", annotations=(inject,)),
        _method(name="onMove", annotations=(redirect,)),
        _method(name="onBoth", annotations=(several,)),
        binding=TypeBinding("pkg.EntityMixin"),
        annotations=(_mixin(entity),),
    )

    result = Remapper(table).remap_unit(unit)

    assert result.changed
    assert inject.values[0].value.literal_value == "update"
    assert redirect.values[0].value.literal_value == "travel"
    assert several.values[0].value.expressions[0].literal_value == "tick"


def test_engine_316_at_targets_are_remapped_in_mixin_units() -> None:
    table = parse_mappings(
        "old.Foo new.Foo\nold.Foo bar() baz()\nold.Baz new.Baz\nold.Qux new.Qux\n"
    )
    at = _normal(
        CLASS_AT,
        value=StringLiteral(literal_value="INVOKE"),
        target=StringLiteral(literal_value="Lold/Foo;bar(Lold/Baz;I)Lold/Qux;"),
    )
    inject = _normal(CLASS_INJECT, method=StringLiteral(literal_value="run"), at=at)
    unit = _unit(
        _method(name="onRun", annotations=(inject,)),
        binding=TypeBinding("pkg.OtherMixin"),
        annotations=(_mixin(TypeBinding("pkg.Unmapped")),),
    )

    result = Remapper(table).remap_unit(unit)

    assert result.changed
    assert at.values[0].value.literal_value == "INVOKE"
    assert at.values[1].value.literal_value == "Lnew/Foo;baz(Lnew/Baz;I)Lnew/Qux;"


def test_engine_317_at_targets_are_untouched_outside_mixins() -> None:
    table = parse_mappings("old.Foo new.Foo\n")
    at = _normal(CLASS_AT, target=StringLiteral(literal_value="Lold/Foo;run()V"))
    unit = _unit(_method(name="onRun", annotations=(at,)))

    result = Remapper(table).remap_unit(unit)

    assert not result.changed
    assert at.values[0].value.literal_value == "Lold/Foo;run()V"


def test_engine_318_imports_are_renamed_and_aliases_follow() -> None:
    table = parse_mappings("old.Foo new.Bar\n")
    import_declaration = ImportDeclaration(name=name_from_dotted("old.Foo"))
    unresolved = SimpleName(identifier="Foo")
    resolved = SimpleName(identifier="Foo", binding=TypeBinding("old.Foo"))
    unit = _unit(_method(unresolved, resolved), imports=(import_declaration,))

    result = Remapper(table).remap_unit(unit)

    assert result.changed
    assert import_declaration.name.full_name == "new.Bar"
    assert import_declaration.name.modified
    assert unresolved.identifier == "Bar"
    assert resolved.identifier == "Bar"


def test_engine_319_fully_qualified_type_reference_is_replaced() -> None:
    table = parse_mappings("old.Foo new.Bar\n")
    reference = name_from_dotted("old.Foo")

    Remapper(table).remap_unit(_unit(_method(reference)))

    assert isinstance(reference, QualifiedName)
    assert reference.full_name == "new.Bar"
    assert reference.modified


def test_engine_320_unmapped_unit_passes_through_untouched() -> None:
    table = parse_mappings("old.Foo new.Bar\nold.Foo tick() update()\n")
    unit = _unit(
        _method(
            _call("tick", TypeBinding("other.Thing")),
            SimpleName(identifier="value", binding=VariableBinding("value")),
            StringLiteral(literal_value="old.Foo"),
        ),
        imports=(ImportDeclaration(name=name_from_dotted("java.util.List")),),
    )

    result = Remapper(table).remap_unit(unit)

    assert not result.changed
    assert result.failures == []
    assert not any(node.modified for node in walk(unit))


def test_engine_321_second_run_changes_nothing() -> None:
    table = parse_mappings("old.Foo new.Bar\nold.Foo tick() update()\n")
    call = _call("tick", TypeBinding("old.Foo"))
    import_declaration = ImportDeclaration(name=name_from_dotted("old.Foo"))
    unit = _unit(_method(call), imports=(import_declaration,))
    remapper = Remapper(table)

    first = remapper.remap_unit(unit)
    # The rewritten source would bind to the new names.
    call.binding = MethodBinding(name="update", declaring_class=TypeBinding("new.Bar"))
    second = remapper.remap_unit(unit)

    assert first.changed
    assert not second.changed


def test_engine_322_generated_method_bodies_are_skipped() -> None:
    table = parse_mappings("a.Base tick() update()\n")
    call = _call("tick", TypeBinding("a.Base"))
    method = MethodDeclaration(
        modifiers=[],
        name=SimpleName(identifier="generated"),
        body=Opaque(kind="block", children=[call], span=Span(start=0, end=20)),
        span=Span(start=40, end=60),
    )

    result = Remapper(table).remap_unit(_unit(method))

    assert not result.changed
    assert call.name.identifier == "tick"


def test_engine_323_accessor_target_derivation() -> None:
    assert derive_accessor_target("getMaxHealth") == "maxHealth"
    assert derive_accessor_target("isAlive") == "alive"
    assert derive_accessor_target("setX") == "x"
    assert derive_accessor_target("get") is None
    assert derive_accessor_target("health") is None


def test_engine_324_qualified_type_moved_to_default_package_loses_its_qualifier() -> None:
    table = parse_mappings("p.q.Foo Foo\n")
    source = "class U { p.q.Foo f; }\n"
    written = name_from_dotted("p.q.Foo")
    written.span = Span(start=10, end=17, line=1)
    unit = _unit(_method(written))

    result = Remapper(table).remap_unit(unit)

    assert result.changed
    assert isinstance(written, QualifiedName)
    assert written.qualifier is None
    assert written.full_name == "Foo"
    assert TreeRewriter().rewrite(source, unit) == "class U { Foo f; }\n"


def test_engine_325_method_scanner_requires_a_method_rule() -> None:
    with pytest.raises(TypeError):
        _MethodDeclarationScanner()
