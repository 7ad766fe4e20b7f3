# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Remap JVM type descriptors and fully-qualified member signatures.

Object types are written ``L`` + slash separated class name + ``;`` and method
signatures as ``Lowner;name(args)return``, for example
``Lcom/example/Foo;bar(Lcom/example/Baz;I)V``.
"""

from remap.mapping import MappingEntry, MappingTable

_OBJECT_PREFIX = "L"
_OBJECT_SUFFIX = ";"


def remap_type(token: str, table: MappingTable) -> tuple[str, MappingEntry | None]:
    """Remap one internal type token.

    Args:
        token: Type token such as ``Lcom/example/Foo;`` or ``I``.
        table: Rename table.

    Returns:
        Remapped token and the matched entry, or the unchanged token and None.
    """
    if not (token.startswith(_OBJECT_PREFIX) and token.endswith(_OBJECT_SUFFIX)):
        return token, None
    class_name = token[1:-1].replace("/", ".")
    entry = table.get(class_name)
    if entry is None:
        return token, None
    return f"L{entry.target_name.replace('.', '/')};", entry


def remap_signature(signature: str, table: MappingTable) -> str:
    """Remap a fully-qualified member signature.

    The owner class, the member name (looked up in the owner's entry) and every
    object type in the argument list and return type are remapped. Strings that
    do not follow the method form are handled leniently: a ``name:type`` field
    target remaps its field name and type, and anything else only its owner.

    Args:
        signature: Signature text taken from an annotation literal.
        table: Rename table.

    Returns:
        Remapped signature, equal to the input when nothing is mapped.
    """
    owner, rest = _split_owner(signature)
    remapped_owner, entry = remap_type(owner, table) if owner else ("", None)

    args_begin = rest.find("(")
    args_end = rest.find(")", args_begin + 1) if args_begin != -1 else -1
    if args_begin == -1 or args_end == -1:
        return remapped_owner + _remap_field_target(rest, entry, table)

    method = rest[:args_begin]
    if entry is not None:
        method = entry.methods.get(method, method)
    args = _remap_type_sequence(rest[args_begin + 1 : args_end], table)
    return_type = _remap_type_sequence(rest[args_end + 1 :], table)
    return f"{remapped_owner}{method}({args}){return_type}"


def _split_owner(signature: str) -> tuple[str, str]:
    """Split the leading owner type from a signature.

    Args:
        signature: Full signature text.

    Returns:
        Owner token (empty when absent) and the remaining text.
    """
    if not signature.startswith(_OBJECT_PREFIX):
        return "", signature
    owner_end = signature.find(_OBJECT_SUFFIX)
    args_begin = signature.find("(")
    if owner_end == -1 or (args_begin != -1 and owner_end > args_begin):
        return "", signature
    return signature[: owner_end + 1], signature[owner_end + 1 :]


def _remap_field_target(
    rest: str, entry: MappingEntry | None, table: MappingTable
) -> str:
    name, separator, field_type = rest.partition(":")
    if not separator:
        return rest
    if entry is not None:
        name = entry.fields.get(name, name)
    return f"{name}:{_remap_type_sequence(field_type, table)}"


def _remap_type_sequence(types: str, table: MappingTable) -> str:
    """Remap a concatenation of type tokens.

    Args:
        types: Zero or more descriptor tokens, e.g. ``Lfoo/Bar;I[J``.
        table: Rename table.

    Returns:
        Sequence with every object token remapped.
    """
    parts: list[str] = []
    index = 0
    while index < len(types):
        char = types[index]
        if char != _OBJECT_PREFIX:
            parts.append(char)
            index += 1
            continue
        end = types.find(_OBJECT_SUFFIX, index)
        if end == -1:
            parts.append(types[index:])
            break
        remapped, _ = remap_type(types[index : end + 1], table)
        parts.append(remapped)
        index = end + 1
    return "".join(parts)
