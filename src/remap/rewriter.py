# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Reconcile in-place tree modifications into minimally changed source text."""

import logging
from dataclasses import dataclass

from remap.tree import (
    ArrayInitializer,
    CompilationUnit,
    MarkerAnnotation,
    MemberValuePair,
    Node,
    NormalAnnotation,
    QualifiedName,
    SimpleName,
    SingleMemberAnnotation,
    StringLiteral,
    TypeLiteral,
    iter_child_nodes,
)

logger = logging.getLogger(__name__)

_JAVA_ESCAPES: dict[str, str] = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\t": "\\t",
    "\r": "\\r",
    "\b": "\\b",
    "\f": "\\f",
}


class RewriteError(RuntimeError):
    """Represent a failure to turn tree modifications into text."""


@dataclass(frozen=True)
class TextEdit:
    """Replace a byte range of the original source.

    Args:
        start: Start byte offset (inclusive).
        end: End byte offset (exclusive).
        text: Replacement text.
    """

    start: int
    end: int
    text: str


class TreeRewriter:
    """Rewrite source text from a modified compilation unit."""

    def rewrite(self, source: str, unit: CompilationUnit) -> str:
        """Apply every recorded modification of ``unit`` to ``source``.

        Args:
            source: Original text the unit was parsed from.
            unit: Compilation unit with modified nodes.

        Returns:
            Source text where only modified nodes differ.

        Raises:
            RewriteError: If modifications cannot be located or overlap.
        """
        encoded = source.encode("utf-8")
        edits = collect_edits(unit, encoded)
        logger.debug("Applying text edits (unit=%s count=%d)", unit.name, len(edits))
        return apply_edits(encoded, edits).decode("utf-8")


def collect_edits(unit: CompilationUnit, source: bytes) -> list[TextEdit]:
    """Collect one text edit per outermost modified node.

    Args:
        unit: Compilation unit with modified nodes.
        source: UTF-8 encoded original source.

    Returns:
        Text edits ordered by start offset.

    Raises:
        RewriteError: If a modified node has no source span.
    """
    edits: list[TextEdit] = []
    pending: list[Node] = [unit]
    while pending:
        node = pending.pop()
        if not node.modified:
            pending.extend(iter_child_nodes(node))
            continue
        if node.span is None:
            raise RewriteError(
                f"Modified {type(node).__name__} has no source location in {unit.name}"
            )
        edits.append(
            TextEdit(start=node.span.start, end=node.span.end, text=render(node, source))
        )
    return sorted(edits, key=lambda edit: edit.start)


def apply_edits(source: bytes, edits: list[TextEdit]) -> bytes:
    """Apply non-overlapping edits to source bytes.

    Args:
        source: Original bytes.
        edits: Edits sorted by start offset.

    Returns:
        Edited bytes.

    Raises:
        RewriteError: If two edits overlap or an edit is out of range.
    """
    chunks: list[bytes] = []
    cursor = 0
    for edit in edits:
        if edit.start < cursor or edit.end > len(source) or edit.start > edit.end:
            raise RewriteError(
                f"Invalid or overlapping edit at bytes {edit.start}-{edit.end}"
            )
        chunks.append(source[cursor : edit.start])
        chunks.append(edit.text.encode("utf-8"))
        cursor = edit.end
    chunks.append(source[cursor:])
    return b"".join(chunks)


def render(node: Node, source: bytes) -> str:
    """Render a node as source text.

    Unmodified nodes with a span keep their original text verbatim; modified
    or synthesized nodes are rendered from their fields.

    Args:
        node: Node to render.
        source: UTF-8 encoded original source.

    Returns:
        Source text of the node.

    Raises:
        RewriteError: If the node kind cannot be synthesized.
    """
    if not node.modified and node.span is not None:
        return source[node.span.start : node.span.end].decode("utf-8")
    if isinstance(node, SimpleName):
        return node.identifier
    if isinstance(node, QualifiedName):
        if node.qualifier is None:
            return render(node.name, source)
        return f"{render(node.qualifier, source)}.{render(node.name, source)}"
    if isinstance(node, StringLiteral):
        return quote_java_string(node.literal_value)
    if isinstance(node, MarkerAnnotation):
        return f"@{render(node.type_name, source)}"
    if isinstance(node, SingleMemberAnnotation):
        return f"@{render(node.type_name, source)}({render(node.value, source)})"
    if isinstance(node, NormalAnnotation):
        values = ", ".join(render(pair, source) for pair in node.values)
        return f"@{render(node.type_name, source)}({values})"
    if isinstance(node, MemberValuePair):
        return f"{render(node.name, source)} = {render(node.value, source)}"
    if isinstance(node, TypeLiteral):
        return f"{render(node.type, source)}.class"
    if isinstance(node, ArrayInitializer):
        elements = ", ".join(render(element, source) for element in node.expressions)
        return f"{{{elements}}}"
    raise RewriteError(f"Cannot render synthesized {type(node).__name__} node")


def quote_java_string(value: str) -> str:
    """Quote and escape a value as a Java string literal.

    Args:
        value: Unescaped literal value.

    Returns:
        Double-quoted Java literal.
    """
    parts: list[str] = []
    for char in value:
        escaped = _JAVA_ESCAPES.get(char)
        if escaped is not None:
            parts.append(escaped)
        elif ord(char) < 0x20 or ord(char) == 0x7F:
            parts.append(f"\\u{ord(char):04x}")
        else:
            parts.append(char)
    return '"' + "".join(parts) + '"'
