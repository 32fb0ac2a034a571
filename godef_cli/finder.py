"""Locate the syntax node a byte offset refers to."""

from __future__ import annotations

import logging
from typing import Any, Optional

from .errors import NodeNotFound
from .parser import SELECTOR_FIELDS, GoParser, NodeKind, ResolvedNode, SourceFile, classify
from .scope import _first_named

logger = logging.getLogger(__name__)


def _contains(node: Any, offset: int) -> bool:
    return node is not None and node.start_byte <= offset <= node.end_byte


def _embedded_name(field: Any) -> Any:
    """Type name node of an embedded struct field, or None.

    Only bare names qualify: ``T``, ``*T`` and ``T[A]``. Qualified names
    are ordinary selectors and are found by the traversal itself.
    """
    if field.child_by_field_name("name") is not None:
        return None
    node = field.child_by_field_name("type")
    if node is not None and node.type == "pointer_type":
        node = _first_named(node)
    if node is not None and node.type == "generic_type":
        node = node.child_by_field_name("type")
    if node is None or node.type != "type_identifier":
        return None
    return node


def _struct_match(struct: Any, file: SourceFile, offset: int, parser: GoParser) -> Optional[ResolvedNode]:
    for child in struct.named_children:
        if child.type != "field_declaration_list":
            continue
        for field in child.named_children:
            if field.type != "field_declaration":
                continue
            name = _embedded_name(field)
            if _contains(name, offset):
                logger.debug("Offset %d is on embedded field %s", offset, file.text(name))
                return parser.parse_expr(file.text(name), host=file)
    return None


def find_identifier(file: SourceFile, offset: int, parser: GoParser) -> ResolvedNode:
    """Return the first identifier, selector or import spec spanning *offset*.

    Pre-order depth-first traversal; the first match wins, so an enclosing
    selector is preferred over its own operand and field.

    Raises:
        NodeNotFound: when no resolvable node spans the offset.
    """
    stack = [file.root]
    while stack:
        node = stack.pop()
        kind = classify(node)
        if kind is NodeKind.IMPORT_SPEC and _contains(node, offset):
            return ResolvedNode(node, file, kind)
        if kind is NodeKind.IDENTIFIER and _contains(node, offset):
            return ResolvedNode(node, file, kind)
        if kind is NodeKind.SELECTOR:
            if _contains(node.child_by_field_name(SELECTOR_FIELDS[node.type]), offset):
                return ResolvedNode(node, file, kind)
        elif node.type == "struct_type" and _contains(node, offset):
            found = _struct_match(node, file, offset, parser)
            if found is not None:
                return found
        if _contains(node, offset):
            stack.extend(reversed(node.children))
    raise NodeNotFound("no identifier found")
