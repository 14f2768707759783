"""Request metadata inference: headers, path parameters, body shape, description.

All of this is shape inference over syntax. Handler code is never evaluated.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Iterable, Optional

from apiscout.domain.models import KeyValue
from apiscout.extractors.jsdoc import is_doc_comment, parse_doc_comment
from apiscout.parsing.frontends import iter_nodes
from apiscout.parsing.syntax import (
    NOT_LITERAL,
    is_function_literal,
    literal_value,
    member_parts,
    node_text,
    property_key,
    unwrap,
)

if TYPE_CHECKING:
    from tree_sitter import Node

    from apiscout.extractors.resolver import HandlerDefinition

DEFAULT_HEADER = KeyValue(key="Content-Type", value="application/json")

# Path parameters carry no example values.
PARAM_PLACEHOLDER = ""

_PATH_PARAM = re.compile(r":([A-Za-z0-9_-]+)")

_MEMBER_TYPES = frozenset({"method_definition", "public_field_definition", "field_definition"})


def extract_headers(options: Optional[Node], extra: Iterable[KeyValue] = ()) -> list[KeyValue]:
    headers: list[KeyValue] = []
    if options is not None and options.type == "object":
        for member in options.named_children:
            if member.type != "pair":
                continue
            key = property_key(member)
            value = literal_value(member.child_by_field_name("value"))
            if key and isinstance(value, str):
                headers.append(KeyValue(key=key, value=value))
    headers.extend(extra)
    headers.append(DEFAULT_HEADER)
    return headers


def extract_query_params(path: str) -> list[KeyValue]:
    return [KeyValue(key=m.group(1), value=PARAM_PLACEHOLDER) for m in _PATH_PARAM.finditer(path or "")]


def placeholder_for(name: str) -> str:
    return f"value of {name}"


def shape_of(node: Optional[Node]) -> Any:
    """Field/value shape of an expression: objects recurse, literals stay."""
    node = unwrap(node)
    if node is None:
        return None
    if node.type == "object":
        shape: dict[str, Any] = {}
        for member in node.named_children:
            if member.type == "shorthand_property_identifier":
                name = node_text(member)
                shape[name] = placeholder_for(name)
            elif member.type == "pair":
                key = property_key(member)
                if key:
                    shape[key] = shape_of(member.child_by_field_name("value"))
        return shape
    if node.type == "identifier":
        return placeholder_for(node_text(node))
    value = literal_value(node)
    return None if value is NOT_LITERAL else value


def _is_body_source(node: Optional[Node]) -> bool:
    node = unwrap(node)
    if node is None:
        return False
    if node.type == "identifier":
        return node_text(node) == "body"
    parts = member_parts(node)
    return parts is not None and parts[1] == "body"


def _pattern_shape(pattern: Node) -> dict[str, Any]:
    shape: dict[str, Any] = {}
    for child in pattern.named_children:
        if child.type == "shorthand_property_identifier_pattern":
            shape[node_text(child)] = None
        elif child.type == "object_assignment_pattern":
            left = child.child_by_field_name("left")
            if left is not None:
                shape[node_text(left)] = None
        elif child.type == "pair_pattern":
            key = property_key(child)
            value = child.child_by_field_name("value")
            if not key:
                continue
            shape[key] = _pattern_shape(value) if value is not None and value.type == "object_pattern" else None
    return shape


def extract_body(definition: Optional[HandlerDefinition]) -> dict[str, Any]:
    """Infer the request body shape from a handler.

    ``x.body = { ... }`` replaces the shape found so far (last one wins);
    ``const { a, b } = req.body`` adds ``a`` and ``b`` with ``None`` values.
    """
    if definition is None:
        return {}
    body: dict[str, Any] = {}
    for node in iter_nodes(definition.body):
        if node.type == "assignment_expression":
            left = unwrap(node.child_by_field_name("left"))
            parts = member_parts(left)
            right = unwrap(node.child_by_field_name("right"))
            if parts is not None and parts[1] == "body" and right is not None and right.type == "object":
                body = shape_of(right)
        elif node.type == "variable_declarator":
            target = node.child_by_field_name("name")
            if target is not None and target.type == "object_pattern" and _is_body_source(
                node.child_by_field_name("value")
            ):
                body.update(_pattern_shape(target))
    return body


def _is_statement(node: Node) -> bool:
    if node.type == "pair":
        return is_function_literal(unwrap(node.child_by_field_name("value")))
    return node.type.endswith(("_statement", "_declaration")) or node.type in _MEMBER_TYPES


def _statement_between(root: Node, start: int, end: int) -> bool:
    """True if a whole statement or member definition lies inside ``[start, end)``.

    Function literals inside the range are not entered: their bodies belong
    to the expression that holds them.
    """
    stack = [root]
    while stack:
        node = stack.pop()
        if node.end_byte <= start or node.start_byte >= end:
            continue
        inside = node.start_byte >= start and node.end_byte <= end
        if inside and _is_statement(node):
            return True
        if not (inside and is_function_literal(node)):
            stack.extend(node.named_children)
    return False


def extract_description(definition: Optional[HandlerDefinition]) -> Optional[str]:
    """Text of the nearest doc comment that ends before the handler starts.

    A comment separated from the handler by a complete statement or class
    member documents that code instead, so the handler gets no description.
    """
    if definition is None:
        return None
    start = definition.node.start_byte
    nearest = None
    for comment in definition.tree.comments():
        if comment.end_byte > start or not is_doc_comment(node_text(comment)):
            continue
        if nearest is None or comment.end_byte > nearest.end_byte:
            nearest = comment
    if nearest is None or _statement_between(definition.tree.root, nearest.end_byte, start):
        return None
    return parse_doc_comment(node_text(nearest)).full_text() or None
