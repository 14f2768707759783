"""Small readers over tree-sitter JS/TS nodes shared by both front ends."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from tree_sitter import Node

# Function literals that can be passed inline as a handler.
FUNCTION_LITERAL_TYPES = frozenset(
    {"arrow_function", "function_expression", "function", "generator_function"}
)

FUNCTION_DECLARATION_TYPES = frozenset(
    {"function_declaration", "generator_function_declaration"}
)

# Expression wrappers that do not change the value (TS casts, parens, await).
_WRAPPER_TYPES = frozenset(
    {
        "parenthesized_expression",
        "as_expression",
        "satisfies_expression",
        "non_null_expression",
        "type_assertion",
        "await_expression",
    }
)

# Marker for "this node is not a literal".
NOT_LITERAL = object()


def node_text(node: Optional[Node]) -> str:
    if node is None or not node.text:
        return ""
    return node.text.decode("utf-8", errors="replace")


def unwrap(node: Optional[Node]) -> Optional[Node]:
    while node is not None and node.type in _WRAPPER_TYPES:
        children = [c for c in node.named_children if c.type != "comment"]
        if not children:
            return None
        # <T>expr puts the type first; every other wrapper leads with the expression
        node = children[-1] if node.type == "type_assertion" else children[0]
    return node


def is_function_literal(node: Optional[Node]) -> bool:
    return node is not None and node.type in FUNCTION_LITERAL_TYPES


def call_arguments(call: Node) -> list[Node]:
    args = call.child_by_field_name("arguments")
    if args is None:
        return []
    return [c for c in args.named_children if c.type != "comment"]


def string_value(node: Optional[Node]) -> Optional[str]:
    """Value of a quoted string or a template string without substitutions."""
    if node is None:
        return None
    if node.type == "string":
        return "".join(
            node_text(c) for c in node.named_children if c.type in ("string_fragment", "escape_sequence")
        )
    if node.type == "template_string":
        if any(c.type == "template_substitution" for c in node.named_children):
            return None
        return "".join(
            node_text(c) for c in node.named_children if c.type in ("string_fragment", "escape_sequence")
        )
    return None


def literal_value(node: Optional[Node]) -> Any:
    """Python value of a JS literal, or ``NOT_LITERAL``."""
    node = unwrap(node)
    if node is None:
        return NOT_LITERAL
    s = string_value(node)
    if s is not None:
        return s
    if node.type == "number":
        text = node_text(node).replace("_", "")
        try:
            return int(text, 0)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return text
    if node.type == "true":
        return True
    if node.type == "false":
        return False
    if node.type in ("null", "undefined"):
        return None
    return NOT_LITERAL


def property_key(node: Node) -> Optional[str]:
    """Name of an object member (pair, method, shorthand). None if computed."""
    if node.type in ("shorthand_property_identifier", "shorthand_property_identifier_pattern"):
        return node_text(node)
    key = node.child_by_field_name("key") or node.child_by_field_name("name")
    if key is None:
        return None
    if key.type in ("property_identifier", "identifier", "private_property_identifier", "number"):
        return node_text(key)
    return string_value(key)


def object_member(obj: Node, name: str) -> Optional[Node]:
    """Value node of ``name`` inside an object literal (last one wins)."""
    found = None
    for child in obj.named_children:
        if child.type == "pair" and property_key(child) == name:
            found = child.child_by_field_name("value")
        elif child.type == "shorthand_property_identifier" and node_text(child) == name:
            found = child
        elif child.type == "method_definition" and property_key(child) == name:
            found = child
    return found


def require_specifier(node: Optional[Node]) -> Optional[str]:
    """Module specifier of ``require('x')``, else None."""
    node = unwrap(node)
    if node is None or node.type != "call_expression":
        return None
    callee = node.child_by_field_name("function")
    if callee is None or callee.type != "identifier" or node_text(callee) != "require":
        return None
    args = call_arguments(node)
    return string_value(args[0]) if args else None


def member_parts(node: Optional[Node]) -> Optional[tuple[Node, str]]:
    """(object node, property name) of a member expression, else None."""
    node = unwrap(node)
    if node is None or node.type != "member_expression":
        return None
    prop = node.child_by_field_name("property")
    obj = node.child_by_field_name("object")
    if prop is None or obj is None:
        return None
    return obj, node_text(prop)


def is_module_exports(node: Optional[Node]) -> bool:
    parts = member_parts(node)
    if parts is None:
        return False
    obj, prop = parts
    return prop == "exports" and obj.type == "identifier" and node_text(obj) == "module"
