"""Route-registration recognizers for the supported framework families.

Recognized shapes:
  - member calls:  app.get('/x', handler)            (express, fastify)
  - full routes:   app.route({ method, url, handler })  (fastify)
  - decorators:    @Get(':id') on a class method       (nest)

Framework dispatch is decided once, when the recognizer is built.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from apiscout.domain.models import SUPPORTED_METHODS, KeyValue
from apiscout.parsing.syntax import (
    call_arguments,
    literal_value,
    node_text,
    object_member,
    string_value,
    unwrap,
)

if TYPE_CHECKING:
    from tree_sitter import Node


class Framework(enum.Enum):
    EXPRESS = ("express", frozenset({"get", "post", "put", "delete"}), False)
    FASTIFY = ("fastify", frozenset({"get", "post", "put", "delete", "route"}), False)
    NEST = ("nest", frozenset({"Get", "Post", "Put", "Delete"}), True)

    def __init__(self, tag: str, verbs: frozenset[str], decorators: bool) -> None:
        self.tag = tag
        self.verbs = verbs
        self.recognizes_decorator = decorators
        self.recognizes_member_call = not decorators

    @classmethod
    def from_tag(cls, tag: str) -> Framework:
        needle = tag.strip().lower()
        for fw in cls:
            if fw.tag == needle:
                return fw
        raise ValueError(f"unknown framework {tag!r} (expected one of: {', '.join(FRAMEWORK_TAGS)})")


FRAMEWORK_TAGS: tuple[str, ...] = tuple(fw.tag for fw in Framework)


@dataclass(frozen=True)
class CallSite:
    """A recognized route registration."""

    node: Node                      # call_expression or decorator
    receiver: str                   # "" for decorators
    verb: str                       # as written: get / route / Get
    method: str                     # GET / POST / PUT / DELETE
    path: str                       # "" when missing or not a literal
    options: Optional[Node]         # object literal holding header values
    handlers: tuple[Node, ...]      # handler arguments, middleware first
    extra_headers: tuple[KeyValue, ...] = ()

    @property
    def line(self) -> int:
        return self.node.start_point[0] + 1


def _route_methods(options: Optional[Node]) -> list[str]:
    """Supported verbs named by a fastify ``route({ method })`` option."""
    if options is None or options.type != "object":
        return []
    value = unwrap(object_member(options, "method"))
    if value is None:
        return []
    raw: list[str] = []
    if value.type == "array":
        for item in value.named_children:
            s = string_value(item)
            if s is not None:
                raw.append(s)
    else:
        s = string_value(value)
        if s is not None:
            raw.append(s)
    out: list[str] = []
    for m in raw:
        m = m.strip().upper()
        if m in SUPPORTED_METHODS and m not in out:
            out.append(m)
    return out


def _option_handlers(options: Optional[Node]) -> list[Node]:
    """Hooks then ``handler`` from a fastify route options object."""
    handlers: list[Node] = []
    if options is None or options.type != "object":
        return handlers
    for hook in ("preHandler", "onRequest"):
        value = unwrap(object_member(options, hook))
        if value is None:
            continue
        if value.type == "array":
            handlers.extend(c for c in value.named_children if c.type != "comment")
        else:
            handlers.append(value)
    handler = object_member(options, "handler")
    if handler is not None:
        handlers.append(handler)
    return handlers


def _decorated_method(decorator: Node) -> Optional[Node]:
    # JS grammar nests decorators inside method_definition; TS puts them before it
    parent = decorator.parent
    if parent is not None and parent.type == "method_definition":
        return parent
    sibling = decorator.next_named_sibling
    while sibling is not None and sibling.type in ("decorator", "comment"):
        sibling = sibling.next_named_sibling
    if sibling is not None and sibling.type == "method_definition":
        return sibling
    return None


def _method_decorators(method: Node) -> list[Node]:
    found = [c for c in method.named_children if c.type == "decorator"]
    before: list[Node] = []
    sibling = method.prev_named_sibling
    while sibling is not None and sibling.type in ("decorator", "comment"):
        if sibling.type == "decorator":
            before.append(sibling)
        sibling = sibling.prev_named_sibling
    return list(reversed(before)) + found


def _decorator_call(decorator: Node) -> Optional[tuple[str, list[Node]]]:
    call = next((c for c in decorator.named_children if c.type == "call_expression"), None)
    if call is None:
        return None
    callee = call.child_by_field_name("function")
    if callee is None or callee.type != "identifier":
        return None
    return node_text(callee), call_arguments(call)


class RouteRecognizer:
    """Decides whether a node registers a route for one framework + receiver."""

    def __init__(self, framework: Framework, receiver: str = "app") -> None:
        self.framework = framework
        self.receiver = receiver

    # ---- contract ----

    def is_route_call(self, node: Node) -> bool:
        if self.framework.recognizes_decorator:
            return self._decorator_verb(node) is not None
        verb = self._member_verb(node)
        if verb is None:
            return False
        if verb == "route":
            args = call_arguments(node)
            return bool(args) and bool(_route_methods(unwrap(args[0])))
        return True

    def extract_method(self, node: Node) -> str:
        if self.framework.recognizes_decorator:
            verb = self._decorator_verb(node)
            return verb.upper() if verb else ""
        verb = self._member_verb(node) or ""
        if verb == "route":
            args = call_arguments(node)
            methods = _route_methods(unwrap(args[0])) if args else []
            return methods[0] if methods else ""
        return verb.upper()

    def call_sites(self, node: Node) -> list[CallSite]:
        """All route registrations expressed by ``node`` (usually zero or one)."""
        if not self.is_route_call(node):
            return []
        if self.framework.recognizes_decorator:
            site = self._decorator_site(node)
            return [site] if site is not None else []
        verb = self._member_verb(node) or ""
        if verb == "route":
            return self._full_route_sites(node)
        return [self._member_site(node, verb)]

    # ---- shape readers ----

    def _member_verb(self, node: Node) -> Optional[str]:
        if node.type != "call_expression":
            return None
        callee = node.child_by_field_name("function")
        if callee is None or callee.type != "member_expression":
            return None
        obj = callee.child_by_field_name("object")
        prop = callee.child_by_field_name("property")
        if obj is None or prop is None or obj.type != "identifier":
            return None
        if node_text(obj) != self.receiver:
            return None
        verb = node_text(prop)
        return verb if verb in self.framework.verbs else None

    def _decorator_verb(self, node: Node) -> Optional[str]:
        if node.type != "decorator":
            return None
        parsed = _decorator_call(node)
        if parsed is None:
            return None
        name = parsed[0]
        return name if name in self.framework.verbs else None

    def _member_site(self, node: Node, verb: str) -> CallSite:
        args = call_arguments(node)
        path = string_value(args[0]) if args else None
        rest = args[1:]
        options = unwrap(rest[0]) if rest else None
        if options is not None and options.type == "object":
            rest = rest[1:]
        else:
            options = None
        handlers: list[Node] = []
        for arg in rest:
            arg = unwrap(arg)
            if arg is None:
                continue
            if arg.type == "array":
                handlers.extend(c for c in arg.named_children if c.type != "comment")
            else:
                handlers.append(arg)
        if not handlers and options is not None and self.framework is Framework.FASTIFY:
            # fastify.get('/x', { preHandler, handler })
            handlers = _option_handlers(options)
        return CallSite(
            node=node,
            receiver=self.receiver,
            verb=verb,
            method=verb.upper(),
            path=(path or "").strip(),
            options=options,
            handlers=tuple(handlers),
        )

    def _full_route_sites(self, node: Node) -> list[CallSite]:
        options = unwrap(call_arguments(node)[0])
        url = string_value(unwrap(object_member(options, "url")))
        if url is None:
            url = string_value(unwrap(object_member(options, "path")))
        handlers = _option_handlers(options)
        return [
            CallSite(
                node=node,
                receiver=self.receiver,
                verb="route",
                method=method,
                path=(url or "").strip(),
                options=None,
                handlers=tuple(handlers),
            )
            for method in _route_methods(options)
        ]

    def _decorator_site(self, node: Node) -> Optional[CallSite]:
        parsed = _decorator_call(node)
        if parsed is None:
            return None
        verb, args = parsed
        method_node = _decorated_method(node)
        path = string_value(args[0]) if args else None
        extra: list[KeyValue] = []
        if method_node is not None:
            for deco in _method_decorators(method_node):
                header = _decorator_call(deco)
                if header is None or header[0] != "Header" or len(header[1]) < 2:
                    continue
                key = literal_value(header[1][0])
                value = literal_value(header[1][1])
                if isinstance(key, str) and isinstance(value, str):
                    extra.append(KeyValue(key=key, value=value))
        return CallSite(
            node=node,
            receiver="",
            verb=verb,
            method=verb.upper(),
            path=(path or "").strip(),
            options=None,
            handlers=(method_node,) if method_node is not None else (),
            extra_headers=tuple(extra),
        )
