"""Handler resolution: locate the function body behind a route's handler argument.

Resolution order for an identifier:
  1. bindings declared in the current file (last one in traversal order wins)
  2. import / require edges, followed into the referenced module
  3. wholesale re-exports (``module.exports = require(...)``, ``export * from``)

Every (file, name) pair is visited at most once per resolution request,
so circular re-exports end as "unresolved" instead of looping.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional, Union

from apiscout.errors import ParseError
from apiscout.parsing.frontends import (
    FRONT_ENDS,
    SCRIPT,
    NodeVisitor,
    SyntaxTree,
    front_end_for,
    load_tree,
    supported_extensions,
)
from apiscout.parsing.syntax import (
    FUNCTION_DECLARATION_TYPES,
    call_arguments,
    is_function_literal,
    is_module_exports,
    member_parts,
    node_text,
    property_key,
    require_specifier,
    string_value,
    unwrap,
)

if TYPE_CHECKING:
    from tree_sitter import Node

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Handler references
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InlineFunction:
    node: Node


@dataclass(frozen=True)
class LocalIdentifier:
    name: str


@dataclass(frozen=True)
class ImportedIdentifier:
    name: str          # name exported by the module ("default" for default exports)
    module: Path
    local_name: str


@dataclass(frozen=True)
class MemberReference:
    object_name: str
    property_name: str


HandlerReference = Union[InlineFunction, LocalIdentifier, ImportedIdentifier, MemberReference]


@dataclass(frozen=True)
class HandlerDefinition:
    node: Node
    tree: SyntaxTree

    @property
    def path(self) -> Path:
        return self.tree.path

    @property
    def body(self) -> Node:
        return self.node.child_by_field_name("body") or self.node


def handler_reference(node: Optional[Node]) -> Optional[HandlerReference]:
    node = unwrap(node)
    if node is None:
        return None
    if is_function_literal(node) or node.type in FUNCTION_DECLARATION_TYPES or node.type == "method_definition":
        return InlineFunction(node)
    if node.type in ("identifier", "shorthand_property_identifier"):
        return LocalIdentifier(node_text(node))
    if node.type == "member_expression":
        parts = member_parts(node)
        if parts is None:
            return None
        obj, prop = parts
        if obj.type == "identifier":
            return MemberReference(node_text(obj), prop)
        return None
    if node.type == "call_expression":
        # ctrl.list.bind(ctrl)
        parts = member_parts(node.child_by_field_name("function"))
        if parts is not None and parts[1] == "bind":
            return handler_reference(parts[0])
        # asyncHandler(async (req, res) => {...}) / catchAsync(createUser)
        for arg in reversed(call_arguments(node)):
            arg = unwrap(arg)
            if arg is not None and (is_function_literal(arg) or arg.type in ("identifier", "member_expression")):
                return handler_reference(arg)
    return None


def handler_name(ref: Optional[HandlerReference]) -> Optional[str]:
    if isinstance(ref, LocalIdentifier):
        return ref.name
    if isinstance(ref, MemberReference):
        return f"{ref.object_name}.{ref.property_name}"
    if isinstance(ref, ImportedIdentifier):
        return ref.local_name
    if isinstance(ref, InlineFunction):
        return node_text(ref.node.child_by_field_name("name")) or None
    return None


# ---------------------------------------------------------------------------
# Per-file binding table
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Binding:
    function: Optional[Node] = None
    alias: Optional[str] = None


@dataclass(frozen=True)
class ImportEdge:
    specifier: str
    imported: str


@dataclass(frozen=True)
class ReExport:
    specifier: str
    names: Optional[tuple[tuple[str, str], ...]] = None  # (imported, exported); None = everything

    def target_for(self, name: str) -> Optional[str]:
        if self.names is None:
            return name
        for imported, exported in self.names:
            if exported == name:
                return imported
        return None


@dataclass
class BindingTable:
    local: dict[str, Binding] = field(default_factory=dict)
    imports: dict[str, ImportEdge] = field(default_factory=dict)
    namespaces: dict[str, str] = field(default_factory=dict)
    reexports: list[ReExport] = field(default_factory=list)
    methods: dict[str, Node] = field(default_factory=dict)


def _binding_for(value: Optional[Node]) -> Optional[Binding]:
    value = unwrap(value)
    if value is None:
        return None
    if is_function_literal(value) or value.type in FUNCTION_DECLARATION_TYPES:
        return Binding(function=value)
    if value.type == "identifier":
        return Binding(alias=node_text(value))
    if value.type == "call_expression":
        for arg in reversed(call_arguments(value)):
            arg = unwrap(arg)
            if is_function_literal(arg):
                return Binding(function=arg)
    return None


def _import_edge(value: Optional[Node]) -> Optional[ImportEdge]:
    """``require('./x')`` or ``require('./x').name`` as an import edge."""
    value = unwrap(value)
    spec = require_specifier(value)
    if spec is not None:
        return ImportEdge(spec, "default")
    parts = member_parts(value)
    if parts is not None:
        spec = require_specifier(parts[0])
        if spec is not None:
            return ImportEdge(spec, parts[1])
    return None


def _pattern_names(pattern: Node) -> list[tuple[str, str]]:
    """(property, local name) pairs bound by an object destructuring pattern."""
    out: list[tuple[str, str]] = []
    for child in pattern.named_children:
        if child.type == "shorthand_property_identifier_pattern":
            name = node_text(child)
            out.append((name, name))
        elif child.type == "object_assignment_pattern":
            left = child.child_by_field_name("left")
            if left is not None and left.type == "shorthand_property_identifier_pattern":
                name = node_text(left)
                out.append((name, name))
        elif child.type == "pair_pattern":
            key = property_key(child)
            value = child.child_by_field_name("value")
            if value is not None and value.type == "assignment_pattern":
                value = value.child_by_field_name("left")
            if key and value is not None and value.type == "identifier":
                out.append((key, node_text(value)))
    return out


def _export_specifiers(clause: Node) -> list[tuple[str, str]]:
    """(local or imported name, exported name) pairs of an export clause."""
    out: list[tuple[str, str]] = []
    for spec in clause.named_children:
        if spec.type != "export_specifier":
            continue
        name = node_text(spec.child_by_field_name("name"))
        alias = spec.child_by_field_name("alias")
        out.append((name, node_text(alias) if alias is not None else name))
    return out


class _BindingCollector(NodeVisitor):
    def __init__(self) -> None:
        self.table = BindingTable()

    def visit_function_declaration(self, node: Node) -> None:
        name = node.child_by_field_name("name")
        if name is not None:
            self.table.local[node_text(name)] = Binding(function=node)

    visit_generator_function_declaration = visit_function_declaration

    def visit_method_definition(self, node: Node) -> None:
        parent = node.parent
        if parent is not None and parent.type == "class_body":
            name = property_key(node)
            if name:
                self.table.methods[name] = node

    def visit_variable_declarator(self, node: Node) -> None:
        target = node.child_by_field_name("name")
        value = unwrap(node.child_by_field_name("value"))
        if target is None or value is None:
            return

        if target.type == "object_pattern":
            spec = require_specifier(value)
            if spec is not None:
                for imported, local_name in _pattern_names(target):
                    self.table.imports.setdefault(local_name, ImportEdge(spec, imported))
            return
        if target.type != "identifier":
            return

        name = node_text(target)
        spec = require_specifier(value)
        if spec is not None:
            self.table.imports.setdefault(name, ImportEdge(spec, "default"))
            self.table.namespaces.setdefault(name, spec)
            return
        parts = member_parts(value)
        if parts is not None:
            # const create = require('./users').create
            spec = require_specifier(parts[0])
            if spec is not None:
                self.table.imports.setdefault(name, ImportEdge(spec, parts[1]))
            return
        binding = _binding_for(value)
        if binding is not None and binding.alias != name:
            self.table.local[name] = binding

    def visit_assignment_expression(self, node: Node) -> None:
        left = unwrap(node.child_by_field_name("left"))
        right = unwrap(node.child_by_field_name("right"))
        if right is None:
            return
        if is_module_exports(left):
            self._module_exports(right)
            return
        parts = member_parts(left)
        if parts is None:
            return
        obj, prop = parts
        if (obj.type == "identifier" and node_text(obj) == "exports") or is_module_exports(obj):
            edge = _import_edge(right)
            if edge is not None:
                # exports.create = require('./create')
                self.table.imports.setdefault(prop, edge)
                return
            binding = _binding_for(right)
            if binding is not None and binding.alias != prop:
                self.table.local[prop] = binding

    def visit_import_statement(self, node: Node) -> None:
        spec = string_value(node.child_by_field_name("source"))
        clause = next((c for c in node.named_children if c.type == "import_clause"), None)
        if spec is None or clause is None:
            return
        for child in clause.named_children:
            if child.type == "identifier":
                name = node_text(child)
                self.table.imports.setdefault(name, ImportEdge(spec, "default"))
                self.table.namespaces.setdefault(name, spec)
            elif child.type == "namespace_import":
                ident = next((c for c in child.named_children if c.type == "identifier"), None)
                if ident is not None:
                    self.table.namespaces.setdefault(node_text(ident), spec)
            elif child.type == "named_imports":
                for s in child.named_children:
                    if s.type != "import_specifier":
                        continue
                    imported = node_text(s.child_by_field_name("name"))
                    alias = s.child_by_field_name("alias")
                    local_name = node_text(alias) if alias is not None else imported
                    self.table.imports.setdefault(local_name, ImportEdge(spec, imported))

    def visit_export_statement(self, node: Node) -> None:
        source = string_value(node.child_by_field_name("source"))
        clause = next((c for c in node.named_children if c.type == "export_clause"), None)

        if source is not None:
            if clause is not None:
                self.table.reexports.append(ReExport(source, tuple(_export_specifiers(clause))))
            elif not any(c.type == "namespace_export" for c in node.named_children):
                self.table.reexports.append(ReExport(source))
            return

        if clause is not None:
            for local_name, exported in _export_specifiers(clause):
                if exported != local_name:
                    self.table.local[exported] = Binding(alias=local_name)
            return

        if not any(c.type == "default" for c in node.children):
            return
        target = node.child_by_field_name("declaration") or unwrap(node.child_by_field_name("value"))
        if target is None:
            return
        if target.type in FUNCTION_DECLARATION_TYPES:
            self.table.local["default"] = Binding(function=target)
        elif target.type == "object":
            self._export_object(target)
        else:
            binding = _binding_for(target)
            if binding is not None:
                self.table.local["default"] = binding

    def _module_exports(self, value: Node) -> None:
        spec = require_specifier(value)
        if spec is not None:
            self.table.reexports.append(ReExport(spec))
        elif value.type == "object":
            self._export_object(value)
        else:
            binding = _binding_for(value)
            if binding is not None:
                self.table.local["default"] = binding

    def _export_object(self, obj: Node) -> None:
        # shorthand members ({ create }) are already bound by their own declaration
        for member in obj.named_children:
            if member.type == "method_definition":
                name = property_key(member)
                if name:
                    self.table.local[name] = Binding(function=member)
            elif member.type == "pair":
                name = property_key(member)
                value = member.child_by_field_name("value")
                edge = _import_edge(value)
                if name and edge is not None:
                    # { create: require('./create') }
                    self.table.imports.setdefault(name, edge)
                    continue
                binding = _binding_for(value)
                if name and binding is not None and binding.alias != name:
                    self.table.local[name] = binding


def collect_bindings(tree: SyntaxTree) -> BindingTable:
    collector = _BindingCollector()
    tree.front_end.visit(tree, collector)
    return collector.table


def resolve_module_path(specifier: str, importer: Path) -> Optional[Path]:
    """Map an import specifier to a file on disk. Package imports return None."""
    if not specifier.startswith((".", "/")):
        return None
    base = importer.parent / specifier
    front_end = front_end_for(importer) or SCRIPT
    extensions = list(front_end.extensions)
    extensions += [ext for fe in FRONT_ENDS for ext in fe.extensions if ext not in extensions]

    # '.', '..' and './dir/' name a directory, never a sibling file
    names_directory = specifier in (".", "..") or specifier.endswith(("/", "/.", "/.."))

    candidates: list[Path] = []
    if base.suffix in supported_extensions() and not names_directory:
        candidates.append(base)
        # TS sources commonly import './x.js' meaning './x.ts'
        candidates.extend(base.with_suffix(ext) for ext in extensions)
    if not names_directory and base.name not in ("", ".", ".."):
        candidates.extend(base.with_name(base.name + ext) for ext in extensions)
    candidates.extend(base / f"index{ext}" for ext in extensions)

    for candidate in candidates:
        if candidate.is_file():
            return candidate.resolve()
    return None


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


@dataclass
class ResolutionContext:
    """State of one top-level resolution request."""

    tree: SyntaxTree
    visited: set[tuple[Path, str]] = field(default_factory=set)
    tables: dict[Path, BindingTable] = field(default_factory=dict)
    trees: dict[Path, SyntaxTree] = field(default_factory=dict)

    def enter(self, tree: SyntaxTree) -> ResolutionContext:
        return ResolutionContext(tree=tree, visited=self.visited, tables=self.tables, trees=self.trees)

    def bindings(self) -> BindingTable:
        table = self.tables.get(self.tree.path)
        if table is None:
            table = collect_bindings(self.tree)
            self.tables[self.tree.path] = table
        return table


class HandlerResolver:
    def __init__(self, loader: Callable[[Path], SyntaxTree] = load_tree) -> None:
        self._load = loader

    def resolve(self, ref: Optional[HandlerReference], tree: SyntaxTree) -> Optional[HandlerDefinition]:
        """Return the handler's function node and owning tree, or None if unresolved."""
        if ref is None:
            return None
        return self._resolve(ref, ResolutionContext(tree=tree))

    def _resolve(self, ref: HandlerReference, ctx: ResolutionContext) -> Optional[HandlerDefinition]:
        if isinstance(ref, InlineFunction):
            return HandlerDefinition(ref.node, ctx.tree)
        if isinstance(ref, LocalIdentifier):
            return self._resolve_name(ref.name, ctx)
        if isinstance(ref, ImportedIdentifier):
            return self._resolve_imported(ref, ctx)
        if isinstance(ref, MemberReference):
            return self._resolve_member(ref, ctx)
        return None

    def _resolve_name(self, name: str, ctx: ResolutionContext) -> Optional[HandlerDefinition]:
        key = (ctx.tree.path, name)
        if key in ctx.visited:
            logger.debug("resolution cycle: %s in %s", name, ctx.tree.path)
            return None
        ctx.visited.add(key)

        table = ctx.bindings()
        binding = table.local.get(name)
        if binding is not None:
            if binding.function is not None:
                return HandlerDefinition(binding.function, ctx.tree)
            if binding.alias is not None:
                return self._resolve_name(binding.alias, ctx)

        edge = table.imports.get(name)
        if edge is not None:
            module = resolve_module_path(edge.specifier, ctx.tree.path)
            if module is None:
                logger.debug("import of %s from %r not followed (%s)", name, edge.specifier, ctx.tree.path)
                return None
            return self._resolve_imported(ImportedIdentifier(edge.imported, module, name), ctx)

        for reexport in table.reexports:
            target = reexport.target_for(name)
            if target is None:
                continue
            module = resolve_module_path(reexport.specifier, ctx.tree.path)
            if module is None:
                continue
            found = self._resolve_imported(ImportedIdentifier(target, module, name), ctx)
            if found is not None:
                return found
        return None

    def _enter_module(self, module: Path, ctx: ResolutionContext) -> Optional[ResolutionContext]:
        tree = ctx.trees.get(module)
        if tree is None:
            try:
                tree = self._load(module)
            except ParseError as exc:
                logger.debug("cannot follow import into %s: %s", module, exc)
                return None
            ctx.trees[module] = tree
        return ctx.enter(tree)

    def _resolve_imported(self, ref: ImportedIdentifier, ctx: ResolutionContext) -> Optional[HandlerDefinition]:
        sub = self._enter_module(ref.module, ctx)
        if sub is None:
            return None
        found = self._resolve_name(ref.name, sub)
        if found is None and ref.name == "default" and ref.local_name != "default":
            # const createUser = require('./createUser') may still be a named export
            found = self._resolve_name(ref.local_name, sub)
        return found

    def _resolve_member(self, ref: MemberReference, ctx: ResolutionContext) -> Optional[HandlerDefinition]:
        table = ctx.bindings()
        spec = table.namespaces.get(ref.object_name)
        if spec is None:
            # instance of a class declared in this file
            method = table.methods.get(ref.property_name)
            return HandlerDefinition(method, ctx.tree) if method is not None else None

        module = resolve_module_path(spec, ctx.tree.path)
        if module is None:
            return None
        sub = self._enter_module(module, ctx)
        if sub is None:
            return None
        found = self._resolve_name(ref.property_name, sub)
        if found is None:
            method = sub.bindings().methods.get(ref.property_name)
            if method is not None:
                found = HandlerDefinition(method, sub.tree)
        return found
