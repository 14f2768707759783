"""Syntax front ends: tree-sitter parsing plus one pre-order traversal contract.

Two front ends exist, one per language family:

  - ``SCRIPT``: JavaScript (``.js``, ``.mjs``, ``.cjs``, ``.jsx``)
  - ``TYPED``:  TypeScript (``.ts``, ``.mts``, ``.cts``, ``.tsx``)

Both expose ``parse(source) -> SyntaxTree`` and ``visit(tree, visitor)``.
Children are taken from tree-sitter's named child slots, so traversal never
wanders into parser metadata.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterator, Optional

import tree_sitter_javascript as tsjavascript
import tree_sitter_typescript as tstypescript
from tree_sitter import Language, Parser

from apiscout.errors import ParseError

if TYPE_CHECKING:
    from tree_sitter import Node

logger = logging.getLogger(__name__)

Visitor = Callable[["Node"], None]


@dataclass(frozen=True)
class SourceFile:
    path: Path
    text: str

    @classmethod
    def read(cls, path: Path) -> SourceFile:
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError("file is not valid UTF-8", path) from exc
        except OSError as exc:
            raise ParseError(f"cannot read file ({exc.strerror or exc})", path) from exc
        return cls(path=path.resolve(), text=text)


@dataclass(frozen=True)
class SyntaxTree:
    source: SourceFile
    root: Node
    front_end: FrontEnd

    @property
    def path(self) -> Path:
        return self.source.path

    def comments(self) -> list[Node]:
        return [n for n in iter_nodes(self.root) if n.type == "comment"]


class NodeVisitor:
    """Dispatches each visited node to ``visit_<node type>`` if defined.

    Instances are plain callables, so they can be handed to
    ``FrontEnd.visit`` like any other visitor function.
    """

    def __call__(self, node: Node) -> None:
        method = getattr(self, f"visit_{node.type}", None)
        if method is not None:
            method(node)


def iter_nodes(root: Node) -> Iterator[Node]:
    """Pre-order depth-first walk over named nodes, in source order."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.named_children))


def _first_error_line(root: Node) -> int:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node.start_point[0] + 1
        stack.extend(reversed([c for c in node.children if c.has_error or c.is_missing]))
    return root.start_point[0] + 1


# ---- Grammar loaders (cached per grammar name) ----

_GRAMMAR_LOADERS: dict[str, Callable[[], object]] = {
    "javascript": tsjavascript.language,
    "typescript": tstypescript.language_typescript,
    "tsx": tstypescript.language_tsx,
}

_LANG_CACHE: dict[str, Language] = {}


def _language(grammar: str) -> Language:
    if grammar not in _LANG_CACHE:
        _LANG_CACHE[grammar] = Language(_GRAMMAR_LOADERS[grammar]())
    return _LANG_CACHE[grammar]


@dataclass(frozen=True)
class FrontEnd:
    name: str
    grammars: dict[str, str]  # extension -> grammar name; first entry is the default

    @property
    def extensions(self) -> tuple[str, ...]:
        return tuple(self.grammars)

    @property
    def default_extension(self) -> str:
        return self.extensions[0]

    def parse(self, source: SourceFile) -> SyntaxTree:
        grammar = self.grammars.get(source.path.suffix, self.grammars[self.default_extension])
        parser = Parser(_language(grammar))
        tree = parser.parse(source.text.encode("utf-8"))
        logger.debug("parsed %s (%s)", source.path, grammar)
        if tree.root_node.has_error:
            line = _first_error_line(tree.root_node)
            raise ParseError(f"syntax error near line {line}", source.path)
        return SyntaxTree(source=source, root=tree.root_node, front_end=self)

    def visit(self, tree: SyntaxTree, visitor: Visitor) -> None:
        for node in iter_nodes(tree.root):
            visitor(node)


SCRIPT = FrontEnd(
    name="script",
    grammars={".js": "javascript", ".mjs": "javascript", ".cjs": "javascript", ".jsx": "javascript"},
)

TYPED = FrontEnd(
    name="typed",
    grammars={".ts": "typescript", ".mts": "typescript", ".cts": "typescript", ".tsx": "tsx"},
)

FRONT_ENDS: tuple[FrontEnd, ...] = (SCRIPT, TYPED)


def front_end_for(path: Path) -> Optional[FrontEnd]:
    for front_end in FRONT_ENDS:
        if path.suffix in front_end.grammars:
            return front_end
    return None


def supported_extensions() -> frozenset[str]:
    return frozenset(ext for fe in FRONT_ENDS for ext in fe.extensions)


def load_tree(path: Path) -> SyntaxTree:
    """Read and parse one file with the front end its extension selects."""
    front_end = front_end_for(path)
    if front_end is None:
        raise ParseError("unsupported file type", path)
    return front_end.parse(SourceFile.read(path))
