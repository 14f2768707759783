from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

# Tags whose first word after the type is a name, not description.
_NAMED_TAGS = frozenset(
    {"param", "arg", "argument", "property", "prop", "typedef", "callback", "member", "var"}
)

_TAG_START = re.compile(r"^@(\w+)\s*(.*)$")


@dataclass(frozen=True)
class DocTag:
    title: str
    type: Optional[str] = None
    name: Optional[str] = None
    description: str = ""


@dataclass(frozen=True)
class DocComment:
    description: str
    tags: tuple[DocTag, ...] = ()

    def full_text(self) -> str:
        """Summary followed by the description of every tag that has one."""
        parts = [self.description] + [t.description for t in self.tags]
        return " ".join(p for p in parts if p)


def is_doc_comment(text: str) -> bool:
    return text.startswith("/**") and not text.startswith("/**/")


def _unwrap_lines(comment: str) -> list[str]:
    body = comment
    if body.startswith("/**"):
        body = body[3:]
    if body.endswith("*/"):
        body = body[:-2]
    lines = []
    for line in body.splitlines():
        line = line.strip()
        if line.startswith("*"):
            line = line[1:]
        lines.append(line.strip())
    return lines


def _split_type(rest: str) -> tuple[Optional[str], str]:
    if not rest.startswith("{"):
        return None, rest
    depth = 0
    for i, ch in enumerate(rest):
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return rest[1:i].strip(), rest[i + 1 :].strip()
    return None, rest


def _parse_tag(title: str, rest: str) -> DocTag:
    type_, rest = _split_type(rest.strip())
    name = None
    if title in _NAMED_TAGS and rest:
        if rest.startswith("["):
            end = rest.find("]")
            end = len(rest) if end < 0 else end + 1
            name, rest = rest[:end].strip("[]").split("=")[0].strip(), rest[end:]
        else:
            name, _, rest = rest.partition(" ")
    description = rest.strip()
    if description.startswith("-"):
        description = description[1:].strip()
    return DocTag(title=title, type=type_, name=name or None, description=description)


def parse_doc_comment(comment: str) -> DocComment:
    """Parse a ``/** ... */`` block into a summary plus tags.

    Summary lines (everything before the first ``@tag``) are joined with
    spaces; continuation lines of a tag extend that tag's description.
    """
    summary: list[str] = []
    raw_tags: list[tuple[str, list[str]]] = []
    for line in _unwrap_lines(comment):
        m = _TAG_START.match(line)
        if m:
            raw_tags.append((m.group(1), [m.group(2)]))
        elif raw_tags:
            raw_tags[-1][1].append(line)
        else:
            summary.append(line)

    tags = tuple(
        _parse_tag(title, " ".join(p for p in parts if p)) for title, parts in raw_tags
    )
    description = " ".join(line for line in summary if line)
    return DocComment(description=description, tags=tags)
