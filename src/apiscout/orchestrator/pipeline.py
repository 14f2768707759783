from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from apiscout.config import AUTO_FRAMEWORK, ScanConfig
from apiscout.domain.models import EndpointRecord
from apiscout.errors import ParseError
from apiscout.extractors.frameworks import CallSite, Framework, RouteRecognizer
from apiscout.extractors.metadata import (
    extract_body,
    extract_description,
    extract_headers,
    extract_query_params,
)
from apiscout.extractors.resolver import HandlerResolver, handler_name, handler_reference
from apiscout.orchestrator.normalize import (
    group_by_resource,
    join_route,
    relative_source_path,
    resource_for,
)
from apiscout.parsing.frontends import SourceFile, SyntaxTree, front_end_for, load_tree
from apiscout.parsing.syntax import node_text
from apiscout.repo.framework_detector import detect_js_framework
from apiscout.repo.scanner import SourceTreeWalker

if TYPE_CHECKING:
    from tree_sitter import Node

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiscoveryResult:
    framework: str
    confidence: float
    files_scanned: int
    files_skipped: int
    records: list[EndpointRecord]
    warnings: list[str] = field(default_factory=list)

    @property
    def groups(self) -> dict[str, list[EndpointRecord]]:
        return group_by_resource(self.records)


def _middleware_label(node: Node) -> str:
    name = handler_name(handler_reference(node))
    if name:
        return name
    text = " ".join(node_text(node).split())
    return text if len(text) <= 40 else text[:37] + "..."


def build_record(
    site: CallSite,
    tree: SyntaxTree,
    resolver: HandlerResolver,
    framework: Framework,
    root: Optional[Path] = None,
) -> EndpointRecord:
    """One endpoint record for a recognized call site.

    The last handler argument is the route handler; earlier ones are
    middleware. An unresolved handler still yields a record, just without
    body and description.
    """
    ref = handler_reference(site.handlers[-1]) if site.handlers else None
    definition = resolver.resolve(ref, tree)
    if ref is not None and definition is None:
        logger.debug("unresolved handler %s at %s:%d", handler_name(ref), tree.path, site.line)

    resource = resource_for(tree.path, root)
    return EndpointRecord(
        method=site.method,
        path=join_route(resource.prefix, site.path),
        headers=extract_headers(site.options, site.extra_headers),
        query_parameters=extract_query_params(site.path),
        body=extract_body(definition),
        description=extract_description(definition),
        source_file=relative_source_path(tree.path, root),
        resource_name=resource.name,
        handler_name=handler_name(ref),
        middleware=[_middleware_label(n) for n in site.handlers[:-1]],
        line=site.line,
        framework=framework.tag,
    )


def extract_endpoints_from_tree(
    tree: SyntaxTree,
    recognizer: RouteRecognizer,
    resolver: HandlerResolver,
    root: Optional[Path] = None,
) -> list[EndpointRecord]:
    sites: list[CallSite] = []
    tree.front_end.visit(tree, lambda node: sites.extend(recognizer.call_sites(node)))
    return [build_record(s, tree, resolver, recognizer.framework, root) for s in sites]


def extract_endpoints_from_file(
    path: Path,
    recognizer: RouteRecognizer,
    resolver: HandlerResolver,
    root: Optional[Path] = None,
) -> list[EndpointRecord]:
    return extract_endpoints_from_tree(load_tree(path), recognizer, resolver, root)


def extract_endpoints_from_source(
    text: str,
    path: Path = Path("routes/index.js"),
    framework: str = "express",
    receiver: str = "app",
    root: Optional[Path] = None,
) -> list[EndpointRecord]:
    """Discover endpoints in an in-memory source text.

    ``path`` picks the front end and drives resource naming; imports are
    resolved relative to it on disk.
    """
    front_end = front_end_for(path)
    if front_end is None:
        raise ParseError("unsupported file type", path)
    tree = front_end.parse(SourceFile(path=path.resolve(), text=text))
    recognizer = RouteRecognizer(Framework.from_tag(framework), receiver)
    return extract_endpoints_from_tree(tree, recognizer, HandlerResolver(), root.resolve() if root else None)


def discover(root: Path, config: Optional[ScanConfig] = None) -> DiscoveryResult:
    """
    Walk root, recognize route registrations and build endpoint records.

    Records come out in discovery order: files in directory-listing order,
    registrations in pre-order within each file. Files that fail to parse
    are logged and skipped; directory failures follow
    ``config.skip_unreadable_dirs``.
    """
    config = config or ScanConfig()
    root = root.resolve()

    walker = SourceTreeWalker(
        ignore_dirs=config.ignore_dirs,
        skip_unreadable=config.skip_unreadable_dirs,
    )
    files = list(walker.walk(root))

    if config.framework == AUTO_FRAMEWORK:
        tag, confidence = detect_js_framework([str(p) for p in files])
        logger.info("detected framework %s (confidence %.2f)", tag, confidence)
    else:
        tag, confidence = config.framework, 1.0

    recognizer = RouteRecognizer(Framework.from_tag(tag), config.object_instance)
    resolver = HandlerResolver()

    records: list[EndpointRecord] = []
    skipped = 0
    for path in files:
        try:
            found = extract_endpoints_from_file(path, recognizer, resolver, root)
        except ParseError as exc:
            logger.warning("skipping %s", exc)
            skipped += 1
            continue
        logger.debug("%s: %d endpoint(s)", path, len(found))
        records.extend(found)

    return DiscoveryResult(
        framework=tag,
        confidence=confidence,
        files_scanned=len(files),
        files_skipped=skipped,
        records=records,
        warnings=list(walker.warnings),
    )


def discover_endpoints(root: Path, config: Optional[ScanConfig] = None) -> list[EndpointRecord]:
    return discover(root, config).records
