from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from apiscout.domain.models import EndpointRecord

_VERSION_SEGMENT = re.compile(r"^v\d+$")
_MULTI_SLASH = re.compile(r"/{2,}")

INDEX_NAME = "index"


@dataclass(frozen=True)
class ResourceInfo:
    name: str                 # grouping key: file base name without extension
    version: Optional[str]    # "v2" when the file sits under a version directory
    prefix: str               # "/users", "/v2/users", "/v2" or ""


def relative_source_path(file_path: Path, root: Optional[Path]) -> str:
    # root-relative, forward slashes; falls back to the path as given
    if root is not None:
        try:
            return Path(os.path.relpath(file_path, root)).as_posix()
        except ValueError:
            pass
    return file_path.as_posix()


def resource_for(file_path: Path, root: Optional[Path] = None) -> ResourceInfo:
    """
    Resource name and URL prefix for a route file.

    routes/users.js     -> users, /users
    routes/v2/users.js  -> users, /v2/users
    routes/v2/index.js  -> index, /v2

    Only directory components are checked for a version, and the outermost
    one wins when there are several.
    """
    name = file_path.stem
    rel_parts = Path(relative_source_path(file_path, root)).parts[:-1]
    version = next((p for p in rel_parts if _VERSION_SEGMENT.match(p)), None)

    segments = [version] if version else []
    if name != INDEX_NAME:
        segments.append(name)
    prefix = "".join(f"/{s}" for s in segments)
    return ResourceInfo(name=name, version=version, prefix=prefix)


def join_route(prefix: str, route_path: str) -> str:
    path = (route_path or "").strip()
    if path in ("", "/"):
        return prefix or "/"
    if not path.startswith("/"):
        path = "/" + path
    return _MULTI_SLASH.sub("/", prefix + path)


def group_by_resource(records: Iterable[EndpointRecord]) -> dict[str, list[EndpointRecord]]:
    """Records keyed by resource name; groups and their members keep discovery order."""
    groups: dict[str, list[EndpointRecord]] = {}
    for record in records:
        groups.setdefault(record.resource_name, []).append(record)
    return groups
