"""Postman v2.1 collection document built from endpoint records."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

from apiscout.domain.models import EndpointRecord
from apiscout.errors import WriteError
from apiscout.orchestrator.normalize import group_by_resource

SCHEMA_URL = "https://schema.getpostman.com/json/collection/v2.1.0/collection.json"
DEFAULT_DESCRIPTION = "Collection generated from statically discovered routes"


def _request_item(record: EndpointRecord, base_url: str) -> dict[str, Any]:
    raw_url = base_url.rstrip("/") + record.path
    url: dict[str, Any] = {"raw": raw_url}
    if record.query_parameters:
        url["variable"] = [{"key": p.key, "value": p.value} for p in record.query_parameters]

    request: dict[str, Any] = {
        "method": record.method,
        "header": [{"key": h.key, "value": h.value} for h in record.headers],
        "url": url,
        "description": record.description or record.source_file,
    }
    if record.body:
        request["body"] = {
            "mode": "raw",
            "raw": json.dumps(record.body, indent=2),
            "options": {"raw": {"language": "json"}},
        }
    return {
        "name": f"{record.method} {raw_url}",
        "request": request,
        "response": [],
    }


def build_collection(
    records: Iterable[EndpointRecord],
    base_url: str,
    name: str = "API Collection",
) -> dict[str, Any]:
    """One folder per resource, in discovery order."""
    folders = [
        {"name": resource or "root", "item": [_request_item(r, base_url) for r in group]}
        for resource, group in group_by_resource(records).items()
    ]
    return {
        "info": {
            "name": name,
            "description": DEFAULT_DESCRIPTION,
            "schema": SCHEMA_URL,
        },
        "item": folders,
    }


def write_collection(collection: dict[str, Any], path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(collection, indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        raise WriteError(f"failed to write collection ({exc.strerror or exc})", path) from exc
