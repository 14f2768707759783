from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

HttpMethod = Literal["GET", "POST", "PUT", "DELETE"]

SUPPORTED_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "DELETE")


class KeyValue(BaseModel):
    key: str
    value: str = ""


class EndpointRecord(BaseModel):
    """One discovered route, framework-agnostic.

    ``query_parameters`` come from ``:name`` path segments and carry
    placeholder values only. ``body`` is an inferred shape, never real data.
    """

    method: HttpMethod
    path: str
    headers: list[KeyValue] = Field(default_factory=list)
    query_parameters: list[KeyValue] = Field(default_factory=list)
    body: dict[str, Any] = Field(default_factory=dict)
    description: Optional[str] = None

    source_file: str = ""  # relative to the scan root, forward slashes
    resource_name: str = ""
    handler_name: Optional[str] = None
    middleware: list[str] = Field(default_factory=list)
    line: int = 0
    framework: str = ""
