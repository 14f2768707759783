"""Scan configuration, loaded from the JSON config file the CLI accepts.

Keys may use the historical camelCase names (``directoryToScan``,
``objectInstance`` ...) or their snake_case field names.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from apiscout.errors import ConfigError
from apiscout.extractors.frameworks import FRAMEWORK_TAGS
from apiscout.repo.ignore import DEFAULT_IGNORES

AUTO_FRAMEWORK = "auto"


class ScanConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    directory_to_scan: str = Field("./", alias="directoryToScan")
    framework: str = "express"
    object_instance: str = Field("app", alias="objectInstance")
    base_url: str = Field("http://localhost:3000", alias="baseUrl")
    postman_collection_file: str = Field("./postman_collection.json", alias="postmanCollectionFile")
    collection_name: str = Field("API Collection", alias="collectionName")

    repo_url: Optional[str] = Field(None, alias="repoUrl")
    github_token: Optional[str] = Field(None, alias="githubToken")
    postman_api_key: Optional[str] = Field(None, alias="postmanApiKey")
    workspace_id: Optional[str] = Field(None, alias="workspaceId")

    ignore_dirs: list[str] = Field(default_factory=lambda: sorted(DEFAULT_IGNORES), alias="ignoreDirs")
    skip_unreadable_dirs: bool = Field(False, alias="skipUnreadableDirs")

    @field_validator("framework")
    @classmethod
    def _known_framework(cls, v: str) -> str:
        tag = v.strip().lower()
        if tag != AUTO_FRAMEWORK and tag not in FRAMEWORK_TAGS:
            raise ValueError(f"must be one of: {', '.join(FRAMEWORK_TAGS + (AUTO_FRAMEWORK,))}")
        return tag

    @field_validator("object_instance")
    @classmethod
    def _non_empty_instance(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    def with_overrides(self, **updates: Any) -> ScanConfig:
        """Copy with non-None values replaced, validated like a fresh load."""
        data = self.model_dump()
        data.update({k: v for k, v in updates.items() if v is not None})
        try:
            return ScanConfig.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(_first_error(exc)) from exc

    def with_env_defaults(self) -> ScanConfig:
        return self.model_copy(
            update={
                "postman_api_key": self.postman_api_key or os.getenv("POSTMAN_API_KEY"),
                "workspace_id": self.workspace_id or os.getenv("POSTMAN_WORKSPACE_ID"),
                "github_token": self.github_token or os.getenv("GITHUB_TOKEN"),
            }
        )


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    where = ".".join(str(p) for p in err.get("loc", ()))
    return f"invalid config value for {where}: {err.get('msg', 'invalid')}"


def load_config(path: Optional[Path] = None) -> ScanConfig:
    if path is None:
        return ScanConfig().with_env_defaults()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"cannot read config file ({exc.strerror or exc})", path) from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"invalid JSON at line {exc.lineno}: {exc.msg}", path) from exc

    if not isinstance(raw, dict):
        raise ConfigError("config file must contain a JSON object", path)

    try:
        config = ScanConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(_first_error(exc), path) from exc
    return config.with_env_defaults()
