"""Pushing a collection to a Postman workspace: update by name, else create."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from apiscout.errors import SyncError

logger = logging.getLogger(__name__)

POSTMAN_API = "https://api.getpostman.com"


@dataclass(frozen=True)
class SyncOutcome:
    action: str  # "created" | "updated"
    uid: Optional[str]
    name: str


class PostmanClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = POSTMAN_API,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = 30.0,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url,
            headers={"X-Api-Key": api_key, "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> PostmanClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            resp = self._client.request(method, url, **kwargs)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise SyncError(f"workspace API returned {exc.response.status_code} for {method} {url}") from exc
        except httpx.HTTPError as exc:
            raise SyncError(f"workspace API request failed ({exc})") from exc
        except ValueError as exc:
            raise SyncError(f"workspace API returned invalid JSON for {method} {url}") from exc
        if not isinstance(data, dict):
            raise SyncError(f"workspace API returned an unexpected payload for {method} {url}")
        return data

    def list_collections(self, workspace_id: str) -> list[dict[str, Any]]:
        data = self._request("GET", "/collections", params={"workspace": workspace_id})
        collections = data.get("collections") or []
        if not isinstance(collections, list):
            raise SyncError("workspace API returned an unexpected collection list")
        return [c for c in collections if isinstance(c, dict)]

    def sync_collection(self, collection: dict[str, Any], workspace_id: str) -> SyncOutcome:
        name = collection.get("info", {}).get("name", "")
        existing = next((c for c in self.list_collections(workspace_id) if c.get("name") == name), None)
        payload = {"collection": collection}

        if existing is not None:
            uid = existing.get("uid")
            logger.info("updating collection %s (%s)", name, uid)
            self._request("PUT", f"/collections/{uid}", json=payload)
            return SyncOutcome(action="updated", uid=uid, name=name)

        logger.info("creating collection %s in workspace %s", name, workspace_id)
        data = self._request("POST", "/collections", params={"workspace": workspace_id}, json=payload)
        created = data.get("collection")
        uid = created.get("uid") if isinstance(created, dict) else None
        return SyncOutcome(action="created", uid=uid, name=name)


def sync_collection(
    collection: dict[str, Any],
    api_key: str,
    workspace_id: str,
    transport: Optional[httpx.BaseTransport] = None,
) -> SyncOutcome:
    with PostmanClient(api_key, transport=transport) as client:
        return client.sync_collection(collection, workspace_id)
