import json

import httpx
import pytest

from apiscout.emit.sync import PostmanClient, sync_collection
from apiscout.errors import SyncError

COLLECTION = {"info": {"name": "API Collection"}, "item": []}


def test_updates_existing_collection_by_name():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.method, request.url.path, dict(request.url.params)))
        assert request.headers["X-Api-Key"] == "key"
        if request.method == "GET":
            return httpx.Response(
                200,
                json={"collections": [{"name": "Other", "uid": "u-0"}, {"name": "API Collection", "uid": "u-1"}]},
            )
        assert json.loads(request.content) == {"collection": COLLECTION}
        return httpx.Response(200, json={"collection": {"uid": "u-1"}})

    outcome = sync_collection(COLLECTION, "key", "ws", transport=httpx.MockTransport(handler))

    assert outcome.action == "updated"
    assert outcome.uid == "u-1"
    assert calls == [
        ("GET", "/collections", {"workspace": "ws"}),
        ("PUT", "/collections/u-1", {}),
    ]


def test_creates_collection_when_missing():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.method, request.url.path, dict(request.url.params)))
        if request.method == "GET":
            return httpx.Response(200, json={"collections": []})
        return httpx.Response(200, json={"collection": {"uid": "new-uid"}})

    with PostmanClient("key", transport=httpx.MockTransport(handler)) as client:
        outcome = client.sync_collection(COLLECTION, "ws")

    assert outcome.action == "created"
    assert outcome.uid == "new-uid"
    assert calls[-1] == ("POST", "/collections", {"workspace": "ws"})


def test_http_errors_become_sync_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": "unauthorized"})

    with pytest.raises(SyncError) as exc:
        sync_collection(COLLECTION, "bad", "ws", transport=httpx.MockTransport(handler))
    assert "401" in str(exc.value)


def test_transport_errors_become_sync_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(SyncError):
        sync_collection(COLLECTION, "key", "ws", transport=httpx.MockTransport(handler))


def test_non_json_response_becomes_sync_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>maintenance</html>"))
    with pytest.raises(SyncError) as exc:
        sync_collection(COLLECTION, "key", "ws", transport=transport)
    assert "invalid JSON" in str(exc.value)


def test_unexpected_payload_shapes_become_sync_errors():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=["not", "an", "object"]))
    with pytest.raises(SyncError):
        sync_collection(COLLECTION, "key", "ws", transport=transport)

    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"collections": "none"}))
    with pytest.raises(SyncError):
        sync_collection(COLLECTION, "key", "ws", transport=transport)


def test_malformed_collection_entries_are_ignored():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json={"collections": ["API Collection", None]})
        return httpx.Response(200, json={"collection": "u-9"})

    outcome = sync_collection(COLLECTION, "key", "ws", transport=httpx.MockTransport(handler))

    assert outcome.action == "created"
    assert outcome.uid is None
