import json
from pathlib import Path

import pytest

from apiscout.domain.models import EndpointRecord, KeyValue
from apiscout.emit.collection import SCHEMA_URL, build_collection, write_collection
from apiscout.errors import WriteError


def records():
    return [
        EndpointRecord(
            method="POST",
            path="/orders/:id/confirm",
            headers=[KeyValue(key="Content-Type", value="application/json")],
            query_parameters=[KeyValue(key="id", value="")],
            body={"qty": "value of qty"},
            description="Confirm an order",
            source_file="routes/orders.js",
            resource_name="orders",
        ),
        EndpointRecord(method="GET", path="/users", source_file="routes/users.js", resource_name="users"),
        EndpointRecord(method="GET", path="/orders", source_file="routes/orders.js", resource_name="orders"),
    ]


def test_build_collection_groups_by_resource():
    collection = build_collection(records(), "http://localhost:3000/", name="Shop")

    assert collection["info"]["name"] == "Shop"
    assert collection["info"]["schema"] == SCHEMA_URL
    assert [f["name"] for f in collection["item"]] == ["orders", "users"]

    orders = collection["item"][0]["item"]
    assert [i["name"] for i in orders] == [
        "POST http://localhost:3000/orders/:id/confirm",
        "GET http://localhost:3000/orders",
    ]
    req = orders[0]["request"]
    assert req["method"] == "POST"
    assert req["url"]["raw"] == "http://localhost:3000/orders/:id/confirm"
    assert req["url"]["variable"] == [{"key": "id", "value": ""}]
    assert req["header"] == [{"key": "Content-Type", "value": "application/json"}]
    assert json.loads(req["body"]["raw"]) == {"qty": "value of qty"}
    assert req["description"] == "Confirm an order"


def test_items_without_body_or_description():
    collection = build_collection(records()[1:2], "http://x")
    req = collection["item"][0]["item"][0]["request"]
    assert "body" not in req
    assert "variable" not in req["url"]
    assert req["description"] == "routes/users.js"


def test_write_collection_creates_parents(tmp_path: Path):
    out = tmp_path / "out/nested/collection.json"
    write_collection({"info": {"name": "x"}, "item": []}, out)
    assert json.loads(out.read_text(encoding="utf-8")) == {"info": {"name": "x"}, "item": []}


def test_write_collection_failure_is_write_error(tmp_path: Path):
    blocker = tmp_path / "file"
    blocker.write_text("", encoding="utf-8")
    with pytest.raises(WriteError):
        write_collection({}, blocker / "collection.json")
