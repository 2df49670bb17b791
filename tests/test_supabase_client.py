from __future__ import annotations

import itertools
import json

import httpx
import pytest

from gogocae.application import build_services
from gogocae.core.errors import Conflict, NotFound, RemoteFailure
from gogocae.core.settings import Settings
from gogocae.domain import RequestStatus, User, UserRole
from gogocae.infrastructure import InMemoryBlobStore, LocalChangeFeed
from gogocae.infrastructure.supabase import PostgrestDatastore, SupabaseStorage

BASE_URL = "https://demo.supabase.co/"


def _datastore(handler) -> PostgrestDatastore:
    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    return PostgrestDatastore(BASE_URL, "anon-key", http_client=http_client)


def test_query_encodes_filters_order_and_limit():
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["params"] = dict(request.url.params)
        captured["headers"] = request.headers
        return httpx.Response(200, json=[{"id": "r1", "status": "pending_assignment"}])

    rows = _datastore(handler).query(
        "analysis_requests",
        {"status": "pending_assignment", "assigned_to": None},
        order_by="created_at",
        descending=True,
        limit=5,
    )

    assert rows == [{"id": "r1", "status": "pending_assignment"}]
    assert captured["path"] == "/rest/v1/analysis_requests"
    assert captured["params"] == {
        "select": "*",
        "status": "eq.pending_assignment",
        "assigned_to": "is.null",
        "order": "created_at.desc",
        "limit": "5",
    }
    headers = captured["headers"]
    assert headers["apikey"] == "anon-key"
    assert headers["authorization"] == "Bearer anon-key"


def test_insert_many_drops_nulls_and_requests_representation():
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["body"] = json.loads(request.content.decode("utf-8"))
        captured["prefer"] = request.headers.get("prefer")
        return httpx.Response(201, json=[{"id": "n1", "user_id": "u1", "is_read": False}])

    rows = _datastore(handler).insert_many(
        "notifications", [{"user_id": "u1", "request_id": None, "is_read": False}]
    )

    assert captured["method"] == "POST"
    assert captured["body"] == [{"user_id": "u1", "is_read": False}]
    assert captured["prefer"] == "return=representation"
    assert rows[0]["id"] == "n1"


def test_update_of_missing_row_is_not_found():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "PATCH"
        assert request.url.params["id"] == "eq.missing"
        return httpx.Response(200, json=[])

    with pytest.raises(NotFound):
        _datastore(handler).update("analysis_requests", "missing", {"status": "completed"})


def test_unique_violation_maps_to_conflict():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={"code": "23505", "message": "duplicate key value"})

    with pytest.raises(Conflict):
        _datastore(handler).insert("vehicle_models", {"name": "SUV-X1"})


def test_server_error_maps_to_retryable_remote_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"message": "upstream timeout"})

    with pytest.raises(RemoteFailure) as excinfo:
        _datastore(handler).get("users", "u1")
    assert excinfo.value.status == 503
    assert excinfo.value.retryable
    assert excinfo.value.message == "upstream timeout"


def test_transport_error_maps_to_remote_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RemoteFailure):
        _datastore(handler).query("users")


def test_storage_upload_returns_public_url():
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["content"] = request.content
        captured["content_type"] = request.headers["content-type"]
        return httpx.Response(200, json={"Key": "design-files/req-1/1700000000000-abc123.stp"})

    storage = SupabaseStorage(
        BASE_URL,
        "anon-key",
        bucket="design-files",
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
    )
    url = storage.upload("req-1/1700000000000-abc123.stp", b"ISO-10303-21;", "model/step")

    assert captured["path"] == "/storage/v1/object/design-files/req-1/1700000000000-abc123.stp"
    assert captured["content"] == b"ISO-10303-21;"
    assert captured["content_type"] == "model/step"
    assert url == "https://demo.supabase.co/storage/v1/object/public/design-files/req-1/1700000000000-abc123.stp"


def test_base_url_must_be_absolute():
    with pytest.raises(ValueError):
        PostgrestDatastore("demo.supabase.co", "anon-key")


# ---------------------------------------------------------------------------
# Change publishing
# ---------------------------------------------------------------------------


def _fake_postgrest(tables: dict[str, dict[str, dict]]):
    """Minimal PostgREST: id lookups, inserts, patches and deletes on ``tables``."""

    ids = itertools.count(1)

    def handler(request: httpx.Request) -> httpx.Response:
        table = request.url.path.rsplit("/", 1)[-1]
        rows = tables.setdefault(table, {})
        id_filter = request.url.params.get("id", "")
        row_id = id_filter[3:] if id_filter.startswith("eq.") else None

        if request.method == "GET":
            if row_id is None:
                return httpx.Response(200, json=list(rows.values()))
            return httpx.Response(200, json=[rows[row_id]] if row_id in rows else [])
        if request.method == "POST":
            created = []
            for record in json.loads(request.content.decode("utf-8")):
                row = {"id": f"{table}-{next(ids)}", **record}
                rows[row["id"]] = row
                created.append(row)
            return httpx.Response(201, json=created)
        if request.method == "PATCH":
            if row_id not in rows:
                return httpx.Response(200, json=[])
            rows[row_id].update(json.loads(request.content.decode("utf-8")))
            return httpx.Response(200, json=[rows[row_id]])
        if request.method == "DELETE":
            removed = rows.pop(row_id, None)
            return httpx.Response(200, json=[removed] if removed else [])
        return httpx.Response(405)

    return handler


def test_writes_are_published_to_change_feed():
    feed = LocalChangeFeed()
    events = []
    feed.subscribe("vehicle_models", events.append)
    store = PostgrestDatastore(
        BASE_URL,
        "anon-key",
        change_feed=feed,
        http_client=httpx.Client(transport=httpx.MockTransport(_fake_postgrest({}))),
    )

    row = store.insert("vehicle_models", {"name": "SUV-X1"})
    store.update("vehicle_models", row["id"], {"name": "SUV-X2"})
    store.delete("vehicle_models", row["id"])
    store.query("vehicle_models")

    assert [(event.kind, event.record["name"]) for event in events] == [
        ("insert", "SUV-X1"),
        ("update", "SUV-X2"),
        ("delete", "SUV-X2"),
    ]


def test_watch_request_fires_for_remote_update():
    tables = {
        "analysis_requests": {
            "r1": {
                "id": "r1",
                "requester_id": "client-1",
                "vehicle_model_id": "veh-1",
                "analysis_name": "Door sag",
                "status": "before_start",
                "assigned_to": "mgr-1",
                "request_date": "2025-03-03",
            }
        }
    }
    store = _datastore(_fake_postgrest(tables))
    desk = build_services(Settings(), datastore=store, blob_store=InMemoryBlobStore())
    manager = User(id="mgr-1", name="Park Analyst", role=UserRole.MANAGER)
    seen = []
    desk.requests.watch_request("r1", seen.append)

    desk.requests.transition("r1", "in_progress", manager)

    assert store.change_feed is desk.change_feed
    assert [item.status for item in seen] == [RequestStatus.IN_PROGRESS]
    assert len(tables["status_history"]) == 1
