"""
Unit tests for the debug request capture store.
"""
import pytest
from starlette.requests import Request

from backend.app.middleware.request_capture import RequestCaptureStore, client_ip


def _request(headers=None, client=("203.0.113.9", 5123)):
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/api/events",
        "query_string": b"debug=1",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


def test_ring_buffer_keeps_newest_per_user():
    store = RequestCaptureStore(limit=3)
    for i in range(5):
        store.capture("u1", {"n": i})
    store.capture("u2", {"n": 100})

    assert [e["n"] for e in store.recent("u1")] == [4, 3, 2]
    assert [e["n"] for e in store.recent("u1", limit=1)] == [4]
    assert [e["n"] for e in store.recent("u2")] == [100]


def test_clear_one_user_or_all():
    store = RequestCaptureStore(limit=3)
    store.capture("u1", {"n": 1})
    store.capture("u2", {"n": 2})
    store.clear("u1")
    assert store.recent("u1") == []
    assert len(store.recent("u2")) == 1
    store.clear()
    assert store.recent("u2") == []


def test_client_ip_prefers_forwarded_headers():
    assert client_ip(_request({"X-Forwarded-For": "198.51.100.7, 10.0.0.1"})) == "198.51.100.7"
    assert client_ip(_request({"X-Real-IP": "198.51.100.8"})) == "198.51.100.8"
    assert client_ip(_request()) == "203.0.113.9"
    assert client_ip(_request(client=None)) is None


@pytest.mark.asyncio
async def test_capture_request_summary():
    store = RequestCaptureStore()
    request = _request({"User-Agent": "flowless-sdk/1.2", "Authorization": "Bearer secret"})
    await store.capture_request(request, "u1", {"name": "page_view"})

    entry = store.recent("u1")[0]
    assert entry["method"] == "POST"
    assert entry["path"] == "/api/events"
    assert entry["query"] == {"debug": "1"}
    assert entry["headers"] == {"user-agent": "flowless-sdk/1.2"}
    assert entry["body"] == {"name": "page_view"}
