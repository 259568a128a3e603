"""
Integration tests for event ingestion, listing and the debug request capture.
"""
import pytest


@pytest.mark.asyncio
async def test_track_event_normalizes_payload(client):
    resp = await client.post(
        "/api/events",
        json={
            "name": "add_to_cart",
            "category": "ecommerce",
            "properties": {"name": "Latte", "id": 7, "value": "4.5"},
        },
        headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1", "User-Agent": "flowless-sdk/1.0"},
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["success"] is True
    assert body["queued"] is False
    assert body["executions"] == []

    event = body["event"]
    assert event["itemName"] == "Latte"
    assert event["itemId"] == "7"
    assert event["value"] == 4.5
    assert event["ipAddress"] == "203.0.113.9"
    assert event["userAgent"] == "flowless-sdk/1.0"
    assert event["userId"] == "test-user-id"
    assert event["organizationId"] == "test-org"


@pytest.mark.asyncio
async def test_name_is_required(client):
    resp = await client.post("/api/events", json={"category": "engagement"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Validation failed"


@pytest.mark.asyncio
async def test_matching_workflow_runs_inline(client):
    await client.post("/api/workflows", json={
        "name": "Log signups",
        "trigger": {"eventType": "auth", "filters": {"eventName": "signup"}},
        "actions": [{"type": "delay", "duration": 5}],
    })
    resp = await client.post("/api/events", json={"name": "signup", "category": "auth"})
    executions = resp.json()["executions"]
    assert len(executions) == 1
    assert executions[0]["status"] == "completed"


@pytest.mark.asyncio
async def test_list_events_paginates(client):
    for i in range(5):
        await client.post("/api/events", json={"name": f"view_{i}", "category": "engagement"})
    await client.post("/api/events", json={"name": "purchase", "category": "ecommerce", "planId": "pro"})

    resp = await client.get("/api/events", params={"page": 2, "limit": 2})
    body = resp.json()
    assert body["total"] == 6
    assert body["totalPages"] == 3
    assert body["page"] == 2
    assert len(body["events"]) == 2

    resp = await client.get("/api/events", params={"category": "ecommerce"})
    assert [e["name"] for e in resp.json()["events"]] == ["purchase"]

    resp = await client.get("/api/events", params={"planId": "pro"})
    assert resp.json()["total"] == 1


@pytest.mark.asyncio
async def test_event_names_and_categories(client):
    for name, category in [("signup", "auth"), ("page_view", "engagement"), ("signup", "auth")]:
        await client.post("/api/events", json={"name": name, "category": category})

    resp = await client.get("/api/events/names")
    assert resp.json() == {"names": ["page_view", "signup"], "categories": ["auth", "engagement"]}


@pytest.mark.asyncio
async def test_get_event_by_id(client):
    event_id = (await client.post("/api/events", json={"name": "signup"})).json()["event"]["id"]

    resp = await client.get(f"/api/events/{event_id}")
    assert resp.status_code == 200
    assert resp.json()["category"] == "engagement"

    resp = await client.get("/api/events/does-not-exist")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Event not found"}


@pytest.mark.asyncio
async def test_debug_capture_keeps_recent_requests(client):
    await client.post("/api/events", json={"name": "first"})
    await client.post("/api/events", json={"name": "second"}, headers={"X-Real-IP": "198.51.100.1"})

    resp = await client.get("/api/debug/requests")
    body = resp.json()
    assert body["count"] == 2
    newest = body["requests"][0]
    assert newest["body"]["name"] == "second"
    assert newest["path"] == "/api/events"
    assert newest["clientIp"] == "198.51.100.1"

    resp = await client.get("/api/debug/requests", params={"limit": 1})
    assert resp.json()["count"] == 1

    resp = await client.delete("/api/debug/requests")
    assert resp.json() == {"success": True}
    assert (await client.get("/api/debug/requests")).json()["count"] == 0


@pytest.mark.asyncio
async def test_health_and_readiness(client):
    assert (await client.get("/health")).json() == {"status": "healthy"}

    resp = await client.get("/ready")
    assert resp.status_code == 200
    assert resp.json()["checks"]["database"] == "ok"
