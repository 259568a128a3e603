"""
Integration tests for segments: guarded SQL, snapshot counts and live membership.
"""
import pytest

from backend.app.core.config import get_settings

SIGNUPS = 'SELECT DISTINCT "userId" FROM "Event" WHERE name = \'signup\''


async def _track(client, user_id, name="signup"):
    resp = await client.post("/api/events", json={"name": name, "category": "auth", "userId": user_id})
    assert resp.status_code == 201


@pytest.mark.asyncio
async def test_user_count_is_a_snapshot(client):
    await _track(client, "u-1")
    await _track(client, "u-2")
    await _track(client, "u-2")

    resp = await client.post("/api/segments", json={"name": "Signed up", "query": SIGNUPS, "criteria": {"event": "signup"}})
    assert resp.status_code == 201, resp.text
    segment = resp.json()
    assert segment["userCount"] == 2
    assert segment["criteria"] == {"event": "signup"}

    await _track(client, "u-3")

    resp = await client.get(f"/api/segments/{segment['id']}")
    assert resp.json()["userCount"] == 2

    resp = await client.get(f"/api/segments/{segment['id']}/users")
    body = resp.json()
    assert body["segmentId"] == segment["id"]
    assert sorted(body["userIds"]) == ["u-1", "u-2", "u-3"]
    assert body["count"] == 3


@pytest.mark.asyncio
async def test_user_count_is_the_row_count(client):
    for user_id in ("u-1", "u-2", "u-2"):
        resp = await client.post("/api/events", json={"name": "buy", "category": "conversion", "userId": user_id})
        assert resp.status_code == 201

    query = 'SELECT "userId" FROM "Event" WHERE category = \'conversion\''
    resp = await client.post("/api/segments", json={"name": "Buyers", "query": query})
    assert resp.status_code == 201, resp.text
    segment = resp.json()
    assert segment["userCount"] == 3

    resp = await client.get(f"/api/segments/{segment['id']}/users")
    assert sorted(resp.json()["userIds"]) == ["u-1", "u-2"]


@pytest.mark.asyncio
async def test_unsafe_queries_rejected(client):
    resp = await client.post("/api/segments", json={"name": "Evil", "query": 'DROP TABLE "Event"'})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Query contains forbidden keyword: DROP", "details": {"keyword": "DROP"}}

    resp = await client.post("/api/segments", json={"name": "Two", "query": 'SELECT "userId" FROM "Event"; SELECT 1'})
    assert resp.status_code == 400

    resp = await client.post("/api/segments", json={"name": "No users", "query": 'SELECT name FROM "Event"'})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Query must return a userId column"

    assert (await client.get("/api/segments")).json() == []


@pytest.mark.asyncio
async def test_failing_query_is_stored_with_zero_users(client):
    resp = await client.post("/api/segments", json={"name": "Broken", "query": 'SELECT "userId" FROM no_such_table'})
    assert resp.status_code == 201
    assert resp.json()["userCount"] == 0

    assert len((await client.get("/api/segments")).json()) == 1


@pytest.mark.asyncio
async def test_preview_reports_effective_query(client):
    for user_id in ("u-1", "u-2"):
        await _track(client, user_id)

    resp = await client.post("/api/segments/preview", json={"query": SIGNUPS + ";"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 2
    assert sorted(body["sample"]) == ["u-1", "u-2"]
    assert body["query"] == f"{SIGNUPS} LIMIT {get_settings().segment_max_results}"


@pytest.mark.asyncio
async def test_preview_keeps_existing_limit(client):
    for user_id in ("u-1", "u-2", "u-3"):
        await _track(client, user_id)
    query = 'SELECT DISTINCT "userId" FROM "Event" ORDER BY "userId" LIMIT 2'

    body = (await client.post("/api/segments/preview", json={"query": query})).json()
    assert body["sample"] == ["u-1", "u-2"]
    assert body["query"] == query


@pytest.mark.asyncio
async def test_delete_segment(client):
    segment_id = (await client.post("/api/segments", json={"name": "S", "query": SIGNUPS})).json()["id"]
    resp = await client.delete(f"/api/segments/{segment_id}")
    assert resp.json() == {"success": True, "id": segment_id}

    resp = await client.get(f"/api/segments/{segment_id}")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Segment not found"}
