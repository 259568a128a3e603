"""
Bearer authentication on the API surface.

Every dashboard endpoint needs a valid JWT; only the notification beacons
and health checks are public.
"""
from datetime import timedelta

import pytest

from backend.app.core.security import create_access_token

PROTECTED = [
    ("GET", "/api/events"),
    ("POST", "/api/events"),
    ("GET", "/api/workflows"),
    ("POST", "/api/workflows/cleanup"),
    ("GET", "/api/promocodes"),
    ("POST", "/api/promocodes/get-code"),
    ("GET", "/api/segments"),
    ("GET", "/api/credentials"),
    ("GET", "/api/campaigns"),
    ("POST", "/api/push/subscribe"),
    ("GET", "/api/webhooks"),
    ("POST", "/api/sms/test"),
    ("GET", "/api/debug/requests"),
]


@pytest.mark.parametrize("method,path", PROTECTED)
@pytest.mark.asyncio
async def test_missing_token_is_rejected(anon_client, method, path):
    resp = await anon_client.request(method, path, json={})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Not authenticated"}


@pytest.mark.asyncio
async def test_invalid_token_is_rejected(anon_client):
    resp = await anon_client.get("/api/workflows", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Unauthorized"}
    assert resp.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_expired_token_is_rejected(anon_client):
    token = create_access_token({"sub": "u-1", "org_id": "org-1"}, expires_delta=timedelta(minutes=-5))
    resp = await anon_client.get("/api/workflows", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_token_without_subject_is_rejected(anon_client):
    token = create_access_token({"org_id": "org-1"})
    resp = await anon_client.get("/api/workflows", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_valid_token_scopes_to_organization(anon_client):
    token = create_access_token({"sub": "u-1", "org_id": "org-1"})
    headers = {"Authorization": f"Bearer {token}"}

    resp = await anon_client.post("/api/events", json={"name": "signup"}, headers=headers)
    assert resp.status_code == 201
    assert resp.json()["event"]["organizationId"] == "org-1"

    other = create_access_token({"sub": "u-2", "org_id": "org-2"})
    resp = await anon_client.get("/api/events", headers={"Authorization": f"Bearer {other}"})
    assert resp.json()["total"] == 0


@pytest.mark.asyncio
async def test_public_endpoints(anon_client):
    assert (await anon_client.get("/health")).status_code == 200

    resp = await anon_client.post("/api/campaigns/track-click", json={"campaignId": "c-1", "userId": "u-1"})
    assert resp.status_code == 404
    resp = await anon_client.post("/api/campaigns/track-close", json={"campaignId": "c-1", "userId": "u-1"})
    assert resp.status_code == 404
