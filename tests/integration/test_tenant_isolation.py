"""
Tenant isolation: organizations never reach each other's subscribers or
promo codes, and a user without an organization only reaches their own.
"""
import pytest

from backend.app.core.security import CurrentUser, get_current_user
from backend.app.main import app
from backend.app.services import push_service

SOLO = CurrentUser(id="solo", organization_id=None)
RIVAL = CurrentUser(id="rival", organization_id="org-rival")
VICTIM = CurrentUser(id="victim", organization_id="org-victim")

BROADCAST = {
    "name": "Broadcast",
    "trigger": {"eventType": "engagement", "filters": {"eventName": "ping"}},
    "actions": [{"type": "push_notification", "title": "t", "body": "b", "targetUsers": "all"}],
}


def _act_as(user: CurrentUser):
    async def _user():
        return user
    app.dependency_overrides[get_current_user] = _user


async def _subscribe(db_session, user: CurrentUser, user_id: str = None):
    await push_service.subscribe(
        db_session, user, endpoint=f"https://push.example.com/{user_id or user.id}",
        p256dh="key", auth="auth", user_id=user_id,
    )


@pytest.mark.asyncio
async def test_broadcast_without_organization_stays_with_owner(client, db_session, push_sender):
    await _subscribe(db_session, VICTIM)
    await _subscribe(db_session, SOLO)

    _act_as(SOLO)
    resp = await client.post("/api/workflows", json=BROADCAST)
    assert resp.status_code == 201, resp.text

    resp = await client.post("/api/events", json={"name": "ping"})
    assert resp.status_code == 201
    [execution] = resp.json()["executions"]
    assert execution["status"] == "completed"
    assert push_sender.sent == [("solo", {"title": "t", "body": "b"})]


@pytest.mark.asyncio
async def test_broadcast_reaches_only_its_organization(client, db_session, push_sender):
    await _subscribe(db_session, VICTIM)
    await _subscribe(db_session, RIVAL, user_id="rival-shopper")

    _act_as(RIVAL)
    await client.post("/api/workflows", json=BROADCAST)
    await client.post("/api/events", json={"name": "ping"})

    assert push_sender.sent == [("rival-shopper", {"title": "t", "body": "b"})]


@pytest.mark.asyncio
async def test_event_payload_cannot_choose_the_organization(client, db_session, push_sender):
    await _subscribe(db_session, VICTIM)
    _act_as(VICTIM)
    await client.post("/api/workflows", json=BROADCAST)

    _act_as(RIVAL)
    resp = await client.post("/api/events", json={"name": "ping", "organizationId": "org-victim"})
    assert resp.status_code == 201
    body = resp.json()
    assert body["event"]["organizationId"] == "org-rival"
    assert body["executions"] == []
    assert push_sender.sent == []


@pytest.mark.asyncio
async def test_test_push_cannot_target_other_organizations(client, db_session, push_sender):
    await _subscribe(db_session, VICTIM)

    _act_as(RIVAL)
    resp = await client.post("/api/push/test", json={"userIds": ["victim"]})
    assert resp.json()["sent"] == 0
    assert push_sender.sent == []


@pytest.mark.asyncio
async def test_promo_batches_are_claimed_only_inside_their_tenant(client, test_user):
    batch = (await client.post("/api/promocodes", json={
        "name": "Members",
        "discountType": "fixed",
        "discountValue": 5,
        "codes": ["MEMBER-1", "MEMBER-2"],
    })).json()

    for outsider in (SOLO, RIVAL):
        _act_as(outsider)
        resp = await client.post("/api/promocodes/get-code", json={"batchId": batch["id"]})
        assert resp.status_code == 404
        resp = await client.post("/api/promocodes/get-code", json={"batchName": "Members"})
        assert resp.status_code == 404

    _act_as(test_user)
    resp = await client.post("/api/promocodes/get-code", json={"batchId": batch["id"]})
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_owner_without_organization_claims_own_batch(client):
    _act_as(SOLO)
    resp = await client.post("/api/promocodes", json={
        "name": "Solo deals",
        "discountType": "percentage",
        "discountValue": 10,
        "codes": ["SOLO-1"],
    })
    assert resp.status_code == 201

    resp = await client.post("/api/promocodes/get-code", json={"batchName": "Solo deals"})
    assert resp.status_code == 200
    assert resp.json()["code"] == "SOLO-1"

    _act_as(CurrentUser(id="other-solo", organization_id=None))
    resp = await client.post("/api/promocodes/get-code", json={"batchName": "Solo deals"})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_user_without_organization_cannot_trigger_another_owners_workflows(client, db_session, push_sender):
    await _subscribe(db_session, SOLO)
    _act_as(SOLO)
    await client.post("/api/workflows", json=BROADCAST)

    _act_as(CurrentUser(id="other-solo", organization_id=None))
    resp = await client.post("/api/events", json={"name": "ping", "userId": "solo"})
    assert resp.status_code == 201
    body = resp.json()
    assert body["event"]["userId"] == "other-solo"
    assert body["executions"] == []
    assert push_sender.sent == []


@pytest.mark.asyncio
async def test_webhooks_without_organization_only_see_their_owners_events(client, provider_stub):
    _act_as(SOLO)
    resp = await client.post("/api/webhooks", json={"url": "https://hooks.example.com/solo"})
    assert resp.status_code == 201

    _act_as(CurrentUser(id="other-solo", organization_id=None))
    await client.post("/api/events", json={"name": "signup"})
    await client.post("/api/events", json={"name": "signup", "userId": "solo"})
    assert provider_stub.requests_to("hooks.example.com") == []

    _act_as(SOLO)
    await client.post("/api/events", json={"name": "signup"})
    assert len(provider_stub.requests_to("hooks.example.com")) == 1
