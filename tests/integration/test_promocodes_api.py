"""
Integration tests for promo code batches and claiming.
"""
from datetime import datetime, timedelta, timezone

import pytest


def _batch(**overrides):
    body = {
        "name": "Spring",
        "discountType": "percentage",
        "discountValue": 20,
        "codes": ["spring-a", "SPRING-B", "spring-c"],
    }
    body.update(overrides)
    return body


async def _create(client, **overrides):
    resp = await client.post("/api/promocodes", json=_batch(**overrides))
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_create_batch_normalizes_codes(client):
    batch = await _create(client, minOrderValue=50)
    assert batch["totalCodes"] == 3
    assert batch["usedCodes"] == 0
    assert batch["isActive"] is True
    assert batch["minOrderValue"] == 50

    resp = await client.get(f"/api/promocodes/{batch['id']}/codes")
    assert [c["code"] for c in resp.json()["codes"]] == ["SPRING-A", "SPRING-B", "SPRING-C"]


@pytest.mark.asyncio
async def test_duplicate_codes_rejected(client):
    resp = await client.post("/api/promocodes", json=_batch(codes=["X1", "x1"]))
    assert resp.status_code == 409
    assert resp.json()["details"] == {"duplicates": ["X1"]}

    await _create(client)
    resp = await client.post("/api/promocodes", json=_batch(name="Again", codes=["SPRING-B", "NEW-1"]))
    assert resp.status_code == 409
    assert resp.json()["details"] == {"duplicates": ["SPRING-B"]}


@pytest.mark.asyncio
async def test_invalid_percentage_rejected(client):
    resp = await client.post("/api/promocodes", json=_batch(discountValue=150))
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_sequential_claims_follow_insertion_order(client):
    batch = await _create(client)
    codes = []
    for _ in range(3):
        resp = await client.post("/api/promocodes/get-code", json={"batchId": batch["id"], "codeType": "sequential"})
        assert resp.status_code == 200
        codes.append(resp.json()["code"])
    assert codes == ["SPRING-A", "SPRING-B", "SPRING-C"]


@pytest.mark.asyncio
async def test_codes_are_never_claimed_twice(client):
    batch = await _create(client)
    claimed = set()
    for _ in range(3):
        resp = await client.post("/api/promocodes/get-code", json={"batchName": "Spring", "userId": "shopper-1"})
        claimed.add(resp.json()["code"])
    assert claimed == {"SPRING-A", "SPRING-B", "SPRING-C"}

    resp = await client.post("/api/promocodes/get-code", json={"batchId": batch["id"]})
    assert resp.status_code == 404
    assert resp.json() == {"error": "No available promo codes in this batch"}

    resp = await client.get(f"/api/promocodes/{batch['id']}")
    assert resp.json()["usedCodes"] == 3


@pytest.mark.asyncio
async def test_claim_response_shape(client):
    batch = await _create(client, discountType="fixed", discountValue=5, minOrderValue=30)
    resp = await client.post("/api/promocodes/get-code", json={"batchId": batch["id"]})
    body = resp.json()
    assert set(body) == {"code", "batchId", "batchName", "discountType", "discountValue", "minOrderValue"}
    assert body["batchName"] == "Spring"
    assert body["discountType"] == "fixed"
    assert body["minOrderValue"] == 30


@pytest.mark.asyncio
async def test_specific_code(client):
    batch = await _create(client)
    resp = await client.post(
        "/api/promocodes/get-code",
        json={"batchId": batch["id"], "codeType": "specific", "specificCode": " spring-c "},
    )
    assert resp.json()["code"] == "SPRING-C"

    resp = await client.post(
        "/api/promocodes/get-code",
        json={"batchId": batch["id"], "codeType": "specific", "specificCode": "SPRING-C"},
    )
    assert resp.status_code == 404

    resp = await client.post("/api/promocodes/get-code", json={"batchId": batch["id"], "codeType": "specific"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_claim_requires_batch_reference(client):
    resp = await client.post("/api/promocodes/get-code", json={"codeType": "random"})
    assert resp.status_code == 400

    resp = await client.post("/api/promocodes/get-code", json={"batchId": "missing"})
    assert resp.status_code == 404
    assert resp.json() == {"error": "Promo code batch not found"}


@pytest.mark.asyncio
async def test_inactive_batch_refuses_claims(client):
    batch = await _create(client)
    resp = await client.put(f"/api/promocodes/{batch['id']}", json={"isActive": False})
    assert resp.json()["isActive"] is False

    resp = await client.post("/api/promocodes/get-code", json={"batchId": batch["id"]})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Promo code batch is not active"


@pytest.mark.asyncio
async def test_validity_window(client):
    now = datetime.now(timezone.utc)
    expired = await _create(
        client, name="Old",
        validFrom=(now - timedelta(days=10)).isoformat(), validUntil=(now - timedelta(days=1)).isoformat(),
        codes=["OLD-1"],
    )
    future = await _create(client, name="Later", validFrom=(now + timedelta(days=1)).isoformat(), codes=["LATER-1"])

    resp = await client.post("/api/promocodes/get-code", json={"batchId": expired["id"]})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Promo code batch has expired"

    resp = await client.post("/api/promocodes/get-code", json={"batchId": future["id"]})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Promo code batch is not yet valid"


@pytest.mark.asyncio
async def test_usage_limit(client):
    batch = await _create(client, maxUses=1)
    assert (await client.post("/api/promocodes/get-code", json={"batchId": batch["id"]})).status_code == 200

    resp = await client.post("/api/promocodes/get-code", json={"batchId": batch["id"]})
    assert resp.status_code == 409
    assert resp.json()["error"] == "Promo code batch usage limit reached"


@pytest.mark.asyncio
async def test_code_listing_filters_and_summary(client):
    batch = await _create(client)
    await client.post("/api/promocodes/get-code", json={"batchId": batch["id"], "codeType": "sequential", "userId": "u-1"})

    used = (await client.get(f"/api/promocodes/{batch['id']}/codes", params={"used": "true"})).json()
    assert used["total"] == 1
    assert used["codes"][0]["code"] == "SPRING-A"
    assert used["codes"][0]["usedBy"] == "u-1"

    unused = (await client.get(f"/api/promocodes/{batch['id']}/codes", params={"used": "false", "limit": 1})).json()
    assert unused["total"] == 2
    assert len(unused["codes"]) == 1

    await _create(client, name="Summer", codes=["SUMMER-1"])
    summary = (await client.get("/api/promocodes")).json()["summary"]
    assert summary == {
        "totalBatches": 2,
        "activeBatches": 2,
        "totalCodes": 4,
        "usedCodes": 1,
        "availableCodes": 3,
    }


@pytest.mark.asyncio
async def test_adding_codes_and_deleting_batch(client):
    batch = await _create(client)
    resp = await client.put(f"/api/promocodes/{batch['id']}", json={"codes": ["spring-d"]})
    assert resp.json()["totalCodes"] == 4

    resp = await client.put(f"/api/promocodes/{batch['id']}", json={"codes": ["SPRING-A"]})
    assert resp.status_code == 409

    resp = await client.delete(f"/api/promocodes/{batch['id']}")
    assert resp.json() == {"success": True, "id": batch["id"]}
    assert (await client.get(f"/api/promocodes/{batch['id']}")).status_code == 404
