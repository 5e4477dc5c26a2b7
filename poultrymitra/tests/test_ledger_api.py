"""
Ledger API Tests.

Covers:
- Append / list / balance for the caller's own ledger
- Error envelope for rejected amounts
- Ownership: only admins read or write another user's ledger
"""

import pytest

from poultrymitra.app.models.enums import UserRole


async def login(client, username, password="password123"):
    response = await client.post("/v1/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
async def farmer_headers(client, make_user):
    await make_user("ledger_farmer")
    return await login(client, "ledger_farmer")


@pytest.fixture
async def admin_headers(client, make_user):
    await make_user("ledger_admin", UserRole.ADMIN)
    return await login(client, "ledger_admin")


@pytest.mark.asyncio
async def test_append_and_read_ledger(client, farmer_headers):
    response = await client.post("/v1/ledger/entries", headers=farmer_headers, json={
        "description": "Chick sale",
        "amount": "1000",
        "entry_type": "CREDIT"
    })
    assert response.status_code == 201
    first = response.json()
    assert first["balance_after"] == "1000.00"
    assert first["sequence"] == 1

    response = await client.post("/v1/ledger/entries", headers=farmer_headers, json={
        "description": "Feed purchase",
        "amount": 300,
        "entry_type": "DEBIT"
    })
    assert response.status_code == 201
    assert response.json()["balance_after"] == "700.00"

    response = await client.get("/v1/ledger/entries", headers=farmer_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert [e["description"] for e in data["entries"]] == ["Feed purchase", "Chick sale"]

    response = await client.get("/v1/ledger/balance", headers=farmer_headers)
    assert response.json()["balance"] == "700.00"


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["0", "-5", "12.345"])
async def test_invalid_amount_returns_400(client, farmer_headers, amount):
    response = await client.post("/v1/ledger/entries", headers=farmer_headers, json={
        "description": "Bad entry",
        "amount": amount,
        "entry_type": "CREDIT"
    })
    assert response.status_code == 400
    data = response.json()
    assert data["error_code"] == "ERR_INVALID_ARGUMENT"
    assert data["details"]["field"] == "amount"

    response = await client.get("/v1/ledger/entries", headers=farmer_headers)
    assert response.json()["total"] == 0


@pytest.mark.asyncio
async def test_unknown_entry_type_is_validation_error(client, farmer_headers):
    response = await client.post("/v1/ledger/entries", headers=farmer_headers, json={
        "description": "Refund",
        "amount": "10",
        "entry_type": "REFUND"
    })
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_farmer_cannot_touch_other_ledger(client, farmer_headers, make_user):
    other = await make_user("other_ledger_farmer")

    response = await client.get(f"/v1/ledger/entries?user_id={other.id}", headers=farmer_headers)
    assert response.status_code == 403

    response = await client.post("/v1/ledger/entries", headers=farmer_headers, json={
        "description": "Sneaky",
        "amount": "10",
        "entry_type": "CREDIT",
        "user_id": other.id
    })
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_reads_and_writes_any_ledger(client, admin_headers, make_user, ledger):
    farmer = await make_user("managed_farmer")

    response = await client.post("/v1/ledger/entries", headers=admin_headers, json={
        "description": "Opening balance",
        "amount": "5000",
        "entry_type": "CREDIT",
        "user_id": farmer.id
    })
    assert response.status_code == 201
    assert response.json()["user_id"] == farmer.id

    response = await client.get(f"/v1/ledger/balance?user_id={farmer.id}", headers=admin_headers)
    assert response.json() == {"user_id": farmer.id, "balance": "5000.00"}

    assert await ledger.get_balance(farmer.id) == 5000


@pytest.mark.asyncio
async def test_admin_transactions_view(client, admin_headers, farmer_headers):
    await client.post("/v1/ledger/entries", headers=farmer_headers, json={
        "description": "Egg sale", "amount": "250", "entry_type": "CREDIT"
    })

    response = await client.get("/v1/admin/ledger/entries", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["total"] == 1

    response = await client.get("/v1/admin/ledger/entries", headers=farmer_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_append_for_unknown_user_returns_404(client, admin_headers):
    response = await client.post("/v1/ledger/entries", headers=admin_headers, json={
        "description": "Ghost", "amount": "10", "entry_type": "CREDIT", "user_id": 9999
    })
    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"
