"""
Integration tests for Authentication Flow.

Verifies Register -> Login -> Me -> Logout with role rules.
"""

import pytest
from sqlalchemy import select

from poultrymitra.app.models.audit_log import AuditLog
from poultrymitra.app.services.audit import AuditAction


async def register(client, username, role="FARMER", **extra):
    payload = {
        "email": f"{username}@test.com",
        "username": username,
        "password": "password123",
        "role": role,
        **extra
    }
    return await client.post("/v1/auth/register", json=payload)


@pytest.mark.asyncio
async def test_admin_registration_blocked(client):
    """
    ADMIN role cannot be created via API.
    """
    response = await register(client, "admin", role="ADMIN")
    assert response.status_code == 403
    data = response.json()
    assert data["error_code"] == "ERR_FORBIDDEN"
    assert "Admin users cannot be registered" in data["message"]


@pytest.mark.asyncio
async def test_farmer_registration_defaults(client):
    response = await register(client, "farmer_one", name="Farmer One")
    assert response.status_code == 201
    data = response.json()
    assert data["role"] == "FARMER"
    assert data["dealer_code"] is None
    assert data["access_token"]

    response = await client.get("/v1/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert response.status_code == 200
    me_data = response.json()
    assert me_data["username"] == "farmer_one"
    assert me_data["plan_type"] == "FREE"
    assert me_data["name"] == "Farmer One"


@pytest.mark.asyncio
async def test_dealer_receives_dealer_code(client):
    response = await register(client, "dealer_one", role="DEALER", plan_type="PREMIUM")
    assert response.status_code == 201
    data = response.json()
    assert data["role"] == "DEALER"
    assert data["dealer_code"].startswith("PM-DLR-")

    response = await client.get("/v1/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert response.json()["dealer_code"] == data["dealer_code"]
    assert response.json()["plan_type"] == "PREMIUM"


@pytest.mark.asyncio
async def test_duplicate_username_rejected(client):
    assert (await register(client, "dup_user")).status_code == 201

    response = await client.post("/v1/auth/register", json={
        "email": "other@test.com",
        "username": "dup_user",
        "password": "password123",
    })
    assert response.status_code == 400
    assert response.json()["message"] == "Username already registered"


@pytest.mark.asyncio
async def test_login_with_username_or_email(client, db_session):
    await register(client, "login_user")

    response = await client.post("/v1/auth/login", json={"username": "login_user", "password": "password123"})
    assert response.status_code == 200
    assert response.json()["username"] == "login_user"

    response = await client.post("/v1/auth/login", json={"username": "login_user@test.com", "password": "password123"})
    assert response.status_code == 200

    response = await client.post("/v1/auth/login", json={"username": "login_user", "password": "wrong-pass"})
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"

    result = await db_session.execute(
        select(AuditLog.action).where(AuditLog.actor_username == "login_user").order_by(AuditLog.id)
    )
    actions = list(result.scalars().all())
    assert actions == [
        AuditAction.USER_REGISTERED,
        AuditAction.LOGIN_SUCCESS,
        AuditAction.LOGIN_SUCCESS,
        AuditAction.LOGIN_FAILED,
    ]


@pytest.mark.asyncio
async def test_logout_revokes_token(client):
    token = (await register(client, "logout_user")).json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}

    response = await client.post("/v1/auth/logout", headers=headers)
    assert response.status_code == 204

    response = await client.get("/v1/auth/me", headers=headers)
    assert response.status_code == 401
    assert response.json()["message"] == "Token has been revoked"


@pytest.mark.asyncio
async def test_missing_or_bad_token(client):
    response = await client.get("/v1/ledger/entries")
    assert response.status_code in (401, 403)

    response = await client.get("/v1/ledger/entries", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["redis"] == "ok"
    assert "X-Correlation-ID" in response.headers


@pytest.mark.asyncio
async def test_deactivated_user_loses_access_immediately(client, db_session):
    """
    A deactivated account is refused on its next request, not at token expiry.
    """
    from poultrymitra.app.models.user import User

    data = (await register(client, "soon_inactive")).json()
    headers = {"Authorization": f"Bearer {data['access_token']}"}
    assert (await client.get("/v1/auth/me", headers=headers)).status_code == 200

    user = await db_session.get(User, data["user_id"])
    user.is_active = False
    await db_session.commit()

    response = await client.get("/v1/auth/me", headers=headers)
    assert response.status_code == 403

    response = await client.post("/v1/auth/login", json={"username": "soon_inactive", "password": "password123"})
    assert response.status_code == 403
