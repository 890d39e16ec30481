"""Auth tests.

1. Registration + duplicate prevention
2. Login → JWT tokens (bcrypt and legacy scrypt hashes)
3. Token refresh
4. Protected /me endpoint
"""

import hashlib

import pytest
from sqlalchemy import select

from ticktee.auth.jwt import create_refresh_token
from ticktee.db.models import Account


def _legacy_hash(password: str, salt: str = "a1b2c3d4") -> str:
    digest = hashlib.scrypt(
        password.encode(), salt=salt.encode(), n=16384, r=8, p=1, dklen=64
    ).hex()
    return f"{digest}.{salt}"


# ═══════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_user(client):
    r = await client.post(
        "/api/v1/auth/register",
        json={
            "username": "nour",
            "password": "secure_password_123",
            "name": "Nour",
            "email": "nour@example.com",
        },
    )
    assert r.status_code == 201
    user = r.json()
    assert user["username"] == "nour"
    assert user["points"] == 0
    assert user["is_admin"] is False
    assert "password_hash" not in user


@pytest.mark.asyncio
async def test_register_duplicate_username(client):
    body = {"username": "dup", "password": "password_123"}
    r1 = await client.post("/api/v1/auth/register", json=body)
    assert r1.status_code == 201

    r2 = await client.post("/api/v1/auth/register", json=body)
    assert r2.status_code == 409


@pytest.mark.asyncio
async def test_register_short_password(client):
    r = await client.post(
        "/api/v1/auth/register", json={"username": "shorty", "password": "abc"}
    )
    assert r.status_code == 400


# ═══════════════════════════════════════════════════════════
# Login / refresh / me
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login_and_me(client):
    await client.post(
        "/api/v1/auth/register",
        json={"username": "logme", "password": "password_123"},
    )
    r = await client.post(
        "/api/v1/auth/login",
        json={"username": "logme", "password": "password_123"},
    )
    assert r.status_code == 200
    tokens = r.json()
    assert tokens["token_type"] == "bearer"

    me = await client.get(
        "/api/v1/auth/me",
        headers={"Authorization": f"Bearer {tokens['access_token']}"},
    )
    assert me.status_code == 200
    assert me.json()["username"] == "logme"


@pytest.mark.asyncio
async def test_login_wrong_password(client):
    await client.post(
        "/api/v1/auth/register",
        json={"username": "wrongpw", "password": "password_123"},
    )
    r = await client.post(
        "/api/v1/auth/login",
        json={"username": "wrongpw", "password": "nope_nope"},
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_login_upgrades_legacy_hash(client, db_session):
    db_session.add(Account(username="legacy", password_hash=_legacy_hash("old_secret")))
    await db_session.commit()

    r = await client.post(
        "/api/v1/auth/login", json={"username": "legacy", "password": "old_secret"}
    )
    assert r.status_code == 200

    result = await db_session.execute(
        select(Account.password_hash).where(Account.username == "legacy")
    )
    assert result.scalar_one().startswith("$2")


@pytest.mark.asyncio
async def test_refresh_token(client, create_account):
    account = await create_account()
    r = await client.post(
        "/api/v1/auth/refresh",
        json={"refresh_token": create_refresh_token(account.id)},
    )
    assert r.status_code == 200
    assert r.json()["access_token"]


@pytest.mark.asyncio
async def test_refresh_rejects_access_token(client, create_account, auth_headers):
    account = await create_account()
    access = auth_headers(account)["Authorization"][7:]
    r = await client.post("/api/v1/auth/refresh", json={"refresh_token": access})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_me_requires_auth(client):
    r = await client.get("/api/v1/auth/me")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_garbage_token_rejected(client):
    r = await client.get(
        "/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert r.status_code == 401
