"""Auth API — registration, login, token refresh, current account.

- POST /auth/register → create an account (0 points, not admin)
- POST /auth/login → username/password → JWT tokens
- POST /auth/refresh → refresh token → new token pair
- GET /auth/me → the caller's account, balance included
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ticktee.auth.dependencies import CurrentIdentity, get_current_user
from ticktee.auth.jwt import (
    TokenError,
    create_access_token,
    create_refresh_token,
    verify_token,
)
from ticktee.auth.password import hash_password, needs_upgrade, verify_password
from ticktee.db.engine import get_db
from ticktee.db.models import Account
from ticktee.schemas.account import AccountRead
from ticktee.services.ledger import LedgerStore

logger = structlog.get_logger()
router = APIRouter(prefix="/auth")


# ─── Schemas ─────────────────────────────────────────────


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    password: str = Field(..., min_length=6)
    name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=255)


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshRequest(BaseModel):
    refresh_token: str


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=AccountRead, status_code=201)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Account).where(Account.username == body.username))
    if result.scalars().first():
        raise HTTPException(status_code=409, detail="Username already exists")

    account = Account(
        username=body.username,
        password_hash=hash_password(body.password),
        name=body.name,
        email=body.email,
    )
    db.add(account)
    await db.flush()
    await db.commit()
    logger.info("auth.registered", account_id=account.id, username=account.username)
    return account


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Account).where(Account.username == body.username))
    account = result.scalars().first()

    if not account or not verify_password(body.password, account.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if needs_upgrade(account.password_hash):
        account.password_hash = hash_password(body.password)
        await db.commit()
        logger.info("auth.password_rehashed", account_id=account.id)

    return TokenResponse(
        access_token=create_access_token(account.id),
        refresh_token=create_refresh_token(account.id),
    )


# ─── Refresh ─────────────────────────────────────────────


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest):
    try:
        payload = verify_token(body.refresh_token, expected_type="refresh")
        account_id = int(payload["sub"])
    except (TokenError, KeyError, ValueError) as e:
        raise HTTPException(status_code=401, detail=str(e) or "Invalid token")

    return TokenResponse(
        access_token=create_access_token(account_id),
        refresh_token=create_refresh_token(account_id),
    )


# ─── Current account ─────────────────────────────────────


@router.get("/me", response_model=AccountRead)
async def get_me(
    identity: CurrentIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    account = await LedgerStore(db).get_account(identity.account_id)
    if not account:
        raise HTTPException(status_code=404, detail="User not found")
    return account
