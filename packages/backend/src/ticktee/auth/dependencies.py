"""FastAPI auth dependencies.

get_current_user resolves the Bearer token to a CurrentIdentity by
loading the account row; require_admin additionally insists on the
admin flag. Both are used either per-route or at include_router level.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ticktee.auth.jwt import TokenError, account_id_from_token
from ticktee.db.engine import get_db
from ticktee.services.ledger import LedgerStore


@dataclass
class CurrentIdentity:
    """The authenticated account making the request."""

    account_id: int
    username: str
    is_admin: bool = False


async def get_current_user_optional(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> Optional[CurrentIdentity]:
    """Soft auth: None when no Bearer token was sent, 401 when it is bad."""
    if not authorization or not authorization.startswith("Bearer "):
        return None

    try:
        account_id = account_id_from_token(authorization[7:])
    except TokenError as e:
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )

    account = await LedgerStore(db).get_account(account_id)
    if not account:
        raise HTTPException(
            status_code=401,
            detail="Account no longer exists",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CurrentIdentity(
        account_id=account.id,
        username=account.username,
        is_admin=account.is_admin,
    )


async def get_current_user(
    identity: Optional[CurrentIdentity] = Depends(get_current_user_optional),
) -> CurrentIdentity:
    """Hard auth: 401 without a valid token."""
    if not identity:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


async def require_admin(
    identity: CurrentIdentity = Depends(get_current_user),
) -> CurrentIdentity:
    if not identity.is_admin:
        raise HTTPException(status_code=403, detail="Forbidden")
    return identity
