"""JWT token creation and verification.

- Access token: short-lived, sent as `Authorization: Bearer ...` and as
  the `?token=` query param on the WebSocket.
- Refresh token: long-lived, only accepted by /auth/refresh.

`sub` is the account ID as a string. Privilege is deliberately not
embedded in the token; it is looked up per request.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from ticktee.config import settings


class TokenError(Exception):
    """Raised when token verification fails."""


def _encode(account_id: int, token_type: str, expires: datetime) -> str:
    payload = {
        "sub": str(account_id),
        "type": token_type,
        "exp": expires,
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_access_token(account_id: int, expires_minutes: Optional[int] = None) -> str:
    expires = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.access_token_expire_minutes
    )
    return _encode(account_id, "access", expires)


def create_refresh_token(account_id: int, expires_days: Optional[int] = None) -> str:
    expires = datetime.now(timezone.utc) + timedelta(
        days=expires_days or settings.refresh_token_expire_days
    )
    return _encode(account_id, "refresh", expires)


def verify_token(token: str, expected_type: str = "access") -> dict:
    """Decode a token and check its type. Raises TokenError on failure."""
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    if payload.get("type") != expected_type:
        raise TokenError(f"Not an {expected_type} token")
    return payload


def account_id_from_token(token: str) -> int:
    """Verify an access token and return the account ID it was issued for."""
    payload = verify_token(token)
    try:
        return int(payload["sub"])
    except (KeyError, ValueError):
        raise TokenError("Invalid token subject")
