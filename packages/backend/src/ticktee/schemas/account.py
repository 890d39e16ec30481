"""Pydantic schemas for accounts and admin account management."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AccountRead(BaseModel):
    id: int
    username: str
    name: Optional[str]
    email: Optional[str]
    points: int
    is_admin: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class AddPointsRequest(BaseModel):
    points: int = Field(..., ge=1, description="Points to grant (at least 1)")


class AdminFlagUpdate(BaseModel):
    is_admin: bool


class AccountSummary(BaseModel):
    """Public view of another account: no balance, no contact details."""

    id: int
    username: str
    name: Optional[str]
    is_admin: bool

    model_config = {"from_attributes": True}
