"""Pydantic schemas for direct messages."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class MessageCreate(BaseModel):
    to_account_id: int
    content: str = Field(..., min_length=1, max_length=5000)
    from_account_id: Optional[int] = Field(
        None, description="Must equal the caller's account ID when given"
    )


class MessageRead(BaseModel):
    id: int
    from_account_id: int
    to_account_id: int
    content: str
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}
