"""Pydantic schemas for point transfers.

from_account_id is optional on the way in: the sender is always the
caller, and when a client does send it, it must match (403 otherwise).
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class TransferCreate(BaseModel):
    to_account_id: int = Field(..., description="Recipient account ID")
    points: int = Field(..., description="Points to send (positive)")
    reason: Optional[str] = Field(None, max_length=500)
    from_account_id: Optional[int] = Field(
        None, description="Must equal the caller's account ID when given"
    )


class TransferRead(BaseModel):
    id: int
    from_account_id: int
    to_account_id: int
    points: int
    reason: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}
