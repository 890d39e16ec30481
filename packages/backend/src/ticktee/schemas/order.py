"""Pydantic schemas for orders.

The client only names products and quantities; prices and the total are
computed server-side at checkout.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class OrderItemCreate(BaseModel):
    product_id: int
    quantity: int = Field(default=1, ge=1)
    size: Optional[str] = Field(None, max_length=20)


class OrderCreate(BaseModel):
    items: list[OrderItemCreate] = Field(..., min_length=1)


class OrderItemRead(BaseModel):
    id: int
    product_id: int
    quantity: int
    size: Optional[str]
    price_per_item: int

    model_config = {"from_attributes": True}


class OrderRead(BaseModel):
    id: int
    account_id: int
    total_points: int
    status: str
    created_at: datetime
    items: list[OrderItemRead] = []

    model_config = {"from_attributes": True}


class OrderStatusUpdate(BaseModel):
    status: str = Field(..., pattern=r"^(pending|shipped|delivered|cancelled)$")
