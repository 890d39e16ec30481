"""Pydantic schemas for the product catalog.

Create vs. Update: every field of ProductUpdate is optional and routes
apply only the fields the client actually sent (exclude_unset).
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=500)
    category: str = Field(..., min_length=1, max_length=100)
    price: int = Field(..., ge=0, description="Price in points")
    stock: int = Field(default=0, ge=0)
    unlimited: bool = False
    type: str = Field(..., pattern=r"^(ticket|tshirt)$")
    event_date: Optional[datetime] = None
    event_location: Optional[str] = Field(None, max_length=200)
    sizes: Optional[str] = Field(None, max_length=100, description="e.g. 'S,M,L,XL'")


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=500)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    price: Optional[int] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    unlimited: Optional[bool] = None
    event_date: Optional[datetime] = None
    event_location: Optional[str] = Field(None, max_length=200)
    sizes: Optional[str] = Field(None, max_length=100)


class ProductRead(BaseModel):
    id: int
    name: str
    description: Optional[str]
    image_url: Optional[str]
    category: str
    price: int
    stock: int
    unlimited: bool
    type: str
    event_date: Optional[datetime]
    event_location: Optional[str]
    sizes: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}
