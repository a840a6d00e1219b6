"""Cart domain schemas - Pydantic models for validation"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class CartItemAdd(BaseModel):
    serviceTemplateId: int
    quantity: int = Field(default=1, ge=1)


class CartItemUpdate(BaseModel):
    quantity: int = Field(ge=1)


class CartItemResponse(BaseModel):
    serviceTemplateId: int
    name: str
    quantity: int
    unitPrice: Optional[Decimal] = None
    lineTotal: Optional[Decimal] = None
    # False once the service is withdrawn or unpriced; such lines block checkout
    available: bool


class CartResponse(BaseModel):
    items: list[CartItemResponse]
    itemCount: int
    subtotal: Decimal
    currency: str
    expiresAt: datetime
