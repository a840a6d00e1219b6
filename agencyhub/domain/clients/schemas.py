"""Client domain schemas - Pydantic models for validation"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import sanitize_text, validate_email


class ClientCreate(BaseModel):
    """Schema for creating a new client"""

    name: str = Field(min_length=1, max_length=255)
    businessName: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = None

    @field_validator("name", "businessName")
    @classmethod
    def clean_text(cls, v):
        if v is None:
            return v
        return sanitize_text(v, max_length=255)

    @field_validator("email")
    @classmethod
    def validate_client_email(cls, v):
        if v:
            return validate_email(v)
        return v


class ClientUpdate(ClientCreate):
    """Schema for updating an existing client"""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)


class LinkUserRequest(BaseModel):
    """Attach a signed-up user account to a client"""

    email: str

    @field_validator("email")
    @classmethod
    def validate_user_email(cls, v):
        return validate_email(v)


class ClientResponse(BaseModel):
    """Schema for client response"""

    id: int
    public_id: Optional[str] = None
    name: str
    businessName: Optional[str] = None
    email: Optional[str] = None
    lifetimeValue: Decimal
    totalOrders: int
    firstOrderDate: Optional[datetime] = None
    lastOrderDate: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, client) -> "ClientResponse":
        return cls(
            id=client.id,
            public_id=client.public_id,
            name=client.name,
            businessName=client.business_name,
            email=client.email,
            lifetimeValue=client.lifetime_value,
            totalOrders=client.total_orders,
            firstOrderDate=client.first_order_date,
            lastOrderDate=client.last_order_date,
            created_at=client.created_at,
        )
