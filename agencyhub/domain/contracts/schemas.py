"""Contract domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import sanitize_text, validate_email

# Drawn signatures arrive as data URLs
MAX_SIGNATURE_LENGTH = 500_000


class ContractSignRequest(BaseModel):
    """Schema for signing the service agreement attached to an order"""

    signatureData: str = Field(min_length=1, max_length=MAX_SIGNATURE_LENGTH)
    fullName: str = Field(min_length=1, max_length=255)
    email: str
    userAgent: Optional[str] = Field(default=None, max_length=500)

    @field_validator("fullName")
    @classmethod
    def validate_full_name(cls, v):
        v = sanitize_text(v, max_length=255)
        if not v:
            raise ValueError("Full name is required")
        return v

    @field_validator("email")
    @classmethod
    def validate_signer_email(cls, v):
        return validate_email(v)


class ContractResponse(BaseModel):
    orderId: int
    templateContent: str
    signed: bool
    signedAt: Optional[datetime] = None
    signedByName: Optional[str] = None
    signedByEmail: Optional[str] = None

    @classmethod
    def from_model(cls, contract) -> "ContractResponse":
        return cls(
            orderId=contract.order_id,
            templateContent=contract.template_content,
            signed=contract.is_signed,
            signedAt=contract.signed_at,
            signedByName=contract.signed_by_name,
            signedByEmail=contract.signed_by_email,
        )
