"""Refund domain schemas - request validation and the typed refund audit record"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...shared.enums import RefundType
from ...shared.validators import sanitize_text
from ..pricing.calculator import ZERO, quantize_money

ORDER_METADATA_VERSION = 1


class RefundRequest(BaseModel):
    """Admin refund request; amount is only read for partial refunds"""

    type: RefundType
    amount: Optional[Decimal] = None
    reason: str

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v):
        if v is None:
            return v
        if v <= 0:
            raise ValueError("Amount must be positive")
        if quantize_money(v) != v:
            raise ValueError("Amount cannot have more than two decimal places")
        return quantize_money(v)

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v):
        v = sanitize_text(v, max_length=500)
        if not v:
            raise ValueError("Refund reason is required")
        return v

    @model_validator(mode="after")
    def require_amount_for_partial(self):
        if self.type == RefundType.PARTIAL and self.amount is None:
            raise ValueError("Amount is required for a partial refund")
        return self


class RefundRecord(BaseModel):
    """One refund as stored on the order, mirroring what the gateway executed"""

    id: str
    amount: Decimal
    reason: str
    type: RefundType
    processedAt: datetime
    processedBy: str
    source: str = "admin"


class OrderMetadata(BaseModel):
    """
    Versioned structure stored in Order.metadata.

    `refund` is the latest refund, kept for consumers that only care about
    the most recent one; `refund_history` holds every refund in order.
    """

    version: int = ORDER_METADATA_VERSION
    refund: Optional[RefundRecord] = None
    refund_history: list[RefundRecord] = Field(default_factory=list)

    @classmethod
    def load(cls, raw: Optional[dict]) -> "OrderMetadata":
        return cls.model_validate(raw or {})

    def dump(self) -> dict:
        return self.model_dump(mode="json")

    @property
    def refunded_total(self) -> Decimal:
        return quantize_money(sum((r.amount for r in self.refund_history), ZERO))

    def with_refund(self, record: RefundRecord) -> "OrderMetadata":
        return OrderMetadata(
            version=ORDER_METADATA_VERSION,
            refund=record,
            refund_history=[*self.refund_history, record],
        )


class RefundSummary(BaseModel):
    id: str
    amount: Decimal
    status: str
    type: RefundType


class RefundResponse(BaseModel):
    success: bool = True
    refund: RefundSummary
