"""Order domain schemas - Pydantic models for validation"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.enums import OrderStatus, PaymentStatus
from ..invoices.schemas import InvoiceResponse


class CheckoutItem(BaseModel):
    serviceTemplateId: int
    quantity: int = 1

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v):
        if v < 1:
            raise ValueError("Quantity must be at least 1")
        return v


class CheckoutRequest(BaseModel):
    """Schema for starting checkout; the client comes from the session"""

    items: list[CheckoutItem] = Field(min_length=1)


class CheckoutResponse(BaseModel):
    checkoutUrl: Optional[str]
    orderId: int
    orderNumber: str


class MarkPaidRequest(BaseModel):
    """Manual payment marker for offline payments and test tooling"""

    paymentIntentId: Optional[str] = Field(default=None, max_length=255)


class OrderItemResponse(BaseModel):
    id: int
    serviceTemplateId: int
    serviceName: str
    quantity: int
    unitPrice: Decimal
    total: Decimal


class TimelineEntryResponse(BaseModel):
    id: int
    status: str
    title: str
    description: Optional[str] = None
    completedAt: Optional[datetime] = None


class ContractStatusResponse(BaseModel):
    required: bool
    signed: bool
    signedAt: Optional[datetime] = None
    signedByName: Optional[str] = None


class OrderSummaryResponse(BaseModel):
    id: int
    orderNumber: str
    clientId: int
    status: OrderStatus
    paymentStatus: PaymentStatus
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    currency: str
    itemCount: int
    paidAt: Optional[datetime] = None
    completedAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, order) -> "OrderSummaryResponse":
        return cls(
            id=order.id,
            orderNumber=order.order_number,
            clientId=order.client_id,
            status=order.status,
            paymentStatus=order.payment_status,
            subtotal=order.subtotal,
            tax=order.tax,
            total=order.total,
            currency=order.currency,
            itemCount=sum(item.quantity for item in order.items),
            paidAt=order.paid_at,
            completedAt=order.completed_at,
            createdAt=order.created_at,
        )


class OrderResponse(OrderSummaryResponse):
    """Full order view used by the portal to gate activation on contract signature"""

    items: list[OrderItemResponse]
    timeline: list[TimelineEntryResponse]
    contract: ContractStatusResponse
    invoice: Optional[InvoiceResponse] = None
    isActivated: bool
    refundedAmount: Decimal = Decimal("0.00")

    @classmethod
    def from_model(cls, order, refunded_amount: Decimal = Decimal("0.00")) -> "OrderResponse":
        summary = OrderSummaryResponse.from_model(order)
        contract = order.contract
        return cls(
            **summary.model_dump(),
            items=[
                OrderItemResponse(
                    id=item.id,
                    serviceTemplateId=item.service_template_id,
                    serviceName=item.service_name,
                    quantity=item.quantity,
                    unitPrice=item.unit_price,
                    total=item.total,
                )
                for item in order.items
            ],
            timeline=[
                TimelineEntryResponse(
                    id=entry.id,
                    status=entry.status,
                    title=entry.title,
                    description=entry.description,
                    completedAt=entry.completed_at,
                )
                for entry in order.timeline
            ],
            contract=ContractStatusResponse(
                required=order.requires_contract,
                signed=bool(contract and contract.is_signed),
                signedAt=contract.signed_at if contract else None,
                signedByName=contract.signed_by_name if contract else None,
            ),
            invoice=InvoiceResponse.from_model(order.invoice) if order.invoice else None,
            isActivated=order.status == OrderStatus.COMPLETED,
            refundedAmount=refunded_amount,
        )
