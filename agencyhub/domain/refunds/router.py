"""Refund router - admin refunds"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from ...services.stripe_service import StripeService, get_stripe_service
from ...shared.enums import WebhookEvent
from ..webhooks.dispatcher import notify
from .schemas import RefundRequest, RefundResponse, RefundSummary
from .service import RefundService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Refunds"])

refund_rate_limit = create_rate_limiter(limit=10, window_seconds=60, key_prefix="refund")


def get_refund_service(
    db: Session = Depends(get_db),
    gateway: StripeService = Depends(get_stripe_service),
) -> RefundService:
    """Dependency injection for RefundService"""
    return RefundService(db, gateway)


@router.post("/{order_id}/refund", response_model=RefundResponse)
async def refund_order(
    order_id: int,
    data: RefundRequest,
    admin: User = Depends(require_admin),
    service: RefundService = Depends(get_refund_service),
    _: None = Depends(refund_rate_limit),
):
    """Issue a full or partial refund through the payment gateway"""
    refund = service.process_refund(order_id, data, admin)
    await notify(
        WebhookEvent.ORDER_REFUNDED.value,
        {
            "orderId": order_id,
            "refundId": refund.id,
            "amount": str(refund.amount),
            "type": data.type.value,
        },
    )
    return RefundResponse(
        refund=RefundSummary(id=refund.id, amount=refund.amount, status=refund.status, type=data.type)
    )


__all__ = ["router", "refund_order", "get_refund_service"]
