"""Order router - checkout, order reads and the manual payment marker"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_admin, require_client
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from ...services.stripe_service import StripeService, get_stripe_service
from ...shared.enums import OrderStatus, WebhookEvent
from ..pricing.calculator import LineItemRequest
from ..webhooks.dispatcher import notify
from .schemas import (
    CheckoutRequest,
    CheckoutResponse,
    MarkPaidRequest,
    OrderResponse,
    OrderSummaryResponse,
)
from .service import OrderService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Orders"])

checkout_rate_limit = create_rate_limiter(limit=20, window_seconds=60, key_prefix="checkout")


def get_order_service(
    db: Session = Depends(get_db),
    gateway: StripeService = Depends(get_stripe_service),
) -> OrderService:
    """Dependency injection for OrderService"""
    return OrderService(db, gateway)


def order_event_payload(order) -> dict:
    return {
        "orderId": order.id,
        "orderNumber": order.order_number,
        "clientId": order.client_id,
        "status": order.status.value,
        "paymentStatus": order.payment_status.value,
        "total": str(order.total),
        "currency": order.currency,
    }


async def notify_payment_applied(confirmation) -> None:
    """Queue the webhook events produced by a newly applied payment"""
    if not confirmation.applied:
        return
    payload = order_event_payload(confirmation.order)
    await notify(WebhookEvent.ORDER_PAID.value, payload)
    if confirmation.activated:
        await notify(WebhookEvent.ORDER_COMPLETED.value, payload)


# ============================================================================
# CHECKOUT
# ============================================================================


@router.post("/checkout", response_model=CheckoutResponse)
async def checkout(
    data: CheckoutRequest,
    current_user: User = Depends(require_client),
    service: OrderService = Depends(get_order_service),
    _: None = Depends(checkout_rate_limit),
):
    """Create a PENDING order for the signed-in client and return the hosted checkout URL"""
    order, session = service.create_checkout(
        current_user,
        [LineItemRequest(item.serviceTemplateId, item.quantity) for item in data.items],
    )
    await notify(WebhookEvent.ORDER_CREATED.value, order_event_payload(order))
    return CheckoutResponse(checkoutUrl=session.url, orderId=order.id, orderNumber=order.order_number)


# ============================================================================
# ORDERS
# ============================================================================


@router.get("/orders", response_model=list[OrderSummaryResponse])
async def list_orders(
    status: Optional[OrderStatus] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """List orders: clients see their own, admins see all"""
    orders = service.list_orders(current_user, status=status, limit=limit, offset=offset)
    return [OrderSummaryResponse.from_model(o) for o in orders]


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Get an order with items, timeline, contract status and invoice"""
    order = service.get_order(order_id, current_user)
    return OrderResponse.from_model(order, refunded_amount=service.refunded_amount(order))


@router.post("/orders/{order_id}/mark-paid", response_model=OrderResponse)
async def mark_order_paid(
    order_id: int,
    data: MarkPaidRequest,
    _admin: User = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
):
    """
    Manually confirm payment (offline payments, test tooling).
    Safe to repeat: an already-paid order is returned unchanged.
    """
    confirmation = service.confirm_payment(order_id, payment_intent_id=data.paymentIntentId)
    await notify_payment_applied(confirmation)
    order = confirmation.order
    return OrderResponse.from_model(order, refunded_amount=service.refunded_amount(order))


__all__ = ["router", "checkout", "list_orders", "get_order", "mark_order_paid", "get_order_service"]
