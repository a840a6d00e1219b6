"""Payment callbacks router - Stripe webhook endpoint"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ...config import STRIPE_WEBHOOK_SECRET, STRIPE_WEBHOOK_TOLERANCE_SECONDS
from ...database import get_db
from ...models import Order
from ...rate_limiter import create_rate_limiter
from ...services.stripe_service import StripeService, get_stripe_service
from ...shared.enums import WebhookEvent
from ...webhook_security import verify_stripe_webhook
from ..orders.router import notify_payment_applied, order_event_payload
from ..orders.service import PaymentConfirmation
from ..webhooks.dispatcher import notify
from .service import StripeEventService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Webhooks"])

# Gateway callbacks - 100 requests per minute
stripe_webhook_rate_limit = create_rate_limiter(limit=100, window_seconds=60, key_prefix="webhook_stripe")


def get_stripe_event_service(
    db: Session = Depends(get_db),
    gateway: StripeService = Depends(get_stripe_service),
) -> StripeEventService:
    """Dependency injection for StripeEventService"""
    return StripeEventService(db, gateway)


@router.post("/webhooks/stripe")
async def stripe_webhook(
    request: Request,
    service: StripeEventService = Depends(get_stripe_event_service),
    _: None = Depends(stripe_webhook_rate_limit),
):
    """
    Receive Stripe events.

    The signature is verified against the raw body before anything is parsed;
    a bad signature is rejected with 400 and nothing is changed. Errors while
    applying the event return 5xx so Stripe retries the delivery.
    """
    event = await verify_stripe_webhook(request, STRIPE_WEBHOOK_SECRET, STRIPE_WEBHOOK_TOLERANCE_SECONDS)

    outcome = service.handle_event(event)
    result = outcome["result"]
    if isinstance(result, PaymentConfirmation):
        await notify_payment_applied(result)
    elif isinstance(result, Order):
        await notify(WebhookEvent.ORDER_REFUNDED.value, order_event_payload(result))

    return {"received": True, "event_type": outcome["event_type"]}


__all__ = ["router", "stripe_webhook", "get_stripe_event_service"]
