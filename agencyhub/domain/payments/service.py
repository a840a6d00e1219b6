"""Stripe event service - applies verified gateway callbacks to orders"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Order
from ...services.stripe_service import StripeService
from ..orders.repository import OrderRepository
from ..orders.service import OrderService, PaymentConfirmation
from ..pricing.calculator import from_minor_units
from ..refunds.service import RefundService

logger = logging.getLogger(__name__)


def _as_int(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class StripeEventService:
    """
    Dispatch verified Stripe events to the order and refund services.

    Every handler is safe to replay: Stripe delivers at least once, and the
    underlying transitions skip work that is already applied.
    """

    def __init__(self, db: Session, gateway: StripeService):
        self.db = db
        self.orders = OrderService(db, gateway)
        self.refunds = RefundService(db, gateway)
        self.repo = OrderRepository()

    def handle_event(self, event: dict) -> dict:
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}
        logger.info(f"📥 Stripe event {event.get('id')} ({event_type})")

        handler = {
            "checkout.session.completed": self.handle_checkout_completed,
            "payment_intent.payment_failed": self.handle_payment_failed,
            "charge.refunded": self.handle_charge_refunded,
        }.get(event_type)

        result = None
        if handler is None:
            logger.info(f"ℹ️ Ignoring unhandled Stripe event type {event_type}")
        else:
            result = handler(obj)
        return {"event_type": event_type, "result": result}

    def _find_order(self, order_ref=None, session_id: Optional[str] = None,
                    payment_intent_id: Optional[str] = None) -> Optional[Order]:
        order_id = _as_int(order_ref)
        if order_id is not None:
            order = self.repo.get_order(self.db, order_id)
            if order:
                return order
        if session_id:
            order = self.repo.get_order_by_session_id(self.db, session_id)
            if order:
                return order
        if payment_intent_id:
            return self.repo.get_order_by_payment_intent(self.db, payment_intent_id)
        return None

    def handle_checkout_completed(self, session: dict) -> Optional[PaymentConfirmation]:
        metadata = session.get("metadata") or {}
        order = self._find_order(
            session.get("client_reference_id") or metadata.get("orderId"),
            session_id=session.get("id"),
        )
        if not order:
            logger.warning(f"⚠️ Checkout session {session.get('id')} does not match any order")
            return None

        if session.get("payment_status") != "paid":
            logger.info(
                f"ℹ️ Checkout session {session.get('id')} completed with payment_status="
                f"{session.get('payment_status')} - waiting for payment"
            )
            return None

        return self.orders.confirm_payment(order.id, payment_intent_id=session.get("payment_intent"))

    def handle_payment_failed(self, intent: dict) -> bool:
        metadata = intent.get("metadata") or {}
        order = self._find_order(metadata.get("orderId"), payment_intent_id=intent.get("id"))
        if not order:
            logger.warning(f"⚠️ Failed payment intent {intent.get('id')} does not match any order")
            return False

        error = intent.get("last_payment_error") or {}
        return self.orders.mark_payment_failed(order.id, error.get("message"))

    def handle_charge_refunded(self, charge: dict) -> Optional[Order]:
        """Returns the order when an unrecorded refund was applied to it"""
        payment_intent_id = charge.get("payment_intent")
        if not payment_intent_id:
            logger.warning(f"⚠️ Refunded charge {charge.get('id')} has no payment intent")
            return None

        refunds = (charge.get("refunds") or {}).get("data") or []
        applied = self.refunds.reconcile_gateway_refund(
            payment_intent_id,
            charge_amount=from_minor_units(charge.get("amount", 0)),
            amount_refunded=from_minor_units(charge.get("amount_refunded", 0)),
            refund_id=refunds[0].get("id") if refunds else None,
        )
        if not applied:
            return None
        return self.repo.get_order_by_payment_intent(self.db, payment_intent_id)
