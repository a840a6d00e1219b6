"""Refund service - admin refunds and reconciliation of gateway-side refunds"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ...database import transaction
from ...errors import NotFoundError, PersistenceError, RefundError
from ...models import Order, User
from ...services.stripe_service import GatewayRefund, StripeService
from ...shared.clock import utcnow
from ...shared.enums import OrderStatus, PaymentStatus, RefundType
from ..metrics.repository import MetricsRepository
from ..orders.repository import OrderRepository
from ..pricing.calculator import ZERO, quantize_money
from .schemas import OrderMetadata, RefundRecord, RefundRequest

logger = logging.getLogger(__name__)

REFUNDABLE_PAYMENT_STATUSES = {PaymentStatus.SUCCEEDED}


def describe_refund(amount: Decimal, reason: str) -> str:
    return f"Refunded ${amount:,.2f}. Reason: {reason}"


class RefundService:
    """Service layer for refund business logic"""

    def __init__(self, db: Session, gateway: StripeService):
        self.db = db
        self.gateway = gateway
        self.orders = OrderRepository()
        self.metrics = MetricsRepository()

    def _check_refundable(self, order: Order) -> Decimal:
        """Return the amount still refundable, or raise RefundError"""
        if not order.stripe_payment_intent_id:
            raise RefundError("No payment found for this order")
        if order.payment_status == PaymentStatus.REFUNDED:
            raise RefundError("Order has already been refunded")
        if order.payment_status not in REFUNDABLE_PAYMENT_STATUSES:
            raise RefundError(f"Order payment is {order.payment_status.value} and cannot be refunded")

        remaining = quantize_money(order.total - OrderMetadata.load(order.order_metadata).refunded_total)
        if remaining <= ZERO:
            raise RefundError("Nothing left to refund on this order")
        return remaining

    def process_refund(self, order_id: int, data: RefundRequest, admin: User) -> GatewayRefund:
        """
        Refund an order in full or in part.

        Every precondition is checked before the gateway is called. Once the
        gateway has executed the refund its id is logged straight away, then
        all local writes commit in one transaction. If that transaction fails
        the refund exists at the gateway only; the ERROR log carries the
        refund id so reconciliation (or the charge.refunded callback) can
        repair local state.
        """
        order = self.orders.get_order(self.db, order_id)
        if not order:
            raise NotFoundError("Order not found")

        remaining = self._check_refundable(order)
        if data.type == RefundType.PARTIAL:
            amount = data.amount
            if amount > order.total:
                raise RefundError("Refund amount exceeds order total")
            if amount > remaining:
                raise RefundError(f"Refund amount exceeds the remaining refundable amount ({remaining})")
        else:
            amount = remaining

        payment_intent_id = order.stripe_payment_intent_id
        # Release the read transaction before the network call
        self.db.rollback()

        logger.info(f"💸 Requesting {data.type.value} refund of {amount} for order {order_id}")
        gateway_refund = self.gateway.create_refund(
            payment_intent_id=payment_intent_id,
            amount=amount,
            metadata={
                "orderId": str(order_id),
                "adminId": str(admin.id),
                "refundReason": data.reason,
            },
        )
        logger.info(
            f"✅ Gateway refund {gateway_refund.id} executed for order {order_id} "
            f"(amount={gateway_refund.amount}, status={gateway_refund.status})"
        )

        record = RefundRecord(
            id=gateway_refund.id,
            amount=amount,
            reason=data.reason,
            type=data.type,
            processedAt=utcnow(),
            processedBy=str(admin.id),
        )
        try:
            self._record_refund(order_id, record)
        except PersistenceError:
            logger.error(
                f"❌ RECONCILIATION REQUIRED: gateway refund {gateway_refund.id} "
                f"({amount}) for order {order_id} was not recorded locally"
            )
            raise
        return gateway_refund

    def _record_refund(self, order_id: int, record: RefundRecord) -> Order:
        """Apply a refund that already happened at the gateway, atomically"""
        with transaction(self.db, f"refund recording for order {order_id}"):
            order = self.orders.get_order(self.db, order_id, for_update=True)
            if not order:
                raise NotFoundError("Order not found")

            metadata = OrderMetadata.load(order.order_metadata)
            if any(existing.id == record.id for existing in metadata.refund_history):
                logger.info(f"ℹ️ Refund {record.id} already recorded on order {order_id}")
                return order

            order.order_metadata = metadata.with_refund(record).dump()

            if record.type == RefundType.FULL:
                order.status = OrderStatus.REFUNDED
                order.payment_status = PaymentStatus.REFUNDED
                self.metrics.record_client_refund(self.db, order.client_id, record.amount)
                timeline_status, title = "REFUNDED", "Full refund processed"
            else:
                timeline_status, title = "PARTIAL_REFUND", "Partial refund processed"

            self.orders.add_timeline_entry(
                self.db, order, timeline_status, title, describe_refund(record.amount, record.reason)
            )
            self.metrics.increment_daily_metrics(self.db, utcnow().date(), refund_amount=record.amount)

        logger.info(f"✅ Refund {record.id} recorded on order {order_id} ({record.type.value})")
        return order

    def reconcile_gateway_refund(
        self,
        payment_intent_id: str,
        charge_amount: Decimal,
        amount_refunded: Decimal,
        refund_id: Optional[str] = None,
    ) -> bool:
        """
        Bring local state in line with a refund reported by the gateway.

        Refunds created through process_refund are already recorded and are
        skipped; only the difference between the gateway's refunded total and
        the locally recorded total is applied. Returns True if anything changed.
        """
        order = self.orders.get_order_by_payment_intent(self.db, payment_intent_id)
        if not order:
            logger.warning(f"⚠️ No order for refunded payment intent {payment_intent_id}")
            return False
        if order.payment_status == PaymentStatus.REFUNDED:
            logger.info(f"ℹ️ Order {order.id} already fully refunded - nothing to reconcile")
            return False

        recorded = OrderMetadata.load(order.order_metadata).refunded_total
        outstanding = quantize_money(amount_refunded - recorded)
        if outstanding <= ZERO:
            logger.info(f"ℹ️ Gateway refunds for order {order.id} already recorded")
            return False

        is_full = amount_refunded >= charge_amount
        record = RefundRecord(
            id=refund_id or f"{payment_intent_id}:{amount_refunded}",
            amount=outstanding,
            reason="Refund issued from the payment gateway",
            type=RefundType.FULL if is_full else RefundType.PARTIAL,
            processedAt=utcnow(),
            processedBy="gateway",
            source="gateway",
        )
        logger.warning(f"⚠️ Reconciling unrecorded gateway refund {record.id} on order {order.id}")
        self._record_refund(order.id, record)
        return True
