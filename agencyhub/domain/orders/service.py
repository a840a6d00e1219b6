"""Order service - checkout, payment confirmation and order reads"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...auth import assert_can_view_order
from ...config import APP_URL, DEFAULT_CURRENCY
from ...database import transaction
from ...errors import AppError, ConflictError, NotFoundError, OrderCreationError, ValidationError
from ...models import Order, ServiceContract, User
from ...services.stripe_service import CheckoutLine, CheckoutSession, StripeService
from ...shared.clock import utcnow
from ...shared.enums import OrderStatus, PaymentStatus, UserRole
from ..cart.service import CartService
from ..invoices.service import InvoiceService
from ..metrics.repository import MetricsRepository
from ..pricing.calculator import LineItemRequest, TaxPolicy, price_line_items
from ..refunds.schemas import OrderMetadata
from .repository import OrderRepository

logger = logging.getLogger(__name__)

# Payment states from which a confirmation may be applied
CONFIRMABLE_PAYMENT_STATUSES = {PaymentStatus.PENDING, PaymentStatus.FAILED}
# Payment states in which a repeated confirmation is a no-op
ALREADY_CONFIRMED_STATUSES = {PaymentStatus.SUCCEEDED, PaymentStatus.REFUNDED}


def format_money(amount) -> str:
    return f"${amount:,.2f}"


@dataclass
class PaymentConfirmation:
    order: Order
    applied: bool

    @property
    def activated(self) -> bool:
        return self.order.status == OrderStatus.COMPLETED


def activate_order(db: Session, order: Order) -> None:
    """
    Move a paid order to COMPLETED and issue its invoice.

    Runs inside the caller's transaction. Invoice creation is idempotent, so
    reaching this twice for the same order still yields a single invoice.
    """
    now = utcnow()
    order.status = OrderStatus.COMPLETED
    order.completed_at = now
    OrderRepository.add_timeline_entry(
        db, order, OrderStatus.COMPLETED.value, "Order completed", "Services activated"
    )
    InvoiceService(db).ensure_invoice(order)


class OrderService:
    """Service layer for order lifecycle business logic"""

    def __init__(self, db: Session, gateway: StripeService, tax_policy: Optional[TaxPolicy] = None):
        self.db = db
        self.gateway = gateway
        self.tax_policy = tax_policy
        self.repo = OrderRepository()
        self.metrics = MetricsRepository()

    # ========================================================================
    # CHECKOUT
    # ========================================================================

    def create_checkout(self, user: User, items: list[LineItemRequest]) -> tuple[Order, CheckoutSession]:
        """
        Create a PENDING order for the user's client and open a checkout session.

        Pricing problems and an unresolvable client are rejected before any
        write. The order, its items, the first timeline entry and the session
        id are committed together; a gateway failure rolls all of it back.
        """
        client = self.repo.get_client_for_user(self.db, user)
        if not client:
            logger.warning(f"⚠️ User {user.id} has no client record - checkout rejected")
            raise OrderCreationError("Client record not found for this account", status_code=404)

        templates = {
            template_id: template
            for template_id, template in self.repo.get_templates_by_ids(
                self.db, [item.service_template_id for item in items]
            ).items()
            if template.is_active
        }
        try:
            priced = price_line_items(items, templates, self.tax_policy, DEFAULT_CURRENCY)
        except ValidationError as e:
            logger.info(f"Checkout rejected for client {client.id}: {e.details}")
            raise OrderCreationError(e.message, details=e.details) from e

        logger.info(f"📥 Creating order for client {client.id}: {len(priced.lines)} line(s), total {priced.total}")

        with transaction(self.db, f"order creation for client {client.id}"):
            order = self.repo.create_order(self.db, client.id, priced)
            self.repo.add_timeline_entry(
                self.db,
                order,
                OrderStatus.PENDING.value,
                "Order created",
                f"Order {order.order_number} placed for {format_money(order.total)}",
            )
            session = self.gateway.create_checkout_session(
                lines=[CheckoutLine(line.service_name, line.unit_price, line.quantity) for line in priced.lines],
                currency=priced.currency,
                client_reference_id=str(order.id),
                metadata={"orderId": str(order.id), "clientId": str(client.id)},
                success_url=f"{APP_URL}/store/success?orderId={order.id}",
                cancel_url=f"{APP_URL}/store/cart",
                customer_email=client.email or user.email or None,
            )
            order.stripe_session_id = session.id

        logger.info(f"✅ Order {order.order_number} created with checkout session {session.id}")
        self._clear_cart(client.id)
        return order, session

    def _clear_cart(self, client_id: int) -> None:
        """Best-effort cleanup; the cart is a convenience cache"""
        try:
            CartService(self.db).clear_cart(client_id)
        except (SQLAlchemyError, AppError) as e:
            logger.warning(f"⚠️ Failed to clear cart for client {client_id}: {e}")

    # ========================================================================
    # PAYMENT
    # ========================================================================

    def confirm_payment(self, order_id: int, payment_intent_id: Optional[str] = None) -> PaymentConfirmation:
        """
        Apply a successful payment to an order exactly once.

        A repeated confirmation (gateway retry, duplicate marker) finds the
        order already SUCCEEDED or REFUNDED and changes nothing, so revenue,
        client aggregates and the invoice are never counted twice.
        """
        with transaction(self.db, f"payment confirmation for order {order_id}"):
            order = self.repo.get_order(self.db, order_id, for_update=True)
            if not order:
                raise NotFoundError("Order not found")

            if order.payment_status in ALREADY_CONFIRMED_STATUSES:
                logger.info(
                    f"ℹ️ Payment for order {order.id} already applied ({order.payment_status.value}) - skipping"
                )
                return PaymentConfirmation(order=order, applied=False)
            if order.payment_status not in CONFIRMABLE_PAYMENT_STATUSES:
                raise ConflictError(f"Payment cannot be confirmed from status {order.payment_status.value}")

            now = utcnow()
            is_first_order = order.client.first_order_date is None

            order.payment_status = PaymentStatus.SUCCEEDED
            order.paid_at = now
            if payment_intent_id:
                order.stripe_payment_intent_id = payment_intent_id
            self.repo.add_timeline_entry(
                self.db,
                order,
                "PAID",
                "Payment received",
                f"Payment of {format_money(order.total)} received",
            )

            if order.requires_contract:
                order.status = OrderStatus.PROCESSING
                if order.contract is None:
                    order.contract = ServiceContract(template_content=self._contract_text(order))
                self.repo.add_timeline_entry(
                    self.db,
                    order,
                    OrderStatus.PROCESSING.value,
                    "Awaiting contract signature",
                    "A service agreement must be signed before services are activated",
                )
            else:
                activate_order(self.db, order)

            self.metrics.record_client_purchase(self.db, order.client_id, order.total, now)
            self.metrics.increment_daily_metrics(
                self.db,
                now.date(),
                revenue=order.total,
                order_count=1,
                new_customers=1 if is_first_order else 0,
            )

        logger.info(f"✅ Payment applied to order {order.order_number} -> {order.status.value}")
        return PaymentConfirmation(order=order, applied=True)

    def mark_payment_failed(self, order_id: int, failure_message: Optional[str] = None) -> bool:
        """Record a failed payment attempt; only PENDING orders are affected"""
        with transaction(self.db, f"payment failure for order {order_id}"):
            order = self.repo.get_order(self.db, order_id, for_update=True)
            if not order:
                raise NotFoundError("Order not found")
            if order.payment_status != PaymentStatus.PENDING:
                logger.info(f"ℹ️ Ignoring payment failure for order {order.id} in {order.payment_status.value}")
                return False

            order.payment_status = PaymentStatus.FAILED
            self.repo.add_timeline_entry(
                self.db,
                order,
                PaymentStatus.FAILED.value,
                "Payment failed",
                failure_message or "The payment could not be completed",
            )

        logger.warning(f"⚠️ Payment failed for order {order.order_number}")
        return True

    @staticmethod
    def _contract_text(order: Order) -> str:
        sections = [
            item.service_template.contract_template
            for item in order.items
            if item.requires_contract and item.service_template and item.service_template.contract_template
        ]
        return "\n\n".join(sections)

    # ========================================================================
    # READS
    # ========================================================================

    def get_order(self, order_id: int, user: User) -> Order:
        order = self.repo.get_order(self.db, order_id)
        if not order:
            raise NotFoundError("Order not found")
        assert_can_view_order(order, user)
        return order

    def list_orders(
        self, user: User, status: Optional[OrderStatus] = None, limit: int = 50, offset: int = 0
    ) -> list[Order]:
        if user.role == UserRole.ADMIN:
            return self.repo.list_orders(self.db, status=status, limit=limit, offset=offset)
        if not user.client_id:
            return []
        return self.repo.list_orders(self.db, client_id=user.client_id, status=status, limit=limit, offset=offset)

    @staticmethod
    def refunded_amount(order: Order):
        return OrderMetadata.load(order.order_metadata).refunded_total
