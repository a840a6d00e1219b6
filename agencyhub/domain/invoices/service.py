"""Invoice service - idempotent invoice generation for completed orders"""

import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from ...auth import assert_can_view_order
from ...config import INVOICE_DUE_DAYS, INVOICE_PREFIX, INVOICE_STARTING_NUMBER
from ...database import transaction
from ...errors import ConflictError, NotFoundError
from ...models import Order, User
from ...models_invoice import Invoice
from ...shared.clock import utcnow
from ...shared.enums import PaymentStatus
from ..orders.repository import OrderRepository
from .numbering import next_invoice_number
from .repository import InvoiceRepository

logger = logging.getLogger(__name__)

INVOICEABLE_PAYMENT_STATUSES = {PaymentStatus.SUCCEEDED, PaymentStatus.REFUNDED}


class InvoiceService:
    """Service layer for invoice business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = InvoiceRepository()
        self.orders = OrderRepository()

    def ensure_invoice(self, order: Order) -> Invoice:
        """
        Return the order's invoice, creating it if missing.

        Flushes only: callers run this inside their own transaction so the
        invoice commits together with the transition that produced it.
        Numbers are derived by parsing the last issued number; two concurrent
        creations can derive the same number, in which case the unique
        constraint rejects the second transaction and it must be retried.
        """
        existing = self.repo.get_by_order_id(self.db, order.id)
        if existing:
            logger.info(f"Invoice {existing.invoice_number} already exists for order {order.id}")
            return existing

        now = utcnow()
        last_number = self.repo.get_last_invoice_number(self.db, INVOICE_PREFIX, now.year)
        invoice_number = next_invoice_number(last_number, INVOICE_PREFIX, now.year, INVOICE_STARTING_NUMBER)

        invoice = self.repo.create_invoice(
            self.db,
            order_id=order.id,
            invoice_number=invoice_number,
            pdf_url=f"/api/invoices/{invoice_number}/pdf",
            due_date=now + timedelta(days=INVOICE_DUE_DAYS),
        )
        logger.info(f"🧾 Invoice {invoice_number} created for order {order.id}")
        return invoice

    def generate_invoice(self, order_id: int) -> Invoice:
        """Idempotently create and commit the invoice for a paid order"""
        with transaction(self.db, f"invoice generation for order {order_id}"):
            order = self.orders.get_order(self.db, order_id)
            if not order:
                raise NotFoundError("Order not found")
            if order.payment_status not in INVOICEABLE_PAYMENT_STATUSES:
                raise ConflictError("Invoices can only be generated for paid orders")
            invoice = self.ensure_invoice(order)
        return invoice

    def get_invoice_for_order(self, order_id: int, user: User) -> Invoice:
        order = self.orders.get_order(self.db, order_id)
        if not order:
            raise NotFoundError("Order not found")
        assert_can_view_order(order, user)
        invoice = self.repo.get_by_order_id(self.db, order_id)
        if not invoice:
            raise NotFoundError("Invoice not found")
        return invoice

    def send_invoice(self, order_id: int) -> Invoice:
        """Mark the invoice as sent; delivery itself happens elsewhere"""
        with transaction(self.db, f"invoice send for order {order_id}"):
            invoice = self.repo.get_by_order_id(self.db, order_id)
            if not invoice:
                raise NotFoundError("Invoice not found")
            if invoice.sent_at:
                logger.info(f"Invoice {invoice.invoice_number} already marked as sent")
            else:
                invoice.sent_at = utcnow()
                logger.info(f"📤 Invoice {invoice.invoice_number} marked as sent")
        return invoice
