"""Invoice repository - Database operations for invoices"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models_invoice import Invoice


class InvoiceRepository:
    """Repository for invoice database operations"""

    @staticmethod
    def get_by_order_id(db: Session, order_id: int) -> Optional[Invoice]:
        return db.query(Invoice).filter(Invoice.order_id == order_id).first()

    @staticmethod
    def get_last_invoice_number(db: Session, prefix: str, year: int) -> Optional[str]:
        """
        Highest invoice number issued under `prefix` in `year`.

        Sequences are not zero-padded past their width, so a longer number is
        always the later one: order by length before comparing the text.
        """
        row = (
            db.query(Invoice.invoice_number)
            .filter(Invoice.invoice_number.like(f"{prefix}-{year}-%"))
            .order_by(func.length(Invoice.invoice_number).desc(), Invoice.invoice_number.desc())
            .first()
        )
        return row[0] if row else None

    @staticmethod
    def create_invoice(db: Session, **invoice_data) -> Invoice:
        invoice = Invoice(**invoice_data)
        db.add(invoice)
        db.flush()
        return invoice
