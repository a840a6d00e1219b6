"""Invoice domain schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class InvoiceResponse(BaseModel):
    id: int
    orderId: int
    number: str
    pdfUrl: Optional[str] = None
    dueDate: datetime
    sentAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, invoice) -> "InvoiceResponse":
        return cls(
            id=invoice.id,
            orderId=invoice.order_id,
            number=invoice.invoice_number,
            pdfUrl=invoice.pdf_url,
            dueDate=invoice.due_date,
            sentAt=invoice.sent_at,
            createdAt=invoice.created_at,
        )
