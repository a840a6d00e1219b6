"""Invoice router - FastAPI endpoints for invoices"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_admin
from ...database import get_db
from ...models import User
from .schemas import InvoiceResponse
from .service import InvoiceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invoices", tags=["Invoices"])


def get_invoice_service(db: Session = Depends(get_db)) -> InvoiceService:
    """Dependency injection for InvoiceService"""
    return InvoiceService(db)


@router.get("/{order_id}", response_model=InvoiceResponse)
async def get_invoice(
    order_id: int,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Get the invoice for an order"""
    return InvoiceResponse.from_model(service.get_invoice_for_order(order_id, current_user))


@router.post("/{order_id}/generate", response_model=InvoiceResponse)
async def generate_invoice(
    order_id: int,
    _admin: User = Depends(require_admin),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Generate (or return the existing) invoice for a paid order"""
    return InvoiceResponse.from_model(service.generate_invoice(order_id))


@router.post("/{order_id}/send", response_model=InvoiceResponse)
async def send_invoice(
    order_id: int,
    _admin: User = Depends(require_admin),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Mark an invoice as sent to the client"""
    return InvoiceResponse.from_model(service.send_invoice(order_id))


__all__ = ["router", "get_invoice", "generate_invoice", "send_invoice"]
