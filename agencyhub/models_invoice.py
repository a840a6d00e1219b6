"""
Invoice model - one invoice per paid and activated order
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from .database import Base
from .models import generate_public_id
from .shared.clock import utcnow


class Invoice(Base):
    """Invoice issued for a completed order"""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)
    order_id = Column(Integer, ForeignKey("orders.id"), unique=True, nullable=False)

    # {prefix}-{year}-{sequence}; uniqueness is the last line of defence for numbering races
    invoice_number = Column(String(50), unique=True, nullable=False, index=True)

    # Placeholder endpoint, rendering is handled elsewhere
    pdf_url = Column(String(500), nullable=True)

    due_date = Column(DateTime(timezone=True), nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    order = relationship("Order", back_populates="invoice")
