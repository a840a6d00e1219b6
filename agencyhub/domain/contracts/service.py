"""Contract service - signature capture and contract-gated order activation"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...auth import assert_can_view_order
from ...database import transaction
from ...errors import ConflictError, NotFoundError
from ...models import Order, ServiceContract, User
from ...shared.clock import utcnow
from ...shared.enums import OrderStatus, PaymentStatus, UserRole
from ..metrics.repository import MetricsRepository
from ..orders.repository import OrderRepository
from ..orders.service import activate_order
from .repository import ContractRepository
from .schemas import ContractSignRequest

logger = logging.getLogger(__name__)


class ContractService:
    """Service layer for contract business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ContractRepository()
        self.orders = OrderRepository()
        self.metrics = MetricsRepository()

    def get_contract(self, order_id: int, user: User) -> ServiceContract:
        order = self.orders.get_order(self.db, order_id)
        if not order:
            raise NotFoundError("Order not found")
        assert_can_view_order(order, user)
        if not order.contract:
            raise NotFoundError("No contract for this order")
        return order.contract

    def sign_contract(
        self,
        order_id: int,
        data: ContractSignRequest,
        user: User,
        ip_address: Optional[str] = None,
    ) -> Order:
        """
        Record the client's signature and activate the order.

        Signatures are immutable: a signed contract cannot be signed again.
        Signing completes the order, issues its invoice once and counts the
        signature in today's sales metrics, all in one transaction.
        """
        with transaction(self.db, f"contract signature for order {order_id}"):
            order = self.orders.get_order(self.db, order_id, for_update=True)
            # Clients may only sign their own orders; other orders look absent
            if not order or user.role != UserRole.CLIENT or order.client_id != user.client_id:
                raise NotFoundError("Order not found")

            contract = order.contract
            if not contract:
                raise NotFoundError("No contract for this order")
            if contract.is_signed:
                raise ConflictError("Contract has already been signed")
            if order.payment_status != PaymentStatus.SUCCEEDED or order.status != OrderStatus.PROCESSING:
                raise ConflictError("Order is not awaiting a contract signature")

            self.repo.record_signature(
                self.db,
                contract,
                signed_at=utcnow(),
                signature_data=data.signatureData,
                signed_by_name=data.fullName,
                signed_by_email=data.email,
                ip_address=ip_address,
                user_agent=data.userAgent,
            )
            order.status = OrderStatus.CONTRACT_SIGNED
            self.orders.add_timeline_entry(
                self.db,
                order,
                OrderStatus.CONTRACT_SIGNED.value,
                "Contract signed",
                f"Service agreement signed by {data.fullName}",
            )

            # One contract per order, so a signature satisfies every requirement
            activate_order(self.db, order)
            self.metrics.increment_daily_metrics(self.db, utcnow().date(), contracts_signed=1)

        logger.info(f"✍️ Contract for order {order.order_number} signed by {data.fullName}")
        return order
