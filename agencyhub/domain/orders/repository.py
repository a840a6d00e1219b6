"""Order repository - Database operations for orders, items and timeline

Methods add and flush only; the calling service owns the transaction.
"""

from typing import Iterable, Optional

from sqlalchemy.orm import Session, selectinload

from ...models import Client, Order, OrderItem, OrderTimeline, ServiceTemplate, User
from ...shared.clock import utcnow
from ...shared.enums import OrderStatus
from ..pricing.calculator import PricedOrder


class OrderRepository:
    """Repository for order database operations"""

    @staticmethod
    def _with_details(query):
        return query.options(
            selectinload(Order.items).selectinload(OrderItem.service_template),
            selectinload(Order.timeline),
            selectinload(Order.contract),
            selectinload(Order.invoice),
        )

    @staticmethod
    def get_order(db: Session, order_id: int, for_update: bool = False) -> Optional[Order]:
        """Get an order by ID; for_update locks the row for the rest of the transaction"""
        query = db.query(Order).filter(Order.id == order_id)
        if for_update:
            query = query.with_for_update()
        return OrderRepository._with_details(query).first()

    @staticmethod
    def get_order_by_session_id(db: Session, session_id: str) -> Optional[Order]:
        return db.query(Order).filter(Order.stripe_session_id == session_id).first()

    @staticmethod
    def get_order_by_payment_intent(db: Session, payment_intent_id: str) -> Optional[Order]:
        return db.query(Order).filter(Order.stripe_payment_intent_id == payment_intent_id).first()

    @staticmethod
    def list_orders(
        db: Session,
        client_id: Optional[int] = None,
        status: Optional[OrderStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Order]:
        query = db.query(Order)
        if client_id is not None:
            query = query.filter(Order.client_id == client_id)
        if status is not None:
            query = query.filter(Order.status == status)
        return (
            query.options(selectinload(Order.items))
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_client(db: Session, client_id: int) -> Optional[Client]:
        return db.query(Client).filter(Client.id == client_id).first()

    @staticmethod
    def get_client_for_user(db: Session, user: User) -> Optional[Client]:
        if not user.client_id:
            return None
        return db.query(Client).filter(Client.id == user.client_id).first()

    @staticmethod
    def get_templates_by_ids(db: Session, template_ids: Iterable[int]) -> dict[int, ServiceTemplate]:
        ids = set(template_ids)
        if not ids:
            return {}
        templates = db.query(ServiceTemplate).filter(ServiceTemplate.id.in_(ids)).all()
        return {t.id: t for t in templates}

    @staticmethod
    def create_order(db: Session, client_id: int, priced: PricedOrder) -> Order:
        """Create the order with its item snapshots and flush to obtain an ID"""
        order = Order(
            client_id=client_id,
            status=OrderStatus.PENDING,
            subtotal=priced.subtotal,
            tax=priced.tax,
            total=priced.total,
            currency=priced.currency,
            order_metadata={},
        )
        for line in priced.lines:
            order.items.append(
                OrderItem(
                    service_template_id=line.service_template_id,
                    service_name=line.service_name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    total=line.total,
                    requires_contract=line.requires_contract,
                )
            )
        db.add(order)
        db.flush()
        return order

    @staticmethod
    def add_timeline_entry(
        db: Session, order: Order, status: str, title: str, description: Optional[str] = None
    ) -> OrderTimeline:
        """Append an audit entry; entries are never edited or deleted"""
        now = utcnow()
        entry = OrderTimeline(
            status=status,
            title=title,
            description=description,
            completed_at=now,
            created_at=now,
        )
        order.timeline.append(entry)
        db.flush()
        return entry
