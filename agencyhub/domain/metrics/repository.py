"""Sales metrics and client aggregate repository - atomic counter updates"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Float, case, cast, func, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from ...models import Client, Order, OrderItem, SalesMetrics
from ...shared.enums import PaymentStatus

_DIALECT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}

ZERO = Decimal("0.00")


class MetricsRepository:
    """Repository for SalesMetrics and Client aggregate counters"""

    @staticmethod
    def increment_daily_metrics(
        db: Session,
        day: date,
        revenue: Decimal = ZERO,
        order_count: int = 0,
        new_customers: int = 0,
        refund_amount: Decimal = ZERO,
        contracts_signed: int = 0,
    ) -> None:
        """
        Upsert the row for `day`, adding the given deltas to the stored values.

        The increments and the average are computed by the database inside a
        single INSERT .. ON CONFLICT DO UPDATE, so concurrent completions on
        the same day cannot lose updates.
        """
        dialect = db.get_bind().dialect.name
        insert = _DIALECT_INSERTS.get(dialect)
        if insert is None:
            raise NotImplementedError(f"Atomic metrics upsert not supported for dialect '{dialect}'")

        table = SalesMetrics.__table__
        initial_avg = (revenue / order_count) if order_count else ZERO
        stmt = insert(table).values(
            date=day,
            revenue=revenue,
            order_count=order_count,
            avg_order_value=initial_avg,
            new_customers=new_customers,
            refund_amount=refund_amount,
            contracts_signed=contracts_signed,
        )

        new_revenue = table.c.revenue + stmt.excluded.revenue
        new_count = table.c.order_count + stmt.excluded.order_count
        # SQLite stores whole amounts as integers and would truncate the division
        divisor = cast(new_count, Float) if dialect == "sqlite" else new_count
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.date],
            set_={
                "revenue": new_revenue,
                "order_count": new_count,
                "avg_order_value": case((new_count > 0, new_revenue / divisor), else_=0),
                "new_customers": table.c.new_customers + stmt.excluded.new_customers,
                "refund_amount": table.c.refund_amount + stmt.excluded.refund_amount,
                "contracts_signed": table.c.contracts_signed + stmt.excluded.contracts_signed,
            },
        )
        db.execute(stmt)

    @staticmethod
    def record_client_purchase(db: Session, client_id: int, amount: Decimal, when: datetime) -> None:
        """Add a paid order to the client's lifetime aggregates"""
        db.execute(
            update(Client)
            .where(Client.id == client_id)
            .values(
                lifetime_value=Client.lifetime_value + amount,
                total_orders=Client.total_orders + 1,
                first_order_date=func.coalesce(Client.first_order_date, when),
                last_order_date=when,
            ),
            execution_options={"synchronize_session": "fetch"},
        )

    @staticmethod
    def record_client_refund(db: Session, client_id: int, amount: Decimal) -> None:
        """Remove a fully refunded order from the client's aggregates, flooring at zero"""
        db.execute(
            update(Client)
            .where(Client.id == client_id)
            .values(
                lifetime_value=case(
                    (Client.lifetime_value > amount, Client.lifetime_value - amount),
                    else_=0,
                ),
                total_orders=case((Client.total_orders > 0, Client.total_orders - 1), else_=0),
            ),
            execution_options={"synchronize_session": "fetch"},
        )

    @staticmethod
    def get_metrics_range(db: Session, start: date, end: date) -> list[SalesMetrics]:
        return (
            db.query(SalesMetrics)
            .filter(SalesMetrics.date >= start, SalesMetrics.date <= end)
            .order_by(SalesMetrics.date.asc())
            .all()
        )

    @staticmethod
    def get_metrics_for_day(db: Session, day: date) -> Optional[SalesMetrics]:
        return db.query(SalesMetrics).filter(SalesMetrics.date == day).first()

    @staticmethod
    def get_top_services(db: Session, since: datetime, limit: int = 5) -> list[tuple]:
        """(service_name, quantity, revenue) for paid orders created since `since`"""
        return (
            db.query(
                OrderItem.service_name,
                func.sum(OrderItem.quantity).label("quantity"),
                func.sum(OrderItem.total).label("revenue"),
            )
            .join(Order, Order.id == OrderItem.order_id)
            .filter(
                Order.created_at >= since,
                Order.payment_status == PaymentStatus.SUCCEEDED,
            )
            .group_by(OrderItem.service_name)
            .order_by(func.sum(OrderItem.total).desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_top_clients(db: Session, limit: int = 10) -> list[Client]:
        return (
            db.query(Client)
            .filter(Client.total_orders > 0)
            .order_by(Client.lifetime_value.desc())
            .limit(limit)
            .all()
        )
