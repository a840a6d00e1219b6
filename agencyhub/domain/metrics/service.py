"""Analytics service - sales reporting over the daily metrics rows"""

import logging
from datetime import datetime, time, timedelta, timezone

from sqlalchemy.orm import Session

from ...shared.clock import utcnow
from ..pricing.calculator import ZERO, quantize_money
from .repository import MetricsRepository
from .schemas import (
    DailySales,
    SalesAnalyticsResponse,
    SalesTotals,
    TopClientResponse,
    TopService,
)

logger = logging.getLogger(__name__)


class AnalyticsService:
    """Service layer for sales analytics"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = MetricsRepository()

    def get_sales(self, days: int = 30) -> SalesAnalyticsResponse:
        """Totals, a gap-free daily series and the best-selling services for the last `days` days"""
        end = utcnow().date()
        start = end - timedelta(days=days - 1)
        rows = {row.date: row for row in self.repo.get_metrics_range(self.db, start, end)}

        daily = []
        revenue = refunds = ZERO
        orders = new_customers = contracts_signed = 0
        for offset in range(days):
            day = start + timedelta(days=offset)
            row = rows.get(day)
            if row is None:
                daily.append(DailySales(date=day, revenue=ZERO, orders=0, refunds=ZERO))
                continue
            day_revenue = quantize_money(row.revenue or 0)
            day_refunds = quantize_money(row.refund_amount or 0)
            daily.append(DailySales(date=day, revenue=day_revenue, orders=row.order_count, refunds=day_refunds))
            revenue += day_revenue
            refunds += day_refunds
            orders += row.order_count
            new_customers += row.new_customers
            contracts_signed += row.contracts_signed

        since = datetime.combine(start, time.min, tzinfo=timezone.utc)
        top_services = [
            TopService(name=name, quantity=int(quantity or 0), revenue=quantize_money(total or 0))
            for name, quantity, total in self.repo.get_top_services(self.db, since)
        ]

        return SalesAnalyticsResponse(
            startDate=start,
            endDate=end,
            totals=SalesTotals(
                revenue=revenue,
                refunds=refunds,
                netRevenue=quantize_money(revenue - refunds),
                orders=orders,
                avgOrderValue=quantize_money(revenue / orders) if orders else ZERO,
                newCustomers=new_customers,
                contractsSigned=contracts_signed,
            ),
            daily=daily,
            topServices=top_services,
        )

    def get_top_clients(self, limit: int = 10) -> list[TopClientResponse]:
        return [
            TopClientResponse(
                id=client.id,
                name=client.name,
                businessName=client.business_name,
                lifetimeValue=client.lifetime_value,
                totalOrders=client.total_orders,
                lastOrderDate=client.last_order_date,
            )
            for client in self.repo.get_top_clients(self.db, limit)
        ]
