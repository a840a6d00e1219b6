"""Analytics schemas - response models for sales reporting"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class SalesTotals(BaseModel):
    revenue: Decimal
    refunds: Decimal
    netRevenue: Decimal
    orders: int
    avgOrderValue: Decimal
    newCustomers: int
    contractsSigned: int


class DailySales(BaseModel):
    date: date
    revenue: Decimal
    orders: int
    refunds: Decimal


class TopService(BaseModel):
    name: str
    quantity: int
    revenue: Decimal


class SalesAnalyticsResponse(BaseModel):
    startDate: date
    endDate: date
    totals: SalesTotals
    daily: list[DailySales]
    topServices: list[TopService]


class TopClientResponse(BaseModel):
    id: int
    name: str
    businessName: Optional[str] = None
    lifetimeValue: Decimal
    totalOrders: int
    lastOrderDate: Optional[datetime] = None
