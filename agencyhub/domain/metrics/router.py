"""Analytics router - sales reporting for admins"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from ...models import User
from .schemas import SalesAnalyticsResponse, TopClientResponse
from .service import AnalyticsService

router = APIRouter(prefix="/analytics", tags=["Analytics"])


def get_analytics_service(db: Session = Depends(get_db)) -> AnalyticsService:
    """Dependency injection for AnalyticsService"""
    return AnalyticsService(db)


@router.get("/sales", response_model=SalesAnalyticsResponse)
async def get_sales(
    days: int = Query(30, ge=1, le=365),
    _admin: User = Depends(require_admin),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Revenue, refunds and order counts for the last `days` days"""
    return service.get_sales(days)


@router.get("/top-clients", response_model=list[TopClientResponse])
async def get_top_clients(
    limit: int = Query(10, ge=1, le=100),
    _admin: User = Depends(require_admin),
    service: AnalyticsService = Depends(get_analytics_service),
):
    return service.get_top_clients(limit)


__all__ = ["router", "get_sales", "get_top_clients"]
