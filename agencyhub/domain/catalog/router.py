"""Catalog router - storefront listing and admin template management"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from ...models import User
from .schemas import (
    ServiceTemplateCreate,
    ServiceTemplateResponse,
    ServiceTemplateUpdate,
    StoreServiceResponse,
)
from .service import CatalogService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Catalog"])


def get_catalog_service(db: Session = Depends(get_db)) -> CatalogService:
    """Dependency injection for CatalogService"""
    return CatalogService(db)


# ============================================================================
# STOREFRONT
# ============================================================================


@router.get("/store/services", response_model=list[StoreServiceResponse])
async def get_store_services(service: CatalogService = Depends(get_catalog_service)):
    """Public list of purchasable services"""
    return [StoreServiceResponse.from_model(t) for t in service.get_store_services()]


# ============================================================================
# ADMIN TEMPLATE MANAGEMENT
# ============================================================================


@router.get("/service-templates", response_model=list[ServiceTemplateResponse])
async def get_templates(
    include_inactive: bool = Query(False, alias="includeInactive"),
    _admin: User = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service),
):
    return [ServiceTemplateResponse.from_model(t) for t in service.get_templates(include_inactive)]


@router.post("/service-templates", response_model=ServiceTemplateResponse, status_code=201)
async def create_template(
    data: ServiceTemplateCreate,
    _admin: User = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service),
):
    """Create a service template"""
    return ServiceTemplateResponse.from_model(service.create_template(data))


@router.patch("/service-templates/{template_id}", response_model=ServiceTemplateResponse)
async def update_template(
    template_id: int,
    data: ServiceTemplateUpdate,
    _admin: User = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service),
):
    """Update a service template"""
    return ServiceTemplateResponse.from_model(service.update_template(template_id, data))


__all__ = ["router", "get_store_services", "get_templates", "create_template", "update_template"]
