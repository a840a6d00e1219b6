"""Webhook router - admin management of outbound webhooks"""

import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from ...models import User
from .schemas import (
    WebhookCreate,
    WebhookExecuteRequest,
    WebhookExecutionResponse,
    WebhookResponse,
    WebhookUpdate,
)
from .service import WebhookService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


def get_webhook_http_client() -> Optional[httpx.AsyncClient]:
    """Outbound HTTP client; None means a fresh client per delivery"""
    return None


def get_webhook_service(
    db: Session = Depends(get_db),
    http_client: Optional[httpx.AsyncClient] = Depends(get_webhook_http_client),
) -> WebhookService:
    """Dependency injection for WebhookService"""
    return WebhookService(db, http_client)


# ============================================================================
# CORE CRUD OPERATIONS
# ============================================================================


@router.get("", response_model=list[WebhookResponse])
async def list_webhooks(
    _admin: User = Depends(require_admin),
    service: WebhookService = Depends(get_webhook_service),
):
    return [WebhookResponse.from_model(w) for w in service.list_webhooks()]


@router.post("", response_model=WebhookResponse, status_code=201)
async def create_webhook(
    data: WebhookCreate,
    _admin: User = Depends(require_admin),
    service: WebhookService = Depends(get_webhook_service),
):
    """Register a webhook for one or more lifecycle events"""
    return WebhookResponse.from_model(service.create_webhook(data))


@router.get("/{webhook_id}", response_model=WebhookResponse)
async def get_webhook(
    webhook_id: int,
    _admin: User = Depends(require_admin),
    service: WebhookService = Depends(get_webhook_service),
):
    return WebhookResponse.from_model(service.get_webhook(webhook_id))


@router.patch("/{webhook_id}", response_model=WebhookResponse)
async def update_webhook(
    webhook_id: int,
    data: WebhookUpdate,
    _admin: User = Depends(require_admin),
    service: WebhookService = Depends(get_webhook_service),
):
    return WebhookResponse.from_model(service.update_webhook(webhook_id, data))


@router.delete("/{webhook_id}")
async def delete_webhook(
    webhook_id: int,
    _admin: User = Depends(require_admin),
    service: WebhookService = Depends(get_webhook_service),
):
    service.delete_webhook(webhook_id)
    return {"success": True}


# ============================================================================
# DELIVERY
# ============================================================================


@router.post("/{webhook_id}/execute", response_model=WebhookExecutionResponse)
async def execute_webhook(
    webhook_id: int,
    data: WebhookExecuteRequest,
    _admin: User = Depends(require_admin),
    service: WebhookService = Depends(get_webhook_service),
):
    """
    POST the given payload to the webhook once, synchronously.
    The outcome is recorded and returned; delivery failures are not errors here.
    """
    execution = await service.execute_webhook(webhook_id, data.payload)
    return WebhookExecutionResponse.from_model(execution)


@router.get("/{webhook_id}/executions", response_model=list[WebhookExecutionResponse])
async def list_executions(
    webhook_id: int,
    limit: int = Query(50, ge=1, le=200),
    _admin: User = Depends(require_admin),
    service: WebhookService = Depends(get_webhook_service),
):
    """Most recent deliveries first"""
    return [WebhookExecutionResponse.from_model(e) for e in service.list_executions(webhook_id, limit)]


__all__ = [
    "router",
    "list_webhooks",
    "create_webhook",
    "get_webhook",
    "update_webhook",
    "delete_webhook",
    "execute_webhook",
    "list_executions",
]
