"""Client router - FastAPI endpoints for client operations"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from ...models import User
from .schemas import ClientCreate, ClientResponse, ClientUpdate, LinkUserRequest
from .service import ClientService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clients", tags=["Clients"])


def get_client_service(db: Session = Depends(get_db)) -> ClientService:
    """Dependency injection for ClientService"""
    return ClientService(db)


# ============================================================================
# CORE CRUD OPERATIONS
# ============================================================================


@router.get("", response_model=list[ClientResponse])
async def get_clients(
    search: Optional[str] = Query(None, max_length=100),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    _admin: User = Depends(require_admin),
    service: ClientService = Depends(get_client_service),
):
    """List clients with their purchase aggregates"""
    return [ClientResponse.from_model(c) for c in service.get_clients(search, limit, offset)]


@router.post("", response_model=ClientResponse, status_code=201)
async def create_client(
    data: ClientCreate,
    _admin: User = Depends(require_admin),
    service: ClientService = Depends(get_client_service),
):
    """Create a new client"""
    return ClientResponse.from_model(service.create_client(data))


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: int,
    _admin: User = Depends(require_admin),
    service: ClientService = Depends(get_client_service),
):
    return ClientResponse.from_model(service.get_client(client_id))


@router.patch("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: int,
    data: ClientUpdate,
    _admin: User = Depends(require_admin),
    service: ClientService = Depends(get_client_service),
):
    """Update a client's contact details"""
    return ClientResponse.from_model(service.update_client(client_id, data))


@router.post("/{client_id}/users")
async def link_user(
    client_id: int,
    data: LinkUserRequest,
    _admin: User = Depends(require_admin),
    service: ClientService = Depends(get_client_service),
):
    """Link a registered user account to a client"""
    user = service.link_user(client_id, data.email)
    return {"success": True, "userId": user.id, "clientId": user.client_id}


__all__ = ["router", "get_clients", "create_client", "get_client", "update_client", "link_user"]
