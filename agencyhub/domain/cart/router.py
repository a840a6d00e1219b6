"""Cart router - the signed-in client's shopping cart"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import require_client
from ...database import get_db
from ...models import User
from .schemas import CartItemAdd, CartItemUpdate, CartResponse
from .service import CartService, build_cart_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cart", tags=["Cart"])


def get_cart_service(db: Session = Depends(get_db)) -> CartService:
    """Dependency injection for CartService"""
    return CartService(db)


@router.get("", response_model=CartResponse)
async def get_cart(
    current_user: User = Depends(require_client),
    service: CartService = Depends(get_cart_service),
):
    return build_cart_response(service.get_cart(current_user))


@router.post("/items", response_model=CartResponse)
async def add_cart_item(
    data: CartItemAdd,
    current_user: User = Depends(require_client),
    service: CartService = Depends(get_cart_service),
):
    """Add a service to the cart; adding it again increases the quantity"""
    return build_cart_response(service.add_item(current_user, data.serviceTemplateId, data.quantity))


@router.patch("/items/{template_id}", response_model=CartResponse)
async def update_cart_item(
    template_id: int,
    data: CartItemUpdate,
    current_user: User = Depends(require_client),
    service: CartService = Depends(get_cart_service),
):
    return build_cart_response(service.update_item(current_user, template_id, data.quantity))


@router.delete("/items/{template_id}", response_model=CartResponse)
async def remove_cart_item(
    template_id: int,
    current_user: User = Depends(require_client),
    service: CartService = Depends(get_cart_service),
):
    return build_cart_response(service.remove_item(current_user, template_id))


@router.delete("")
async def clear_cart(
    current_user: User = Depends(require_client),
    service: CartService = Depends(get_cart_service),
):
    """Empty the cart"""
    client_id = service.client_id_for(current_user)
    service.clear_cart(client_id)
    return {"success": True}


__all__ = ["router", "get_cart", "add_cart_item", "update_cart_item", "remove_cart_item", "clear_cart"]
