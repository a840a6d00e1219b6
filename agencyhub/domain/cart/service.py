"""Cart service - per-client shopping cart with a sliding expiry"""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...config import CART_EXPIRY_DAYS, DEFAULT_CURRENCY
from ...database import transaction
from ...errors import NotFoundError, ValidationError
from ...models import Cart, ServiceTemplate, User
from ...shared.clock import as_utc, utcnow
from ..orders.repository import OrderRepository
from ..pricing.calculator import ZERO, quantize_money
from .repository import CartRepository
from .schemas import CartItemResponse, CartResponse

logger = logging.getLogger(__name__)


def _is_available(template: Optional[ServiceTemplate]) -> bool:
    return bool(template and template.is_active and template.is_purchasable and template.price is not None)


def build_cart_response(cart: Cart) -> CartResponse:
    items = []
    subtotal = ZERO
    currency = DEFAULT_CURRENCY
    for item in cart.items:
        template = item.service_template
        available = _is_available(template)
        line_total = None
        if available:
            line_total = quantize_money(template.price * item.quantity)
            subtotal += line_total
            currency = template.currency
        items.append(
            CartItemResponse(
                serviceTemplateId=item.service_template_id,
                name=template.name if template else "Unavailable service",
                quantity=item.quantity,
                unitPrice=template.price if available else None,
                lineTotal=line_total,
                available=available,
            )
        )
    return CartResponse(
        items=items,
        itemCount=sum(item.quantity for item in cart.items),
        subtotal=quantize_money(subtotal),
        currency=currency,
        expiresAt=as_utc(cart.expires_at),
    )


class CartService:
    """Service layer for cart business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CartRepository()
        self.orders = OrderRepository()

    @staticmethod
    def _expiry():
        return utcnow() + timedelta(days=CART_EXPIRY_DAYS)

    def client_id_for(self, user: User) -> int:
        if not user.client_id:
            raise NotFoundError("Client record not found for this account")
        return user.client_id

    def _active_cart(self, client_id: int) -> Cart:
        """Return the client's cart, replacing it when expired. Runs inside a transaction."""
        cart = self.repo.get_cart(self.db, client_id)
        if cart is None:
            return self.repo.create_cart(self.db, client_id, self._expiry())
        if as_utc(cart.expires_at) <= utcnow():
            logger.info(f"🧹 Cart {cart.id} for client {client_id} expired - starting over")
            self.repo.clear_items(self.db, cart)
        cart.expires_at = self._expiry()
        return cart

    def _purchasable_template(self, template_id: int) -> ServiceTemplate:
        template = self.orders.get_templates_by_ids(self.db, [template_id]).get(template_id)
        if not template or not template.is_active:
            raise NotFoundError("Service not found")
        if not _is_available(template):
            raise ValidationError(
                "Service cannot be purchased",
                details=[{"field": "serviceTemplateId", "message": "This service is not available for purchase"}],
            )
        return template

    @staticmethod
    def _check_quantity(template: ServiceTemplate, quantity: int) -> None:
        if quantity > template.max_quantity:
            raise ValidationError(
                "Invalid quantity",
                details=[
                    {
                        "field": "quantity",
                        "message": f"Maximum quantity for {template.name} is {template.max_quantity}",
                    }
                ],
            )

    def get_cart(self, user: User) -> Cart:
        client_id = self.client_id_for(user)
        with transaction(self.db, f"cart load for client {client_id}"):
            cart = self._active_cart(client_id)
        return cart

    def add_item(self, user: User, template_id: int, quantity: int = 1) -> Cart:
        """Add a service, or increase its quantity if it is already in the cart"""
        client_id = self.client_id_for(user)
        template = self._purchasable_template(template_id)
        with transaction(self.db, f"cart update for client {client_id}"):
            cart = self._active_cart(client_id)
            item = self.repo.get_item(cart, template_id)
            new_quantity = quantity + (item.quantity if item else 0)
            self._check_quantity(template, new_quantity)
            if item:
                item.quantity = new_quantity
            else:
                self.repo.add_item(self.db, cart, template_id, new_quantity)
        return cart

    def update_item(self, user: User, template_id: int, quantity: int) -> Cart:
        client_id = self.client_id_for(user)
        template = self._purchasable_template(template_id)
        self._check_quantity(template, quantity)
        with transaction(self.db, f"cart update for client {client_id}"):
            cart = self._active_cart(client_id)
            item = self.repo.get_item(cart, template_id)
            if not item:
                raise NotFoundError("Service is not in the cart")
            item.quantity = quantity
        return cart

    def remove_item(self, user: User, template_id: int) -> Cart:
        client_id = self.client_id_for(user)
        with transaction(self.db, f"cart update for client {client_id}"):
            cart = self._active_cart(client_id)
            item = self.repo.get_item(cart, template_id)
            if not item:
                raise NotFoundError("Service is not in the cart")
            self.repo.remove_item(self.db, cart, item)
        return cart

    def clear_cart(self, client_id: int) -> None:
        with transaction(self.db, f"cart clear for client {client_id}"):
            cart = self.repo.get_cart(self.db, client_id)
            if cart is not None:
                self.repo.clear_items(self.db, cart)

    def purge_expired(self) -> int:
        """Delete every expired cart; run periodically by the worker"""
        with transaction(self.db, "expired cart purge"):
            removed = self.repo.delete_expired(self.db, utcnow())
        if removed:
            logger.info(f"🧹 Purged {removed} expired cart(s)")
        return removed
