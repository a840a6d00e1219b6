"""Cart repository - Database operations for shopping carts"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ...models import Cart, CartItem


class CartRepository:
    """Repository for cart database operations"""

    @staticmethod
    def get_cart(db: Session, client_id: int) -> Optional[Cart]:
        return (
            db.query(Cart)
            .options(selectinload(Cart.items).selectinload(CartItem.service_template))
            .filter(Cart.client_id == client_id)
            .first()
        )

    @staticmethod
    def create_cart(db: Session, client_id: int, expires_at: datetime) -> Cart:
        cart = Cart(client_id=client_id, expires_at=expires_at)
        db.add(cart)
        db.flush()
        return cart

    @staticmethod
    def get_item(cart: Cart, template_id: int) -> Optional[CartItem]:
        return next((item for item in cart.items if item.service_template_id == template_id), None)

    @staticmethod
    def add_item(db: Session, cart: Cart, template_id: int, quantity: int) -> CartItem:
        item = CartItem(service_template_id=template_id, quantity=quantity)
        cart.items.append(item)
        db.flush()
        return item

    @staticmethod
    def remove_item(db: Session, cart: Cart, item: CartItem) -> None:
        cart.items.remove(item)
        db.flush()

    @staticmethod
    def clear_items(db: Session, cart: Cart) -> None:
        cart.items.clear()
        db.flush()

    @staticmethod
    def delete_expired(db: Session, now: datetime) -> int:
        """Delete expired carts and their items; returns the number of carts removed"""
        expired_ids = [row.id for row in db.query(Cart.id).filter(Cart.expires_at < now).all()]
        if not expired_ids:
            return 0
        db.query(CartItem).filter(CartItem.cart_id.in_(expired_ids)).delete(synchronize_session=False)
        db.query(Cart).filter(Cart.id.in_(expired_ids)).delete(synchronize_session=False)
        return len(expired_ids)
