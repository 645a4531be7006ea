# kiosk/repos/cart_repo.py
from datetime import datetime
from typing import List

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from kiosk.data.models.cart import CartModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_by_session(self, session_id: str) -> CartModel | None:
        return self.db.execute(
            select(CartModel)
            .options(selectinload(CartModel.items))
            .where(CartModel.session_id == session_id)
        ).scalar_one_or_none()

    def create_cart(self, cart: CartModel) -> CartModel:
        # flush so a concurrent first add for the same session fails here
        self.db.add(cart)
        self.db.flush()
        return cart

    def delete_cart(self, cart: CartModel) -> None:
        self.db.delete(cart)

    def update_cart_version(self, cart_id: int, old_version: int, new_data: dict) -> int:
        # e.g. UPDATE carts SET version = 2 WHERE id = 1 AND version = 1
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.version == old_version)
            .values(**new_data)
        )
        return result.rowcount

    def list_idle(self, older_than: datetime) -> List[CartModel]:
        return list(
            self.db.execute(
                select(CartModel)
                .options(selectinload(CartModel.items))
                .where(CartModel.updated_at < older_than)
            ).scalars().all()
        )
