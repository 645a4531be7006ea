#kiosk/data/models/cart.py
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship

from kiosk.data.database import Base
from kiosk.data.models.cart_item import CartItemModel
from kiosk.domain.errors import (
    CartAlreadyConfirmed,
    EmptyCart,
    InvalidQuantity,
    ItemNotFound,
    ProductUnavailable,
)
from kiosk.utils.clock import as_utc


def _now():
    return datetime.now(timezone.utc)


class CartModel(Base):
    """
    Session cart. One row per session id, lines kept in insertion order.

    subtotal/total are recomputed after every mutation (total == subtotal
    until taxes or discounts exist).
    """

    __tablename__ = "carts"

    id = Column(Integer, primary_key=True)
    session_id = Column(String(64), nullable=False, unique=True, index=True)

    confirmed = Column(Boolean, nullable=False, default=False)
    subtotal = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    total = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    items = relationship(
        "CartItemModel",
        back_populates="cart",
        order_by="CartItemModel.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )

    def __init__(self, **kwargs):
        kwargs.setdefault("confirmed", False)
        kwargs.setdefault("subtotal", Decimal("0.00"))
        kwargs.setdefault("total", Decimal("0.00"))
        kwargs.setdefault("version", 1)
        kwargs.setdefault("updated_at", _now())
        super().__init__(**kwargs)

    # ------------------------------------------------------------------
    # commands
    # ------------------------------------------------------------------
    def add_item(self, product, quantity: int, note: str | None = None) -> CartItemModel:
        if quantity <= 0:
            raise InvalidQuantity()
        if self.confirmed:
            raise CartAlreadyConfirmed()
        if not product.purchasable:
            raise ProductUnavailable(product.name)

        line = self.line_for_product(product.id)
        if line:
            line.increase(quantity, note)
        else:
            line = CartItemModel(
                id=str(uuid.uuid4()),
                product_id=product.id,
                product_name=product.name,
                product_category=product.category or "Desconhecida",
                unit_price=Decimal(str(product.price)),
                quantity=quantity,
                note=note,
            )
            self.items.append(line)

        self._touch()
        return line

    def remove_item(self, item_id: str) -> None:
        if self.confirmed:
            raise CartAlreadyConfirmed()
        line = next((i for i in self.items if i.id == item_id), None)
        if line is None:
            raise ItemNotFound(item_id)
        self.items.remove(line)
        self._touch()

    def confirm(self) -> None:
        if not self.items:
            raise EmptyCart()
        if self.confirmed:
            return
        self.confirmed = True
        self.updated_at = _now()

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------
    def line_for_product(self, product_id: int) -> CartItemModel | None:
        return next((i for i in self.items if i.product_id == product_id), None)

    def is_idle(self, ttl_seconds: int, now: datetime | None = None) -> bool:
        if ttl_seconds <= 0:
            return False
        now = now or _now()
        return as_utc(self.updated_at) + timedelta(seconds=ttl_seconds) < now

    def view(self) -> dict:
        return {
            "session_id": self.session_id,
            "items": [
                {
                    "id": i.id,
                    "product": {
                        "id": i.product_id,
                        "name": i.product_name,
                        "category": i.product_category,
                        "unit_price": Decimal(i.unit_price),
                    },
                    "quantity": i.quantity,
                    "note": i.note,
                    "subtotal": i.subtotal,
                }
                for i in self.items
            ],
            "subtotal": Decimal(self.subtotal),
            "total": Decimal(self.total),
            "confirmed": self.confirmed,
        }

    def _touch(self) -> None:
        self.subtotal = sum((i.subtotal for i in self.items), Decimal("0.00"))
        self.total = self.subtotal
        self.updated_at = _now()
