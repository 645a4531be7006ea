import uuid
from decimal import Decimal

from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, UniqueConstraint
from sqlalchemy.orm import relationship

from kiosk.data.database import Base
from kiosk.domain.errors import InvalidQuantity


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    # product snapshot taken when the line was created
    product_id = Column(Integer, nullable=False)
    product_name = Column(String(120), nullable=False)
    product_category = Column(String(60), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)

    quantity = Column(Integer, nullable=False)
    note = Column(String(255), nullable=True)

    cart = relationship("CartModel", back_populates="items")

    __table_args__ = (UniqueConstraint("cart_id", "product_id", name="u_cart_product"),)

    @property
    def subtotal(self) -> Decimal:
        return Decimal(self.unit_price) * self.quantity

    def increase(self, quantity: int, note: str | None = None) -> None:
        if quantity <= 0:
            raise InvalidQuantity()
        self.quantity += quantity
        # last write wins
        if note:
            self.note = note
