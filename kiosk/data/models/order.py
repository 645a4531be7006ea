import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric
from sqlalchemy.orm import relationship

from kiosk.data.database import Base
from kiosk.domain.errors import AlreadyPreparing, InvalidStatusTransition


class OrderStatus(str, Enum):
    IN_CART = "IN_CART"  # never persisted, the cart stands in for it
    PAYMENT_PENDING = "PAYMENT_PENDING"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    IN_PREPARATION = "IN_PREPARATION"
    READY_FOR_PICKUP = "READY_FOR_PICKUP"
    PICKED_UP = "PICKED_UP"
    CANCELED = "CANCELED"


TERMINAL = (OrderStatus.PICKED_UP.value, OrderStatus.CANCELED.value)

# target -> statuses it may be entered from
_FORWARD = {
    OrderStatus.PAYMENT_CONFIRMED.value: (OrderStatus.PAYMENT_PENDING.value,),
    OrderStatus.IN_PREPARATION.value: (OrderStatus.PAYMENT_CONFIRMED.value,),
    OrderStatus.READY_FOR_PICKUP.value: (OrderStatus.IN_PREPARATION.value,),
    OrderStatus.PICKED_UP.value: (OrderStatus.READY_FOR_PICKUP.value,),
}


def _now():
    return datetime.now(timezone.utc)


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    transaction_number = Column(Integer, nullable=False, unique=True, index=True)

    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    payment_id = Column(String(36), ForeignKey("payments.id"), nullable=True)

    status = Column(String(30), nullable=False, default=OrderStatus.PAYMENT_CONFIRMED.value)
    total = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        order_by="OrderItemModel.id",
        cascade="all, delete-orphan",
    )

    @classmethod
    def from_cart(cls, cart, transaction_number: int, payment_id: str, customer_id: int | None = None) -> "OrderModel":
        """Copies every cart line, keeping the price captured when it was added."""
        now = _now()
        order = cls(
            id=str(uuid.uuid4()),
            transaction_number=transaction_number,
            customer_id=customer_id,
            payment_id=payment_id,
            status=OrderStatus.PAYMENT_CONFIRMED.value,
            created_at=now,
            updated_at=now,
        )
        for line in cart.items:
            order.items.append(
                OrderItemModel(
                    product_id=line.product_id,
                    product_name=line.product_name,
                    quantity=line.quantity,
                    unit_price=Decimal(str(line.unit_price)),
                    note=line.note,
                )
            )
        order.total = sum((i.subtotal for i in order.items), Decimal("0.00"))
        return order

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL

    def start_preparing(self) -> None:
        if self.status == OrderStatus.IN_PREPARATION:
            raise AlreadyPreparing(self.status, OrderStatus.IN_PREPARATION.value)
        self._advance(OrderStatus.IN_PREPARATION.value)

    def mark_ready(self) -> None:
        self._advance(OrderStatus.READY_FOR_PICKUP.value)

    def confirm_pickup(self) -> None:
        self._advance(OrderStatus.PICKED_UP.value)

    def cancel(self) -> None:
        """Status only; giving the stock back is the caller's job (see OrderService.cancel)."""
        if self.is_terminal:
            raise InvalidStatusTransition(self.status, OrderStatus.CANCELED.value)
        self.status = OrderStatus.CANCELED.value
        self.updated_at = _now()

    def _advance(self, target: str) -> None:
        if self.status not in _FORWARD.get(target, ()):
            raise InvalidStatusTransition(self.status, target)
        self.status = target
        self.updated_at = _now()


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    product_name = Column(String(120), nullable=False)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    note = Column(String(255), nullable=True)

    order = relationship("OrderModel", back_populates="items")

    @property
    def subtotal(self) -> Decimal:
        return Decimal(str(self.unit_price)) * self.quantity
