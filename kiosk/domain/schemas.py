# kiosk/domain/schemas.py
from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, List, Literal

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

# amounts travel as JSON numbers, kept as Decimal inside
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base schema: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Envelope(CamelModel):
    status: Literal["sucesso"] = "sucesso"
    timestamp: datetime = Field(default_factory=_now)


class ErrorOut(CamelModel):
    status: Literal["erro"] = "erro"
    error: str
    message: str
    timestamp: datetime = Field(default_factory=_now)


# --- cart ---------------------------------------------------------------

class AddItemIn(CamelModel):
    """Schema for adding a product to the session cart."""

    session_id: str = Field(..., min_length=1, max_length=64)
    product_id: int = Field(..., gt=0)
    quantity: int = Field(..., description="Quantity (must be > 0)")
    note: str | None = Field(None, max_length=255)


class SessionIn(CamelModel):
    session_id: str = Field(..., min_length=1, max_length=64)


class RemoveItemIn(CamelModel):
    session_id: str = Field(..., min_length=1, max_length=64)
    item_id: str = Field(..., min_length=1)


class AddItemOut(Envelope):
    item_id: str
    cart_subtotal: Money


class RemoveItemOut(Envelope):
    cart_subtotal: Money


class ConfirmCartOut(Envelope):
    validated: bool
    total: Money
    next_step: str


class ProductRefOut(CamelModel):
    id: int
    name: str
    category: str
    unit_price: Money


class CartItemOut(CamelModel):
    id: str
    product: ProductRefOut
    quantity: int
    note: str | None = None
    subtotal: Money


class CartOut(Envelope):
    session_id: str
    items: List[CartItemOut]
    subtotal: Money
    total: Money
    confirmed: bool = False


# --- payment ------------------------------------------------------------

class CheckoutIn(CamelModel):
    session_id: str = Field(..., min_length=1, max_length=64)
    amount: Decimal = Field(..., max_digits=10, decimal_places=2)


class CheckoutOut(Envelope):
    qr_url: str
    qr_text: str
    payment_id: str
    expires_at: datetime


class PaymentConfirmIn(CamelModel):
    """Gateway webhook body."""

    payment_id: str = Field(..., min_length=1)
    decision: str
    external_ref: str = Field(..., min_length=1, max_length=100)
    amount_paid: Decimal = Field(..., max_digits=10, decimal_places=2)
    method: str = Field(..., min_length=1, max_length=30)


class PaymentConfirmOut(Envelope):
    confirmed: bool


class PlaceOrderIn(CamelModel):
    session_id: str = Field(..., min_length=1, max_length=64)
    payment_id: str = Field(..., min_length=1)
    customer_id: int | None = Field(None, gt=0)


class PlaceOrderOut(Envelope):
    order_id: str
    order_number: int


class TimerOut(CamelModel):
    # polled by the kiosk screen, the timer state replaces the envelope status
    status: Literal["active", "expired"]
    seconds_remaining: int
    timestamp: datetime = Field(default_factory=_now)


# --- orders -------------------------------------------------------------

class OrderItemOut(CamelModel):
    product_id: int
    product_name: str
    quantity: int
    unit_price: Money
    note: str | None = None
    subtotal: Money


class OrderOut(CamelModel):
    id: str
    order_number: int
    status: str
    customer_id: int | None = None
    payment_id: str | None = None
    total: Money
    items: List[OrderItemOut]
    created_at: datetime
    updated_at: datetime


class OrderBoardEntryOut(OrderOut):
    waiting_time: str


class OrderEnvelopeOut(Envelope):
    order: OrderOut


class OrderListOut(Envelope):
    orders: List[OrderBoardEntryOut]
