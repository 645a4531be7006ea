#import all models so SQLAlchemy registers them in Base.metadata

from kiosk.data.models.product import ProductModel
from kiosk.data.models.customer import CustomerModel
from kiosk.data.models.cart import CartModel
from kiosk.data.models.cart_item import CartItemModel
from kiosk.data.models.payment import PaymentModel, PaymentStatus
from kiosk.data.models.order import OrderModel, OrderItemModel, OrderStatus

__all__ = [
    "ProductModel",
    "CustomerModel",
    "CartModel",
    "CartItemModel",
    "PaymentModel",
    "PaymentStatus",
    "OrderModel",
    "OrderItemModel",
    "OrderStatus",
]
