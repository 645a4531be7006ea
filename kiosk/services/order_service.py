# kiosk/services/order_service.py
from datetime import datetime
from typing import Any, Dict, List, Tuple

from sqlalchemy.orm import Session

from kiosk.data.models.order import OrderModel
from kiosk.data.models.payment import PaymentStatus
from kiosk.domain.errors import (
    CartNotFound,
    CustomerNotFound,
    EmptyCart,
    InsufficientStock,
    OrderNotFound,
    PaymentNotApproved,
    PaymentNotFound,
    ProductNotFound,
    SessionMismatch,
)
from kiosk.repos.cart_repo import CartRepo
from kiosk.repos.customer_repo import CustomerRepo
from kiosk.repos.order_repo import OrderRepo
from kiosk.repos.payment_repo import PaymentRepo
from kiosk.repos.product_repo import ProductRepo
from kiosk.services.notification_service import NotificationService
from kiosk.utils.clock import as_utc, utcnow
from kiosk.utils.logging import get_logger
from kiosk.utils.retry import db_retry

logger = get_logger(__name__)


class OrderService:
    """
    Order domain: placement from an approved payment and the kitchen
    state machine. Kept apart from CartService and CheckoutService.
    """

    def __init__(self, db: Session, notifier: NotificationService | None = None):
        self.db = db
        self.repo = OrderRepo(db)
        self.carts = CartRepo(db)
        self.payments = PaymentRepo(db)
        self.products = ProductRepo(db)
        self.customers = CustomerRepo(db)
        self.notifier = notifier or NotificationService()

    def place_order(self, session_id: str, payment_id: str, customer_id: int | None = None) -> Dict[str, Any]:
        """
        Use case: turn the session cart into an order once its payment is approved.

        1. locks the payment, checks session and status
        2. returns the linked order if this payment was already placed
        3. locks the products, checks stock for every line
        4. decrements stock, creates the order, links the payment, deletes the cart
        5. commits once and notifies the customer (async)
        """
        order, created = self._place(session_id, payment_id, customer_id)
        if created:
            logger.info(
                f"Order {order.id} (#{order.transaction_number}) placed for session {session_id}, "
                f"total {order.total}"
            )
            self.notifier.order_placed(order.id, order.transaction_number, order.customer_id)
        return {"order_id": order.id, "order_number": order.transaction_number}

    @db_retry()
    def _place(self, session_id: str, payment_id: str, customer_id: int | None) -> Tuple[OrderModel, bool]:
        try:
            return self._place_once(session_id, payment_id, customer_id)
        except Exception:
            self.db.rollback()
            raise

    def _place_once(self, session_id: str, payment_id: str, customer_id: int | None) -> Tuple[OrderModel, bool]:
        payment = self.payments.get_for_update(payment_id)
        if not payment:
            raise PaymentNotFound(payment_id)
        if payment.session_id != session_id:
            raise SessionMismatch()
        if payment.status != PaymentStatus.APPROVED:
            raise PaymentNotApproved(payment.status)

        if payment.order_id:
            # retry of an already placed checkout
            existing = self.repo.get_order(payment.order_id)
            self.db.commit()
            logger.info(f"Payment {payment_id} already placed as order {existing.id}")
            return existing, False

        cart = self.carts.get_by_session(session_id)
        if not cart:
            raise CartNotFound(session_id)
        if not cart.items:
            raise EmptyCart()

        if customer_id is not None and not self.customers.get_customer(customer_id):
            raise CustomerNotFound(customer_id)

        # validate every line before touching stock
        locked = self.products.lock_products(line.product_id for line in cart.items)
        for line in cart.items:
            product = locked.get(line.product_id)
            if not product:
                raise ProductNotFound(line.product_id)
            if product.stock < line.quantity:
                raise InsufficientStock(product.name, product.stock, line.quantity)

        for line in cart.items:
            locked[line.product_id].stock -= line.quantity

        order = OrderModel.from_cart(
            cart,
            transaction_number=self.repo.next_transaction_number(),
            payment_id=payment.id,
            customer_id=customer_id,
        )
        self.repo.add(order)
        payment.link_order(order.id)
        self.carts.delete_cart(cart)
        self.db.commit()
        return order, True

    # queries
    def get_order(self, order_id: str) -> Dict[str, Any]:
        order = self.repo.get_order(order_id)
        if not order:
            raise OrderNotFound(order_id)
        return self._view(order)

    def list_orders(self, status: str | None = None, now: datetime | None = None) -> List[Dict[str, Any]]:
        """Kitchen board: most recently changed first, with time since the last change."""
        now = now or utcnow()
        result = []
        for order in self.repo.list_orders(status):
            view = self._view(order)
            view["waiting_time"] = waiting_time(order.updated_at, now)
            result.append(view)
        return result

    # kitchen transitions
    def start_preparing(self, order_id: str) -> Dict[str, Any]:
        return self._transition(order_id, OrderModel.start_preparing)

    def mark_ready(self, order_id: str) -> Dict[str, Any]:
        view = self._transition(order_id, OrderModel.mark_ready)
        self.notifier.order_ready(view["id"], view["order_number"], view["customer_id"])
        return view

    def confirm_pickup(self, order_id: str) -> Dict[str, Any]:
        return self._transition(order_id, OrderModel.confirm_pickup)

    def cancel(self, order_id: str) -> Dict[str, Any]:
        try:
            order = self.repo.get_for_update(order_id)
            if not order:
                raise OrderNotFound(order_id)
            order.cancel()

            # give the stock back
            locked = self.products.lock_products(item.product_id for item in order.items)
            for item in order.items:
                product = locked.get(item.product_id)
                if not product:
                    raise ProductNotFound(item.product_id)
                product.stock += item.quantity

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Order {order_id} canceled, stock restored for {len(order.items)} items")
        return self._view(order)

    def _transition(self, order_id: str, action) -> Dict[str, Any]:
        try:
            order = self.repo.get_for_update(order_id)
            if not order:
                raise OrderNotFound(order_id)
            previous = order.status
            action(order)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Order {order_id}: {previous} -> {order.status}")
        return self._view(order)

    @staticmethod
    def _view(order: OrderModel) -> Dict[str, Any]:
        return {
            "id": order.id,
            "order_number": order.transaction_number,
            "status": order.status,
            "customer_id": order.customer_id,
            "payment_id": order.payment_id,
            "total": order.total,
            "items": [
                {
                    "product_id": i.product_id,
                    "product_name": i.product_name,
                    "quantity": i.quantity,
                    "unit_price": i.unit_price,
                    "note": i.note,
                    "subtotal": i.subtotal,
                }
                for i in order.items
            ],
            "created_at": order.created_at,
            "updated_at": order.updated_at,
        }


def waiting_time(since: datetime, now: datetime) -> str:
    """Elapsed time as HH:MM."""
    minutes = max(0, int((now - as_utc(since)).total_seconds() // 60))
    return f"{minutes // 60:02d}:{minutes % 60:02d}"
