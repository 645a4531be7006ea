# kiosk/services/cart_service.py
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kiosk.data.models.cart import CartModel
from kiosk.domain.errors import (
    CartNotFound,
    ConcurrencyConflict,
    InvalidQuantity,
    ProductNotFound,
)
from kiosk.repos.cart_repo import CartRepo
from kiosk.repos.payment_repo import PaymentRepo
from kiosk.repos.product_repo import ProductRepo
from kiosk.utils.clock import utcnow
from kiosk.utils.logging import get_logger
from kiosk.utils.settings import CART_TTL_SECONDS

logger = get_logger(__name__)

NEXT_STEP = "pagamento"


class CartService:
    """
    Use cases of the session cart
    commands (add, remove, confirm) change state and bump the version
    query (view) only reads
    """

    def __init__(self, db: Session, ttl_seconds: int = CART_TTL_SECONDS):
        self.db = db
        self.repo = CartRepo(db)
        self.products = ProductRepo(db)
        self.ttl_seconds = ttl_seconds

    # query
    def view(self, session_id: str) -> Dict[str, Any]:
        cart = self._live_cart(session_id)
        if not cart:
            return {
                "session_id": session_id,
                "items": [],
                "subtotal": Decimal("0.00"),
                "total": Decimal("0.00"),
                "confirmed": False,
            }
        return cart.view()

    # commands
    def add_item(self, session_id: str, product_id: int, quantity: int, note: str | None = None) -> Dict[str, Any]:
        if quantity <= 0:
            raise InvalidQuantity()

        try:
            product = self.products.get_product(product_id)
            if not product:
                raise ProductNotFound(product_id)

            cart = self._live_cart(session_id, purge=True)
            if not cart:
                cart = self._create_cart(session_id)

            old_version = cart.version
            line = cart.add_item(product, quantity, note)
            self._bump_version(cart, old_version)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Product {product_id} x{quantity} added to cart of session {session_id}, "
            f"version {old_version + 1}"
        )
        return {"item_id": line.id, "cart_subtotal": cart.subtotal}

    def remove_item(self, session_id: str, item_id: str) -> Dict[str, Any]:
        try:
            cart = self._live_cart(session_id)
            if not cart:
                raise CartNotFound(session_id)

            old_version = cart.version
            cart.remove_item(item_id)
            self._bump_version(cart, old_version)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Item {item_id} removed from cart of session {session_id}")
        return {"cart_subtotal": cart.subtotal}

    def confirm(self, session_id: str) -> Dict[str, Any]:
        try:
            cart = self._live_cart(session_id)
            if not cart:
                raise CartNotFound(session_id)

            if not cart.confirmed:
                old_version = cart.version
                cart.confirm()
                self._bump_version(cart, old_version)
                self.db.commit()
                logger.info(f"Cart of session {session_id} confirmed, total {cart.total}")
        except Exception:
            self.db.rollback()
            raise

        return {"validated": True, "total": cart.total, "next_step": NEXT_STEP}

    def purge_idle(self, now: datetime | None = None) -> int:
        """
        Deletes carts idle past the TTL, except those whose session is still
        paying (live QR code, or approved payment not yet turned into an order).
        """
        now = now or utcnow()
        payments = PaymentRepo(self.db)
        removed = 0
        try:
            for cart in self.repo.list_idle(now - timedelta(seconds=self.ttl_seconds)):
                if payments.session_has_open_payment(cart.session_id, now):
                    continue
                self.repo.delete_cart(cart)
                removed += 1
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if removed:
            logger.info(f"Removed {removed} idle carts")
        return removed

    # helpers
    def _live_cart(self, session_id: str, purge: bool = False) -> CartModel | None:
        # an unconfirmed cart left idle past the TTL counts as gone
        cart = self.repo.get_by_session(session_id)
        if cart and not cart.confirmed and cart.is_idle(self.ttl_seconds):
            logger.info(f"Cart of session {session_id} expired after {self.ttl_seconds}s idle")
            if purge:
                self.repo.delete_cart(cart)
                self.db.flush()
            return None
        return cart

    def _create_cart(self, session_id: str) -> CartModel:
        try:
            return self.repo.create_cart(CartModel(session_id=session_id))
        except IntegrityError as e:
            # another request created the cart for this session first
            raise ConcurrencyConflict() from e

    def _bump_version(self, cart: CartModel, old_version: int) -> None:
        rowcount = self.repo.update_cart_version(
            cart_id=cart.id,
            old_version=old_version,
            new_data={"version": old_version + 1},
        )
        if rowcount == 0:
            raise ConcurrencyConflict()
