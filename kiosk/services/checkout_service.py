# kiosk/services/checkout_service.py
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy.orm import Session

from kiosk.data.models.payment import PaymentModel, PaymentStatus
from kiosk.domain.errors import (
    AmountMismatch,
    CartNotConfirmed,
    CartNotFound,
    CheckoutAmountMismatch,
    PaymentAlreadyResolved,
    PaymentNotFound,
)
from kiosk.repos.cart_repo import CartRepo
from kiosk.repos.payment_repo import PaymentRepo
from kiosk.services.lock_service import LockService
from kiosk.utils.clock import utcnow
from kiosk.utils.logging import get_logger
from kiosk.utils.settings import CHECKOUT_STRICT_AMOUNT

logger = get_logger(__name__)


class CheckoutService:
    """
    Payment side of the checkout:
    -QR code request (one per session at a time)
    -gateway webhook
    -timer and stale payment sweep
    placing the order is OrderService's job
    """

    def __init__(
        self,
        db: Session,
        lock_service: LockService,
        qr_gateway,
        strict_amount: bool = CHECKOUT_STRICT_AMOUNT,
    ):
        self.db = db
        self.carts = CartRepo(db)
        self.payments = PaymentRepo(db)
        self.lock_service = lock_service
        self.qr_gateway = qr_gateway
        self.strict_amount = strict_amount

    def request_checkout(self, session_id: str, amount) -> Dict[str, Any]:
        with self.lock_service.session_lock(session_id):
            try:
                result = self._request_checkout(session_id, Decimal(str(amount)))
            except Exception:
                self.db.rollback()
                raise
        return result

    def _request_checkout(self, session_id: str, amount: Decimal) -> Dict[str, Any]:
        cart = self.carts.get_by_session(session_id)
        if not cart:
            raise CartNotFound(session_id)
        if not cart.confirmed:
            raise CartNotConfirmed()

        now = utcnow()
        latest = self.payments.get_latest_by_session(session_id)
        if latest:
            # lock and re-read, a webhook may be deciding this payment right now
            latest = self.payments.get_for_update(latest.id)
            if latest.is_pending:
                if latest.check_timer(now)["status"] == "active":
                    logger.info(f"Reusing pending payment {latest.id} for session {session_id}")
                    return self._qr_view(latest)
                latest.expire()
                logger.info(f"Payment {latest.id} expired, issuing a new QR code")
            elif latest.status in (PaymentStatus.APPROVED, PaymentStatus.DECLINED):
                raise PaymentAlreadyResolved(latest.status)

        payment = PaymentModel.create(session_id, amount)

        if amount != Decimal(str(cart.total)):
            if self.strict_amount:
                raise CheckoutAmountMismatch(f"Amount {amount} differs from the cart total {cart.total}")
            logger.warning(
                f"Checkout amount {amount} differs from cart total {cart.total} for session {session_id}",
                extra={"extra_fields": {"amount": str(amount), "cart_total": str(cart.total)}},
            )

        self.payments.add(payment)
        qr = self.qr_gateway.generate(payment.id, payment.amount)
        payment.issue_qr_code(qr["url"], qr["text"], qr["ttl_seconds"], now=now)
        self.db.commit()

        logger.info(f"Payment {payment.id} created for session {session_id}, amount {amount}")
        return self._qr_view(payment)

    def confirm_payment(
        self,
        payment_id: str,
        decision: str,
        external_ref: str,
        amount_paid,
        method: str,
    ) -> bool:
        """Gateway webhook. Records the decision only, the order is placed separately."""
        try:
            payment = self.payments.get_for_update(payment_id)
            if not payment:
                raise PaymentNotFound(payment_id)

            if Decimal(str(amount_paid)) != Decimal(str(payment.amount)):
                raise AmountMismatch()

            payment.confirm(decision, external_ref, method)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Payment {payment_id} {payment.status} (ref {external_ref}, method {method})")
        return payment.status == PaymentStatus.APPROVED

    def check_timer(self, payment_id: str, now: datetime | None = None) -> Dict[str, Any]:
        payment = self.payments.get(payment_id)
        if not payment:
            return {"status": "expired", "seconds_remaining": 0}
        return payment.check_timer(now)

    def expire_stale_payments(self, now: datetime | None = None) -> int:
        now = now or utcnow()
        try:
            expired = 0
            for candidate in self.payments.list_stale_pending(now):
                # rows held by a webhook are left for the next run
                payment = self.payments.get_for_update(candidate.id, skip_locked=True)
                if not payment or not payment.is_pending or payment.check_timer(now)["status"] == "active":
                    continue
                payment.expire()
                expired += 1
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if expired:
            logger.info(f"Marked {expired} pending payments as expired")
        return expired

    @staticmethod
    def _qr_view(payment: PaymentModel) -> Dict[str, Any]:
        return {
            "qr_url": payment.qr_url,
            "qr_text": payment.qr_text,
            "payment_id": payment.id,
            "expires_at": payment.expires_at,
        }
