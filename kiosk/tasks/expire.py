# kiosk/tasks/expire.py
from sqlalchemy.orm import sessionmaker

from kiosk.celery_worker import celery_app
from kiosk.data.database import make_engine, make_session_factory
from kiosk.services.cart_service import CartService
from kiosk.services.checkout_service import CheckoutService
from kiosk.services.lock_service import LockService
from kiosk.services.payment_gateway import build_qr_gateway
from kiosk.utils.logging import get_logger

logger = get_logger(__name__)

# built on first use so importing the module never opens a connection pool
SessionLocal: sessionmaker | None = None


def get_session_factory() -> sessionmaker:
    global SessionLocal
    if SessionLocal is None:
        SessionLocal = make_session_factory(make_engine())
    return SessionLocal


@celery_app.task(name="kiosk.tasks.expire.expire_carts_task")
def expire_carts_task():
    """
    -removes carts idle past CART_TTL_SECONDS
    -keeps carts whose session is still paying
    """
    logger.info("Expire carts task started")

    db = get_session_factory()()
    try:
        removed = CartService(db).purge_idle()
    finally:
        db.close()

    logger.info(f"Expire carts task finished, {removed} carts removed")
    return removed


@celery_app.task(name="kiosk.tasks.expire.expire_payments_task")
def expire_payments_task():
    """
    -pending payments past their QR deadline become expired
    -rows a webhook is holding are skipped until the next run
    """
    logger.info("Expire payments task started")

    db = get_session_factory()()
    try:
        svc = CheckoutService(db, lock_service=LockService(), qr_gateway=build_qr_gateway())
        expired = svc.expire_stale_payments()
    finally:
        db.close()

    logger.info(f"Expire payments task finished, {expired} payments expired")
    return expired
