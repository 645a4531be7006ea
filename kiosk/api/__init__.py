# kiosk/api/__init__.py
from fastapi import FastAPI
from sqlalchemy.engine import Engine

from kiosk.api.errors import register_error_handlers
from kiosk.api.routers import carts, health, orders, payments
from kiosk.data.database import init_models, make_engine, make_session_factory
from kiosk.services.lock_service import LockService
from kiosk.services.notification_service import NotificationService
from kiosk.services.payment_gateway import build_qr_gateway
from kiosk.utils.logging import RequestLoggingMiddleware
from kiosk.utils.settings import (
    CART_TTL_SECONDS,
    CHECKOUT_STRICT_AMOUNT,
    SERVICE_VERSION,
)


def create_app(
    engine: Engine | None = None,
    lock_service: LockService | None = None,
    qr_gateway=None,
    notifier: NotificationService | None = None,
    strict_checkout_amount: bool = CHECKOUT_STRICT_AMOUNT,
    cart_ttl_seconds: int = CART_TTL_SECONDS,
) -> FastAPI:
    """
    Builds the app and its collaborators once; routers read them from app.state.
    """
    app = FastAPI(title="Kiosk Ordering Service", version=SERVICE_VERSION)

    engine = engine or make_engine()
    init_models(engine)

    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)
    app.state.lock_service = lock_service or LockService()
    app.state.qr_gateway = qr_gateway or build_qr_gateway()
    app.state.notifier = notifier or NotificationService()
    app.state.strict_checkout_amount = strict_checkout_amount
    app.state.cart_ttl_seconds = cart_ttl_seconds

    app.add_middleware(RequestLoggingMiddleware)
    register_error_handlers(app)

    app.include_router(health.router)
    app.include_router(carts.router)
    app.include_router(payments.router)
    app.include_router(orders.router)
    return app
