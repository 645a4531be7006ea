# kiosk/api/routers/payments.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from kiosk.data.database import get_db
from kiosk.domain.schemas import (
    CheckoutIn,
    CheckoutOut,
    PaymentConfirmIn,
    PaymentConfirmOut,
    PlaceOrderIn,
    PlaceOrderOut,
    TimerOut,
)
from kiosk.services.checkout_service import CheckoutService
from kiosk.services.order_service import OrderService
from kiosk.utils.logging import set_request_context

router = APIRouter(prefix="/pagamento", tags=["pagamento"])


def get_service(request: Request, db: Session = Depends(get_db)) -> CheckoutService:
    state = request.app.state
    return CheckoutService(
        db=db,
        lock_service=state.lock_service,
        qr_gateway=state.qr_gateway,
        strict_amount=state.strict_checkout_amount,
    )


def get_order_service(request: Request, db: Session = Depends(get_db)) -> OrderService:
    return OrderService(db, notifier=request.app.state.notifier)


@router.post("/gerar-qrcode", response_model=CheckoutOut)
def generate_qr_code(payload: CheckoutIn, svc: CheckoutService = Depends(get_service)):
    set_request_context(session_id=payload.session_id)
    return svc.request_checkout(payload.session_id, payload.amount)


@router.post("/confirmar", response_model=PaymentConfirmOut)
def confirm_payment(payload: PaymentConfirmIn, svc: CheckoutService = Depends(get_service)):
    """Webhook called by the payment gateway."""
    confirmed = svc.confirm_payment(
        payment_id=payload.payment_id,
        decision=payload.decision,
        external_ref=payload.external_ref,
        amount_paid=payload.amount_paid,
        method=payload.method,
    )
    return {"confirmed": confirmed}


@router.post("/registrar-pedido", response_model=PlaceOrderOut)
def place_order(payload: PlaceOrderIn, svc: OrderService = Depends(get_order_service)):
    set_request_context(session_id=payload.session_id)
    return svc.place_order(payload.session_id, payload.payment_id, payload.customer_id)


@router.get("/verificar-timer/{payment_id}", response_model=TimerOut)
def check_timer(payment_id: str, svc: CheckoutService = Depends(get_service)):
    return svc.check_timer(payment_id)
