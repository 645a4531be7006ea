# kiosk/api/routers/orders.py
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from kiosk.data.database import get_db
from kiosk.data.models.order import OrderStatus
from kiosk.domain.schemas import OrderEnvelopeOut, OrderListOut
from kiosk.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(request: Request, db: Session = Depends(get_db)) -> OrderService:
    return OrderService(db, notifier=request.app.state.notifier)


@router.get("", response_model=OrderListOut)
def list_orders(
    status: OrderStatus | None = Query(None),
    svc: OrderService = Depends(get_service),
):
    """
    Kitchen board. Most recently changed orders first, waitingTime is the
    time since the last status change.
    """
    return {"orders": svc.list_orders(status.value if status else None)}


@router.get("/{order_id}", response_model=OrderEnvelopeOut)
def get_order(order_id: str, svc: OrderService = Depends(get_service)):
    return {"order": svc.get_order(order_id)}


@router.post("/{order_id}/start-preparing", response_model=OrderEnvelopeOut)
def start_preparing(order_id: str, svc: OrderService = Depends(get_service)):
    return {"order": svc.start_preparing(order_id)}


@router.post("/{order_id}/ready", response_model=OrderEnvelopeOut)
def mark_ready(order_id: str, svc: OrderService = Depends(get_service)):
    return {"order": svc.mark_ready(order_id)}


@router.post("/{order_id}/pickup", response_model=OrderEnvelopeOut)
def confirm_pickup(order_id: str, svc: OrderService = Depends(get_service)):
    return {"order": svc.confirm_pickup(order_id)}


@router.post("/{order_id}/cancel", response_model=OrderEnvelopeOut)
def cancel_order(order_id: str, svc: OrderService = Depends(get_service)):
    """Cancels a non-terminal order and puts its items back in stock."""
    return {"order": svc.cancel(order_id)}
