# kiosk/api/routers/carts.py
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from kiosk.data.database import get_db
from kiosk.domain.schemas import (
    AddItemIn,
    AddItemOut,
    CartOut,
    ConfirmCartOut,
    RemoveItemIn,
    RemoveItemOut,
    SessionIn,
)
from kiosk.services.cart_service import CartService
from kiosk.utils.logging import set_request_context

router = APIRouter(prefix="/carrinho", tags=["carrinho"])


def get_service(request: Request, db: Session = Depends(get_db)) -> CartService:
    return CartService(db=db, ttl_seconds=request.app.state.cart_ttl_seconds)


@router.post("/adicionar", response_model=AddItemOut)
def add_item(payload: AddItemIn, svc: CartService = Depends(get_service)):
    set_request_context(session_id=payload.session_id)
    return svc.add_item(
        session_id=payload.session_id,
        product_id=payload.product_id,
        quantity=payload.quantity,
        note=payload.note,
    )


@router.post("/confirmar", response_model=ConfirmCartOut)
def confirm_cart(payload: SessionIn, svc: CartService = Depends(get_service)):
    set_request_context(session_id=payload.session_id)
    return svc.confirm(payload.session_id)


@router.get("/visualizar", response_model=CartOut)
def view_cart(
    session_id: str = Query(..., alias="sessionId", min_length=1),
    svc: CartService = Depends(get_service),
):
    """Empty cart shape when the session has no cart yet."""
    return svc.view(session_id)


@router.delete("/remover", response_model=RemoveItemOut)
def remove_item(payload: RemoveItemIn, svc: CartService = Depends(get_service)):
    set_request_context(session_id=payload.session_id)
    return svc.remove_item(payload.session_id, payload.item_id)
