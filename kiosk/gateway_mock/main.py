# kiosk/gateway_mock/main.py
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from kiosk.services.payment_gateway import StubQrCodeGateway

app = FastAPI(title="QR Payment Gateway (dev mock)")

_gateway = StubQrCodeGateway()
ISSUED = {}


class QrCodeIn(BaseModel):
    paymentId: str = Field(..., min_length=1)
    amount: str


@app.post("/qrcodes")
def create_qr_code(payload: QrCodeIn):
    qr = _gateway.generate(payload.paymentId, payload.amount)
    ISSUED[payload.paymentId] = qr
    return {"url": qr["url"], "text": qr["text"], "ttlSeconds": qr["ttl_seconds"]}


@app.get("/qrcodes/{payment_id}")
def get_qr_code(payment_id: str):
    qr = ISSUED.get(payment_id)
    if not qr:
        raise HTTPException(status_code=404, detail="QR code not found")
    return {"url": qr["url"], "text": qr["text"], "ttlSeconds": qr["ttl_seconds"]}
