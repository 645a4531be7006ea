# kiosk/services/payment_gateway.py
from decimal import Decimal

import requests

from kiosk.domain.errors import PaymentGatewayError
from kiosk.utils.logging import get_logger
from kiosk.utils.retry import http_retry
from kiosk.utils.settings import PAYMENT_GATEWAY_URL, PAYMENT_QR_TTL_SECONDS

logger = get_logger(__name__)


class QrCodeClient:
    """HTTP client for the QR payment provider."""

    def __init__(self, base_url: str | None = None, timeout: int = 2):
        self.base_url = (base_url or PAYMENT_GATEWAY_URL).rstrip("/")
        self.timeout = timeout

    @http_retry()
    def _post(self, payment_id: str, amount: Decimal) -> dict:
        url = f"{self.base_url}/qrcodes"
        logger.info(f"QrCodeClient POST {url}")

        resp = requests.post(
            url,
            json={"paymentId": payment_id, "amount": str(amount)},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def generate(self, payment_id: str, amount: Decimal) -> dict:
        try:
            data = self._post(payment_id, amount)
        except requests.RequestException as e:
            logger.error(f"QR gateway failed for payment {payment_id}: {e}")
            raise PaymentGatewayError() from e

        try:
            return {
                "url": data["url"],
                "text": data["text"],
                "ttl_seconds": int(data.get("ttlSeconds", PAYMENT_QR_TTL_SECONDS)),
            }
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"QR gateway returned an unexpected body for payment {payment_id}: {data}")
            raise PaymentGatewayError("Payment gateway returned an invalid response") from e


class StubQrCodeGateway:
    """In-process gateway used when no provider url is configured."""

    def __init__(self, ttl_seconds: int = PAYMENT_QR_TTL_SECONDS):
        self.ttl_seconds = ttl_seconds

    def generate(self, payment_id: str, amount: Decimal) -> dict:
        return {
            "url": f"https://api.mercadopago.com/v1/payments/qr/{payment_id}",
            "text": f"pix-qr-code-payload-for-{payment_id}-{amount}",
            "ttl_seconds": self.ttl_seconds,
        }


def build_qr_gateway(url: str | None = None):
    url = PAYMENT_GATEWAY_URL if url is None else url
    if url:
        return QrCodeClient(url)
    logger.info("PAYMENT_GATEWAY_URL not set, using stub QR gateway")
    return StubQrCodeGateway()
