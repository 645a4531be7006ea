# kiosk/services/notification_service.py
from kiosk.celery_worker import celery_app
from kiosk.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Customer notifications, processed asynchronously by Celery.
    """

    def order_placed(self, order_id: str, order_number: int, customer_id: int | None = None):
        send_order_notification_task.delay(order_id, order_number, "placed", customer_id)

    def order_ready(self, order_id: str, order_number: int, customer_id: int | None = None):
        send_order_notification_task.delay(order_id, order_number, "ready", customer_id)


@celery_app.task(name="kiosk.services.notification_service.send_order_notification_task")
def send_order_notification_task(order_id: str, order_number: int, event: str, customer_id: int | None = None):
    """
    A real deployment would push to the order board display or SMS here.
    For now the notification is only logged.
    """
    logger.info(
        f"[NOTIFICATION] Order #{order_number} ({order_id}): {event}",
        extra={"extra_fields": {"order_id": order_id, "event": event, "customer_id": customer_id}},
    )
    return {"order_id": order_id, "order_number": order_number, "event": event, "status": "sent"}
