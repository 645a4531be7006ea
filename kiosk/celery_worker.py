# kiosk/celery_worker.py
from celery import Celery

from kiosk.utils.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND

celery_app = Celery(
    "kiosk",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# tasks live outside this module, register them explicitly
celery_app.conf.imports = (
    "kiosk.tasks.expire",
    "kiosk.services.notification_service",
)

celery_app.conf.beat_schedule = {
    "expire-carts-every-minute": {
        "task": "kiosk.tasks.expire.expire_carts_task",
        "schedule": 60.0,
    },
    "expire-payments-every-30s": {
        "task": "kiosk.tasks.expire.expire_payments_task",
        "schedule": 30.0,
    },
}

celery_app.conf.timezone = "UTC"
