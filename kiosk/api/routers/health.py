# kiosk/api/routers/health.py
import time
from datetime import datetime, timezone
from enum import Enum

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from kiosk.utils.logging import get_logger
from kiosk.utils.settings import SERVICE_NAME, SERVICE_VERSION

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


class HealthStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
def health():
    """Liveness for load balancers, no dependency checks."""
    return {
        "status": HealthStatus.PASS,
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "timestamp": _now(),
    }


@router.get("/health/live")
def liveness():
    return {"status": "alive"}


@router.get("/health/ready")
def readiness(request: Request):
    """
    Readiness probe. The database must answer; redis only degrades the
    result to "warn" since carts and orders keep working without it.
    """
    checks = {
        "database:connectivity": _check_database(request.app.state.engine),
        "cache:connectivity": _check_redis(request.app.state.lock_service),
    }
    statuses = [c["status"] for c in checks.values()]
    if HealthStatus.FAIL in statuses:
        overall = HealthStatus.FAIL
    elif HealthStatus.WARN in statuses:
        overall = HealthStatus.WARN
    else:
        overall = HealthStatus.PASS

    code = status.HTTP_503_SERVICE_UNAVAILABLE if overall == HealthStatus.FAIL else status.HTTP_200_OK
    return JSONResponse(
        status_code=code,
        content={
            "status": overall.value,
            "serviceId": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "checks": checks,
            "timestamp": _now(),
        },
    )


def _check_database(engine) -> dict:
    start = time.perf_counter()
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        return {"status": HealthStatus.FAIL.value, "componentType": "datastore", "output": str(e), "time": _now()}
    return {
        "status": HealthStatus.PASS.value,
        "componentType": "datastore",
        "observedValue": f"{(time.perf_counter() - start) * 1000:.2f}ms",
        "time": _now(),
    }


def _check_redis(lock_service) -> dict:
    try:
        lock_service.ping()
    except RedisError as e:
        logger.warning(f"Redis health check failed: {e}")
        return {"status": HealthStatus.WARN.value, "componentType": "cache", "output": str(e), "time": _now()}
    return {"status": HealthStatus.PASS.value, "componentType": "cache", "time": _now()}
