"""
Structured logging for the kiosk API.

Every record is rendered as one JSON object on stdout; request-scoped
identifiers set by RequestLoggingMiddleware are attached as a "trace" block.
"""
# kiosk/utils/logging.py

import json
import logging
import sys
import time
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
session_id_var: ContextVar[Optional[str]] = ContextVar("session_id", default=None)

_service_name = "kiosk-ordering"


class StructuredFormatter(logging.Formatter):
    """JSON formatter (ELK / CloudWatch friendly)."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "@timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": _service_name,
        }

        trace = _trace_context()
        if trace:
            log_obj["trace"] = trace

        log_obj["location"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        if record.exc_info:
            log_obj["error"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "stacktrace": traceback.format_exception(*record.exc_info),
            }

        if hasattr(record, "extra_fields"):
            log_obj["custom"] = record.extra_fields

        return json.dumps(log_obj, default=str)


def _trace_context() -> Optional[Dict[str, str]]:
    context = {}
    request_id = request_id_var.get()
    if request_id:
        context["request_id"] = request_id
    session_id = session_id_var.get()
    if session_id:
        context["session_id"] = session_id
    return context or None


def setup_logging(service_name: str, level: str = "INFO") -> None:
    """
    Install the JSON formatter on the root logger.

    Args:
        service_name: value of the "service" field on every record
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
    """
    global _service_name
    _service_name = service_name

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(StructuredFormatter())
    root_logger.addHandler(console_handler)

    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    root_logger.info(
        "Logging initialized",
        extra={"extra_fields": {"service": service_name, "level": level}},
    )


class LoggerAdapter(logging.LoggerAdapter):
    """Copies request context into `extra` so handlers other than ours see it too."""

    def process(self, msg, kwargs):
        extra = kwargs.get("extra", {})
        request_id = request_id_var.get()
        if request_id:
            extra["request_id"] = request_id
        session_id = session_id_var.get()
        if session_id:
            extra["session_id"] = session_id
        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(name: str) -> LoggerAdapter:
    return LoggerAdapter(logging.getLogger(name), {})


def set_request_context(request_id: Optional[str] = None, session_id: Optional[str] = None) -> None:
    if request_id:
        request_id_var.set(request_id)
    if session_id:
        session_id_var.set(session_id)


def generate_request_id() -> str:
    return str(uuid.uuid4())


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every request with its duration and echoes X-Request-ID back.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_context(request_id=request_id)

        logger = get_logger(__name__)
        logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={"extra_fields": {"method": request.method, "path": request.url.path}},
        )

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                f"Request failed: {request.method} {request.url.path}",
                exc_info=True,
                extra={
                    "extra_fields": {
                        "method": request.method,
                        "path": request.url.path,
                        "duration_ms": (time.perf_counter() - start_time) * 1000,
                    }
                },
            )
            raise

        logger.info(
            f"Request completed: {request.method} {request.url.path}",
            extra={
                "extra_fields": {
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": (time.perf_counter() - start_time) * 1000,
                }
            },
        )
        response.headers["X-Request-ID"] = request_id
        return response
