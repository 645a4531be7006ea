# kiosk/api/errors.py
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from kiosk.domain import errors
from kiosk.domain.schemas import ErrorOut
from kiosk.utils.logging import get_logger

logger = get_logger(__name__)

STATUS_BY_KIND = {
    errors.VALIDATION: 400,
    errors.NOT_FOUND: 404,
    errors.CONFLICT: 409,
    errors.CONSISTENCY: 422,
    errors.UPSTREAM: 502,
}


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    body = ErrorOut(error=code, message=message).model_dump(mode="json", by_alias=True)
    return JSONResponse(status_code=status_code, content=body)


async def domain_error_handler(request: Request, exc: errors.DomainError) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, 500)
    logger.warning(
        f"{request.method} {request.url.path} -> {status_code} {exc.code}: {exc.message}",
        extra={"extra_fields": {"error": exc.code, "status_code": status_code}},
    )
    return error_response(status_code, exc.code, exc.message)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = "; ".join(
        f"{'.'.join(str(p) for p in e.get('loc', ()))}: {e.get('msg')}" for e in exc.errors()
    )
    logger.info(f"{request.method} {request.url.path} -> 400 invalid request: {message}")
    return error_response(400, "ValidationError", message or "Invalid request")


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return error_response(500, "InternalError", "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(errors.DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
