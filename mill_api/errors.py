"""
Exception-to-response mapping for the HTTP boundary.

Services raise typed ``AppError`` subclasses and never know about HTTP.
This module is the one place where an error category becomes a status code:

    ValidationError / StockError     -> 400
    ForbiddenError                   -> 403
    NotFoundError                    -> 404
    ConcurrencyError / Immutability  -> 409
    any other AppError               -> 400
    anything else                    -> 500 (generic message, logged with traceback)

Every error body has the same shape: ``{"success": false, "code", "message"}``.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from mill_kernel.exceptions import (
    AppError,
    ConcurrencyError,
    ForbiddenError,
    ImmutabilityError,
    NotFoundError,
    StockError,
    ValidationError,
)
from mill_kernel.logging_config import get_logger

logger = get_logger("api.errors")

# First match wins; subclasses before their bases.
STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (ValidationError, 400),
    (StockError, 400),
    (ForbiddenError, 403),
    (NotFoundError, 404),
    (ConcurrencyError, 409),
    (ImmutabilityError, 409),
)

INTERNAL_ERROR_MESSAGE = "An unexpected error occurred"


def status_for(exc: AppError) -> int:
    for error_type, status in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 400


def error_body(code: str, message: str, **extra) -> dict:
    body = {"success": False, "code": code, "message": message}
    body.update(extra)
    return body


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def register_exception_handlers(app: FastAPI, debug: bool = False) -> None:
    """Attach the AppError, request-validation and catch-all handlers."""

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
        status = status_for(exc)
        logger.info(
            "request_failed",
            extra={
                "path": request.url.path,
                "status_code": status,
                "error_code": exc.code,
            },
        )
        return JSONResponse(status_code=status, content=error_body(exc.code, str(exc)))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content=error_body(ValidationError.code, _first_validation_message(exc)),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_request_error",
            extra={"path": request.url.path, "method": request.method},
            exc_info=exc,
        )
        extra = {"detail": f"{type(exc).__name__}: {exc}"} if debug else {}
        return JSONResponse(
            status_code=500,
            content=error_body("INTERNAL_ERROR", INTERNAL_ERROR_MESSAGE, **extra),
        )
