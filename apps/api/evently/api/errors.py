from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from evently.errors import (
    ConflictError,
    ErrorCode,
    NotFoundError,
    PermissionDeniedError,
    ServiceError,
    StoreUnavailableError,
    ValidationError,
)

logger = structlog.get_logger(__name__)


def status_for_service_error(err: ServiceError) -> int:
    if isinstance(err, ValidationError):
        return 400
    if isinstance(err, NotFoundError):
        return 404
    if isinstance(err, PermissionDeniedError):
        return 403
    if isinstance(err, ConflictError):
        return 409
    return 500


def error_response(
    status_code: int,
    message: str,
    code: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "code": code},
        headers=headers,
    )


def _first_validation_message(exc: RequestValidationError) -> str:
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part not in {"body", "query", "path"})
        message = error.get("msg", "invalid input")
        return f"{location}: {message}" if location else message
    return "invalid input"


async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
    status_code = status_for_service_error(exc)
    if isinstance(exc, StoreUnavailableError) or status_code >= 500:
        logger.error("request_failed", path=request.url.path, code=exc.code.value, error=exc.message)
    return error_response(status_code, exc.message, exc.code.value)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(400, _first_validation_message(exc), ErrorCode.VALIDATION_ERROR.value)


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    code = ErrorCode.UNAUTHORIZED.value if exc.status_code == 401 else f"HTTP_{exc.status_code}"
    return error_response(exc.status_code, str(exc.detail), code, headers=exc.headers)


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", method=request.method, path=request.url.path)
    return error_response(500, "Something went wrong", ErrorCode.INTERNAL_ERROR.value)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, handle_service_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected)
