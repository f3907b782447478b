"""Exception handlers rendering every failure as the same JSON envelope.

Body shape: ``{"error", "code", "message", "path"}`` plus handler-specific
fields (``conflict``/``suggestions`` for slot conflicts, ``details`` for
request validation).
"""

from typing import Any

import structlog
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from medibook.core.exceptions import AppException

logger = structlog.get_logger()


def error_response(
    request: Request,
    status_code: int,
    error: str,
    code: str,
    message: Any,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> JSONResponse:
    """Build the common error envelope."""
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "code": code,
            "message": message,
            "path": str(request.url),
            **extra,
        },
        headers=headers,
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle scheduler failures.

    Store failures are logged; client errors (conflicts, not found,
    validation, ineligible transitions) are expected and only returned.
    """
    if exc.status_code >= 500:
        logger.error("app_exception", code=exc.code, path=request.url.path, error=exc.message)

    return error_response(
        request,
        exc.status_code,
        exc.__class__.__name__,
        exc.code,
        exc.message,
        **exc.extra(),
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Handle HTTP exceptions raised by FastAPI or dependencies."""
    return error_response(
        request,
        exc.status_code,
        "HTTPException",
        "HTTP_ERROR",
        exc.detail,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle request validation errors, including malformed dates and times."""
    return error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "ValidationError",
        "VALIDATION_ERROR",
        "Request validation failed",
        details=jsonable_errors(exc),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error("unhandled_exception", path=request.url.path, error=str(exc), exc_info=exc)
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "InternalServerError",
        "INTERNAL_ERROR",
        "An unexpected error occurred",
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """Validation errors with non-JSON context values stringified."""
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors
