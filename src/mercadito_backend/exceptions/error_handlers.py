"""
FastAPI exception handlers for structured error responses.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
import logging

from mercadito_backend.exceptions.exceptions import (
    MercaditoException,
    BadRequestException,
    UnauthorizedException,
    ForbiddenException,
    NotFoundException,
    ConflictException,
    RateLimitException,
    DatabaseQueryException,
    InternalServerException,
)
from mercadito_backend.settings import settings


logger = logging.getLogger(__name__)


def _include_debug() -> bool:
    return (
        settings.DEBUG_MODE.lower() in ['dev', 'development', 'local']
        and not settings.DISABLE_API_DEBUG_INFO
    )


def _render(exc: MercaditoException, details=None) -> JSONResponse:
    include_debug = _include_debug()
    error_response = exc.to_error_response(include_debug=include_debug)

    # Only error_code and message reach the client; the rest is logged
    response_data = {
        "error_code": error_response.error_code,
        "message": error_response.message,
    }
    if details:
        response_data["details"] = details
    if include_debug and error_response.debug:
        response_data["debug"] = error_response.debug.model_dump(exclude_none=True)

    return JSONResponse(
        status_code=exc.status_code,
        content=response_data,
        headers=exc.headers or {},
    )


async def mercadito_exception_handler(request: Request, exc: MercaditoException) -> JSONResponse:
    log_error(request, exc)
    return _render(exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for error in exc.errors():
        field = " -> ".join(str(x) for x in error["loc"][1:])  # Skip 'body' prefix
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    exception = BadRequestException(
        detail="Request validation failed",
        context={"validation_errors": errors},
    )

    logger.warning(f"Validation error on {request.method} {request.url.path}: {errors}")
    return _render(exception, details={"validation_errors": errors} if errors else None)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Map plain HTTPExceptions (routing 404s, 405s...) onto the error code scheme."""
    exception_map = {
        status.HTTP_400_BAD_REQUEST: BadRequestException,
        status.HTTP_401_UNAUTHORIZED: UnauthorizedException,
        status.HTTP_403_FORBIDDEN: ForbiddenException,
        status.HTTP_404_NOT_FOUND: NotFoundException,
        status.HTTP_409_CONFLICT: ConflictException,
    }

    exception_class = exception_map.get(exc.status_code)
    if exception_class is None:
        # Keep the original status (e.g. 405) with a generic code
        mercadito_exc = InternalServerException(detail=exc.detail, headers=getattr(exc, "headers", None))
        mercadito_exc.status_code = exc.status_code
    else:
        mercadito_exc = exception_class(detail=exc.detail, headers=getattr(exc, "headers", None))

    return await mercadito_exception_handler(request, mercadito_exc)


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    exception = RateLimitException(
        detail=f"Rate limit exceeded: {exc.detail}",
        headers={"Retry-After": "60"},
    )
    log_error(request, exception)
    return _render(exception)


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(f"Database error on {request.method} {request.url.path}", exc_info=exc)
    exception = DatabaseQueryException(context={"exception_type": type(exc).__name__})
    return _render(exception)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled exception on {request.method} {request.url.path}", exc_info=exc)

    exception = InternalServerException(
        detail="An unexpected error occurred",
        context={
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
        },
    )
    return _render(exception)


def log_error(request: Request, exception: MercaditoException) -> None:
    """Log error with structured information, level chosen by status code."""
    log_data = {
        "error_code": exception.error_code,
        "status_code": exception.status_code,
        "method": request.method,
        "path": request.url.path,
        "function": exception.function_name,
        "context": exception.context,
    }

    if exception.status_code >= 500:
        logger.error(f"Server error: {exception.error_code}", extra=log_data)
    elif exception.status_code >= 400:
        logger.warning(f"Client error: {exception.error_code}", extra=log_data)
    else:
        logger.info(f"Error: {exception.error_code}", extra=log_data)


def register_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(MercaditoException, mercadito_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.info("Registered custom exception handlers")
