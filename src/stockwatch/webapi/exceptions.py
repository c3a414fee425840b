"""Exception handlers mapping domain and framework errors to the error envelope."""

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..config.logging import get_logger
from ..exceptions import StockWatchError
from .models.responses import ErrorResponse

logger = get_logger(__name__)


class ValidationException(StockWatchError):
    """A request value the service rejected after parsing succeeded."""

    def __init__(
        self,
        message: str = "Validation failed",
        field_errors: Optional[Dict[str, str]] = None,
    ):
        super().__init__(
            message=message,
            status_code=422,
            details={"field_errors": field_errors or {}},
        )


def _request_context(request: Request) -> Dict[str, Any]:
    return {
        "request_id": getattr(request.state, "request_id", None),
        "path": request.url.path,
        "method": request.method,
    }


def _error_response(
    request: Request,
    status_code: int,
    error_type: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    body = ErrorResponse.build(
        error_type,
        message,
        status_code,
        details=details,
        request_id=getattr(request.state, "request_id", None),
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json"),
        headers=headers,
    )


async def stockwatch_exception_handler(
    request: Request, exc: StockWatchError
) -> JSONResponse:
    """Domain errors carry their own status code and details."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "Domain error",
        exception_type=type(exc).__name__,
        message=exc.message,
        status_code=exc.status_code,
        **_request_context(request),
    )
    return _error_response(
        request, exc.status_code, type(exc).__name__, exc.message, exc.details
    )


async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Body, path and query parsing failures, keyed by dotted field path."""
    field_errors = {
        ".".join(str(part) for part in error["loc"]): error["msg"]
        for error in exc.errors()
    }
    logger.warning(
        "Request validation failed", field_errors=field_errors, **_request_context(request)
    )
    return _error_response(
        request,
        422,
        "ValidationError",
        "Request validation failed",
        {"field_errors": field_errors},
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Authentication failures and unknown routes."""
    logger.warning(
        "HTTP exception occurred",
        status_code=exc.status_code,
        detail=exc.detail,
        **_request_context(request),
    )
    return _error_response(
        request,
        exc.status_code,
        "HTTPException",
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything unexpected: logged in full, reported without internals."""
    logger.error(
        "Unexpected exception occurred",
        exception_type=type(exc).__name__,
        message=str(exc),
        exc_info=True,
        **_request_context(request),
    )
    return _error_response(
        request, 500, "InternalServerError", "An unexpected error occurred"
    )


def setup_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StockWatchError, stockwatch_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
