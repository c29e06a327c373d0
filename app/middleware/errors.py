"""Error handling middleware."""

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from app.content_store.errors import (
    ContentStoreError,
    InvalidInput,
    PayloadTooLarge,
    StorageFailure,
)
from app.core.logging import get_logger

logger = get_logger()

# Map exception types to status codes (None means use exception's status_code)
ErrorMapping = dict[type[Exception], int | None]

ERROR_MAPPING: ErrorMapping = {
    InvalidInput: HTTP_400_BAD_REQUEST,
    PayloadTooLarge: HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    StorageFailure: HTTP_500_INTERNAL_SERVER_ERROR,
    ValueError: HTTP_422_UNPROCESSABLE_ENTITY,
    RequestValidationError: HTTP_422_UNPROCESSABLE_ENTITY,
    HTTPException: None,  # Use its own status_code
}

# Internal details of these errors are not shown to clients
_OPAQUE_ERRORS: tuple[type[Exception], ...] = (StorageFailure,)


def error_body(
    error_type: str,
    message: str,
    status_code: int,
    correlation_id: str | None,
) -> dict[str, object]:
    """Build the JSON body shared by every error response."""
    return {
        "error": error_type,
        "message": message,
        "status_code": status_code,
        "correlation_id": correlation_id if correlation_id else "unknown",
    }


def _status_for(exc: Exception) -> int:
    """Resolve the status code for ``exc`` using the closest mapped type."""
    if isinstance(exc, HTTPException):
        return exc.status_code
    for exc_type in type(exc).__mro__:
        mapped = ERROR_MAPPING.get(exc_type)
        if mapped is not None:
            return mapped
    return int(getattr(exc, "status_code", HTTP_500_INTERNAL_SERVER_ERROR))


def _get_error_detail(exc: Exception) -> tuple[str, int]:
    """Get error detail and status code from exception."""
    status_code = _status_for(exc)
    if isinstance(exc, HTTPException):
        return str(exc.detail), status_code
    if isinstance(exc, RequestValidationError):
        return "Request validation failed", status_code
    if isinstance(exc, _OPAQUE_ERRORS):
        return "Storage operation failed", status_code
    return str(exc.args[0] if exc.args else str(exc)), status_code


def _log_error(
    request: Request,
    exc: Exception,
    detail: str,
    status_code: int,
    correlation_id: str | None,
) -> None:
    """Log error details; client errors at warning, server errors at error."""
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "request_error",
        error_type=exc.__class__.__name__,
        error_message=str(exc) if status_code >= 500 else detail,
        status_code=status_code,
        path=request.url.path,
        method=request.method,
        correlation_id=correlation_id,
    )


async def handle_exception(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle any exception and return a JSON response.

    Args:
    ----
        request: The request that caused the exception
        exc: The exception to handle

    Returns:
    -------
        A JSON response with error details
    """
    correlation_id = getattr(request.state, "correlation_id", None)
    detail, status_code = _get_error_detail(exc)
    _log_error(request, exc, detail, status_code, correlation_id)

    response = JSONResponse(
        status_code=status_code,
        content=error_body(
            exc.__class__.__name__, detail, status_code, correlation_id
        ),
    )
    if correlation_id:
        response.headers["X-Request-ID"] = correlation_id
    if isinstance(exc, HTTPException) and exc.headers:
        response.headers.update(exc.headers)
    return response


def register_error_handlers(app: FastAPI) -> None:
    """Route framework and content store errors through :func:`handle_exception`."""
    app.exception_handlers[HTTPException] = handle_exception
    app.exception_handlers[RequestValidationError] = handle_exception
    app.exception_handlers[ContentStoreError] = handle_exception


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware to turn uncaught exceptions into consistent error responses.

    Responses the routes build themselves, including error statuses, pass
    through unchanged.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """
        Process the request/response cycle and handle errors.

        Args:
        ----
            request: The incoming request
            call_next: The next handler in the middleware chain

        Returns:
        -------
            The response from downstream handlers or error response
        """
        try:
            return await call_next(request)
        except Exception as exc:
            return await handle_exception(request, exc)
