"""Correlation ID middleware for request tracking."""

import re
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from structlog.contextvars import bind_contextvars, clear_contextvars

from app.core.logging import get_logger

logger = get_logger()

CORRELATION_HEADER = "X-Request-ID"

# Header values are echoed back and logged, so keep them short and printable
_CORRELATION_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


class CorrelationMiddleware(BaseHTTPMiddleware):
    """
    Middleware to handle request correlation IDs.

    Assigns a correlation ID to each request and adds it to:
    - Request state
    - Response headers
    - Structured logging context
    """

    @staticmethod
    def _validate_correlation_id(value: str | None) -> bool:
        """Return True if a client supplied ID can be reused as is."""
        return bool(value) and _CORRELATION_ID_PATTERN.match(value or "") is not None

    def _get_correlation_id(self, request: Request) -> str:
        """
        Get or generate a correlation ID.

        Args:
        ----
            request: The incoming request

        Returns:
        -------
            The client's X-Request-ID when valid, otherwise a new UUID4
        """
        header_value = request.headers.get(CORRELATION_HEADER, "")
        if self._validate_correlation_id(header_value):
            return header_value
        return str(uuid.uuid4())

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """
        Process the request/response cycle.

        Args:
        ----
            request: The incoming request
            call_next: The next handler in the middleware chain

        Returns:
        -------
            The response from downstream handlers
        """
        clear_contextvars()

        correlation_id = self._get_correlation_id(request)
        bind_contextvars(correlation_id=correlation_id)
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response
