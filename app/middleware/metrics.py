"""Request metrics middleware for Prometheus monitoring."""

import time

from fastapi import Request, Response
from prometheus_client import Histogram
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.core.events import REQUESTS_TOTAL, RESPONSES_TOTAL
from app.core.logging import get_logger

logger = get_logger()

REQUEST_DURATION = Histogram(
    "app_http_request_duration_seconds",
    "HTTP request duration in seconds",
    labelnames=["method", "path"],
)


def route_path(request: Request) -> str:
    """Return the template of the route that handled ``request``.

    Handles are random, so labelling metrics with the raw path would create a
    new series per share link. The router records the matched route in the
    scope; requests no route claimed collapse into one label.
    """
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path if isinstance(path, str) else "unmatched"


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware to collect request/response metrics.

    Records:
    - Total requests by method and route
    - Total responses by status code
    - Request duration histogram
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """
        Process the request/response cycle and record metrics.

        Args:
        ----
            request: The incoming request
            call_next: The next handler in the middleware chain

        Returns:
        -------
            The response from downstream handlers
        """
        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
            )
            raise
        duration = time.perf_counter() - start_time

        path = route_path(request)
        REQUESTS_TOTAL.labels(method=request.method, path=path).inc()

        RESPONSES_TOTAL.labels(status_code=str(response.status_code)).inc()
        REQUEST_DURATION.labels(method=request.method, path=path).observe(duration)
        logger.info(
            "request_processed",
            method=request.method,
            path=path,
            status_code=response.status_code,
            duration=duration,
        )
        return response
