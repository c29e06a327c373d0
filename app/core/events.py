"""Application startup and shutdown events."""

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, Optional

from prometheus_client import Counter

from app.content_store.config import create_sweeper, get_content_service
from app.content_store.service import ContentService
from app.content_store.sweeper import ExpirySweeper
from app.core.auth import get_token_verifier
from app.core.config import settings
from app.core.logging import configure_logging, get_logger, resolve_level

# Prometheus metrics
REQUESTS_TOTAL = Counter(
    "app_http_requests_total",
    "Total number of HTTP requests",
    labelnames=["method", "path"],
)

RESPONSES_TOTAL = Counter(
    "app_http_responses_total",
    "Total number of HTTP responses",
    labelnames=["status_code"],
)

logger = get_logger()


class AppStateDict:
    """Application state holding the long-lived components."""

    def __init__(self) -> None:
        """Initialize state."""
        self.content_service: Optional[ContentService] = None
        self.sweeper: Optional[ExpirySweeper] = None

    def health_check(self) -> dict[str, Any]:
        """Report whether each component is up.

        Returns:
            Dict containing health status of all components
        """
        sweeper_ok = self.sweeper is None or self.sweeper.is_running
        return {
            "status": "healthy" if sweeper_ok else "degraded",
            "components": {
                "content_service": self.content_service is not None,
                "sweeper": self.sweeper.is_running if self.sweeper else False,
            },
        }


def create_start_app_handler(app: Any) -> Callable[[], Awaitable[None]]:
    """Create startup event handler.

    Args:
        app: FastAPI application instance

    Returns:
        Startup handler function
    """

    async def start_app() -> None:
        configure_logging(
            level=resolve_level(settings.LOG_LEVEL), json_logs=settings.JSON_LOGS
        )

        # Fail fast on a missing signing secret rather than on the first upload
        if settings.AUTH_ENABLED:
            get_token_verifier()

        state = AppStateDict()
        state.content_service = get_content_service()
        if settings.SWEEP_ENABLED:
            state.sweeper = create_sweeper(state.content_service, settings)
            state.sweeper.start()
        app.state.components = state

        logger.info(
            "application_started",
            storage_type=settings.STORAGE_TYPE,
            record_store_type=settings.RECORD_STORE_TYPE,
            sweep_enabled=settings.SWEEP_ENABLED,
            auth_enabled=settings.AUTH_ENABLED,
        )

    return start_app


def create_stop_app_handler(app: Any) -> Callable[[], Awaitable[None]]:
    """Create shutdown event handler with graceful shutdown logic.

    Args:
        app: FastAPI application instance

    Returns:
        Shutdown handler function
    """

    async def stop_app() -> None:
        state: Optional[AppStateDict] = getattr(app.state, "components", None)
        if state is not None and state.sweeper is not None:
            logger.info("stopping_sweeper")
            state.sweeper.stop()
        logger.info("application_shutdown_complete")

    return stop_app


@asynccontextmanager
async def lifespan(app: Any) -> AsyncIterator[None]:
    """Run the startup handler, serve, then run the shutdown handler."""
    await create_start_app_handler(app)()
    try:
        yield
    finally:
        await create_stop_app_handler(app)()
