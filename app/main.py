"""Main FastAPI application module."""

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from app.api.v1.router import router as v1_router
from app.core.config import settings
from app.core.events import lifespan
from app.middleware.correlation import CorrelationMiddleware
from app.middleware.errors import ErrorHandlingMiddleware, register_error_handlers
from app.middleware.metrics import MetricsMiddleware
from app.middleware.security import SecurityHeadersMiddleware

app = FastAPI(
    title=settings.app_name,
    description="Secure, short-lived sharing of text snippets and files",
    version=settings.version,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    default_response_class=JSONResponse,
    lifespan=lifespan,
)

# Add middleware in order (inside -> out):
# 1. CORS (outermost)
# 2. Security headers
# 3. Correlation (adds request ID)
# 4. Metrics (tracks all requests)
# 5. Error handling (innermost - handles all errors)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID", "Content-Disposition"],
    max_age=600,
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(CorrelationMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(ErrorHandlingMiddleware)
register_error_handlers(app)


@app.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Expose Prometheus metrics."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/", include_in_schema=False)
async def root() -> dict[str, object]:
    """Describe the service and its endpoints."""
    prefix = settings.api_prefix
    return {
        "name": settings.app_name,
        "version": settings.version,
        "description": "Secure file and text sharing service",
        "endpoints": {
            "upload": f"POST {prefix}/upload",
            "getContent": f"GET {prefix}/content/{{id}}",
            "downloadFile": f"GET {prefix}/download/{{id}}",
            "deleteContent": f"DELETE {prefix}/content/{{id}}",
            "stats": f"GET {prefix}/stats",
            "health": f"GET {prefix}/health",
        },
    }


app.include_router(v1_router, prefix=settings.api_prefix)
