"""API v1 router module."""

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.api.v1.content import router as content_router
from app.core.config import settings

router = APIRouter(default_response_class=JSONResponse)


@router.get("/health")
def health_check(request: Request) -> dict[str, Any]:
    """Report service health for load balancers and monitoring."""
    body: dict[str, Any] = {
        "status": "healthy",
        "version": settings.version,
        "storageType": settings.STORAGE_TYPE,
        "correlation_id": getattr(request.state, "correlation_id", None),
    }
    components = getattr(request.app.state, "components", None)
    if components is not None:
        body.update(components.health_check())
    return body


router.include_router(content_router)
