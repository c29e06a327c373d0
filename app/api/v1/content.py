"""Routes for sharing, viewing and deleting ephemeral content."""

from typing import Any, Optional
from urllib.parse import quote

from fastapi import APIRouter, Body, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from starlette import status
from starlette.concurrency import run_in_threadpool
from starlette.types import Receive, Scope, Send

from app.content_store.config import get_content_service
from app.content_store.errors import InvalidInput, PayloadTooLarge
from app.content_store.models import (
    ContentRecord,
    GateFailure,
    GateOutcome,
    ReadResult,
    RetentionPolicy,
    UploadedBlob,
)
from app.content_store.service import ContentService
from app.core.auth import Identity, require_identity
from app.core.config import settings
from app.core.logging import get_logger
from app.middleware.errors import error_body

logger = get_logger()

router = APIRouter(tags=["content"])

# status code, error name, message
_GATE_RESPONSES: dict[GateOutcome, tuple[int, str, str]] = {
    GateOutcome.NOT_FOUND: (
        status.HTTP_404_NOT_FOUND,
        "NotFound",
        "Content not found",
    ),
    GateOutcome.EXPIRED: (
        status.HTTP_410_GONE,
        "Expired",
        "Content has expired",
    ),
    GateOutcome.VIEW_LIMIT_EXCEEDED: (
        status.HTTP_410_GONE,
        "ViewLimitExceeded",
        "Maximum view limit reached",
    ),
    GateOutcome.PASSWORD_REQUIRED: (
        status.HTTP_401_UNAUTHORIZED,
        "PasswordRequired",
        "Password required",
    ),
    GateOutcome.PASSWORD_MISMATCH: (
        status.HTTP_401_UNAUTHORIZED,
        "PasswordMismatch",
        "Invalid password",
    ),
}


class DeleteRequest(BaseModel):
    """Body of a delete request."""

    password: Optional[str] = None


class FinalizingResponse(Response):
    """Response that runs a read's completion hook once it has been sent.

    The hook also runs when the client disconnects mid-transfer, so content
    consumed by its final view never outlives the request. Blob removal is
    blocking I/O and runs in the threadpool.
    """

    def __init__(self, result: ReadResult, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.result = result

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await run_in_threadpool(self.result.finalize)


class FinalizingJSONResponse(JSONResponse):
    """JSON counterpart of :class:`FinalizingResponse`."""

    def __init__(self, result: ReadResult, content: Any, **kwargs: Any) -> None:
        super().__init__(content, **kwargs)
        self.result = result

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await run_in_threadpool(self.result.finalize)


def gate_response(request: Request, failure: GateFailure) -> JSONResponse:
    """Render a refused read or delete as a JSON error response."""
    status_code, error_type, message = _GATE_RESPONSES[failure.outcome]
    correlation_id = getattr(request.state, "correlation_id", None)
    content = error_body(error_type, message, status_code, correlation_id)
    content["code"] = failure.outcome.value
    content["requiresPassword"] = failure.outcome.is_password_failure
    return JSONResponse(status_code=status_code, content=content)


def parse_optional_int(value: Optional[str], field: str) -> Optional[int]:
    """Parse an optional integer form field; blank means unset."""
    if value is None or not value.strip():
        return None
    try:
        return int(value.strip())
    except ValueError as e:
        raise InvalidInput(f"{field} must be an integer") from e


def parse_flag(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() == "true"


def read_upload(upload: UploadFile, limit: int) -> UploadedBlob:
    """Read an uploaded file into memory, refusing anything above ``limit``."""
    if upload.size is not None and upload.size > limit:
        raise PayloadTooLarge(upload.size, limit)
    # One extra byte is enough to detect an oversized body
    data = upload.file.read(limit + 1)
    if len(data) > limit:
        raise PayloadTooLarge(upload.size or len(data), limit)
    return UploadedBlob(
        filename=upload.filename or "upload",
        data=data,
        media_type=upload.content_type or "application/octet-stream",
    )


def describe_record(record: ContentRecord, text: Optional[str]) -> dict[str, Any]:
    """Build the JSON view of a record served by ``GET /content``."""
    body: dict[str, Any] = {
        "type": record.kind.value,
        "createdAt": record.created_at.isoformat(),
        "expiresAt": record.expires_at.isoformat(),
        "viewCount": record.view_count,
        "requiresPassword": record.requires_password,
    }
    if record.blob_meta is not None:
        body["fileName"] = record.blob_meta.filename
        body["fileSize"] = record.blob_meta.size
        body["mimeType"] = record.blob_meta.media_type
    else:
        body["content"] = text
    return body


def content_disposition(filename: str) -> str:
    """Attachment header value that survives non-ASCII file names."""
    fallback = filename.encode("ascii", "replace").decode("ascii").replace('"', "")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


@router.post("/upload", status_code=status.HTTP_201_CREATED)
def upload_content(
    text: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    expiryMinutes: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    maxViews: Optional[str] = Form(None),
    oneTimeView: Optional[str] = Form(None),
    identity: Identity = Depends(require_identity),
    service: ContentService = Depends(get_content_service),
) -> JSONResponse:
    """Store text or a file and return its share link."""
    policy = RetentionPolicy(
        ttl_minutes=parse_optional_int(expiryMinutes, "expiryMinutes"),
        password=password or None,
        max_views=parse_optional_int(maxViews, "maxViews"),
        one_time_view=parse_flag(oneTimeView),
    )
    blob = read_upload(file, service.max_blob_size) if file is not None else None
    result = service.create(text=text, blob=blob, policy=policy)

    logger.info("upload_accepted", handle=result.handle, subject=identity.subject)
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={
            "success": True,
            "id": result.handle,
            "shareUrl": f"{settings.FRONTEND_URL.rstrip('/')}/share/{result.handle}",
            "expiresAt": result.expires_at.isoformat(),
            "type": result.kind.value,
        },
    )


@router.get("/content/{handle}")
def get_content(
    handle: str,
    request: Request,
    password: Optional[str] = None,
    service: ContentService = Depends(get_content_service),
) -> Response:
    """Describe a record, serving text inline.

    A text view is counted here. For files only the metadata is returned
    and no view is counted; the view is spent by ``/download``, which
    delivers the bytes.
    """
    checked = service.peek(handle, password)
    if isinstance(checked, GateFailure):
        return gate_response(request, checked)
    if checked.is_blob:
        return JSONResponse(content=describe_record(checked, None))

    outcome = service.read(handle, password, fetch_blob=False)
    if isinstance(outcome, GateFailure):
        return gate_response(request, outcome)
    return FinalizingJSONResponse(
        outcome, describe_record(outcome.record, outcome.text)
    )


@router.get("/download/{handle}")
def download_content(
    handle: str,
    request: Request,
    password: Optional[str] = None,
    service: ContentService = Depends(get_content_service),
) -> Response:
    """Serve a file's bytes as an attachment, counting one view."""
    # Gates first, so the record kind is only revealed to password holders
    checked = service.peek(handle, password)
    if isinstance(checked, GateFailure):
        return gate_response(request, checked)
    if not checked.is_blob:
        raise InvalidInput("Content is not a file")

    outcome = service.read(handle, password)
    if isinstance(outcome, GateFailure):
        return gate_response(request, outcome)

    meta = outcome.record.blob_meta
    filename = meta.filename if meta else handle
    media_type = meta.media_type if meta else "application/octet-stream"
    return FinalizingResponse(
        outcome,
        content=outcome.data or b"",
        media_type=media_type,
        headers={"Content-Disposition": content_disposition(filename)},
    )


@router.delete("/content/{handle}")
def delete_content(
    handle: str,
    request: Request,
    body: Optional[DeleteRequest] = Body(None),
    service: ContentService = Depends(get_content_service),
) -> Response:
    """Delete a record before it expires."""
    password = body.password if body is not None else None
    outcome = service.delete(handle, password)
    if isinstance(outcome, GateFailure):
        return gate_response(request, outcome)
    return JSONResponse(
        content={"success": True, "message": "Content deleted successfully"}
    )


@router.get("/stats")
def get_stats(
    service: ContentService = Depends(get_content_service),
) -> dict[str, int]:
    """Report record counts for monitoring."""
    return service.stats().to_dict()
