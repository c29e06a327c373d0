"""Data models for the ephemeral content store."""

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class ContentKind(str, Enum):
    """What a record's payload holds."""

    TEXT = "text"
    BLOB = "file"


class GateOutcome(str, Enum):
    """Reasons a read or delete was refused."""

    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    VIEW_LIMIT_EXCEEDED = "view_limit_exceeded"
    PASSWORD_REQUIRED = "password_required"
    PASSWORD_MISMATCH = "password_mismatch"

    @property
    def is_password_failure(self) -> bool:
        return self in (GateOutcome.PASSWORD_REQUIRED, GateOutcome.PASSWORD_MISMATCH)


@dataclass(frozen=True)
class BlobMeta:
    """Metadata describing an uploaded binary payload."""

    filename: str
    size: int
    media_type: str


@dataclass(frozen=True)
class UploadedBlob:
    """Binary payload as received from a caller."""

    filename: str
    data: bytes
    media_type: str = "application/octet-stream"

    @property
    def meta(self) -> BlobMeta:
        return BlobMeta(
            filename=self.filename, size=len(self.data), media_type=self.media_type
        )


@dataclass(frozen=True)
class RetentionPolicy:
    """Access gates requested at creation time.

    ``ttl_minutes`` of ``None`` means the configured default applies.
    """

    ttl_minutes: Optional[int] = None
    password: Optional[str] = None
    max_views: Optional[int] = None
    one_time_view: bool = False


@dataclass(frozen=True)
class ContentRecord:
    """Represents one stored item and its access gates."""

    handle: str
    kind: ContentKind
    payload: str
    created_at: datetime
    expires_at: datetime
    blob_meta: Optional[BlobMeta] = None
    password_hash: Optional[str] = None
    max_views: Optional[int] = None
    view_count: int = 0
    one_time_view: bool = False

    @property
    def is_blob(self) -> bool:
        return self.kind is ContentKind.BLOB

    @property
    def requires_password(self) -> bool:
        return self.password_hash is not None

    def is_expired(self, now: datetime) -> bool:
        """Return True once ``now`` has reached ``expires_at``."""
        return now >= self.expires_at

    def is_over_limit(self) -> bool:
        return self.max_views is not None and self.view_count >= self.max_views

    def with_view(self) -> "ContentRecord":
        """Return a copy with the view counter advanced by one."""
        return replace(self, view_count=self.view_count + 1)

    def is_final_view(self) -> bool:
        """Whether no further reads may be served after the current count."""
        return self.one_time_view or self.is_over_limit()

    def to_dict(self) -> dict[str, Any]:
        """Serialize for persistence."""
        return {
            "handle": self.handle,
            "kind": self.kind.value,
            "payload": self.payload,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "file_name": self.blob_meta.filename if self.blob_meta else None,
            "file_size": self.blob_meta.size if self.blob_meta else None,
            "mime_type": self.blob_meta.media_type if self.blob_meta else None,
            "password_hash": self.password_hash,
            "max_views": self.max_views,
            "view_count": self.view_count,
            "one_time_view": self.one_time_view,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ContentRecord":
        """Rebuild a record from :meth:`to_dict` output or a database row."""
        blob_meta = None
        if data.get("file_name") is not None:
            blob_meta = BlobMeta(
                filename=data["file_name"],
                size=int(data["file_size"] or 0),
                media_type=data["mime_type"] or "application/octet-stream",
            )
        return cls(
            handle=data["handle"],
            kind=ContentKind(data["kind"]),
            payload=data["payload"],
            created_at=datetime.fromisoformat(data["created_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
            blob_meta=blob_meta,
            password_hash=data.get("password_hash"),
            max_views=data.get("max_views"),
            view_count=int(data.get("view_count") or 0),
            one_time_view=bool(data.get("one_time_view")),
        )


@dataclass(frozen=True)
class CreateResult:
    """Confirmation returned to the creator of a record."""

    handle: str
    kind: ContentKind
    expires_at: datetime


@dataclass(frozen=True)
class GateFailure:
    """A read or delete that was refused by one of the access gates."""

    outcome: GateOutcome
    handle: str


@dataclass
class ReadResult:
    """A successful gated read.

    ``record`` reflects the state after the view was counted. When
    ``consumed`` is True the record has already been removed from the record
    store; any blob cleanup is held back until :meth:`finalize` is called,
    which the caller must do once the response has been delivered.
    """

    record: ContentRecord
    text: Optional[str] = None
    data: Optional[bytes] = None
    consumed: bool = False
    _cleanup: Optional[Callable[[], None]] = field(default=None, repr=False)

    def finalize(self) -> None:
        """Run deferred cleanup. Safe to call more than once."""
        cleanup, self._cleanup = self._cleanup, None
        if cleanup is not None:
            cleanup()


@dataclass(frozen=True)
class StoreStats:
    """Aggregate counts over every record currently stored."""

    total: int
    active: int
    expired: int
    text_count: int
    blob_count: int

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "active": self.active,
            "expired": self.expired,
            "textCount": self.text_count,
            "fileCount": self.blob_count,
        }
