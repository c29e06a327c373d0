"""Ephemeral content store: records, blobs, access gates and expiry."""

from app.content_store.backends import (
    BlobBackend,
    InMemoryBlobBackend,
    LocalBlobBackend,
    S3BlobBackend,
)
from app.content_store.errors import (
    ContentStoreError,
    DuplicateHandleError,
    InvalidInput,
    PayloadTooLarge,
    StorageFailure,
)
from app.content_store.models import (
    BlobMeta,
    ContentKind,
    ContentRecord,
    CreateResult,
    GateFailure,
    GateOutcome,
    ReadResult,
    RetentionPolicy,
    StoreStats,
    UploadedBlob,
)
from app.content_store.service import ContentService
from app.content_store.store import (
    InMemoryRecordStore,
    RecordStore,
    SQLiteRecordStore,
)
from app.content_store.sweeper import ExpirySweeper

__all__ = [
    "BlobBackend",
    "BlobMeta",
    "ContentKind",
    "ContentRecord",
    "ContentService",
    "ContentStoreError",
    "CreateResult",
    "DuplicateHandleError",
    "ExpirySweeper",
    "GateFailure",
    "GateOutcome",
    "InMemoryBlobBackend",
    "InMemoryRecordStore",
    "InvalidInput",
    "LocalBlobBackend",
    "PayloadTooLarge",
    "ReadResult",
    "RecordStore",
    "RetentionPolicy",
    "S3BlobBackend",
    "SQLiteRecordStore",
    "StorageFailure",
    "StoreStats",
    "UploadedBlob",
]
