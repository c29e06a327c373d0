"""Content service: creation, gated reads, deletion and expiry sweeps."""

import secrets
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Optional, Union

from app.content_store.backends import BlobBackend
from app.content_store.errors import InvalidInput, PayloadTooLarge, StorageFailure
from app.content_store.locks import HandleLocks
from app.content_store.metrics import (
    BLOB_DELETE_FAILURES,
    CONTENT_CREATED,
    CONTENT_DELETED,
    CONTENT_READS,
    LAST_SWEEP_REMOVED,
    SWEEP_RUNS,
)
from app.content_store.models import (
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
from app.content_store.passwords import hash_password, verify_password
from app.content_store.store import RecordStore
from app.core.logging import get_logger

logger = get_logger()

DEFAULT_MAX_BLOB_SIZE = 10 * 1024 * 1024
_HANDLE_ATTEMPTS = 5


def utc_now() -> datetime:
    """Return the current timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def _is_positive_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


class ContentService:
    """Orchestrates the lifecycle of ephemeral content.

    Every read, delete and sweep removal of a handle runs inside that handle's
    critical section, so gate evaluation and the mutation it triggers are
    atomic with respect to other callers of the same handle.
    """

    def __init__(
        self,
        records: RecordStore,
        blobs: BlobBackend,
        default_ttl_minutes: int = 10,
        max_blob_size: int = DEFAULT_MAX_BLOB_SIZE,
        handle_bytes: int = 12,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the service.

        Args:
            records: Record store holding content records
            blobs: Active blob backend for binary payloads
            default_ttl_minutes: TTL applied when a policy does not set one
            max_blob_size: Largest accepted blob in bytes
            handle_bytes: Random bytes per generated handle
            clock: Source of the current UTC time
        """
        if not _is_positive_int(default_ttl_minutes):
            raise ValueError("default_ttl_minutes must be a positive integer")
        self.records = records
        self.blobs = blobs
        self.default_ttl_minutes = default_ttl_minutes
        self.max_blob_size = max_blob_size
        self.handle_bytes = handle_bytes
        self.locks = HandleLocks()
        self._clock = clock

    # Creation

    def create(
        self,
        text: Optional[str] = None,
        blob: Optional[UploadedBlob] = None,
        policy: Optional[RetentionPolicy] = None,
    ) -> CreateResult:
        """Store a new piece of content and return its handle.

        Args:
            text: Inline text payload
            blob: Binary payload, mutually exclusive with ``text``
            policy: Access gates; defaults apply when omitted

        Returns:
            Handle, kind and expiry of the new record

        Raises:
            InvalidInput: If the payload or policy is malformed
            PayloadTooLarge: If the blob exceeds the configured maximum
            StorageFailure: If the blob or the record could not be written
        """
        policy = policy or RetentionPolicy()
        has_text = bool(text)
        has_blob = blob is not None
        if not has_text and not has_blob:
            raise InvalidInput("Either text or file must be provided")
        if has_text and has_blob:
            raise InvalidInput("Cannot upload both text and file simultaneously")

        ttl_minutes = (
            self.default_ttl_minutes
            if policy.ttl_minutes is None
            else policy.ttl_minutes
        )
        if not _is_positive_int(ttl_minutes):
            raise InvalidInput("Expiry must be a positive number of minutes")
        if policy.max_views is not None and not _is_positive_int(policy.max_views):
            raise InvalidInput("Maximum views must be a positive integer")
        if blob is not None and len(blob.data) > self.max_blob_size:
            raise PayloadTooLarge(len(blob.data), self.max_blob_size)

        handle = self._new_handle()
        created_at = self._clock()
        record = ContentRecord(
            handle=handle,
            kind=ContentKind.BLOB if blob is not None else ContentKind.TEXT,
            payload=text or "",
            created_at=created_at,
            expires_at=created_at + timedelta(minutes=ttl_minutes),
            password_hash=hash_password(policy.password) if policy.password else None,
            max_views=policy.max_views,
            one_time_view=policy.one_time_view,
        )

        if blob is not None:
            # The blob must be durable before the record becomes visible
            locator = self.blobs.put(handle, blob.data, blob.meta)
            record = replace(record, payload=locator, blob_meta=blob.meta)

        try:
            self.records.create(record)
        except StorageFailure:
            if record.is_blob:
                self._discard_blob(record, reason="create_failed")
            raise

        CONTENT_CREATED.labels(kind=record.kind.value).inc()
        logger.info(
            "content_created",
            handle=handle,
            kind=record.kind.value,
            expires_at=record.expires_at.isoformat(),
            max_views=record.max_views,
            one_time_view=record.one_time_view,
            password_protected=record.requires_password,
        )
        return CreateResult(
            handle=handle, kind=record.kind, expires_at=record.expires_at
        )

    def _new_handle(self) -> str:
        for _ in range(_HANDLE_ATTEMPTS):
            handle = secrets.token_urlsafe(self.handle_bytes)
            if self.records.find_by_handle(handle) is None:
                return handle
        raise StorageFailure("Could not allocate a unique handle")

    # Reads

    def read(
        self,
        handle: str,
        password: Optional[str] = None,
        *,
        fetch_blob: bool = True,
    ) -> Union[ReadResult, GateFailure]:
        """Evaluate the access gates for ``handle`` and serve one view.

        Gates are checked in a fixed order: unknown handle, expiry, view
        limit, password. Expired and over-limit records are removed as a side
        effect; password failures never mutate anything.

        On success the view is counted and persisted before returning. When
        the view is the last one allowed, the record is removed from the
        record store right away and blob removal is left to
        :meth:`ReadResult.finalize`.

        Args:
            handle: Record handle
            password: Password supplied by the reader
            fetch_blob: Load blob bytes into the result for binary records

        Returns:
            ReadResult on success, GateFailure when a gate refused the read

        Raises:
            StorageFailure: If the blob could not be fetched; the view is not
                counted in that case
        """
        with self.locks.hold(handle):
            record = self.records.find_by_handle(handle)
            if record is None:
                return self._refuse(GateFailure(GateOutcome.NOT_FOUND, handle), "read")
            refusal = self._gate(record, password)
            if refusal is not None:
                return self._refuse(refusal, "read")

            data = None
            if record.is_blob and fetch_blob:
                data = self.blobs.get(record.payload)

            viewed = record.with_view()
            cleanup = None
            consumed = viewed.is_final_view()
            if consumed:
                self.records.delete(handle)
                reason = "one_time_view" if viewed.one_time_view else "view_limit"
                CONTENT_DELETED.labels(reason=reason).inc()
                if viewed.is_blob:
                    cleanup = partial(self._discard_blob, viewed, reason)
            elif self.records.update(viewed) is None:
                return self._refuse(GateFailure(GateOutcome.NOT_FOUND, handle), "read")

        CONTENT_READS.labels(outcome="success").inc()
        logger.info(
            "content_read",
            handle=handle,
            view_count=viewed.view_count,
            consumed=consumed,
        )
        return ReadResult(
            record=viewed,
            text=viewed.payload if viewed.kind is ContentKind.TEXT else None,
            data=data,
            consumed=consumed,
            _cleanup=cleanup,
        )

    def peek(
        self, handle: str, password: Optional[str] = None
    ) -> Union[ContentRecord, GateFailure]:
        """Evaluate the same gates as :meth:`read` without serving a view.

        Expired and over-limit records are still removed, but the view count
        is left alone. Used to describe a file before its bytes are fetched.
        """
        with self.locks.hold(handle):
            record = self.records.find_by_handle(handle)
            if record is None:
                return self._refuse(GateFailure(GateOutcome.NOT_FOUND, handle), "peek")
            refusal = self._gate(record, password)
            if refusal is not None:
                return self._refuse(refusal, "peek")
        return record

    def _gate(
        self, record: ContentRecord, password: Optional[str]
    ) -> Optional[GateFailure]:
        """Return the first gate that refuses access, removing dead records."""
        if record.is_expired(self._clock()):
            self._remove(record, reason="expired")
            return GateFailure(GateOutcome.EXPIRED, record.handle)
        if record.is_over_limit():
            self._remove(record, reason="view_limit")
            return GateFailure(GateOutcome.VIEW_LIMIT_EXCEEDED, record.handle)
        return self._check_password(record, password)

    @staticmethod
    def _check_password(
        record: ContentRecord, password: Optional[str]
    ) -> Optional[GateFailure]:
        if record.password_hash is None:
            return None
        if not password:
            return GateFailure(GateOutcome.PASSWORD_REQUIRED, record.handle)
        if not verify_password(password, record.password_hash):
            return GateFailure(GateOutcome.PASSWORD_MISMATCH, record.handle)
        return None

    @staticmethod
    def _refuse(failure: GateFailure, operation: str) -> GateFailure:
        if operation == "read":
            CONTENT_READS.labels(outcome=failure.outcome.value).inc()
        logger.info(
            "content_access_refused",
            handle=failure.handle,
            operation=operation,
            outcome=failure.outcome.value,
        )
        return failure

    # Deletion

    def delete(
        self, handle: str, password: Optional[str] = None
    ) -> Union[bool, GateFailure]:
        """Remove a record and its blob on request of a handle holder.

        Args:
            handle: Record handle
            password: Required when the record is password protected

        Returns:
            True when removed, GateFailure if the record is unknown or the
            password check failed
        """
        with self.locks.hold(handle):
            record = self.records.find_by_handle(handle)
            if record is None:
                missing = GateFailure(GateOutcome.NOT_FOUND, handle)
                return self._refuse(missing, "delete")
            refusal = self._check_password(record, password)
            if refusal is not None:
                return self._refuse(refusal, "delete")
            self._remove(record, reason="manual")
        return True

    def _remove(self, record: ContentRecord, reason: str) -> bool:
        """Remove a record and its blob. Caller holds the handle's lock."""
        if record.is_blob:
            self._discard_blob(record, reason)
        removed = self.records.delete(record.handle)
        if removed:
            CONTENT_DELETED.labels(reason=reason).inc()
            logger.info("content_deleted", handle=record.handle, reason=reason)
        return removed

    def _discard_blob(self, record: ContentRecord, reason: str) -> None:
        """Best-effort blob removal; failures are logged, never raised."""
        try:
            self.blobs.delete(record.payload)
        except Exception as e:
            BLOB_DELETE_FAILURES.inc()
            logger.warning(
                "blob_delete_failed",
                handle=record.handle,
                locator=record.payload,
                reason=reason,
                error=str(e),
            )

    # Maintenance

    def sweep(self) -> int:
        """Remove every record whose expiry has passed.

        Returns:
            Number of records removed by this run
        """
        now = self._clock()
        removed = 0
        for candidate in self.records.list_all():
            if not candidate.is_expired(now):
                continue
            with self.locks.hold(candidate.handle):
                # Another caller may have removed it since the scan
                record = self.records.find_by_handle(candidate.handle)
                if record is None:
                    continue
                if self._remove(record, reason="expired"):
                    removed += 1

        SWEEP_RUNS.inc()
        LAST_SWEEP_REMOVED.set(removed)
        if removed:
            logger.info("sweep_completed", removed=removed)
        else:
            logger.debug("sweep_completed", removed=0)
        return removed

    def inspect(self, handle: str) -> Optional[ContentRecord]:
        """Look up a record without evaluating gates or counting a view."""
        return self.records.find_by_handle(handle)

    def stats(self) -> StoreStats:
        """Compute aggregate counts over all stored records."""
        now = self._clock()
        records = self.records.list_all()
        active = sum(1 for record in records if not record.is_expired(now))
        blobs = sum(1 for record in records if record.is_blob)
        return StoreStats(
            total=len(records),
            active=active,
            expired=len(records) - active,
            text_count=len(records) - blobs,
            blob_count=blobs,
        )
