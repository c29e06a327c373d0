"""Tests for the content service lifecycle and access gates."""

from datetime import timedelta

import pytest

from app.content_store.backends import InMemoryBlobBackend
from app.content_store.errors import InvalidInput, PayloadTooLarge, StorageFailure
from app.content_store.models import (
    ContentKind,
    GateFailure,
    GateOutcome,
    ReadResult,
    RetentionPolicy,
    UploadedBlob,
)
from app.content_store.service import ContentService
from app.content_store.store import InMemoryRecordStore


def _blob(data: bytes = b"\x00\x01binary\xff", name: str = "report.pdf"):
    return UploadedBlob(filename=name, data=data, media_type="application/pdf")


class TestCreate:
    """Validation and persistence on create."""

    def test_create_text_uses_default_ttl(self, content_service, clock):
        result = content_service.create(text="hello")

        assert result.kind is ContentKind.TEXT
        assert result.expires_at == clock.now + timedelta(minutes=10)
        record = content_service.inspect(result.handle)
        assert record is not None
        assert record.payload == "hello"
        assert record.view_count == 0

    def test_create_honours_ttl_and_gates(self, content_service, clock):
        policy = RetentionPolicy(
            ttl_minutes=30, password="abc", max_views=3, one_time_view=False
        )
        result = content_service.create(text="secret", policy=policy)

        record = content_service.inspect(result.handle)
        assert record.expires_at == clock.now + timedelta(minutes=30)
        assert record.max_views == 3
        assert record.requires_password
        assert record.password_hash != "abc"

    def test_create_blob_stores_bytes_and_metadata(
        self, content_service, blob_backend
    ):
        result = content_service.create(blob=_blob())

        record = content_service.inspect(result.handle)
        assert result.kind is ContentKind.BLOB
        assert record.payload in blob_backend
        assert record.payload.endswith(".pdf")
        assert record.blob_meta.filename == "report.pdf"
        assert record.blob_meta.size == len(b"\x00\x01binary\xff")
        assert record.blob_meta.media_type == "application/pdf"

    def test_handles_are_unique(self, content_service):
        handles = {content_service.create(text=f"t{i}").handle for i in range(50)}
        assert len(handles) == 50

    @pytest.mark.parametrize("text", [None, ""])
    def test_rejects_missing_payload(self, content_service, text):
        with pytest.raises(InvalidInput, match="Either text or file"):
            content_service.create(text=text)

    def test_rejects_text_and_blob_together(self, content_service):
        with pytest.raises(InvalidInput, match="both text and file"):
            content_service.create(text="hello", blob=_blob())

    @pytest.mark.parametrize("ttl", [0, -5, True])
    def test_rejects_invalid_ttl(self, content_service, ttl):
        with pytest.raises(InvalidInput):
            content_service.create(
                text="hello", policy=RetentionPolicy(ttl_minutes=ttl)
            )

    @pytest.mark.parametrize("max_views", [0, -1])
    def test_rejects_invalid_max_views(self, content_service, max_views):
        with pytest.raises(InvalidInput):
            content_service.create(
                text="hello", policy=RetentionPolicy(max_views=max_views)
            )

    def test_rejects_oversized_blob(self, content_service, record_store):
        with pytest.raises(PayloadTooLarge) as excinfo:
            content_service.create(blob=_blob(b"x" * 1025))

        assert excinfo.value.limit == 1024
        assert record_store.list_all() == []

    def test_blob_at_limit_is_accepted(self, content_service):
        result = content_service.create(blob=_blob(b"x" * 1024))
        assert content_service.inspect(result.handle) is not None

    def test_failed_record_write_discards_blob(self, clock, mocker):
        blobs = InMemoryBlobBackend()
        records = InMemoryRecordStore()
        mocker.patch.object(
            records, "create", side_effect=StorageFailure("disk full")
        )
        service = ContentService(records, blobs, clock=clock)

        with pytest.raises(StorageFailure):
            service.create(blob=_blob())

        assert len(blobs) == 0

    def test_failed_blob_write_creates_no_record(self, clock, mocker):
        blobs = InMemoryBlobBackend()
        records = InMemoryRecordStore()
        mocker.patch.object(blobs, "put", side_effect=StorageFailure("offline"))
        service = ContentService(records, blobs, clock=clock)

        with pytest.raises(StorageFailure):
            service.create(blob=_blob())

        assert records.list_all() == []


class TestRead:
    """Gate evaluation and view accounting on read."""

    def test_text_read_counts_view(self, content_service):
        handle = content_service.create(text="hello").handle

        result = content_service.read(handle)

        assert isinstance(result, ReadResult)
        assert result.text == "hello"
        assert result.record.view_count == 1
        assert not result.consumed
        assert content_service.inspect(handle).view_count == 1

    def test_unknown_handle_is_not_found(self, content_service):
        result = content_service.read("missing")
        assert result == GateFailure(GateOutcome.NOT_FOUND, "missing")

    def test_max_views_then_gone(self, content_service):
        handle = content_service.create(
            text="limited", policy=RetentionPolicy(max_views=3)
        ).handle

        views = [content_service.read(handle) for _ in range(3)]

        assert [v.record.view_count for v in views] == [1, 2, 3]
        assert views[-1].consumed
        for _ in range(2):
            outcome = content_service.read(handle)
            assert isinstance(outcome, GateFailure)
            assert outcome.outcome is GateOutcome.NOT_FOUND

    def test_single_view_scenario(self, content_service):
        handle = content_service.create(
            text="hello", policy=RetentionPolicy(ttl_minutes=10, max_views=1)
        ).handle

        first = content_service.read(handle)
        assert first.text == "hello"
        assert first.record.view_count == 1

        second = content_service.read(handle)
        assert second.outcome is GateOutcome.NOT_FOUND

    def test_one_time_view(self, content_service):
        handle = content_service.create(
            text="burn", policy=RetentionPolicy(one_time_view=True)
        ).handle

        first = content_service.read(handle)
        assert first.consumed
        assert content_service.inspect(handle) is None
        assert content_service.read(handle).outcome is GateOutcome.NOT_FOUND

    def test_one_time_blob_is_removed_on_finalize(
        self, content_service, blob_backend
    ):
        handle = content_service.create(
            blob=_blob(), policy=RetentionPolicy(one_time_view=True)
        ).handle
        locator = content_service.inspect(handle).payload

        result = content_service.read(handle)

        assert result.data == b"\x00\x01binary\xff"
        assert locator in blob_backend
        result.finalize()
        assert locator not in blob_backend
        result.finalize()

    def test_blob_round_trip_is_byte_identical(self, content_service):
        payload = bytes(range(256)) * 3
        handle = content_service.create(blob=_blob(payload, "data.bin")).handle

        result = content_service.read(handle)

        assert result.data == payload

    def test_read_without_fetch_leaves_data_empty(self, content_service):
        handle = content_service.create(blob=_blob()).handle

        result = content_service.read(handle, fetch_blob=False)

        assert result.data is None
        assert result.record.view_count == 1

    def test_expired_record_is_removed(self, content_service, clock, blob_backend):
        handle = content_service.create(
            blob=_blob(), policy=RetentionPolicy(ttl_minutes=1)
        ).handle

        clock.advance(minutes=1)
        outcome = content_service.read(handle)

        assert outcome.outcome is GateOutcome.EXPIRED
        assert content_service.inspect(handle) is None
        assert len(blob_backend) == 0
        assert content_service.read(handle).outcome is GateOutcome.NOT_FOUND

    def test_read_just_before_expiry_succeeds(self, content_service, clock):
        handle = content_service.create(
            text="x", policy=RetentionPolicy(ttl_minutes=1)
        ).handle

        clock.advance(seconds=59)

        assert isinstance(content_service.read(handle), ReadResult)

    def test_expiry_checked_before_password(self, content_service, clock):
        handle = content_service.create(
            text="x", policy=RetentionPolicy(ttl_minutes=1, password="abc")
        ).handle

        clock.advance(minutes=2)

        assert content_service.read(handle).outcome is GateOutcome.EXPIRED

    def test_password_gate(self, content_service):
        handle = content_service.create(
            blob=_blob(), policy=RetentionPolicy(password="abc")
        ).handle

        assert content_service.read(handle).outcome is GateOutcome.PASSWORD_REQUIRED
        mismatch = content_service.read(handle, "xyz")
        assert mismatch.outcome is GateOutcome.PASSWORD_MISMATCH
        assert mismatch.outcome.is_password_failure

        result = content_service.read(handle, "abc")
        assert isinstance(result, ReadResult)
        assert result.data == b"\x00\x01binary\xff"

    def test_wrong_passwords_do_not_count_views(self, content_service):
        handle = content_service.create(
            text="x", policy=RetentionPolicy(password="abc", max_views=1)
        ).handle

        for _ in range(3):
            content_service.read(handle, "wrong")

        assert content_service.inspect(handle).view_count == 0
        assert isinstance(content_service.read(handle, "abc"), ReadResult)

    def test_blob_fetch_failure_does_not_count_view(
        self, content_service, blob_backend, mocker
    ):
        handle = content_service.create(blob=_blob()).handle
        mocker.patch.object(blob_backend, "get", side_effect=StorageFailure("gone"))

        with pytest.raises(StorageFailure):
            content_service.read(handle)

        assert content_service.inspect(handle).view_count == 0


class TestPeek:
    """Gate evaluation without view accounting."""

    def test_peek_does_not_count_views(self, content_service, blob_backend):
        handle = content_service.create(
            blob=_blob(), policy=RetentionPolicy(max_views=1)
        ).handle

        for _ in range(3):
            record = content_service.peek(handle)
            assert record.blob_meta.filename == "report.pdf"

        assert content_service.inspect(handle).view_count == 0
        result = content_service.read(handle)
        assert result.consumed
        assert result.data == b"\x00\x01binary\xff"

    def test_peek_unknown(self, content_service):
        assert content_service.peek("missing").outcome is GateOutcome.NOT_FOUND

    def test_peek_checks_password(self, content_service):
        handle = content_service.create(
            text="x", policy=RetentionPolicy(password="abc")
        ).handle

        assert content_service.peek(handle).outcome is GateOutcome.PASSWORD_REQUIRED
        assert (
            content_service.peek(handle, "nope").outcome
            is GateOutcome.PASSWORD_MISMATCH
        )
        assert content_service.peek(handle, "abc").handle == handle

    def test_peek_removes_expired(self, content_service, clock, blob_backend):
        handle = content_service.create(
            blob=_blob(), policy=RetentionPolicy(ttl_minutes=1)
        ).handle
        clock.advance(minutes=2)

        assert content_service.peek(handle).outcome is GateOutcome.EXPIRED
        assert content_service.inspect(handle) is None
        assert len(blob_backend) == 0


class TestDelete:
    def test_delete_removes_record_and_blob(self, content_service, blob_backend):
        handle = content_service.create(blob=_blob()).handle

        assert content_service.delete(handle) is True
        assert content_service.inspect(handle) is None
        assert len(blob_backend) == 0

    def test_delete_unknown(self, content_service):
        assert content_service.delete("nope").outcome is GateOutcome.NOT_FOUND

    def test_delete_requires_password(self, content_service):
        handle = content_service.create(
            text="x", policy=RetentionPolicy(password="abc")
        ).handle

        assert content_service.delete(handle).outcome is GateOutcome.PASSWORD_REQUIRED
        assert (
            content_service.delete(handle, "nope").outcome
            is GateOutcome.PASSWORD_MISMATCH
        )
        assert content_service.inspect(handle) is not None
        assert content_service.delete(handle, "abc") is True

    def test_blob_delete_failure_is_logged_not_raised(
        self, content_service, blob_backend, mocker
    ):
        handle = content_service.create(blob=_blob()).handle
        mocker.patch.object(
            blob_backend, "delete", side_effect=StorageFailure("denied")
        )

        assert content_service.delete(handle) is True
        assert content_service.inspect(handle) is None


class TestSweep:
    def test_sweep_removes_only_expired(self, content_service, clock, blob_backend):
        short = content_service.create(
            blob=_blob(), policy=RetentionPolicy(ttl_minutes=1)
        ).handle
        long = content_service.create(
            text="stay", policy=RetentionPolicy(ttl_minutes=60)
        ).handle

        clock.advance(minutes=5)

        assert content_service.sweep() == 1
        assert content_service.inspect(short) is None
        assert content_service.inspect(long) is not None
        assert len(blob_backend) == 0

    def test_second_sweep_removes_nothing(self, content_service, clock):
        for _ in range(3):
            content_service.create(text="x", policy=RetentionPolicy(ttl_minutes=1))
        clock.advance(minutes=2)

        assert content_service.sweep() == 3
        assert content_service.sweep() == 0

    def test_sweep_on_empty_store(self, content_service):
        assert content_service.sweep() == 0


class TestStats:
    def test_stats_counts(self, content_service, clock):
        content_service.create(text="a", policy=RetentionPolicy(ttl_minutes=1))
        content_service.create(text="b", policy=RetentionPolicy(ttl_minutes=60))
        content_service.create(blob=_blob(), policy=RetentionPolicy(ttl_minutes=60))
        clock.advance(minutes=2)

        stats = content_service.stats()

        assert stats.total == 3
        assert stats.active == 2
        assert stats.expired == 1
        assert stats.text_count == 2
        assert stats.blob_count == 1
        assert stats.to_dict() == {
            "total": 3,
            "active": 2,
            "expired": 1,
            "textCount": 2,
            "fileCount": 1,
        }


def test_service_rejects_invalid_default_ttl(record_store, blob_backend):
    with pytest.raises(ValueError):
        ContentService(record_store, blob_backend, default_ttl_minutes=0)
