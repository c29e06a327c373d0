"""Tests for record store implementations."""

import sqlite3
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from app.content_store.errors import DuplicateHandleError, StorageFailure
from app.content_store.models import BlobMeta, ContentKind, ContentRecord
from app.content_store.store import (
    InMemoryRecordStore,
    RecordStore,
    SQLiteRecordStore,
)

CREATED = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_record(handle: str = "abc123", **overrides) -> ContentRecord:
    fields = {
        "handle": handle,
        "kind": ContentKind.TEXT,
        "payload": "hello",
        "created_at": CREATED,
        "expires_at": CREATED + timedelta(minutes=10),
    }
    fields.update(overrides)
    return ContentRecord(**fields)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path) -> RecordStore:
    """Run each test against every record store implementation."""
    if request.param == "memory":
        return InMemoryRecordStore()
    return SQLiteRecordStore(tmp_path / "records.db")


class TestRecordStoreContract:
    def test_implements_protocol(self, store):
        assert isinstance(store, RecordStore)

    def test_create_and_find(self, store):
        record = make_record()
        store.create(record)

        assert store.find_by_handle("abc123") == record
        assert store.find_by_handle("other") is None

    def test_blob_record_round_trip(self, store):
        record = make_record(
            kind=ContentKind.BLOB,
            payload="abc123.png",
            blob_meta=BlobMeta("photo.png", 2048, "image/png"),
            password_hash="scrypt$salt$digest",
            max_views=5,
            view_count=2,
            one_time_view=True,
        )
        store.create(record)

        assert store.find_by_handle("abc123") == record

    def test_duplicate_handle_rejected(self, store):
        store.create(make_record())

        with pytest.raises(DuplicateHandleError):
            store.create(make_record(payload="again"))

    def test_update_replaces_record(self, store):
        store.create(make_record())

        updated = store.update(make_record().with_view())

        assert updated.view_count == 1
        assert store.find_by_handle("abc123").view_count == 1

    def test_update_missing_returns_none(self, store):
        assert store.update(make_record("ghost")) is None
        assert store.find_by_handle("ghost") is None

    def test_delete(self, store):
        store.create(make_record())

        assert store.delete("abc123") is True
        assert store.delete("abc123") is False
        assert store.find_by_handle("abc123") is None

    def test_list_all(self, store):
        for i in range(3):
            store.create(make_record(f"h{i}", created_at=CREATED + timedelta(i)))

        handles = sorted(record.handle for record in store.list_all())

        assert handles == ["h0", "h1", "h2"]


class TestSQLiteRecordStore:
    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "nested" / "records.db"
        SQLiteRecordStore(path).create(make_record())

        reopened = SQLiteRecordStore(path)

        assert reopened.find_by_handle("abc123") == make_record()

    def test_timestamps_keep_timezone(self, tmp_path):
        store = SQLiteRecordStore(tmp_path / "records.db")
        store.create(make_record())

        record = store.find_by_handle("abc123")

        assert record.created_at.tzinfo is not None
        assert record.expires_at == CREATED + timedelta(minutes=10)

    def test_unrecoverable_error_becomes_storage_failure(self, tmp_path, mocker):
        store = SQLiteRecordStore(tmp_path / "records.db")
        mocker.patch.object(
            store,
            "_query",
            side_effect=sqlite3.DatabaseError("file is not a database"),
        )

        with pytest.raises(StorageFailure, match="lookup failed"):
            store.find_by_handle("abc123")

    def test_update_keeps_other_columns(self, tmp_path):
        store = SQLiteRecordStore(tmp_path / "records.db")
        record = make_record(max_views=2, password_hash="scrypt$a$b")
        store.create(record)

        store.update(replace(record, view_count=1))

        stored = store.find_by_handle("abc123")
        assert stored.max_views == 2
        assert stored.password_hash == "scrypt$a$b"
        assert stored.view_count == 1
