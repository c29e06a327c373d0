"""Record store implementations mapping handles to content records."""

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from app.content_store.errors import DuplicateHandleError, StorageFailure
from app.content_store.models import ContentRecord
from app.content_store.retry import with_db_retry

_COLUMNS = (
    "handle",
    "kind",
    "payload",
    "created_at",
    "expires_at",
    "file_name",
    "file_size",
    "mime_type",
    "password_hash",
    "max_views",
    "view_count",
    "one_time_view",
)


@runtime_checkable
class RecordStore(Protocol):
    """Durable mapping of handle to :class:`ContentRecord`.

    Implementations are last-write-wins per handle; callers serialise
    mutations of a single handle themselves.
    """

    def create(self, record: ContentRecord) -> ContentRecord:
        """Insert a new record. Raise DuplicateHandleError if the handle exists."""
        ...

    def find_by_handle(self, handle: str) -> Optional[ContentRecord]:
        """Return the record for ``handle`` or None."""
        ...

    def update(self, record: ContentRecord) -> Optional[ContentRecord]:
        """Replace the stored record. Return None if it no longer exists."""
        ...

    def delete(self, handle: str) -> bool:
        """Remove a record. Return True if something was removed."""
        ...

    def list_all(self) -> list[ContentRecord]:
        """Return every stored record."""
        ...


class InMemoryRecordStore:
    """Dict-backed record store for development and testing."""

    def __init__(self) -> None:
        self._records: dict[str, ContentRecord] = {}
        self._mutex = threading.Lock()

    def create(self, record: ContentRecord) -> ContentRecord:
        with self._mutex:
            if record.handle in self._records:
                raise DuplicateHandleError(record.handle)
            self._records[record.handle] = record
        return record

    def find_by_handle(self, handle: str) -> Optional[ContentRecord]:
        with self._mutex:
            return self._records.get(handle)

    def update(self, record: ContentRecord) -> Optional[ContentRecord]:
        with self._mutex:
            if record.handle not in self._records:
                return None
            self._records[record.handle] = record
        return record

    def delete(self, handle: str) -> bool:
        with self._mutex:
            return self._records.pop(handle, None) is not None

    def list_all(self) -> list[ContentRecord]:
        with self._mutex:
            return list(self._records.values())


class SQLiteRecordStore:
    """Record store persisted to a SQLite database file.

    Every mutation is committed before the call returns, so the file on disk
    is always a consistent snapshot of the store.
    """

    def __init__(self, db_path: Path):
        """Initialize the record store.

        Args:
            db_path: Location of the SQLite database file

        Raises:
            StorageFailure: If the database cannot be created
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._storage_errors("initialize"):
            self._init_database()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on success and always close it."""
        with closing(sqlite3.connect(self.db_path, timeout=5.0)) as conn:
            conn.row_factory = sqlite3.Row
            with conn:
                yield conn

    @contextmanager
    def _storage_errors(self, operation: str) -> Iterator[None]:
        """Surface any SQLite error that survived retries as StorageFailure."""
        try:
            yield
        except sqlite3.Error as e:
            raise StorageFailure(f"Record store {operation} failed: {e}") from e

    @with_db_retry()
    def _init_database(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS content_records (
                    handle TEXT PRIMARY KEY,
                    kind TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    expires_at TEXT NOT NULL,
                    file_name TEXT,
                    file_size INTEGER,
                    mime_type TEXT,
                    password_hash TEXT,
                    max_views INTEGER,
                    view_count INTEGER NOT NULL DEFAULT 0,
                    one_time_view INTEGER NOT NULL DEFAULT 0
                )
            """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_content_records_expires_at "
                "ON content_records (expires_at)"
            )

    @staticmethod
    def _to_row(record: ContentRecord) -> tuple:
        data = record.to_dict()
        data["one_time_view"] = int(record.one_time_view)
        return tuple(data[column] for column in _COLUMNS)

    def create(self, record: ContentRecord) -> ContentRecord:
        placeholders = ", ".join("?" for _ in _COLUMNS)
        with self._storage_errors("create"):
            try:
                self._execute(
                    f"INSERT INTO content_records ({', '.join(_COLUMNS)}) "
                    f"VALUES ({placeholders})",
                    self._to_row(record),
                )
            except sqlite3.IntegrityError as e:
                raise DuplicateHandleError(record.handle) from e
        return record

    def find_by_handle(self, handle: str) -> Optional[ContentRecord]:
        with self._storage_errors("lookup"):
            rows = self._query(
                "SELECT * FROM content_records WHERE handle = ?", (handle,)
            )
        return ContentRecord.from_dict(dict(rows[0])) if rows else None

    def update(self, record: ContentRecord) -> Optional[ContentRecord]:
        assignments = ", ".join(f"{column} = ?" for column in _COLUMNS[1:])
        row = self._to_row(record)
        with self._storage_errors("update"):
            changed = self._execute(
                f"UPDATE content_records SET {assignments} WHERE handle = ?",
                (*row[1:], record.handle),
            )
        return record if changed else None

    def delete(self, handle: str) -> bool:
        with self._storage_errors("delete"):
            removed = self._execute(
                "DELETE FROM content_records WHERE handle = ?", (handle,)
            )
        return removed > 0

    def list_all(self) -> list[ContentRecord]:
        with self._storage_errors("scan"):
            rows = self._query("SELECT * FROM content_records ORDER BY created_at")
        return [ContentRecord.from_dict(dict(row)) for row in rows]

    @with_db_retry()
    def _execute(self, sql: str, params: tuple) -> int:
        with self._connect() as conn:
            return conn.execute(sql, params).rowcount

    @with_db_retry()
    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._connect() as conn:
            return conn.execute(sql, params).fetchall()
