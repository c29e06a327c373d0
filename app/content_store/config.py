"""Wiring of the process-wide content service."""

from typing import Optional

from app.content_store.backends import create_blob_backend
from app.content_store.service import ContentService
from app.content_store.store import (
    InMemoryRecordStore,
    RecordStore,
    SQLiteRecordStore,
)
from app.content_store.sweeper import ExpirySweeper
from app.core.config import Settings, settings as default_settings

# Global instance
_content_service_instance: Optional[ContentService] = None


def create_record_store(settings: Settings) -> RecordStore:
    """Build the record store selected by ``settings.RECORD_STORE_TYPE``."""
    if settings.RECORD_STORE_TYPE == "memory":
        return InMemoryRecordStore()
    return SQLiteRecordStore(settings.DATABASE_PATH)


def create_content_service(settings: Settings) -> ContentService:
    """Build a content service from settings.

    Args:
        settings: Application settings

    Returns:
        A new ContentService with its record store and blob backend
    """
    return ContentService(
        records=create_record_store(settings),
        blobs=create_blob_backend(settings),
        default_ttl_minutes=settings.DEFAULT_EXPIRY_MINUTES,
        max_blob_size=settings.MAX_FILE_SIZE,
        handle_bytes=settings.HANDLE_BYTES,
    )


def create_sweeper(service: ContentService, settings: Settings) -> ExpirySweeper:
    """Build the expiry sweeper for ``service`` using the configured schedule."""
    return ExpirySweeper(
        service,
        interval=settings.SWEEP_INTERVAL_SECONDS,
        initial_delay=settings.SWEEP_INITIAL_DELAY_SECONDS,
    )


def get_content_service() -> ContentService:
    """Get the configured content service instance.

    The instance is created from the application settings on first use.
    """
    global _content_service_instance

    if _content_service_instance is None:
        _content_service_instance = create_content_service(default_settings)

    return _content_service_instance


def set_content_service(service: Optional[ContentService]) -> None:
    """Install ``service`` as the process-wide instance. Used for testing."""
    global _content_service_instance
    _content_service_instance = service


def reset_content_service() -> None:
    """Reset content service singleton. Used for testing."""
    set_content_service(None)
