"""Exceptions raised by the content store."""


class ContentStoreError(Exception):
    """Base exception for content store errors."""


class InvalidInput(ContentStoreError):
    """Raised when a creation request is malformed or contradictory."""


class PayloadTooLarge(ContentStoreError):
    """Raised when an uploaded blob exceeds the configured size limit."""

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"Payload of {size} bytes exceeds limit of {limit} bytes")


class StorageFailure(ContentStoreError):
    """Raised when blob or record I/O fails."""


class DuplicateHandleError(StorageFailure):
    """Raised when a record is created under a handle that already exists."""

    def __init__(self, handle: str) -> None:
        self.handle = handle
        super().__init__(f"Handle already exists: {handle}")
