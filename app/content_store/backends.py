"""Blob backends: where binary payloads live while their record is alive."""

import os
import tempfile
import threading
from pathlib import Path, PurePosixPath
from typing import Any, Optional, Protocol, runtime_checkable

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from app.content_store.errors import StorageFailure
from app.content_store.models import BlobMeta
from app.core.logging import get_logger

logger = get_logger()

_MISSING_OBJECT_CODES = {"404", "NoSuchKey", "NotFound"}


def locator_for(key: str, meta: BlobMeta) -> str:
    """Build a storage locator from a handle, keeping the original extension."""
    suffix = PurePosixPath(meta.filename).suffix.lower()
    if not suffix.isascii() or not suffix[1:].isalnum():
        suffix = ""
    return f"{key}{suffix}"


@runtime_checkable
class BlobBackend(Protocol):
    """Storage for raw byte payloads keyed by a logical name."""

    @property
    def name(self) -> str:
        """Short identifier of the backend variant."""
        ...

    def put(self, key: str, data: bytes, meta: BlobMeta) -> str:
        """Store ``data`` and return the locator used to fetch it later."""
        ...

    def get(self, locator: str) -> bytes:
        """Return the stored bytes. Raise StorageFailure if unavailable."""
        ...

    def delete(self, locator: str) -> bool:
        """Remove the object. A missing object is not an error."""
        ...


class InMemoryBlobBackend:
    """Dict-based blob backend for development and testing."""

    name = "memory"

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}
        self._mutex = threading.Lock()

    def put(self, key: str, data: bytes, meta: BlobMeta) -> str:
        locator = locator_for(key, meta)
        with self._mutex:
            self._blobs[locator] = bytes(data)
        return locator

    def get(self, locator: str) -> bytes:
        with self._mutex:
            data = self._blobs.get(locator)
        if data is None:
            raise StorageFailure(f"Blob not found: {locator}")
        return data

    def delete(self, locator: str) -> bool:
        with self._mutex:
            self._blobs.pop(locator, None)
        return True

    def __contains__(self, locator: str) -> bool:
        return locator in self._blobs

    def __len__(self) -> int:
        return len(self._blobs)


class LocalBlobBackend:
    """Blob backend writing one file per blob under a root directory."""

    name = "local"

    def __init__(self, root: str | Path) -> None:
        """Initialize with a root directory, creating it if needed."""
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        logger.info("blob_backend_ready", backend=self.name, root=str(self._root))

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, locator: str) -> Path:
        """Resolve a locator and make sure it stays under the root."""
        root = self._root.resolve()
        candidate = (self._root / locator).resolve()
        try:
            candidate.relative_to(root)
        except ValueError:
            raise StorageFailure(f"Locator {locator!r} resolves outside blob root")
        if candidate == root:
            raise StorageFailure(f"Invalid locator {locator!r}")
        return candidate

    def put(self, key: str, data: bytes, meta: BlobMeta) -> str:
        locator = locator_for(key, meta)
        path = self._resolve(locator)
        try:
            # Write to a sibling temp file first so readers never see a partial blob
            fd, tmp_name = tempfile.mkstemp(dir=self._root, prefix=".upload-")
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(data)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageFailure(f"Failed to write blob {locator}: {e}") from e
        return locator

    def get(self, locator: str) -> bytes:
        path = self._resolve(locator)
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageFailure(f"Failed to read blob {locator}: {e}") from e

    def delete(self, locator: str) -> bool:
        path = self._resolve(locator)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageFailure(f"Failed to delete blob {locator}: {e}") from e
        return True


class S3BlobBackend:
    """Blob backend storing objects in an S3-compatible bucket.

    Key structure: ``{prefix}{locator}`` where the locator is the record
    handle plus the original file extension.
    """

    name = "s3"

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        client: Any = None,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        """Initialize S3 storage.

        Args:
            bucket: Bucket holding the blobs
            prefix: Key prefix shared by every object
            client: Pre-built boto3 S3 client; one is created when omitted
            region: AWS region for a created client
            endpoint_url: Custom endpoint (MinIO, R2, ...) for a created client
            access_key_id: Explicit credentials for a created client
            secret_access_key: Explicit credentials for a created client
            timeout_seconds: Connect/read timeout for a created client
        """
        if not bucket:
            raise ValueError("S3 bucket name is required")
        self.bucket = bucket
        self.prefix = prefix
        if client is None:
            client_kwargs: dict[str, Any] = {
                "service_name": "s3",
                "config": BotoConfig(
                    connect_timeout=timeout_seconds,
                    read_timeout=timeout_seconds,
                    retries={"max_attempts": 3, "mode": "adaptive"},
                ),
            }
            if region:
                client_kwargs["region_name"] = region
            if endpoint_url:
                client_kwargs["endpoint_url"] = endpoint_url
            if access_key_id and secret_access_key:
                client_kwargs["aws_access_key_id"] = access_key_id
                client_kwargs["aws_secret_access_key"] = secret_access_key
            client = boto3.client(**client_kwargs)
        self._client = client
        logger.info("blob_backend_ready", backend=self.name, bucket=bucket)

    def _key(self, locator: str) -> str:
        return f"{self.prefix}{locator}"

    def put(self, key: str, data: bytes, meta: BlobMeta) -> str:
        locator = locator_for(key, meta)
        # S3 user metadata must be ASCII
        original_name = meta.filename.encode("ascii", "replace").decode()
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=self._key(locator),
                Body=data,
                ContentType=meta.media_type,
                Metadata={"original-name": original_name},
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageFailure(f"Failed to upload blob {locator}: {e}") from e
        return locator

    def get(self, locator: str) -> bytes:
        try:
            response = self._client.get_object(
                Bucket=self.bucket, Key=self._key(locator)
            )
            return response["Body"].read()
        except (ClientError, BotoCoreError) as e:
            raise StorageFailure(f"Failed to download blob {locator}: {e}") from e

    def delete(self, locator: str) -> bool:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=self._key(locator))
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _MISSING_OBJECT_CODES:
                return True
            raise StorageFailure(f"Failed to delete blob {locator}: {e}") from e
        except BotoCoreError as e:
            raise StorageFailure(f"Failed to delete blob {locator}: {e}") from e
        return True


def create_blob_backend(settings: Any) -> BlobBackend:
    """Build the blob backend selected by ``settings.STORAGE_TYPE``.

    Args:
        settings: Application settings

    Returns:
        The single active blob backend

    Raises:
        ValueError: If the storage type is unknown
    """
    storage_type = settings.STORAGE_TYPE.lower()
    if storage_type == "local":
        return LocalBlobBackend(settings.UPLOADS_DIR)
    if storage_type == "s3":
        return S3BlobBackend(
            bucket=settings.S3_BUCKET,
            prefix=settings.S3_PREFIX,
            region=settings.S3_REGION,
            endpoint_url=settings.S3_ENDPOINT_URL,
            access_key_id=settings.S3_ACCESS_KEY_ID,
            secret_access_key=settings.S3_SECRET_ACCESS_KEY,
        )
    if storage_type == "memory":
        return InMemoryBlobBackend()
    raise ValueError(
        f"Unsupported storage type: {settings.STORAGE_TYPE}. "
        f"Supported types: local, s3, memory"
    )
