"""
Media store client for videos and sampled frames.

Supports Cloudflare R2 (S3-compatible) with mock mode for local development.
Objects are addressed by a public id of the form {folder}/{uuid}; the object
key adds the file extension, and the permanent URL is the bucket's public
base URL plus the key.

Mock mode stores objects in memory, enabling API testing without
provisioning actual object storage.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol
from uuid import uuid4

from ...core.media.models import ResourceKind, StoredMedia

logger = logging.getLogger(__name__)


CONTENT_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "mp4": "video/mp4",
    "mov": "video/quicktime",
    "avi": "video/x-msvideo",
    "webm": "video/webm",
}


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


@dataclass
class StorageConfig:
    """Configuration for R2/S3-compatible storage."""
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    endpoint_url: str
    public_base_url: Optional[str] = None
    region: str = "auto"  # R2 uses 'auto' for region


class StorageClient(Protocol):
    """
    Protocol for media store operations.

    Tests provide the mock, production uses R2; dependent code only
    sees this interface.
    """

    async def put(
        self,
        data: bytes,
        folder: str,
        resource_kind: ResourceKind,
        extension: str,
    ) -> StoredMedia:
        """Store an object and return its URL and public id."""
        ...

    async def get(self, public_id: str) -> bytes:
        """Download an object by public id."""
        ...

    async def delete(self, public_id: str) -> bool:
        """Delete an object. Returns False when it did not exist."""
        ...

    async def ping(self) -> None:
        """Raise StorageError if the store is unreachable."""
        ...


def _normalize_extension(extension: str, resource_kind: ResourceKind) -> str:
    ext = (extension or "").lower().lstrip(".")
    if resource_kind == ResourceKind.IMAGE:
        # frames are always normalized to JPEG
        return "jpg"
    return ext or "mp4"


def _new_public_id(folder: str) -> str:
    return f"{folder.strip('/')}/{uuid4().hex}"


class R2StorageClient:
    """
    Cloudflare R2 media store client.

    Uses boto3 because R2 is S3-compatible. boto3 is synchronous, so each
    call runs in a worker thread to keep the event loop free while a
    large video is in flight.

    Public ids do not carry the extension, so the key is remembered per
    upload in a small index for get/delete within the same process; other
    lookups fall back to listing the id prefix.
    """

    def __init__(self, config: StorageConfig) -> None:
        """
        Initialize R2 client with boto3.

        boto3 is imported here (not at module level) because mock mode
        doesn't need it.
        """
        try:
            import boto3
            from botocore.config import Config
        except ImportError:
            raise ImportError(
                "boto3 is required for R2 storage. Install with: pip install boto3"
            )

        self._config = config

        # R2 requires v4 signatures and has specific endpoint patterns
        boto_config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path'},
        )

        self._s3_client = boto3.client(
            's3',
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
            config=boto_config,
        )
        self._keys: dict[str, str] = {}

        logger.info(
            "Initialized R2 storage client",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url,
            }
        )

    async def put(
        self,
        data: bytes,
        folder: str,
        resource_kind: ResourceKind,
        extension: str,
    ) -> StoredMedia:
        """
        Upload an object to R2.

        Key structure: {folder}/{uuid}.{ext}
        Using the folder in the key groups videos and frames in storage
        and keeps URLs predictable.
        """
        ext = _normalize_extension(extension, resource_kind)
        public_id = _new_public_id(folder)
        key = f"{public_id}.{ext}"

        try:
            await asyncio.to_thread(
                self._s3_client.put_object,
                Bucket=self._config.bucket_name,
                Key=key,
                Body=data,
                ContentType=CONTENT_TYPES.get(ext, "application/octet-stream"),
                Metadata={
                    'resource-kind': resource_kind.value,
                },
            )
        except Exception as e:
            logger.error(
                "Failed to upload object",
                extra={"key": key, "size_bytes": len(data), "error": str(e)}
            )
            raise StorageError(f"Upload failed: {e}") from e

        self._keys[public_id] = key

        logger.debug(
            "Uploaded object",
            extra={"key": key, "size_bytes": len(data), "kind": resource_kind.value}
        )

        return StoredMedia(
            url=self._build_url(key),
            public_id=public_id,
            resource_kind=resource_kind,
            size_bytes=len(data),
        )

    async def get(self, public_id: str) -> bytes:
        """Download object data from R2."""
        key = await self._resolve_key(public_id)
        try:
            response = await asyncio.to_thread(
                self._s3_client.get_object,
                Bucket=self._config.bucket_name,
                Key=key,
            )
            return response['Body'].read()
        except Exception as e:
            logger.error(
                "Failed to download object",
                extra={"key": key, "error": str(e)}
            )
            raise StorageError(f"Download failed: {e}") from e

    async def delete(self, public_id: str) -> bool:
        """Delete an object from R2."""
        try:
            key = await self._resolve_key(public_id)
        except StorageError:
            return False

        try:
            await asyncio.to_thread(
                self._s3_client.delete_object,
                Bucket=self._config.bucket_name,
                Key=key,
            )
        except Exception as e:
            logger.error(
                "Failed to delete object",
                extra={"key": key, "error": str(e)}
            )
            raise StorageError(f"Delete failed: {e}") from e

        self._keys.pop(public_id, None)
        logger.info("Deleted object", extra={"key": key})
        return True

    async def ping(self) -> None:
        """Check the bucket is reachable with the configured credentials."""
        try:
            await asyncio.to_thread(
                self._s3_client.head_bucket,
                Bucket=self._config.bucket_name,
            )
        except Exception as e:
            raise StorageError(f"Bucket not reachable: {e}") from e

    async def _resolve_key(self, public_id: str) -> str:
        if public_id in self._keys:
            return self._keys[public_id]

        try:
            response = await asyncio.to_thread(
                self._s3_client.list_objects_v2,
                Bucket=self._config.bucket_name,
                Prefix=f"{public_id}.",
                MaxKeys=1,
            )
        except Exception as e:
            raise StorageError(f"Lookup failed: {e}") from e

        contents = response.get('Contents') or []
        if not contents:
            raise StorageError(f"Object not found: {public_id}")
        return contents[0]['Key']

    def _build_url(self, key: str) -> str:
        """Permanent URL for a key; public base URL when configured."""
        if self._config.public_base_url:
            return f"{self._config.public_base_url.rstrip('/')}/{key}"
        return f"{self._config.endpoint_url.rstrip('/')}/{self._config.bucket_name}/{key}"


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockStorageClient:
    """
    In-memory media store for local development and tests.

    Objects are kept in a dictionary and URLs are mock URIs. put_count
    lets tests assert whether anything was sent to the store.
    """

    def __init__(self) -> None:
        # {public_id: (key, data)}
        self._objects: dict[str, tuple[str, bytes]] = {}
        self.put_count = 0
        logger.info("Initialized mock storage client (in-memory)")

    async def put(
        self,
        data: bytes,
        folder: str,
        resource_kind: ResourceKind,
        extension: str,
    ) -> StoredMedia:
        """Store object in memory."""
        self.put_count += 1
        ext = _normalize_extension(extension, resource_kind)
        public_id = _new_public_id(folder)
        key = f"{public_id}.{ext}"
        self._objects[public_id] = (key, data)

        logger.debug(
            "Stored object in mock storage",
            extra={"key": key, "size_bytes": len(data)}
        )

        return StoredMedia(
            url=f"mock://storage/{key}",
            public_id=public_id,
            resource_kind=resource_kind,
            size_bytes=len(data),
        )

    async def get(self, public_id: str) -> bytes:
        """Retrieve object from memory."""
        if public_id not in self._objects:
            raise StorageError(f"Object not found: {public_id}")
        return self._objects[public_id][1]

    async def delete(self, public_id: str) -> bool:
        """Delete object from memory."""
        return self._objects.pop(public_id, None) is not None

    async def ping(self) -> None:
        return None

    def __len__(self) -> int:
        return len(self._objects)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> StorageClient:
    """
    Create storage client based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return mock client for testing

    Returns:
        StorageClient implementation (R2 or Mock)
    """
    if mock_mode:
        return MockStorageClient()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return R2StorageClient(config)
