"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be mocked for testing
- Configuration is centralized
- Resource lifecycle (connections, clients) is managed properly

Each dependency is a function that FastAPI calls when needed.
"""

import logging
from functools import lru_cache
from typing import Annotated, Generator

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..core.media.pipeline import UploadPipeline
from ..core.media.sampler import FrameSampler
from ..infrastructure.database.client import DatabaseConfig, create_database_connection
from ..infrastructure.database.repositories.measurements import MeasurementRepository
from ..infrastructure.storage.client import StorageClient, StorageConfig, create_storage_client
from ..infrastructure.video.metadata import create_metadata_reader
from ..infrastructure.video.processor import create_video_processor

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Global mock instances (shared across requests for testing)
_mock_storage_client = None
_mock_video_processor = None


def reset_mock_clients() -> None:
    """Forget the shared mocks and cached processors (for test cleanup)."""
    global _mock_storage_client, _mock_video_processor
    _mock_storage_client = None
    _mock_video_processor = None
    _ffmpeg_processor.cache_clear()


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """
    Validate API key from request header.

    Raises 403 if key is invalid or missing.
    """
    if not api_key:
        logger.warning("Request missing API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key required. Provide X-API-Key header.",
        )

    if api_key not in settings.api_keys_list:
        logger.warning(
            "Invalid API key attempt",
            extra={"key_prefix": api_key[:8]}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_storage_client(
    settings: Annotated[Settings, Depends(get_settings)],
) -> StorageClient:
    """
    Provide the media store client.

    Returns either R2 client or mock client based on settings.

    In mock mode, we reuse the same client across requests
    so that uploaded media persists during the testing session.
    """
    global _mock_storage_client

    if settings.r2_mock_mode:
        if _mock_storage_client is None:
            _mock_storage_client = create_storage_client(mock_mode=True)
            logger.info("Created shared mock storage client for session")
        return _mock_storage_client

    config = StorageConfig(
        access_key_id=settings.r2_access_key_id,
        secret_access_key=settings.r2_secret_access_key,
        bucket_name=settings.r2_bucket_name,
        endpoint_url=settings.r2_endpoint,
        public_base_url=settings.r2_public_base_url,
    )
    client = create_storage_client(config=config)
    logger.debug("Created R2 storage client")

    return client


@lru_cache
def _ffmpeg_processor(
    ffmpeg_path: str,
    ffprobe_path: str,
    probe_timeout: float,
    frame_timeout: float,
):
    """One FFmpeg processor per binary/timeout combination."""
    return create_video_processor(
        ffmpeg_path=ffmpeg_path,
        ffprobe_path=ffprobe_path,
        probe_timeout=probe_timeout,
        frame_timeout=frame_timeout,
    )


def get_video_processor(
    settings: Annotated[Settings, Depends(get_settings)],
):
    """
    Provide the video decoder used by the frame sampler.

    FFmpeg in production; a shared mock processor when
    VIDEO_PROCESSOR_MOCK_MODE is set.
    """
    global _mock_video_processor

    if settings.video_processor_mock_mode:
        if _mock_video_processor is None:
            _mock_video_processor = create_video_processor(mock_mode=True)
        return _mock_video_processor

    return _ffmpeg_processor(
        settings.ffmpeg_path,
        settings.ffprobe_path,
        settings.probe_timeout_seconds,
        settings.frame_timeout_seconds,
    )


def get_metadata_reader(
    settings: Annotated[Settings, Depends(get_settings)],
):
    """Container tag reader, mocked together with the video processor."""
    return create_metadata_reader(
        mock_mode=settings.video_processor_mock_mode,
        ffprobe_path=settings.ffprobe_path,
        timeout=settings.probe_timeout_seconds,
    )


def get_frame_sampler(
    decoder: Annotated[object, Depends(get_video_processor)],
) -> FrameSampler:
    return FrameSampler(decoder)


def get_upload_pipeline(
    settings: Annotated[Settings, Depends(get_settings)],
    storage: Annotated[StorageClient, Depends(get_storage_client)],
    metadata_reader: Annotated[object, Depends(get_metadata_reader)],
) -> UploadPipeline:
    """
    Provide an UploadPipeline bound to the configured store.

    The pipeline holds no connection state of its own, so one per request
    is fine.
    """
    return UploadPipeline(
        store=storage,
        metadata_reader=metadata_reader,
        video_folder=settings.video_folder,
        frame_folder=settings.frame_folder,
        allowed_formats=settings.allowed_video_formats_list,
        max_video_bytes=settings.max_video_size_bytes,
        upload_timeout_seconds=settings.upload_timeout_seconds,
    )


def get_measurement_repository(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[MeasurementRepository, None, None]:
    """
    Provide MeasurementRepository with a database connection.

    This is a generator function (yields instead of returns) because
    we need to manage the connection lifecycle:
    1. Open connection
    2. Yield repository (FastAPI injects it)
    3. Close connection (cleanup after request)

    In mock mode the shared in-memory database is used, so data persists
    across requests for the life of the process.
    """
    config = DatabaseConfig(
        path=settings.database_path,
        busy_timeout_ms=settings.database_busy_timeout_ms,
    )

    with create_database_connection(
        config=config,
        mock_mode=settings.database_mock_mode,
    ) as conn:
        yield MeasurementRepository(conn)


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
StorageClientDep = Annotated[StorageClient, Depends(get_storage_client)]
FrameSamplerDep = Annotated[FrameSampler, Depends(get_frame_sampler)]
UploadPipelineDep = Annotated[UploadPipeline, Depends(get_upload_pipeline)]
MeasurementRepositoryDep = Annotated[MeasurementRepository, Depends(get_measurement_repository)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
