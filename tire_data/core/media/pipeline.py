"""
Upload pipeline for videos and sampled frames.

The pipeline is constructed with an explicit media store and metadata
reader instead of reaching for a module-level client, so tests (and the
CLI) can pass in whatever store they need.

Two frame upload modes are supported:
- unbatched: every frame is put concurrently and the results are joined
- batched: fixed-size groups are sent one after another, with a progress
  fraction reported after each group

Either way the returned URLs are in input order. Nothing is retried; a
failed put surfaces as UploadError and no frame gets a remote_url.
"""

import asyncio
import logging
import os
from typing import Callable, Iterable, Optional, Protocol, Sequence

from .errors import InvalidVideoError, MetadataReadError, UploadError, VideoTooLargeError
from .models import (
    UNKNOWN_DEVICE,
    ExtractedFrame,
    ResourceKind,
    SampleConfig,
    StoredMedia,
    UploadResult,
    VideoUpload,
)
from .sampler import FrameSampler

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_FORMATS = ("mp4", "mov", "avi")
DEFAULT_MAX_VIDEO_BYTES = 100 * 1024 * 1024

# Container tags checked for the recording device, most specific first.
DEVICE_TAG_KEYS = (
    "com.apple.quicktime.camera.lens_model",
    "CameraLensModel",
    "com.apple.quicktime.model",
    "CameraModel",
    "com.android.model",
    "model",
)

ProgressCallback = Callable[[float], None]


class MediaStore(Protocol):
    """The part of a media store the pipeline relies on."""

    async def put(
        self,
        data: bytes,
        folder: str,
        resource_kind: ResourceKind,
        extension: str,
    ) -> StoredMedia:
        ...


class MetadataReader(Protocol):
    """Reads container tags (camera model, lens, ...) from video bytes."""

    async def read_tags(self, video_data: bytes, suffix: str = ".mp4") -> dict[str, str]:
        ...


def device_hint_from_tags(tags: dict[str, str]) -> str:
    """Pick a human-readable device string from container tags."""
    lowered = {key.lower(): value for key, value in tags.items()}
    for key in DEVICE_TAG_KEYS:
        value = lowered.get(key.lower())
        if value and str(value).strip():
            return str(value).strip()
    return UNKNOWN_DEVICE


def video_extension(filename: str) -> str:
    """Lower-cased extension without the dot, or '' when there is none."""
    return os.path.splitext(filename or "")[1].lower().lstrip(".")


def _batches(
    frames: Sequence[ExtractedFrame],
    batch_size: Optional[int],
) -> Iterable[Sequence[ExtractedFrame]]:
    if batch_size is None:
        yield frames
        return
    for start in range(0, len(frames), batch_size):
        yield frames[start:start + batch_size]


class UploadPipeline:
    """
    Sends videos and frames to a media store and returns stable URLs.
    """

    def __init__(
        self,
        store: MediaStore,
        metadata_reader: Optional[MetadataReader] = None,
        video_folder: str = "tire-data/videos",
        frame_folder: str = "tire-data/frames",
        allowed_formats: Sequence[str] = DEFAULT_ALLOWED_FORMATS,
        max_video_bytes: int = DEFAULT_MAX_VIDEO_BYTES,
        upload_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._store = store
        self._metadata_reader = metadata_reader
        self._video_folder = video_folder
        self._frame_folder = frame_folder
        self._allowed_formats = tuple(fmt.lower() for fmt in allowed_formats)
        self._max_video_bytes = max_video_bytes
        self._upload_timeout = upload_timeout_seconds

    def validate_video(self, video_data: bytes, filename: str) -> str:
        """
        Check size and container format. Returns the extension.

        Runs before anything touches the network.
        """
        if not video_data:
            raise InvalidVideoError("Video is empty")

        if len(video_data) > self._max_video_bytes:
            raise VideoTooLargeError(
                f"Video too large: {len(video_data)} bytes "
                f"(limit {self._max_video_bytes} bytes)"
            )

        extension = video_extension(filename)
        if extension not in self._allowed_formats:
            raise InvalidVideoError(
                f"Unsupported video format: '{extension or filename}'. "
                f"Use one of: {', '.join(self._allowed_formats)}"
            )

        return extension

    async def upload_video(self, video_data: bytes, filename: str) -> VideoUpload:
        """
        Upload the raw video and read its recording device.

        A metadata failure never fails the upload; the device falls back
        to "Unknown Device".
        """
        extension = self.validate_video(video_data, filename)

        stored = await self._put(
            video_data,
            folder=self._video_folder,
            resource_kind=ResourceKind.VIDEO,
            extension=extension,
        )

        tags = await self._read_tags(video_data, extension)
        device_hint = device_hint_from_tags(tags)

        logger.info(
            "Uploaded video",
            extra={
                "public_id": stored.public_id,
                "size_bytes": len(video_data),
                "device": device_hint,
            }
        )

        return VideoUpload(
            url=stored.url,
            public_id=stored.public_id,
            device_hint=device_hint,
            tags=tags,
        )

    async def upload_frames(
        self,
        frames: Sequence[ExtractedFrame],
        batch_size: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> list[str]:
        """
        Upload frame images, returning URLs in the same order as `frames`.

        With batch_size=None all frames go out at once; otherwise groups of
        batch_size are sent one after another. On success every frame's
        remote_url is set; on failure none is.
        """
        if batch_size is not None and batch_size <= 0:
            raise ValueError("batch_size must be greater than 0")

        if not frames:
            if on_progress:
                on_progress(1.0)
            return []

        stored: list[StoredMedia] = []

        for batch in _batches(frames, batch_size):
            results = await asyncio.gather(
                *(
                    self._put(
                        frame.image_data,
                        folder=self._frame_folder,
                        resource_kind=ResourceKind.IMAGE,
                        extension="jpg",
                    )
                    for frame in batch
                ),
                return_exceptions=True,
            )

            failures = [r for r in results if isinstance(r, BaseException)]
            if failures:
                logger.error(
                    "Frame upload failed",
                    extra={
                        "failed": len(failures),
                        "batch_size": len(batch),
                        "uploaded_before_failure": len(stored),
                    }
                )
                first = failures[0]
                if isinstance(first, UploadError):
                    raise first
                raise UploadError(f"Frame upload failed: {first}") from first

            stored.extend(results)

            if on_progress:
                on_progress(len(stored) / len(frames))

        urls = [item.url for item in stored]
        for frame, url in zip(frames, urls):
            frame.remote_url = url

        logger.info("Uploaded frames", extra={"count": len(urls), "batch_size": batch_size})

        return urls

    async def ingest(
        self,
        video_data: bytes,
        filename: str,
        sampler: FrameSampler,
        config: SampleConfig,
        batch_size: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> UploadResult:
        """
        Full flow: upload the video, sample frames, upload the frames.
        """
        video = await self.upload_video(video_data, filename)

        sample = await sampler.sample(
            video_data,
            config,
            suffix=f".{video_extension(filename)}",
        )

        frame_urls = await self.upload_frames(
            sample.frames,
            batch_size=batch_size,
            on_progress=on_progress,
        )

        return UploadResult(
            video_url=video.url,
            frame_urls=frame_urls,
            device_hint=video.device_hint,
            frames=sample.frames,
            skipped_frames=sample.failures,
        )

    async def _put(
        self,
        data: bytes,
        folder: str,
        resource_kind: ResourceKind,
        extension: str,
    ) -> StoredMedia:
        """One bounded put. Every failure mode ends up as UploadError."""
        try:
            return await asyncio.wait_for(
                self._store.put(
                    data,
                    folder=folder,
                    resource_kind=resource_kind,
                    extension=extension,
                ),
                timeout=self._upload_timeout,
            )
        except asyncio.TimeoutError as e:
            raise UploadError(
                f"Upload to {folder} timed out after {self._upload_timeout}s"
            ) from e
        except UploadError:
            raise
        except Exception as e:
            raise UploadError(f"Upload to {folder} failed: {e}") from e

    async def _read_tags(self, video_data: bytes, extension: str) -> dict[str, str]:
        if self._metadata_reader is None:
            return {}

        try:
            return await self._metadata_reader.read_tags(video_data, suffix=f".{extension}")
        except MetadataReadError as e:
            logger.warning("Could not read video metadata", extra={"error": str(e)})
        except Exception as e:
            logger.warning(
                "Unexpected error reading video metadata",
                extra={"error": str(e)},
                exc_info=e,
            )
        return {}
