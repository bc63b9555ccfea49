"""
Media API endpoints.

Covers the capture side of the measurement workflow:
1. POST /videos: store the raw video and read the recording device
2. POST /extract: sample frames for preview, nothing is stored
3. POST /frames: store frames the client already has
4. POST /ingest: all of the above in one call

Uploads are multipart because videos run up to 100MB.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status
from pydantic import BaseModel, Field

from ...config.settings import Settings
from ...core.media.errors import (
    DecodeError,
    InvalidVideoError,
    UploadError,
    VideoTooLargeError,
)
from ...core.media.models import ExtractedFrame, FrameCaptureFailure, SampleConfig, VideoInfo
from ...core.media.pipeline import video_extension
from ..dependencies import (
    AuthenticatedUser,
    FrameSamplerDep,
    SettingsDep,
    UploadPipelineDep,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class VideoUploadResponse(BaseModel):
    """Response after uploading a source video."""
    status: str = "success"
    video_url: str = Field(description="Permanent URL of the stored video")
    public_id: str = Field(description="Media store identifier")
    measurement_device: str = Field(description="Recording device read from the container tags")


class FrameUploadResponse(BaseModel):
    """URLs of uploaded frames, in upload order."""
    status: str = "success"
    urls: list[str]


class VideoInfoItem(BaseModel):
    duration_seconds: float
    resolution: str
    fps: float
    codec: str

    @classmethod
    def from_info(cls, info: VideoInfo) -> "VideoInfoItem":
        return cls(
            duration_seconds=info.duration_seconds,
            resolution=info.resolution_display,
            fps=info.fps,
            codec=info.codec,
        )


class FrameItem(BaseModel):
    """One sampled frame. Either `preview` or `url` is set."""
    index: int
    timestamp_seconds: float
    timestamp_formatted: str
    url: Optional[str] = None
    preview: Optional[str] = Field(None, description="data:image/jpeg;base64 URI")


class SkippedFrameItem(BaseModel):
    index: int
    timestamp_seconds: float
    reason: str


class ExtractResponse(BaseModel):
    """Frames sampled from a video, not yet stored."""
    video: VideoInfoItem
    frames: list[FrameItem]
    skipped_frames: list[SkippedFrameItem]


class IngestResponse(BaseModel):
    """Stored video plus its stored frames, ready to attach to a measurement."""
    status: str = "success"
    video_url: str
    measurement_device: Optional[str]
    frame_urls: list[str]
    frames: list[FrameItem]
    skipped_frames: list[SkippedFrameItem]


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

def build_sample_config(
    settings: Settings,
    max_frames: Optional[int],
    frames_per_second: Optional[float],
    quality: Optional[float],
    scale_factor: Optional[float],
    randomize: Optional[bool],
) -> SampleConfig:
    """Merge request fields over the configured defaults. Raises 400 on bad values."""
    max_frames = max_frames if max_frames is not None else settings.sample_max_frames
    if max_frames > settings.max_frames_per_request:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"max_frames cannot exceed {settings.max_frames_per_request}"
        )

    frames_per_second = (
        frames_per_second if frames_per_second is not None
        else settings.sample_frames_per_second
    )
    if frames_per_second > settings.max_frames_per_second:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"frames_per_second cannot exceed {settings.max_frames_per_second}"
        )

    try:
        return SampleConfig(
            max_frames=max_frames,
            frames_per_second=frames_per_second,
            quality=quality if quality is not None else settings.sample_quality,
            scale_factor=scale_factor if scale_factor is not None else settings.sample_scale_factor,
            randomize=randomize if randomize is not None else settings.sample_randomize,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def invalid_video_exception(error: InvalidVideoError) -> HTTPException:
    if isinstance(error, VideoTooLargeError):
        return HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=str(error),
        )
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))


def upload_failed_exception(error: UploadError) -> HTTPException:
    logger.error("Media store upload failed", extra={"error": str(error)})
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"Failed to store media: {error}",
    )


def frame_item(frame: ExtractedFrame, include_preview: bool) -> FrameItem:
    return FrameItem(
        index=frame.index,
        timestamp_seconds=frame.timestamp_seconds,
        timestamp_formatted=frame.timestamp_formatted,
        url=frame.remote_url,
        preview=frame.preview_uri if include_preview else None,
    )


def skipped_item(failure: FrameCaptureFailure) -> SkippedFrameItem:
    return SkippedFrameItem(
        index=failure.index,
        timestamp_seconds=failure.timestamp_seconds,
        reason=failure.reason,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/videos",
    response_model=VideoUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a tire video",
    description="Store the raw video and report the recording device",
)
async def upload_video(
    video: Annotated[UploadFile, File(description="Tire video (MP4, MOV, AVI)")],
    api_key: AuthenticatedUser = None,
    pipeline: UploadPipelineDep = None,
) -> VideoUploadResponse:
    """
    Upload a source video.

    Size and container format are checked before anything is sent to the
    media store. An unreadable device tag never fails the upload.
    """
    video_data = await video.read()

    logger.info(
        "Video upload started",
        extra={
            "video_filename": video.filename,
            "content_type": video.content_type,
            "size_bytes": len(video_data),
        }
    )

    try:
        uploaded = await pipeline.upload_video(video_data, video.filename or "")
    except InvalidVideoError as e:
        raise invalid_video_exception(e)
    except UploadError as e:
        raise upload_failed_exception(e)

    return VideoUploadResponse(
        video_url=uploaded.url,
        public_id=uploaded.public_id,
        measurement_device=uploaded.device_hint,
    )


@router.post(
    "/frames",
    response_model=FrameUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload frame images",
    description="Store JPEG frames; URLs are returned in the order the files were sent",
)
async def upload_frames(
    frames: Annotated[list[UploadFile], File(description="JPEG frames in display order")],
    batch_size: Annotated[Optional[int], Form(ge=1)] = None,
    api_key: AuthenticatedUser = None,
    pipeline: UploadPipelineDep = None,
) -> FrameUploadResponse:
    extracted: list[ExtractedFrame] = []
    for index, upload in enumerate(frames):
        data = await upload.read()
        if not data:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Frame {index} ({upload.filename}) is empty",
            )
        extracted.append(ExtractedFrame(index=index, timestamp_seconds=0.0, image_data=data))

    try:
        urls = await pipeline.upload_frames(extracted, batch_size=batch_size)
    except UploadError as e:
        raise upload_failed_exception(e)

    return FrameUploadResponse(urls=urls)


@router.post(
    "/extract",
    response_model=ExtractResponse,
    status_code=status.HTTP_200_OK,
    summary="Sample frames for preview",
    description="Sample frames from a video and return them inline; nothing is stored",
)
async def extract_frames(
    video: Annotated[UploadFile, File(description="Tire video (MP4, MOV, AVI)")],
    max_frames: Annotated[Optional[int], Form()] = None,
    frames_per_second: Annotated[Optional[float], Form()] = None,
    quality: Annotated[Optional[float], Form()] = None,
    scale_factor: Annotated[Optional[float], Form()] = None,
    randomize: Annotated[Optional[bool], Form()] = None,
    api_key: AuthenticatedUser = None,
    settings: SettingsDep = None,
    pipeline: UploadPipelineDep = None,
    sampler: FrameSamplerDep = None,
) -> ExtractResponse:
    config = build_sample_config(
        settings, max_frames, frames_per_second, quality, scale_factor, randomize
    )
    video_data = await video.read()

    try:
        extension = pipeline.validate_video(video_data, video.filename or "")
        result = await sampler.sample(video_data, config, suffix=f".{extension}")
    except InvalidVideoError as e:
        raise invalid_video_exception(e)
    except DecodeError as e:
        logger.warning("Could not decode video", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Could not process video: {e}",
        )

    return ExtractResponse(
        video=VideoInfoItem.from_info(result.video_info),
        frames=[frame_item(frame, include_preview=True) for frame in result.frames],
        skipped_frames=[skipped_item(failure) for failure in result.failures],
    )


@router.post(
    "/ingest",
    response_model=IngestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a video and its sampled frames",
    description="Store the video, sample frames and store them, in one call",
)
async def ingest_video(
    video: Annotated[UploadFile, File(description="Tire video (MP4, MOV, AVI)")],
    max_frames: Annotated[Optional[int], Form()] = None,
    frames_per_second: Annotated[Optional[float], Form()] = None,
    quality: Annotated[Optional[float], Form()] = None,
    scale_factor: Annotated[Optional[float], Form()] = None,
    randomize: Annotated[Optional[bool], Form()] = None,
    batch_size: Annotated[Optional[int], Form(ge=1)] = None,
    api_key: AuthenticatedUser = None,
    settings: SettingsDep = None,
    pipeline: UploadPipelineDep = None,
    sampler: FrameSamplerDep = None,
) -> IngestResponse:
    """
    Full capture flow.

    The response carries frames in sampling order with their URLs; use
    `video_url`, `measurement_device` and `frame_urls` when saving the
    measurement.
    """
    config = build_sample_config(
        settings, max_frames, frames_per_second, quality, scale_factor, randomize
    )
    video_data = await video.read()
    filename = video.filename or ""

    logger.info(
        "Ingest started",
        extra={
            "video_filename": filename,
            "extension": video_extension(filename),
            "size_bytes": len(video_data),
            "max_frames": config.max_frames,
        }
    )

    try:
        result = await pipeline.ingest(
            video_data,
            filename,
            sampler=sampler,
            config=config,
            batch_size=batch_size if batch_size is not None else settings.frame_upload_batch_size,
        )
    except InvalidVideoError as e:
        raise invalid_video_exception(e)
    except DecodeError as e:
        logger.warning("Could not decode video", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Could not process video: {e}",
        )
    except UploadError as e:
        raise upload_failed_exception(e)

    return IngestResponse(
        video_url=result.video_url,
        measurement_device=result.device_hint,
        frame_urls=result.frame_urls,
        frames=[frame_item(frame, include_preview=False) for frame in result.frames],
        skipped_frames=[skipped_item(failure) for failure in result.skipped_frames],
    )
