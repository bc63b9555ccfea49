"""
Frame sampling and media upload.

Contains the sampler, the upload pipeline, their domain models and errors.
"""

from .errors import (
    DecodeError,
    FrameCaptureError,
    InvalidVideoError,
    MediaError,
    MetadataReadError,
    UploadError,
    VideoTooLargeError,
)
from .models import (
    UNKNOWN_DEVICE,
    ExtractedFrame,
    FrameCaptureFailure,
    ResourceKind,
    SampleConfig,
    SampleResult,
    StoredMedia,
    UploadResult,
    VideoInfo,
    VideoUpload,
)
from .pipeline import UploadPipeline, device_hint_from_tags
from .sampler import FrameSampler, candidate_count, plan_timestamps

__all__ = [
    "DecodeError",
    "FrameCaptureError",
    "InvalidVideoError",
    "MediaError",
    "MetadataReadError",
    "UploadError",
    "VideoTooLargeError",
    "UNKNOWN_DEVICE",
    "ExtractedFrame",
    "FrameCaptureFailure",
    "ResourceKind",
    "SampleConfig",
    "SampleResult",
    "StoredMedia",
    "UploadResult",
    "VideoInfo",
    "VideoUpload",
    "UploadPipeline",
    "device_hint_from_tags",
    "FrameSampler",
    "candidate_count",
    "plan_timestamps",
]
