"""
Domain models for frame sampling and media upload.

These models have no dependencies on FFmpeg, boto3 or FastAPI. The sampler
produces them, the upload pipeline fills in remote URLs, and the API layer
translates them into response bodies.
"""

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


UNKNOWN_DEVICE = "Unknown Device"


class ResourceKind(Enum):
    """What kind of object is being stored. Drives content type and folder."""
    IMAGE = "image"
    VIDEO = "video"


@dataclass(frozen=True)
class SampleConfig:
    """
    How to sample frames from a video.

    Frozen because a config is supplied once per extraction call and
    must not change while frames are being captured.
    """
    max_frames: int = 5
    frames_per_second: float = 1.0
    quality: float = 0.8
    scale_factor: float = 0.5
    randomize: bool = False

    def __post_init__(self) -> None:
        if self.max_frames <= 0:
            raise ValueError("max_frames must be greater than 0")
        if self.frames_per_second <= 0:
            raise ValueError("frames_per_second must be greater than 0")
        if not 0 < self.quality <= 1:
            raise ValueError("quality must be in (0, 1]")
        if not 0 < self.scale_factor <= 1:
            raise ValueError("scale_factor must be in (0, 1]")

    @property
    def frame_interval(self) -> float:
        """Seconds between two candidate timestamps."""
        return 1.0 / self.frames_per_second


@dataclass(frozen=True)
class VideoInfo:
    """Technical information about a decodable video."""
    duration_seconds: float
    width: int
    height: int
    fps: float = 0.0
    codec: str = "unknown"
    file_size_bytes: int = 0

    @property
    def resolution_display(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass
class ExtractedFrame:
    """
    A still frame sampled from a video.

    `index` is the frame's position in the planned timestamp sequence, so
    a skipped capture leaves a gap rather than renumbering later frames.
    `remote_url` stays None until the upload pipeline has stored the frame.
    """
    index: int
    timestamp_seconds: float
    image_data: bytes
    remote_url: Optional[str] = None

    def __post_init__(self) -> None:
        if self.index < 0:
            raise ValueError("Frame index cannot be negative")

    @property
    def preview_uri(self) -> str:
        """Inline data URI for showing the frame before it is uploaded."""
        encoded = base64.b64encode(self.image_data).decode("ascii")
        return f"data:image/jpeg;base64,{encoded}"

    @property
    def timestamp_formatted(self) -> str:
        """Human-readable format: MM:SS.ms"""
        minutes = int(self.timestamp_seconds // 60)
        seconds = self.timestamp_seconds % 60
        return f"{minutes:02d}:{seconds:05.2f}"

    @property
    def is_uploaded(self) -> bool:
        return self.remote_url is not None


@dataclass(frozen=True)
class FrameCaptureFailure:
    """A planned frame that could not be captured, and why."""
    index: int
    timestamp_seconds: float
    reason: str


@dataclass
class SampleResult:
    """
    Everything the sampler produced for one video.

    Failed captures are reported next to the frames instead of being
    dropped silently, so callers can decide whether degraded output is
    acceptable.
    """
    video_info: VideoInfo
    timestamps: list[float] = field(default_factory=list)
    frames: list[ExtractedFrame] = field(default_factory=list)
    failures: list[FrameCaptureFailure] = field(default_factory=list)

    @property
    def is_degraded(self) -> bool:
        return bool(self.failures)


@dataclass(frozen=True)
class StoredMedia:
    """What the media store hands back after a successful put."""
    url: str
    public_id: str
    resource_kind: ResourceKind
    size_bytes: int = 0


@dataclass(frozen=True)
class VideoUpload:
    """Result of uploading a source video."""
    url: str
    public_id: str
    device_hint: str = UNKNOWN_DEVICE
    tags: dict[str, str] = field(default_factory=dict)


@dataclass
class UploadResult:
    """
    Output of the full ingest flow.

    frame_urls[i] is always the URL of frames[i]. Downstream persistence
    stores frames positionally, so this correspondence must hold.
    """
    video_url: str
    frame_urls: list[str] = field(default_factory=list)
    device_hint: Optional[str] = None
    frames: list[ExtractedFrame] = field(default_factory=list)
    skipped_frames: list[FrameCaptureFailure] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.frames and len(self.frames) != len(self.frame_urls):
            raise ValueError("frame_urls must match frames one-to-one")
