"""
Errors raised by the sampling and upload pipeline.

The taxonomy mirrors how callers react:
- DecodeError: the video cannot be read at all, nothing to return
- FrameCaptureError: one frame failed, the sampler records it and moves on
- UploadError: the media store rejected an object or the network failed
- MetadataReadError: container tags unreadable, device falls back to a placeholder
- InvalidVideoError: rejected locally, before any network call
"""


class MediaError(Exception):
    """Base class for media pipeline errors."""
    pass


class DecodeError(MediaError):
    """Raised when a video cannot be loaded or its metadata is unavailable."""
    pass


class FrameCaptureError(MediaError):
    """Raised when seeking, rendering or encoding a single frame fails."""
    pass


class UploadError(MediaError):
    """Raised when the remote media store rejects an upload or is unreachable."""
    pass


class MetadataReadError(MediaError):
    """Raised when container metadata tags cannot be read."""
    pass


class InvalidVideoError(MediaError):
    """Raised when a video fails local validation (size, container format)."""
    pass


class VideoTooLargeError(InvalidVideoError):
    """Raised when a video exceeds the configured size limit."""
    pass
