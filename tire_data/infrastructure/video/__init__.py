"""
Video processing infrastructure.

Handles server-side video work using FFmpeg:
- Opening a video and reading its metadata
- Capturing scaled JPEG frames at specific timestamps
- Reading container tags (recording device)
"""

from .metadata import (
    FFprobeMetadataReader,
    MockMetadataReader,
    create_metadata_reader,
)
from .processor import (
    FFmpegVideoProcessor,
    MockVideoProcessor,
    create_video_processor,
    temporary_video_file,
)

__all__ = [
    "FFprobeMetadataReader",
    "MockMetadataReader",
    "create_metadata_reader",
    "FFmpegVideoProcessor",
    "MockVideoProcessor",
    "create_video_processor",
    "temporary_video_file",
]
