"""
Container metadata (tags) reader.

Phones write the recording device into the container: iPhones use
com.apple.quicktime.model / camera.lens_model, Android uses
com.android.model. FFprobe reports these under format.tags and the
video stream's tags, so no extra tool is needed beyond FFmpeg.
"""

import asyncio
import json
import logging
import subprocess
from typing import Optional

from ...core.media.errors import MetadataReadError
from .processor import temporary_video_file

logger = logging.getLogger(__name__)


def collect_tags(raw: str) -> dict[str, str]:
    """
    Flatten FFprobe JSON into one tag map.

    Format-level tags win over stream-level tags with the same key.
    """
    info = json.loads(raw)
    tags: dict[str, str] = {}

    for stream in info.get("streams", []):
        for key, value in (stream.get("tags") or {}).items():
            tags.setdefault(key, str(value))

    for key, value in (info.get("format", {}).get("tags") or {}).items():
        tags[key] = str(value)

    return tags


class FFprobeMetadataReader:
    """Reads container tags through FFprobe."""

    def __init__(self, ffprobe_path: str = "ffprobe", timeout: float = 30.0) -> None:
        self._ffprobe = ffprobe_path
        self._timeout = timeout

    async def read(self, path: str) -> dict[str, str]:
        """Read tags from a video file on disk."""
        cmd = [
            self._ffprobe,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            path,
        ]

        try:
            result = await asyncio.to_thread(
                subprocess.run,
                cmd,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise MetadataReadError(f"FFprobe timed out after {self._timeout}s") from e
        except OSError as e:
            raise MetadataReadError(f"Could not run ffprobe: {e}") from e

        if result.returncode != 0:
            raise MetadataReadError(f"FFprobe failed: {result.stderr.strip()}")

        try:
            return collect_tags(result.stdout)
        except (ValueError, AttributeError) as e:
            raise MetadataReadError(f"Could not parse FFprobe output: {e}") from e

    async def read_tags(self, video_data: bytes, suffix: str = ".mp4") -> dict[str, str]:
        """Read tags from video bytes via a scratch file that is always deleted."""
        with temporary_video_file(video_data, suffix) as path:
            tags = await self.read(path)

        logger.debug("Read container tags", extra={"tag_count": len(tags)})
        return tags


class MockMetadataReader:
    """Returns fixed tags, or raises, for tests and mock mode."""

    def __init__(
        self,
        tags: Optional[dict[str, str]] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self._tags = dict(tags or {})
        self._error = error

    async def read_tags(self, video_data: bytes, suffix: str = ".mp4") -> dict[str, str]:
        if self._error is not None:
            raise self._error
        return dict(self._tags)


def create_metadata_reader(
    mock_mode: bool = False,
    ffprobe_path: str = "ffprobe",
    timeout: float = 30.0,
):
    """Factory function for the container metadata reader."""
    if mock_mode:
        return MockMetadataReader()

    return FFprobeMetadataReader(ffprobe_path=ffprobe_path, timeout=timeout)
