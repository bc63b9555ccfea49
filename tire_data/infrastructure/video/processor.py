"""
Video decoding using FFmpeg.

Implements the decoder the frame sampler drives:
1. open(): write the bytes to a temp file and read metadata with FFprobe
2. capture(): seek to a timestamp, scale, and encode one JPEG with FFmpeg
3. leaving the `async with` block deletes the temp file

FFmpeg works best with file paths, so every opened video lives in a
temporary file for exactly as long as its handle is in use. Every
subprocess call carries a timeout.
"""

import asyncio
import json
import logging
import os
import subprocess
import tempfile
from contextlib import asynccontextmanager, contextmanager
from typing import AsyncIterator, Iterable, Iterator, Optional

from ...core.media.errors import DecodeError, FrameCaptureError
from ...core.media.models import VideoInfo

logger = logging.getLogger(__name__)


@contextmanager
def temporary_video_file(video_data: bytes, suffix: str = ".mp4") -> Iterator[str]:
    """
    Write video bytes to a temp file and always delete it afterwards.
    """
    with tempfile.NamedTemporaryFile(suffix=suffix or ".mp4", delete=False) as tmp:
        tmp.write(video_data)
        tmp_path = tmp.name

    try:
        yield tmp_path
    finally:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass


def jpeg_qscale(quality: float) -> int:
    """
    Map a (0, 1] quality onto FFmpeg's MJPEG -q:v scale.

    -q:v runs from 2 (best) to 31 (worst).
    """
    quality = min(max(quality, 0.0), 1.0)
    return int(round(2 + (1.0 - quality) * 29))


def scaled_dimensions(info: VideoInfo, scale_factor: float) -> tuple[int, int]:
    """Output size for a frame, never below 1x1."""
    return (
        max(1, int(info.width * scale_factor)),
        max(1, int(info.height * scale_factor)),
    )


def parse_ffprobe_output(raw: str, file_size_bytes: int = 0) -> VideoInfo:
    """Build VideoInfo from `ffprobe -print_format json` output."""
    info = json.loads(raw)

    video_stream = None
    for stream in info.get("streams", []):
        if stream.get("codec_type") == "video":
            video_stream = stream
            break

    if not video_stream:
        raise DecodeError("No video stream found")

    # fps can be a fraction like "30000/1001"
    fps_str = video_stream.get("r_frame_rate", "0/1")
    if "/" in fps_str:
        num, denom = fps_str.split("/")
        fps = float(num) / float(denom) if float(denom) else 0.0
    else:
        fps = float(fps_str)

    # duration lives on the format, some containers only set it on the stream
    duration = float(info.get("format", {}).get("duration", 0) or 0)
    if duration == 0:
        duration = float(video_stream.get("duration", 0) or 0)

    return VideoInfo(
        duration_seconds=duration,
        width=int(video_stream.get("width", 0)),
        height=int(video_stream.get("height", 0)),
        fps=fps,
        codec=video_stream.get("codec_name", "unknown"),
        file_size_bytes=file_size_bytes,
    )


class FFmpegVideoHandle:
    """An opened video on disk. Only valid inside FFmpegVideoProcessor.open()."""

    def __init__(
        self,
        processor: "FFmpegVideoProcessor",
        path: str,
        info: VideoInfo,
    ) -> None:
        self._processor = processor
        self._path = path
        self.info = info

    async def capture(
        self,
        timestamp: float,
        scale_factor: float,
        quality: float,
    ) -> bytes:
        """
        Extract one frame as JPEG.

        -ss before -i for fast seeking, one output frame, written to stdout
        so no output file needs cleaning up.
        """
        width, height = scaled_dimensions(self.info, scale_factor)
        cmd = [
            self._processor.ffmpeg_path,
            "-v", "error",
            "-ss", f"{timestamp:.3f}",
            "-i", self._path,
            "-frames:v", "1",
            "-vf", f"scale={width}:{height}",
            "-q:v", str(jpeg_qscale(quality)),
            "-f", "image2pipe",
            "-vcodec", "mjpeg",
            "pipe:1",
        ]

        try:
            result = await asyncio.to_thread(
                subprocess.run,
                cmd,
                capture_output=True,
                timeout=self._processor.frame_timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise FrameCaptureError(
                f"Timed out capturing frame at {timestamp:.3f}s"
            ) from e
        except OSError as e:
            raise FrameCaptureError(f"Could not run ffmpeg: {e}") from e

        if result.returncode != 0:
            stderr = result.stderr.decode(errors="replace").strip()
            raise FrameCaptureError(f"ffmpeg failed at {timestamp:.3f}s: {stderr}")

        if not result.stdout:
            raise FrameCaptureError(f"No frame decoded at {timestamp:.3f}s")

        return result.stdout


class FFmpegVideoProcessor:
    """
    Video decoder using FFmpeg/FFprobe.
    """

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        probe_timeout: float = 30.0,
        frame_timeout: float = 10.0,
    ) -> None:
        """
        Initialize processor with FFmpeg paths.

        Args:
            ffmpeg_path: Path to ffmpeg binary (default assumes it's in PATH)
            ffprobe_path: Path to ffprobe binary
            probe_timeout: Seconds allowed for reading metadata
            frame_timeout: Seconds allowed for capturing one frame
        """
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path
        self.probe_timeout = probe_timeout
        self.frame_timeout = frame_timeout

        # verify ffmpeg is available
        try:
            result = subprocess.run(
                [self.ffmpeg_path, "-version"],
                capture_output=True,
                text=True,
                timeout=5
            )
            if result.returncode != 0:
                raise RuntimeError("FFmpeg not working properly")
            logger.info("FFmpeg video processor initialized")
        except FileNotFoundError:
            raise RuntimeError(
                "FFmpeg not found. Install with: apt-get install ffmpeg"
            )

    @asynccontextmanager
    async def open(
        self,
        video_data: bytes,
        suffix: str = ".mp4",
    ) -> AsyncIterator[FFmpegVideoHandle]:
        """
        Open video bytes for frame capture.

        Raises DecodeError if FFprobe can't read a video stream. The temp
        file is removed however the block exits.
        """
        with temporary_video_file(video_data, suffix) as path:
            info = await self.get_video_info(path, file_size_bytes=len(video_data))
            yield FFmpegVideoHandle(self, path, info)

    async def get_video_info(self, path: str, file_size_bytes: int = 0) -> VideoInfo:
        """Extract video metadata using FFprobe."""
        cmd = [
            self.ffprobe_path,
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
                timeout=self.probe_timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise DecodeError(f"FFprobe timed out after {self.probe_timeout}s") from e
        except OSError as e:
            raise DecodeError(f"Could not run ffprobe: {e}") from e

        if result.returncode != 0:
            raise DecodeError(f"FFprobe failed: {result.stderr.strip() or 'unreadable video'}")

        try:
            return parse_ffprobe_output(result.stdout, file_size_bytes)
        except (ValueError, TypeError) as e:
            raise DecodeError(f"Could not parse FFprobe output: {e}") from e


# ---------------------------------------------------------------------------
# Mock Processor for Local Development
# ---------------------------------------------------------------------------

MOCK_JPEG_PREFIX = b"\xff\xd8\xff\xe0"
MOCK_JPEG_SUFFIX = b"\xff\xd9"


class MockVideoHandle:
    """Handle returned by MockVideoProcessor; records every seek."""

    def __init__(self, processor: "MockVideoProcessor", info: VideoInfo) -> None:
        self._processor = processor
        self.info = info

    async def capture(
        self,
        timestamp: float,
        scale_factor: float,
        quality: float,
    ) -> bytes:
        self._processor.seeks.append(timestamp)
        if any(abs(timestamp - bad) < 1e-6 for bad in self._processor.fail_at):
            raise FrameCaptureError(f"Mock capture failure at {timestamp:.3f}s")
        body = f"frame@{timestamp:.3f}s q={quality:.2f} s={scale_factor:.2f}".encode()
        return MOCK_JPEG_PREFIX + body + MOCK_JPEG_SUFFIX


class MockVideoProcessor:
    """
    Mock decoder for local development without FFmpeg.

    Every video is reported with the configured duration and resolution,
    and frames are small JPEG-framed placeholders that name their
    timestamp.
    """

    def __init__(
        self,
        duration_seconds: float = 30.0,
        width: int = 1920,
        height: int = 1080,
        fail_at: Iterable[float] = (),
        decode_error: Optional[str] = None,
    ) -> None:
        self.duration_seconds = duration_seconds
        self.width = width
        self.height = height
        self.fail_at = tuple(fail_at)
        self.decode_error = decode_error
        self.seeks: list[float] = []
        self.open_count = 0
        self.closed_count = 0
        logger.info("Initialized mock video processor")

    @asynccontextmanager
    async def open(
        self,
        video_data: bytes,
        suffix: str = ".mp4",
    ) -> AsyncIterator[MockVideoHandle]:
        if self.decode_error:
            raise DecodeError(self.decode_error)

        self.open_count += 1
        info = VideoInfo(
            duration_seconds=self.duration_seconds,
            width=self.width,
            height=self.height,
            fps=30.0,
            codec="h264",
            file_size_bytes=len(video_data),
        )
        try:
            yield MockVideoHandle(self, info)
        finally:
            self.closed_count += 1


def create_video_processor(
    mock_mode: bool = False,
    ffmpeg_path: str = "ffmpeg",
    ffprobe_path: str = "ffprobe",
    probe_timeout: float = 30.0,
    frame_timeout: float = 10.0,
):
    """
    Factory function for the video decoder.

    Args:
        mock_mode: If True, return mock processor (no FFmpeg required)

    Returns:
        FFmpegVideoProcessor or MockVideoProcessor
    """
    if mock_mode:
        return MockVideoProcessor()

    return FFmpegVideoProcessor(
        ffmpeg_path=ffmpeg_path,
        ffprobe_path=ffprobe_path,
        probe_timeout=probe_timeout,
        frame_timeout=frame_timeout,
    )
