"""
Frame sampling.

Turns a video into a bounded, ordered set of JPEG stills:
1. Open a decodable handle and read duration/resolution
2. Plan candidate timestamps at a fixed rate
3. Take max_frames of them (a random subset with randomize), sorted ascending
4. Capture each timestamp strictly one after another

Seeks always move forward because the plan is sorted after selection,
even when randomize is set. Some decoders misbehave on backward seeks.

Timestamp planning is a pure function so it can be tested without a
decoder; the FrameSampler only drives the handle.
"""

import logging
import math
import random
from typing import AsyncContextManager, Optional, Protocol

from .errors import DecodeError, FrameCaptureError
from .models import (
    ExtractedFrame,
    FrameCaptureFailure,
    SampleConfig,
    SampleResult,
    VideoInfo,
)

logger = logging.getLogger(__name__)

# Absorbs float error in duration * fps (e.g. 0.3 * 10 = 2.9999999999999996).
# A product within 1e-9 below an integer counts as that integer.
_CANDIDATE_EPSILON = 1e-9


class VideoHandle(Protocol):
    """An opened video that can be seeked and rendered, one frame at a time."""

    info: VideoInfo

    async def capture(
        self,
        timestamp: float,
        scale_factor: float,
        quality: float,
    ) -> bytes:
        """Seek to timestamp, render scaled, return JPEG bytes."""
        ...


class VideoDecoder(Protocol):
    """Opens video bytes as a VideoHandle for the duration of a `async with`."""

    def open(
        self,
        video_data: bytes,
        suffix: str = ".mp4",
    ) -> AsyncContextManager[VideoHandle]:
        ...


def candidate_count(duration_seconds: float, frames_per_second: float) -> int:
    """Number of candidate timestamps: floor(duration * fps)."""
    if duration_seconds <= 0:
        return 0
    return max(0, math.floor(duration_seconds * frames_per_second + _CANDIDATE_EPSILON))


def plan_timestamps(
    duration_seconds: float,
    config: SampleConfig,
    rng: Optional[random.Random] = None,
) -> list[float]:
    """
    Pick the timestamps to capture.

    Candidates are i / fps for i in [0, floor(duration * fps)). With
    randomize a uniform random subset of max_frames candidates is drawn;
    otherwise the first max_frames are taken. The result is always in
    ascending order.

    Only the chosen indices are materialized, so memory stays bounded by
    max_frames however many candidates there are.
    """
    total = candidate_count(duration_seconds, config.frames_per_second)
    count = min(config.max_frames, total)

    if config.randomize:
        indices = (rng or random).sample(range(total), count)
    else:
        indices = range(count)

    return sorted(i / config.frames_per_second for i in indices)


class FrameSampler:
    """
    Extracts still frames from a video through a VideoDecoder.

    One call opens one handle and captures sequentially: a handle cannot
    serve concurrent seeks. A failed capture is recorded in the result and
    the sampler moves on to the next timestamp; a failure to open the video
    aborts the whole call with DecodeError.
    """

    def __init__(
        self,
        decoder: VideoDecoder,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._decoder = decoder
        self._rng = rng

    async def sample(
        self,
        video_data: bytes,
        config: SampleConfig,
        suffix: str = ".mp4",
    ) -> SampleResult:
        if not video_data:
            raise DecodeError("Video is empty")

        async with self._decoder.open(video_data, suffix=suffix) as handle:
            info = handle.info
            if not math.isfinite(info.duration_seconds) or info.duration_seconds < 0:
                raise DecodeError(f"Invalid video duration: {info.duration_seconds}")

            timestamps = plan_timestamps(info.duration_seconds, config, self._rng)
            result = SampleResult(video_info=info, timestamps=timestamps)

            logger.info(
                "Sampling frames",
                extra={
                    "duration": info.duration_seconds,
                    "resolution": info.resolution_display,
                    "planned": len(timestamps),
                    "randomize": config.randomize,
                }
            )

            for index, timestamp in enumerate(timestamps):
                try:
                    image_data = await handle.capture(
                        timestamp,
                        config.scale_factor,
                        config.quality,
                    )
                    if not image_data:
                        raise FrameCaptureError("Encoder returned no data")
                except FrameCaptureError as e:
                    logger.warning(
                        "Skipping frame",
                        extra={"index": index, "timestamp": timestamp, "error": str(e)}
                    )
                    result.failures.append(FrameCaptureFailure(
                        index=index,
                        timestamp_seconds=timestamp,
                        reason=str(e),
                    ))
                    continue

                result.frames.append(ExtractedFrame(
                    index=index,
                    timestamp_seconds=timestamp,
                    image_data=image_data,
                ))

        logger.info(
            "Sampled frames",
            extra={"captured": len(result.frames), "skipped": len(result.failures)}
        )

        return result
