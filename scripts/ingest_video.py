#!/usr/bin/env python3
"""
Ingest a local tire video: upload it, sample frames, upload the frames.

Prints the video URL, device hint and ordered frame URLs as JSON, ready
to paste into a measurement. With --dry-run nothing is uploaded and the
sampled frames can be written to a directory for inspection.

Usage:
    python scripts/ingest_video.py path/to/tire.mp4
    python scripts/ingest_video.py tire.mov --max-frames 10 --randomize
    python scripts/ingest_video.py tire.mp4 --dry-run --output-dir frames/

Requires:
    - FFmpeg on PATH (or FFMPEG_PATH / FFPROBE_PATH)
    - .env file with R2 credentials, unless --mock-storage or --dry-run
"""

import asyncio
import json
import os
import sys
from pathlib import Path

# Add the project root to the path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from tire_data.config.settings import get_settings  # noqa: E402
from tire_data.core.media import (  # noqa: E402
    DecodeError,
    FrameSampler,
    InvalidVideoError,
    SampleConfig,
    UploadError,
    UploadPipeline,
)
from tire_data.core.media.pipeline import video_extension  # noqa: E402
from tire_data.infrastructure.storage.client import (  # noqa: E402
    StorageConfig,
    create_storage_client,
)
from tire_data.infrastructure.video import (  # noqa: E402
    create_metadata_reader,
    create_video_processor,
)


def write_frames(frames, output_dir: str) -> None:
    os.makedirs(output_dir, exist_ok=True)
    for frame in frames:
        path = os.path.join(output_dir, f"frame_{frame.index:03d}_{frame.timestamp_seconds:07.2f}s.jpg")
        with open(path, 'wb') as f:
            f.write(frame.image_data)
        print(f"  wrote {path}", file=sys.stderr)


async def run(args) -> dict:
    settings = get_settings()

    with open(args.video, 'rb') as f:
        video_data = f.read()

    config = SampleConfig(
        max_frames=args.max_frames,
        frames_per_second=args.fps,
        quality=args.quality,
        scale_factor=args.scale,
        randomize=args.randomize,
    )

    decoder = create_video_processor(
        ffmpeg_path=settings.ffmpeg_path,
        ffprobe_path=settings.ffprobe_path,
        probe_timeout=settings.probe_timeout_seconds,
        frame_timeout=settings.frame_timeout_seconds,
    )
    sampler = FrameSampler(decoder)
    filename = os.path.basename(args.video)

    if args.dry_run:
        result = await sampler.sample(video_data, config, suffix=f".{video_extension(filename)}")
        if args.output_dir:
            write_frames(result.frames, args.output_dir)
        return {
            "duration_seconds": result.video_info.duration_seconds,
            "resolution": result.video_info.resolution_display,
            "timestamps": result.timestamps,
            "captured": [frame.index for frame in result.frames],
            "skipped": [
                {"index": s.index, "timestamp_seconds": s.timestamp_seconds, "reason": s.reason}
                for s in result.failures
            ],
        }

    if args.mock_storage:
        store = create_storage_client(mock_mode=True)
    else:
        store = create_storage_client(config=StorageConfig(
            access_key_id=settings.r2_access_key_id,
            secret_access_key=settings.r2_secret_access_key,
            bucket_name=settings.r2_bucket_name,
            endpoint_url=settings.r2_endpoint,
            public_base_url=settings.r2_public_base_url,
        ))

    pipeline = UploadPipeline(
        store=store,
        metadata_reader=create_metadata_reader(
            ffprobe_path=settings.ffprobe_path,
            timeout=settings.probe_timeout_seconds,
        ),
        video_folder=settings.video_folder,
        frame_folder=settings.frame_folder,
        allowed_formats=settings.allowed_video_formats_list,
        max_video_bytes=settings.max_video_size_bytes,
        upload_timeout_seconds=settings.upload_timeout_seconds,
    )

    def report(fraction: float) -> None:
        print(f"  uploaded {fraction:.0%} of frames", file=sys.stderr)

    result = await pipeline.ingest(
        video_data,
        filename,
        sampler=sampler,
        config=config,
        batch_size=args.batch_size,
        on_progress=report,
    )

    if args.output_dir:
        write_frames(result.frames, args.output_dir)

    return {
        "originalVideoUrl": result.video_url,
        "measurementDevice": result.device_hint,
        "frames": [{"url": url} for url in result.frame_urls],
        "skipped": [
            {"index": s.index, "timestamp_seconds": s.timestamp_seconds, "reason": s.reason}
            for s in result.skipped_frames
        ],
    }


def main():
    import argparse

    settings = get_settings()

    parser = argparse.ArgumentParser(description='Upload a tire video and its sampled frames')
    parser.add_argument('video', help='Path to the video file')
    parser.add_argument('--max-frames', type=int, default=settings.sample_max_frames,
                        help='Number of frames to keep')
    parser.add_argument('--fps', type=float, default=settings.sample_frames_per_second,
                        help='Candidate frames per second of video')
    parser.add_argument('--quality', type=float, default=settings.sample_quality,
                        help='JPEG quality in (0, 1]')
    parser.add_argument('--scale', type=float, default=settings.sample_scale_factor,
                        help='Frame scale factor in (0, 1]')
    parser.add_argument('--randomize', action='store_true', default=settings.sample_randomize,
                        help='Pick a random subset of candidate timestamps')
    parser.add_argument('--batch-size', type=int, default=settings.frame_upload_batch_size,
                        help='Frames per upload group (0 uploads all at once)')
    parser.add_argument('--output-dir', help='Also write sampled frames here')
    parser.add_argument('--mock-storage', action='store_true',
                        help='Keep uploads in memory instead of R2')
    parser.add_argument('--dry-run', action='store_true',
                        help='Sample only, upload nothing')
    args = parser.parse_args()

    if args.batch_size == 0:
        args.batch_size = None

    if not os.path.exists(args.video):
        print(f"ERROR: Cannot find {args.video}")
        sys.exit(1)

    try:
        output = asyncio.run(run(args))
    except (InvalidVideoError, DecodeError, UploadError, ValueError) as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    print(json.dumps(output, indent=2))


if __name__ == '__main__':
    main()
