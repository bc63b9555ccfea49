"""
Unit tests for the FFmpeg integration.

Only the parts that don't need an FFmpeg binary are covered here:
output parsing, encoder settings, tag collection and temp-file handling.
"""

import asyncio
import json
import os

import pytest

from tire_data.core.media.errors import DecodeError, MetadataReadError
from tire_data.core.media.models import UNKNOWN_DEVICE, VideoInfo
from tire_data.core.media.pipeline import UploadPipeline
from tire_data.infrastructure.storage.client import MockStorageClient
from tire_data.infrastructure.video.metadata import (
    FFprobeMetadataReader,
    MockMetadataReader,
    collect_tags,
    create_metadata_reader,
)
from tire_data.infrastructure.video.processor import (
    FFmpegVideoProcessor,
    MockVideoProcessor,
    create_video_processor,
    jpeg_qscale,
    parse_ffprobe_output,
    scaled_dimensions,
    temporary_video_file,
)

MISSING_BINARY = "/nonexistent/bin/ffprobe"


def ffprobe_json(**overrides) -> str:
    info = {
        "streams": [
            {"codec_type": "audio", "codec_name": "aac", "tags": {"handler_name": "Sound"}},
            {
                "codec_type": "video",
                "codec_name": "hevc",
                "width": 3840,
                "height": 2160,
                "r_frame_rate": "30000/1001",
                "tags": {"com.apple.quicktime.model": "stream value"},
            },
        ],
        "format": {
            "duration": "12.345",
            "tags": {
                "com.apple.quicktime.model": "iPhone 15 Pro",
                "com.apple.quicktime.make": "Apple",
            },
        },
    }
    info.update(overrides)
    return json.dumps(info)


# ---------------------------------------------------------------------------
# FFprobe output parsing
# ---------------------------------------------------------------------------

class TestParseFFprobeOutput:

    def test_reads_video_stream(self):
        info = parse_ffprobe_output(ffprobe_json(), file_size_bytes=2048)

        assert info.duration_seconds == pytest.approx(12.345)
        assert info.width == 3840
        assert info.height == 2160
        assert info.fps == pytest.approx(29.97, rel=1e-3)
        assert info.codec == "hevc"
        assert info.file_size_bytes == 2048

    def test_duration_falls_back_to_stream(self):
        raw = ffprobe_json(
            format={},
            streams=[{"codec_type": "video", "width": 640, "height": 480,
                      "r_frame_rate": "25", "duration": "4.0"}],
        )

        info = parse_ffprobe_output(raw)

        assert info.duration_seconds == 4.0
        assert info.fps == 25.0

    def test_zero_denominator_fps(self):
        raw = ffprobe_json(streams=[{"codec_type": "video", "width": 1, "height": 1,
                                     "r_frame_rate": "0/0"}])
        assert parse_ffprobe_output(raw).fps == 0.0

    def test_no_video_stream_raises_decode_error(self):
        raw = ffprobe_json(streams=[{"codec_type": "audio"}])

        with pytest.raises(DecodeError, match="No video stream"):
            parse_ffprobe_output(raw)


class TestEncoderSettings:

    @pytest.mark.parametrize("quality, expected", [
        (1.0, 2),
        (0.8, 8),
        (0.5, 16),
        (0.01, 31),
    ])
    def test_quality_maps_onto_qscale(self, quality, expected):
        assert jpeg_qscale(quality) == expected

    def test_higher_quality_means_lower_qscale(self):
        assert jpeg_qscale(0.9) < jpeg_qscale(0.3)

    def test_scaled_dimensions(self):
        info = VideoInfo(duration_seconds=1.0, width=1920, height=1080)

        assert scaled_dimensions(info, 0.5) == (960, 540)
        assert scaled_dimensions(info, 1.0) == (1920, 1080)

    def test_scaled_dimensions_never_reach_zero(self):
        info = VideoInfo(duration_seconds=1.0, width=3, height=2)
        assert scaled_dimensions(info, 0.1) == (1, 1)


# ---------------------------------------------------------------------------
# Temp files
# ---------------------------------------------------------------------------

class TestTemporaryVideoFile:

    def test_file_holds_data_and_is_removed(self):
        with temporary_video_file(b"abc", ".mov") as path:
            assert path.endswith(".mov")
            with open(path, "rb") as f:
                assert f.read() == b"abc"

        assert not os.path.exists(path)

    def test_file_is_removed_on_error(self):
        with pytest.raises(RuntimeError):
            with temporary_video_file(b"abc") as path:
                raise RuntimeError("decoder crashed")

        assert not os.path.exists(path)


# ---------------------------------------------------------------------------
# Container tags
# ---------------------------------------------------------------------------

class TestCollectTags:

    def test_format_tags_override_stream_tags(self):
        tags = collect_tags(ffprobe_json())

        assert tags["com.apple.quicktime.model"] == "iPhone 15 Pro"
        assert tags["com.apple.quicktime.make"] == "Apple"
        assert tags["handler_name"] == "Sound"

    def test_missing_tags(self):
        assert collect_tags(json.dumps({"streams": [{}], "format": {}})) == {}


class TestMetadataReaders:

    def test_missing_ffprobe_raises_metadata_error(self):
        reader = FFprobeMetadataReader(ffprobe_path=MISSING_BINARY)

        with pytest.raises(MetadataReadError):
            asyncio.run(reader.read_tags(b"video"))

    def test_pipeline_survives_missing_ffprobe(self):
        """A broken tag reader still lets the upload through."""
        store = MockStorageClient()
        pipeline = UploadPipeline(
            store=store,
            metadata_reader=FFprobeMetadataReader(ffprobe_path=MISSING_BINARY),
        )

        result = asyncio.run(pipeline.upload_video(b"video", "tire.mp4"))

        assert result.device_hint == UNKNOWN_DEVICE
        assert store.put_count == 1

    def test_mock_reader_returns_copy(self):
        reader = MockMetadataReader(tags={"model": "Pixel 8"})

        tags = asyncio.run(reader.read_tags(b"video"))
        tags["model"] = "changed"

        assert asyncio.run(reader.read_tags(b"video")) == {"model": "Pixel 8"}

    def test_factory(self):
        assert isinstance(create_metadata_reader(mock_mode=True), MockMetadataReader)
        assert isinstance(create_metadata_reader(), FFprobeMetadataReader)


# ---------------------------------------------------------------------------
# Processors
# ---------------------------------------------------------------------------

class TestProcessors:

    def test_missing_ffmpeg_fails_at_construction(self):
        with pytest.raises(RuntimeError, match="FFmpeg not found"):
            FFmpegVideoProcessor(ffmpeg_path="/nonexistent/bin/ffmpeg")

    def test_factory_mock_mode(self):
        assert isinstance(create_video_processor(mock_mode=True), MockVideoProcessor)

    def test_mock_open_reports_configured_info(self):
        processor = MockVideoProcessor(duration_seconds=7.0, width=1280, height=720)

        async def open_and_read():
            async with processor.open(b"12345") as handle:
                return handle.info

        info = asyncio.run(open_and_read())

        assert info.duration_seconds == 7.0
        assert info.resolution_display == "1280x720"
        assert info.file_size_bytes == 5
