"""
Unit tests for the upload pipeline.

The pipeline is built with the in-memory store and a fixed metadata
reader; a few small store doubles cover slow, failing and hanging puts.
"""

import asyncio

import pytest

from tire_data.core.media.errors import (
    InvalidVideoError,
    MetadataReadError,
    UploadError,
    VideoTooLargeError,
)
from tire_data.core.media.models import UNKNOWN_DEVICE, ResourceKind, SampleConfig, UploadResult
from tire_data.core.media.pipeline import UploadPipeline, device_hint_from_tags, video_extension
from tire_data.core.media.sampler import FrameSampler
from tire_data.infrastructure.storage.client import MockStorageClient, StorageError
from tire_data.infrastructure.video.metadata import MockMetadataReader
from tire_data.infrastructure.video.processor import MockVideoProcessor

MOCK_PREFIX = "mock://storage/"


def public_id_from_url(url: str) -> str:
    """mock://storage/{public_id}.{ext} -> public_id"""
    return url[len(MOCK_PREFIX):].rsplit(".", 1)[0]


class ReversedLatencyStore(MockStorageClient):
    """Earlier puts take longer, so completions arrive in reverse order."""

    def __init__(self, expected_puts: int) -> None:
        super().__init__()
        self._remaining = expected_puts

    async def put(self, data, folder, resource_kind, extension):
        delay = self._remaining * 0.005
        self._remaining -= 1
        await asyncio.sleep(delay)
        return await super().put(data, folder, resource_kind, extension)


class FailingStore(MockStorageClient):
    """Rejects the nth put (1-based)."""

    def __init__(self, fail_on: int) -> None:
        super().__init__()
        self._fail_on = fail_on

    async def put(self, data, folder, resource_kind, extension):
        if self.put_count + 1 == self._fail_on:
            self.put_count += 1
            raise StorageError("bucket said no")
        return await super().put(data, folder, resource_kind, extension)


class HangingStore(MockStorageClient):
    async def put(self, data, folder, resource_kind, extension):
        await asyncio.sleep(10)
        return await super().put(data, folder, resource_kind, extension)


@pytest.fixture
def store() -> MockStorageClient:
    return MockStorageClient()


@pytest.fixture
def pipeline(store) -> UploadPipeline:
    return UploadPipeline(
        store=store,
        metadata_reader=MockMetadataReader(tags={"com.apple.quicktime.model": "iPhone 15 Pro"}),
        max_video_bytes=1024,
    )


# ---------------------------------------------------------------------------
# Device hint
# ---------------------------------------------------------------------------

class TestDeviceHint:
    """Reading the recording device out of container tags."""

    def test_lens_model_wins_over_model(self):
        tags = {
            "com.apple.quicktime.model": "iPhone 15 Pro",
            "com.apple.quicktime.camera.lens_model": "iPhone 15 Pro back camera 6.86mm f/1.78",
        }
        assert device_hint_from_tags(tags) == "iPhone 15 Pro back camera 6.86mm f/1.78"

    def test_lookup_ignores_key_case(self):
        assert device_hint_from_tags({"COM.ANDROID.MODEL": "Pixel 8"}) == "Pixel 8"

    def test_blank_values_are_skipped(self):
        tags = {"CameraLensModel": "   ", "model": "SM-S918B"}
        assert device_hint_from_tags(tags) == "SM-S918B"

    def test_no_known_tag_gives_placeholder(self):
        assert device_hint_from_tags({"encoder": "Lavf60.3.100"}) == UNKNOWN_DEVICE
        assert device_hint_from_tags({}) == UNKNOWN_DEVICE


class TestVideoExtension:

    def test_lowercases_and_strips_dot(self):
        assert video_extension("IMG_0042.MOV") == "mov"

    def test_missing_extension_is_empty(self):
        assert video_extension("clip") == ""
        assert video_extension("") == ""


# ---------------------------------------------------------------------------
# upload_video
# ---------------------------------------------------------------------------

class TestUploadVideo:
    """Raw video upload with local validation first."""

    def test_uploads_and_reports_device(self, pipeline, store):
        result = asyncio.run(pipeline.upload_video(b"0" * 100, "tire.mp4"))

        assert result.url.startswith(f"{MOCK_PREFIX}tire-data/videos/")
        assert result.url.endswith(".mp4")
        assert result.device_hint == "iPhone 15 Pro"
        assert store.put_count == 1

    def test_oversize_video_is_rejected_before_any_put(self, pipeline, store):
        with pytest.raises(VideoTooLargeError):
            asyncio.run(pipeline.upload_video(b"0" * 1025, "tire.mp4"))

        assert store.put_count == 0

    def test_size_limit_is_inclusive(self, pipeline, store):
        asyncio.run(pipeline.upload_video(b"0" * 1024, "tire.mp4"))
        assert store.put_count == 1

    def test_unsupported_format_is_rejected_before_any_put(self, pipeline, store):
        with pytest.raises(InvalidVideoError, match="Unsupported video format"):
            asyncio.run(pipeline.upload_video(b"0" * 10, "tire.mkv"))

        assert store.put_count == 0

    def test_empty_video_is_rejected(self, pipeline, store):
        with pytest.raises(InvalidVideoError, match="empty"):
            asyncio.run(pipeline.upload_video(b"", "tire.mp4"))

        assert store.put_count == 0

    def test_uppercase_extension_is_accepted(self, pipeline):
        result = asyncio.run(pipeline.upload_video(b"0" * 10, "IMG_0042.MOV"))
        assert result.url.endswith(".mov")

    def test_metadata_failure_falls_back_to_unknown_device(self, store):
        pipeline = UploadPipeline(
            store=store,
            metadata_reader=MockMetadataReader(error=MetadataReadError("exif blew up")),
        )

        result = asyncio.run(pipeline.upload_video(b"0" * 10, "tire.mp4"))

        assert result.device_hint == UNKNOWN_DEVICE
        assert store.put_count == 1

    def test_unexpected_metadata_error_also_falls_back(self, store):
        pipeline = UploadPipeline(
            store=store,
            metadata_reader=MockMetadataReader(error=RuntimeError("boom")),
        )

        result = asyncio.run(pipeline.upload_video(b"0" * 10, "tire.mp4"))

        assert result.device_hint == UNKNOWN_DEVICE

    def test_store_failure_becomes_upload_error(self):
        pipeline = UploadPipeline(store=FailingStore(fail_on=1))

        with pytest.raises(UploadError, match="bucket said no"):
            asyncio.run(pipeline.upload_video(b"0" * 10, "tire.mp4"))


# ---------------------------------------------------------------------------
# upload_frames
# ---------------------------------------------------------------------------

class TestUploadFrames:
    """Frame upload keeps input order in every mode."""

    def test_no_frames_uploads_nothing(self, pipeline, store):
        progress = []

        urls = asyncio.run(pipeline.upload_frames([], batch_size=5, on_progress=progress.append))

        assert urls == []
        assert store.put_count == 0
        assert progress == [1.0]

    def test_single_frame(self, pipeline, store, frames_factory):
        frames = frames_factory(1)

        urls = asyncio.run(pipeline.upload_frames(frames))

        assert len(urls) == 1
        assert frames[0].remote_url == urls[0]
        assert urls[0].startswith(f"{MOCK_PREFIX}tire-data/frames/")
        assert urls[0].endswith(".jpg")

    @pytest.mark.parametrize("batch_size", [None, 1, 5, 12, 50])
    def test_urls_follow_input_order(self, pipeline, store, frames_factory, batch_size):
        frames = frames_factory(12)

        urls = asyncio.run(pipeline.upload_frames(frames, batch_size=batch_size))

        assert len(urls) == 12
        for i, url in enumerate(urls):
            stored = asyncio.run(store.get(public_id_from_url(url)))
            assert stored == f"jpeg-{i}".encode()
            assert frames[i].remote_url == url

    def test_order_holds_when_later_puts_finish_first(self, frames_factory):
        store = ReversedLatencyStore(expected_puts=6)
        pipeline = UploadPipeline(store=store)
        frames = frames_factory(6)

        urls = asyncio.run(pipeline.upload_frames(frames))

        stored = [asyncio.run(store.get(public_id_from_url(url))) for url in urls]
        assert stored == [f"jpeg-{i}".encode() for i in range(6)]

    def test_batched_progress_is_reported_per_batch(self, pipeline, frames_factory):
        progress = []

        asyncio.run(pipeline.upload_frames(
            frames_factory(12),
            batch_size=5,
            on_progress=progress.append,
        ))

        assert progress == pytest.approx([5 / 12, 10 / 12, 1.0])

    def test_unbatched_progress_is_reported_once(self, pipeline, frames_factory):
        progress = []

        asyncio.run(pipeline.upload_frames(frames_factory(4), on_progress=progress.append))

        assert progress == [1.0]

    def test_non_positive_batch_size_is_rejected(self, pipeline, frames_factory):
        with pytest.raises(ValueError):
            asyncio.run(pipeline.upload_frames(frames_factory(2), batch_size=0))

    def test_failed_put_raises_and_sets_no_urls(self, frames_factory):
        pipeline = UploadPipeline(store=FailingStore(fail_on=3))
        frames = frames_factory(5)

        with pytest.raises(UploadError):
            asyncio.run(pipeline.upload_frames(frames))

        assert all(frame.remote_url is None for frame in frames)

    def test_failure_in_a_later_batch_sets_no_urls(self, frames_factory):
        pipeline = UploadPipeline(store=FailingStore(fail_on=7))
        frames = frames_factory(10)
        progress = []

        with pytest.raises(UploadError):
            asyncio.run(pipeline.upload_frames(frames, batch_size=3, on_progress=progress.append))

        assert all(not frame.is_uploaded for frame in frames)
        assert progress == pytest.approx([3 / 10, 6 / 10])

    def test_hanging_put_times_out(self, frames_factory):
        pipeline = UploadPipeline(store=HangingStore(), upload_timeout_seconds=0.05)

        with pytest.raises(UploadError, match="timed out"):
            asyncio.run(pipeline.upload_frames(frames_factory(2)))


# ---------------------------------------------------------------------------
# ingest
# ---------------------------------------------------------------------------

class TestIngest:
    """Video upload, sampling and frame upload in one call."""

    def test_full_flow(self, pipeline, store):
        sampler = FrameSampler(MockVideoProcessor(duration_seconds=10.0))

        result = asyncio.run(pipeline.ingest(
            b"0" * 100,
            "tire.mp4",
            sampler=sampler,
            config=SampleConfig(),
            batch_size=2,
        ))

        assert result.video_url.startswith(f"{MOCK_PREFIX}tire-data/videos/")
        assert result.device_hint == "iPhone 15 Pro"
        assert len(result.frame_urls) == 5
        assert [f.remote_url for f in result.frames] == result.frame_urls
        assert [f.timestamp_seconds for f in result.frames] == [0.0, 1.0, 2.0, 3.0, 4.0]
        assert result.skipped_frames == []
        assert store.put_count == 6

    def test_skipped_frames_are_reported(self, pipeline):
        sampler = FrameSampler(MockVideoProcessor(duration_seconds=10.0, fail_at=[1.0, 3.0]))

        result = asyncio.run(pipeline.ingest(b"0" * 100, "tire.mp4", sampler, SampleConfig()))

        assert [f.index for f in result.frames] == [0, 2, 4]
        assert len(result.frame_urls) == 3
        assert [s.index for s in result.skipped_frames] == [1, 3]

    def test_invalid_video_never_reaches_decoder_or_store(self, pipeline, store):
        processor = MockVideoProcessor()

        with pytest.raises(VideoTooLargeError):
            asyncio.run(pipeline.ingest(
                b"0" * 2048,
                "tire.mp4",
                FrameSampler(processor),
                SampleConfig(),
            ))

        assert processor.open_count == 0
        assert store.put_count == 0


class TestUploadResult:

    def test_mismatched_frame_urls_are_rejected(self, frames_factory):
        with pytest.raises(ValueError):
            UploadResult(video_url="v", frame_urls=["a"], frames=frames_factory(2))

    def test_frames_without_urls_are_allowed_when_empty(self):
        result = UploadResult(video_url="v")
        assert result.frame_urls == []


class TestMockStore:

    def test_resource_kind_is_passed_through(self, store):
        stored = asyncio.run(store.put(b"x", "f", ResourceKind.IMAGE, "png"))
        assert stored.resource_kind == ResourceKind.IMAGE
        assert stored.url.endswith(".jpg")
