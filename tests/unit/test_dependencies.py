"""
Unit tests for the FastAPI service providers.

The FFmpeg factory is replaced with a counting fake so no binary is needed.
"""

import pytest

from tire_data.api import dependencies
from tire_data.api.dependencies import get_video_processor, reset_mock_clients
from tire_data.config.settings import Settings


@pytest.fixture
def built(monkeypatch):
    """Record every processor the FFmpeg factory is asked to build."""
    calls = []

    def fake_factory(**kwargs):
        calls.append(kwargs)
        return object()

    reset_mock_clients()
    monkeypatch.setattr(dependencies, "create_video_processor", fake_factory)
    yield calls
    reset_mock_clients()


class TestVideoProcessorProvider:

    def test_ffmpeg_processor_is_built_once(self, built):
        """Requests share one processor instead of re-checking binaries each time."""
        settings = Settings(video_processor_mock_mode=False)

        first = get_video_processor(settings)
        second = get_video_processor(settings)

        assert first is second
        assert len(built) == 1
        assert built[0]["probe_timeout"] == settings.probe_timeout_seconds
        assert built[0]["frame_timeout"] == settings.frame_timeout_seconds

    def test_different_timeouts_get_their_own_processor(self, built):
        fast = Settings(video_processor_mock_mode=False, frame_timeout_seconds=1.0)
        slow = Settings(video_processor_mock_mode=False, frame_timeout_seconds=20.0)

        assert get_video_processor(fast) is not get_video_processor(slow)
        assert len(built) == 2

    def test_reset_forgets_cached_processor(self, built):
        settings = Settings(video_processor_mock_mode=False)

        get_video_processor(settings)
        reset_mock_clients()
        get_video_processor(settings)

        assert len(built) == 2

    def test_mock_mode_shares_the_mock_processor(self):
        reset_mock_clients()
        settings = Settings(video_processor_mock_mode=True)

        assert get_video_processor(settings) is get_video_processor(settings)
        reset_mock_clients()
