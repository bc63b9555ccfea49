"""
Shared test configuration.

Every external service runs in mock mode so the suite needs no R2
bucket, no database file and no FFmpeg install. The environment is set
before anything imports tire_data.main, which builds the app at import.
"""

import os

os.environ.setdefault("API_KEYS", "test-key")
os.environ.setdefault("R2_MOCK_MODE", "true")
os.environ.setdefault("DATABASE_MOCK_MODE", "true")
os.environ.setdefault("VIDEO_PROCESSOR_MOCK_MODE", "true")
os.environ.setdefault("CORS_ORIGINS", "*")

import pytest  # noqa: E402

from tire_data.core.media.models import ExtractedFrame  # noqa: E402


def make_frames(count: int) -> list[ExtractedFrame]:
    """Frames whose bytes name their index, so order can be checked after upload."""
    return [
        ExtractedFrame(
            index=i,
            timestamp_seconds=float(i),
            image_data=f"jpeg-{i}".encode(),
        )
        for i in range(count)
    ]


@pytest.fixture
def frames_factory():
    return make_frames
