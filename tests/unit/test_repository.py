"""
Unit tests for the SQLite measurement repository.

Each test gets a fresh in-memory database with the full schema.
"""

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from tire_data.core.measurements.models import (
    DamageType,
    FrameReference,
    LightingCondition,
    TireCleanliness,
    TireMeasurement,
    TirePosition,
    TreadDepths,
    VehicleInfo,
    WeatherCondition,
    WeatherInfo,
)
from tire_data.infrastructure.database.client import (
    DatabaseConfig,
    DatabaseConnectionError,
    create_database_connection,
    get_mock_connection,
    open_connection,
    reset_mock_connection,
)
from tire_data.infrastructure.database.repositories.measurements import (
    MeasurementNotFoundError,
    MeasurementRepository,
)


@pytest.fixture
def conn():
    connection = open_connection(DatabaseConfig(path=":memory:"))
    yield connection
    connection.close()


@pytest.fixture
def repository(conn) -> MeasurementRepository:
    return MeasurementRepository(conn)


def make_measurement(**overrides) -> TireMeasurement:
    fields = dict(
        position=TirePosition.FRONT_LEFT,
        depths=TreadDepths(left=6.1, center=6.4, right=5.9),
        brand="Michelin",
        model="Pilot Sport 4S",
        size="225/45R17",
        load_index="94",
        speed_rating="Y",
        vehicle=VehicleInfo(make="Toyota", model="Camry", year=2020),
        weather=WeatherInfo(condition=WeatherCondition.WET, temperature_celsius=12.5),
        tire_cleanliness=TireCleanliness.DIRTY,
        lighting_condition=LightingCondition.POOR,
        damage_type=DamageType.SURFACE,
        damage_description="Sidewall scuff",
        measurement_device="iPhone 15 Pro",
        original_video_url="mock://storage/tire-data/videos/abc.mp4",
        frames=[
            FrameReference(url="mock://storage/tire-data/frames/0.jpg", index=0),
            FrameReference(url="mock://storage/tire-data/frames/1.jpg", index=1),
            FrameReference(url="mock://storage/tire-data/frames/2.jpg", index=2),
        ],
        location="Lot B",
        mileage=42000,
        notes="Left shoulder worn",
        timestamp=datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return TireMeasurement(**fields)


class TestSave:
    """Persisting measurements and their frames."""

    def test_save_assigns_id(self, repository):
        measurement = make_measurement()

        measurement_id = repository.save(measurement)

        assert measurement_id > 0
        assert measurement.id == measurement_id

    def test_round_trip_keeps_every_field(self, repository):
        original = make_measurement()
        measurement_id = repository.save(original)

        loaded = repository.get(measurement_id)

        assert loaded.position == TirePosition.FRONT_LEFT
        assert loaded.depths == original.depths
        assert loaded.brand == "Michelin"
        assert loaded.size == "225/45R17"
        assert loaded.vehicle == original.vehicle
        assert loaded.weather == original.weather
        assert loaded.tire_cleanliness == TireCleanliness.DIRTY
        assert loaded.lighting_condition == LightingCondition.POOR
        assert loaded.damage_type == DamageType.SURFACE
        assert loaded.measurement_device == "iPhone 15 Pro"
        assert loaded.original_video_url == original.original_video_url
        assert loaded.location == "Lot B"
        assert loaded.mileage == 42000
        assert loaded.notes == "Left shoulder worn"
        assert loaded.timestamp == original.timestamp

    def test_frame_order_is_preserved(self, repository):
        """Frames come back in sampling order, not insertion order."""
        measurement = make_measurement(frames=[
            FrameReference(url="third", index=2),
            FrameReference(url="first", index=0),
            FrameReference(url="second", index=1),
        ])
        measurement_id = repository.save(measurement)

        loaded = repository.get(measurement_id)

        assert loaded.frame_urls == ["first", "second", "third"]
        assert [f.index for f in loaded.frames] == [0, 1, 2]

    def test_measurement_without_frames(self, repository):
        measurement_id = repository.save(make_measurement(frames=[]))
        assert repository.get(measurement_id).frames == []

    def test_duplicate_frame_index_rolls_back_whole_save(self, repository, conn):
        measurement = make_measurement(frames=[
            FrameReference(url="a", index=0),
            FrameReference(url="b", index=0),
        ])

        with pytest.raises(sqlite3.IntegrityError):
            repository.save(measurement)

        assert conn.execute("SELECT COUNT(*) FROM tire_measurements").fetchone()[0] == 0
        assert conn.execute("SELECT COUNT(*) FROM frame_images").fetchone()[0] == 0

    def test_timestamp_with_offset_is_stored_as_utc(self, repository, conn):
        local = datetime(2024, 5, 1, 11, 30, tzinfo=timezone(timedelta(hours=2)))
        measurement_id = repository.save(make_measurement(timestamp=local))

        stored = conn.execute(
            "SELECT timestamp FROM tire_measurements WHERE id = ?", (measurement_id,)
        ).fetchone()[0]

        assert stored == "2024-05-01T09:30:00+00:00"
        assert repository.get(measurement_id).timestamp == local


class TestQueries:
    """Reading measurements back."""

    def test_get_missing_raises(self, repository):
        with pytest.raises(MeasurementNotFoundError):
            repository.get(999)

    def test_list_recent_is_newest_first(self, repository):
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        for day in (3, 1, 2):
            repository.save(make_measurement(timestamp=base + timedelta(days=day), notes=f"day {day}"))

        notes = [m.notes for m in repository.list_recent()]

        assert notes == ["day 3", "day 2", "day 1"]

    def test_list_recent_filters_by_position(self, repository):
        repository.save(make_measurement(position=TirePosition.FRONT_LEFT))
        repository.save(make_measurement(position=TirePosition.REAR_RIGHT))
        repository.save(make_measurement(position=TirePosition.REAR_RIGHT))

        rear_right = repository.list_recent(position=TirePosition.REAR_RIGHT)

        assert len(rear_right) == 2
        assert all(m.position == TirePosition.REAR_RIGHT for m in rear_right)

    def test_list_recent_respects_limit_and_loads_frames(self, repository):
        for _ in range(5):
            repository.save(make_measurement())

        recent = repository.list_recent(limit=2)

        assert len(recent) == 2
        assert all(len(m.frames) == 3 for m in recent)

    def test_list_recent_on_empty_database(self, repository):
        assert repository.list_recent() == []


class TestDelete:

    def test_delete_removes_measurement_and_frames(self, repository, conn):
        measurement_id = repository.save(make_measurement())

        assert repository.delete(measurement_id) is True

        with pytest.raises(MeasurementNotFoundError):
            repository.get(measurement_id)
        assert conn.execute("SELECT COUNT(*) FROM frame_images").fetchone()[0] == 0

    def test_delete_missing_returns_false(self, repository):
        assert repository.delete(12345) is False


class TestConnections:
    """Connection factory and the shared in-memory database."""

    def test_ping(self, repository):
        repository.ping()

    def test_file_database_persists_between_connections(self, tmp_path):
        config = DatabaseConfig(path=str(tmp_path / "tires.db"))

        with create_database_connection(config) as conn:
            measurement_id = MeasurementRepository(conn).save(make_measurement())

        with create_database_connection(config) as conn:
            assert MeasurementRepository(conn).get(measurement_id).brand == "Michelin"

    def test_unopenable_path_raises_connection_error(self, tmp_path):
        config = DatabaseConfig(path=str(tmp_path / "missing-dir" / "tires.db"))

        with pytest.raises(DatabaseConnectionError):
            open_connection(config)

    def test_real_mode_requires_config(self):
        with pytest.raises(ValueError):
            with create_database_connection(mock_mode=False):
                pass

    def test_mock_connection_is_shared_until_reset(self):
        reset_mock_connection()
        try:
            with create_database_connection(mock_mode=True) as first:
                MeasurementRepository(first).save(make_measurement())
            with create_database_connection(mock_mode=True) as second:
                assert second is first
                assert len(MeasurementRepository(second).list_recent()) == 1

            reset_mock_connection()
            assert MeasurementRepository(get_mock_connection()).list_recent() == []
        finally:
            reset_mock_connection()
