"""
SQLite repository for tire measurements.

The repository:
1. Translates between TireMeasurement and database rows
2. Encapsulates all SQL queries
3. Keeps a measurement and its frames in one transaction

The application code never writes SQL directly.
"""

import logging
import sqlite3
from datetime import datetime, timezone
from typing import Optional

from ....core.measurements.models import (
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

logger = logging.getLogger(__name__)


class MeasurementNotFoundError(Exception):
    """Raised when a requested measurement doesn't exist."""
    pass


_COLUMNS = (
    "id",
    "position",
    "left_depth",
    "center_depth",
    "right_depth",
    "brand",
    "model",
    "size",
    "load_index",
    "speed_rating",
    "vehicle_make",
    "vehicle_model",
    "vehicle_year",
    "weather_condition",
    "weather_temperature",
    "tire_cleanliness",
    "lighting_condition",
    "damage_type",
    "damage_description",
    "measurement_device",
    "original_video_url",
    "location",
    "mileage",
    "notes",
    "timestamp",
)

_SELECT_COLUMNS = ", ".join(_COLUMNS)
_INSERT_COLUMNS = ", ".join(_COLUMNS[1:])
_INSERT_PLACEHOLDERS = ", ".join("?" for _ in _COLUMNS[1:])


def _to_iso(value: datetime) -> str:
    # stored in UTC so ORDER BY timestamp sorts chronologically
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _from_iso(value: Optional[str]) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class MeasurementRepository:
    """
    Repository for tire measurement persistence.

    - save: insert a measurement and its frames, returns the new id
    - get: load one measurement with frames in order
    - list_recent: newest first, optionally filtered by position
    - delete: remove a measurement (frames cascade)
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection

    def save(self, measurement: TireMeasurement) -> int:
        """
        Persist a new measurement and its frame URLs.

        Frames are written with their index, so the stored order is the
        sampling order regardless of how the list was built.
        """
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO tire_measurements ({_INSERT_COLUMNS})
                VALUES ({_INSERT_PLACEHOLDERS})
            """, self._row_values(measurement))

            measurement_id = cursor.lastrowid

            cursor.executemany("""
                INSERT INTO frame_images (tire_measurement_id, frame_index, frame_url)
                VALUES (?, ?, ?)
            """, [
                (measurement_id, frame.index, frame.url)
                for frame in measurement.frames
            ])

            self._conn.commit()

        except sqlite3.Error as e:
            self._conn.rollback()
            logger.error(
                "Failed to save measurement",
                extra={"position": measurement.position.value, "error": str(e)}
            )
            raise
        finally:
            cursor.close()

        measurement.id = measurement_id

        logger.info(
            "Saved measurement",
            extra={"measurement_id": measurement_id, "frame_count": len(measurement.frames)}
        )

        return measurement_id

    def get(self, measurement_id: int) -> TireMeasurement:
        """Load a measurement with its frames."""
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {_SELECT_COLUMNS}
                FROM tire_measurements
                WHERE id = ?
            """, (measurement_id,))

            row = cursor.fetchone()
            if not row:
                raise MeasurementNotFoundError(f"Measurement {measurement_id} not found")

            frames = self._load_frames(cursor, [measurement_id])

            return self._build_measurement(row, frames.get(measurement_id, []))

        finally:
            cursor.close()

    def list_recent(
        self,
        limit: int = 50,
        position: Optional[TirePosition] = None,
    ) -> list[TireMeasurement]:
        """List measurements, newest first."""
        cursor = self._conn.cursor()

        try:
            where = "WHERE position = ?" if position else ""
            params: tuple = (position.value, limit) if position else (limit,)

            cursor.execute(f"""
                SELECT {_SELECT_COLUMNS}
                FROM tire_measurements
                {where}
                ORDER BY timestamp DESC, id DESC
                LIMIT ?
            """, params)

            rows = cursor.fetchall()
            if not rows:
                return []

            frames = self._load_frames(cursor, [row[0] for row in rows])

            return [self._build_measurement(row, frames.get(row[0], [])) for row in rows]

        finally:
            cursor.close()

    def delete(self, measurement_id: int) -> bool:
        """Delete a measurement. Returns False if it didn't exist."""
        cursor = self._conn.cursor()

        try:
            cursor.execute("DELETE FROM tire_measurements WHERE id = ?", (measurement_id,))
            deleted = cursor.rowcount > 0
            self._conn.commit()
        finally:
            cursor.close()

        if deleted:
            logger.info("Deleted measurement", extra={"measurement_id": measurement_id})

        return deleted

    def ping(self) -> None:
        """Run a trivial query; raises sqlite3.Error if the database is unusable."""
        self._conn.execute("SELECT 1").fetchone()

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _row_values(self, m: TireMeasurement) -> tuple:
        return (
            m.position.value,
            m.depths.left,
            m.depths.center,
            m.depths.right,
            m.brand,
            m.model,
            m.size,
            m.load_index,
            m.speed_rating,
            m.vehicle.make,
            m.vehicle.model,
            m.vehicle.year,
            m.weather.condition.value,
            m.weather.temperature_celsius,
            m.tire_cleanliness.value,
            m.lighting_condition.value,
            m.damage_type.value,
            m.damage_description,
            m.measurement_device,
            m.original_video_url,
            m.location,
            m.mileage,
            m.notes,
            _to_iso(m.timestamp),
        )

    def _load_frames(
        self,
        cursor: sqlite3.Cursor,
        measurement_ids: list[int],
    ) -> dict[int, list[FrameReference]]:
        placeholders = ", ".join("?" for _ in measurement_ids)
        cursor.execute(f"""
            SELECT tire_measurement_id, frame_index, frame_url
            FROM frame_images
            WHERE tire_measurement_id IN ({placeholders})
            ORDER BY tire_measurement_id, frame_index
        """, tuple(measurement_ids))

        frames: dict[int, list[FrameReference]] = {}
        for measurement_id, frame_index, frame_url in cursor.fetchall():
            frames.setdefault(measurement_id, []).append(
                FrameReference(url=frame_url, index=frame_index)
            )
        return frames

    def _build_measurement(self, row, frames: list[FrameReference]) -> TireMeasurement:
        """Construct a TireMeasurement from a tire_measurements row."""
        data = dict(zip(_COLUMNS, row))

        return TireMeasurement(
            id=data["id"],
            position=TirePosition(data["position"]),
            depths=TreadDepths(
                left=data["left_depth"] or 0.0,
                center=data["center_depth"] or 0.0,
                right=data["right_depth"] or 0.0,
            ),
            brand=data["brand"] or "",
            model=data["model"] or "",
            size=data["size"] or "",
            load_index=data["load_index"] or "",
            speed_rating=data["speed_rating"] or "",
            vehicle=VehicleInfo(
                make=data["vehicle_make"] or "",
                model=data["vehicle_model"] or "",
                year=data["vehicle_year"] or datetime.now(timezone.utc).year,
            ),
            weather=WeatherInfo(
                condition=WeatherCondition(data["weather_condition"] or "Dry"),
                temperature_celsius=(
                    data["weather_temperature"]
                    if data["weather_temperature"] is not None else 20.0
                ),
            ),
            tire_cleanliness=TireCleanliness(data["tire_cleanliness"] or "Clean"),
            lighting_condition=LightingCondition(data["lighting_condition"] or "Good"),
            damage_type=DamageType(data["damage_type"] or "none"),
            damage_description=data["damage_description"] or "",
            measurement_device=data["measurement_device"] or "",
            original_video_url=data["original_video_url"],
            frames=frames,
            location=data["location"],
            mileage=data["mileage"],
            notes=data["notes"] or "",
            timestamp=_from_iso(data["timestamp"]),
        )
