"""
SQLite database connection management.

Provides the connection factory, schema setup and a shared in-memory
connection for mock mode.

Most code never touches this module directly - it goes through
MeasurementRepository which handles the translation between domain
models and database rows.
"""

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator, Optional

logger = logging.getLogger(__name__)


# Frames live in their own table with an explicit frame_index, so order
# never depends on insertion order or on parsing a JSON column.
SCHEMA = """
CREATE TABLE IF NOT EXISTS tire_measurements (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    position TEXT NOT NULL,
    left_depth REAL NOT NULL DEFAULT 0,
    center_depth REAL NOT NULL DEFAULT 0,
    right_depth REAL NOT NULL DEFAULT 0,
    brand TEXT NOT NULL DEFAULT '',
    model TEXT NOT NULL DEFAULT '',
    size TEXT NOT NULL DEFAULT '',
    load_index TEXT,
    speed_rating TEXT,
    vehicle_make TEXT,
    vehicle_model TEXT,
    vehicle_year INTEGER,
    weather_condition TEXT,
    weather_temperature REAL,
    tire_cleanliness TEXT,
    lighting_condition TEXT,
    damage_type TEXT NOT NULL DEFAULT 'none',
    damage_description TEXT,
    measurement_device TEXT,
    original_video_url TEXT,
    location TEXT,
    mileage INTEGER,
    notes TEXT,
    timestamp TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS frame_images (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    tire_measurement_id INTEGER NOT NULL,
    frame_index INTEGER NOT NULL,
    frame_url TEXT NOT NULL,
    FOREIGN KEY (tire_measurement_id) REFERENCES tire_measurements(id) ON DELETE CASCADE,
    UNIQUE (tire_measurement_id, frame_index)
);

CREATE INDEX IF NOT EXISTS idx_frame_images_measurement
    ON frame_images (tire_measurement_id);
"""


class DatabaseConnectionError(Exception):
    """Raised when the database can't be opened or initialized."""
    pass


@dataclass
class DatabaseConfig:
    """Configuration for the SQLite database."""
    path: str = "tire-data.db"
    busy_timeout_ms: int = 5000


def _configure(conn: sqlite3.Connection, busy_timeout_ms: int) -> None:
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
    conn.executescript(SCHEMA)
    conn.commit()


def open_connection(config: DatabaseConfig) -> sqlite3.Connection:
    """
    Open and initialize a connection.

    check_same_thread is off because FastAPI may create the connection in
    its thread pool and use it from the event loop thread; a connection
    is still only used by one request at a time.
    """
    try:
        conn = sqlite3.connect(
            config.path,
            timeout=config.busy_timeout_ms / 1000,
            check_same_thread=False,
        )
        _configure(conn, config.busy_timeout_ms)
    except sqlite3.Error as e:
        logger.error(
            "Database connection failed",
            extra={"path": config.path, "error": str(e)}
        )
        raise DatabaseConnectionError(f"Database connection failed: {e}") from e

    logger.debug("Opened database connection", extra={"path": config.path})
    return conn


@contextmanager
def get_database_connection(config: DatabaseConfig) -> Generator[sqlite3.Connection, None, None]:
    """
    Provide a database connection with automatic cleanup.

    Usage:
        with get_database_connection(config) as conn:
            repo = MeasurementRepository(conn)
    """
    conn = open_connection(config)
    try:
        yield conn
    finally:
        try:
            conn.close()
            logger.debug("Closed database connection")
        except sqlite3.Error as e:
            logger.warning(
                "Error closing database connection",
                extra={"error": str(e)}
            )


# ---------------------------------------------------------------------------
# Shared In-Memory Connection for Local Development
# ---------------------------------------------------------------------------

_mock_connection: Optional[sqlite3.Connection] = None


def get_mock_connection() -> sqlite3.Connection:
    """
    Shared in-memory database.

    Reused across requests so data persists for the life of the process.
    """
    global _mock_connection

    if _mock_connection is None:
        _mock_connection = open_connection(DatabaseConfig(path=":memory:"))
        logger.info("Created shared in-memory database")

    return _mock_connection


def reset_mock_connection() -> None:
    """Drop the shared in-memory database (for test cleanup)."""
    global _mock_connection

    if _mock_connection is not None:
        _mock_connection.close()
        _mock_connection = None


@contextmanager
def create_database_connection(
    config: Optional[DatabaseConfig] = None,
    mock_mode: bool = False,
) -> Generator[sqlite3.Connection, None, None]:
    """
    Create a database connection based on configuration.

    Args:
        config: Database configuration (required if not mock_mode)
        mock_mode: If True, use the shared in-memory database

    Yields:
        sqlite3.Connection
    """
    if mock_mode:
        yield get_mock_connection()
    else:
        if config is None:
            raise ValueError("config is required when not in mock mode")

        with get_database_connection(config) as conn:
            yield conn
