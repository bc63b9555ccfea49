"""
SQLite persistence for tire measurements.
"""

from .client import (
    DatabaseConfig,
    DatabaseConnectionError,
    create_database_connection,
    get_database_connection,
    reset_mock_connection,
)

__all__ = [
    "DatabaseConfig",
    "DatabaseConnectionError",
    "create_database_connection",
    "get_database_connection",
    "reset_mock_connection",
]
