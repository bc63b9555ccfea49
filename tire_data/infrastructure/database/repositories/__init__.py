"""
Repository pattern implementations for SQLite.

Repositories translate between domain models and database representations.
"""

from .measurements import MeasurementNotFoundError, MeasurementRepository

__all__ = ["MeasurementNotFoundError", "MeasurementRepository"]
