"""
Tire measurement records and reference data.
"""

from .catalog import TIRE_BRANDS, TIRE_MODELS, models_for_brand, resolve_choice
from .models import (
    DamageType,
    FrameReference,
    LightingCondition,
    TireCleanliness,
    TireMeasurement,
    TirePosition,
    TireSize,
    TreadDepths,
    VehicleInfo,
    WeatherCondition,
    WeatherInfo,
)

__all__ = [
    "TIRE_BRANDS",
    "TIRE_MODELS",
    "models_for_brand",
    "resolve_choice",
    "DamageType",
    "FrameReference",
    "LightingCondition",
    "TireCleanliness",
    "TireMeasurement",
    "TirePosition",
    "TireSize",
    "TreadDepths",
    "VehicleInfo",
    "WeatherCondition",
    "WeatherInfo",
]
