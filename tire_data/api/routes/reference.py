"""
Reference data for capture clients (brand and model picklists).
"""

from fastapi import APIRouter
from pydantic import BaseModel

from ...core.measurements.catalog import OTHER, TIRE_BRANDS, models_for_brand
from ...core.measurements.models import (
    DamageType,
    LightingCondition,
    TireCleanliness,
    TirePosition,
    WeatherCondition,
)
from ..dependencies import AuthenticatedUser

router = APIRouter()


class TireBrand(BaseModel):
    name: str
    models: list[str]


class TireCatalogResponse(BaseModel):
    brands: list[TireBrand]
    other: str = OTHER
    positions: list[str]
    damage_types: list[str]
    weather_conditions: list[str]
    cleanliness_levels: list[str]
    lighting_conditions: list[str]


@router.get(
    "/tires",
    response_model=TireCatalogResponse,
    summary="Tire catalog and form choices",
)
async def tire_catalog(api_key: AuthenticatedUser = None) -> TireCatalogResponse:
    """Known brands with their models, plus the allowed values of each enum field."""
    return TireCatalogResponse(
        brands=[TireBrand(name=brand, models=models_for_brand(brand)) for brand in TIRE_BRANDS],
        positions=[p.value for p in TirePosition],
        damage_types=[d.value for d in DamageType],
        weather_conditions=[w.value for w in WeatherCondition],
        cleanliness_levels=[c.value for c in TireCleanliness],
        lighting_conditions=[light.value for light in LightingCondition],
    )
