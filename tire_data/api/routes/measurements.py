"""
Tire measurement API endpoints.

A measurement is saved after the video has been ingested: the client
sends the form fields together with the video URL, the device hint and
the frame URLs in sampling order.

Request and response bodies use camelCase (leftRegionDepth, vehicle.make,
originalVideoUrl, ...) to match the capture form; snake_case field
names are accepted too.
"""

import logging
from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ...core.measurements.catalog import OTHER, resolve_choice
from ...core.measurements.models import (
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
from ...infrastructure.database.repositories.measurements import MeasurementNotFoundError
from ..dependencies import AuthenticatedUser, MeasurementRepositoryDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class VehiclePayload(CamelModel):
    make: str = ""
    model: str = ""
    year: Optional[int] = Field(None, ge=1900, le=2100)


class WeatherPayload(CamelModel):
    condition: WeatherCondition = WeatherCondition.DRY
    temperature: float = 20.0


class FramePayload(CamelModel):
    url: str = Field(min_length=1)


class MeasurementCreate(CamelModel):
    """Body of POST /measurements."""
    position: TirePosition
    left_region_depth: float = Field(0.0, ge=0)
    center_region_depth: float = Field(0.0, ge=0)
    right_region_depth: float = Field(0.0, ge=0)

    brand: str = ""
    custom_brand: Optional[str] = None
    model: str = ""
    custom_model: Optional[str] = None
    size: str = ""
    load_index: str = ""
    speed_rating: str = ""

    vehicle: VehiclePayload = Field(default_factory=VehiclePayload)
    weather: WeatherPayload = Field(default_factory=WeatherPayload)
    tire_cleanliness: TireCleanliness = TireCleanliness.CLEAN
    lighting_condition: LightingCondition = LightingCondition.GOOD

    damage_type: DamageType = DamageType.NONE
    damage_description: str = ""

    measurement_device: str = ""
    timestamp: Optional[datetime] = None
    location: Optional[str] = None
    mileage: Optional[int] = Field(None, ge=0)
    notes: str = ""

    original_video_url: Optional[str] = None
    frames: list[FramePayload] = Field(
        default_factory=list,
        description="Frame URLs in sampling order",
    )

    @field_validator("size")
    @classmethod
    def size_must_parse(cls, value: str) -> str:
        if not value.strip():
            return ""
        return TireSize.parse(value).formatted

    def to_measurement(self) -> TireMeasurement:
        brand = resolve_choice(self.brand, self.custom_brand)
        model = resolve_choice(self.model, self.custom_model)
        if self.brand == OTHER and not brand:
            raise ValueError("customBrand is required when brand is 'other'")
        if self.model == OTHER and not model:
            raise ValueError("customModel is required when model is 'other'")

        vehicle = self.vehicle.model_dump(exclude_none=True)

        measurement = TireMeasurement(
            position=self.position,
            depths=TreadDepths(
                left=self.left_region_depth,
                center=self.center_region_depth,
                right=self.right_region_depth,
            ),
            brand=brand,
            model=model,
            size=self.size,
            load_index=self.load_index,
            speed_rating=self.speed_rating,
            vehicle=VehicleInfo(**vehicle),
            weather=WeatherInfo(
                condition=self.weather.condition,
                temperature_celsius=self.weather.temperature,
            ),
            tire_cleanliness=self.tire_cleanliness,
            lighting_condition=self.lighting_condition,
            damage_type=self.damage_type,
            damage_description=self.damage_description,
            measurement_device=self.measurement_device,
            original_video_url=self.original_video_url,
            frames=[
                FrameReference(url=frame.url, index=index)
                for index, frame in enumerate(self.frames)
            ],
            location=self.location,
            mileage=self.mileage,
            notes=self.notes,
        )
        if self.timestamp is not None:
            measurement.timestamp = self.timestamp
        return measurement


class MeasurementCreatedResponse(BaseModel):
    status: str = "success"
    message: str = "Measurement saved successfully"
    id: int


class MeasurementResponse(CamelModel):
    """A stored measurement."""
    id: int
    position: str
    left_region_depth: float
    center_region_depth: float
    right_region_depth: float
    min_depth: float
    brand: str
    model: str
    size: str
    load_index: str
    speed_rating: str
    vehicle: VehiclePayload
    weather: WeatherPayload
    tire_cleanliness: str
    lighting_condition: str
    damage_type: str
    damage_description: str
    measurement_device: str
    timestamp: str
    location: Optional[str] = None
    mileage: Optional[int] = None
    notes: str = ""
    original_video_url: Optional[str] = None
    frame_urls: list[str]

    @classmethod
    def from_measurement(cls, m: TireMeasurement) -> "MeasurementResponse":
        return cls(
            id=m.id,
            position=m.position.value,
            left_region_depth=m.depths.left,
            center_region_depth=m.depths.center,
            right_region_depth=m.depths.right,
            min_depth=m.depths.minimum,
            brand=m.brand,
            model=m.model,
            size=m.size,
            load_index=m.load_index,
            speed_rating=m.speed_rating,
            vehicle=VehiclePayload(make=m.vehicle.make, model=m.vehicle.model, year=m.vehicle.year),
            weather=WeatherPayload(
                condition=m.weather.condition,
                temperature=m.weather.temperature_celsius,
            ),
            tire_cleanliness=m.tire_cleanliness.value,
            lighting_condition=m.lighting_condition.value,
            damage_type=m.damage_type.value,
            damage_description=m.damage_description,
            measurement_device=m.measurement_device,
            timestamp=m.timestamp.isoformat(),
            location=m.location,
            mileage=m.mileage,
            notes=m.notes,
            original_video_url=m.original_video_url,
            frame_urls=m.frame_urls,
        )


class MeasurementListResponse(BaseModel):
    status: str = "success"
    data: list[MeasurementResponse]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=MeasurementCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Save a tire measurement",
)
async def create_measurement(
    request: MeasurementCreate,
    api_key: AuthenticatedUser = None,
    repository: MeasurementRepositoryDep = None,
) -> MeasurementCreatedResponse:
    """
    Persist a measurement with its video and frame URLs.

    Frames are stored with their position in `frames`, which must be the
    order they were sampled in.
    """
    try:
        measurement = request.to_measurement()
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    measurement_id = repository.save(measurement)

    logger.info(
        "Measurement created",
        extra={
            "measurement_id": measurement_id,
            "position": measurement.position.value,
            "frame_count": len(measurement.frames),
        }
    )

    return MeasurementCreatedResponse(id=measurement_id)


@router.get(
    "",
    response_model=MeasurementListResponse,
    response_model_by_alias=True,
    summary="List measurements",
    description="Newest first, optionally filtered by tire position",
)
async def list_measurements(
    position: Annotated[Optional[TirePosition], Query()] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
    api_key: AuthenticatedUser = None,
    repository: MeasurementRepositoryDep = None,
) -> MeasurementListResponse:
    measurements = repository.list_recent(limit=limit, position=position)
    return MeasurementListResponse(
        data=[MeasurementResponse.from_measurement(m) for m in measurements]
    )


@router.get(
    "/{measurement_id}",
    response_model=MeasurementResponse,
    response_model_by_alias=True,
    summary="Get a measurement",
)
async def get_measurement(
    measurement_id: int,
    api_key: AuthenticatedUser = None,
    repository: MeasurementRepositoryDep = None,
) -> MeasurementResponse:
    try:
        measurement = repository.get(measurement_id)
    except MeasurementNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Measurement not found",
        )

    return MeasurementResponse.from_measurement(measurement)


@router.delete(
    "/{measurement_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a measurement",
)
async def delete_measurement(
    measurement_id: int,
    api_key: AuthenticatedUser = None,
    repository: MeasurementRepositoryDep = None,
) -> None:
    if not repository.delete(measurement_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Measurement not found",
        )
