"""
Domain models for tire measurement records.

A measurement is what the user fills in after the video has been sampled:
which tire, how deep the tread is across it, what tire and vehicle it is,
and the conditions it was recorded in. Frame URLs are kept in the order
the frames were sampled.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class TirePosition(Enum):
    """Where the tire sits on the vehicle."""
    FRONT_LEFT = "FL"
    FRONT_RIGHT = "FR"
    REAR_LEFT = "RL"
    REAR_RIGHT = "RR"


class DamageType(Enum):
    """Visible damage assessment."""
    NONE = "none"
    SURFACE = "surface"        # cuts, scratches, weather checking
    STRUCTURAL = "structural"  # bulges, impact damage, separation
    WEAR = "wear"              # uneven wear, flat spots


class WeatherCondition(Enum):
    DRY = "Dry"
    WET = "Wet"
    SNOW = "Snow"


class TireCleanliness(Enum):
    CLEAN = "Clean"
    DIRTY = "Dirty"
    VERY_DIRTY = "Very Dirty"


class LightingCondition(Enum):
    GOOD = "Good"
    POOR = "Poor"


_SIZE_PATTERN = re.compile(
    r"^\s*(?P<width>\d{3})\s*/\s*(?P<aspect>\d{2,3})\s*(?P<construction>[RBD])\s*(?P<diameter>\d{2})\s*$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class TireSize:
    """
    Tire size designation, e.g. 225/45R17.

    width in mm, aspect ratio in percent, construction R (radial),
    B (bias belted) or D (diagonal), rim diameter in inches.
    """
    width: int
    aspect_ratio: int
    construction: str
    diameter: int

    @classmethod
    def parse(cls, value: str) -> "TireSize":
        match = _SIZE_PATTERN.match(value or "")
        if not match:
            raise ValueError(f"Invalid tire size: '{value}'. Expected format like 225/45R17")
        return cls(
            width=int(match.group("width")),
            aspect_ratio=int(match.group("aspect")),
            construction=match.group("construction").upper(),
            diameter=int(match.group("diameter")),
        )

    @property
    def formatted(self) -> str:
        return f"{self.width}/{self.aspect_ratio}{self.construction}{self.diameter}"


@dataclass(frozen=True)
class TreadDepths:
    """Tread depth in mm at the left, center and right of the tread."""
    left: float = 0.0
    center: float = 0.0
    right: float = 0.0

    def __post_init__(self) -> None:
        for name, value in (("left", self.left), ("center", self.center), ("right", self.right)):
            if value < 0:
                raise ValueError(f"{name} tread depth cannot be negative")

    @property
    def minimum(self) -> float:
        return min(self.left, self.center, self.right)

    @property
    def average(self) -> float:
        return (self.left + self.center + self.right) / 3


@dataclass(frozen=True)
class VehicleInfo:
    make: str = ""
    model: str = ""
    year: int = field(default_factory=lambda: datetime.now(timezone.utc).year)


@dataclass(frozen=True)
class WeatherInfo:
    condition: WeatherCondition = WeatherCondition.DRY
    temperature_celsius: float = 20.0


@dataclass(frozen=True)
class FrameReference:
    """A stored frame belonging to a measurement, in sampling order."""
    url: str
    index: int = 0


@dataclass
class TireMeasurement:
    """
    One tire measurement record.

    This is the aggregate the repository persists. `id` is None until
    the record has been saved.
    """
    position: TirePosition
    depths: TreadDepths = field(default_factory=TreadDepths)
    brand: str = ""
    model: str = ""
    size: str = ""
    load_index: str = ""
    speed_rating: str = ""
    vehicle: VehicleInfo = field(default_factory=VehicleInfo)
    weather: WeatherInfo = field(default_factory=WeatherInfo)
    tire_cleanliness: TireCleanliness = TireCleanliness.CLEAN
    lighting_condition: LightingCondition = LightingCondition.GOOD
    damage_type: DamageType = DamageType.NONE
    damage_description: str = ""
    measurement_device: str = ""
    original_video_url: Optional[str] = None
    frames: list[FrameReference] = field(default_factory=list)
    location: Optional[str] = None
    mileage: Optional[int] = None
    notes: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: Optional[int] = None

    def __post_init__(self) -> None:
        if self.mileage is not None and self.mileage < 0:
            raise ValueError("Mileage cannot be negative")

    @property
    def frame_urls(self) -> list[str]:
        return [frame.url for frame in sorted(self.frames, key=lambda f: f.index)]

    @property
    def has_damage(self) -> bool:
        return self.damage_type != DamageType.NONE

    @property
    def tire_size(self) -> Optional[TireSize]:
        """Parsed size, or None when no size was recorded."""
        if not self.size:
            return None
        return TireSize.parse(self.size)
