"""
Data models for imported trails.

Pydantic models for trail summaries (metadata + bounding box, no geometry)
and full trails (summary + simplified coordinates).
"""

from datetime import datetime
from enum import IntEnum
from typing import Any, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from constants import MIN_TRAIL_POINTS
from geo import BoundingBox, Coordinate, compute_bounding_box


class ActivityType(IntEnum):
    """Workout activity codes matching the HealthKit enumeration."""
    CYCLING = 13
    HIKING = 24
    RUNNING = 37
    SWIMMING = 46
    WALKING = 52
    OTHER = 3000


class TrailSummary(BaseModel):
    """
    Metadata for one recorded activity, without its coordinates.

    Summaries are cheap to load in bulk and are what the clustering engine
    works on. They are immutable; use ``relabel`` to attach a new location.
    """
    model_config = ConfigDict(frozen=True)

    workout_id: str = Field(min_length=1, description="Unique workout identifier")
    activity_type: int = Field(description="Activity code, see ActivityType")
    start_date: datetime
    end_date: datetime
    duration: float = Field(ge=0, description="Duration in seconds")
    bounding_box: BoundingBox

    # Weather
    temperature: Optional[float] = Field(default=None, description="Temperature in degrees Celsius")
    weather_condition: Optional[int] = None

    # Location labels (resolved externally)
    location_label: Optional[str] = None
    location_country: Optional[str] = None
    location_region: Optional[str] = None
    location_city: Optional[str] = None

    @model_validator(mode="after")
    def _check_dates(self) -> "TrailSummary":
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self

    @property
    def activity_name(self) -> str:
        try:
            return ActivityType(self.activity_type).name.lower()
        except ValueError:
            return "other"

    def relabel(
        self,
        label: Optional[str],
        country: Optional[str] = None,
        region: Optional[str] = None,
        city: Optional[str] = None,
    ):
        """Return a copy with new location labels."""
        return self.model_copy(update={
            "location_label": label,
            "location_country": country,
            "location_region": region,
            "location_city": city,
        })


class Trail(TrailSummary):
    """
    A summary plus its cleaned, simplified coordinates.

    The bounding box is always derived from the coordinates; any box passed
    in is replaced.
    """
    coordinates: List[Coordinate]

    @model_validator(mode="before")
    @classmethod
    def _derive_bounding_box(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "coordinates" not in data:
            return data
        coords = [_to_coordinate(c) for c in data["coordinates"]]
        data = dict(data, coordinates=coords)
        if coords:
            data["bounding_box"] = compute_bounding_box(coords)
        return data

    @field_validator("coordinates")
    @classmethod
    def _check_point_count(cls, value: List[Coordinate]) -> List[Coordinate]:
        if len(value) < MIN_TRAIL_POINTS:
            raise ValueError(f"A trail needs at least {MIN_TRAIL_POINTS} coordinates, got {len(value)}")
        return value

    def summary(self) -> TrailSummary:
        """Drop the geometry."""
        return TrailSummary(**self.model_dump(exclude={"coordinates"}))

    def with_coordinates(self, coordinates: Sequence[Coordinate]) -> "Trail":
        """Return a copy with new geometry and a recomputed bounding box."""
        data = self.model_dump(exclude={"coordinates", "bounding_box"})
        return Trail(**data, coordinates=list(coordinates))


def _to_coordinate(value: Any) -> Any:
    if isinstance(value, Coordinate):
        return value
    if isinstance(value, dict):
        return Coordinate(value["latitude"], value["longitude"])
    if isinstance(value, (tuple, list)) and len(value) >= 2:
        return Coordinate(value[0], value[1])
    # Let pydantic report anything else
    return value
