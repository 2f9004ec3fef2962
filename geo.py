"""
Geographic primitives for trail geometry.

Coordinates are plain (latitude, longitude) tuples in WGS84 degrees, so they
can be passed anywhere the rest of the pipeline expects a (lat, lon) pair.
"""

import math
from dataclasses import dataclass
from typing import Iterable, NamedTuple, Sequence, Tuple, Union

import numpy as np

from constants import EARTH_RADIUS_KM


class Coordinate(NamedTuple):
    """A WGS84 position in degrees."""
    latitude: float
    longitude: float


class TimedCoordinate(NamedTuple):
    """A raw GPS fix: position plus a millisecond timestamp."""
    latitude: float
    longitude: float
    timestamp: int

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned latitude/longitude box.

    Attributes:
        min_lat: Southern edge in degrees
        max_lat: Northern edge in degrees
        min_lng: Western edge in degrees
        max_lng: Eastern edge in degrees
    """
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def __post_init__(self):
        if self.min_lat > self.max_lat or self.min_lng > self.max_lng:
            raise ValueError(
                f"Inverted bounding box: lat [{self.min_lat}, {self.max_lat}], "
                f"lng [{self.min_lng}, {self.max_lng}]"
            )

    @property
    def center(self) -> Coordinate:
        return bbox_center(self)

    @property
    def corners(self) -> Tuple[Coordinate, Coordinate]:
        """South-west and north-east corners."""
        return (
            Coordinate(self.min_lat, self.min_lng),
            Coordinate(self.max_lat, self.max_lng),
        )

    def union(self, other: "BoundingBox") -> "BoundingBox":
        return BoundingBox(
            min_lat=min(self.min_lat, other.min_lat),
            max_lat=max(self.max_lat, other.max_lat),
            min_lng=min(self.min_lng, other.min_lng),
            max_lng=max(self.max_lng, other.max_lng),
        )

    def contains(self, other: "BoundingBox") -> bool:
        """True if ``other`` lies entirely inside this box (edges included)."""
        return (
            self.min_lat <= other.min_lat
            and other.max_lat <= self.max_lat
            and self.min_lng <= other.min_lng
            and other.max_lng <= self.max_lng
        )


LatLon = Union[Coordinate, TimedCoordinate, Tuple[float, float]]


def compute_bounding_box(coords: Iterable[LatLon]) -> BoundingBox:
    """Return the tightest box around ``coords``.

    Raises:
        ValueError: If ``coords`` is empty
    """
    min_lat = min_lng = math.inf
    max_lat = max_lng = -math.inf
    count = 0
    for coord in coords:
        lat, lng = coord[0], coord[1]
        if lat < min_lat:
            min_lat = lat
        if lat > max_lat:
            max_lat = lat
        if lng < min_lng:
            min_lng = lng
        if lng > max_lng:
            max_lng = lng
        count += 1

    if count == 0:
        raise ValueError("Cannot compute a bounding box for an empty coordinate sequence")
    return BoundingBox(min_lat=min_lat, max_lat=max_lat, min_lng=min_lng, max_lng=max_lng)


def union_bounding_boxes(boxes: Iterable[BoundingBox]) -> BoundingBox:
    """Union of one or more boxes."""
    result = None
    for box in boxes:
        result = box if result is None else result.union(box)
    if result is None:
        raise ValueError("Cannot union an empty collection of bounding boxes")
    return result


def bbox_center(bbox: BoundingBox) -> Coordinate:
    return Coordinate(
        (bbox.min_lat + bbox.max_lat) / 2,
        (bbox.min_lng + bbox.max_lng) / 2,
    )


def haversine_km(a: LatLon, b: LatLon) -> float:
    """Great-circle distance between two positions in kilometers."""
    lat1, lng1 = math.radians(a[0]), math.radians(a[1])
    lat2, lng2 = math.radians(b[0]), math.radians(b[1])
    dlat = lat2 - lat1
    dlng = lng2 - lng1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def haversine_km_array(lat1, lng1, lat2, lng2) -> np.ndarray:
    """Vectorized haversine over numpy arrays (degrees in, kilometers out).

    Arguments broadcast against each other, so a scalar origin can be compared
    against an array of destinations.
    """
    lat1 = np.radians(lat1)
    lat2 = np.radians(lat2)
    dlat = lat2 - lat1
    dlng = np.radians(lng2) - np.radians(lng1)
    h = np.sin(dlat / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin(dlng / 2) ** 2
    h = np.clip(h, 0.0, 1.0)
    return EARTH_RADIUS_KM * 2 * np.arctan2(np.sqrt(h), np.sqrt(1 - h))


def as_coordinates(points: Sequence[LatLon]) -> list:
    """Strip timestamps (or any extra fields) and return plain Coordinates."""
    return [Coordinate(p[0], p[1]) for p in points]
