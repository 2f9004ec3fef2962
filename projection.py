"""
Geodetic to canvas projection.

Latitude is projected with Web Mercator, matching the map the poster is
framed on; longitude is linear. Both axes share one scale so trail shapes are
never stretched.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from constants import (
    DEFAULT_PADDING_RATIO,
    MIN_GEO_EXTENT,
    REGION_EXPAND_FACTOR,
    REGION_MIN_DELTA,
)
from geo import BoundingBox, compute_bounding_box

DEG_TO_RAD = math.pi / 180


@dataclass(frozen=True)
class Region:
    """A map viewport: center plus full latitude/longitude spans in degrees."""
    latitude: float
    longitude: float
    latitude_delta: float
    longitude_delta: float

    @property
    def bounds(self) -> BoundingBox:
        half_lat = self.latitude_delta / 2
        half_lng = self.longitude_delta / 2
        return BoundingBox(
            min_lat=self.latitude - half_lat,
            max_lat=self.latitude + half_lat,
            min_lng=self.longitude - half_lng,
            max_lng=self.longitude + half_lng,
        )

    @classmethod
    def from_bounding_box(cls, bbox: BoundingBox) -> "Region":
        return cls(
            latitude=(bbox.min_lat + bbox.max_lat) / 2,
            longitude=(bbox.min_lng + bbox.max_lng) / 2,
            latitude_delta=bbox.max_lat - bbox.min_lat,
            longitude_delta=bbox.max_lng - bbox.min_lng,
        )


def lat_to_mercator_y(lat: float) -> float:
    return math.log(math.tan(math.pi / 4 + lat * DEG_TO_RAD / 2))


def mercator_y_to_lat(y: float) -> float:
    return (2 * math.atan(math.exp(y)) - math.pi / 2) / DEG_TO_RAD


@dataclass(frozen=True)
class Transform:
    """Fixed mapping from (lat, lng) to canvas pixels.

    Instances are immutable and safe to share across threads. A degenerate
    transform (no bounds available) maps every position to the canvas center.
    """
    canvas_width: float
    canvas_height: float
    scale: float = 0.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    merc_min_x: float = 0.0
    merc_max_y: float = 0.0
    degenerate: bool = False

    def to_canvas(self, lat: float, lng: float) -> Tuple[float, float]:
        if self.degenerate:
            return (self.canvas_width / 2, self.canvas_height / 2)
        x = self.offset_x + (lng * DEG_TO_RAD - self.merc_min_x) * self.scale
        y = self.offset_y + (self.merc_max_y - lat_to_mercator_y(lat)) * self.scale
        return (x, y)

    __call__ = to_canvas

    def project(self, coords: Sequence[Tuple[float, float]]) -> np.ndarray:
        """Vectorized ``to_canvas`` over (lat, lng) pairs; returns an (N, 2) x/y array."""
        arr = np.asarray(coords, dtype=np.float64).reshape(-1, 2)
        if self.degenerate:
            out = np.empty_like(arr)
            out[:, 0] = self.canvas_width / 2
            out[:, 1] = self.canvas_height / 2
            return out
        merc_y = np.log(np.tan(np.pi / 4 + arr[:, 0] * DEG_TO_RAD / 2))
        xs = self.offset_x + (arr[:, 1] * DEG_TO_RAD - self.merc_min_x) * self.scale
        ys = self.offset_y + (self.merc_max_y - merc_y) * self.scale
        return np.column_stack((xs, ys))


def build_transform(
    trails: Sequence,
    canvas_width: float,
    canvas_height: float,
    region: Optional[Region] = None,
    padding_ratio: float = DEFAULT_PADDING_RATIO,
) -> Transform:
    """Build the projection for a poster canvas.

    Args:
        trails: Objects with a ``coordinates`` sequence; used for bounds when
            no region is given
        canvas_width: Canvas width in pixels
        canvas_height: Canvas height in pixels
        region: Explicit viewport; takes precedence over the trails' extent
        padding_ratio: Fraction of each canvas dimension left empty on each side

    Returns:
        Transform centering the bounds in the padded canvas
    """
    if region is not None:
        bounds = region.bounds
    else:
        all_coords = [c for trail in trails for c in trail.coordinates]
        if not all_coords:
            return Transform(canvas_width=canvas_width, canvas_height=canvas_height, degenerate=True)
        bounds = compute_bounding_box(all_coords)

    merc_min_y = lat_to_mercator_y(bounds.min_lat)
    merc_max_y = lat_to_mercator_y(bounds.max_lat)

    pad_x = canvas_width * padding_ratio
    pad_y = canvas_height * padding_ratio
    draw_w = canvas_width - pad_x * 2
    draw_h = canvas_height - pad_y * 2

    # Both extents in Mercator radians so the aspect comparison is meaningful
    merc_min_x = bounds.min_lng * DEG_TO_RAD
    geo_w = (bounds.max_lng - bounds.min_lng) * DEG_TO_RAD or MIN_GEO_EXTENT
    geo_h = (merc_max_y - merc_min_y) or MIN_GEO_EXTENT

    scale = min(draw_w / geo_w, draw_h / geo_h)
    used_w = geo_w * scale
    used_h = geo_h * scale

    return Transform(
        canvas_width=canvas_width,
        canvas_height=canvas_height,
        scale=scale,
        offset_x=pad_x + (draw_w - used_w) / 2,
        offset_y=pad_y + (draw_h - used_h) / 2,
        merc_min_x=merc_min_x,
        merc_max_y=merc_max_y,
    )


def crop_region_to_aspect(region: Region, target_aspect: float) -> Region:
    """Shrink a region to a width/height aspect ratio in Mercator space.

    Only ever crops, so an exported poster shows a subset of what was on
    screen. The cropped axis keeps its center; the other axis is untouched.

    Raises:
        ValueError: If the region has no latitude or longitude extent
    """
    merc_min_y, merc_max_y, merc_x_range = _mercator_extent(region)
    merc_y_range = merc_max_y - merc_min_y
    current_aspect = merc_x_range / merc_y_range

    if current_aspect < target_aspect:
        # More portrait than the target: crop latitude
        new_y_range = merc_x_range / target_aspect
        center_y = (merc_max_y + merc_min_y) / 2
        new_min_lat = mercator_y_to_lat(center_y - new_y_range / 2)
        new_max_lat = mercator_y_to_lat(center_y + new_y_range / 2)
        return Region(
            latitude=(new_min_lat + new_max_lat) / 2,
            longitude=region.longitude,
            latitude_delta=new_max_lat - new_min_lat,
            longitude_delta=region.longitude_delta,
        )

    # Wider than the target: crop longitude
    return Region(
        latitude=region.latitude,
        longitude=region.longitude,
        latitude_delta=region.latitude_delta,
        longitude_delta=merc_y_range * target_aspect / DEG_TO_RAD,
    )


def expand_region_to_aspect(region: Region, target_aspect: float) -> Region:
    """Grow a region's short axis to a width/height aspect ratio in Mercator space.

    The counterpart of ``crop_region_to_aspect`` for regions fitted around
    trails: everything inside the input stays inside the result.

    Raises:
        ValueError: If the region has no latitude or longitude extent
    """
    merc_min_y, merc_max_y, merc_x_range = _mercator_extent(region)
    merc_y_range = merc_max_y - merc_min_y

    if merc_x_range / merc_y_range < target_aspect:
        # Too tall: widen longitude
        return Region(
            latitude=region.latitude,
            longitude=region.longitude,
            latitude_delta=region.latitude_delta,
            longitude_delta=merc_y_range * target_aspect / DEG_TO_RAD,
        )

    # Too wide: extend latitude around the Mercator center
    new_y_range = merc_x_range / target_aspect
    center_y = (merc_max_y + merc_min_y) / 2
    new_min_lat = mercator_y_to_lat(center_y - new_y_range / 2)
    new_max_lat = mercator_y_to_lat(center_y + new_y_range / 2)
    return Region(
        latitude=(new_min_lat + new_max_lat) / 2,
        longitude=region.longitude,
        latitude_delta=new_max_lat - new_min_lat,
        longitude_delta=region.longitude_delta,
    )


def _mercator_extent(region: Region) -> Tuple[float, float, float]:
    """Mercator (min_y, max_y, x_range) of a region with a non-zero extent."""
    if region.latitude_delta <= 0 or region.longitude_delta <= 0:
        raise ValueError(
            f"Region needs a positive extent, got {region.latitude_delta} x {region.longitude_delta} degrees"
        )
    bounds = region.bounds
    return (
        lat_to_mercator_y(bounds.min_lat),
        lat_to_mercator_y(bounds.max_lat),
        region.longitude_delta * DEG_TO_RAD,
    )


def region_for_trails(trails: Sequence, expand: float = REGION_EXPAND_FACTOR) -> Optional[Region]:
    """Frame a set of trails with a margin, for when no viewport is known.

    Returns None if the trails have no coordinates.
    """
    all_coords = [c for trail in trails for c in trail.coordinates]
    if not all_coords:
        return None
    bbox = compute_bounding_box(all_coords)
    return Region(
        latitude=(bbox.min_lat + bbox.max_lat) / 2,
        longitude=(bbox.min_lng + bbox.max_lng) / 2,
        latitude_delta=(bbox.max_lat - bbox.min_lat) * expand or REGION_MIN_DELTA,
        longitude_delta=(bbox.max_lng - bbox.min_lng) * expand or REGION_MIN_DELTA,
    )
