"""
GPS outlier removal for raw tracklogs.

Two deterministic stages:

1. Adaptive forward speed filter. The speed cap is derived from the track's own
   median speed, so a cycling track tolerates faster fixes than a walk while
   teleporting fixes (spoofing, multipath jumps) are still rejected.
2. Iterative median-distance filter. Points unusually far from the track's
   coordinate-wise median are dropped, up to a few passes.

Both stages back off rather than over-filter: if a stage would leave too
little of the track, the earlier result is kept.
"""

import logging
from typing import List, Sequence

import numpy as np

from constants import (
    DEFAULT_MEDIAN_SPEED_KMH,
    DISTANCE_CAP_FLOOR_KM,
    DISTANCE_CAP_MULTIPLIER,
    DISTANCE_FILTER_MAX_PASSES,
    DISTANCE_FILTER_MIN_POINTS,
    MIN_TRAIL_POINTS,
    MS_PER_HOUR,
    OUTLIER_MIN_POINTS,
    SPEED_CAP_FLOOR_KMH,
    SPEED_CAP_MULTIPLIER,
)
from geo import Coordinate, TimedCoordinate, haversine_km, haversine_km_array

logger = logging.getLogger(__name__)


def filter_outliers(coords: Sequence[TimedCoordinate]) -> List[Coordinate]:
    """Remove GPS outliers from a timestamped track.

    Args:
        coords: Raw fixes in recording order

    Returns:
        Surviving positions in their original order, without timestamps
    """
    if len(coords) < OUTLIER_MIN_POINTS:
        return [Coordinate(c.latitude, c.longitude) for c in coords]

    max_speed = speed_cap_kmh(coords)
    kept = _speed_filter(coords, max_speed)

    if len(kept) < MIN_TRAIL_POINTS:
        logger.debug(
            f"Speed filter would leave {len(kept)} of {len(coords)} points "
            f"(cap {max_speed:.1f} km/h), keeping unfiltered track"
        )
        return [Coordinate(c.latitude, c.longitude) for c in coords]

    result = _distance_filter(kept)

    removed = len(coords) - len(result)
    if removed:
        logger.debug(f"Removed {removed} of {len(coords)} GPS points (speed cap {max_speed:.1f} km/h)")
    return result


def speed_cap_kmh(coords: Sequence[TimedCoordinate]) -> float:
    """Maximum plausible speed for this track in km/h."""
    speeds = []
    for prev, cur in zip(coords, coords[1:]):
        elapsed_ms = cur.timestamp - prev.timestamp
        if elapsed_ms > 0:
            speeds.append(haversine_km(prev, cur) / (elapsed_ms / MS_PER_HOUR))

    median_speed = float(np.median(speeds)) if speeds else DEFAULT_MEDIAN_SPEED_KMH
    return max(median_speed * SPEED_CAP_MULTIPLIER, SPEED_CAP_FLOOR_KMH)


def _speed_filter(coords: Sequence[TimedCoordinate], max_speed: float) -> List[Coordinate]:
    """Forward walk accepting only points reachable from the last accepted one."""
    last = coords[0]
    kept = [Coordinate(last.latitude, last.longitude)]

    for cur in coords[1:]:
        elapsed_ms = cur.timestamp - last.timestamp
        if elapsed_ms <= 0:
            continue
        speed = haversine_km(last, cur) / (elapsed_ms / MS_PER_HOUR)
        if speed <= max_speed:
            kept.append(Coordinate(cur.latitude, cur.longitude))
            last = cur

    return kept


def _distance_filter(points: List[Coordinate]) -> List[Coordinate]:
    """Drop points far from the coordinate-wise median, up to a few passes."""
    current = points

    for _ in range(DISTANCE_FILTER_MAX_PASSES):
        if len(current) < DISTANCE_FILTER_MIN_POINTS:
            break

        arr = np.asarray(current, dtype=np.float64)
        median_lat = np.median(arr[:, 0])
        median_lng = np.median(arr[:, 1])
        distances = haversine_km_array(median_lat, median_lng, arr[:, 0], arr[:, 1])
        threshold = max(float(np.median(distances)) * DISTANCE_CAP_MULTIPLIER, DISTANCE_CAP_FLOOR_KM)

        keep = distances <= threshold
        kept_count = int(keep.sum())
        if kept_count == len(current) or kept_count < OUTLIER_MIN_POINTS:
            break

        current = [p for p, k in zip(current, keep) if k]

    return current
