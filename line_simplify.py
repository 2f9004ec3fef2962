"""
Polyline reduction and display smoothing for trail geometry.

``simplify`` is Douglas-Peucker in planar degree space, which is accurate
enough at trail scale (a few km). ``smooth`` is Chaikin corner cutting and is
for previews only; smoothed output must never be stored or re-simplified.
"""

from typing import List, Sequence

from constants import SIMPLIFY_TOLERANCE_DEG
from geo import Coordinate


def simplify(coords: Sequence[Coordinate], tolerance: float = SIMPLIFY_TOLERANCE_DEG) -> List[Coordinate]:
    """Reduce a polyline to the points needed to stay within ``tolerance``.

    Every returned point is one of the input points, first and last included.

    Args:
        coords: Ordered (lat, lon) points
        tolerance: Maximum perpendicular deviation in degrees (~0.00005 = 5 m)

    Returns:
        Simplified list of points
    """
    n = len(coords)
    if n <= 2:
        return list(coords)

    keep = [False] * n
    keep[0] = keep[n - 1] = True

    # Explicit stack instead of recursion: long tracklogs can be tens of
    # thousands of points deep in the worst case.
    stack = [(0, n - 1)]
    while stack:
        first, last = stack.pop()
        if last - first < 2:
            continue

        split, max_dist = _farthest_point(coords, first, last)
        if max_dist > tolerance:
            keep[split] = True
            stack.append((split, last))
            stack.append((first, split))

    return [c for c, k in zip(coords, keep) if k]


def _farthest_point(coords: Sequence[Coordinate], first: int, last: int):
    """Index and distance of the interior point farthest from the chord first-last."""
    y1, x1 = coords[first][0], coords[first][1]
    y2, x2 = coords[last][0], coords[last][1]
    dx = x2 - x1
    dy = y2 - y1
    chord_len_sq = dx * dx + dy * dy

    split = first
    max_dist = -1.0
    for i in range(first + 1, last):
        py, px = coords[i][0], coords[i][1]
        if chord_len_sq == 0.0:
            dist = ((px - x1) ** 2 + (py - y1) ** 2) ** 0.5
        else:
            dist = abs(dy * px - dx * py + x2 * y1 - y2 * x1) / chord_len_sq ** 0.5
        if dist > max_dist:
            max_dist = dist
            split = i
    return split, max_dist


def smooth(coords: Sequence[Coordinate], iterations: int = 1) -> List[Coordinate]:
    """Round sharp corners with Chaikin's algorithm.

    Endpoints stay fixed; each iteration roughly doubles the point count.
    """
    if len(coords) < 3 or iterations <= 0:
        return list(coords)

    points = [Coordinate(c[0], c[1]) for c in coords]
    for _ in range(iterations):
        result = [points[0]]
        for p0, p1 in zip(points, points[1:]):
            result.append(Coordinate(
                0.75 * p0.latitude + 0.25 * p1.latitude,
                0.75 * p0.longitude + 0.25 * p1.longitude,
            ))
            result.append(Coordinate(
                0.25 * p0.latitude + 0.75 * p1.latitude,
                0.25 * p0.longitude + 0.75 * p1.longitude,
            ))
        result.append(points[-1])
        points = result

    return points
