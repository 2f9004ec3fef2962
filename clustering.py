"""
Geographic clustering of trails into areas.

Two levels:

- ``cluster_trails`` groups trails whose bounding-box centers are close
  (union-find, transitive: a chain of nearby runs becomes one area).
- ``group_clusters_by_proximity`` groups clusters around the largest ones
  without transitivity, so a string of neighbourhoods along a coast does not
  collapse into one giant group.

Clusters and groups are transient views: they hold references to the caller's
summaries and are recomputed per query.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Collection, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from constants import (
    CLUSTER_MAX_DISTANCE_KM,
    COARSE_TOLERANCE_DEG,
    GROUP_MAX_DISTANCE_KM,
    MAX_RENDERED_TRAILS,
    RESIMPLIFY_THRESHOLD,
)
from geo import BoundingBox, Coordinate, haversine_km, haversine_km_array, union_bounding_boxes
from line_simplify import simplify
from models import Trail, TrailSummary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrailCluster:
    """Trails sharing a small geographic area.

    Attributes:
        id: workout_id of the first member (in input order)
        summaries: Member summaries, in input order
        bounding_box: Union of the members' boxes
    """
    id: str
    summaries: Tuple[TrailSummary, ...]
    bounding_box: BoundingBox

    @property
    def trail_ids(self) -> List[str]:
        return [s.workout_id for s in self.summaries]

    @property
    def member_count(self) -> int:
        return len(self.summaries)

    @property
    def center(self) -> Coordinate:
        return self.bounding_box.center


@dataclass(frozen=True)
class ClusterGroup:
    """Clusters gathered around a seed cluster.

    Attributes:
        id: id of the seed cluster
        clusters: Seed first, then members in descending size
        bounding_box: Union of the clusters' boxes
    """
    id: str
    clusters: Tuple[TrailCluster, ...]
    bounding_box: BoundingBox

    @property
    def seed(self) -> TrailCluster:
        return self.clusters[0]

    @property
    def trail_ids(self) -> List[str]:
        return [tid for cluster in self.clusters for tid in cluster.trail_ids]

    @property
    def member_count(self) -> int:
        return sum(c.member_count for c in self.clusters)


class _DisjointSet:
    """Union-find over integer indices with path compression."""

    def __init__(self, size: int):
        self.parent = list(range(size))

    def find(self, x: int) -> int:
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, a: int, b: int) -> None:
        root_a, root_b = self.find(a), self.find(b)
        if root_a != root_b:
            self.parent[root_a] = root_b


def filter_summaries(
    summaries: Sequence[TrailSummary],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    activity_types: Optional[Collection[int]] = None,
) -> List[TrailSummary]:
    """Narrow summaries to a start-date range and a set of activity types.

    Args:
        summaries: Candidate trails
        start: Earliest accepted ``start_date`` (inclusive); None for no bound
        end: Latest accepted ``start_date`` (inclusive); None for no bound
        activity_types: Accepted activity codes; None or empty accepts all

    Returns:
        Matching summaries in input order
    """
    kept = [
        s for s in summaries
        if (start is None or s.start_date >= start)
        and (end is None or s.start_date <= end)
        and (not activity_types or s.activity_type in activity_types)
    ]
    logger.debug(f"Date/activity filter kept {len(kept)} of {len(summaries)} trails")
    return kept


def cluster_trails(
    summaries: Sequence[TrailSummary],
    max_distance_km: float = CLUSTER_MAX_DISTANCE_KM,
) -> List[TrailCluster]:
    """Group trails whose bounding-box centers are within ``max_distance_km``.

    Membership is transitive: if A is near B and B is near C, all three share
    a cluster even when A and C are far apart.

    This compares every pair of centers, O(n^2) in time. Each row is a single
    numpy call, which keeps a few thousand summaries interactive; beyond that
    a spatial index should replace the pairwise loop (membership must stay
    identical).

    Args:
        summaries: Trails to cluster (coordinates are not needed)
        max_distance_km: Center-to-center distance for a direct link

    Returns:
        Clusters by descending member count; equal counts keep the order in
        which their first member appears in ``summaries``
    """
    n = len(summaries)
    if n == 0:
        return []

    centers = np.array([s.bounding_box.center for s in summaries], dtype=np.float64)
    sets = _DisjointSet(n)

    for i in range(n - 1):
        distances = haversine_km_array(centers[i, 0], centers[i, 1], centers[i + 1:, 0], centers[i + 1:, 1])
        for offset in np.nonzero(distances <= max_distance_km)[0]:
            sets.union(i, i + 1 + int(offset))

    # dicts keep insertion order, so roots appear in first-member order
    members: Dict[int, List[TrailSummary]] = {}
    for i, summary in enumerate(summaries):
        members.setdefault(sets.find(i), []).append(summary)

    clusters = [
        TrailCluster(
            id=group[0].workout_id,
            summaries=tuple(group),
            bounding_box=union_bounding_boxes(s.bounding_box for s in group),
        )
        for group in members.values()
    ]
    # sort is stable, so ties keep first-appearance order
    clusters.sort(key=lambda c: c.member_count, reverse=True)

    logger.debug(f"Clustered {n} trails into {len(clusters)} areas (max {max_distance_km} km)")
    return clusters


def group_clusters_by_proximity(
    clusters: Sequence[TrailCluster],
    max_dist_km: float = GROUP_MAX_DISTANCE_KM,
) -> List[ClusterGroup]:
    """Gather clusters around the largest ones.

    The largest ungrouped cluster becomes a seed, and every other ungrouped
    cluster within ``max_dist_km`` of the seed's center joins it. Distance is
    always measured to the seed, never between members, so groups cannot
    chain: with A-B and B-C each 10 km apart and a 15 km limit, a group seeded
    at A takes B but not C. This is intentional; union-find would merge all
    three.

    Returns:
        Groups in seed order (largest seed first)
    """
    ordered = sorted(clusters, key=lambda c: c.member_count, reverse=True)
    assigned = [False] * len(ordered)
    groups: List[ClusterGroup] = []

    for seed_idx, seed in enumerate(ordered):
        if assigned[seed_idx]:
            continue
        assigned[seed_idx] = True
        seed_center = seed.center
        members = [seed]

        for idx in range(seed_idx + 1, len(ordered)):
            if assigned[idx]:
                continue
            candidate = ordered[idx]
            if haversine_km(seed_center, candidate.center) <= max_dist_km:
                assigned[idx] = True
                members.append(candidate)

        groups.append(ClusterGroup(
            id=seed.id,
            clusters=tuple(members),
            bounding_box=union_bounding_boxes(c.bounding_box for c in members),
        ))

    return groups


def select_cluster_trails(
    cluster: TrailCluster,
    trails_by_id: Mapping[str, Trail],
    max_trails: int = MAX_RENDERED_TRAILS,
) -> List[Trail]:
    """Resolve a cluster's members to full trails ready for rendering.

    Caps the number of trails, and re-simplifies with a coarser tolerance when
    many trails are stacked (individual detail is invisible at that density).

    Args:
        cluster: Cluster whose members should be drawn
        trails_by_id: Geometry source keyed by workout_id
        max_trails: Upper bound on returned trails

    Returns:
        Trails in cluster order; ids without geometry are skipped
    """
    trails = []
    for trail_id in cluster.trail_ids[:max_trails]:
        trail = trails_by_id.get(trail_id)
        if trail is None:
            logger.warning(f"No geometry for trail {trail_id}, skipping")
            continue
        trails.append(trail)

    if len(trails) > RESIMPLIFY_THRESHOLD:
        trails = [t.with_coordinates(simplify(t.coordinates, COARSE_TOLERANCE_DEG)) for t in trails]

    return trails
