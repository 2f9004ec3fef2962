"""
Trail importer for GPX tracklogs.

Coordinates reading tracklogs, cleaning them (outlier filter + simplification)
and turning them into Trail models, plus exporting cleaned trails as GPX.
"""

import glob
import hashlib
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Union

from pydantic import ValidationError

from constants import MIN_TRAIL_POINTS, SIMPLIFY_TOLERANCE_DEG
from geo import as_coordinates
from gps_filter import filter_outliers
from line_simplify import simplify
from models import Trail
from trail_import.gpx_reader import GpxParseError, GpxTrack, read_gpx
from trail_import.gpx_writer import write_gpx

logger = logging.getLogger(__name__)

# Length of the hex digest prefix used as workout id
WORKOUT_ID_LENGTH = 16


def discover_tracklogs(input_paths: Sequence[Union[str, Path]]) -> List[Path]:
    """
    Expand files and directories into a sorted list of GPX files.

    Directories are searched recursively for ``*.gpx`` (any case).

    Raises:
        ValueError: If a path does not exist
    """
    found = []
    for input_path in input_paths:
        input_path = str(input_path)
        if os.path.isfile(input_path):
            found.append(Path(input_path))
        elif os.path.isdir(input_path):
            matches = glob.glob(os.path.join(input_path, "**", "*"), recursive=True)
            found.extend(Path(p) for p in sorted(matches) if p.lower().endswith(".gpx") and os.path.isfile(p))
        else:
            raise ValueError(f"Input path {input_path} not found.")

    # Keep first occurrence when a file is named twice
    unique = {}
    for path in found:
        unique.setdefault(path.resolve(), path)
    return list(unique.values())


def workout_id_for(path: Union[str, Path]) -> str:
    """Stable id derived from a file's absolute path."""
    digest = hashlib.sha256(str(Path(path).resolve()).encode("utf-8")).hexdigest()
    return digest[:WORKOUT_ID_LENGTH]


class TrailImporter:
    """
    Imports GPX tracklogs as cleaned trails.

    Usage:
        importer = TrailImporter(['./tracklogs'])
        trails = importer.import_all()
        importer.export_gpx('./cleaned')
    """

    def __init__(
        self,
        paths: Sequence[Union[str, Path]],
        use_gps_filter: bool = True,
        tolerance: float = SIMPLIFY_TOLERANCE_DEG,
    ):
        """
        Initialize importer with input paths.

        Args:
            paths: GPX files and/or directories containing GPX files
            use_gps_filter: Run the outlier filter before simplification
            tolerance: Douglas-Peucker tolerance in degrees
        """
        self.files = discover_tracklogs(paths)
        self.use_gps_filter = use_gps_filter
        self.tolerance = tolerance
        self.skipped: List[Path] = []
        self._trails: Optional[List[Trail]] = None

    def import_all(self, progress_callback=None) -> List[Trail]:
        """
        Read and clean every tracklog.

        Unreadable files and tracks with fewer than two usable points are
        logged and skipped.

        Args:
            progress_callback: Optional callable(file_index, total_files) for progress

        Returns:
            Trails in file order
        """
        trails = []
        self.skipped = []

        for file_idx, path in enumerate(self.files):
            if progress_callback:
                progress_callback(file_idx, len(self.files))

            try:
                track = read_gpx(path)
            except (GpxParseError, OSError) as e:
                logger.warning(f"Skipping {path}: {e}")
                self.skipped.append(path)
                continue

            trail = self.build_trail(track, workout_id_for(path))
            if trail is None:
                logger.warning(f"Skipping {path}: fewer than {MIN_TRAIL_POINTS} usable GPS points")
                self.skipped.append(path)
                continue
            trails.append(trail)

        if progress_callback:
            progress_callback(len(self.files), len(self.files))

        self._trails = trails
        point_count = sum(len(t.coordinates) for t in trails)
        logger.info(f"Imported {len(trails)} trails ({point_count:,} points) from {len(self.files)} files")
        return trails

    def build_trail(self, track: GpxTrack, workout_id: str) -> Optional[Trail]:
        """
        Clean one track's fixes and wrap them in a Trail.

        Returns:
            Trail, or None if fewer than two points survive cleaning
        """
        if len(track.fixes) < MIN_TRAIL_POINTS:
            return None

        if self.use_gps_filter:
            coords = filter_outliers(track.fixes)
        else:
            coords = as_coordinates(track.fixes)
        coords = simplify(coords, self.tolerance)
        if len(coords) < MIN_TRAIL_POINTS:
            return None

        start = track.start_time or datetime(1970, 1, 1, tzinfo=timezone.utc)
        end = track.end_time or start
        try:
            return Trail(
                workout_id=workout_id,
                activity_type=track.activity_type,
                start_date=start,
                end_date=max(start, end),
                duration=track.duration_seconds,
                coordinates=coords,
            )
        except ValidationError as e:
            logger.debug(f"Rejected track '{track.name}': {e}")
            return None

    @property
    def trails(self) -> List[Trail]:
        """Get the imported trails, importing if not already done."""
        if self._trails is None:
            self.import_all()
        return self._trails

    def export_gpx(self, output_dir: Union[str, Path]) -> List[str]:
        """
        Export every cleaned trail as ``<workout_id>.gpx``.

        Args:
            output_dir: Directory to write into (created if missing)

        Returns:
            Paths of the created files
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        created = []
        for trail in self.trails:
            output_path = output_dir / f"{trail.workout_id}.gpx"
            with open(output_path, 'w', encoding='utf-8') as f:
                write_gpx(trail, f)
            created.append(str(output_path))

        logger.info(f"Exported {len(created)} GPX files to {output_dir}")
        return created
