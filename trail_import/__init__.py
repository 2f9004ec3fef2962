"""
Tracklog import and export for trail posters.

Reads GPX tracklogs, cleans them with the outlier filter and simplifier, and
writes cleaned trails back out as GPX 1.1.
"""

from trail_import.gpx_reader import GpxParseError, GpxTrack, read_gpx
from trail_import.gpx_writer import write_gpx
from trail_import.importer import TrailImporter

__all__ = [
    "GpxParseError",
    "GpxTrack",
    "read_gpx",
    "write_gpx",
    "TrailImporter",
]
