"""
GPX 1.0 / 1.1 tracklog reader.

Extracts timestamped fixes from track points (``trkpt``), falling back to
route points (``rtept``) for files that only contain a planned route.
Namespaces are ignored so both schema versions and vendor exports parse the
same way.
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, List, Optional, Union

from geo import TimedCoordinate
from models import ActivityType

logger = logging.getLogger(__name__)

# Fixes spaced this far apart when a file has no <time> elements
SYNTHETIC_FIX_INTERVAL_MS = 1000

# Substrings of GPX <type> values, checked in order
_ACTIVITY_KEYWORDS = (
    ("hik", ActivityType.HIKING),
    ("walk", ActivityType.WALKING),
    ("run", ActivityType.RUNNING),
    ("cycl", ActivityType.CYCLING),
    ("bik", ActivityType.CYCLING),
    ("ride", ActivityType.CYCLING),
    ("swim", ActivityType.SWIMMING),
)


class GpxParseError(ValueError):
    """Raised when a file is not readable GPX."""


@dataclass
class GpxTrack:
    """Raw fixes read from one GPX file."""
    name: str
    fixes: List[TimedCoordinate] = field(default_factory=list)
    activity_type: int = ActivityType.OTHER

    @property
    def start_time(self) -> Optional[datetime]:
        if not self.fixes:
            return None
        return datetime.fromtimestamp(self.fixes[0].timestamp / 1000, tz=timezone.utc)

    @property
    def end_time(self) -> Optional[datetime]:
        if not self.fixes:
            return None
        return datetime.fromtimestamp(self.fixes[-1].timestamp / 1000, tz=timezone.utc)

    @property
    def duration_seconds(self) -> float:
        if len(self.fixes) < 2:
            return 0.0
        return max(0, self.fixes[-1].timestamp - self.fixes[0].timestamp) / 1000


def parse_gpx_time(text: Optional[str]) -> Optional[datetime]:
    """
    Parse a GPX ISO 8601 timestamp.

    Args:
        text: Like '2024-05-01T07:12:45Z' or '2024-05-01T07:12:45.250+02:00'

    Returns:
        Timezone-aware datetime (naive values are taken as UTC), or None if
        the text is missing or malformed
    """
    if not text:
        return None
    value = text.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def activity_from_gpx_type(value: Optional[str]) -> int:
    """Map a free-form GPX <type> value ('running', 'Hike', ...) to an activity code."""
    if not value:
        return ActivityType.OTHER
    lowered = value.lower()
    for keyword, activity in _ACTIVITY_KEYWORDS:
        if keyword in lowered:
            return activity
    return ActivityType.OTHER


def read_gpx(source: Union[str, Path, IO]) -> GpxTrack:
    """
    Read a GPX file into raw timestamped fixes.

    Points at (0, 0) are dropped as invalid fixes. Points without a <time>
    are spaced one second after the previous fix so the outlier filter still
    sees a monotonic track.

    Args:
        source: File path or binary file object

    Returns:
        GpxTrack with fixes in file order

    Raises:
        GpxParseError: Malformed XML, a non-GPX root, or bad coordinates
    """
    label = str(source) if isinstance(source, (str, Path)) else getattr(source, "name", "<stream>")
    try:
        root = ET.parse(source).getroot()
    except ET.ParseError as e:
        raise GpxParseError(f"{label}: invalid XML ({e})") from e

    if _local_name(root.tag) != "gpx":
        raise GpxParseError(f"{label}: root element is <{_local_name(root.tag)}>, expected <gpx>")

    points = [el for el in root.iter() if _local_name(el.tag) == "trkpt"]
    if not points:
        points = [el for el in root.iter() if _local_name(el.tag) == "rtept"]

    fixes: List[TimedCoordinate] = []
    last_ts: Optional[int] = None
    for point in points:
        try:
            lat = float(point.attrib["lat"])
            lon = float(point.attrib["lon"])
        except (KeyError, ValueError) as e:
            raise GpxParseError(f"{label}: point without valid lat/lon ({e})") from e

        # Skip null island (invalid GPS)
        if abs(lat) < 0.001 and abs(lon) < 0.001:
            continue

        dt = parse_gpx_time(_child_text(point, "time"))
        if dt is not None:
            ts = int(round(dt.timestamp() * 1000))
        else:
            ts = 0 if last_ts is None else last_ts + SYNTHETIC_FIX_INTERVAL_MS
        fixes.append(TimedCoordinate(lat, lon, ts))
        last_ts = ts

    track_el = next((el for el in root if _local_name(el.tag) == "trk"), None)
    metadata_el = next((el for el in root if _local_name(el.tag) == "metadata"), None)

    name = None
    gpx_type = None
    if track_el is not None:
        name = _child_text(track_el, "name")
        gpx_type = _child_text(track_el, "type")
    if not name and metadata_el is not None:
        name = _child_text(metadata_el, "name")
    if not name:
        name = Path(label).stem

    logger.debug(f"Read {len(fixes)} fixes from {label}")
    return GpxTrack(name=name, fixes=fixes, activity_type=activity_from_gpx_type(gpx_type))


def _local_name(tag: str) -> str:
    """Strip the '{namespace}' prefix ElementTree puts on tags."""
    return tag.rsplit("}", 1)[-1]


def _child_text(element: ET.Element, name: str) -> Optional[str]:
    for child in element:
        if _local_name(child.tag) == name:
            return child.text.strip() if child.text else None
    return None
