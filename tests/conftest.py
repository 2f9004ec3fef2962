"""
Pytest configuration and fixtures for trail poster tests.

Provides reusable fixtures for raw GPS tracks, trails, summaries and GPX
documents.
"""

import pytest
from datetime import datetime, timedelta, timezone
from typing import List

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from geo import Coordinate, TimedCoordinate
from models import ActivityType, Trail

START = datetime(2024, 5, 1, 7, 0, 0, tzinfo=timezone.utc)


def _walking_track(lat0: float = 45.0, lng0: float = 7.0, count: int = 30) -> List[TimedCoordinate]:
    """Walk north at ~5 km/h: one fix a minute, ~83 m apart, slight east-west jitter."""
    base_ms = int(START.timestamp() * 1000)
    return [
        TimedCoordinate(
            lat0 + i * 0.00075,
            lng0 + ((i % 3) - 1) * 0.00008,
            base_ms + i * 60_000,
        )
        for i in range(count)
    ]


@pytest.fixture
def walking_track() -> List[TimedCoordinate]:
    """Fixture providing 30 fixes of a plausible walk."""
    return _walking_track()


@pytest.fixture
def make_trail():
    """Fixture providing a factory for Trails near a given position."""
    def _make(workout_id: str, lat: float = 45.0, lng: float = 7.0, points: int = 5,
              step: float = 0.001, day: int = 0) -> Trail:
        coords = [Coordinate(lat + i * step, lng + i * step) for i in range(points)]
        start = START + timedelta(days=day)
        return Trail(
            workout_id=workout_id,
            activity_type=ActivityType.RUNNING,
            start_date=start,
            end_date=start + timedelta(minutes=30),
            duration=1800.0,
            coordinates=coords,
        )
    return _make


@pytest.fixture
def sample_trails(make_trail) -> List[Trail]:
    """Fixture providing two trails in Turin and one in Milan (~125 km away)."""
    return [
        make_trail("turin-a", 45.07, 7.68, day=0),
        make_trail("milan-a", 45.46, 9.19, day=1),
        make_trail("turin-b", 45.08, 7.69, day=2),
    ]


@pytest.fixture
def gpx_document() -> str:
    """Fixture providing a small GPX 1.1 track with times."""
    points = "\n".join(
        f'      <trkpt lat="{45.0 + i * 0.00075:.6f}" lon="7.000000">'
        f"<ele>250</ele><time>2024-05-01T07:{i:02d}:00Z</time></trkpt>"
        for i in range(12)
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<gpx version="1.1" creator="test" xmlns="http://www.topografix.com/GPX/1/1">\n'
        "  <metadata><name>Metadata Name</name></metadata>\n"
        "  <trk>\n"
        "    <name>Morning Hike</name>\n"
        "    <type>hiking</type>\n"
        "    <trkseg>\n"
        f"{points}\n"
        "    </trkseg>\n"
        "  </trk>\n"
        "</gpx>\n"
    )
