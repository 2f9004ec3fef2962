"""
GPX 1.1 writer for cleaned trails.

Writes the filtered, simplified geometry of a Trail so it can be opened in
other mapping tools. Simplified points carry no timestamps, so only the
trail's start time is recorded (in the metadata).
"""

import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import TextIO

from models import Trail


# XML namespaces
NS_GPX = "http://www.topografix.com/GPX/1/1"
NS_XSI = "http://www.w3.org/2001/XMLSchema-instance"

CREATOR = "trail-poster"


def write_gpx(trail: Trail, output: TextIO) -> None:
    """
    Write a Trail to GPX 1.1 format.

    Args:
        trail: Trail with cleaned coordinates
        output: Text file-like object to write to
    """
    # Register namespaces to avoid ns0/ns1 prefixes
    ET.register_namespace("", NS_GPX)
    ET.register_namespace("xsi", NS_XSI)

    gpx = ET.Element(
        f"{{{NS_GPX}}}gpx",
        attrib={
            "version": "1.1",
            "creator": CREATOR,
            f"{{{NS_XSI}}}schemaLocation": f"{NS_GPX} http://www.topografix.com/GPX/1/1/gpx.xsd",
        }
    )
    name = trail.location_label or trail.workout_id

    # Metadata
    metadata = _sub(gpx, "metadata")
    _sub(metadata, "name", name)
    _sub(metadata, "time", _format_time(trail.start_date))
    bbox = trail.bounding_box
    _sub(metadata, "bounds", attrib={
        "minlat": f"{bbox.min_lat:.7f}",
        "minlon": f"{bbox.min_lng:.7f}",
        "maxlat": f"{bbox.max_lat:.7f}",
        "maxlon": f"{bbox.max_lng:.7f}",
    })

    # Track
    trk = _sub(gpx, "trk")
    _sub(trk, "name", name)
    _sub(trk, "type", trail.activity_name)
    trkseg = _sub(trk, "trkseg")
    for lat, lon in trail.coordinates:
        _sub(trkseg, "trkpt", attrib={"lat": f"{lat:.7f}", "lon": f"{lon:.7f}"})

    tree = ET.ElementTree(gpx)
    output.write('<?xml version="1.0" encoding="UTF-8"?>\n')
    tree.write(output, encoding="unicode", xml_declaration=False)


def _sub(parent: ET.Element, name: str, text: str = None, attrib: dict = None) -> ET.Element:
    """Add a GPX namespace element to the parent."""
    elem = ET.SubElement(parent, f"{{{NS_GPX}}}{name}", attrib=attrib or {})
    if text is not None:
        elem.text = text
    return elem


def _format_time(dt: datetime) -> str:
    """Format datetime as ISO 8601 UTC string for GPX."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
