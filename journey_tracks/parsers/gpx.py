"""GPX 1.0/1.1 decoding."""

from __future__ import annotations

import logging
from typing import List, Optional
from xml.etree.ElementTree import Element

from ..errors import ParseError, ParseErrorKind
from ..models import GpxTrack, TrackPoint
from ._common import keep_valid, parse_float, parse_int, parse_timestamp_ms, require_coordinate
from ._xml import child, child_text, iter_named, load_root, local_name

LOGGER = logging.getLogger(__name__)


def parse_gpx(data: bytes) -> GpxTrack:
    """Decode GPX bytes into a :class:`GpxTrack`.

    Track points are preferred. Files without any fall back to route points
    and then to standalone waypoints.
    """

    root = load_root(data, "GPX")
    if local_name(root.tag) != "gpx":
        raise ParseError(ParseErrorKind.MALFORMED, "Invalid GPX format: missing <gpx> root element")

    fallback = False
    elements = list(iter_named(root, "trkpt"))
    if not elements:
        elements = list(iter_named(root, "rtept")) or [
            node for node in root if local_name(node.tag) == "wpt"
        ]
        fallback = bool(elements)
    if not elements:
        raise ParseError(
            ParseErrorKind.EMPTY_TRACK, "No valid track or waypoint data found in the GPX file"
        )

    points = keep_valid([_to_point(el) for el in elements], "GPX")
    if fallback:
        LOGGER.info("GPX has no track points; using %d route/way points", len(points))
    return GpxTrack(
        points=points,
        name=_track_name(root),
        description=child_text(root, "metadata", "desc"),
        waypoint_fallback=fallback,
    )


def _track_name(root: Element) -> Optional[str]:
    name = child_text(root, "metadata", "name")
    if name:
        return name
    for trk in iter_named(root, "trk"):
        name = child_text(trk, "name")
        if name:
            return name
    return None


def _to_point(element: Element) -> TrackPoint:
    lat = require_coordinate(element.get("lat"), "lat", "GPX")
    lon = require_coordinate(element.get("lon"), "lon", "GPX")
    extensions = child(element, "extensions")
    # GPX 1.0 carries <speed> directly on the point; 1.1 moves it to extensions.
    speed = _extension_float(extensions, "speed")
    if speed is None:
        speed = parse_float(child_text(element, "speed"))
    temperature = _extension_float(extensions, "atemp")
    if temperature is None:
        temperature = _extension_float(extensions, "temp")
    return TrackPoint(
        latitude=lat,
        longitude=lon,
        elevation_m=parse_float(child_text(element, "ele")),
        timestamp_ms=parse_timestamp_ms(child_text(element, "time")),
        speed_mps=speed,
        heart_rate=parse_int(_extension_text(extensions, "hr")),
        cadence=parse_int(_extension_text(extensions, "cad")),
        power=parse_int(_extension_text(extensions, "power")),
        temperature_c=temperature,
    )


def _extension_text(extensions: Optional[Element], name: str) -> Optional[str]:
    """Look up a Garmin/Cluetrust extension value at any nesting depth."""

    if extensions is None:
        return None
    for node in iter_named(extensions, name):
        if node.text and node.text.strip():
            return node.text.strip()
    return None


def _extension_float(extensions: Optional[Element], name: str) -> Optional[float]:
    return parse_float(_extension_text(extensions, name))


__all__ = ["parse_gpx"]
