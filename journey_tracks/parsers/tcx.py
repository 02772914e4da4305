"""Garmin Training Center (TCX) decoding."""

from __future__ import annotations

from typing import List, Optional
from xml.etree.ElementTree import Element

from ..errors import ParseError, ParseErrorKind
from ..models import TcxTrack, TrackPoint
from ._common import keep_valid, parse_float, parse_int, parse_timestamp_ms, require_coordinate
from ._xml import child, child_text, descendant_text, iter_named, load_root, local_name


def parse_tcx(data: bytes) -> TcxTrack:
    """Decode TCX bytes into a :class:`TcxTrack`.

    Trackpoints without a ``Position`` (indoor or paused samples) are skipped;
    a ``Position`` lacking either coordinate is malformed.
    """

    root = load_root(data, "TCX")
    if local_name(root.tag) != "TrainingCenterDatabase":
        raise ParseError(
            ParseErrorKind.MALFORMED,
            "Invalid TCX format: missing <TrainingCenterDatabase> root element",
        )

    points: List[TrackPoint] = []
    for trackpoint in iter_named(root, "Trackpoint"):
        point = _to_point(trackpoint)
        if point is not None:
            points.append(point)
    if not points:
        raise ParseError(ParseErrorKind.EMPTY_TRACK, "No positioned trackpoints found in the TCX file")

    sport, name = _activity_header(root)
    return TcxTrack(
        points=keep_valid(points, "TCX"),
        name=name,
        sport=sport,
        lap_count=sum(1 for _ in iter_named(root, "Lap")),
    )


def _activity_header(root: Element) -> tuple[Optional[str], Optional[str]]:
    """Declared sport and a display name (course name or activity notes)."""

    sport: Optional[str] = None
    name: Optional[str] = None
    for activity in iter_named(root, "Activity"):
        sport = activity.get("Sport") or None
        name = child_text(activity, "Notes")
        break
    if name is None:
        for course in iter_named(root, "Course"):
            name = child_text(course, "Name")
            break
    return sport, name


def _to_point(trackpoint: Element) -> Optional[TrackPoint]:
    position = child(trackpoint, "Position")
    if position is None:
        return None
    lat = require_coordinate(child_text(position, "LatitudeDegrees"), "LatitudeDegrees", "TCX")
    lon = require_coordinate(child_text(position, "LongitudeDegrees"), "LongitudeDegrees", "TCX")
    cadence_text = child_text(trackpoint, "Cadence")
    speed: Optional[float] = None
    power: Optional[int] = None
    extensions = child(trackpoint, "Extensions")
    if extensions is not None:
        # Activity Extension v2 (TPX) carries speed, watts and run cadence.
        speed = parse_float(descendant_text(extensions, "Speed"))
        power = parse_int(descendant_text(extensions, "Watts"))
        if cadence_text is None:
            cadence_text = descendant_text(extensions, "RunCadence")
    return TrackPoint(
        latitude=lat,
        longitude=lon,
        elevation_m=parse_float(child_text(trackpoint, "AltitudeMeters")),
        timestamp_ms=parse_timestamp_ms(child_text(trackpoint, "Time")),
        speed_mps=speed,
        heart_rate=parse_int(child_text(trackpoint, "HeartRateBpm", "Value")),
        cadence=parse_int(cadence_text),
        power=power,
    )


__all__ = ["parse_tcx"]
