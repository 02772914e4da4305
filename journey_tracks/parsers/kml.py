"""KML decoding and KMZ (zipped KML) unpacking."""

from __future__ import annotations

import io
import logging
import zipfile
import zlib
from typing import List, Optional
from xml.etree.ElementTree import Element

from ..errors import ParseError, ParseErrorKind
from ..models import KmlTrack, KmzTrack, TrackPoint
from ._common import keep_valid, parse_float, parse_timestamp_ms, require_coordinate
from ._xml import child_text, iter_named, load_root, local_name

LOGGER = logging.getLogger(__name__)

_GEOMETRY_TAGS = {"LineString", "Point", "Track"}


def parse_kml(data: bytes) -> KmlTrack:
    """Decode KML bytes into a :class:`KmlTrack`.

    Coordinates come from ``LineString``, ``Point`` and ``gx:Track`` geometry
    in document order.
    """

    root = load_root(data, "KML")
    if local_name(root.tag) != "kml":
        raise ParseError(ParseErrorKind.MALFORMED, "Invalid KML format: missing <kml> root element")

    points: List[TrackPoint] = []
    for node in root.iter():
        tag = local_name(node.tag)
        if tag not in _GEOMETRY_TAGS:
            continue
        if tag == "Track":
            points.extend(_track_points(node))
        else:
            points.extend(_coordinate_points(node))
    if not points:
        raise ParseError(ParseErrorKind.EMPTY_TRACK, "No coordinates found in the KML file")
    return KmlTrack(points=keep_valid(points, "KML"), name=_document_name(root))


def parse_kmz(data: bytes) -> KmzTrack:
    """Unzip a KMZ archive and decode the KML document inside it.

    ``doc.kml`` is preferred when present, otherwise the first ``.kml`` entry
    in archive order is used.
    """

    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as exc:
        raise ParseError(ParseErrorKind.MALFORMED, f"KMZ is not a valid zip archive: {exc}") from exc

    with archive:
        entries = [n for n in archive.namelist() if n.lower().endswith(".kml")]
        if not entries:
            raise ParseError(ParseErrorKind.MALFORMED, "No .kml file found inside the KMZ archive")
        entry = next((n for n in entries if n.rsplit("/", 1)[-1].lower() == "doc.kml"), entries[0])
        try:
            content = archive.read(entry)
        except (zipfile.BadZipFile, zlib.error, OSError) as exc:
            raise ParseError(
                ParseErrorKind.MALFORMED, f"Could not extract '{entry}' from KMZ: {exc}"
            ) from exc

    if not content.strip():
        raise ParseError(ParseErrorKind.MALFORMED, f"KML file '{entry}' in archive is empty")
    LOGGER.debug("Extracted %s (%d bytes) from KMZ", entry, len(content))
    kml = parse_kml(content)
    return KmzTrack(points=kml.points, entry_name=entry, name=kml.name)


def _document_name(root: Element) -> Optional[str]:
    for container in ("Document", "Folder", "Placemark"):
        for node in iter_named(root, container):
            name = child_text(node, "name")
            if name:
                return name
    return None


def _coordinate_points(geometry: Element) -> List[TrackPoint]:
    """Points from a ``<coordinates>`` block of ``lon,lat[,alt]`` tuples."""

    text = child_text(geometry, "coordinates")
    if text is None:
        return []
    points = []
    for token in text.split():
        parts = token.split(",")
        lon = require_coordinate(parts[0], "longitude", "KML")
        lat = require_coordinate(parts[1] if len(parts) > 1 else None, "latitude", "KML")
        elevation = parse_float(parts[2]) if len(parts) > 2 else None
        points.append(TrackPoint(latitude=lat, longitude=lon, elevation_m=elevation))
    return points


def _track_points(track: Element) -> List[TrackPoint]:
    """Points from a ``gx:Track``: paired ``<when>`` and ``<gx:coord>`` lists."""

    whens = [node.text for node in track if local_name(node.tag) == "when"]
    coords = [node.text or "" for node in track if local_name(node.tag) == "coord"]
    points = []
    for idx, coord in enumerate(coords):
        parts = coord.split()
        lon = require_coordinate(parts[0] if parts else None, "longitude", "KML")
        lat = require_coordinate(parts[1] if len(parts) > 1 else None, "latitude", "KML")
        elevation = parse_float(parts[2]) if len(parts) > 2 else None
        timestamp = parse_timestamp_ms(whens[idx]) if idx < len(whens) else None
        points.append(
            TrackPoint(latitude=lat, longitude=lon, elevation_m=elevation, timestamp_ms=timestamp)
        )
    return points


__all__ = ["parse_kml", "parse_kmz"]
