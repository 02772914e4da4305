"""Decode track files into format-tagged :data:`~journey_tracks.models.RawTrack` values.

``parse_track`` is the single entry point: it resolves the format from a
hint (format name, extension or file name), enforces the size limit and
dispatches to the matching decoder. Every failure surfaces as a
:class:`~journey_tracks.errors.ParseError`.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Union

from ..config import MAX_FILE_SIZE_BYTES
from ..errors import ParseError, ParseErrorKind
from ..models import RawTrack, TrackFormat
from .fit import parse_fit
from .gpx import parse_gpx
from .kml import parse_kml, parse_kmz
from .tcx import parse_tcx

LOGGER = logging.getLogger(__name__)

FormatHint = Union[str, TrackFormat]

_PARSERS: Dict[TrackFormat, Callable[[bytes], RawTrack]] = {
    TrackFormat.GPX: parse_gpx,
    TrackFormat.TCX: parse_tcx,
    TrackFormat.KML: parse_kml,
    TrackFormat.KMZ: parse_kmz,
    TrackFormat.FIT: parse_fit,
}


def resolve_format(hint: FormatHint) -> TrackFormat:
    """Map ``"gpx"``, ``".GPX"`` or ``"morning-ride.gpx"`` onto a :class:`TrackFormat`."""

    if isinstance(hint, TrackFormat):
        return hint
    normalized = str(hint or "").strip().lower()
    extension = normalized.rsplit(".", 1)[-1] if "." in normalized else normalized
    try:
        return TrackFormat(extension)
    except ValueError as exc:
        raise ParseError(
            ParseErrorKind.UNSUPPORTED_FORMAT, f"Unsupported file format: .{extension}"
        ) from exc


def parse_track(data: bytes, format_hint: FormatHint) -> RawTrack:
    """Decode ``data`` according to ``format_hint``.

    Raises:
        ParseError: ``unsupported-format`` for unknown hints, ``empty-track``
            for empty files or files without usable points, ``malformed`` for
            oversized input or anything the decoder rejects.
    """

    track_format = resolve_format(format_hint)
    if not data:
        raise ParseError(
            ParseErrorKind.EMPTY_TRACK, f"Empty {track_format.value.upper()} file provided"
        )
    if len(data) > MAX_FILE_SIZE_BYTES:
        raise ParseError(
            ParseErrorKind.MALFORMED,
            f"File too large. Max size is {MAX_FILE_SIZE_BYTES / 1024 / 1024:.1f}MB",
        )
    track = _PARSERS[track_format](data)
    LOGGER.debug("Parsed %s with %d points", track_format.value, len(track.points))
    return track


__all__ = [
    "FormatHint",
    "resolve_format",
    "parse_track",
    "parse_gpx",
    "parse_tcx",
    "parse_kml",
    "parse_kmz",
    "parse_fit",
]
