"""Helpers shared by every format parser."""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timezone
from typing import List, Optional

from ..errors import ParseError, ParseErrorKind
from ..models import TrackPoint

LOGGER = logging.getLogger(__name__)

_FRACTION_RE = re.compile(r"\.(\d+)")


def parse_float(text: Optional[str]) -> Optional[float]:
    """Return ``text`` as a finite float, or ``None`` when absent/invalid."""

    if text is None:
        return None
    try:
        value = float(text.strip())
    except ValueError:
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def parse_int(text: Optional[str]) -> Optional[int]:
    value = parse_float(text)
    return int(round(value)) if value is not None else None


def parse_timestamp_ms(text: Optional[str]) -> Optional[int]:
    """Parse an ISO-8601 timestamp into epoch milliseconds.

    Accepts a trailing ``Z``, any number of fractional digits and naive
    values (treated as UTC). Returns ``None`` for unparseable input.
    """

    if not text:
        return None
    value = text.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    # fromisoformat only accepts 3 or 6 fractional digits before 3.11.
    value = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1)
    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        return None
    return datetime_to_ms(dt)


def datetime_to_ms(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(round(dt.timestamp() * 1000))


def valid_coordinate(lat: Optional[float], lon: Optional[float]) -> bool:
    return lat is not None and lon is not None and abs(lat) <= 90 and abs(lon) <= 180


def require_coordinate(raw: Optional[str], field: str, source: str) -> float:
    """Parse a mandatory coordinate field, raising ``malformed`` when absent."""

    if raw is None:
        raise ParseError(ParseErrorKind.MALFORMED, f"{source} point is missing {field}")
    value = parse_float(raw)
    if value is None:
        raise ParseError(
            ParseErrorKind.MALFORMED, f"{source} point has a non-numeric {field}: {raw!r}"
        )
    return value


def keep_valid(points: List[TrackPoint], source: str) -> List[TrackPoint]:
    """Drop out-of-range coordinates and fail when nothing usable remains."""

    valid = [p for p in points if valid_coordinate(p.latitude, p.longitude)]
    dropped = len(points) - len(valid)
    if dropped:
        LOGGER.warning("Dropped %d %s points with out-of-range coordinates", dropped, source)
    if not valid:
        raise ParseError(
            ParseErrorKind.EMPTY_TRACK, f"No valid GPS coordinates found in {source} data"
        )
    return valid
