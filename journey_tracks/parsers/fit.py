"""Garmin FIT decoding via fitparse."""

from __future__ import annotations

import io
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import fitparse

from ..errors import ParseError, ParseErrorKind
from ..models import FitTrack, TrackPoint
from ._common import datetime_to_ms, keep_valid

LOGGER = logging.getLogger(__name__)

# FIT stores positions as 32-bit semicircles.
_SEMICIRCLE_TO_DEG = 180.0 / 2**31


def parse_fit(data: bytes) -> FitTrack:
    """Decode FIT bytes into a :class:`FitTrack`.

    A bad header, CRC mismatch or truncated stream is a ``malformed`` error;
    nothing decoded before the failure is returned.
    """

    points: List[TrackPoint] = []
    sport: Optional[str] = None
    device: Optional[str] = None
    try:
        # Always hand fitparse a file object: raw bytes without the ".FIT"
        # signature would otherwise be treated as a path.
        fit_file = fitparse.FitFile(io.BytesIO(data), check_crc=True)
        for message in fit_file.get_messages():
            if message.name == "record":
                point = _record_to_point(message.get_values())
                if point is not None:
                    points.append(point)
            elif message.name in ("session", "sport"):
                sport = sport or _text(message.get_value("sport"))
            elif message.name == "file_id":
                device = _device_name(message.get_values())
    except fitparse.FitParseError as exc:
        raise ParseError(ParseErrorKind.MALFORMED, f"FIT parsing error: {exc}") from exc
    except Exception as exc:  # fitparse surfaces struct/KeyError on corrupt definitions
        raise ParseError(ParseErrorKind.MALFORMED, f"FIT processing error: {exc}") from exc

    if not points:
        raise ParseError(ParseErrorKind.EMPTY_TRACK, "No valid track points found in FIT file")
    LOGGER.debug("Decoded %d FIT records (sport=%s, device=%s)", len(points), sport, device)
    return FitTrack(
        points=keep_valid(points, "FIT"),
        name=_activity_name(sport),
        sport=sport,
        device=device,
    )


def _record_to_point(values: Dict[str, Any]) -> Optional[TrackPoint]:
    lat_raw = values.get("position_lat")
    lon_raw = values.get("position_long")
    if lat_raw is None or lon_raw is None:
        # Indoor or pre-fix samples carry no position.
        return None
    timestamp = values.get("timestamp")
    return TrackPoint(
        latitude=float(lat_raw) * _SEMICIRCLE_TO_DEG,
        longitude=float(lon_raw) * _SEMICIRCLE_TO_DEG,
        elevation_m=_first_float(values, "enhanced_altitude", "altitude"),
        timestamp_ms=datetime_to_ms(timestamp) if isinstance(timestamp, datetime) else None,
        speed_mps=_first_float(values, "enhanced_speed", "speed"),
        heart_rate=_optional_int(values.get("heart_rate")),
        cadence=_optional_int(values.get("cadence")),
        power=_optional_int(values.get("power")),
        temperature_c=_first_float(values, "temperature"),
    )


def _first_float(values: Dict[str, Any], *keys: str) -> Optional[float]:
    for key in keys:
        value = values.get(key)
        if isinstance(value, (int, float)):
            return float(value)
    return None


def _optional_int(value: Any) -> Optional[int]:
    if isinstance(value, (int, float)):
        return int(value)
    return None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _device_name(values: Dict[str, Any]) -> Optional[str]:
    manufacturer = _text(values.get("manufacturer"))
    product = _text(values.get("garmin_product")) or _text(values.get("product"))
    parts = [part for part in (manufacturer, product) if part]
    return " ".join(parts) if parts else None


def _activity_name(sport: Optional[str]) -> Optional[str]:
    if not sport:
        return None
    return f"{sport.replace('_', ' ').title()} Activity"


__all__ = ["parse_fit"]
