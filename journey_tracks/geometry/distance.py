"""Great-circle distance helpers."""

from __future__ import annotations

import math
from typing import List, Sequence

from ..config import EARTH_RADIUS_M
from ..models import TrackPoint


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute Haversine distance in meters between two lat/lon points.

    Args:
        lat1: Latitude 1 in degrees.
        lon1: Longitude 1 in degrees.
        lat2: Latitude 2 in degrees.
        lon2: Longitude 2 in degrees.

    Returns:
        Distance in meters.
    """

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2.0) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    )
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_M * c


def point_distance_m(a: TrackPoint, b: TrackPoint) -> float:
    return haversine_m(a.latitude, a.longitude, b.latitude, b.longitude)


def segment_distances_m(points: Sequence[TrackPoint]) -> List[float]:
    """Distances between each pair of consecutive points (``len(points) - 1`` items)."""

    return [point_distance_m(prev, cur) for prev, cur in zip(points, points[1:])]


def total_distance_m(points: Sequence[TrackPoint]) -> float:
    """Sum of consecutive-pair distances; 0 for fewer than two points."""

    if len(points) < 2:
        return 0.0
    return math.fsum(segment_distances_m(points))


def cumulative_distances_m(points: Sequence[TrackPoint]) -> List[float]:
    """Distance travelled from the first point up to each point."""

    if not points:
        return []
    cumulative = [0.0]
    running = 0.0
    for step in segment_distances_m(points):
        running += step
        cumulative.append(running)
    return cumulative


__all__ = [
    "haversine_m",
    "point_distance_m",
    "segment_distances_m",
    "total_distance_m",
    "cumulative_distances_m",
]
