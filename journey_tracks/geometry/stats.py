"""Derive activity statistics from a canonical point sequence.

Everything here is a pure function of the points handed in. Internal sums
stay in floating point; distances and elevations are rounded to whole metres
only when the final :class:`ActivityStats` is built.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Iterable, List, Optional, Sequence, Tuple

from ..activity_types import canonical_activity_type, is_foot_sport, metabolic_equivalent
from ..config import (
    DEFAULT_BODY_WEIGHT_KG,
    MAX_PLAUSIBLE_SPEED_MPS,
    MIN_SPEED_SEGMENT_SECONDS,
)
from ..models import ActivityStats, BoundingBox, LatLng, TrackPoint
from .distance import cumulative_distances_m, point_distance_m, total_distance_m

ProfileSample = Tuple[float, float]


@dataclass(slots=True)
class ElevationSummary:
    gain_m: float
    loss_m: float
    max_m: Optional[float]
    min_m: Optional[float]


@dataclass(slots=True)
class SpeedSummary:
    avg_mps: float
    max_mps: float


def round_m(value: float) -> int:
    """Round half away from zero to the nearest whole metre."""

    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def bounding_box(points: Sequence[TrackPoint]) -> Optional[BoundingBox]:
    if not points:
        return None
    lats = [p.latitude for p in points]
    lons = [p.longitude for p in points]
    return BoundingBox(north=max(lats), south=min(lats), east=max(lons), west=min(lons))


def center(points: Sequence[TrackPoint]) -> Optional[LatLng]:
    """Midpoint of the bounding box (not the point centroid)."""

    box = bounding_box(points)
    return box.center if box is not None else None


def elevation_summary(points: Iterable[TrackPoint]) -> ElevationSummary:
    """Gain/loss between consecutive points that carry an elevation.

    Points without elevation are skipped rather than treated as zero, so a
    dropout in the barometer stream does not register as a cliff.
    """

    gain = 0.0
    loss = 0.0
    highest: Optional[float] = None
    lowest: Optional[float] = None
    previous: Optional[float] = None
    for point in points:
        elevation = point.elevation_m
        if elevation is None or math.isnan(elevation):
            continue
        highest = elevation if highest is None else max(highest, elevation)
        lowest = elevation if lowest is None else min(lowest, elevation)
        if previous is not None:
            delta = elevation - previous
            if delta > 0:
                gain += delta
            else:
                loss += -delta
        previous = elevation
    return ElevationSummary(gain_m=gain, loss_m=loss, max_m=highest, min_m=lowest)


def time_bounds_ms(points: Sequence[TrackPoint]) -> Tuple[Optional[int], Optional[int]]:
    first = next((p.timestamp_ms for p in points if p.timestamp_ms is not None), None)
    last = next(
        (p.timestamp_ms for p in reversed(points) if p.timestamp_ms is not None), None
    )
    return first, last


def duration_s(points: Sequence[TrackPoint]) -> float:
    """Elapsed seconds between the first and last timestamp; 0 without timestamps."""

    first, last = time_bounds_ms(points)
    if first is None or last is None:
        return 0.0
    return max(last - first, 0) / 1000.0


def segment_speeds_mps(points: Sequence[TrackPoint]) -> List[Optional[float]]:
    """Speed of each consecutive pair, ``None`` where it cannot be trusted.

    A segment is ignored when either end lacks a timestamp, when the time
    delta is below ``MIN_SPEED_SEGMENT_SECONDS`` or when the speed exceeds
    ``MAX_PLAUSIBLE_SPEED_MPS`` (if configured).
    """

    speeds: List[Optional[float]] = []
    for prev, cur in zip(points, points[1:]):
        if prev.timestamp_ms is None or cur.timestamp_ms is None:
            speeds.append(None)
            continue
        delta_s = (cur.timestamp_ms - prev.timestamp_ms) / 1000.0
        if delta_s < MIN_SPEED_SEGMENT_SECONDS:
            speeds.append(None)
            continue
        speed = point_distance_m(prev, cur) / delta_s
        if MAX_PLAUSIBLE_SPEED_MPS > 0 and speed > MAX_PLAUSIBLE_SPEED_MPS:
            speeds.append(None)
            continue
        speeds.append(speed)
    return speeds


def speed_summary(points: Sequence[TrackPoint]) -> SpeedSummary:
    elapsed = duration_s(points)
    avg = total_distance_m(points) / elapsed if elapsed > 0 else 0.0
    valid = [s for s in segment_speeds_mps(points) if s is not None]
    return SpeedSummary(avg_mps=avg, max_mps=max(valid) if valid else 0.0)


def pace_s_per_km(speed_mps: float) -> float:
    return 1000.0 / speed_mps if speed_mps > 0 else 0.0


def elevation_profile(points: Sequence[TrackPoint]) -> List[ProfileSample]:
    """(distance along track m, elevation m) for every point with an elevation."""

    cumulative = cumulative_distances_m(points)
    return [
        (cumulative[idx], point.elevation_m)
        for idx, point in enumerate(points)
        if point.elevation_m is not None
    ]


def speed_profile(points: Sequence[TrackPoint]) -> List[ProfileSample]:
    """(distance at segment end m, segment speed m/s) for every trusted segment."""

    cumulative = cumulative_distances_m(points)
    return [
        (cumulative[idx + 1], speed)
        for idx, speed in enumerate(segment_speeds_mps(points))
        if speed is not None
    ]


def estimate_calories(
    distance_m: float,
    elapsed_s: float,
    elevation_gain_m: float,
    activity_type: Optional[str] = None,
    weight_kg: Optional[float] = None,
) -> int:
    """Rough energy estimate in kcal.

    Uses ``MET x kg x hours`` when the track is timed. Untimed tracks fall back
    to a per-kilometre heuristic (1 kcal/kg/km on foot, 0.3 on a bike, 0.5
    otherwise). Climbing adds 0.1 kcal per kg per 100 m of gain.
    """

    weight = weight_kg if weight_kg and weight_kg > 0 else DEFAULT_BODY_WEIGHT_KG
    if distance_m <= 0 and elapsed_s <= 0:
        return 0
    if elapsed_s > 0:
        avg_speed = distance_m / elapsed_s
        base = metabolic_equivalent(activity_type, avg_speed) * weight * (elapsed_s / 3600.0)
    else:
        family = canonical_activity_type(activity_type)
        if is_foot_sport(family):
            per_km = 1.0
        elif family == "cycling":
            per_km = 0.3
        else:
            per_km = 0.5
        base = per_km * weight * (distance_m / 1000.0)
    climb = 0.1 * weight * (max(elevation_gain_m, 0.0) / 100.0)
    return int(round(base + climb))


def compute_stats(
    points: Sequence[TrackPoint],
    activity_type: Optional[str] = None,
    weight_kg: Optional[float] = None,
) -> ActivityStats:
    """Build :class:`ActivityStats` from the full, unsimplified point list.

    Tracks with zero or one point produce zero distance and duration rather
    than raising.
    """

    distance = total_distance_m(points)
    elapsed = duration_s(points)
    elevation = elevation_summary(points)
    speed = speed_summary(points)
    start_ms, end_ms = time_bounds_ms(points)
    box = bounding_box(points)
    return ActivityStats(
        distance_m=round_m(distance),
        duration_s=elapsed,
        elevation_gain_m=round_m(elevation.gain_m),
        elevation_loss_m=round_m(elevation.loss_m),
        max_elevation_m=round_m(elevation.max_m) if elevation.max_m is not None else None,
        min_elevation_m=round_m(elevation.min_m) if elevation.min_m is not None else None,
        avg_speed_mps=speed.avg_mps,
        max_speed_mps=speed.max_mps,
        avg_pace_s_per_km=pace_s_per_km(speed.avg_mps),
        start_time_ms=start_ms,
        end_time_ms=end_ms,
        bounding_box=box,
        center=box.center if box is not None else None,
        point_count=len(points),
        estimated_calories=estimate_calories(
            distance, elapsed, elevation.gain_m, activity_type, weight_kg
        ),
    )


def combine_stats(parts: Sequence[ActivityStats]) -> ActivityStats:
    """Roll several activities' stats into one, as used when merging.

    Distance, duration, gain, loss and calories are summed; max speed is the
    maximum; average speed is recomputed from the summed distance and
    duration. The bounding box is the union and the center its midpoint.
    """

    if not parts:
        return ActivityStats()
    distance = sum(p.distance_m for p in parts)
    elapsed = math.fsum(p.duration_s for p in parts)
    avg_speed = distance / elapsed if elapsed > 0 else 0.0
    max_elevations = [p.max_elevation_m for p in parts if p.max_elevation_m is not None]
    min_elevations = [p.min_elevation_m for p in parts if p.min_elevation_m is not None]
    starts = [p.start_time_ms for p in parts if p.start_time_ms is not None]
    ends = [p.end_time_ms for p in parts if p.end_time_ms is not None]
    box: Optional[BoundingBox] = None
    for part in parts:
        if part.bounding_box is None:
            continue
        box = part.bounding_box if box is None else box.union(part.bounding_box)
    return ActivityStats(
        distance_m=distance,
        duration_s=elapsed,
        elevation_gain_m=sum(p.elevation_gain_m for p in parts),
        elevation_loss_m=sum(p.elevation_loss_m for p in parts),
        max_elevation_m=max(max_elevations) if max_elevations else None,
        min_elevation_m=min(min_elevations) if min_elevations else None,
        avg_speed_mps=avg_speed,
        max_speed_mps=max(p.max_speed_mps for p in parts),
        avg_pace_s_per_km=pace_s_per_km(avg_speed),
        start_time_ms=min(starts) if starts else None,
        end_time_ms=max(ends) if ends else None,
        bounding_box=box,
        center=box.center if box is not None else None,
        point_count=sum(p.point_count for p in parts),
        estimated_calories=sum(p.estimated_calories for p in parts),
    )


__all__ = [
    "ElevationSummary",
    "SpeedSummary",
    "round_m",
    "bounding_box",
    "center",
    "elevation_summary",
    "time_bounds_ms",
    "duration_s",
    "segment_speeds_mps",
    "speed_summary",
    "pace_s_per_km",
    "elevation_profile",
    "speed_profile",
    "estimate_calories",
    "compute_stats",
    "combine_stats",
]
