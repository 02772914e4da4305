"""Pure geometry over track point sequences.

Distance, statistics and profile helpers live in :mod:`.distance` and
:mod:`.stats`; route reduction for storage lives in :mod:`.simplify`.
"""

from .distance import haversine_m, total_distance_m, segment_distances_m
from .stats import (
    bounding_box,
    center,
    combine_stats,
    compute_stats,
    duration_s,
    elevation_profile,
    elevation_summary,
    estimate_calories,
    speed_profile,
    speed_summary,
)
from .simplify import simplify_route, douglas_peucker_indices

__all__ = [
    "haversine_m",
    "total_distance_m",
    "segment_distances_m",
    "bounding_box",
    "center",
    "combine_stats",
    "compute_stats",
    "duration_s",
    "elevation_profile",
    "elevation_summary",
    "estimate_calories",
    "speed_profile",
    "speed_summary",
    "simplify_route",
    "douglas_peucker_indices",
]
