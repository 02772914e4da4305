"""Route simplification for stored and rendered geometry.

Points are projected into a local metric CRS so the Douglas-Peucker tolerance
is expressed in metres, simplified with shapely, and mapped back to indices
of the original sequence. The simplified route is for storage and rendering
only; statistics are always computed from the full point list.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray
from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError
from shapely.geometry import LineString

from ..config import MAX_SIMPLIFIED_POINTS, SIMPLIFICATION_TOLERANCE_M
from ..models import LatLon, SimplifiedRoute, TrackPoint

MetricArray = NDArray[np.float64]

LOGGER = logging.getLogger(__name__)


def reproject_to_local_crs(
    points: Sequence[LatLon],
) -> Tuple[MetricArray, Transformer]:
    """Project lat/lon points into a local metric coordinate system."""

    if not points:
        raise ValueError("Cannot reproject an empty point collection")
    transformer = _build_local_transformer(points)
    metric = _project_points(points, transformer)
    return metric, transformer


def douglas_peucker_indices(metric: MetricArray, tolerance_m: float) -> List[int]:
    """Indices kept by Douglas-Peucker on metric coordinates.

    The first and last index are always present and the result is strictly
    increasing. A tolerance of zero keeps every point.
    """

    count = len(metric)
    if count < 3 or tolerance_m <= 0:
        return list(range(count))
    line = LineString(metric)
    simplified = line.simplify(tolerance_m, preserve_topology=False)
    coords = np.asarray(simplified.coords, dtype=float)
    indices = _match_indices(metric, coords)
    if indices is None or len(indices) < 2:
        LOGGER.debug(
            "Simplified geometry did not map back onto %d input points; keeping endpoints",
            count,
        )
        return [0, count - 1]
    return indices


def simplify_route(
    points: Sequence[TrackPoint],
    tolerance_m: float = SIMPLIFICATION_TOLERANCE_M,
    max_points: int = MAX_SIMPLIFIED_POINTS,
) -> SimplifiedRoute:
    """Reduce ``points`` to a :class:`SimplifiedRoute`.

    Args:
        points: Canonical track points in recorded order.
        tolerance_m: Maximum perpendicular deviation in metres. Must be >= 0.
        max_points: Upper bound on retained points; the tolerance is raised
            and, failing that, the output is decimated to respect it. Zero
            tolerance keeps every point regardless of this bound.

    Returns:
        The retained indices, their coordinates and the tolerance actually
        applied.
    """

    if tolerance_m < 0:
        raise ValueError("tolerance_m must be >= 0")
    count = len(points)
    if count == 0:
        return SimplifiedRoute(indices=(), points=(), tolerance_m=tolerance_m)
    if count <= 2 or tolerance_m == 0:
        indices: List[int] = list(range(count))
        effective, capped = tolerance_m, False
    else:
        metric, _ = reproject_to_local_crs([p.latlon for p in points])
        indices, effective, capped = _simplify_with_budget(metric, tolerance_m, max_points)
    if capped:
        LOGGER.debug(
            "Route capped at %d points (tolerance %.2fm -> %.2fm)",
            len(indices),
            tolerance_m,
            effective,
        )
    return SimplifiedRoute(
        indices=tuple(indices),
        points=tuple(points[i].latlon for i in indices),
        tolerance_m=effective,
        capped=capped,
    )


def _simplify_with_budget(
    points: MetricArray,
    tolerance_m: float,
    max_points: int,
) -> Tuple[List[int], float, bool]:
    """Simplify points while capping the output cardinality."""

    effective_tolerance = max(tolerance_m, 0.0)
    indices = douglas_peucker_indices(points, effective_tolerance)
    adjusted = False
    if len(indices) <= max_points:
        return indices, effective_tolerance, adjusted

    # Increase tolerance iteratively to reduce the point count before decimating.
    attempts = 0
    while len(indices) > max_points and attempts < 5:
        effective_tolerance = (
            effective_tolerance * 1.5 if effective_tolerance > 0 else 1.0
        )
        indices = douglas_peucker_indices(points, effective_tolerance)
        attempts += 1
        adjusted = True

    if len(indices) > max_points:
        indices = _decimate_indices(indices, max_points)
        adjusted = True

    return indices, effective_tolerance, adjusted


def _decimate_indices(indices: List[int], max_points: int) -> List[int]:
    """Down-sample a sorted index list while preserving the endpoints."""

    max_points = max(2, max_points)
    count = len(indices)
    if count <= max_points:
        return indices
    positions = np.linspace(0, count - 1, num=max_points, dtype=int)
    return [indices[pos] for pos in positions]


def _match_indices(metric: MetricArray, coords: MetricArray) -> Optional[List[int]]:
    """Walk the input once, pairing each simplified vertex with its source index."""

    count = len(metric)
    indices: List[int] = []
    cursor = 0
    for x, y in coords:
        while cursor < count and not (metric[cursor, 0] == x and metric[cursor, 1] == y):
            cursor += 1
        if cursor == count:
            return None
        indices.append(cursor)
        cursor += 1
    if indices and indices[-1] != count - 1:
        # The last vertex duplicates an earlier coordinate (closed loop).
        indices[-1] = count - 1
    return indices


def _build_local_transformer(points: Sequence[LatLon]) -> Transformer:
    """Build a local UTM transformer centred on the provided coordinates."""

    lats = [pt[0] for pt in points]
    lons = [pt[1] for pt in points]
    mean_lat = float(np.mean(lats))
    mean_lon = float(np.mean(lons))
    zone = int((mean_lon + 180.0) // 6.0) + 1
    zone = max(1, min(zone, 60))
    if mean_lat >= 0:
        epsg = 32600 + zone
    else:
        epsg = 32700 + zone
    try:
        target_crs = CRS.from_epsg(epsg)
    except CRSError:
        target_crs = CRS.from_epsg(3857)
    return Transformer.from_crs(CRS.from_epsg(4326), target_crs, always_xy=True)


def _project_points(points: Sequence[LatLon], transformer: Transformer) -> MetricArray:
    """Project lat/lon pairs through an existing transformer."""

    if not points:
        return np.empty((0, 2), dtype=float)
    lats = np.asarray([pt[0] for pt in points], dtype=float)
    lons = np.asarray([pt[1] for pt in points], dtype=float)
    xs, ys = transformer.transform(lons, lats)
    return np.column_stack((xs, ys)).astype(float, copy=False)


__all__ = [
    "reproject_to_local_crs",
    "douglas_peucker_indices",
    "simplify_route",
]
