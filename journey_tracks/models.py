"""Dataclasses describing track points, activities and journeys."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

from polyline import encode as polyline_encode

LatLon = Tuple[float, float]


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""

    return int(time.time() * 1000)


class TrackFormat(str, Enum):
    GPX = "gpx"
    TCX = "tcx"
    KML = "kml"
    KMZ = "kmz"
    FIT = "fit"


class ProcessingStatus(str, Enum):
    PENDING = "pending"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED)


@dataclass(frozen=True, slots=True)
class TrackPoint:
    """A single location sample.

    Attributes:
        latitude: Latitude in decimal degrees (WGS84).
        longitude: Longitude in decimal degrees (WGS84).
        elevation_m: Elevation in metres, when the source recorded one.
        timestamp_ms: Unix epoch milliseconds, when the source recorded one.
        speed_mps: Device-reported speed in metres/second.
        heart_rate: Beats per minute.
        cadence: Steps or revolutions per minute.
        power: Watts.
        temperature_c: Degrees Celsius.
    """

    latitude: float
    longitude: float
    elevation_m: Optional[float] = None
    timestamp_ms: Optional[int] = None
    speed_mps: Optional[float] = None
    heart_rate: Optional[int] = None
    cadence: Optional[int] = None
    power: Optional[int] = None
    temperature_c: Optional[float] = None

    @property
    def latlon(self) -> LatLon:
        return (self.latitude, self.longitude)


# --- Decoded files -----------------------------------------------------
@dataclass(slots=True)
class GpxTrack:
    points: List[TrackPoint]
    name: Optional[str] = None
    description: Optional[str] = None
    # True when the file had no track points and waypoints/route points were used.
    waypoint_fallback: bool = False
    format: ClassVar[TrackFormat] = TrackFormat.GPX


@dataclass(slots=True)
class TcxTrack:
    points: List[TrackPoint]
    name: Optional[str] = None
    sport: Optional[str] = None
    lap_count: int = 0
    format: ClassVar[TrackFormat] = TrackFormat.TCX


@dataclass(slots=True)
class KmlTrack:
    points: List[TrackPoint]
    name: Optional[str] = None
    format: ClassVar[TrackFormat] = TrackFormat.KML


@dataclass(slots=True)
class KmzTrack:
    points: List[TrackPoint]
    entry_name: str
    name: Optional[str] = None
    format: ClassVar[TrackFormat] = TrackFormat.KMZ


@dataclass(slots=True)
class FitTrack:
    points: List[TrackPoint]
    name: Optional[str] = None
    sport: Optional[str] = None
    device: Optional[str] = None
    format: ClassVar[TrackFormat] = TrackFormat.FIT


RawTrack = Union[GpxTrack, TcxTrack, KmlTrack, KmzTrack, FitTrack]


def declared_sport(track: RawTrack) -> Optional[str]:
    """Activity type declared inside the file itself (TCX and FIT only)."""

    if isinstance(track, (TcxTrack, FitTrack)):
        return track.sport
    return None


# --- Derived geometry --------------------------------------------------
@dataclass(frozen=True, slots=True)
class BoundingBox:
    north: float
    south: float
    east: float
    west: float

    @property
    def center(self) -> "LatLng":
        return LatLng(lat=(self.north + self.south) / 2.0, lng=(self.east + self.west) / 2.0)

    def union(self, other: "BoundingBox") -> "BoundingBox":
        return BoundingBox(
            north=max(self.north, other.north),
            south=min(self.south, other.south),
            east=max(self.east, other.east),
            west=min(self.west, other.west),
        )


@dataclass(frozen=True, slots=True)
class LatLng:
    lat: float
    lng: float


@dataclass(frozen=True, slots=True)
class ActivityStats:
    """Statistics derived from an activity's canonical (unsimplified) points."""

    distance_m: int = 0
    duration_s: float = 0.0
    elevation_gain_m: int = 0
    elevation_loss_m: int = 0
    max_elevation_m: Optional[int] = None
    min_elevation_m: Optional[int] = None
    avg_speed_mps: float = 0.0
    max_speed_mps: float = 0.0
    avg_pace_s_per_km: float = 0.0
    start_time_ms: Optional[int] = None
    end_time_ms: Optional[int] = None
    bounding_box: Optional[BoundingBox] = None
    center: Optional[LatLng] = None
    point_count: int = 0
    estimated_calories: int = 0


@dataclass(frozen=True, slots=True)
class SimplifiedRoute:
    """Reduced geometry kept for storage and rendering."""

    indices: Tuple[int, ...]
    points: Tuple[LatLon, ...]
    tolerance_m: float
    capped: bool = False

    @property
    def encoded_polyline(self) -> str:
        return polyline_encode(list(self.points)) if self.points else ""

    def to_geojson(self) -> Dict[str, Any]:
        coordinates = [[lon, lat] for lat, lon in self.points]
        geometry_type = "LineString" if len(coordinates) > 1 else "MultiPoint"
        return {"type": geometry_type, "coordinates": coordinates}


# --- Persisted entities ------------------------------------------------
@dataclass(slots=True)
class Activity:
    journey_id: str
    name: str
    activity_type: str
    id: Optional[str] = None
    original_file_name: Optional[str] = None
    file_ref: Optional[str] = None
    points: List[TrackPoint] = field(default_factory=list)
    route: Optional[SimplifiedRoute] = None
    stats: Optional[ActivityStats] = None
    status: ProcessingStatus = ProcessingStatus.PENDING
    error: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    notes: str = ""
    tags: List[str] = field(default_factory=list)
    activity_date_ms: int = field(default_factory=now_ms)
    created_at_ms: int = field(default_factory=now_ms)
    updated_at_ms: int = field(default_factory=now_ms)

    @property
    def point_count(self) -> int:
        return len(self.points)

    @property
    def start_time_ms(self) -> Optional[int]:
        if self.stats is not None and self.stats.start_time_ms is not None:
            return self.stats.start_time_ms
        for point in self.points:
            if point.timestamp_ms is not None:
                return point.timestamp_ms
        return None


@dataclass(slots=True)
class ActivityUpdate:
    """Named fields to change on an activity; ``None`` leaves a field untouched.

    The store applies every set field in a single write. ``clear_error``
    resets a previously recorded processing error.
    """

    name: Optional[str] = None
    activity_type: Optional[str] = None
    file_ref: Optional[str] = None
    points: Optional[List[TrackPoint]] = None
    route: Optional[SimplifiedRoute] = None
    stats: Optional[ActivityStats] = None
    status: Optional[ProcessingStatus] = None
    error: Optional[str] = None
    clear_error: bool = False
    description: Optional[str] = None
    color: Optional[str] = None
    notes: Optional[str] = None
    tags: Optional[List[str]] = None
    activity_date_ms: Optional[int] = None


@dataclass(frozen=True, slots=True)
class JourneyTotals:
    total_distance_m: int = 0
    total_elevation_gain_m: int = 0
    total_duration_s: float = 0.0
    activity_count: int = 0
    last_activity_date_ms: Optional[int] = None


@dataclass(slots=True)
class Journey:
    name: str
    id: Optional[str] = None
    description: Optional[str] = None
    totals: JourneyTotals = field(default_factory=JourneyTotals)
    created_at_ms: int = field(default_factory=now_ms)
    updated_at_ms: int = field(default_factory=now_ms)


__all__ = [
    "LatLon",
    "now_ms",
    "TrackFormat",
    "ProcessingStatus",
    "TrackPoint",
    "GpxTrack",
    "TcxTrack",
    "KmlTrack",
    "KmzTrack",
    "FitTrack",
    "RawTrack",
    "declared_sport",
    "BoundingBox",
    "LatLng",
    "ActivityStats",
    "SimplifiedRoute",
    "Activity",
    "ActivityUpdate",
    "JourneyTotals",
    "Journey",
]
