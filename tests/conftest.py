"""Global pytest fixtures & helpers.

Adds project root to path and provides reusable point factories, sample
track documents and in-memory stores so service tests avoid duplication.
"""
from __future__ import annotations

import os
import sys
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from journey_tracks.geometry import compute_stats, simplify_route
from journey_tracks.models import Activity, Journey, ProcessingStatus, TrackPoint
from journey_tracks.storage import InMemoryActivityStore, InMemoryObjectStorage

# 2024-05-01T08:00:00Z
BASE_TIME_MS = 1_714_550_400_000


# --- Factory helpers -------------------------------------------------
def make_points(
    count: int,
    *,
    start_lat: float = 51.5,
    start_lon: float = -0.12,
    step_deg: float = 0.001,
    start_ms: Optional[int] = BASE_TIME_MS,
    step_s: float = 60.0,
    elevations: Optional[Sequence[Optional[float]]] = None,
) -> List[TrackPoint]:
    """Points marching north ``step_deg`` at a time (~111 m per 0.001 deg)."""

    points = []
    for idx in range(count):
        timestamp = None if start_ms is None else start_ms + int(idx * step_s * 1000)
        points.append(
            TrackPoint(
                latitude=start_lat + idx * step_deg,
                longitude=start_lon,
                elevation_m=elevations[idx] if elevations is not None else None,
                timestamp_ms=timestamp,
            )
        )
    return points


def make_activity(
    store: InMemoryActivityStore,
    journey_id: str,
    points: List[TrackPoint],
    *,
    name: str = "Morning Run",
    activity_type: str = "running",
    **overrides,
) -> Activity:
    stats = compute_stats(points, activity_type)
    activity = Activity(
        journey_id=journey_id,
        name=name,
        activity_type=activity_type,
        points=points,
        route=simplify_route(points),
        stats=stats,
        status=ProcessingStatus.COMPLETED,
        activity_date_ms=stats.start_time_ms or BASE_TIME_MS,
        **overrides,
    )
    return store.create_activity(activity)


def gpx_document(
    coords: Iterable[Tuple[float, float]],
    *,
    name: Optional[str] = "Test Track",
    start_ms: Optional[int] = None,
    step_s: int = 60,
) -> bytes:
    """Minimal GPX 1.1 document with one ``trkseg``."""

    rows = []
    for idx, (lat, lon) in enumerate(coords):
        body = f"<ele>{10 + idx}</ele>"
        if start_ms is not None:
            seconds = (start_ms // 1000) + idx * step_s
            body += f"<time>{_iso(seconds)}</time>"
        rows.append(f'<trkpt lat="{lat}" lon="{lon}">{body}</trkpt>')
    name_xml = f"<name>{name}</name>" if name else ""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<gpx version="1.1" creator="tests" xmlns="http://www.topografix.com/GPX/1/1">'
        f"<trk>{name_xml}<trkseg>{''.join(rows)}</trkseg></trk></gpx>"
    ).encode("utf-8")


def _iso(epoch_seconds: int) -> str:
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).strftime(
        "%Y-%m-%dT%H:%M:%SZ"
    )


# --- Fixtures --------------------------------------------------------
@pytest.fixture
def store() -> InMemoryActivityStore:
    return InMemoryActivityStore()


@pytest.fixture
def object_storage() -> InMemoryObjectStorage:
    return InMemoryObjectStorage()


@pytest.fixture
def journey(store: InMemoryActivityStore) -> Journey:
    return store.create_journey(Journey(name="Coast to Coast"))


@pytest.fixture
def sample_gpx() -> bytes:
    coords = [(51.5 + i * 0.001, -0.12) for i in range(5)]
    return gpx_document(coords, name="Thames Path", start_ms=BASE_TIME_MS)


@pytest.fixture
def sample_tcx() -> bytes:
    return b"""<?xml version="1.0" encoding="UTF-8"?>
<TrainingCenterDatabase xmlns="http://www.garmin.com/xmlschemas/TrainingCenterDatabase/v2"
    xmlns:ns3="http://www.garmin.com/xmlschemas/ActivityExtension/v2">
  <Activities>
    <Activity Sport="Biking">
      <Id>2024-05-01T08:00:00Z</Id>
      <Lap StartTime="2024-05-01T08:00:00Z">
        <Track>
          <Trackpoint>
            <Time>2024-05-01T08:00:00Z</Time>
            <Position><LatitudeDegrees>51.5</LatitudeDegrees><LongitudeDegrees>-0.12</LongitudeDegrees></Position>
            <AltitudeMeters>12.0</AltitudeMeters>
            <HeartRateBpm><Value>120</Value></HeartRateBpm>
            <Cadence>80</Cadence>
            <Extensions><ns3:TPX><ns3:Speed>5.5</ns3:Speed><ns3:Watts>180</ns3:Watts></ns3:TPX></Extensions>
          </Trackpoint>
          <Trackpoint>
            <Time>2024-05-01T08:00:30Z</Time>
          </Trackpoint>
          <Trackpoint>
            <Time>2024-05-01T08:01:00Z</Time>
            <Position><LatitudeDegrees>51.501</LatitudeDegrees><LongitudeDegrees>-0.12</LongitudeDegrees></Position>
            <AltitudeMeters>15.0</AltitudeMeters>
            <HeartRateBpm><Value>130</Value></HeartRateBpm>
          </Trackpoint>
        </Track>
      </Lap>
      <Notes>Commute</Notes>
    </Activity>
  </Activities>
</TrainingCenterDatabase>
"""


@pytest.fixture
def sample_kml() -> bytes:
    return b"""<?xml version="1.0" encoding="UTF-8"?>
<kml xmlns="http://www.opengis.net/kml/2.2">
  <Document>
    <name>Ridge Walk</name>
    <Placemark>
      <LineString>
        <coordinates>
          -3.0,54.0,100 -3.0,54.001,110
          -3.0,54.002,105
        </coordinates>
      </LineString>
    </Placemark>
  </Document>
</kml>
"""
