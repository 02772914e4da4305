"""Journey track ingestion, statistics and editing package."""

from .main import main
from .models import Activity, ActivityStats, Journey, JourneyTotals, TrackPoint
from .errors import JourneyTracksError, ParseError, ValidationError

__all__ = [
    "main",
    "Activity",
    "ActivityStats",
    "Journey",
    "JourneyTotals",
    "TrackPoint",
    "JourneyTracksError",
    "ParseError",
    "ValidationError",
]
