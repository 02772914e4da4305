"""Thread-safe in-memory implementations of the storage contracts.

Used by the CLI and the test-suite. Records are copied on the way in and
out so callers never hold a reference to the stored point list.
"""

from __future__ import annotations

from dataclasses import replace
import itertools
import logging
from threading import RLock
from typing import Dict, List, Set
import uuid

from ..errors import ActivityNotFoundError, JourneyNotFoundError, StorageError
from ..models import Activity, ActivityUpdate, Journey, JourneyTotals, now_ms

LOGGER = logging.getLogger(__name__)

_UPDATABLE_FIELDS = (
    "name",
    "activity_type",
    "file_ref",
    "route",
    "stats",
    "status",
    "description",
    "color",
    "notes",
    "activity_date_ms",
)


def _copy_activity(activity: Activity) -> Activity:
    return replace(activity, points=list(activity.points), tags=list(activity.tags))


class InMemoryActivityStore:
    """Dictionary-backed :class:`~journey_tracks.storage.base.ActivityStore`."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._journeys: Dict[str, Journey] = {}
        self._activities: Dict[str, Activity] = {}
        self._ids = itertools.count(1)

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._ids)}"

    # --- journeys -----------------------------------------------------
    def create_journey(self, journey: Journey) -> Journey:
        with self._lock:
            stored = replace(journey, id=journey.id or self._next_id("journey"))
            if stored.id in self._journeys:
                raise StorageError(f"Journey {stored.id} already exists")
            self._journeys[stored.id] = stored
            return replace(stored)

    def get_journey(self, journey_id: str) -> Journey:
        with self._lock:
            journey = self._journeys.get(journey_id)
            if journey is None:
                raise JourneyNotFoundError(f"Journey {journey_id} not found")
            return replace(journey)

    def update_journey_totals(self, journey_id: str, totals: JourneyTotals) -> Journey:
        with self._lock:
            journey = self._journeys.get(journey_id)
            if journey is None:
                raise JourneyNotFoundError(f"Journey {journey_id} not found")
            updated = replace(journey, totals=totals, updated_at_ms=now_ms())
            self._journeys[journey_id] = updated
            return replace(updated)

    # --- activities ---------------------------------------------------
    def create_activity(self, activity: Activity) -> Activity:
        with self._lock:
            if activity.journey_id not in self._journeys:
                raise JourneyNotFoundError(f"Journey {activity.journey_id} not found")
            stored = _copy_activity(activity)
            stored.id = activity.id or self._next_id("activity")
            if stored.id in self._activities:
                raise StorageError(f"Activity {stored.id} already exists")
            self._activities[stored.id] = stored
            LOGGER.debug("Created activity %s in journey %s", stored.id, stored.journey_id)
            return _copy_activity(stored)

    def get_activity(self, activity_id: str) -> Activity:
        with self._lock:
            activity = self._activities.get(activity_id)
            if activity is None:
                raise ActivityNotFoundError(f"Activity {activity_id} not found")
            return _copy_activity(activity)

    def update_activity(self, activity_id: str, update: ActivityUpdate) -> Activity:
        with self._lock:
            current = self._activities.get(activity_id)
            if current is None:
                raise ActivityNotFoundError(f"Activity {activity_id} not found")
            changes = {
                name: getattr(update, name)
                for name in _UPDATABLE_FIELDS
                if getattr(update, name) is not None
            }
            if update.points is not None:
                changes["points"] = list(update.points)
            if update.tags is not None:
                changes["tags"] = list(update.tags)
            if update.error is not None:
                changes["error"] = update.error
            elif update.clear_error:
                changes["error"] = None
            updated = replace(current, **changes, updated_at_ms=now_ms())
            self._activities[activity_id] = updated
            return _copy_activity(updated)

    def delete_activity(self, activity_id: str) -> None:
        with self._lock:
            if self._activities.pop(activity_id, None) is None:
                raise ActivityNotFoundError(f"Activity {activity_id} not found")

    def list_activities(self, journey_id: str) -> List[Activity]:
        with self._lock:
            return [
                _copy_activity(activity)
                for activity in self._activities.values()
                if activity.journey_id == journey_id
            ]

    def is_file_referenced(self, file_ref: str) -> bool:
        with self._lock:
            return any(a.file_ref == file_ref for a in self._activities.values())


class InMemoryObjectStorage:
    """Dictionary-backed :class:`~journey_tracks.storage.base.ObjectStorage`."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._blobs: Dict[str, bytes] = {}
        self._content_types: Dict[str, str] = {}
        self._open_uploads: Set[str] = set()

    def create_upload_url(self) -> str:
        url = f"memory://upload/{uuid.uuid4().hex}"
        with self._lock:
            self._open_uploads.add(url)
        return url

    def upload(self, upload_url: str, data: bytes, content_type: str) -> str:
        with self._lock:
            if upload_url not in self._open_uploads:
                raise StorageError(f"Unknown or already used upload URL: {upload_url}")
            self._open_uploads.discard(upload_url)
            file_ref = f"blob_{uuid.uuid4().hex}"
            self._blobs[file_ref] = bytes(data)
            self._content_types[file_ref] = content_type
            return file_ref

    def read(self, file_ref: str) -> bytes:
        with self._lock:
            data = self._blobs.get(file_ref)
        if data is None:
            raise StorageError(f"File not found for storage reference: {file_ref}")
        return data

    def delete(self, file_ref: str) -> None:
        with self._lock:
            self._blobs.pop(file_ref, None)
            self._content_types.pop(file_ref, None)

    def __contains__(self, file_ref: object) -> bool:
        with self._lock:
            return file_ref in self._blobs


__all__ = ["InMemoryActivityStore", "InMemoryObjectStorage"]
