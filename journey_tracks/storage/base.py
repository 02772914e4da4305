"""Contracts for the external persistence and object-storage collaborators."""

from __future__ import annotations

from typing import List, Protocol

from ..models import Activity, ActivityUpdate, Journey, JourneyTotals


class ActivityStore(Protocol):
    """Persistence layer for journeys and activities.

    Implementations must hand out activities whose ``points`` list is not
    shared with the stored record, and apply each :class:`ActivityUpdate` as
    one atomic write.
    """

    def create_journey(self, journey: Journey) -> Journey: ...

    def get_journey(self, journey_id: str) -> Journey: ...

    def update_journey_totals(self, journey_id: str, totals: JourneyTotals) -> Journey: ...

    def create_activity(self, activity: Activity) -> Activity: ...

    def get_activity(self, activity_id: str) -> Activity: ...

    def update_activity(self, activity_id: str, update: ActivityUpdate) -> Activity: ...

    def delete_activity(self, activity_id: str) -> None: ...

    def list_activities(self, journey_id: str) -> List[Activity]: ...

    def is_file_referenced(self, file_ref: str) -> bool: ...


class ObjectStorage(Protocol):
    """Blob storage: obtain a write location, push bytes, read by reference."""

    def create_upload_url(self) -> str: ...

    def upload(self, upload_url: str, data: bytes, content_type: str) -> str: ...

    def read(self, file_ref: str) -> bytes: ...

    def delete(self, file_ref: str) -> None: ...


__all__ = ["ActivityStore", "ObjectStorage"]
