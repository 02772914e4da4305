"""In-memory store and object storage contracts."""

from __future__ import annotations

import pytest

from journey_tracks.errors import ActivityNotFoundError, JourneyNotFoundError, StorageError
from journey_tracks.models import Activity, ActivityUpdate, Journey, ProcessingStatus
from journey_tracks.storage import InMemoryActivityStore, InMemoryObjectStorage

from conftest import make_points


def test_activity_requires_existing_journey(store: InMemoryActivityStore) -> None:
    with pytest.raises(JourneyNotFoundError):
        store.create_activity(Activity(journey_id="missing", name="x", activity_type="other"))


def test_store_hands_out_copies(store: InMemoryActivityStore, journey: Journey) -> None:
    created = store.create_activity(
        Activity(journey_id=journey.id, name="Walk", activity_type="walking", points=make_points(3))
    )

    created.points.clear()
    created.tags.append("mutated")

    fetched = store.get_activity(created.id)
    assert fetched.point_count == 3
    assert fetched.tags == []


def test_update_applies_only_set_fields(store: InMemoryActivityStore, journey: Journey) -> None:
    created = store.create_activity(
        Activity(journey_id=journey.id, name="Walk", activity_type="walking", notes="keep me")
    )

    updated = store.update_activity(
        created.id, ActivityUpdate(status=ProcessingStatus.FAILED, error="boom")
    )

    assert updated.status is ProcessingStatus.FAILED
    assert updated.error == "boom"
    assert updated.name == "Walk"
    assert updated.notes == "keep me"

    cleared = store.update_activity(
        created.id, ActivityUpdate(status=ProcessingStatus.PENDING, clear_error=True)
    )
    assert cleared.error is None


def test_missing_activity_operations_raise(store: InMemoryActivityStore) -> None:
    with pytest.raises(ActivityNotFoundError):
        store.get_activity("activity_404")
    with pytest.raises(ActivityNotFoundError):
        store.update_activity("activity_404", ActivityUpdate(name="x"))
    with pytest.raises(ActivityNotFoundError):
        store.delete_activity("activity_404")


def test_list_and_file_references(store: InMemoryActivityStore, journey: Journey) -> None:
    other = store.create_journey(Journey(name="Other"))
    store.create_activity(
        Activity(journey_id=journey.id, name="A", activity_type="other", file_ref="blob_1")
    )
    store.create_activity(Activity(journey_id=other.id, name="B", activity_type="other"))

    assert [a.name for a in store.list_activities(journey.id)] == ["A"]
    assert store.is_file_referenced("blob_1")
    assert not store.is_file_referenced("blob_2")


def test_object_storage_upload_read_delete(object_storage: InMemoryObjectStorage) -> None:
    url = object_storage.create_upload_url()
    ref = object_storage.upload(url, b"<gpx/>", "application/gpx+xml")

    assert ref in object_storage
    assert object_storage.read(ref) == b"<gpx/>"

    object_storage.delete(ref)
    object_storage.delete(ref)

    assert ref not in object_storage
    with pytest.raises(StorageError):
        object_storage.read(ref)


def test_upload_urls_are_single_use(object_storage: InMemoryObjectStorage) -> None:
    url = object_storage.create_upload_url()
    object_storage.upload(url, b"one", "application/octet-stream")

    with pytest.raises(StorageError):
        object_storage.upload(url, b"two", "application/octet-stream")
