"""End-to-end ingestion jobs against in-memory collaborators."""

from __future__ import annotations

import logging
import threading
import time

import pytest

from journey_tracks import parsers
from journey_tracks.errors import InvalidTransitionError, TransportError
from journey_tracks.models import Journey, ProcessingStatus
from journey_tracks.services import (
    IngestionJob,
    IngestionService,
    IngestionServiceConfig,
    UploadRequest,
)
from journey_tracks.services import ingestion_service as ingestion_module
from journey_tracks.storage import InMemoryActivityStore, InMemoryObjectStorage

from conftest import BASE_TIME_MS, gpx_document


@pytest.fixture
def service(store: InMemoryActivityStore, object_storage: InMemoryObjectStorage):
    config = IngestionServiceConfig(max_workers=2, timeout_s=5.0, poll_interval_s=0.02)
    with IngestionService(store, object_storage, config=config) as svc:
        yield svc


def test_gpx_upload_completes(
    service: IngestionService,
    store: InMemoryActivityStore,
    object_storage: InMemoryObjectStorage,
    journey: Journey,
    sample_gpx: bytes,
) -> None:
    result = service.ingest(journey.id, UploadRequest("thames.gpx", sample_gpx, "walking"))

    assert result.ok
    assert result.error is None
    activity = store.get_activity(result.activity_id)
    assert activity.status is ProcessingStatus.COMPLETED
    assert activity.name == "Thames Path"
    assert activity.activity_type == "walking"
    assert activity.original_file_name == "thames.gpx"
    assert activity.point_count == 5
    assert activity.stats.distance_m == 445
    assert activity.activity_date_ms == BASE_TIME_MS
    assert activity.route.indices[0] == 0
    assert activity.file_ref in object_storage
    totals = store.get_journey(journey.id).totals
    assert totals.activity_count == 1
    assert totals.total_distance_m == 445
    assert totals.last_activity_date_ms == BASE_TIME_MS


def test_unnamed_track_keeps_file_stem(
    service: IngestionService, store: InMemoryActivityStore, journey: Journey
) -> None:
    data = gpx_document([(1.0, 1.0), (1.001, 1.0)], name=None)

    result = service.ingest(journey.id, UploadRequest("evening-walk.gpx", data))

    assert store.get_activity(result.activity_id).name == "evening-walk"


def test_declared_sport_used_when_type_not_given(
    service: IngestionService, store: InMemoryActivityStore, journey: Journey, sample_tcx: bytes
) -> None:
    implicit = service.ingest(journey.id, UploadRequest("commute.tcx", sample_tcx))
    explicit = service.ingest(journey.id, UploadRequest("commute.tcx", sample_tcx, "running"))

    assert store.get_activity(implicit.activity_id).activity_type == "cycling"
    assert store.get_activity(explicit.activity_id).activity_type == "running"


def test_default_type_when_nothing_declared(
    service: IngestionService, store: InMemoryActivityStore, journey: Journey, sample_kml: bytes
) -> None:
    result = service.ingest(journey.id, UploadRequest("ridge.kml", sample_kml))

    assert store.get_activity(result.activity_id).activity_type == "other"


def test_malformed_fit_marks_activity_failed(
    service: IngestionService,
    store: InMemoryActivityStore,
    journey: Journey,
    caplog: pytest.LogCaptureFixture,
) -> None:
    with caplog.at_level(logging.WARNING, logger="IngestionService"):
        result = service.ingest(journey.id, UploadRequest("ride.fit", b"not a fit file"))

    assert result.status is ProcessingStatus.FAILED
    assert "malformed" in result.error
    activity = store.get_activity(result.activity_id)
    assert activity.status is ProcessingStatus.FAILED
    assert activity.error == result.error
    assert activity.stats is None
    assert activity.points == []
    assert "Could not parse ride.fit" in caplog.text
    totals = store.get_journey(journey.id).totals
    assert totals.activity_count == 1
    assert totals.total_distance_m == 0


def test_batch_failures_are_isolated(
    service: IngestionService,
    store: InMemoryActivityStore,
    journey: Journey,
    sample_gpx: bytes,
    sample_kml: bytes,
) -> None:
    results = service.process_batch(
        journey.id,
        [
            UploadRequest("a.gpx", sample_gpx),
            UploadRequest("b.fit", b"garbage"),
            UploadRequest("c.kml", sample_kml),
            UploadRequest("d.csv", b"lat,lon"),
        ],
    )

    assert [r.file_name for r in results] == ["a.gpx", "b.fit", "c.kml", "d.csv"]
    assert [r.status for r in results] == [
        ProcessingStatus.COMPLETED,
        ProcessingStatus.FAILED,
        ProcessingStatus.COMPLETED,
        ProcessingStatus.FAILED,
    ]
    assert "unsupported-format" in results[3].error
    assert store.get_journey(journey.id).totals.activity_count == 4


def test_oversized_file_fails_during_processing(
    service: IngestionService,
    journey: Journey,
    monkeypatch: pytest.MonkeyPatch,
    sample_gpx: bytes,
) -> None:
    monkeypatch.setattr(parsers, "MAX_FILE_SIZE_BYTES", 10)

    result = service.ingest(journey.id, UploadRequest("big.gpx", sample_gpx))

    assert result.status is ProcessingStatus.FAILED
    assert "too large" in result.error


def test_transport_failure_fails_upload(
    store: InMemoryActivityStore, journey: Journey, sample_gpx: bytes
) -> None:
    class OfflineStorage(InMemoryObjectStorage):
        def upload(self, upload_url: str, data: bytes, content_type: str) -> str:
            raise TransportError("connection reset by peer")

    with IngestionService(store, OfflineStorage()) as service:
        result = service.ingest(journey.id, UploadRequest("walk.gpx", sample_gpx))

    assert result.status is ProcessingStatus.FAILED
    assert "connection reset" in result.error
    assert store.get_activity(result.activity_id).file_ref is None


def test_unexpected_error_is_logged_with_traceback(
    service: IngestionService,
    journey: Journey,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
    sample_gpx: bytes,
) -> None:
    def explode(points, *_args, **_kwargs):
        raise ZeroDivisionError("boom")

    monkeypatch.setattr(ingestion_module, "compute_stats", explode)

    with caplog.at_level(logging.ERROR, logger="IngestionService"):
        result = service.ingest(journey.id, UploadRequest("walk.gpx", sample_gpx))

    assert result.status is ProcessingStatus.FAILED
    assert result.error == "Processing failed: boom"
    assert any(record.exc_info for record in caplog.records)


def test_slow_job_is_abandoned_and_late_result_discarded(
    store: InMemoryActivityStore,
    object_storage: InMemoryObjectStorage,
    journey: Journey,
    monkeypatch: pytest.MonkeyPatch,
    sample_gpx: bytes,
) -> None:
    release = threading.Event()
    real_parse = ingestion_module.parse_track

    def slow_parse(data, hint):
        release.wait(5)
        return real_parse(data, hint)

    monkeypatch.setattr(ingestion_module, "parse_track", slow_parse)
    config = IngestionServiceConfig(max_workers=1, timeout_s=0.1, poll_interval_s=0.02)

    with IngestionService(store, object_storage, config=config) as service:
        result = service.ingest(journey.id, UploadRequest("slow.gpx", sample_gpx))
        release.set()

    assert result.status is ProcessingStatus.FAILED
    assert result.timed_out is True
    assert "timed out" in result.error
    activity = store.get_activity(result.activity_id)
    assert activity.status is ProcessingStatus.FAILED
    assert activity.stats is None
    assert activity.points == []


def test_close_does_not_wait_for_abandoned_workers(
    store: InMemoryActivityStore,
    object_storage: InMemoryObjectStorage,
    journey: Journey,
    monkeypatch: pytest.MonkeyPatch,
    sample_gpx: bytes,
) -> None:
    release = threading.Event()
    real_parse = ingestion_module.parse_track

    def stuck_parse(data, hint):
        release.wait(10)
        return real_parse(data, hint)

    monkeypatch.setattr(ingestion_module, "parse_track", stuck_parse)
    config = IngestionServiceConfig(max_workers=1, timeout_s=0.1, poll_interval_s=0.02)

    try:
        started = time.monotonic()
        with IngestionService(store, object_storage, config=config) as service:
            result = service.ingest(journey.id, UploadRequest("stuck.gpx", sample_gpx))
        elapsed = time.monotonic() - started
    finally:
        release.set()

    assert result.timed_out is True
    assert elapsed < 5.0
    assert store.get_activity(result.activity_id).status is ProcessingStatus.FAILED


def test_job_rejects_illegal_transitions(sample_gpx: bytes) -> None:
    job = IngestionJob("journey_1", "activity_1", UploadRequest("a.gpx", sample_gpx), "a")

    with pytest.raises(InvalidTransitionError):
        job.check_transition(ProcessingStatus.COMPLETED)
    job.check_transition(ProcessingStatus.UPLOADING)
    job.check_transition(ProcessingStatus.FAILED)

    job.status = ProcessingStatus.FAILED
    for target in ProcessingStatus:
        with pytest.raises(InvalidTransitionError):
            job.check_transition(target)


def test_config_validation(store: InMemoryActivityStore, object_storage: InMemoryObjectStorage) -> None:
    with pytest.raises(ValueError):
        IngestionService(store, object_storage, config=IngestionServiceConfig(max_workers=0))
    with pytest.raises(ValueError):
        IngestionService(store, object_storage, config=IngestionServiceConfig(timeout_s=0))
