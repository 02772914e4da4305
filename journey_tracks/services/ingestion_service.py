"""File ingestion service (application layer).

Each uploaded file becomes an :class:`IngestionJob` that walks the state
graph ``pending -> uploading -> processing -> completed | failed``. Jobs of a
batch run concurrently on a bounded thread pool; the batch runner watches the
futures and abandons any job that outlives the processing timeout. Once a job
has reached a terminal state every later transition is rejected, which is how
a late result from an abandoned job gets discarded.
"""

from __future__ import annotations

from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
import logging
from pathlib import PurePath
import threading
import time
from typing import Dict, FrozenSet, List, Optional, Sequence

from ..activity_types import canonical_activity_type
from ..config import (
    DEFAULT_ACTIVITY_TYPE,
    INGEST_MAX_WORKERS,
    MAX_SIMPLIFIED_POINTS,
    PROCESSING_POLL_INTERVAL_SECONDS,
    PROCESSING_TIMEOUT_SECONDS,
    SIMPLIFICATION_TOLERANCE_M,
    USE_DECLARED_ACTIVITY_TYPE,
)
from ..errors import (
    InvalidTransitionError,
    ParseError,
    ProcessingTimeoutError,
    StorageError,
    TransportError,
)
from ..geometry import compute_stats, simplify_route
from ..models import (
    Activity,
    ActivityUpdate,
    ProcessingStatus,
    RawTrack,
    declared_sport,
)
from ..parsers import parse_track
from ..storage.base import ActivityStore, ObjectStorage
from .aggregate_service import JourneyAggregateRecalculator

_ALLOWED_TRANSITIONS: Dict[ProcessingStatus, FrozenSet[ProcessingStatus]] = {
    ProcessingStatus.PENDING: frozenset(
        {ProcessingStatus.UPLOADING, ProcessingStatus.FAILED}
    ),
    ProcessingStatus.UPLOADING: frozenset(
        {ProcessingStatus.PROCESSING, ProcessingStatus.FAILED}
    ),
    ProcessingStatus.PROCESSING: frozenset(
        {ProcessingStatus.COMPLETED, ProcessingStatus.FAILED}
    ),
    ProcessingStatus.COMPLETED: frozenset(),
    ProcessingStatus.FAILED: frozenset(),
}


@dataclass(slots=True)
class UploadRequest:
    file_name: str
    data: bytes
    activity_type: Optional[str] = None
    content_type: str = "application/octet-stream"


@dataclass(frozen=True, slots=True)
class IngestionResult:
    activity_id: str
    file_name: str
    status: ProcessingStatus
    error: Optional[str] = None
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.status is ProcessingStatus.COMPLETED


class IngestionJob:
    """Lifecycle of one uploaded file.

    ``lock`` serialises every transition together with the store write that
    records it, so a timeout and a worker can never both move the job.
    """

    def __init__(
        self,
        journey_id: str,
        activity_id: str,
        request: UploadRequest,
        default_name: str,
    ) -> None:
        self.journey_id = journey_id
        self.activity_id = activity_id
        self.request = request
        self.default_name = default_name
        self.lock = threading.Lock()
        self.status = ProcessingStatus.PENDING
        self.error: Optional[str] = None
        self.file_ref: Optional[str] = None
        self.started_at: Optional[float] = None
        self.timed_out = False

    def check_transition(self, target: ProcessingStatus) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Job for activity {self.activity_id} cannot move from "
                f"{self.status.value} to {target.value}"
            )

    def expired(self, now: float, timeout_s: float) -> bool:
        return (
            self.started_at is not None
            and not self.status.is_terminal
            and now - self.started_at > timeout_s
        )

    def result(self) -> IngestionResult:
        return IngestionResult(
            activity_id=self.activity_id,
            file_name=self.request.file_name,
            status=self.status,
            error=self.error,
            timed_out=self.timed_out,
        )

    def __repr__(self) -> str:
        return (
            f"IngestionJob(activity_id={self.activity_id!r}, "
            f"file_name={self.request.file_name!r}, status={self.status.value})"
        )


@dataclass(slots=True)
class IngestionServiceConfig:
    max_workers: int = INGEST_MAX_WORKERS
    timeout_s: float = PROCESSING_TIMEOUT_SECONDS
    poll_interval_s: float = PROCESSING_POLL_INTERVAL_SECONDS
    default_activity_type: str = DEFAULT_ACTIVITY_TYPE
    use_declared_activity_type: bool = USE_DECLARED_ACTIVITY_TYPE
    simplification_tolerance_m: float = SIMPLIFICATION_TOLERANCE_M
    max_simplified_points: int = MAX_SIMPLIFIED_POINTS
    logger: logging.Logger | None = None


class IngestionService:
    def __init__(
        self,
        store: ActivityStore,
        object_storage: ObjectStorage,
        recalculator: JourneyAggregateRecalculator | None = None,
        config: IngestionServiceConfig | None = None,
    ):
        self.store = store
        self.object_storage = object_storage
        self.recalculator = recalculator or JourneyAggregateRecalculator(store)
        self.config = config or IngestionServiceConfig()
        if self.config.max_workers <= 0:
            raise ValueError("max_workers must be positive")
        if self.config.timeout_s <= 0:
            raise ValueError("timeout_s must be positive")
        self._log = self.config.logger or logging.getLogger(self.__class__.__name__)
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers, thread_name_prefix="ingest"
        )
        self._abandoned_jobs = 0

    # --- lifecycle ----------------------------------------------------
    def close(self, wait_for_workers: bool = True) -> None:
        """Shut the worker pool down.

        Once any job has been abandoned the pool is not joined: queued jobs are
        cancelled and stuck workers finish in the background, where their
        results are discarded.
        """

        if self._abandoned_jobs:
            self._executor.shutdown(wait=False, cancel_futures=True)
        else:
            self._executor.shutdown(wait=wait_for_workers)

    def __enter__(self) -> "IngestionService":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # --- public API ---------------------------------------------------
    def start_job(self, journey_id: str, request: UploadRequest) -> IngestionJob:
        """Create the ``pending`` placeholder activity for ``request``."""

        default_name = PurePath(request.file_name).stem or request.file_name
        activity_type = canonical_activity_type(
            request.activity_type, default=self.config.default_activity_type
        )
        placeholder = self.store.create_activity(
            Activity(
                journey_id=journey_id,
                name=default_name,
                activity_type=activity_type,
                original_file_name=request.file_name,
                status=ProcessingStatus.PENDING,
            )
        )
        self._log.debug(
            "Queued %s as activity %s in journey %s",
            request.file_name,
            placeholder.id,
            journey_id,
        )
        return IngestionJob(journey_id, placeholder.id, request, default_name)

    def ingest(self, journey_id: str, request: UploadRequest) -> IngestionResult:
        return self.process_batch(journey_id, [request])[0]

    def process_batch(
        self, journey_id: str, requests: Sequence[UploadRequest]
    ) -> List[IngestionResult]:
        """Ingest ``requests`` concurrently; results come back in request order.

        A failing file never affects its siblings. Jobs still running after
        ``timeout_s`` are marked failed and their workers' results discarded.
        """

        jobs = [self.start_job(journey_id, request) for request in requests]
        future_to_job: Dict[Future, IngestionJob] = {
            self._executor.submit(self.run_job, job): job for job in jobs
        }
        pending = set(future_to_job)
        while pending:
            done, pending = wait(
                pending,
                timeout=self.config.poll_interval_s,
                return_when=FIRST_COMPLETED,
            )
            for fut in done:
                exc = fut.exception()
                if exc is not None:
                    self._log.error(
                        "Ingestion worker for %s crashed: %s",
                        future_to_job[fut].request.file_name,
                        exc,
                    )
            now = time.monotonic()
            for fut in list(pending):
                job = future_to_job[fut]
                if job.expired(now, self.config.timeout_s):
                    self._abandon(job)
                    pending.discard(fut)

        results = [job.result() for job in jobs]
        completed = sum(1 for r in results if r.ok)
        self._log.info(
            "Ingested %d/%d files into journey %s", completed, len(results), journey_id
        )
        return results

    def run_job(self, job: IngestionJob) -> IngestionResult:
        """Drive ``job`` to a terminal state on the current thread."""

        try:
            self._execute(job)
        except InvalidTransitionError:
            self._log.info(
                "Discarding late result for %s (activity %s)",
                job.request.file_name,
                job.activity_id,
            )
            self._release_orphan(job)
        except ParseError as exc:
            self._log.warning("Could not parse %s: %s", job.request.file_name, exc)
            self._fail(job, str(exc))
        except (StorageError, TransportError) as exc:
            self._log.warning(
                "Storage failure while ingesting %s: %s", job.request.file_name, exc
            )
            self._fail(job, str(exc))
        except Exception as exc:  # noqa: BLE001
            self._log.error(
                "Unexpected error while ingesting %s", job.request.file_name, exc_info=True
            )
            self._fail(job, f"Processing failed: {exc}")
        return job.result()

    # --- state machine ------------------------------------------------
    def _execute(self, job: IngestionJob) -> None:
        request = job.request
        self._advance(job, ProcessingStatus.UPLOADING)
        upload_url = self.object_storage.create_upload_url()
        job.file_ref = self.object_storage.upload(
            upload_url, request.data, request.content_type
        )
        self._advance(
            job, ProcessingStatus.PROCESSING, ActivityUpdate(file_ref=job.file_ref)
        )

        data = self.object_storage.read(job.file_ref)
        track = parse_track(data, request.file_name)
        activity_type = self._resolve_activity_type(request, track)
        points = list(track.points)
        stats = compute_stats(points, activity_type)
        route = simplify_route(
            points,
            self.config.simplification_tolerance_m,
            self.config.max_simplified_points,
        )
        self._advance(
            job,
            ProcessingStatus.COMPLETED,
            ActivityUpdate(
                name=track.name or job.default_name,
                activity_type=activity_type,
                points=points,
                route=route,
                stats=stats,
                activity_date_ms=stats.start_time_ms,
                clear_error=True,
            ),
        )
        self._log.info(
            "Processed %s: %d points, %d m",
            request.file_name,
            stats.point_count,
            stats.distance_m,
        )
        self.recalculator.recalculate(job.journey_id)

    def _advance(
        self,
        job: IngestionJob,
        target: ProcessingStatus,
        update: ActivityUpdate | None = None,
    ) -> None:
        with job.lock:
            job.check_transition(target)
            patch = update or ActivityUpdate()
            patch.status = target
            self.store.update_activity(job.activity_id, patch)
            job.status = target
            if target is ProcessingStatus.UPLOADING:
                job.started_at = time.monotonic()

    def _fail(self, job: IngestionJob, message: str) -> None:
        with job.lock:
            if job.status.is_terminal:
                return
            self.store.update_activity(
                job.activity_id,
                ActivityUpdate(status=ProcessingStatus.FAILED, error=message),
            )
            job.status = ProcessingStatus.FAILED
            job.error = message
        self.recalculator.recalculate(job.journey_id)

    def _abandon(self, job: IngestionJob) -> None:
        exc = ProcessingTimeoutError(
            f"Processing timed out after {self.config.timeout_s:g}s"
        )
        with job.lock:
            if job.status.is_terminal:
                return
            self.store.update_activity(
                job.activity_id,
                ActivityUpdate(status=ProcessingStatus.FAILED, error=str(exc)),
            )
            job.status = ProcessingStatus.FAILED
            job.error = str(exc)
            job.timed_out = True
            self._abandoned_jobs += 1
        self._log.warning(
            "Abandoning %s (activity %s): %s",
            job.request.file_name,
            job.activity_id,
            exc,
        )
        self.recalculator.recalculate(job.journey_id)

    def _release_orphan(self, job: IngestionJob) -> None:
        file_ref = job.file_ref
        if not file_ref or self.store.is_file_referenced(file_ref):
            return
        try:
            self.object_storage.delete(file_ref)
        except (StorageError, TransportError) as exc:
            self._log.warning("Could not release orphaned file %s: %s", file_ref, exc)

    def _resolve_activity_type(self, request: UploadRequest, track: RawTrack) -> str:
        requested = canonical_activity_type(
            request.activity_type, default=self.config.default_activity_type
        )
        if request.activity_type is None and self.config.use_declared_activity_type:
            sport = declared_sport(track)
            if sport:
                return canonical_activity_type(sport, default=requested)
        return requested


__all__ = [
    "IngestionJob",
    "IngestionResult",
    "IngestionService",
    "IngestionServiceConfig",
    "UploadRequest",
]
