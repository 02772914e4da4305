"""Structural edits on processed activities: trim, split, merge and delete.

Every operation validates all of its preconditions before writing anything,
builds brand-new point lists for its outputs and recomputes statistics from
those points. A successful edit is followed by a full recalculation of the
affected journey's totals.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from ..config import MAX_SIMPLIFIED_POINTS, SIMPLIFICATION_TOLERANCE_M
from ..errors import ActivityNotFoundError, StorageError, ValidationError
from ..geometry import combine_stats, compute_stats, simplify_route
from ..models import Activity, ActivityUpdate, ProcessingStatus, TrackPoint
from ..storage.base import ActivityStore, ObjectStorage
from .aggregate_service import JourneyAggregateRecalculator


@dataclass(slots=True)
class EditServiceConfig:
    simplification_tolerance_m: float = SIMPLIFICATION_TOLERANCE_M
    max_simplified_points: int = MAX_SIMPLIFIED_POINTS
    logger: logging.Logger | None = None


class ActivityEditService:
    def __init__(
        self,
        store: ActivityStore,
        object_storage: ObjectStorage | None = None,
        recalculator: JourneyAggregateRecalculator | None = None,
        config: EditServiceConfig | None = None,
    ):
        self.store = store
        self.object_storage = object_storage
        self.recalculator = recalculator or JourneyAggregateRecalculator(store)
        self.config = config or EditServiceConfig()
        self._log = self.config.logger or logging.getLogger(self.__class__.__name__)

    # --- public operations ------------------------------------------
    def trim(self, activity_id: str, start_index: int, end_index: int) -> Activity:
        """Keep points ``start_index..end_index`` (inclusive) and drop the rest."""

        activity = self.store.get_activity(activity_id)
        count = activity.point_count
        if not 0 <= start_index < end_index <= count - 1:
            raise ValidationError(
                f"Invalid trim range [{start_index}, {end_index}] for activity "
                f"{activity_id} with {count} points"
            )
        points = list(activity.points[start_index : end_index + 1])
        updated = self.store.update_activity(
            activity_id, self._geometry_update(points, activity.activity_type)
        )
        self._log.info(
            "Trimmed activity %s from %d to %d points", activity_id, count, len(points)
        )
        self.recalculator.recalculate(activity.journey_id)
        return updated

    def split(
        self, activity_id: str, split_index: int, new_name: str
    ) -> Tuple[Activity, Activity]:
        """Split at ``split_index``; both halves keep the boundary point.

        The original activity keeps the first half. A new activity, named
        ``new_name`` and inheriting the original's descriptive fields, owns
        the second half.
        """

        activity = self.store.get_activity(activity_id)
        count = activity.point_count
        if not 0 <= split_index < count - 1:
            raise ValidationError(
                f"Invalid split index {split_index} for activity {activity_id} "
                f"with {count} points"
            )
        if not new_name or not new_name.strip():
            raise ValidationError("A name is required for the new activity")

        first_points = list(activity.points[: split_index + 1])
        second_points = list(activity.points[split_index:])
        first_update = self._geometry_update(first_points, activity.activity_type)
        second_update = self._geometry_update(second_points, activity.activity_type)

        created = self.store.create_activity(
            Activity(
                journey_id=activity.journey_id,
                name=new_name.strip(),
                activity_type=activity.activity_type,
                original_file_name=activity.original_file_name,
                file_ref=activity.file_ref,
                points=second_points,
                route=second_update.route,
                stats=second_update.stats,
                status=ProcessingStatus.COMPLETED,
                description=activity.description,
                color=activity.color,
                notes=activity.notes,
                tags=list(activity.tags),
                activity_date_ms=second_update.activity_date_ms or activity.activity_date_ms,
            )
        )
        try:
            updated = self.store.update_activity(activity_id, first_update)
        except Exception:
            self._log.warning(
                "Split of activity %s failed; removing new activity %s",
                activity_id,
                created.id,
            )
            self.store.delete_activity(created.id)
            raise
        self._log.info(
            "Split activity %s at index %d into %s (%d points) and %s (%d points)",
            activity_id,
            split_index,
            activity_id,
            len(first_points),
            created.id,
            len(second_points),
        )
        self.recalculator.recalculate(activity.journey_id)
        return updated, created

    def merge(
        self,
        activity_ids: Sequence[str],
        merged_name: str,
        keep_originals: bool = False,
    ) -> Activity:
        """Concatenate activities of one journey, earliest start first.

        Distance, duration, elevation and calories of the inputs are summed;
        max speed is the maximum and average speed is recomputed from the
        summed distance and duration.
        """

        activities = self._load_merge_inputs(activity_ids)
        if not merged_name or not merged_name.strip():
            raise ValidationError("A name is required for the merged activity")

        ordered = sorted(activities, key=_chronological_key)
        points: List[TrackPoint] = [p for a in ordered for p in a.points]
        stats = combine_stats([a.stats for a in ordered if a.stats is not None])
        first = ordered[0]
        merged = self.store.create_activity(
            Activity(
                journey_id=first.journey_id,
                name=merged_name.strip(),
                activity_type=first.activity_type,
                original_file_name=first.original_file_name,
                file_ref=first.file_ref,
                points=points,
                route=self._simplify(points),
                stats=stats,
                status=ProcessingStatus.COMPLETED,
                description=f"Merged from {len(ordered)} activities",
                color=first.color,
                notes="\n\n".join(a.notes for a in ordered if a.notes),
                tags=_unique_tags(tag for a in ordered for tag in a.tags),
                activity_date_ms=stats.start_time_ms or first.activity_date_ms,
            )
        )
        self._log.info(
            "Merged %d activities into %s (%d points)", len(ordered), merged.id, len(points)
        )
        if not keep_originals:
            for activity in ordered:
                self._remove(activity)
        self.recalculator.recalculate(first.journey_id)
        return merged

    def delete(self, activity_id: str) -> None:
        """Remove an activity and release its uploaded file if nothing else uses it."""

        activity = self.store.get_activity(activity_id)
        self._remove(activity)
        self._log.info("Deleted activity %s", activity_id)
        self.recalculator.recalculate(activity.journey_id)

    def update_details(
        self,
        activity_id: str,
        *,
        name: Optional[str] = None,
        activity_type: Optional[str] = None,
        description: Optional[str] = None,
        color: Optional[str] = None,
        notes: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
    ) -> Activity:
        """Patch descriptive fields; stats are only refreshed when the type changes."""

        activity = self.store.get_activity(activity_id)
        if name is not None and not name.strip():
            raise ValidationError("Activity name cannot be empty")
        update = ActivityUpdate(
            name=name.strip() if name is not None else None,
            activity_type=activity_type,
            description=description,
            color=color,
            notes=notes,
            tags=_unique_tags(tags) if tags is not None else None,
        )
        if (
            activity_type is not None
            and activity_type != activity.activity_type
            and activity.points
        ):
            # Calorie estimates depend on the activity type.
            update.stats = compute_stats(activity.points, activity_type)
        updated = self.store.update_activity(activity_id, update)
        self.recalculator.recalculate(activity.journey_id)
        return updated

    # --- helpers ------------------------------------------------------
    def _load_merge_inputs(self, activity_ids: Sequence[str]) -> List[Activity]:
        unique_ids = list(dict.fromkeys(activity_ids))
        if len(unique_ids) < 2:
            raise ValidationError("At least 2 activities required for merging")
        activities: List[Activity] = []
        for activity_id in unique_ids:
            try:
                activities.append(self.store.get_activity(activity_id))
            except ActivityNotFoundError as exc:
                raise ValidationError(f"Activity {activity_id} not found") from exc
        journey_ids = {a.journey_id for a in activities}
        if len(journey_ids) > 1:
            raise ValidationError("All activities must be from the same journey")
        for activity in activities:
            if activity.stats is None or not activity.points:
                raise ValidationError(
                    f"Activity {activity.id} has no processed track to merge"
                )
        return activities

    def _remove(self, activity: Activity) -> None:
        if activity.id is None:
            return
        self.store.delete_activity(activity.id)
        file_ref = activity.file_ref
        if not file_ref or self.object_storage is None:
            return
        if self.store.is_file_referenced(file_ref):
            return
        try:
            self.object_storage.delete(file_ref)
        except StorageError as exc:
            self._log.warning(
                "Activity %s deleted but its file %s could not be removed: %s",
                activity.id,
                file_ref,
                exc,
            )

    def _simplify(self, points: Sequence[TrackPoint]):
        return simplify_route(
            points,
            self.config.simplification_tolerance_m,
            self.config.max_simplified_points,
        )

    def _geometry_update(
        self, points: List[TrackPoint], activity_type: Optional[str]
    ) -> ActivityUpdate:
        stats = compute_stats(points, activity_type)
        return ActivityUpdate(
            points=points,
            route=self._simplify(points),
            stats=stats,
            activity_date_ms=stats.start_time_ms,
        )


def _chronological_key(activity: Activity) -> Tuple[int, int]:
    start = activity.start_time_ms
    return (start if start is not None else activity.activity_date_ms, activity.created_at_ms)


def _unique_tags(tags: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for tag in tags:
        cleaned = tag.strip()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen


__all__ = ["ActivityEditService", "EditServiceConfig"]
