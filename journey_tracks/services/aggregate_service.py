"""Journey roll-up totals.

Totals are always rebuilt from the journey's current activities, never
adjusted by deltas, so repeated or overlapping recalculations converge on the
same values.
"""

from __future__ import annotations

import logging
import math
from typing import Sequence

from ..models import Activity, JourneyTotals
from ..storage.base import ActivityStore


def summarize_activities(activities: Sequence[Activity]) -> JourneyTotals:
    """Pure aggregation over a set of activities.

    Activities that have not produced stats yet (pending or failed) still
    count towards ``activity_count`` but contribute nothing else.
    """

    with_stats = [a.stats for a in activities if a.stats is not None]
    return JourneyTotals(
        total_distance_m=sum(s.distance_m for s in with_stats),
        total_elevation_gain_m=sum(s.elevation_gain_m for s in with_stats),
        total_duration_s=math.fsum(s.duration_s for s in with_stats),
        activity_count=len(activities),
        last_activity_date_ms=max((a.activity_date_ms for a in activities), default=None),
    )


class JourneyAggregateRecalculator:
    def __init__(self, store: ActivityStore, logger: logging.Logger | None = None):
        self.store = store
        self._log = logger or logging.getLogger(self.__class__.__name__)

    def recalculate(self, journey_id: str) -> JourneyTotals:
        """Recompute and persist the totals for ``journey_id``."""

        activities = self.store.list_activities(journey_id)
        totals = summarize_activities(activities)
        self.store.update_journey_totals(journey_id, totals)
        self._log.debug(
            "Journey %s totals: %d activities, %d m, %d m gain",
            journey_id,
            totals.activity_count,
            totals.total_distance_m,
            totals.total_elevation_gain_m,
        )
        return totals


__all__ = ["JourneyAggregateRecalculator", "summarize_activities"]
