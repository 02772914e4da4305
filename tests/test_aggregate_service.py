"""Journey totals recalculation."""

from __future__ import annotations

import pytest

from journey_tracks.models import Activity, Journey, JourneyTotals, ProcessingStatus
from journey_tracks.services import JourneyAggregateRecalculator, summarize_activities
from journey_tracks.storage import InMemoryActivityStore

from conftest import BASE_TIME_MS, make_activity, make_points


def test_totals_sum_activities_and_count_unprocessed(
    store: InMemoryActivityStore, journey: Journey
) -> None:
    first = make_activity(store, journey.id, make_points(3, elevations=[0.0, 5.0, 12.0]))
    second = make_activity(
        store, journey.id, make_points(5, start_ms=BASE_TIME_MS + 86_400_000)
    )
    store.create_activity(
        Activity(
            journey_id=journey.id,
            name="broken",
            activity_type="other",
            status=ProcessingStatus.FAILED,
            activity_date_ms=BASE_TIME_MS - 1,
        )
    )

    totals = JourneyAggregateRecalculator(store).recalculate(journey.id)

    assert totals.activity_count == 3
    assert totals.total_distance_m == first.stats.distance_m + second.stats.distance_m
    assert totals.total_elevation_gain_m == 12
    assert totals.total_duration_s == pytest.approx(120.0 + 240.0)
    assert totals.last_activity_date_ms == BASE_TIME_MS + 86_400_000
    assert store.get_journey(journey.id).totals == totals


def test_recalculation_is_idempotent(store: InMemoryActivityStore, journey: Journey) -> None:
    make_activity(store, journey.id, make_points(4))
    recalculator = JourneyAggregateRecalculator(store)

    first = recalculator.recalculate(journey.id)
    second = recalculator.recalculate(journey.id)

    assert first == second


def test_empty_journey_has_zero_totals(store: InMemoryActivityStore, journey: Journey) -> None:
    totals = JourneyAggregateRecalculator(store).recalculate(journey.id)

    assert totals == JourneyTotals()
    assert totals.last_activity_date_ms is None


def test_summarize_is_pure() -> None:
    assert summarize_activities([]) == JourneyTotals()
