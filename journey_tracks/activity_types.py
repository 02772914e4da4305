"""Utilities for classifying activity types and estimating energy use."""

from __future__ import annotations

from typing import Any

__all__ = [
    "normalize_activity_type",
    "canonical_activity_type",
    "metabolic_equivalent",
    "is_foot_sport",
]

# Aliases seen in TCX ``Sport`` attributes, FIT ``sport`` fields and user input.
_ALIASES = {
    "run": "running",
    "running": "running",
    "trail_running": "running",
    "trail running": "running",
    "treadmill_running": "running",
    "jog": "running",
    "walk": "walking",
    "walking": "walking",
    "hike": "hiking",
    "hiking": "hiking",
    "ride": "cycling",
    "bike": "cycling",
    "biking": "cycling",
    "cycling": "cycling",
    "mountain_biking": "cycling",
    "e_biking": "cycling",
    "swim": "swimming",
    "swimming": "swimming",
    "open_water": "swimming",
    "ski": "skiing",
    "skiing": "skiing",
    "cross_country_skiing": "skiing",
    "kayaking": "paddling",
    "rowing": "paddling",
    "paddling": "paddling",
    "stand_up_paddleboarding": "paddling",
}

_FIXED_MET = {
    "walking": 3.5,
    "hiking": 6.0,
    "swimming": 7.0,
    "skiing": 8.0,
    "paddling": 5.0,
}
_DEFAULT_MET = 4.0

# (upper speed bound km/h, MET) for cycling, checked in order.
_CYCLING_MET_BANDS = ((16.0, 4.0), (19.0, 6.8), (22.0, 8.0), (25.0, 10.0))
_CYCLING_MAX_MET = 12.0


def normalize_activity_type(value: Any) -> str | None:
    """Return a lowercase activity type string or ``None`` when missing.

    Files and callers use inconsistent casing and separators ("Running",
    "trail-running"). Normalising once keeps downstream comparisons
    deterministic.
    """

    if value is None:
        return None
    normalized = str(value).strip().lower().replace("-", "_")
    return normalized or None


def canonical_activity_type(value: Any, default: str = "other") -> str:
    """Map a declared sport onto one of the known activity families."""

    normalized = normalize_activity_type(value)
    if normalized is None:
        return default
    return _ALIASES.get(normalized, normalized)


def is_foot_sport(activity_type: Any) -> bool:
    return canonical_activity_type(activity_type) in {"running", "walking", "hiking"}


def metabolic_equivalent(activity_type: Any, avg_speed_mps: float) -> float:
    """Approximate MET value for an activity family at a given average speed."""

    family = canonical_activity_type(activity_type)
    speed_kmh = max(avg_speed_mps, 0.0) * 3.6
    if family == "running":
        # Roughly one MET per km/h for typical running paces.
        return max(speed_kmh, 6.0)
    if family == "cycling":
        for upper, met in _CYCLING_MET_BANDS:
            if speed_kmh < upper:
                return met
        return _CYCLING_MAX_MET
    return _FIXED_MET.get(family, _DEFAULT_MET)
