"""Deterministic scoring utilities for matching.

A match score combines five sub-scores, each in [0, 1]:

    score = 100 * (
        distance_score * w.distance   # closer is better, exponential decay
        + age_score * w.age           # peak at the middle of the age range
        + preference_score * w.sports # hair colour + shared sports
        + verified_score * w.verified # 1 if verified
        + height_score * w.height     # peak at the middle of the height range
    )

clamped to [0, 100]. Weights need not sum to 1.
"""

from __future__ import annotations

from math import exp, isfinite

from lume_match.models import Preferences, Profile, ScoringWeights
from lume_match.tools.filter_tools import calculate_preference_score
from lume_match.utils.geo import haversine_km

MAX_SCORE = 100.0


def calculate_distance_score(distance_km: float, max_distance_km: float) -> float:
    """Exponential decay towards the distance cap; exactly 0 at or beyond it."""

    if max_distance_km <= 0 or distance_km >= max_distance_km:
        return 0.0

    return exp(-distance_km / (max_distance_km * 0.5))


def calculate_range_score(value: float, min_value: float, max_value: float) -> float:
    """Triangular score peaking at the range midpoint.

    Reaches 0 at the edges and beyond. A zero-width or inverted range scores
    every value as 1.0.
    """

    half_range = (max_value - min_value) / 2.0
    if half_range <= 0:
        return 1.0

    mid = (min_value + max_value) / 2.0
    deviation = abs(value - mid) / half_range
    return 1.0 - min(1.0, deviation)


def calculate_age_score(age: int, min_age: int, max_age: int) -> float:
    return calculate_range_score(age, min_age, max_age)


def calculate_height_score(
    height_cm: int, min_height_cm: int, max_height_cm: int
) -> float:
    return calculate_range_score(height_cm, min_height_cm, max_height_cm)


def calculate_verified_score(profile: Profile) -> float:
    return 1.0 if profile.is_verified else 0.0


def combine_scores(
    weights: ScoringWeights,
    *,
    distance: float,
    age: float,
    preference: float,
    verified: float,
    height: float,
) -> float:
    """Weight the sub-scores and scale to [0, 100]."""

    total = MAX_SCORE * (
        distance * weights.distance
        + age * weights.age
        + preference * weights.sports
        + verified * weights.verified
        + height * weights.height
    )
    if not isfinite(total):
        return 0.0
    return min(max(total, 0.0), MAX_SCORE)


def calculate_match_score(
    profile: Profile,
    preferences: Preferences,
    weights: ScoringWeights,
) -> tuple[float, list[str]]:
    """Score a candidate against the requester's preferences.

    Returns:
        The score in [0, 100] and the sports both sides share.
    """

    distance_km = haversine_km(
        preferences.latitude,
        preferences.longitude,
        profile.latitude,
        profile.longitude,
    )
    preference, shared_sports = calculate_preference_score(profile, preferences)

    score = combine_scores(
        weights,
        distance=calculate_distance_score(distance_km, preferences.max_distance_km),
        age=calculate_age_score(profile.age, preferences.min_age, preferences.max_age),
        preference=preference,
        verified=calculate_verified_score(profile),
        height=calculate_height_score(
            profile.height_cm,
            preferences.min_height_cm,
            preferences.max_height_cm,
        ),
    )
    return score, shared_sports
