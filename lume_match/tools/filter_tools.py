"""Candidate filtering predicates and soft-preference scoring.

Each rule is a small named predicate so it can be tested on its own. The
matcher composes them in two stages: the cheap query check (bounding box,
exclusions, coarse demographics) runs first, then the demographic check
against the full preferences, which also covers availability.
"""

from __future__ import annotations

from collections.abc import Collection

from lume_match.models import CandidateQuery, Preferences, Profile
from lume_match.utils.geo import is_within_bounding_box

# Shared sports beyond this count add nothing to the preference score.
SPORTS_CAP = 5

HAIR_POINTS = 1.0
SPORTS_POINTS = 2.0


def is_available(profile: Profile) -> bool:
    """Active profiles that are not in a timeout."""

    return profile.is_active and not profile.is_timeout


def accepts_label(value: str, accepted: Collection[str]) -> bool:
    """An empty accept-set matches any label."""

    return not accepted or value in accepted


def accepts_gender(profile: Profile, accepted: Collection[str]) -> bool:
    return accepts_label(profile.gender, accepted)


def accepts_hair_color(profile: Profile, accepted: Collection[str]) -> bool:
    return accepts_label(profile.hair_color, accepted)


def within_age_range(profile: Profile, min_age: int, max_age: int) -> bool:
    return min_age <= profile.age <= max_age


def within_height_range(
    profile: Profile, min_height_cm: int, max_height_cm: int
) -> bool:
    return min_height_cm <= profile.height_cm <= max_height_cm


def is_excluded(profile: Profile, exclude_user_ids: Collection[str]) -> bool:
    return profile.user_id in exclude_user_ids


def within_query_area(profile: Profile, query: CandidateQuery) -> bool:
    return is_within_bounding_box(
        profile.latitude, profile.longitude, query.bounding_box
    )


def within_max_distance(distance_km: float, preferences: Preferences) -> bool:
    """Exact radius check; the bounding box only approximates it."""

    return distance_km <= preferences.max_distance_km


def matches_query_constraints(profile: Profile, query: CandidateQuery) -> bool:
    """Geospatial + coarse pre-filter against a derived query."""

    return (
        within_query_area(profile, query)
        and not is_excluded(profile, query.exclude_user_ids)
        and within_age_range(profile, query.min_age, query.max_age)
        and within_height_range(
            profile, query.min_height_cm, query.max_height_cm
        )
        and accepts_gender(profile, query.preferred_genders)
    )


def matches_demographics(profile: Profile, preferences: Preferences) -> bool:
    """Availability and demographic check against the requester's preferences."""

    return (
        is_available(profile)
        and accepts_gender(profile, preferences.preferred_genders)
        and within_age_range(profile, preferences.min_age, preferences.max_age)
        and within_height_range(
            profile, preferences.min_height_cm, preferences.max_height_cm
        )
    )


def calculate_preference_score(
    profile: Profile,
    preferences: Preferences,
    sports_cap: int = SPORTS_CAP,
) -> tuple[float, list[str]]:
    """Soft-preference alignment in [0, 1] plus the shared sports.

    Hair colour is worth 1 point (any colour counts when no preference is
    set). Shared sports are worth up to 2 points, saturating at
    ``sports_cap`` shared sports.
    """

    score = 0.0
    max_score = HAIR_POINTS + SPORTS_POINTS

    if accepts_hair_color(profile, preferences.preferred_hair_colors):
        score += HAIR_POINTS

    wanted = set(preferences.preferred_sports)
    shared_sports: list[str] = []
    for sport in profile.sports_preferences:
        if sport in wanted and sport not in shared_sports:
            shared_sports.append(sport)

    if shared_sports and sports_cap > 0:
        score += min(len(shared_sports), sports_cap) / sports_cap * SPORTS_POINTS

    return score / max_score, shared_sports
