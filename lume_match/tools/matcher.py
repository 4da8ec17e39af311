"""Matching engine: multi-stage filter, score, and rank pipeline.

Pipeline stages:
  1. Geospatial bounding-box + coarse query pre-filter
  2. Demographic filtering against the requester's preferences
  3. Exact radius check, then weighted scoring with a minimum-score cutoff
  4. Ranking and truncation

The engine is a pure function of (preferences, candidates, weights, limit).
It holds no mutable state, so one instance can serve concurrent requests.
"""

from __future__ import annotations

from collections.abc import Iterable
from math import isfinite

from lume_match.models import (
    CandidateQuery,
    MatchResult,
    Preferences,
    Profile,
    ScoredMatch,
    ScoringWeights,
)
from lume_match.tools.filter_tools import (
    matches_demographics,
    matches_query_constraints,
    within_max_distance,
)
from lume_match.tools.scoring_tools import calculate_match_score
from lume_match.utils.geo import calculate_bounding_box, haversine_km
from lume_match.utils.logging_config import logger

# Candidates scoring below this (out of 100) are dropped as degenerate.
MIN_MATCH_SCORE = 5.0


def build_candidate_query(preferences: Preferences, limit: int) -> CandidateQuery:
    """Derive the per-request query from the requester's preferences."""

    return CandidateQuery(
        bounding_box=calculate_bounding_box(
            preferences.latitude,
            preferences.longitude,
            preferences.max_distance_km,
        ),
        preferred_genders=frozenset(preferences.preferred_genders),
        min_age=preferences.min_age,
        max_age=preferences.max_age,
        min_height_cm=preferences.min_height_cm,
        max_height_cm=preferences.max_height_cm,
        exclude_user_ids=frozenset({preferences.user_id}),
        limit=max(limit, 0),
    )


def rank_key(match: ScoredMatch) -> tuple[bool, float, bool, float]:
    """Total order: score descending, then distance ascending.

    Non-finite scores or distances sort after every finite value.
    """

    score_ok = isfinite(match.match_score)
    distance_ok = isfinite(match.distance_km)
    return (
        not score_ok,
        -match.match_score if score_ok else 0.0,
        not distance_ok,
        match.distance_km if distance_ok else 0.0,
    )


def rank_matches(matches: Iterable[ScoredMatch], limit: int) -> list[ScoredMatch]:
    """Stable sort by ``rank_key`` and keep the first ``limit`` entries."""

    return sorted(matches, key=rank_key)[: max(limit, 0)]


def to_scored_match(
    profile: Profile,
    score: float,
    distance_km: float,
    shared_sports: list[str],
) -> ScoredMatch:
    return ScoredMatch(
        user_id=profile.user_id,
        name=profile.name,
        age=profile.age,
        height_cm=profile.height_cm,
        hair_color=profile.hair_color,
        gender=profile.gender,
        distance_km=distance_km,
        match_score=score,
        shared_sports=shared_sports,
        is_verified=profile.is_verified,
        image_file_ids=list(profile.image_file_ids),
        description=profile.description,
    )


class Matcher:
    """Ranks candidates for a requester using fixed scoring weights."""

    def __init__(
        self,
        weights: ScoringWeights,
        min_score: float = MIN_MATCH_SCORE,
    ):
        self._weights = weights
        self._min_score = min_score

    @classmethod
    def with_default_weights(cls) -> "Matcher":
        return cls(ScoringWeights())

    @property
    def weights(self) -> ScoringWeights:
        return self._weights

    @property
    def min_score(self) -> float:
        return self._min_score

    def score_candidate(
        self, profile: Profile, preferences: Preferences
    ) -> ScoredMatch | None:
        """Score one candidate that already passed both filters.

        Returns None when the candidate is outside the exact search radius
        or its score falls below the cutoff.
        """

        distance_km = haversine_km(
            preferences.latitude,
            preferences.longitude,
            profile.latitude,
            profile.longitude,
        )
        if not within_max_distance(distance_km, preferences):
            return None

        score, shared_sports = calculate_match_score(
            profile, preferences, self._weights
        )
        if score < self._min_score:
            return None

        return to_scored_match(profile, score, distance_km, shared_sports)

    def find_matches(
        self,
        preferences: Preferences,
        candidates: Iterable[Profile],
        limit: int,
    ) -> MatchResult:
        """Find, score, and rank matches for a requester.

        Args:
            preferences: Requester preferences with location populated.
            candidates: Plausible candidates from the upstream store query.
            limit: Maximum number of matches to return.

        Returns:
            MatchResult with ranked matches and the number of candidates seen
            before any filtering.
        """

        candidates = list(candidates)
        query = build_candidate_query(preferences, limit)

        eligible = [
            profile
            for profile in candidates
            if matches_query_constraints(profile, query)
            and matches_demographics(profile, preferences)
        ]

        scored: list[ScoredMatch] = []
        for profile in eligible:
            match = self.score_candidate(profile, preferences)
            if match is not None:
                scored.append(match)

        ranked = rank_matches(scored, query.limit)

        logger.debug(
            "find_matches candidates=%s eligible=%s scored=%s returned=%s",
            len(candidates),
            len(eligible),
            len(scored),
            len(ranked),
        )
        return MatchResult(matches=ranked, total_candidates=len(candidates))
