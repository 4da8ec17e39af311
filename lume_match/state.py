"""Shared LangGraph state definitions.

Graph states are TypedDicts so the data passed between nodes is explicit.
Domain values are carried as the pydantic models from ``lume_match.models``;
only ``final_matches`` and ``response_metadata`` are plain JSON for callers.
"""

from __future__ import annotations

from typing import TypedDict

from lume_match.models import MatchResult, Preferences, Profile

JsonDict = dict[str, object]
JsonList = list[JsonDict]


class MatchingState(TypedDict, total=False):
    """State for the matching graph.

    Fields are optional at runtime because nodes populate them progressively.
    """

    # Identifies the requesting user.
    user_id: str
    # Maximum matches to return, already capped by the caller.
    limit: int
    # Ids the client asked to exclude on top of the seen tracker.
    exclude_user_ids: list[str]
    # Seen ids merged with client exclusions.
    excluded_ids: list[str]
    # Requester profile; supplies the search centre.
    user_profile: Profile
    # Requester preferences with location populated.
    preferences: Preferences
    # Candidates returned by the store's coarse query.
    candidates: list[Profile]
    # Engine output.
    match_result: MatchResult
    # Final matches returned to the caller (camelCase JSON).
    final_matches: JsonList
    # Error string if any node fails.
    error: str
    # Failure kind: not_found, unauthorized, unavailable, malformed.
    error_kind: str
    # Response metadata for observability.
    response_metadata: JsonDict
