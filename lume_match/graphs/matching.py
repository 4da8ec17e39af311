"""Matching graph: load requester data, query candidates, rank with the engine."""

from __future__ import annotations

from langgraph.graph import StateGraph

from lume_match.config import config
from lume_match.graphs.base_graph import BaseGraph
from lume_match.state import MatchingState
from lume_match.tools.firestore_tools import (
    get_preferences,
    get_user_profile,
    query_candidates,
)
from lume_match.tools.matcher import Matcher
from lume_match.tools.seen_tools import get_seen_profiles
from lume_match.utils.errors import StoreError
from lume_match.utils.logging_config import logger


def _with_state(state: MatchingState, **updates) -> MatchingState:
    """Return a new state dict with updates applied."""

    return {**state, **updates}


def _store_failure(state: MatchingState, message: str, exc: StoreError) -> MatchingState:
    return _with_state(state, error=message, error_kind=exc.kind)


class MatchingGraph(BaseGraph):
    """Store lookups around the pure matching engine."""

    def __init__(self, matcher: Matcher):
        super().__init__()
        self.matcher = matcher

    def build_graph(self) -> StateGraph:
        graph = StateGraph(MatchingState)

        graph.add_node("fetch_seen_profiles", self.node_fetch_seen_profiles)
        graph.add_node("fetch_user_profile", self.node_fetch_user_profile)
        graph.add_node("fetch_preferences", self.node_fetch_preferences)
        graph.add_node("query_candidates", self.node_query_candidates)
        graph.add_node("rank_matches", self.node_rank_matches)
        graph.add_node("finalize_response", self.node_finalize_response)

        graph.set_entry_point("fetch_seen_profiles")
        graph.add_edge("fetch_seen_profiles", "fetch_user_profile")
        graph.add_edge("fetch_user_profile", "fetch_preferences")
        graph.add_edge("fetch_preferences", "query_candidates")
        graph.add_edge("query_candidates", "rank_matches")
        graph.add_edge("rank_matches", "finalize_response")
        graph.set_finish_point("finalize_response")

        return graph

    def node_fetch_seen_profiles(self, state: MatchingState) -> MatchingState:
        """Merge tracked seen ids with client-supplied exclusions."""

        self._log_node_execution("fetch_seen_profiles", state)
        try:
            seen = get_seen_profiles(state["user_id"])
        except StoreError as exc:
            logger.warning(
                "Failed to fetch seen profiles; proceeding without exclusions: %s",
                str(exc),
            )
            seen = []

        excluded = list(dict.fromkeys([*seen, *state.get("exclude_user_ids", [])]))
        logger.debug(
            "Excluding %s profiles for user %s", len(excluded), state["user_id"]
        )
        return _with_state(state, excluded_ids=excluded)

    def node_fetch_user_profile(self, state: MatchingState) -> MatchingState:
        """Load the requester's profile for its current location."""

        if state.get("error"):
            return state

        try:
            self._log_node_execution("fetch_user_profile", state)
            return _with_state(state, user_profile=get_user_profile(state["user_id"]))
        except StoreError as exc:
            self._log_node_error("fetch_user_profile", exc)
            return _store_failure(state, "Failed to fetch user profile", exc)

    def node_fetch_preferences(self, state: MatchingState) -> MatchingState:
        """Load preferences and centre them on the requester's location."""

        if state.get("error"):
            return state

        try:
            self._log_node_execution("fetch_preferences", state)
            preferences = get_preferences(state["user_id"])
        except StoreError as exc:
            self._log_node_error("fetch_preferences", exc)
            return _store_failure(state, "Failed to fetch preferences", exc)

        profile = state["user_profile"]
        preferences = preferences.at_location(profile.latitude, profile.longitude)
        if preferences.max_distance_km > config.MAX_DISTANCE_KM:
            preferences = preferences.model_copy(
                update={"max_distance_km": config.MAX_DISTANCE_KM}
            )
        return _with_state(state, preferences=preferences)

    def node_query_candidates(self, state: MatchingState) -> MatchingState:
        """Run the coarse store query, over-fetching for the engine."""

        if state.get("error"):
            return state

        try:
            self._log_node_execution("query_candidates", state)
            candidates = query_candidates(
                state["user_id"],
                state["preferences"],
                state.get("excluded_ids", []),
                limit=state.get("limit", config.DEFAULT_LIMIT)
                * config.CANDIDATE_MULTIPLIER,
            )
            logger.debug(
                "Found %s candidates for %s", len(candidates), state["user_id"]
            )
            return _with_state(state, candidates=candidates)
        except StoreError as exc:
            self._log_node_error("query_candidates", exc)
            return _store_failure(state, "Failed to query candidates", exc)

    def node_rank_matches(self, state: MatchingState) -> MatchingState:
        """Filter, score, and rank with the matching engine."""

        if state.get("error"):
            return state

        self._log_node_execution("rank_matches", state)
        result = self.matcher.find_matches(
            state["preferences"],
            state.get("candidates", []),
            state.get("limit", config.DEFAULT_LIMIT),
        )
        return _with_state(state, match_result=result)

    def node_finalize_response(self, state: MatchingState) -> MatchingState:
        """Construct final matches and response metadata."""

        if state.get("error"):
            return _with_state(
                state,
                final_matches=[],
                response_metadata={
                    "success": False,
                    "error": state.get("error"),
                    "error_kind": state.get("error_kind"),
                    "total_candidates": len(state.get("candidates", [])),
                    "returned": 0,
                },
            )

        result = state["match_result"]
        final_matches = [
            match.model_dump(by_alias=True, mode="json") for match in result.matches
        ]

        logger.info(
            "Returning %s matches for user %s (from %s candidates)",
            len(final_matches),
            state["user_id"],
            result.total_candidates,
        )
        return _with_state(
            state,
            final_matches=final_matches,
            response_metadata={
                "success": True,
                "error": None,
                "error_kind": None,
                "total_candidates": result.total_candidates,
                "returned": len(final_matches),
            },
        )


def create_matching_graph(matcher: Matcher | None = None):
    """Build and compile the matching graph for server usage."""

    if matcher is None:
        matcher = Matcher(config.scoring_weights())
    graph_builder = MatchingGraph(matcher)
    return graph_builder.compile()
