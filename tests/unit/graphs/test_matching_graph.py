"""
Unit tests for the matching graph.

Store lookups are monkeypatched in the graph module's namespace so the graph
runs end-to-end against in-memory profiles.
"""

import pytest
from lume_match.graphs import matching as matching_graph
from lume_match.graphs.matching import create_matching_graph
from lume_match.utils.errors import (
    FirestoreUnavailableError,
    NotFoundError,
)


@pytest.fixture
def store(monkeypatch, make_profile, make_preferences):
    """Patch store calls with canned data; returns a dict of recorded calls."""

    calls = {"query": None}
    requester = make_profile("current_user", latitude=40.7128, longitude=-74.0060)
    candidates = [
        make_profile("near", latitude=40.72, longitude=-74.01),
        make_profile("older", age=34, latitude=40.73, longitude=-74.0),
        make_profile("male", gender="male"),
    ]

    def fake_query(user_id, preferences, exclude_user_ids, limit):
        calls["query"] = {
            "user_id": user_id,
            "preferences": preferences,
            "exclude": list(exclude_user_ids),
            "limit": limit,
        }
        return [c for c in candidates if c.user_id not in exclude_user_ids]

    monkeypatch.setattr(matching_graph, "get_seen_profiles", lambda user_id: ["seen1"])
    monkeypatch.setattr(matching_graph, "get_user_profile", lambda user_id: requester)
    monkeypatch.setattr(
        matching_graph,
        "get_preferences",
        lambda user_id: make_preferences(latitude=0.0, longitude=0.0, max_distance_km=500),
    )
    monkeypatch.setattr(matching_graph, "query_candidates", fake_query)
    return calls


def _run(graph, **state):
    return graph.invoke({"user_id": "current_user", "limit": 10, **state})


class TestMatchingGraph:
    """Test the happy path and error propagation."""

    def test_returns_ranked_matches(self, store):
        result = _run(create_matching_graph())

        ids = [m["userId"] for m in result["final_matches"]]
        assert ids == ["near", "older"]
        assert result["response_metadata"]["success"] is True
        assert result["response_metadata"]["total_candidates"] == 3
        assert result["response_metadata"]["returned"] == 2

    def test_matches_serialized_camel_case(self, store):
        match = _run(create_matching_graph())["final_matches"][0]
        assert {"userId", "distanceKm", "matchScore", "sharedSports"} <= set(match)

    def test_preferences_use_profile_location_and_cap(self, store):
        _run(create_matching_graph())

        prefs = store["query"]["preferences"]
        assert (prefs.latitude, prefs.longitude) == (40.7128, -74.0060)
        assert prefs.max_distance_km == matching_graph.config.MAX_DISTANCE_KM

    def test_over_fetches_candidates(self, store):
        _run(create_matching_graph(), limit=4)
        assert store["query"]["limit"] == 4 * matching_graph.config.CANDIDATE_MULTIPLIER

    def test_merges_seen_and_client_exclusions(self, store):
        result = _run(create_matching_graph(), exclude_user_ids=["near", "seen1"])

        assert store["query"]["exclude"] == ["seen1", "near"]
        assert [m["userId"] for m in result["final_matches"]] == ["older"]

    def test_seen_tracker_failure_is_not_fatal(self, store, monkeypatch):
        def broken(user_id):
            raise FirestoreUnavailableError("down")

        monkeypatch.setattr(matching_graph, "get_seen_profiles", broken)

        result = _run(create_matching_graph())

        assert result["response_metadata"]["success"] is True
        assert store["query"]["exclude"] == []

    def test_missing_profile_short_circuits(self, store, monkeypatch):
        def missing(user_id):
            raise NotFoundError("User profile not found: current_user")

        monkeypatch.setattr(matching_graph, "get_user_profile", missing)

        result = _run(create_matching_graph())

        assert result["final_matches"] == []
        assert result["response_metadata"]["success"] is False
        assert result["response_metadata"]["error_kind"] == "not_found"
        assert store["query"] is None

    def test_candidate_query_failure(self, store, monkeypatch):
        def broken(*args, **kwargs):
            raise FirestoreUnavailableError("deadline exceeded")

        monkeypatch.setattr(matching_graph, "query_candidates", broken)

        result = _run(create_matching_graph())

        assert result["response_metadata"]["error"] == "Failed to query candidates"
        assert result["response_metadata"]["error_kind"] == "unavailable"
