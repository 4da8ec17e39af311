"""Firestore wrappers for profiles, preferences, and match events.

These helpers centralize document parsing, error mapping, and logging so the
matching graph stays focused on orchestration logic. Every backend failure is
re-raised as one of the StoreError kinds from ``lume_match.utils.errors``.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core import exceptions as google_exceptions
from pydantic import ValidationError

from lume_match.config import config
from lume_match.models import MatchEvent, Preferences, Profile
from lume_match.tools.filter_tools import is_available
from lume_match.utils.errors import (
    FirestoreUnavailableError,
    MalformedResponseError,
    NotFoundError,
    StoreError,
    UnauthorizedError,
)
from lume_match.utils.geo import calculate_bounding_box, is_within_bounding_box
from lume_match.utils.logging_config import logger

# Firestore rejects "in" filters with more values than this.
MAX_IN_FILTER_VALUES = 30

# Raw documents fetched per requested candidate; longitude, age, and
# exclusion checks happen in memory after the query.
FETCH_FACTOR = 3

_db: firestore.Client | None = None


def get_db() -> firestore.Client:
    """Get a Firestore client, initializing Firebase lazily."""
    global _db

    if _db is not None:
        return _db

    try:
        if not firebase_admin._apps:
            cred_path = os.environ.get(
                "GOOGLE_APPLICATION_CREDENTIALS",
                config.GOOGLE_APPLICATION_CREDENTIALS,
            )
            if not cred_path:
                raise RuntimeError(
                    "GOOGLE_APPLICATION_CREDENTIALS is not set"
                )

            cred = credentials.Certificate(cred_path)
            firebase_admin.initialize_app(
                cred, {"projectId": config.FIREBASE_PROJECT_ID}
            )

        _db = firestore.client()
        return _db

    except Exception as exc:
        logger.error("Failed to initialize Firestore: %s", exc)
        raise FirestoreUnavailableError(str(exc)) from exc


def to_store_error(action: str, exc: Exception) -> StoreError:
    """Map a backend exception to a distinguishable failure kind."""

    if isinstance(
        exc, (google_exceptions.PermissionDenied, google_exceptions.Unauthenticated)
    ):
        logger.error("Firestore rejected %s: %s", action, exc)
        return UnauthorizedError(f"{action}: {exc}")
    if isinstance(exc, google_exceptions.NotFound):
        return NotFoundError(f"{action}: {exc}")
    if isinstance(exc, ValidationError):
        logger.error("Malformed document during %s: %s", action, exc)
        return MalformedResponseError(f"{action}: {exc}")

    logger.error("Failed to %s: %s", action, exc)
    return FirestoreUnavailableError(f"{action}: {exc}")


def _find_user_document(collection: str, user_id: str) -> dict | None:
    """Return the first document in ``collection`` whose userId matches."""

    query = (
        get_db().collection(collection)
        .where("userId", "==", user_id)
        .limit(1)
    )
    for doc in query.stream():
        data = doc.to_dict() or {}
        data.setdefault("userId", user_id)
        return data
    return None


def get_user_profile(user_id: str) -> Profile:
    """Fetch a user's profile.

    Raises:
        NotFoundError: No profile document for the user.
        MalformedResponseError: The document does not parse as a Profile.
        UnauthorizedError: Firestore rejected the credentials.
        FirestoreUnavailableError: Any other backend failure.
    """

    try:
        data = _find_user_document(config.PROFILES_COLLECTION, user_id)
        if data is None:
            raise NotFoundError(f"Profile not found for user {user_id}")
        return Profile.model_validate(data)
    except StoreError:
        raise
    except Exception as exc:
        raise to_store_error("fetch user profile", exc) from exc


def get_preferences(user_id: str) -> Preferences:
    """Fetch a user's matching preferences. Failure kinds as get_user_profile."""

    try:
        data = _find_user_document(config.PREFERENCES_COLLECTION, user_id)
        if data is None:
            raise NotFoundError(f"Preferences not found for user {user_id}")
        return Preferences.model_validate(data)
    except StoreError:
        raise
    except Exception as exc:
        raise to_store_error("fetch preferences", exc) from exc


def query_candidates(
    user_id: str,
    preferences: Preferences,
    exclude_user_ids: list[str] | set[str],
    limit: int,
) -> list[Profile]:
    """Coarse upstream candidate query.

    Firestore allows range filters on a single field, so the query filters on
    activity, gender, and the bounding box's latitude band. Timeouts,
    longitude, age, and exclusions are checked in memory before a profile
    counts toward ``limit``. Documents that fail to parse are skipped. The
    matcher re-checks everything exactly.
    """

    excluded = set(exclude_user_ids) | {user_id}
    bbox = calculate_bounding_box(
        preferences.latitude, preferences.longitude, preferences.max_distance_km
    )

    try:
        query = get_db().collection(config.PROFILES_COLLECTION).where(
            "isActive", "==", True
        )
        genders = list(dict.fromkeys(preferences.preferred_genders))
        if 0 < len(genders) <= MAX_IN_FILTER_VALUES:
            query = query.where("gender", "in", genders)
        query = (
            query.where("latitude", ">=", bbox.min_lat)
            .where("latitude", "<=", bbox.max_lat)
            .limit(limit * FETCH_FACTOR + len(excluded))
        )

        candidates: list[Profile] = []
        skipped = 0
        for doc in query.stream():
            data = doc.to_dict() or {}
            data.setdefault("userId", doc.id)
            try:
                profile = Profile.model_validate(data)
            except ValidationError as exc:
                skipped += 1
                logger.warning("Skipping malformed profile %s: %s", doc.id, exc)
                continue

            if profile.user_id in excluded or not is_available(profile):
                continue
            if not is_within_bounding_box(
                profile.latitude, profile.longitude, bbox
            ):
                continue
            if not preferences.min_age <= profile.age <= preferences.max_age:
                continue

            candidates.append(profile)
            if len(candidates) >= limit:
                break

        logger.debug(
            "query_candidates user=%s returned=%s skipped=%s",
            user_id,
            len(candidates),
            skipped,
        )
        return candidates
    except StoreError:
        raise
    except Exception as exc:
        raise to_store_error("query candidates", exc) from exc


def record_event(event: MatchEvent) -> str:
    """Append an interaction event. Returns the new document id."""

    try:
        _, doc_ref = get_db().collection(config.MATCH_EVENTS_COLLECTION).add(
            {
                "userId": event.user_id,
                "targetUserId": event.target_user_id,
                "eventType": event.event_type.value,
                "createdAt": event.created_at,
            }
        )
        return doc_ref.id
    except StoreError:
        raise
    except Exception as exc:
        raise to_store_error("record match event", exc) from exc


def new_event(user_id: str, target_user_id: str, event_type) -> MatchEvent:
    """Build a MatchEvent stamped with the current UTC time."""

    return MatchEvent(
        user_id=user_id,
        target_user_id=target_user_id,
        event_type=event_type,
        created_at=datetime.now(timezone.utc),
    )
