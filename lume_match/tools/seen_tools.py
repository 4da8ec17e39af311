"""Already-seen profile tracking.

One document per (user, target) pair, so recording the same pair again
overwrites the event type and timestamp instead of adding a row. The matching
graph reads these ids to avoid showing a profile twice.
"""

from __future__ import annotations

from firebase_admin import firestore
from pydantic import ValidationError

from lume_match.config import config
from lume_match.models import MatchEventType, SeenProfile
from lume_match.tools.firestore_tools import get_db, to_store_error
from lume_match.utils.errors import StoreError
from lume_match.utils.logging_config import logger


def seen_document_id(user_id: str, target_user_id: str) -> str:
    return f"{user_id}__{target_user_id}"


def record_seen(
    user_id: str, target_user_id: str, event_type: MatchEventType
) -> None:
    """Upsert the latest event for a (user, target) pair."""

    try:
        get_db().collection(config.SEEN_PROFILES_COLLECTION).document(
            seen_document_id(user_id, target_user_id)
        ).set(
            {
                "userId": user_id,
                "targetUserId": target_user_id,
                "eventType": event_type.value,
                "seenAt": firestore.SERVER_TIMESTAMP,
            }
        )
    except StoreError:
        raise
    except Exception as exc:
        raise to_store_error("record seen profile", exc) from exc


def get_seen_profiles(user_id: str) -> list[str]:
    """Ids of every profile the user has interacted with, most recent first.

    Ordering is done in memory to avoid requiring a composite index. Records
    that do not parse as a SeenProfile are skipped.
    """

    try:
        query = (
            get_db().collection(config.SEEN_PROFILES_COLLECTION)
            .where("userId", "==", user_id)
        )
        docs = list(query.stream())
    except StoreError:
        raise
    except Exception as exc:
        raise to_store_error("fetch seen profiles", exc) from exc

    records: list[SeenProfile] = []
    for doc in docs:
        try:
            records.append(SeenProfile.model_validate(doc.to_dict() or {}))
        except ValidationError as exc:
            logger.warning("Skipping malformed seen record %s: %s", doc.id, exc)

    # Pending server timestamps come back as None; keep those last.
    records.sort(
        key=lambda r: (r.seen_at is not None, r.seen_at or 0),
        reverse=True,
    )
    return [r.target_user_id for r in records]


def clear_seen_profiles(user_id: str) -> int:
    """Delete every seen record for a user. Returns the number removed."""

    try:
        query = (
            get_db().collection(config.SEEN_PROFILES_COLLECTION)
            .where("userId", "==", user_id)
        )
        removed = 0
        for doc in query.stream():
            doc.reference.delete()
            removed += 1
    except StoreError:
        raise
    except Exception as exc:
        raise to_store_error("clear seen profiles", exc) from exc

    logger.info("Cleared %s seen profiles for user %s", removed, user_id)
    return removed


def tracker_healthy() -> bool:
    """Cheap round trip used by the health endpoint."""

    try:
        list(
            get_db().collection(config.SEEN_PROFILES_COLLECTION).limit(1).stream()
        )
        return True
    except Exception as exc:
        logger.warning("Seen tracker health check failed: %s", exc)
        return False
