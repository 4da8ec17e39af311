"""Domain models shared by the matching engine, stores, and HTTP layer.

Models are frozen pydantic models. They accept the document store's camelCase
field names as aliases and the snake_case names by field name, and serialize
back to camelCase for API responses.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class Profile(_Frozen):
    """Snapshot of a candidate (or requester) profile."""

    user_id: str = Field(alias="userId")
    name: str = ""
    age: int = Field(ge=0)
    height_cm: int = Field(alias="heightCm", ge=0)
    hair_color: str = Field(default="", alias="hairColor")
    gender: str = ""
    latitude: float
    longitude: float
    is_verified: bool = Field(default=False, alias="isVerified")
    is_active: bool = Field(default=True, alias="isActive")
    is_timeout: bool = Field(default=False, alias="isTimeout")
    image_file_ids: list[str] = Field(default_factory=list, alias="imageFileIds")
    description: Optional[str] = None
    sports_preferences: list[str] = Field(
        default_factory=list, alias="sportsPreferences"
    )
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    @field_validator("is_verified", "is_timeout", mode="before")
    @classmethod
    def _null_is_false(cls, value):
        return False if value is None else value

    @field_validator("is_active", mode="before")
    @classmethod
    def _null_is_active(cls, value):
        return True if value is None else value

    @field_validator("image_file_ids", "sports_preferences", mode="before")
    @classmethod
    def _null_is_empty(cls, value):
        return [] if value is None else value


class Preferences(_Frozen):
    """Requester's matching preferences.

    Location defaults to (0, 0); callers copy the requester's current profile
    coordinates in before ranking.
    """

    user_id: str = Field(alias="userId")
    preferred_genders: list[str] = Field(
        default_factory=list, alias="preferredGenders"
    )
    min_age: int = Field(alias="minAge")
    max_age: int = Field(alias="maxAge")
    min_height_cm: int = Field(alias="minHeightCm")
    max_height_cm: int = Field(alias="maxHeightCm")
    preferred_hair_colors: list[str] = Field(
        default_factory=list, alias="preferredHairColors"
    )
    preferred_sports: list[str] = Field(
        default_factory=list, alias="preferredSports"
    )
    max_distance_km: float = Field(alias="maxDistanceKm")
    latitude: float = 0.0
    longitude: float = 0.0

    @field_validator(
        "preferred_genders",
        "preferred_hair_colors",
        "preferred_sports",
        mode="before",
    )
    @classmethod
    def _null_is_empty(cls, value):
        return [] if value is None else value

    def at_location(self, latitude: float, longitude: float) -> "Preferences":
        """Return a copy centred on the given coordinates."""

        return self.model_copy(update={"latitude": latitude, "longitude": longitude})


class BoundingBox(_Frozen):
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float


class CandidateQuery(_Frozen):
    """Per-request geo + demographic bounds derived from preferences."""

    bounding_box: BoundingBox
    preferred_genders: frozenset[str] = frozenset()
    min_age: int
    max_age: int
    min_height_cm: int
    max_height_cm: int
    exclude_user_ids: frozenset[str] = frozenset()
    limit: int = 0


class ScoringWeights(_Frozen):
    """Coefficients for each sub-score. They are not required to sum to 1."""

    distance: float = Field(default=0.35, ge=0.0)
    age: float = Field(default=0.20, ge=0.0)
    sports: float = Field(default=0.25, ge=0.0)
    verified: float = Field(default=0.10, ge=0.0)
    height: float = Field(default=0.10, ge=0.0)


class ScoredMatch(_Frozen):
    user_id: str = Field(alias="userId")
    name: str
    age: int
    height_cm: int = Field(alias="heightCm")
    hair_color: str = Field(alias="hairColor")
    gender: str
    distance_km: float = Field(alias="distanceKm")
    match_score: float = Field(alias="matchScore")
    shared_sports: list[str] = Field(default_factory=list, alias="sharedSports")
    is_verified: bool = Field(alias="isVerified")
    image_file_ids: list[str] = Field(default_factory=list, alias="imageFileIds")
    description: Optional[str] = None


class MatchResult(_Frozen):
    matches: list[ScoredMatch] = Field(default_factory=list)
    total_candidates: int = 0


class MatchEventType(str, Enum):
    VIEWED = "viewed"
    LIKED = "liked"
    PASSED = "passed"
    MATCHED = "matched"

    @classmethod
    def parse(cls, raw: str) -> "MatchEventType":
        """Parse a case-insensitive event type name.

        Raises:
            ValueError: If the name is not a known event type.
        """

        try:
            return cls(raw.strip().lower())
        except ValueError as exc:
            valid = ", ".join(member.value for member in cls)
            raise ValueError(f"Event type must be one of: {valid}") from exc


class MatchEvent(_Frozen):
    user_id: str = Field(alias="userId")
    target_user_id: str = Field(alias="targetUserId")
    event_type: MatchEventType = Field(alias="eventType")
    created_at: datetime = Field(alias="createdAt")


class SeenProfile(_Frozen):
    user_id: str = Field(alias="userId")
    target_user_id: str = Field(alias="targetUserId")
    event_type: MatchEventType = Field(alias="eventType")
    seen_at: Optional[datetime] = Field(default=None, alias="seenAt")
