"""
Configuration module for the Lume Match Service.

Loads environment variables and provides configuration singletons.
Uses pydantic for validation.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

from lume_match.models import ScoringWeights


class Config(BaseSettings):
    """
    Application configuration loaded from environment variables.

    All values come from .env file or system environment.
    Type hints provide validation (pydantic converts types automatically).
    """

    model_config = SettingsConfigDict(
        env_file=".env",  # Read from .env file
        case_sensitive=True,  # Variable names are case-sensitive
        extra="ignore",  # Ignore extra env vars not defined below
    )

    # ============================================================
    # FIREBASE CONFIGURATION (REQUIRED)
    # ============================================================
    FIREBASE_PROJECT_ID: str = ""
    """Firebase project ID. Find in Firebase Console → Project Settings."""

    GOOGLE_APPLICATION_CREDENTIALS: str = "/config/serviceAccountKey.json"
    """Path to Firebase service account JSON file."""

    PROFILES_COLLECTION: str = "user_profiles"
    """Collection holding one profile document per user."""

    PREFERENCES_COLLECTION: str = "user_preferences"
    """Collection holding one preferences document per user."""

    MATCH_EVENTS_COLLECTION: str = "match_events"
    """Append-only log of viewed/liked/passed/matched events."""

    SEEN_PROFILES_COLLECTION: str = "seen_profiles"
    """Latest event per (user, target) pair. Drives repeat suppression."""

    # ============================================================
    # CACHE CONFIGURATION
    # ============================================================
    REDIS_URL: Optional[str] = None
    """Shared (L2) cache. Leave empty to run with the in-process cache only."""

    CACHE_TTL_SECONDS: int = 300
    """Time-to-live for both cache tiers."""

    L1_CACHE_SIZE: int = 10_000
    """Maximum entries in the in-process cache."""

    CACHE_MATCHES: bool = False
    """Serve match results from cache. Off so seen profiles are always current."""

    # ============================================================
    # MATCHING CONFIGURATION
    # ============================================================
    MAX_DISTANCE_KM: float = 100.0
    """Upper bound applied to a user's preferred search radius."""

    DEFAULT_LIMIT: int = 20
    """Matches returned when the request does not set a limit."""

    MAX_LIMIT: int = 100
    """Hard cap on matches per request."""

    CANDIDATE_MULTIPLIER: int = 5
    """Candidates fetched from the store per requested match."""

    # ============================================================
    # SCORING WEIGHTS
    # ============================================================
    WEIGHT_DISTANCE: float = 0.35
    WEIGHT_AGE: float = 0.20
    WEIGHT_SPORTS: float = 0.25
    WEIGHT_VERIFIED: float = 0.10
    WEIGHT_HEIGHT: float = 0.10

    # ============================================================
    # GRAPH CONFIGURATION
    # ============================================================
    GRAPH_TIMEOUT: int = 30
    """Maximum seconds a graph can run before timeout. Default: 30 seconds."""

    # ============================================================
    # SERVER CONFIGURATION
    # ============================================================
    PORT: int = 8000
    """Port to run FastAPI server on. Default: 8000."""

    HOST: str = "0.0.0.0"
    """Host to bind to. 0.0.0.0 = accessible from network."""

    DEBUG: bool = False
    """Enable debug logging. Set True for development, False for production."""

    LOG_FORMAT: str = "text"
    """Log line format: 'text' or 'json'."""

    def scoring_weights(self) -> ScoringWeights:
        """Build the immutable weights value handed to the matcher."""
        return ScoringWeights(
            distance=self.WEIGHT_DISTANCE,
            age=self.WEIGHT_AGE,
            sports=self.WEIGHT_SPORTS,
            verified=self.WEIGHT_VERIFIED,
            height=self.WEIGHT_HEIGHT,
        )


# ============================================================
# SINGLETON INSTANCE
# ============================================================
# Load config once at startup, reuse throughout app
config = Config()


# ============================================================
# VALIDATION AT STARTUP
# ============================================================
def validate_config() -> dict:
    """
    Validate that required config values are set.

    Called at app startup to fail fast if config is incomplete.

    Returns:
        dict: Status of each configured area

    Raises:
        ValueError: If required config is missing or inconsistent
    """
    errors = []

    # Firebase is always required
    if not config.FIREBASE_PROJECT_ID:
        errors.append("FIREBASE_PROJECT_ID is required")

    weights = {
        "WEIGHT_DISTANCE": config.WEIGHT_DISTANCE,
        "WEIGHT_AGE": config.WEIGHT_AGE,
        "WEIGHT_SPORTS": config.WEIGHT_SPORTS,
        "WEIGHT_VERIFIED": config.WEIGHT_VERIFIED,
        "WEIGHT_HEIGHT": config.WEIGHT_HEIGHT,
    }
    for name, value in weights.items():
        if value < 0:
            errors.append(f"{name} must be non-negative")

    if config.DEFAULT_LIMIT > config.MAX_LIMIT:
        errors.append("DEFAULT_LIMIT must not exceed MAX_LIMIT")

    if config.MAX_DISTANCE_KM <= 0:
        errors.append("MAX_DISTANCE_KM must be positive")

    if config.LOG_FORMAT not in ("text", "json"):
        errors.append("LOG_FORMAT must be 'text' or 'json'")

    if errors:
        raise ValueError("Configuration errors:\n" + "\n".join([f"  - {e}" for e in errors]))

    return {
        "firebase": "✓ Configured" if config.FIREBASE_PROJECT_ID else "✗ Missing",
        "redis": "✓ Configured" if config.REDIS_URL else "✗ Disabled (L1 only)",
        "match_cache": "✓ Enabled" if config.CACHE_MATCHES else "✗ Disabled",
        "weights": ", ".join(f"{k.split('_', 1)[1].lower()}={v}" for k, v in weights.items()),
    }


if __name__ == "__main__":
    """Allow testing config by running: python -m lume_match.config"""
    try:
        status = validate_config()
        print("✅ Configuration is valid!")
        print("\nConfiguration Status:")
        for key, value in status.items():
            print(f"  {key}: {value}")
    except ValueError as e:
        print(f"❌ Configuration error:\n{e}")
        exit(1)
