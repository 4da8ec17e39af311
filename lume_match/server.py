"""
FastAPI server for the Lume Match Service.

Exposes:
  - GET /health - Health check
  - POST /api/v1/matches/find - Ranked matches for a user
  - POST /api/v1/matches/event - Record a viewed/liked/passed/matched event
  - GET /api/v1/matches/seen - Profiles a user has already seen
  - DELETE /api/v1/matches/seen - Reset a user's seen profiles
  - GET /docs - Interactive API documentation (Swagger UI)
"""

from dotenv import load_dotenv
load_dotenv()

import asyncio
from datetime import datetime, timezone
from fastapi import FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.concurrency import run_in_threadpool
from typing import Any, Dict, List, Optional
import time
import uuid

# Import configuration (loads .env automatically)
from lume_match.config import config, validate_config

# Import logging setup
from lume_match.utils.logging_config import logger, setup_logging

from lume_match.graphs.matching import create_matching_graph
from lume_match.models import MatchEventType
from lume_match.tools.cache_tools import CacheKey, get_cache
from lume_match.tools.firestore_tools import new_event, record_event
from lume_match.tools.seen_tools import (
    clear_seen_profiles,
    get_seen_profiles,
    record_seen,
    tracker_healthy,
)
from lume_match.utils.errors import CacheError, StoreError

SERVICE_VERSION = "1.0.0"

# Setup logging
setup_logging(debug=config.DEBUG, log_format=config.LOG_FORMAT)

# ============================================================
# VALIDATE CONFIGURATION AT STARTUP
# ============================================================
try:
    config_status = validate_config()
    logger.info("Configuration validated successfully")
    for key, value in config_status.items():
        logger.info("  %s: %s", key, value)
except ValueError as e:
    logger.error("Configuration error: %s", e)
    raise SystemExit(1)

# ============================================================
# FASTAPI APPLICATION
# ============================================================
app = FastAPI(
    title="Lume Match Service",
    description="Geospatial + preference matching for dating profiles",
    version=SERVICE_VERSION,
)

matching_graph = create_matching_graph()

# Failure kind -> HTTP status for store errors surfaced by the graph.
ERROR_STATUS = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "unauthorized": status.HTTP_403_FORBIDDEN,
    "unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
    "malformed": status.HTTP_502_BAD_GATEWAY,
}


# ============================================================
# REQUEST/RESPONSE MODELS
# ============================================================
class FindMatchesRequest(BaseModel):
    """
    Request body for /api/v1/matches/find.

    Attributes:
        user_id (str): Requesting user (``userId`` or ``user_id``).
        limit (int): Matches wanted; capped at MAX_LIMIT.
        exclude_user_ids (list): Extra ids to hide on top of seen profiles.
        cursor (str): Accepted for client compatibility; not interpreted.
    """
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId", min_length=1)
    limit: int = Field(default=config.DEFAULT_LIMIT, ge=0)
    exclude_user_ids: List[str] = Field(default_factory=list, alias="excludeUserIds")
    cursor: Optional[str] = None


class FindMatchesResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    matches: List[Dict[str, Any]]
    next_cursor: Optional[str] = Field(default=None, alias="nextCursor")
    total_results: int = Field(alias="totalResults")


class RecordEventRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId", min_length=1)
    target_user_id: str = Field(alias="targetUserId", min_length=1)
    event_type: str = Field(alias="eventType")


class RecordEventResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    event_id: str = Field(alias="eventId")


# ============================================================
# MIDDLEWARE
# ============================================================
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """
    Middleware to track request processing time.

    Adds X-Process-Time header to all responses showing how long request took.
    """
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


# ============================================================
# ROUTES
# ============================================================

@app.get("/health", tags=["System"])
async def health_check() -> Dict[str, Any]:
    """
    Health check endpoint.

    Reports "degraded" when the seen tracker or the shared cache cannot be
    reached. Cache counters are included for observability.
    """
    tracker_ok = await run_in_threadpool(tracker_healthy)
    cache = get_cache()
    cache_ok = await run_in_threadpool(cache.healthy)
    return {
        "status": "healthy" if tracker_ok and cache_ok else "degraded",
        "seen_tracker": "ok" if tracker_ok else "unavailable",
        "cache": {"status": "ok" if cache_ok else "unavailable", **cache.stats()},
        "version": SERVICE_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def _cached_matches(request: FindMatchesRequest, limit: int) -> Optional[Dict[str, Any]]:
    """Return a cached response when result caching applies to this request."""
    if not config.CACHE_MATCHES or request.exclude_user_ids:
        return None
    try:
        cached = get_cache().get(CacheKey.matches(request.user_id))
    except CacheError as exc:
        logger.warning("Cache read failed: %s", exc)
        return None
    if cached and cached.get("limit") == limit:
        return cached["response"]
    return None


def _store_matches(request: FindMatchesRequest, limit: int, response: Dict[str, Any]) -> None:
    if not config.CACHE_MATCHES or request.exclude_user_ids:
        return
    try:
        get_cache().set(
            CacheKey.matches(request.user_id),
            {"limit": limit, "response": response},
        )
    except CacheError as exc:
        logger.warning("Cache write failed: %s", exc)


@app.post(
    "/api/v1/matches/find",
    response_model=FindMatchesResponse,
    tags=["Matches"],
)
async def find_matches(request: FindMatchesRequest) -> Dict[str, Any]:
    """
    Rank candidate profiles for a user.

    Loads the user's profile and preferences, excludes profiles already
    seen, queries candidates near the user, and runs the matching engine.
    """
    # Cap limit to prevent excessive queries
    limit = min(request.limit, config.MAX_LIMIT)
    logger.info("Finding matches for user: %s, limit: %s", request.user_id, limit)

    cached = _cached_matches(request, limit)
    if cached is not None:
        logger.debug("Serving cached matches for %s", request.user_id)
        return cached

    start_time = time.time()
    try:
        result = await asyncio.wait_for(
            run_in_threadpool(
                matching_graph.invoke,
                {
                    "user_id": request.user_id,
                    "limit": limit,
                    "exclude_user_ids": request.exclude_user_ids,
                },
            ),
            timeout=config.GRAPH_TIMEOUT,
        )
    except asyncio.TimeoutError:
        logger.error(
            "Matching timed out after %ss for user %s",
            config.GRAPH_TIMEOUT,
            request.user_id,
        )
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail="Matching timed out",
        )
    metadata = result.get("response_metadata", {})
    logger.info(
        "find-matches summary: user=%s success=%s time=%.2fs",
        request.user_id,
        metadata.get("success"),
        time.time() - start_time,
    )

    if not metadata.get("success"):
        kind = metadata.get("error_kind") or "unavailable"
        raise HTTPException(
            status_code=ERROR_STATUS.get(kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
            detail=metadata.get("error") or "Matching failed",
        )

    response = {
        "matches": result.get("final_matches", []),
        "nextCursor": None,
        "totalResults": metadata.get("total_candidates", 0),
    }
    _store_matches(request, limit, response)
    return response


@app.post(
    "/api/v1/matches/event",
    response_model=RecordEventResponse,
    tags=["Matches"],
)
async def record_match_event(request: RecordEventRequest) -> Dict[str, Any]:
    """
    Record an interaction with another profile.

    The seen tracker write must succeed; the event log write is best effort.
    The user's cached matches are invalidated afterwards.
    """
    try:
        event_type = MatchEventType.parse(request.event_type)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid event type. {exc}",
        )

    try:
        await run_in_threadpool(
            record_seen, request.user_id, request.target_user_id, event_type
        )
    except StoreError as exc:
        logger.error("Failed to record seen profile: %s", exc)
        raise HTTPException(
            status_code=ERROR_STATUS.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
            detail="Failed to record event",
        )

    event = new_event(request.user_id, request.target_user_id, event_type)
    try:
        event_id = await run_in_threadpool(record_event, event)
    except StoreError as exc:
        logger.warning("Seen profile recorded but event log write failed: %s", exc)
        event_id = str(uuid.uuid4())

    try:
        get_cache().delete(CacheKey.matches(request.user_id))
    except CacheError as exc:
        logger.warning("Failed to invalidate cache: %s", exc)

    logger.debug(
        "Recorded event: %s -> %s (%s)",
        request.user_id,
        request.target_user_id,
        event_type.value,
    )
    return {"success": True, "eventId": event_id}


@app.get("/api/v1/matches/seen", tags=["Matches"])
async def seen_profiles(
    user_id: Optional[str] = Query(default=None, alias="userId"),
) -> Dict[str, Any]:
    """
    List profile ids a user has already seen, most recent first.
    """
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="userId query parameter is required",
        )

    try:
        seen = await run_in_threadpool(get_seen_profiles, user_id)
    except StoreError as exc:
        logger.error("Failed to fetch seen profiles for %s: %s", user_id, exc)
        raise HTTPException(
            status_code=ERROR_STATUS.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
            detail="Failed to fetch seen profiles",
        )

    return {"userId": user_id, "seenProfiles": seen, "count": len(seen)}


@app.delete("/api/v1/matches/seen", tags=["Matches"])
async def reset_seen_profiles(
    user_id: Optional[str] = Query(default=None, alias="userId"),
) -> Dict[str, Any]:
    """
    Forget every profile a user has seen so they can be matched again.

    The user's cached matches are invalidated afterwards.
    """
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="userId query parameter is required",
        )

    try:
        cleared = await run_in_threadpool(clear_seen_profiles, user_id)
    except StoreError as exc:
        logger.error("Failed to clear seen profiles for %s: %s", user_id, exc)
        raise HTTPException(
            status_code=ERROR_STATUS.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
            detail="Failed to clear seen profiles",
        )

    try:
        get_cache().delete(CacheKey.matches(user_id))
    except CacheError as exc:
        logger.warning("Failed to invalidate cache: %s", exc)

    return {"userId": user_id, "cleared": cleared}


@app.get("/", tags=["System"])
async def root() -> Dict[str, str]:
    """
    Root endpoint.

    Returns information about the API and how to access documentation.
    """
    return {
        "service": "Lume Match Service",
        "version": SERVICE_VERSION,
        "docs": "/docs",
        "health": "/health",
    }


# ============================================================
# ERROR HANDLERS
# ============================================================

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Handle HTTP exceptions with consistent error response format.
    """
    logger.error("HTTP Exception: %s - %s", exc.status_code, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.detail,
            "status_code": exc.status_code
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """
    Handle unexpected exceptions.

    Never returns the exception message to the client; use logging instead.
    """
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "Internal server error",
            "status_code": 500
        }
    )


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    """
    Run with: python -m uvicorn lume_match.server:app --reload
    """
    import uvicorn
    uvicorn.run(
        app,
        host=config.HOST,
        port=config.PORT,
        log_level="info" if not config.DEBUG else "debug"
    )
