"""Geospatial utilities used for distance calculations and pre-filtering."""

from __future__ import annotations

from math import atan2, cos, radians, sin, sqrt

from lume_match.models import BoundingBox

EARTH_RADIUS_KM = 6371.0
EARTH_RADIUS_METERS = EARTH_RADIUS_KM * 1000.0

# 1 degree of latitude is approximately 111 km everywhere.
KM_PER_DEGREE = 111.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Calculate the great-circle distance between two points in kilometers.

    Args:
        lat1: Latitude of the first point in degrees.
        lng1: Longitude of the first point in degrees.
        lat2: Latitude of the second point in degrees.
        lng2: Longitude of the second point in degrees.

    Returns:
        Distance in kilometers.

    Notes:
        Uses the haversine formula on a sphere of radius 6371 km. The result
        is symmetric in its arguments and zero for identical points.
    """

    lat1_rad = radians(lat1)
    lat2_rad = radians(lat2)
    delta_lat = radians(lat2 - lat1)
    delta_lng = radians(lng2 - lng1)

    a = sin(delta_lat / 2) ** 2 + cos(lat1_rad) * cos(lat2_rad) * sin(
        delta_lng / 2
    ) ** 2
    # Rounding can push a a hair outside [0, 1] for antipodal points.
    a = min(max(a, 0.0), 1.0)
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def haversine_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Calculate distance between two lat/lng points in meters."""

    return haversine_km(lat1, lng1, lat2, lng2) * 1000.0


def calculate_bounding_box(lat: float, lng: float, radius_km: float) -> BoundingBox:
    """Approximate a lat/lng rectangle enclosing a circle of ``radius_km``.

    1° latitude ≈ 111 km and 1° longitude ≈ 111 km * cos(latitude). Near the
    poles the cosine shrinks and the longitude span grows, so the box
    over-approximates; it only gates the exact haversine check. At a pole, or
    when the box would cross the ±180° meridian, it spans every longitude.
    """

    lat_delta = radius_km / KM_PER_DEGREE

    cos_lat = abs(cos(radians(lat)))
    km_per_lng_degree = KM_PER_DEGREE * cos_lat
    if km_per_lng_degree <= 1e-12:
        min_lng, max_lng = -180.0, 180.0
    else:
        lng_delta = radius_km / km_per_lng_degree
        min_lng, max_lng = lng - lng_delta, lng + lng_delta
        if min_lng < -180.0 or max_lng > 180.0:
            min_lng, max_lng = -180.0, 180.0

    return BoundingBox(
        min_lat=lat - lat_delta,
        max_lat=lat + lat_delta,
        min_lon=min_lng,
        max_lon=max_lng,
    )


def is_within_bounding_box(lat: float, lng: float, bbox: BoundingBox) -> bool:
    """Inclusive containment check on both axes."""

    return (
        bbox.min_lat <= lat <= bbox.max_lat
        and bbox.min_lon <= lng <= bbox.max_lon
    )
