"""
Unit tests for geospatial helpers.

Covers the haversine distance (symmetry, reference distances) and the
bounding box used as a cheap pre-filter, including the polar edge case.
"""

import itertools

import pytest
from lume_match.utils.geo import (
    calculate_bounding_box,
    haversine_km,
    haversine_meters,
    is_within_bounding_box,
)

LONDON = (51.5074, -0.1278)
PARIS = (48.8566, 2.3522)
NYC = (40.7128, -74.0060)
SYDNEY = (-33.8688, 151.2093)

POINTS = [LONDON, PARIS, NYC, SYDNEY, (0.0, 0.0), (89.9, 10.0), (-45.0, -179.9)]


class TestHaversine:
    """Test great-circle distance."""

    def test_london_to_paris(self):
        """London to Paris is roughly 344 km."""
        distance = haversine_km(*LONDON, *PARIS)
        assert distance == pytest.approx(344.0, abs=5.0)

    def test_same_point_is_zero(self):
        for point in POINTS:
            assert haversine_km(*point, *point) == pytest.approx(0.0, abs=1e-9)

    def test_symmetric(self):
        for a, b in itertools.combinations(POINTS, 2):
            assert haversine_km(*a, *b) == pytest.approx(haversine_km(*b, *a))

    def test_one_degree_latitude_at_equator(self):
        """One degree of latitude is about 111 km."""
        assert haversine_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(111.19, abs=0.1)

    def test_monotonic_in_separation(self):
        distances = [haversine_km(0.0, 0.0, 0.0, lng) for lng in (1, 10, 45, 90, 179)]
        assert distances == sorted(distances)

    def test_antipodal_points(self):
        """Antipodes are half the Earth's circumference apart."""
        assert haversine_km(0.0, 0.0, 0.0, 180.0) == pytest.approx(20015.1, abs=1.0)

    def test_meters_variant(self):
        assert haversine_meters(*LONDON, *PARIS) == pytest.approx(
            haversine_km(*LONDON, *PARIS) * 1000.0
        )


class TestBoundingBox:
    """Test bounding box approximation."""

    def test_contains_center(self):
        for (lat, lng), radius in itertools.product(POINTS, (1, 10, 50, 500)):
            bbox = calculate_bounding_box(lat, lng, radius)
            assert is_within_bounding_box(lat, lng, bbox)

    @pytest.mark.parametrize("radius", [1.0, 10.0, 50.0, 250.0])
    def test_latitude_span(self, radius):
        """Latitude span is about 2 * radius / 111 degrees."""
        bbox = calculate_bounding_box(*NYC, radius)
        expected = 2 * radius / 111.0
        assert bbox.max_lat - bbox.min_lat == pytest.approx(expected, rel=0.05)

    def test_longitude_span_widens_with_latitude(self):
        equator = calculate_bounding_box(0.0, 0.0, 50)
        north = calculate_bounding_box(60.0, 0.0, 50)
        assert (north.max_lon - north.min_lon) > (equator.max_lon - equator.min_lon)

    def test_pole_spans_all_longitudes(self):
        """At the pole the cosine is 0; the box covers every longitude."""
        bbox = calculate_bounding_box(90.0, 0.0, 10)
        assert bbox.min_lon == -180.0
        assert bbox.max_lon == 180.0
        assert is_within_bounding_box(89.95, 120.0, bbox)

    def test_box_across_date_line_keeps_near_points(self):
        """A point ~17 km away on the other side of ±180° stays inside."""
        bbox = calculate_bounding_box(0.0, 179.9, 50)
        assert haversine_km(0.0, 179.9, 0.0, -179.95) < 50
        assert is_within_bounding_box(0.0, -179.95, bbox)
        assert (bbox.min_lon, bbox.max_lon) == (-180.0, 180.0)

    def test_box_away_from_date_line_is_not_widened(self):
        bbox = calculate_bounding_box(0.0, 179.0, 50)
        assert bbox.max_lon < 180.0
        assert not is_within_bounding_box(0.0, -179.95, bbox)

    def test_point_within_bbox(self):
        bbox = calculate_bounding_box(*NYC, 10.0)
        assert is_within_bounding_box(40.71, -74.0, bbox)
        assert not is_within_bounding_box(50.0, -80.0, bbox)

    def test_edges_are_inclusive(self):
        bbox = calculate_bounding_box(*NYC, 10.0)
        assert is_within_bounding_box(bbox.min_lat, bbox.min_lon, bbox)
        assert is_within_bounding_box(bbox.max_lat, bbox.max_lon, bbox)
