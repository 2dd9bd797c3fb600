"""Tests for geolock geodesy helpers."""

import pytest
from geolock.attestation import MovementPoint
from geolock.geo import (
    format_coordinates,
    format_distance,
    haversine_distance,
    longest_presence_span,
    max_speed,
    within_geofence,
)

PUNE = (18.5204, 73.8567)
MUMBAI = (19.0760, 72.8777)


class TestHaversine:
    """Test great-circle distance."""

    def test_zero_distance(self):
        """Same point is 0 m."""
        assert haversine_distance(*PUNE, *PUNE) == 0.0

    def test_symmetric(self):
        """Distance does not depend on direction."""
        assert haversine_distance(*PUNE, *MUMBAI) == pytest.approx(haversine_distance(*MUMBAI, *PUNE))

    def test_known_distance(self):
        """Pune to Mumbai is about 120 km."""
        assert haversine_distance(*PUNE, *MUMBAI) == pytest.approx(120_000, rel=0.05)

    def test_one_degree_latitude(self):
        """One degree of latitude is about 111.2 km."""
        assert haversine_distance(0.0, 0.0, 1.0, 0.0) == pytest.approx(111_195, rel=1e-3)

    def test_antimeridian(self):
        """Crossing 180 degrees takes the short way."""
        assert haversine_distance(0.0, 179.9, 0.0, -179.9) == pytest.approx(22_239, rel=1e-3)


class TestGeofence:
    """Test geofence membership."""

    def test_inside(self):
        inside, distance = within_geofence(*PUNE, *PUNE, 10)
        assert inside
        assert distance == 0.0

    def test_outside(self):
        inside, distance = within_geofence(*MUMBAI, *PUNE, 1000)
        assert not inside
        assert distance > 1000

    def test_boundary_is_inside(self):
        """Distance equal to radius is accepted."""
        distance = haversine_distance(18.5214, 73.8567, *PUNE)
        inside, _ = within_geofence(18.5214, 73.8567, *PUNE, distance)
        assert inside


class TestMaxSpeed:
    """Test movement speed checks."""

    def test_single_point(self):
        """No pairs means zero speed."""
        assert max_speed([MovementPoint(0.0, 0.0, 0)]) == 0.0

    def test_walking(self):
        """About 1.1 m/s for 0.00001 degree per second."""
        points = [MovementPoint(0.0, 0.0, 0), MovementPoint(0.00001, 0.0, 1000)]
        assert max_speed(points) == pytest.approx(1.112, rel=1e-2)

    def test_takes_fastest_leg(self):
        """Reports the fastest pair."""
        points = [
            MovementPoint(0.0, 0.0, 0),
            MovementPoint(0.0001, 0.0, 10_000),
            MovementPoint(0.0101, 0.0, 11_000),
        ]
        assert max_speed(points) > 1000

    def test_repeated_timestamp(self):
        """Distinct samples with zero elapsed time are malformed."""
        points = [MovementPoint(0.0, 0.0, 1000), MovementPoint(0.0001, 0.0, 1000)]
        with pytest.raises(ValueError):
            max_speed(points)

    def test_exact_duplicate_skipped(self):
        """An identical repeated sample does not count as a leg."""
        points = [
            MovementPoint(0.0, 0.0, 0),
            MovementPoint(0.0, 0.0, 0),
            MovementPoint(0.00001, 0.0, 1000),
        ]
        assert max_speed(points) == pytest.approx(1.112, rel=1e-2)


class TestPresence:
    """Test continuous presence spans."""

    def test_all_inside(self):
        points = [MovementPoint(*PUNE, t) for t in (0, 10_000, 40_000)]
        assert longest_presence_span(points, *PUNE, 50) == 40_000

    def test_exit_resets_run(self):
        """Leaving the fence starts a new run."""
        points = [
            MovementPoint(*PUNE, 0),
            MovementPoint(*PUNE, 20_000),
            MovementPoint(*MUMBAI, 25_000),
            MovementPoint(*PUNE, 30_000),
            MovementPoint(*PUNE, 45_000),
        ]
        assert longest_presence_span(points, *PUNE, 50) == 20_000

    def test_empty(self):
        assert longest_presence_span([], *PUNE, 50) == 0


class TestFormatting:
    """Test display helpers."""

    def test_coordinates(self):
        assert format_coordinates(18.5204, 73.8567) == "18.520400°N, 73.856700°E"
        assert format_coordinates(-33.8688, -151.2093) == "33.868800°S, 151.209300°W"

    def test_distance(self):
        assert format_distance(12.34) == "12.3m"
        assert format_distance(1234.0) == "1.23km"
