"""
Geodesy helpers: great-circle distance, geofence tests and display formatting.
"""

import math
from typing import Sequence, Tuple

EARTH_RADIUS_M = 6_371_000.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two coordinates.

    Returns:
        Distance in meters
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def within_geofence(
    lat: float,
    lon: float,
    target_lat: float,
    target_lon: float,
    radius_m: float,
) -> Tuple[bool, float]:
    """Return (inside, distance); the boundary itself counts as inside."""
    distance = haversine_distance(lat, lon, target_lat, target_lon)
    return distance <= radius_m, distance


def max_speed(points: Sequence) -> float:
    """
    Highest speed in m/s between consecutive timestamp-sorted points.

    Points need ``latitude``, ``longitude`` and ``timestamp`` (ms) attributes.
    Exact duplicate samples are skipped.

    Raises:
        ValueError: If two distinct consecutive points share a timestamp
    """
    fastest = 0.0
    for previous, current in zip(points, points[1:]):
        if (previous.latitude, previous.longitude, previous.timestamp) == (
            current.latitude, current.longitude, current.timestamp
        ):
            continue
        elapsed_ms = current.timestamp - previous.timestamp
        if elapsed_ms <= 0:
            raise ValueError(
                f"non-increasing sample timestamps at {current.timestamp}"
            )
        distance = haversine_distance(
            previous.latitude, previous.longitude,
            current.latitude, current.longitude,
        )
        fastest = max(fastest, distance / (elapsed_ms / 1000.0))
    return fastest


def longest_presence_span(
    points: Sequence,
    target_lat: float,
    target_lon: float,
    radius_m: float,
) -> int:
    """
    Longest span (ms) of an unbroken run of samples inside the geofence.

    A sample outside the geofence ends the current run.
    """
    best = 0
    run_start = None
    for point in points:
        inside, _ = within_geofence(
            point.latitude, point.longitude, target_lat, target_lon, radius_m
        )
        if not inside:
            run_start = None
            continue
        if run_start is None:
            run_start = point.timestamp
        best = max(best, point.timestamp - run_start)
    return best


def format_coordinates(lat: float, lon: float) -> str:
    """Format as ``18.520400°N, 73.856700°E``."""
    lat_dir = "N" if lat >= 0 else "S"
    lon_dir = "E" if lon >= 0 else "W"
    return f"{abs(lat):.6f}°{lat_dir}, {abs(lon):.6f}°{lon_dir}"


def format_distance(meters: float) -> str:
    """Format as meters below 1 km, kilometers above."""
    if meters < 1000:
        return f"{meters:.1f}m"
    return f"{meters / 1000:.2f}km"
