"""
Great-circle math on a spherical Earth.

All distances are meters. Unit conversion helpers are only for the
presentation boundary (result formatting).
"""

import math
from typing import Iterable, List, Sequence

from synq.models.route import Coordinate

EARTH_RADIUS_METERS = 6_371_000.0

METERS_PER_KILOMETER = 1000.0
METERS_PER_MILE = 1609.344


def haversine_distance(a: Coordinate, b: Coordinate) -> float:
    """
    Great-circle distance between two coordinates.

    Args:
        a: (lat, lng) of the first point
        b: (lat, lng) of the second point

    Returns:
        Distance in meters
    """
    if a == b:
        return 0.0

    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    delta_lat = lat2 - lat1
    delta_lng = math.radians(b.lng - a.lng)

    h = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(delta_lng / 2) ** 2
    )
    # Rounding can push h a hair above 1 for antipodal points
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_METERS * math.asin(math.sqrt(h))


def path_distance(coordinates: Sequence[Coordinate]) -> float:
    """Sum of great-circle segments along an ordered coordinate list."""
    return sum(
        haversine_distance(coordinates[i], coordinates[i + 1])
        for i in range(len(coordinates) - 1)
    )


def interpolate_great_circle(a: Coordinate, b: Coordinate, segments: int) -> List[Coordinate]:
    """
    Points along the great circle from a to b, both endpoints included.

    Uses spherical linear interpolation between the two unit vectors.

    Args:
        a: Start coordinate
        b: End coordinate
        segments: Number of equal segments (returns segments + 1 points)
    """
    segments = max(1, segments)
    angle = haversine_distance(a, b) / EARTH_RADIUS_METERS
    if angle == 0.0:
        return [a] * (segments + 1)

    start = _to_vector(a)
    end = _to_vector(b)
    sin_angle = math.sin(angle)

    points = [a]
    for step in range(1, segments):
        fraction = step / segments
        weight_a = math.sin((1 - fraction) * angle) / sin_angle
        weight_b = math.sin(fraction * angle) / sin_angle
        vector = [weight_a * start[i] + weight_b * end[i] for i in range(3)]
        points.append(_from_vector(vector))
    points.append(b)
    return points


def _to_vector(point: Coordinate) -> List[float]:
    lat = math.radians(point.lat)
    lng = math.radians(point.lng)
    return [math.cos(lat) * math.cos(lng), math.cos(lat) * math.sin(lng), math.sin(lat)]


def _from_vector(vector: Iterable[float]) -> Coordinate:
    x, y, z = vector
    lat = math.degrees(math.atan2(z, math.hypot(x, y)))
    lng = math.degrees(math.atan2(y, x))
    return Coordinate(lat, lng)


def meters_to_kilometers(meters: float) -> float:
    return meters / METERS_PER_KILOMETER


def meters_to_miles(meters: float) -> float:
    return meters / METERS_PER_MILE


def seconds_to_minutes(seconds: float) -> float:
    return seconds / 60.0
