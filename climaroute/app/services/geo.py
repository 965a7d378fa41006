"""
Geometry helpers for route candidates.

Great-circle distance, path length, midpoint and point offsets.
"""

import math
from typing import List, Sequence
from climaroute.app.schemas.geo import GeoPoint


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Args:
        lat1, lon1: First point coordinates (degrees)
        lat2, lon2: Second point coordinates (degrees)

    Returns:
        Distance in meters
    """
    # Radius of Earth in meters
    R = 6371000.0

    # Convert degrees to radians
    lat1_rad = math.radians(lat1)
    lon1_rad = math.radians(lon1)
    lat2_rad = math.radians(lat2)
    lon2_rad = math.radians(lon2)

    # Haversine formula
    dlat = lat2_rad - lat1_rad
    dlon = lon2_rad - lon1_rad

    a = math.sin(dlat / 2)**2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2)**2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return R * c


def path_length(points: Sequence[GeoPoint]) -> float:
    """Sum of leg distances along a path, in meters."""
    return sum(
        haversine_distance(a.lat, a.lon, b.lat, b.lon)
        for a, b in zip(points, points[1:])
    )


def midpoint(points: Sequence[GeoPoint]) -> GeoPoint:
    """Middle vertex of a path (by index), used to sample corridor weather."""
    return points[len(points) // 2]


def shift_point(point: GeoPoint, offset_degrees: float) -> GeoPoint:
    """Shift a point diagonally, clamped to valid coordinate ranges."""
    return GeoPoint(
        lat=min(max(point.lat + offset_degrees, -90.0), 90.0),
        lon=min(max(point.lon + offset_degrees, -180.0), 180.0),
    )


def shift_path(points: Sequence[GeoPoint], offset_degrees: float) -> List[GeoPoint]:
    return [shift_point(p, offset_degrees) for p in points]


def lateral_via_point(origin: GeoPoint, destination: GeoPoint, fraction: float) -> GeoPoint:
    """
    Point beside the origin-destination midpoint.

    The offset is perpendicular to the straight line and scaled by
    fraction of the straight-line span; positive fractions go left.
    """
    mid_lat = (origin.lat + destination.lat) / 2
    mid_lon = (origin.lon + destination.lon) / 2
    d_lat = destination.lat - origin.lat
    d_lon = destination.lon - origin.lon
    return GeoPoint(
        lat=min(max(mid_lat + d_lon * fraction, -90.0), 90.0),
        lon=min(max(mid_lon - d_lat * fraction, -180.0), 180.0),
    )
