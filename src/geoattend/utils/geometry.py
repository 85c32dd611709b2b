"""Geometry helpers for geofence checks.

Coordinates are any objects exposing ``latitude`` and ``longitude`` in
decimal degrees (normally ``geoattend.models.Coordinate``).
"""

import math
from typing import Sequence

# Mean Earth radius, spherical approximation
EARTH_RADIUS_KM = 6371.0


def distance_km(a, b) -> float:
    """Calculate the great-circle distance between two coordinates.

    Uses the haversine formula on a spherical Earth of radius 6371 km.

    Args:
        a: First coordinate
        b: Second coordinate

    Returns:
        Distance between the two points in kilometers

    Example:
        >>> distance_km(Coordinate(21.1702, 72.8311), Coordinate(21.1747, 72.8311))
        0.5003...  # about half a kilometer due north
    """
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlat = lat2 - lat1
    dlon = math.radians(b.longitude - a.longitude)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # Rounding can push h a hair past 1 for antipodal points
    h = min(1.0, h)
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))

    return EARTH_RADIUS_KM * c


def is_within_radius(position, center, radius_km: float) -> bool:
    """Check if a position lies within radius_km of center (boundary inclusive)."""
    return distance_km(position, center) <= radius_km


def point_in_polygon(point, polygon: Sequence) -> bool:
    """Check if a point is inside a polygon using ray casting.

    Longitude is treated as x and latitude as y. Polygons with fewer than
    three vertices never contain anything. A point lying exactly on an
    edge may resolve either way.

    Args:
        point: Coordinate to test
        polygon: Ordered vertices of the polygon (closing edge implied)

    Returns:
        True if the point is inside the polygon, False otherwise
    """
    if not polygon or len(polygon) < 3:
        return False

    x = point.longitude
    y = point.latitude
    inside = False

    j = len(polygon) - 1
    for i in range(len(polygon)):
        xi, yi = polygon[i].longitude, polygon[i].latitude
        xj, yj = polygon[j].longitude, polygon[j].latitude

        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i

    return inside
